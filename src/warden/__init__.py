"""Warden - role, permission and capability resolution engine."""

from warden.config import Settings, get_settings
from warden.core.errors import (
    CacheBackendError,
    CircularRoleInheritanceError,
    FeatureDisabledError,
    GuardMismatchError,
    NotFoundError,
    WardenError,
)
from warden.permissions import (
    ContextRef,
    DeclarationSet,
    RoleDeclaration,
    SubjectRef,
    SyncResult,
    Warden,
)


__version__ = "0.1.0"

__all__ = [
    "CacheBackendError",
    "CircularRoleInheritanceError",
    "ContextRef",
    "DeclarationSet",
    "FeatureDisabledError",
    "GuardMismatchError",
    "NotFoundError",
    "RoleDeclaration",
    "Settings",
    "SubjectRef",
    "SyncResult",
    "Warden",
    "WardenError",
    "__version__",
    "get_settings",
]

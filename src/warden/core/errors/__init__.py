"""Error hierarchy for the authorization engine."""

from warden.core.errors.exceptions import (
    CacheBackendError,
    CapabilityAlreadyExistsError,
    CapabilityNotFoundError,
    CircularRoleInheritanceError,
    ConflictError,
    FeatureDisabledError,
    GuardMismatchError,
    InvalidDeclarationError,
    NotFoundError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
    WardenError,
)


__all__ = [
    "CacheBackendError",
    "CapabilityAlreadyExistsError",
    "CapabilityNotFoundError",
    "CircularRoleInheritanceError",
    "ConflictError",
    "FeatureDisabledError",
    "GuardMismatchError",
    "InvalidDeclarationError",
    "NotFoundError",
    "PermissionAlreadyExistsError",
    "PermissionNotFoundError",
    "RoleAlreadyExistsError",
    "RoleNotFoundError",
    "WardenError",
]

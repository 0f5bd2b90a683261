"""Role, permission and capability resolution."""

from warden.permissions.contracts import Authorizable, Contextual
from warden.permissions.hierarchy import RoleHierarchyResolver
from warden.permissions.registrar import PermissionRegistrar, StoreRegistryLoader
from warden.permissions.resolver import PermissionResolver
from warden.permissions.schemas import (
    CapabilityDeclaration,
    CapabilityRecord,
    ContextRef,
    DeclarationSet,
    GrantMatch,
    GrantPath,
    PermissionDeclaration,
    PermissionRecord,
    RoleDeclaration,
    RoleRecord,
    SubjectAssignments,
    SubjectRef,
    SyncResult,
)
from warden.permissions.service import Warden
from warden.permissions.sync import DeclarationSyncer, load_declarations
from warden.permissions.wildcard import WildcardMatcher


__all__ = [
    "Authorizable",
    "CapabilityDeclaration",
    "CapabilityRecord",
    "ContextRef",
    "Contextual",
    "DeclarationSet",
    "DeclarationSyncer",
    "GrantMatch",
    "GrantPath",
    "PermissionDeclaration",
    "PermissionRecord",
    "PermissionRegistrar",
    "PermissionResolver",
    "RoleDeclaration",
    "RoleHierarchyResolver",
    "RoleRecord",
    "StoreRegistryLoader",
    "SubjectAssignments",
    "SubjectRef",
    "SyncResult",
    "Warden",
    "WildcardMatcher",
    "load_declarations",
]

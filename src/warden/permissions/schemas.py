"""Value types for subjects, contexts, cached records and declarations."""

from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from warden.permissions.contracts import Authorizable, Contextual


def _as_str(v: Any) -> Any:
    if isinstance(v, int | UUID):
        return str(v)
    return v


def _parse_ref(value: str) -> tuple[str, str]:
    for separator in ("#", ":"):
        kind, sep, ident = value.partition(separator)
        if sep and kind and ident:
            return kind, ident
    raise ValueError(f"Expected 'Type#id' or 'Type:id', got '{value}'")


# ============================================================
# Subject and context references
# ============================================================


class SubjectRef(BaseModel):
    """Polymorphic reference to a principal.

    Attributes:
        type: Subject type tag (e.g., "User")
        id: Subject identifier, always stored as a string
        guard: Guard the subject authenticates under, or None for the default
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1)
    id: str = Field(..., min_length=1)
    guard: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept integer and UUID identifiers."""
        return _as_str(v)

    @classmethod
    def parse(cls, value: str, guard: str | None = None) -> "SubjectRef":
        """Build a reference from ``"User#1"`` or ``"User:1"``."""
        kind, ident = _parse_ref(value)
        return cls(type=kind, id=ident, guard=guard)

    @classmethod
    def of(cls, subject: "SubjectRef | Authorizable") -> "SubjectRef":
        """Normalize any ``Authorizable`` to a SubjectRef."""
        if isinstance(subject, SubjectRef):
            return subject
        return cls(
            type=subject.subject_type,
            id=_as_str(subject.subject_id),
            guard=getattr(subject, "guard_name", None),
        )

    @property
    def subject_type(self) -> str:
        return self.type

    @property
    def subject_id(self) -> str:
        return self.id

    @property
    def guard_name(self) -> str | None:
        return self.guard

    def __str__(self) -> str:
        return f"{self.type}#{self.id}"


class ContextRef(BaseModel):
    """Polymorphic reference to a scoping entity."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1)
    id: str = Field(..., min_length=1)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept integer and UUID identifiers."""
        return _as_str(v)

    @classmethod
    def parse(cls, value: str) -> "ContextRef":
        """Build a reference from ``"Team#7"`` or ``"Team:7"``."""
        kind, ident = _parse_ref(value)
        return cls(type=kind, id=ident)

    @classmethod
    def of(cls, context: "ContextRef | Contextual | None") -> "ContextRef | None":
        """Normalize any ``Contextual`` to a ContextRef; None stays None."""
        if context is None or isinstance(context, ContextRef):
            return context
        return cls(type=context.context_type, id=_as_str(context.context_id))

    @classmethod
    def from_columns(cls, context_type: str | None, context_id: str | None) -> "ContextRef | None":
        """Rebuild a reference from nullable storage columns."""
        if context_type is None or context_id is None:
            return None
        return cls(type=context_type, id=context_id)

    @property
    def context_type(self) -> str:
        return self.type

    @property
    def context_id(self) -> str:
        return self.id

    def __str__(self) -> str:
        return f"{self.type}#{self.id}"


# ============================================================
# Cached entity records
# ============================================================


class EntityRecord(BaseModel):
    """Immutable snapshot of a permission, role or capability row."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    guard: str
    context_type: str | None = None
    context_id: str | None = None
    label: str | None = None
    description: str | None = None

    @property
    def context(self) -> ContextRef | None:
        return ContextRef.from_columns(self.context_type, self.context_id)


class PermissionRecord(EntityRecord):
    pass


class RoleRecord(EntityRecord):
    permission_ids: tuple[UUID, ...] = ()
    capability_ids: tuple[UUID, ...] = ()


class CapabilityRecord(EntityRecord):
    permission_ids: tuple[UUID, ...] = ()


# ============================================================
# Subject assignments
# ============================================================


class Assignment(BaseModel):
    """One association row of a subject: the entity and its scope."""

    model_config = ConfigDict(frozen=True)

    entity_id: UUID
    context: ContextRef | None = None


class SubjectAssignments(BaseModel):
    """A subject's association rows, loaded once and reusable across checks.

    ``context`` and ``include_global`` record which scopes were loaded,
    so a preloaded instance is only reused for checks it covers.
    """

    model_config = ConfigDict(frozen=True)

    subject: SubjectRef
    context: ContextRef | None = None
    include_global: bool = True
    permissions: tuple[Assignment, ...] = ()
    roles: tuple[Assignment, ...] = ()
    capability_ids: tuple[UUID, ...] = ()

    def permission_ids(self, scope: ContextRef | None) -> list[UUID]:
        """Directly granted permission ids in exactly ``scope``."""
        return [a.entity_id for a in self.permissions if a.context == scope]

    def role_ids(self, scope: ContextRef | None) -> list[UUID]:
        """Assigned role ids in exactly ``scope``."""
        return [a.entity_id for a in self.roles if a.context == scope]

    def covers(
        self,
        subject: SubjectRef,
        context: ContextRef | None,
        include_global: bool,
    ) -> bool:
        """Whether these rows answer a check for ``subject`` in ``context``."""
        if (subject.type, subject.id) != (self.subject.type, self.subject.id):
            return False
        if context is None:
            return self.context is None or self.include_global
        return self.context == context and (self.include_global or not include_global)


# ============================================================
# Resolution results
# ============================================================


class GrantPath(StrEnum):
    """Resolution path that satisfied a check, in evaluation order."""

    DIRECT = "direct"
    ROLE = "role"
    ROLE_CAPABILITY = "role_capability"
    CAPABILITY = "capability"


class GrantMatch(BaseModel):
    """Diagnostic description of the grant that allowed a check.

    Attributes:
        path: Which of the four resolution paths matched
        requested: Permission name that was checked
        permission: Granted permission name (may be a wildcard pattern)
        guard: Guard the check ran under
        context: Scope of the matching row; None for a global grant
        role: Role the grant came through, if any
        capability: Capability the grant came through, if any
    """

    model_config = ConfigDict(frozen=True)

    path: GrantPath
    requested: str
    permission: str
    guard: str
    context: ContextRef | None = None
    role: str | None = None
    capability: str | None = None

    @property
    def is_wildcard(self) -> bool:
        return self.permission != self.requested


# ============================================================
# Declarations
# ============================================================


class PermissionDeclaration(BaseModel):
    """Declared permission."""

    name: str = Field(..., min_length=1, description="Permission name (e.g., 'article:edit')")
    label: str | None = Field(None, description="Human-readable label")
    description: str | None = Field(None, description="Longer description")
    guard: str | None = Field(None, description="Guard override; falls back to the sync guard")


class CapabilityDeclaration(BaseModel):
    """Declared capability and the permissions it bundles."""

    name: str = Field(..., min_length=1)
    permissions: list[str] = Field(default_factory=list)
    label: str | None = None
    description: str | None = None
    guard: str | None = None


class RoleDeclaration(BaseModel):
    """Declared role with its direct permissions and parents.

    ``inherited_permissions`` is filled in by the hierarchy resolver.
    """

    name: str = Field(..., min_length=1)
    permissions: list[str] = Field(default_factory=list)
    inherits_from: list[str] = Field(default_factory=list)
    capabilities: list[str] = Field(default_factory=list)
    label: str | None = None
    description: str | None = None
    guard: str | None = None
    inherited_permissions: list[str] = Field(default_factory=list)

    def all_permissions(self) -> list[str]:
        """Direct plus inherited permissions, deduplicated, direct first."""
        return list(dict.fromkeys([*self.permissions, *self.inherited_permissions]))


class DeclarationSet(BaseModel):
    """Everything a declaration file declares."""

    permissions: list[PermissionDeclaration] = Field(default_factory=list)
    capabilities: list[CapabilityDeclaration] = Field(default_factory=list)
    roles: list[RoleDeclaration] = Field(default_factory=list)

    @field_validator("permissions", mode="before")
    @classmethod
    def expand_permission_names(cls, v: Any) -> Any:
        """Accept bare names as shorthand for ``{name: ...}``."""
        if isinstance(v, list):
            return [{"name": item} if isinstance(item, str) else item for item in v]
        return v

    def permission_names(self) -> list[str]:
        return [p.name for p in self.permissions]


class SyncResult(BaseModel):
    """Counters describing what a declaration sync changed."""

    permissions_created: int = 0
    permissions_updated: int = 0
    roles_created: int = 0
    roles_updated: int = 0
    capabilities_created: int = 0
    capabilities_updated: int = 0
    assignments_seeded: bool = False

    def total_created(self) -> int:
        return self.permissions_created + self.roles_created + self.capabilities_created

    def total_updated(self) -> int:
        return self.permissions_updated + self.roles_updated + self.capabilities_updated

    def total(self) -> int:
        return self.total_created() + self.total_updated()

    def has_changes(self) -> bool:
        return self.total() > 0 or self.assignments_seeded

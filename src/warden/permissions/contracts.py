"""Protocols the engine depends on instead of concrete classes."""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from warden.permissions.schemas import (
        CapabilityRecord,
        PermissionRecord,
        RoleRecord,
    )


@runtime_checkable
class Authorizable(Protocol):
    """Any principal that can hold grants.

    Implementations may also expose a ``guard_name`` attribute; when it
    is absent or None the configured default guard applies.
    """

    @property
    def subject_type(self) -> str: ...

    @property
    def subject_id(self) -> Any: ...


@runtime_checkable
class Contextual(Protocol):
    """Any entity usable as a scoping context (team, project, tenant)."""

    @property
    def context_type(self) -> str: ...

    @property
    def context_id(self) -> Any: ...


class RegistryLoader(Protocol):
    """Source of the full entity collections for the resolution cache."""

    async def load_permissions(self) -> list["PermissionRecord"]: ...

    async def load_roles(self) -> list["RoleRecord"]: ...

    async def load_capabilities(self) -> list["CapabilityRecord"]: ...


class AuditLogger(Protocol):
    """Sink for authorization events. Delivery is up to the implementation."""

    def log(self, event: str, **fields: Any) -> None: ...

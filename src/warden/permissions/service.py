"""Authorization engine facade.

``Warden`` is the one object applications hold: it answers permission,
role and capability checks and performs every grant store write. Each
write commits, then invalidates the resolution cache, then returns, so
the next read after a successful write always sees it.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from warden.config import Settings, get_settings
from warden.core.audit import StructlogAuditLogger
from warden.core.cache import CacheBackend, create_cache
from warden.core.database import create_engine, create_session_factory, session_scope
from warden.core.errors import (
    CapabilityAlreadyExistsError,
    CapabilityNotFoundError,
    FeatureDisabledError,
    GuardMismatchError,
    NotFoundError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
)
from warden.permissions.contracts import AuditLogger, Authorizable, Contextual
from warden.permissions.hierarchy import RoleHierarchyResolver
from warden.permissions.models import Capability, Permission, Role
from warden.permissions.registrar import PermissionRegistrar, StoreRegistryLoader
from warden.permissions.repos import GrantStore
from warden.permissions.resolver import PermissionResolver
from warden.permissions.schemas import (
    CapabilityRecord,
    ContextRef,
    DeclarationSet,
    EntityRecord,
    GrantMatch,
    PermissionRecord,
    RoleDeclaration,
    RoleRecord,
    SubjectAssignments,
    SubjectRef,
    SyncResult,
)
from warden.permissions.sync import DeclarationSyncer, load_declarations
from warden.permissions.wildcard import WildcardMatcher


logger = structlog.get_logger()

SubjectLike = SubjectRef | Authorizable
ContextLike = ContextRef | Contextual | None
RecordT = TypeVar("RecordT", bound=EntityRecord)

PermissionRef = str | PermissionRecord
RoleRef = str | RoleRecord
CapabilityRef = str | CapabilityRecord


def _as_list(items: Any) -> list[Any]:
    """Accept a single name/record or an iterable of them."""
    if isinstance(items, str | EntityRecord):
        return [items]
    return list(items)


class Warden:
    """Role, permission and capability engine.

    Example:
        warden = Warden.from_settings()
        await warden.create_permission("article:edit")
        await warden.grant(SubjectRef(type="User", id=1), "article:edit")
        assert await warden.can(SubjectRef(type="User", id=1), "article:edit")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: CacheBackend,
        settings: Settings | None = None,
        audit: AuditLogger | None = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            session_factory: Factory for grant store sessions
            cache: Backend for the resolution cache
            settings: Engine settings; read from the environment when omitted
            audit: Audit sink; defaults to structured logging when events are enabled
            engine: Engine to dispose in ``aclose()``, when owned by this instance
        """
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.cache = cache
        self.audit = audit or StructlogAuditLogger()
        self._engine = engine

        self.matcher = WildcardMatcher(
            delimiter=self.settings.wildcard_delimiter,
            greedy_trailing=self.settings.wildcard_greedy_trailing,
        )
        self.registrar = PermissionRegistrar(
            cache=cache,
            loader=StoreRegistryLoader(session_factory),
            key_prefix=self.settings.cache_key,
            ttl_seconds=self.settings.cache_expiration,
        )
        self.resolver = PermissionResolver(self.registrar, self.matcher, self.settings)
        self.hierarchy = RoleHierarchyResolver()
        self.syncer = DeclarationSyncer(
            session_factory, self.registrar, self.settings, self.hierarchy
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        audit: AuditLogger | None = None,
    ) -> "Warden":
        """Build an engine with its own database engine and cache backend."""
        settings = settings or get_settings()
        engine = create_engine(settings)
        return cls(
            session_factory=create_session_factory(engine),
            cache=create_cache(settings),
            settings=settings,
            audit=audit,
            engine=engine,
        )

    async def aclose(self) -> None:
        """Release the cache backend and, if owned, the database engine."""
        await self.cache.aclose()
        if self._engine is not None:
            await self._engine.dispose()

    def reset(self) -> None:
        """Drop in-process cached state (collections and compiled patterns)."""
        self.registrar.reset()
        self.matcher.clear_cache()

    # ============================================================
    # Argument normalization
    # ============================================================

    def _subject(self, subject: SubjectLike) -> SubjectRef:
        ref = SubjectRef.of(subject)
        if ref.guard is None:
            ref = ref.model_copy(update={"guard": self.settings.default_guard})
        return ref

    def _context(self, context: ContextLike) -> ContextRef | None:
        return self.resolver.effective_context(ContextRef.of(context))

    def _guard(self, guard: str | None) -> str:
        return guard or self.settings.default_guard

    def _require_capabilities(self, direct: bool = False) -> None:
        if not self.settings.capabilities_enabled:
            raise FeatureDisabledError("capabilities")
        if direct and not self.settings.capabilities_direct_assignment:
            raise FeatureDisabledError("capabilities.direct_assignment")

    def _emit(self, event: str, **fields: Any) -> None:
        if self.settings.events_enabled:
            self.audit.log(event, **fields)

    async def load_assignments(
        self, subject: SubjectLike, context: ContextLike = None
    ) -> SubjectAssignments:
        """Load a subject's association rows once, for reuse across checks.

        Args:
            subject: Subject to load
            context: Context the checks will run in

        Returns:
            Assignments to pass as ``assignments=`` to the check methods
        """
        ref = self._subject(subject)
        ctx = self._context(context)
        async with self.session_factory() as session:
            return await GrantStore(session).load_assignments(
                ref, ctx, include_global=self.settings.context_global_fallback
            )

    async def _assignments(
        self,
        ref: SubjectRef,
        ctx: ContextRef | None,
        preloaded: SubjectAssignments | None,
    ) -> SubjectAssignments:
        include_global = self.settings.context_global_fallback
        if preloaded is not None and preloaded.covers(ref, ctx, include_global):
            return preloaded
        async with self.session_factory() as session:
            return await GrantStore(session).load_assignments(ref, ctx, include_global)

    async def _records(
        self,
        items: Iterable[str | RecordT],
        record_type: type[RecordT],
        lookup: Callable[[str, str, ContextRef | None], Awaitable[RecordT | None]],
        not_found: type[NotFoundError],
        kind: str,
        guard: str,
        context: ContextRef | None = None,
    ) -> list[RecordT]:
        """Resolve names or records to records of ``guard``.

        Raises:
            NotFoundError: If a name does not exist for the guard
            GuardMismatchError: If a record belongs to another guard
        """
        records: list[RecordT] = []
        for item in items:
            if isinstance(item, record_type):
                if item.guard != guard:
                    raise GuardMismatchError(expected=guard, actual=item.guard, kind=kind)
                records.append(item)
                continue
            record = await lookup(str(item), guard, context)
            if record is None:
                raise not_found(str(item), guard)
            records.append(record)
        return records

    async def _permissions(
        self, items: Any, guard: str, context: ContextRef | None = None
    ) -> list[PermissionRecord]:
        return await self._records(
            _as_list(items),
            PermissionRecord,
            self.registrar.get_permission_by_name,
            PermissionNotFoundError,
            "permission",
            guard,
            context,
        )

    async def _roles(
        self, items: Any, guard: str, context: ContextRef | None = None
    ) -> list[RoleRecord]:
        return await self._records(
            _as_list(items),
            RoleRecord,
            self.registrar.get_role_by_name,
            RoleNotFoundError,
            "role",
            guard,
            context,
        )

    async def _capabilities(
        self, items: Any, guard: str, context: ContextRef | None = None
    ) -> list[CapabilityRecord]:
        return await self._records(
            _as_list(items),
            CapabilityRecord,
            self.registrar.get_capability_by_name,
            CapabilityNotFoundError,
            "capability",
            guard,
            context,
        )

    async def _role(self, role: RoleRef, guard: str | None) -> RoleRecord:
        if isinstance(role, RoleRecord):
            return role
        return (await self._roles(role, self._guard(guard)))[0]

    async def _capability(self, capability: CapabilityRef, guard: str | None) -> CapabilityRecord:
        if isinstance(capability, CapabilityRecord):
            return capability
        return (await self._capabilities(capability, self._guard(guard)))[0]

    @asynccontextmanager
    async def _writing(self) -> AsyncGenerator[GrantStore, None]:
        """Run store writes in one transaction, then invalidate the cache."""
        async with session_scope(self.session_factory) as session:
            yield GrantStore(session)
        await self.registrar.invalidate()

    # ============================================================
    # Permission checks
    # ============================================================

    async def can(
        self,
        subject: SubjectLike,
        permission: str,
        context: ContextLike = None,
        assignments: SubjectAssignments | None = None,
    ) -> bool:
        """Check whether a subject holds a permission.

        Unknown permission names are simply denied.

        Args:
            subject: Subject to check
            permission: Permission name
            context: Optional scoping context
            assignments: Preloaded rows from ``load_assignments``

        Returns:
            True if any resolution path grants the permission
        """
        match = await self.find_grant(subject, permission, context, assignments)
        return match is not None

    async def find_grant(
        self,
        subject: SubjectLike,
        permission: str,
        context: ContextLike = None,
        assignments: SubjectAssignments | None = None,
    ) -> GrantMatch | None:
        """Like ``can`` but describes the grant that matched."""
        ref = self._subject(subject)
        ctx = self._context(context)
        rows = await self._assignments(ref, ctx, assignments)
        match = await self.resolver.find_grant(rows, permission, ref.guard or "", ctx)
        self._emit(
            "permission_checked",
            subject=str(ref),
            permission=permission,
            guard=ref.guard,
            context=str(ctx) if ctx else None,
            granted=match is not None,
            path=match.path.value if match else None,
        )
        return match

    async def has_any_permission(
        self, subject: SubjectLike, permissions: Iterable[str], context: ContextLike = None
    ) -> bool:
        """Check whether the subject holds at least one of ``permissions``."""
        ref = self._subject(subject)
        rows = await self._assignments(ref, self._context(context), None)
        for permission in permissions:
            if await self.can(ref, permission, context, rows):
                return True
        return False

    async def has_all_permissions(
        self, subject: SubjectLike, permissions: Iterable[str], context: ContextLike = None
    ) -> bool:
        """Check whether the subject holds every one of ``permissions``."""
        ref = self._subject(subject)
        rows = await self._assignments(ref, self._context(context), None)
        for permission in permissions:
            if not await self.can(ref, permission, context, rows):
                return False
        return True

    async def granted_permissions(
        self,
        subject: SubjectLike,
        context: ContextLike = None,
        assignments: SubjectAssignments | None = None,
    ) -> list[PermissionRecord]:
        """Every permission the subject holds, wildcards expanded."""
        ref = self._subject(subject)
        ctx = self._context(context)
        rows = await self._assignments(ref, ctx, assignments)
        return await self.resolver.granted_permissions(rows, ref.guard or "", ctx)

    async def permission_names(self, subject: SubjectLike, context: ContextLike = None) -> list[str]:
        """Names of every permission the subject holds."""
        return [p.name for p in await self.granted_permissions(subject, context)]

    # ============================================================
    # Role and capability checks
    # ============================================================

    async def has_role(
        self, subject: SubjectLike, roles: str | Iterable[str], context: ContextLike = None
    ) -> bool:
        """Check whether the subject holds any of the given roles."""
        wanted = set(_as_list(roles))
        return any(name in wanted for name in await self.role_names(subject, context))

    async def has_all_roles(
        self, subject: SubjectLike, roles: Iterable[str], context: ContextLike = None
    ) -> bool:
        """Check whether the subject holds every one of the given roles."""
        return set(_as_list(roles)) <= set(await self.role_names(subject, context))

    async def has_exact_roles(
        self, subject: SubjectLike, roles: Iterable[str], context: ContextLike = None
    ) -> bool:
        """Check whether the subject holds the given roles and no others."""
        return set(_as_list(roles)) == set(await self.role_names(subject, context))

    async def role_names(self, subject: SubjectLike, context: ContextLike = None) -> list[str]:
        """Names of the roles the subject holds in the effective scopes."""
        ref = self._subject(subject)
        ctx = self._context(context)
        rows = await self._assignments(ref, ctx, None)
        return [r.name for r in await self.resolver.roles(rows, ref.guard or "", ctx)]

    async def has_capability(
        self, subject: SubjectLike, capability: str, context: ContextLike = None
    ) -> bool:
        """Check whether the subject holds a capability through a role or directly."""
        return capability in await self.capability_names(subject, context)

    async def capability_names(self, subject: SubjectLike, context: ContextLike = None) -> list[str]:
        """Names of the capabilities the subject holds; empty when capabilities are off."""
        ref = self._subject(subject)
        ctx = self._context(context)
        rows = await self._assignments(ref, ctx, None)
        return [c.name for c in await self.resolver.capabilities(rows, ref.guard or "", ctx)]

    # ============================================================
    # Direct grants
    # ============================================================

    async def grant(
        self,
        subject: SubjectLike,
        permissions: PermissionRef | Iterable[PermissionRef],
        context: ContextLike = None,
    ) -> None:
        """Grant permissions directly to a subject. Already granted ones are kept.

        Raises:
            PermissionNotFoundError: If a permission does not exist for the subject's guard
            GuardMismatchError: If a permission record belongs to another guard
        """
        ref = self._subject(subject)
        ctx = self._context(context)
        records = await self._permissions(permissions, ref.guard or "", ctx)
        async with self._writing() as store:
            for record in records:
                await store.add_permission_subject(record.id, ref, ctx)
        for record in records:
            self._emit(
                "permission_granted",
                subject=str(ref),
                permission=record.name,
                context=str(ctx) if ctx else None,
            )

    async def revoke(
        self,
        subject: SubjectLike,
        permissions: PermissionRef | Iterable[PermissionRef],
        context: ContextLike = None,
    ) -> None:
        """Revoke direct grants from a subject. Missing grants are ignored."""
        ref = self._subject(subject)
        ctx = self._context(context)
        records = await self._permissions(permissions, ref.guard or "", ctx)
        async with self._writing() as store:
            for record in records:
                await store.remove_permission_subject(record.id, ref, ctx)
        for record in records:
            self._emit(
                "permission_revoked",
                subject=str(ref),
                permission=record.name,
                context=str(ctx) if ctx else None,
            )

    async def sync_permissions(
        self,
        subject: SubjectLike,
        permissions: Iterable[PermissionRef],
        context: ContextLike = None,
    ) -> None:
        """Make ``permissions`` the subject's exact direct grants in the scope."""
        ref = self._subject(subject)
        ctx = self._context(context)
        records = await self._permissions(permissions, ref.guard or "", ctx)
        async with self._writing() as store:
            await store.replace_permission_subjects(
                ref, [r.id for r in records], ref.guard or "", ctx
            )
        self._emit(
            "permission_granted",
            subject=str(ref),
            permissions=[r.name for r in records],
            context=str(ctx) if ctx else None,
            sync=True,
        )

    # ============================================================
    # Role assignments
    # ============================================================

    async def assign_role(
        self,
        subject: SubjectLike,
        roles: RoleRef | Iterable[RoleRef],
        context: ContextLike = None,
    ) -> None:
        """Assign roles to a subject.

        Raises:
            RoleNotFoundError: If a role does not exist for the subject's guard
            GuardMismatchError: If a role record belongs to another guard
        """
        ref = self._subject(subject)
        ctx = self._context(context)
        records = await self._roles(roles, ref.guard or "", ctx)
        async with self._writing() as store:
            for record in records:
                await store.add_role_subject(record.id, ref, ctx)
        for record in records:
            self._emit(
                "role_assigned",
                subject=str(ref),
                role=record.name,
                context=str(ctx) if ctx else None,
            )

    async def remove_role(
        self,
        subject: SubjectLike,
        roles: RoleRef | Iterable[RoleRef],
        context: ContextLike = None,
    ) -> None:
        """Remove roles from a subject. Roles the subject lacks are ignored."""
        ref = self._subject(subject)
        ctx = self._context(context)
        records = await self._roles(roles, ref.guard or "", ctx)
        async with self._writing() as store:
            for record in records:
                await store.remove_role_subject(record.id, ref, ctx)
        for record in records:
            self._emit(
                "role_removed",
                subject=str(ref),
                role=record.name,
                context=str(ctx) if ctx else None,
            )

    async def sync_roles(
        self,
        subject: SubjectLike,
        roles: Iterable[RoleRef],
        context: ContextLike = None,
    ) -> None:
        """Make ``roles`` the subject's exact roles in the scope."""
        ref = self._subject(subject)
        ctx = self._context(context)
        records = await self._roles(roles, ref.guard or "", ctx)
        async with self._writing() as store:
            await store.replace_role_subjects(ref, [r.id for r in records], ref.guard or "", ctx)
        self._emit(
            "role_assigned",
            subject=str(ref),
            roles=[r.name for r in records],
            context=str(ctx) if ctx else None,
            sync=True,
        )

    # ============================================================
    # Direct capability assignments
    # ============================================================

    async def assign_capability(
        self, subject: SubjectLike, capabilities: CapabilityRef | Iterable[CapabilityRef]
    ) -> None:
        """Assign capabilities directly to a subject.

        Raises:
            FeatureDisabledError: If capabilities or direct assignment are disabled
            CapabilityNotFoundError: If a capability does not exist for the subject's guard
        """
        self._require_capabilities(direct=True)
        ref = self._subject(subject)
        records = await self._capabilities(capabilities, ref.guard or "")
        async with self._writing() as store:
            for record in records:
                await store.add_capability_subject(record.id, ref)
        for record in records:
            self._emit("capability_assigned", subject=str(ref), capability=record.name)

    async def remove_capability(
        self, subject: SubjectLike, capabilities: CapabilityRef | Iterable[CapabilityRef]
    ) -> None:
        """Remove directly assigned capabilities from a subject."""
        self._require_capabilities(direct=True)
        ref = self._subject(subject)
        records = await self._capabilities(capabilities, ref.guard or "")
        async with self._writing() as store:
            for record in records:
                await store.remove_capability_subject(record.id, ref)
        for record in records:
            self._emit("capability_removed", subject=str(ref), capability=record.name)

    # ============================================================
    # Role and capability composition
    # ============================================================

    async def grant_permission_to_role(
        self,
        role: RoleRef,
        permissions: PermissionRef | Iterable[PermissionRef],
        guard: str | None = None,
    ) -> None:
        """Grant permissions to a role.

        Raises:
            RoleNotFoundError: If the role does not exist
            PermissionNotFoundError: If a permission does not exist for the role's guard
            GuardMismatchError: If a permission record belongs to another guard
        """
        record = await self._role(role, guard)
        granted = await self._permissions(permissions, record.guard)
        async with self._writing() as store:
            await store.attach_role_permissions(record.id, [p.id for p in granted])
        self._emit("permission_granted", role=record.name, permissions=[p.name for p in granted])

    async def revoke_permission_from_role(
        self,
        role: RoleRef,
        permissions: PermissionRef | Iterable[PermissionRef],
        guard: str | None = None,
    ) -> None:
        """Revoke permissions from a role."""
        record = await self._role(role, guard)
        revoked = await self._permissions(permissions, record.guard)
        async with self._writing() as store:
            await store.detach_role_permissions(record.id, [p.id for p in revoked])
        self._emit("permission_revoked", role=record.name, permissions=[p.name for p in revoked])

    async def sync_role_permissions(
        self,
        role: RoleRef,
        permissions: Iterable[PermissionRef],
        guard: str | None = None,
    ) -> None:
        """Make ``permissions`` the role's exact permission set."""
        record = await self._role(role, guard)
        wanted = await self._permissions(permissions, record.guard)
        async with self._writing() as store:
            await store.replace_role_permissions(record.id, [p.id for p in wanted])
        self._emit(
            "permission_granted", role=record.name, permissions=[p.name for p in wanted], sync=True
        )

    async def grant_permission_to_capability(
        self,
        capability: CapabilityRef,
        permissions: PermissionRef | Iterable[PermissionRef],
        guard: str | None = None,
    ) -> None:
        """Add permissions to a capability.

        Raises:
            FeatureDisabledError: If capabilities are disabled
            GuardMismatchError: If a permission record belongs to another guard
        """
        self._require_capabilities()
        record = await self._capability(capability, guard)
        granted = await self._permissions(permissions, record.guard)
        async with self._writing() as store:
            await store.attach_capability_permissions(record.id, [p.id for p in granted])
        self._emit(
            "permission_granted", capability=record.name, permissions=[p.name for p in granted]
        )

    async def revoke_permission_from_capability(
        self,
        capability: CapabilityRef,
        permissions: PermissionRef | Iterable[PermissionRef],
        guard: str | None = None,
    ) -> None:
        """Remove permissions from a capability."""
        self._require_capabilities()
        record = await self._capability(capability, guard)
        revoked = await self._permissions(permissions, record.guard)
        async with self._writing() as store:
            await store.detach_capability_permissions(record.id, [p.id for p in revoked])
        self._emit(
            "permission_revoked", capability=record.name, permissions=[p.name for p in revoked]
        )

    async def assign_capability_to_role(
        self,
        role: RoleRef,
        capabilities: CapabilityRef | Iterable[CapabilityRef],
        guard: str | None = None,
    ) -> None:
        """Attach capabilities to a role.

        Raises:
            FeatureDisabledError: If capabilities are disabled
            GuardMismatchError: If a capability record belongs to another guard
        """
        self._require_capabilities()
        record = await self._role(role, guard)
        assigned = await self._capabilities(capabilities, record.guard)
        async with self._writing() as store:
            await store.attach_role_capabilities(record.id, [c.id for c in assigned])
        for capability in assigned:
            self._emit("capability_assigned", role=record.name, capability=capability.name)

    async def remove_capability_from_role(
        self,
        role: RoleRef,
        capabilities: CapabilityRef | Iterable[CapabilityRef],
        guard: str | None = None,
    ) -> None:
        """Detach capabilities from a role."""
        self._require_capabilities()
        record = await self._role(role, guard)
        removed = await self._capabilities(capabilities, record.guard)
        async with self._writing() as store:
            await store.detach_role_capabilities(record.id, [c.id for c in removed])
        for capability in removed:
            self._emit("capability_removed", role=record.name, capability=capability.name)

    # ============================================================
    # Entity management
    # ============================================================

    async def _create(
        self,
        model: type[Permission] | type[Role] | type[Capability],
        name: str,
        guard: str | None,
        context: ContextLike,
        label: str | None,
        description: str | None,
    ) -> Any:
        async with self._writing() as store:
            entity = await store.create(
                model,
                name,
                self._guard(guard),
                context=self._context(context),
                label=label,
                description=description,
            )
        logger.info(
            "entity_created", kind=model.__tablename__, name=name, guard=entity.guard
        )
        return entity.id

    @staticmethod
    async def _created(
        lookup: Callable[[Any], Awaitable[RecordT | None]], entity_id: Any
    ) -> RecordT:
        record = await lookup(entity_id)
        if record is None:
            # Only reachable if the row was deleted between commit and reload
            raise NotFoundError(str(entity_id), message=f"Entity {entity_id} vanished after create")
        return record

    async def _delete(self, model: Any, record: EntityRecord) -> None:
        async with self._writing() as store:
            entity = await store.get_by_id(model, record.id)
            if entity is not None:
                await store.delete(entity)
        logger.info("entity_deleted", kind=model.__tablename__, name=record.name, guard=record.guard)

    async def create_permission(
        self,
        name: str,
        guard: str | None = None,
        context: ContextLike = None,
        label: str | None = None,
        description: str | None = None,
    ) -> PermissionRecord:
        """Create a permission.

        Raises:
            PermissionAlreadyExistsError: If it already exists for the guard and context
        """
        entity_id = await self._create(Permission, name, guard, context, label, description)
        return await self._created(self.registrar.get_permission_by_id, entity_id)

    async def find_permission(
        self, name: str, guard: str | None = None, context: ContextLike = None
    ) -> PermissionRecord:
        """Find a permission by name.

        Raises:
            PermissionNotFoundError: If no such permission exists
        """
        return (await self._permissions(name, self._guard(guard), self._context(context)))[0]

    async def find_or_create_permission(
        self,
        name: str,
        guard: str | None = None,
        context: ContextLike = None,
        label: str | None = None,
        description: str | None = None,
    ) -> PermissionRecord:
        """Find a permission, creating it when missing."""
        try:
            return await self.find_permission(name, guard, context)
        except PermissionNotFoundError:
            pass
        try:
            return await self.create_permission(name, guard, context, label, description)
        except PermissionAlreadyExistsError:
            return await self.find_permission(name, guard, context)

    async def delete_permission(
        self, permission: PermissionRef, guard: str | None = None, context: ContextLike = None
    ) -> None:
        """Delete a permission and every grant of it.

        Raises:
            PermissionNotFoundError: If no such permission exists
        """
        record = (
            permission
            if isinstance(permission, PermissionRecord)
            else await self.find_permission(permission, guard, context)
        )
        await self._delete(Permission, record)

    async def create_role(
        self,
        name: str,
        guard: str | None = None,
        context: ContextLike = None,
        label: str | None = None,
        description: str | None = None,
    ) -> RoleRecord:
        """Create a role.

        Raises:
            RoleAlreadyExistsError: If it already exists for the guard and context
        """
        entity_id = await self._create(Role, name, guard, context, label, description)
        return await self._created(self.registrar.get_role_by_id, entity_id)

    async def find_role(
        self, name: str, guard: str | None = None, context: ContextLike = None
    ) -> RoleRecord:
        """Find a role by name.

        Raises:
            RoleNotFoundError: If no such role exists
        """
        return (await self._roles(name, self._guard(guard), self._context(context)))[0]

    async def find_or_create_role(
        self,
        name: str,
        guard: str | None = None,
        context: ContextLike = None,
        label: str | None = None,
        description: str | None = None,
    ) -> RoleRecord:
        try:
            return await self.find_role(name, guard, context)
        except RoleNotFoundError:
            pass
        try:
            return await self.create_role(name, guard, context, label, description)
        except RoleAlreadyExistsError:
            return await self.find_role(name, guard, context)

    async def delete_role(
        self, role: RoleRef, guard: str | None = None, context: ContextLike = None
    ) -> None:
        """Delete a role and every assignment of it."""
        record = role if isinstance(role, RoleRecord) else await self.find_role(role, guard, context)
        await self._delete(Role, record)

    async def create_capability(
        self,
        name: str,
        guard: str | None = None,
        context: ContextLike = None,
        label: str | None = None,
        description: str | None = None,
    ) -> CapabilityRecord:
        """Create a capability.

        Raises:
            FeatureDisabledError: If capabilities are disabled
            CapabilityAlreadyExistsError: If it already exists for the guard and context
        """
        self._require_capabilities()
        entity_id = await self._create(Capability, name, guard, context, label, description)
        return await self._created(self.registrar.get_capability_by_id, entity_id)

    async def find_capability(
        self, name: str, guard: str | None = None, context: ContextLike = None
    ) -> CapabilityRecord:
        """Find a capability by name.

        Raises:
            CapabilityNotFoundError: If no such capability exists
        """
        return (await self._capabilities(name, self._guard(guard), self._context(context)))[0]

    async def find_or_create_capability(
        self,
        name: str,
        guard: str | None = None,
        context: ContextLike = None,
        label: str | None = None,
        description: str | None = None,
    ) -> CapabilityRecord:
        try:
            return await self.find_capability(name, guard, context)
        except CapabilityNotFoundError:
            pass
        try:
            return await self.create_capability(name, guard, context, label, description)
        except CapabilityAlreadyExistsError:
            return await self.find_capability(name, guard, context)

    async def delete_capability(
        self, capability: CapabilityRef, guard: str | None = None, context: ContextLike = None
    ) -> None:
        """Delete a capability and every link to it."""
        self._require_capabilities()
        record = (
            capability
            if isinstance(capability, CapabilityRecord)
            else await self.find_capability(capability, guard, context)
        )
        await self._delete(Capability, record)

    async def all_permissions(self, guard: str | None = None) -> list[PermissionRecord]:
        return await self.registrar.get_permissions(guard)

    async def all_roles(self, guard: str | None = None) -> list[RoleRecord]:
        return await self.registrar.get_roles(guard)

    async def all_capabilities(self, guard: str | None = None) -> list[CapabilityRecord]:
        return await self.registrar.get_capabilities(guard)

    # ============================================================
    # Cache, hierarchy and declarations
    # ============================================================

    async def invalidate_cache(self) -> None:
        """Evict the resolution cache."""
        await self.registrar.invalidate()

    def resolve_role_hierarchy(
        self, declarations: Sequence[RoleDeclaration]
    ) -> list[RoleDeclaration]:
        """Resolve inherited permissions of role declarations.

        Raises:
            CircularRoleInheritanceError: If the declarations inherit in a cycle
        """
        return self.hierarchy.resolve(declarations)

    def inheritance_chain(
        self, role: RoleDeclaration | str, declarations: Sequence[RoleDeclaration]
    ) -> list[str]:
        """Ancestor-first role names leading to ``role``."""
        return self.hierarchy.inheritance_chain(role, declarations)

    async def sync(
        self,
        declarations: DeclarationSet | str | Path,
        guard: str | None = None,
        seed: bool = False,
    ) -> SyncResult:
        """Sync declarations (or a declaration file) into the grant store."""
        if not isinstance(declarations, DeclarationSet):
            declarations = load_declarations(declarations)
        result = await self.syncer.sync(declarations, guard=guard, seed=seed)
        self._emit("declarations_synced", **result.model_dump())
        return result

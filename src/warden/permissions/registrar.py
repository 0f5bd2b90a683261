"""Resolution cache for permissions, roles and capabilities.

Each entity kind is cached as one collection covering every guard,
stored under ``<prefix>.permissions``, ``<prefix>.roles`` and
``<prefix>.capabilities`` and filtered in memory per call.

Consistency protocol:
- ``<prefix>.generation`` is a counter bumped by every invalidation.
- Population reads the counter, loads from the grant store, and writes
  the collection back only if the counter has not moved meanwhile.
- Every read compares the local snapshot with the current counter, so a
  process never serves a collection older than the last invalidation.
  Local snapshots also expire after the TTL, like the backend keys.
- A population overtaken by an invalidation is marked fenced: it is
  returned to its caller but never kept or combined into a view.
- Population is single-flight per kind within a process.
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from warden.core.cache import CacheBackend, dump_collection, load_collection
from warden.core.constants import (
    DEFAULT_CACHE_EXPIRATION_SECONDS,
    DEFAULT_CACHE_KEY,
    MAX_VIEW_ATTEMPTS,
)
from warden.core.errors import CacheBackendError
from warden.permissions.contracts import RegistryLoader
from warden.permissions.repos import GrantStore
from warden.permissions.schemas import (
    CapabilityRecord,
    ContextRef,
    EntityRecord,
    PermissionRecord,
    RoleRecord,
)


logger = structlog.get_logger()

RecordT = TypeVar("RecordT", bound=EntityRecord)

_KINDS = ("permissions", "roles", "capabilities")


@dataclass(frozen=True)
class Snapshot(Generic[RecordT]):
    """One loaded collection with lookup indexes."""

    generation: int
    items: list[RecordT]
    by_id: dict[UUID, RecordT] = field(default_factory=dict)
    by_key: dict[tuple[str, str, str | None, str | None], RecordT] = field(default_factory=dict)
    expires_at: float = math.inf
    fenced: bool = False

    @classmethod
    def build(
        cls,
        generation: int,
        items: list[RecordT],
        ttl_seconds: float | None = None,
        fenced: bool = False,
    ) -> "Snapshot[RecordT]":
        return cls(
            generation=generation,
            items=items,
            by_id={item.id: item for item in items},
            by_key={
                (item.name, item.guard, item.context_type, item.context_id): item
                for item in items
            },
            expires_at=time.monotonic() + ttl_seconds if ttl_seconds is not None else math.inf,
            fenced=fenced,
        )

    def is_current(self, generation: int) -> bool:
        """True if loaded under ``generation``, not fenced and not expired."""
        return (
            not self.fenced
            and self.generation == generation
            and time.monotonic() < self.expires_at
        )

    def by_name(self, name: str, guard: str, context: ContextRef | None = None) -> RecordT | None:
        """Find a record, preferring one scoped to ``context`` over the global one."""
        if context is not None:
            scoped = self.by_key.get((name, guard, context.type, context.id))
            if scoped is not None:
                return scoped
        return self.by_key.get((name, guard, None, None))

    def for_guard(self, guard: str | None) -> list[RecordT]:
        if guard is None:
            return list(self.items)
        return [item for item in self.items if item.guard == guard]


@dataclass(frozen=True)
class RegistryView:
    """The three collections as seen by one resolution."""

    permissions: Snapshot[PermissionRecord]
    roles: Snapshot[RoleRecord]
    capabilities: Snapshot[CapabilityRecord]


class StoreRegistryLoader:
    """Loads full collections from the grant store in a fresh session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def load_permissions(self) -> list[PermissionRecord]:
        async with self.session_factory() as session:
            return await GrantStore(session).load_permission_records()

    async def load_roles(self) -> list[RoleRecord]:
        async with self.session_factory() as session:
            return await GrantStore(session).load_role_records()

    async def load_capabilities(self) -> list[CapabilityRecord]:
        async with self.session_factory() as session:
            return await GrantStore(session).load_capability_records()


class PermissionRegistrar:
    """Read-through cache of every permission, role and capability.

    One instance is constructed per engine and injected wherever lookups
    or invalidations happen. ``reset()`` returns it to a cold state.
    """

    def __init__(
        self,
        cache: CacheBackend,
        loader: RegistryLoader,
        key_prefix: str = DEFAULT_CACHE_KEY,
        ttl_seconds: int = DEFAULT_CACHE_EXPIRATION_SECONDS,
    ) -> None:
        """Initialize the registrar.

        Args:
            cache: Backend holding the serialized collections
            loader: Source of fresh collections on a miss
            key_prefix: Prefix of every cache key
            ttl_seconds: Lifetime of a populated collection
        """
        self.cache = cache
        self.loader = loader
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds
        self._snapshots: dict[str, Snapshot] = {}
        self._locks: dict[str, asyncio.Lock] = {kind: asyncio.Lock() for kind in _KINDS}

    # ============================================================
    # Keys
    # ============================================================

    def key(self, kind: str) -> str:
        """Cache key of a collection (``permissions``, ``roles``, ``capabilities``)."""
        return f"{self.key_prefix}.{kind}"

    @property
    def generation_key(self) -> str:
        return f"{self.key_prefix}.generation"

    async def generation(self) -> int:
        """Current value of the invalidation counter (0 when unset)."""
        value = await self.cache.get(self.generation_key)
        return int(value) if value is not None else 0

    # ============================================================
    # Collections
    # ============================================================

    async def permissions(self) -> Snapshot[PermissionRecord]:
        return await self._collection("permissions", PermissionRecord, self.loader.load_permissions)

    async def roles(self) -> Snapshot[RoleRecord]:
        return await self._collection("roles", RoleRecord, self.loader.load_roles)

    async def capabilities(self) -> Snapshot[CapabilityRecord]:
        return await self._collection(
            "capabilities", CapabilityRecord, self.loader.load_capabilities
        )

    async def view(self) -> RegistryView:
        """Load all three collections for one resolution.

        The collections are loaded one after another, so an invalidation
        can land between them. A view is only returned when all three
        were loaded under the same generation and none was fenced;
        otherwise it is rebuilt.

        Raises:
            CacheBackendError: If invalidations keep tearing the view
        """
        for attempt in range(1, MAX_VIEW_ATTEMPTS + 1):
            view = RegistryView(
                permissions=await self.permissions(),
                roles=await self.roles(),
                capabilities=await self.capabilities(),
            )
            generation = await self.generation()
            if all(
                snapshot.is_current(generation)
                for snapshot in (view.permissions, view.roles, view.capabilities)
            ):
                return view
            logger.debug("cache_view_torn", attempt=attempt, generation=generation)

        raise CacheBackendError(
            message="Resolution cache kept changing while building a view",
            error_code="cache_unstable",
            details={"attempts": MAX_VIEW_ATTEMPTS},
        )

    async def get_permissions(self, guard: str | None = None) -> list[PermissionRecord]:
        """All permissions, optionally restricted to a guard."""
        return (await self.permissions()).for_guard(guard)

    async def get_roles(self, guard: str | None = None) -> list[RoleRecord]:
        """All roles, optionally restricted to a guard."""
        return (await self.roles()).for_guard(guard)

    async def get_capabilities(self, guard: str | None = None) -> list[CapabilityRecord]:
        """All capabilities, optionally restricted to a guard."""
        return (await self.capabilities()).for_guard(guard)

    async def get_permission_by_name(
        self, name: str, guard: str, context: ContextRef | None = None
    ) -> PermissionRecord | None:
        """Look up a permission by name and guard.

        Args:
            name: Permission name
            guard: Guard name
            context: Prefer a permission scoped to this context

        Returns:
            The record, or None if no such permission exists
        """
        return (await self.permissions()).by_name(name, guard, context)

    async def get_role_by_name(
        self, name: str, guard: str, context: ContextRef | None = None
    ) -> RoleRecord | None:
        return (await self.roles()).by_name(name, guard, context)

    async def get_capability_by_name(
        self, name: str, guard: str, context: ContextRef | None = None
    ) -> CapabilityRecord | None:
        return (await self.capabilities()).by_name(name, guard, context)

    async def get_permission_by_id(self, permission_id: UUID) -> PermissionRecord | None:
        return (await self.permissions()).by_id.get(permission_id)

    async def get_role_by_id(self, role_id: UUID) -> RoleRecord | None:
        return (await self.roles()).by_id.get(role_id)

    async def get_capability_by_id(self, capability_id: UUID) -> CapabilityRecord | None:
        return (await self.capabilities()).by_id.get(capability_id)

    async def permission_exists(self, name: str, guard: str) -> bool:
        return any(p.name == name for p in await self.get_permissions(guard))

    async def role_exists(self, name: str, guard: str) -> bool:
        return any(r.name == name for r in await self.get_roles(guard))

    async def permission_names(self, guard: str | None = None) -> list[str]:
        """Distinct permission names, in collection order."""
        return list(dict.fromkeys(p.name for p in await self.get_permissions(guard)))

    async def role_names(self, guard: str | None = None) -> list[str]:
        """Distinct role names, in collection order."""
        return list(dict.fromkeys(r.name for r in await self.get_roles(guard)))

    # ============================================================
    # Invalidation
    # ============================================================

    async def invalidate(self) -> None:
        """Evict every cached collection.

        Bumps the generation first so that a population already in
        flight cannot write its now-stale result back. Safe to call on
        an empty cache.
        """
        generation = await self.cache.incr(self.generation_key)
        await self.cache.delete(*(self.key(kind) for kind in _KINDS))
        self._snapshots.clear()
        logger.debug("cache_invalidated", prefix=self.key_prefix, generation=generation)

    def reset(self) -> None:
        """Drop in-process state. The shared backend is left untouched."""
        self._snapshots.clear()
        self._locks = {kind: asyncio.Lock() for kind in _KINDS}

    # ============================================================
    # Population
    # ============================================================

    async def _collection(
        self,
        kind: str,
        model: type[RecordT],
        load: Callable[[], Awaitable[list[RecordT]]],
    ) -> Snapshot[RecordT]:
        generation = await self.generation()
        snapshot = self._snapshots.get(kind)
        if snapshot is not None and snapshot.is_current(generation):
            return snapshot

        async with self._locks[kind]:
            # Another task may have populated while we waited
            generation = await self.generation()
            snapshot = self._snapshots.get(kind)
            if snapshot is not None and snapshot.is_current(generation):
                return snapshot

            cached = await self.cache.get(self.key(kind))
            if cached is not None:
                cached_generation, items = load_collection(cached, model)
                if cached_generation == generation:
                    snapshot = Snapshot.build(generation, items, self.ttl_seconds)
                    self._snapshots[kind] = snapshot
                    return snapshot

            items = await load()

            if await self.generation() == generation:
                snapshot = Snapshot.build(generation, items, self.ttl_seconds)
                await self.cache.set(
                    self.key(kind), dump_collection(generation, items), self.ttl_seconds
                )
                self._snapshots[kind] = snapshot
                logger.debug(
                    "cache_populated", kind=kind, count=len(items), generation=generation
                )
            else:
                snapshot = Snapshot.build(generation, items, fenced=True)
                self._snapshots.pop(kind, None)
                logger.debug("cache_population_fenced", kind=kind, generation=generation)

            return snapshot

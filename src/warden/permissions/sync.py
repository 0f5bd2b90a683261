"""Synchronization of declared permissions, capabilities and roles.

Declarations are written into the grant store as an upsert: missing
entities are created, existing ones get their label and description
updated in place. A newly created role receives its direct and
inherited permissions; existing roles only do when seeding.
"""

from pathlib import Path
from uuid import UUID

import structlog
import yaml
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from warden.config import Settings
from warden.core.database import session_scope
from warden.core.errors import InvalidDeclarationError
from warden.permissions.hierarchy import RoleHierarchyResolver
from warden.permissions.models import Capability, Permission, Role
from warden.permissions.registrar import PermissionRegistrar
from warden.permissions.repos import GrantStore
from warden.permissions.schemas import DeclarationSet, SyncResult


logger = structlog.get_logger()


def load_declarations(path: str | Path) -> DeclarationSet:
    """Read a declaration file.

    Expected layout::

        permissions:
          - article:view
          - name: article:edit
            label: Edit articles
        capabilities:
          - name: manage-articles
            permissions: [article:edit]
        roles:
          - name: editor
            permissions: [article:edit]
            inherits_from: [viewer]

    Args:
        path: Path to a YAML file

    Returns:
        The parsed declarations

    Raises:
        InvalidDeclarationError: If the file cannot be read or validated
    """
    path = Path(path)
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise InvalidDeclarationError(
            message=f"Cannot read declarations from {path}: {e}",
            details={"path": str(path)},
        ) from e

    if not isinstance(data, dict):
        raise InvalidDeclarationError(
            message=f"Declarations in {path} must be a mapping",
            details={"path": str(path)},
        )

    try:
        return DeclarationSet.model_validate(data)
    except ValidationError as e:
        raise InvalidDeclarationError(
            message=f"Invalid declarations in {path}",
            details={"path": str(path), "errors": e.errors(include_url=False)},
        ) from e


class DeclarationSyncer:
    """Writes a ``DeclarationSet`` into the grant store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registrar: PermissionRegistrar,
        settings: Settings,
        hierarchy: RoleHierarchyResolver | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.registrar = registrar
        self.settings = settings
        self.hierarchy = hierarchy or RoleHierarchyResolver()

    async def sync(
        self,
        declarations: DeclarationSet,
        guard: str | None = None,
        seed: bool = False,
    ) -> SyncResult:
        """Sync declarations in one transaction.

        Args:
            declarations: What to sync
            guard: Guard for declarations that do not name one; defaults
                to the configured default guard
            seed: Also replace the permission sets of existing roles

        Returns:
            Counts of what was created and updated

        Raises:
            CircularRoleInheritanceError: If the roles inherit in a cycle.
                Nothing is written in that case.
        """
        roles = self.hierarchy.resolve(declarations.roles)
        default_guard = guard or self.settings.default_guard
        result = SyncResult()

        async with session_scope(self.session_factory) as session:
            store = GrantStore(session)

            for declared in declarations.permissions:
                _, created, updated = await self._upsert(
                    store,
                    Permission,
                    declared.name,
                    declared.guard or default_guard,
                    declared.label,
                    declared.description,
                )
                result.permissions_created += created
                result.permissions_updated += updated

            if self.settings.capabilities_enabled:
                for declared in declarations.capabilities:
                    capability_guard = declared.guard or default_guard
                    capability, created, updated = await self._upsert(
                        store,
                        Capability,
                        declared.name,
                        capability_guard,
                        declared.label,
                        declared.description,
                    )
                    result.capabilities_created += created
                    result.capabilities_updated += updated
                    permission_ids = await self._ensure(
                        store, Permission, declared.permissions, capability_guard, result
                    )
                    await store.replace_capability_permissions(capability.id, permission_ids)

            for declared in roles:
                role_guard = declared.guard or default_guard
                role, created, updated = await self._upsert(
                    store,
                    Role,
                    declared.name,
                    role_guard,
                    declared.label,
                    declared.description,
                )
                result.roles_created += created
                result.roles_updated += updated

                if not (created or seed):
                    continue

                permission_ids = await self._ensure(
                    store, Permission, declared.all_permissions(), role_guard, result
                )
                await store.replace_role_permissions(role.id, permission_ids)

                if self.settings.capabilities_enabled:
                    capability_ids = await self._ensure(
                        store, Capability, declared.capabilities, role_guard, result
                    )
                    await store.replace_role_capabilities(role.id, capability_ids)

            result.assignments_seeded = seed and bool(roles)

        await self.registrar.invalidate()
        logger.info(
            "declarations_synced",
            created=result.total_created(),
            updated=result.total_updated(),
            seeded=result.assignments_seeded,
        )
        return result

    @staticmethod
    async def _upsert(
        store: GrantStore,
        model: type[Permission] | type[Role] | type[Capability],
        name: str,
        guard: str,
        label: str | None,
        description: str | None,
    ) -> tuple[Permission | Role | Capability, int, int]:
        """Create or update one entity; returns (entity, created, updated)."""
        existing = await store.get(model, name, guard)
        if existing is None:
            entity = await store.create(model, name, guard, label=label, description=description)
            return entity, 1, 0
        updated = await store.update_metadata(existing, label, description)
        return existing, 0, int(updated)

    @staticmethod
    async def _ensure(
        store: GrantStore,
        model: type[Permission] | type[Capability],
        names: list[str],
        guard: str,
        result: SyncResult,
    ) -> list[UUID]:
        """Resolve names to ids, creating missing entities."""
        ids: list[UUID] = []
        for name in dict.fromkeys(names):
            entity = await store.get(model, name, guard)
            if entity is None:
                entity = await store.create(model, name, guard)
                if model is Permission:
                    result.permissions_created += 1
                else:
                    result.capabilities_created += 1
            ids.append(entity.id)
        return ids

"""Grant store repository.

All reads and writes of permissions, roles, capabilities and their
association rows go through ``GrantStore``. The store flushes but never
commits; the caller owns the transaction.
"""

from collections import defaultdict
from collections.abc import Iterable
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, Table, and_, delete, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.errors import (
    CapabilityAlreadyExistsError,
    ConflictError,
    PermissionAlreadyExistsError,
    RoleAlreadyExistsError,
)
from warden.permissions.models import (
    Capability,
    CapabilitySubject,
    Permission,
    PermissionSubject,
    Role,
    RoleSubject,
    capability_permissions,
    role_capabilities,
    role_permissions,
)
from warden.permissions.schemas import (
    Assignment,
    CapabilityRecord,
    ContextRef,
    PermissionRecord,
    RoleRecord,
    SubjectAssignments,
    SubjectRef,
)


EntityT = TypeVar("EntityT", Permission, Role, Capability)

_CONFLICTS: dict[type, type[ConflictError]] = {
    Permission: PermissionAlreadyExistsError,
    Role: RoleAlreadyExistsError,
    Capability: CapabilityAlreadyExistsError,
}


def _in_context(model: Any, context: ContextRef | None) -> ColumnElement[bool]:
    """Match rows scoped to exactly ``context``; None matches global rows."""
    if context is None:
        return and_(model.context_type.is_(None), model.context_id.is_(None))
    return and_(model.context_type == context.type, model.context_id == context.id)


def _in_scopes(model: Any, context: ContextRef | None, include_global: bool) -> ColumnElement[bool]:
    if context is None:
        return _in_context(model, None)
    if include_global:
        return or_(_in_context(model, context), _in_context(model, None))
    return _in_context(model, context)


def _of_subject(model: Any, subject: SubjectRef) -> ColumnElement[bool]:
    return and_(model.subject_type == subject.type, model.subject_id == subject.id)


class GrantStore:
    """Repository for grant store operations.

    Handles all database interactions for entities and their
    association rows. Uniqueness involving nullable context columns is
    checked here before insert, since SQL treats NULLs as distinct.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ============================================================
    # Entities
    # ============================================================

    async def create(
        self,
        model: type[EntityT],
        name: str,
        guard: str,
        context: ContextRef | None = None,
        label: str | None = None,
        description: str | None = None,
    ) -> EntityT:
        """Create a permission, role or capability.

        Args:
            model: Permission, Role or Capability
            name: Entity name
            guard: Guard the entity belongs to
            context: Optional scoping context
            label: Optional display label
            description: Optional description

        Returns:
            The created entity with ID populated

        Raises:
            ConflictError: If the entity already exists for this guard
                and context (the kind-specific subclass)
        """
        if await self.get(model, name, guard, context) is not None:
            raise _CONFLICTS[model](name, guard)

        entity = model(
            name=name,
            guard=guard,
            context_type=context.type if context else None,
            context_id=context.id if context else None,
            label=label,
            description=description,
        )
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def get(
        self,
        model: type[EntityT],
        name: str,
        guard: str,
        context: ContextRef | None = None,
    ) -> EntityT | None:
        """Get an entity by name, guard and exact context.

        Returns:
            Entity if found, None otherwise
        """
        stmt = select(model).where(
            model.name == name,
            model.guard == guard,
            _in_context(model, context),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, model: type[EntityT], entity_id: UUID) -> EntityT | None:
        """Get an entity by ID."""
        return await self.session.get(model, entity_id)

    async def list_entities(self, model: type[EntityT], guard: str | None = None) -> list[EntityT]:
        """List entities ordered by name, optionally for one guard."""
        stmt = select(model).order_by(model.name, model.guard)
        if guard is not None:
            stmt = stmt.where(model.guard == guard)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_metadata(
        self,
        entity: Permission | Role | Capability,
        label: str | None,
        description: str | None,
    ) -> bool:
        """Update label and description when they differ.

        Returns:
            True if anything changed
        """
        changed = False
        if entity.label != label:
            entity.label = label
            changed = True
        if entity.description != description:
            entity.description = description
            changed = True
        if changed:
            await self.session.flush()
        return changed

    async def delete(self, entity: Permission | Role | Capability) -> None:
        """Delete an entity together with every association row referencing it.

        Association rows are removed explicitly so the cascade holds on
        databases that do not enforce foreign keys.
        """
        entity_id = entity.id
        if isinstance(entity, Permission):
            await self.session.execute(
                delete(role_permissions).where(role_permissions.c.permission_id == entity_id)
            )
            await self.session.execute(
                delete(capability_permissions).where(
                    capability_permissions.c.permission_id == entity_id
                )
            )
            await self.session.execute(
                delete(PermissionSubject).where(PermissionSubject.permission_id == entity_id)
            )
        elif isinstance(entity, Role):
            await self.session.execute(
                delete(role_permissions).where(role_permissions.c.role_id == entity_id)
            )
            await self.session.execute(
                delete(role_capabilities).where(role_capabilities.c.role_id == entity_id)
            )
            await self.session.execute(delete(RoleSubject).where(RoleSubject.role_id == entity_id))
        else:
            await self.session.execute(
                delete(capability_permissions).where(
                    capability_permissions.c.capability_id == entity_id
                )
            )
            await self.session.execute(
                delete(role_capabilities).where(role_capabilities.c.capability_id == entity_id)
            )
            await self.session.execute(
                delete(CapabilitySubject).where(CapabilitySubject.capability_id == entity_id)
            )

        model = type(entity)
        await self.session.execute(delete(model).where(model.id == entity_id))
        await self.session.flush()

    # ============================================================
    # Entity <-> entity links
    # ============================================================

    async def _linked(self, table: Table, owner: str, owner_id: UUID, target: str) -> set[UUID]:
        stmt = select(table.c[target]).where(table.c[owner] == owner_id)
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def _attach(
        self, table: Table, owner: str, owner_id: UUID, target: str, ids: Iterable[UUID]
    ) -> int:
        existing = await self._linked(table, owner, owner_id, target)
        missing = [i for i in dict.fromkeys(ids) if i not in existing]
        if missing:
            await self.session.execute(
                insert(table), [{owner: owner_id, target: i} for i in missing]
            )
        return len(missing)

    async def _detach(
        self, table: Table, owner: str, owner_id: UUID, target: str, ids: Iterable[UUID]
    ) -> int:
        id_list = list(ids)
        if not id_list:
            return 0
        result = await self.session.execute(
            delete(table).where(table.c[owner] == owner_id, table.c[target].in_(id_list))
        )
        return result.rowcount or 0

    async def _replace(
        self, table: Table, owner: str, owner_id: UUID, target: str, ids: Iterable[UUID]
    ) -> None:
        wanted = set(ids)
        existing = await self._linked(table, owner, owner_id, target)
        await self._detach(table, owner, owner_id, target, existing - wanted)
        await self._attach(table, owner, owner_id, target, wanted - existing)

    async def attach_role_permissions(self, role_id: UUID, permission_ids: Iterable[UUID]) -> int:
        """Link permissions to a role; existing links are left alone.

        Returns:
            Number of links created
        """
        return await self._attach(role_permissions, "role_id", role_id, "permission_id", permission_ids)

    async def detach_role_permissions(self, role_id: UUID, permission_ids: Iterable[UUID]) -> int:
        """Unlink permissions from a role.

        Returns:
            Number of links removed
        """
        return await self._detach(role_permissions, "role_id", role_id, "permission_id", permission_ids)

    async def replace_role_permissions(self, role_id: UUID, permission_ids: Iterable[UUID]) -> None:
        """Make ``permission_ids`` the exact permission set of a role."""
        await self._replace(role_permissions, "role_id", role_id, "permission_id", permission_ids)

    async def attach_capability_permissions(
        self, capability_id: UUID, permission_ids: Iterable[UUID]
    ) -> int:
        return await self._attach(
            capability_permissions, "capability_id", capability_id, "permission_id", permission_ids
        )

    async def detach_capability_permissions(
        self, capability_id: UUID, permission_ids: Iterable[UUID]
    ) -> int:
        return await self._detach(
            capability_permissions, "capability_id", capability_id, "permission_id", permission_ids
        )

    async def replace_capability_permissions(
        self, capability_id: UUID, permission_ids: Iterable[UUID]
    ) -> None:
        await self._replace(
            capability_permissions, "capability_id", capability_id, "permission_id", permission_ids
        )

    async def attach_role_capabilities(self, role_id: UUID, capability_ids: Iterable[UUID]) -> int:
        return await self._attach(role_capabilities, "role_id", role_id, "capability_id", capability_ids)

    async def detach_role_capabilities(self, role_id: UUID, capability_ids: Iterable[UUID]) -> int:
        return await self._detach(role_capabilities, "role_id", role_id, "capability_id", capability_ids)

    async def replace_role_capabilities(self, role_id: UUID, capability_ids: Iterable[UUID]) -> None:
        await self._replace(role_capabilities, "role_id", role_id, "capability_id", capability_ids)

    # ============================================================
    # Subject assignment rows
    # ============================================================

    async def add_permission_subject(
        self, permission_id: UUID, subject: SubjectRef, context: ContextRef | None = None
    ) -> bool:
        """Grant a permission directly to a subject.

        Returns:
            True if a row was created, False if it already existed
        """
        stmt = select(PermissionSubject.id).where(
            PermissionSubject.permission_id == permission_id,
            _of_subject(PermissionSubject, subject),
            _in_context(PermissionSubject, context),
        )
        if (await self.session.execute(stmt)).first() is not None:
            return False
        self.session.add(
            PermissionSubject(
                permission_id=permission_id,
                subject_type=subject.type,
                subject_id=subject.id,
                context_type=context.type if context else None,
                context_id=context.id if context else None,
            )
        )
        await self.session.flush()
        return True

    async def remove_permission_subject(
        self, permission_id: UUID, subject: SubjectRef, context: ContextRef | None = None
    ) -> bool:
        """Revoke a direct grant.

        Returns:
            True if a row was removed
        """
        result = await self.session.execute(
            delete(PermissionSubject).where(
                PermissionSubject.permission_id == permission_id,
                _of_subject(PermissionSubject, subject),
                _in_context(PermissionSubject, context),
            )
        )
        return bool(result.rowcount)

    async def replace_permission_subjects(
        self,
        subject: SubjectRef,
        permission_ids: Iterable[UUID],
        guard: str,
        context: ContextRef | None = None,
    ) -> None:
        """Make ``permission_ids`` the subject's exact direct grants for a guard and scope."""
        wanted = set(permission_ids)
        guard_ids = select(Permission.id).where(Permission.guard == guard)
        await self.session.execute(
            delete(PermissionSubject).where(
                _of_subject(PermissionSubject, subject),
                _in_context(PermissionSubject, context),
                PermissionSubject.permission_id.in_(guard_ids),
                *([PermissionSubject.permission_id.not_in(wanted)] if wanted else []),
            )
        )
        for permission_id in wanted:
            await self.add_permission_subject(permission_id, subject, context)

    async def add_role_subject(
        self, role_id: UUID, subject: SubjectRef, context: ContextRef | None = None
    ) -> bool:
        """Assign a role to a subject.

        Returns:
            True if a row was created, False if it already existed
        """
        stmt = select(RoleSubject.id).where(
            RoleSubject.role_id == role_id,
            _of_subject(RoleSubject, subject),
            _in_context(RoleSubject, context),
        )
        if (await self.session.execute(stmt)).first() is not None:
            return False
        self.session.add(
            RoleSubject(
                role_id=role_id,
                subject_type=subject.type,
                subject_id=subject.id,
                context_type=context.type if context else None,
                context_id=context.id if context else None,
            )
        )
        await self.session.flush()
        return True

    async def remove_role_subject(
        self, role_id: UUID, subject: SubjectRef, context: ContextRef | None = None
    ) -> bool:
        result = await self.session.execute(
            delete(RoleSubject).where(
                RoleSubject.role_id == role_id,
                _of_subject(RoleSubject, subject),
                _in_context(RoleSubject, context),
            )
        )
        return bool(result.rowcount)

    async def replace_role_subjects(
        self,
        subject: SubjectRef,
        role_ids: Iterable[UUID],
        guard: str,
        context: ContextRef | None = None,
    ) -> None:
        """Make ``role_ids`` the subject's exact roles for a guard and scope."""
        wanted = set(role_ids)
        guard_ids = select(Role.id).where(Role.guard == guard)
        await self.session.execute(
            delete(RoleSubject).where(
                _of_subject(RoleSubject, subject),
                _in_context(RoleSubject, context),
                RoleSubject.role_id.in_(guard_ids),
                *([RoleSubject.role_id.not_in(wanted)] if wanted else []),
            )
        )
        for role_id in wanted:
            await self.add_role_subject(role_id, subject, context)

    async def add_capability_subject(self, capability_id: UUID, subject: SubjectRef) -> bool:
        stmt = select(CapabilitySubject.id).where(
            CapabilitySubject.capability_id == capability_id,
            _of_subject(CapabilitySubject, subject),
        )
        if (await self.session.execute(stmt)).first() is not None:
            return False
        self.session.add(
            CapabilitySubject(
                capability_id=capability_id,
                subject_type=subject.type,
                subject_id=subject.id,
            )
        )
        await self.session.flush()
        return True

    async def remove_capability_subject(self, capability_id: UUID, subject: SubjectRef) -> bool:
        result = await self.session.execute(
            delete(CapabilitySubject).where(
                CapabilitySubject.capability_id == capability_id,
                _of_subject(CapabilitySubject, subject),
            )
        )
        return bool(result.rowcount)

    async def load_assignments(
        self,
        subject: SubjectRef,
        context: ContextRef | None = None,
        include_global: bool = True,
    ) -> SubjectAssignments:
        """Load a subject's association rows for a check.

        Args:
            subject: Subject whose rows to load
            context: Context to load scoped rows for; None loads global rows only
            include_global: Also load global rows when a context is given

        Returns:
            The subject's direct, role and capability rows
        """
        permission_rows = await self.session.execute(
            select(
                PermissionSubject.permission_id,
                PermissionSubject.context_type,
                PermissionSubject.context_id,
            ).where(
                _of_subject(PermissionSubject, subject),
                _in_scopes(PermissionSubject, context, include_global),
            )
        )
        role_rows = await self.session.execute(
            select(RoleSubject.role_id, RoleSubject.context_type, RoleSubject.context_id).where(
                _of_subject(RoleSubject, subject),
                _in_scopes(RoleSubject, context, include_global),
            )
        )
        capability_rows = await self.session.execute(
            select(CapabilitySubject.capability_id).where(_of_subject(CapabilitySubject, subject))
        )

        return SubjectAssignments(
            subject=subject,
            context=context,
            include_global=include_global,
            permissions=tuple(
                Assignment(entity_id=pid, context=ContextRef.from_columns(ctype, cid))
                for pid, ctype, cid in permission_rows.all()
            ),
            roles=tuple(
                Assignment(entity_id=rid, context=ContextRef.from_columns(ctype, cid))
                for rid, ctype, cid in role_rows.all()
            ),
            capability_ids=tuple(capability_rows.scalars().all()),
        )

    # ============================================================
    # Collection loaders for the resolution cache
    # ============================================================

    async def _links(self, table: Table, owner: str, target: str) -> dict[UUID, list[UUID]]:
        grouped: dict[UUID, list[UUID]] = defaultdict(list)
        result = await self.session.execute(select(table.c[owner], table.c[target]))
        for owner_id, target_id in result.all():
            grouped[owner_id].append(target_id)
        return grouped

    @staticmethod
    def _fields(entity: Permission | Role | Capability) -> dict[str, Any]:
        return {
            "id": entity.id,
            "name": entity.name,
            "guard": entity.guard,
            "context_type": entity.context_type,
            "context_id": entity.context_id,
            "label": entity.label,
            "description": entity.description,
        }

    async def load_permission_records(self) -> list[PermissionRecord]:
        """Load every permission as an immutable record."""
        return [PermissionRecord(**self._fields(p)) for p in await self.list_entities(Permission)]

    async def load_role_records(self) -> list[RoleRecord]:
        """Load every role with the ids of its permissions and capabilities."""
        permissions = await self._links(role_permissions, "role_id", "permission_id")
        capabilities = await self._links(role_capabilities, "role_id", "capability_id")
        return [
            RoleRecord(
                **self._fields(r),
                permission_ids=tuple(permissions.get(r.id, ())),
                capability_ids=tuple(capabilities.get(r.id, ())),
            )
            for r in await self.list_entities(Role)
        ]

    async def load_capability_records(self) -> list[CapabilityRecord]:
        """Load every capability with the ids of its permissions."""
        permissions = await self._links(capability_permissions, "capability_id", "permission_id")
        return [
            CapabilityRecord(**self._fields(c), permission_ids=tuple(permissions.get(c.id, ())))
            for c in await self.list_entities(Capability)
        ]

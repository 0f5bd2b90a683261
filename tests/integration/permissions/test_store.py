"""Integration tests for the grant store repository."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.errors import PermissionAlreadyExistsError, RoleAlreadyExistsError
from warden.permissions.models import (
    Permission,
    PermissionSubject,
    Role,
    RoleSubject,
    role_permissions,
)
from warden.permissions.repos import GrantStore
from warden.permissions.schemas import ContextRef, SubjectRef


pytestmark = pytest.mark.integration

TEAM = ContextRef(type="Team", id="1")


@pytest.fixture
def store(db: AsyncSession) -> GrantStore:
    return GrantStore(db)


async def count(db: AsyncSession, table) -> int:
    return (await db.execute(select(func.count()).select_from(table))).scalar_one()


class TestEntities:
    """Tests for entity creation, lookup and deletion."""

    async def test_create_and_get(self, store: GrantStore) -> None:
        created = await store.create(Permission, "article:edit", "web", label="Edit articles")

        found = await store.get(Permission, "article:edit", "web")

        assert found is not None
        assert found.id == created.id
        assert found.label == "Edit articles"
        assert await store.get(Permission, "article:edit", "api") is None

    async def test_duplicate_global_entity_conflicts(self, store: GrantStore) -> None:
        await store.create(Role, "editor", "web")

        with pytest.raises(RoleAlreadyExistsError):
            await store.create(Role, "editor", "web")

    async def test_same_name_in_other_guard_or_context(self, store: GrantStore) -> None:
        await store.create(Permission, "a", "web")
        await store.create(Permission, "a", "api")
        await store.create(Permission, "a", "web", context=TEAM)

        with pytest.raises(PermissionAlreadyExistsError):
            await store.create(Permission, "a", "web", context=TEAM)

        assert len(await store.list_entities(Permission)) == 3
        assert len(await store.list_entities(Permission, guard="api")) == 1

    async def test_update_metadata_reports_change(self, store: GrantStore) -> None:
        role = await store.create(Role, "editor", "web", label="Editor")

        assert not await store.update_metadata(role, "Editor", None)
        assert await store.update_metadata(role, "Editors", "Edits things")
        assert role.description == "Edits things"

    async def test_delete_permission_cascades(self, store: GrantStore, db: AsyncSession) -> None:
        subject = SubjectRef.parse("User#1")
        permission = await store.create(Permission, "a", "web")
        role = await store.create(Role, "r", "web")
        await store.attach_role_permissions(role.id, [permission.id])
        await store.add_permission_subject(permission.id, subject)

        await store.delete(permission)

        assert await count(db, role_permissions) == 0
        assert await count(db, PermissionSubject) == 0
        assert await store.get(Role, "r", "web") is not None

    async def test_delete_role_cascades(self, store: GrantStore, db: AsyncSession) -> None:
        permission = await store.create(Permission, "a", "web")
        role = await store.create(Role, "r", "web")
        await store.attach_role_permissions(role.id, [permission.id])
        await store.add_role_subject(role.id, SubjectRef.parse("User#1"))

        await store.delete(role)

        assert await count(db, role_permissions) == 0
        assert await count(db, RoleSubject) == 0
        assert await store.get(Permission, "a", "web") is not None


class TestLinks:
    """Tests for role and capability links."""

    async def test_attach_is_idempotent(self, store: GrantStore) -> None:
        permission = await store.create(Permission, "a", "web")
        role = await store.create(Role, "r", "web")

        assert await store.attach_role_permissions(role.id, [permission.id, permission.id]) == 1
        assert await store.attach_role_permissions(role.id, [permission.id]) == 0

    async def test_replace_role_permissions(self, store: GrantStore) -> None:
        a = await store.create(Permission, "a", "web")
        b = await store.create(Permission, "b", "web")
        c = await store.create(Permission, "c", "web")
        role = await store.create(Role, "r", "web")
        await store.attach_role_permissions(role.id, [a.id, b.id])

        await store.replace_role_permissions(role.id, [b.id, c.id])

        [record] = await store.load_role_records()
        assert set(record.permission_ids) == {b.id, c.id}

    async def test_detach(self, store: GrantStore) -> None:
        a = await store.create(Permission, "a", "web")
        role = await store.create(Role, "r", "web")
        await store.attach_role_permissions(role.id, [a.id])

        assert await store.detach_role_permissions(role.id, [a.id]) == 1
        assert await store.detach_role_permissions(role.id, []) == 0


class TestSubjectRows:
    """Tests for subject assignment rows."""

    async def test_add_is_idempotent_per_scope(self, store: GrantStore) -> None:
        subject = SubjectRef.parse("User#1")
        permission = await store.create(Permission, "a", "web")

        assert await store.add_permission_subject(permission.id, subject)
        assert not await store.add_permission_subject(permission.id, subject)
        assert await store.add_permission_subject(permission.id, subject, TEAM)

    async def test_remove_matches_exact_scope(self, store: GrantStore) -> None:
        subject = SubjectRef.parse("User#1")
        permission = await store.create(Permission, "a", "web")
        await store.add_permission_subject(permission.id, subject, TEAM)

        assert not await store.remove_permission_subject(permission.id, subject)
        assert await store.remove_permission_subject(permission.id, subject, TEAM)

    async def test_load_assignments_scopes(self, store: GrantStore) -> None:
        subject = SubjectRef.parse("User#1")
        permission = await store.create(Permission, "a", "web")
        role = await store.create(Role, "r", "web")
        await store.add_permission_subject(permission.id, subject)
        await store.add_role_subject(role.id, subject, TEAM)

        global_only = await store.load_assignments(subject)
        scoped = await store.load_assignments(subject, TEAM, include_global=True)
        scoped_only = await store.load_assignments(subject, TEAM, include_global=False)

        assert global_only.permission_ids(None) == [permission.id]
        assert global_only.roles == ()
        assert scoped.role_ids(TEAM) == [role.id]
        assert scoped.permission_ids(None) == [permission.id]
        assert scoped_only.permissions == ()

    async def test_replace_role_subjects_keeps_other_guards(self, store: GrantStore) -> None:
        subject = SubjectRef.parse("User#1")
        web_a = await store.create(Role, "a", "web")
        web_b = await store.create(Role, "b", "web")
        api_role = await store.create(Role, "a", "api")
        await store.add_role_subject(web_a.id, subject)
        await store.add_role_subject(api_role.id, subject)

        await store.replace_role_subjects(subject, [web_b.id], "web")

        rows = await store.load_assignments(subject)
        assert set(rows.role_ids(None)) == {web_b.id, api_role.id}

    async def test_replace_with_nothing_clears_scope(self, store: GrantStore) -> None:
        subject = SubjectRef.parse("User#1")
        permission = await store.create(Permission, "a", "web")
        await store.add_permission_subject(permission.id, subject)
        await store.add_permission_subject(permission.id, subject, TEAM)

        await store.replace_permission_subjects(subject, [], "web")

        rows = await store.load_assignments(subject, TEAM)
        assert rows.permission_ids(None) == []
        assert rows.permission_ids(TEAM) == [permission.id]

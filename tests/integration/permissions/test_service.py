"""Integration tests for the engine facade's management operations."""

from collections.abc import Callable

import pytest

from warden.core.audit import MemoryAuditLogger
from warden.core.errors import (
    FeatureDisabledError,
    GuardMismatchError,
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    RoleNotFoundError,
)
from warden.permissions import ContextRef, RoleDeclaration, SubjectRef, Warden


pytestmark = pytest.mark.integration


class TestEntityManagement:
    """Tests for create, find, find-or-create and delete."""

    async def test_create_uses_default_guard(self, warden: Warden) -> None:
        permission = await warden.create_permission("a", label="A", description="The A")

        assert permission.guard == "web"
        assert (permission.label, permission.description) == ("A", "The A")

    async def test_create_duplicate_fails(self, warden: Warden) -> None:
        await warden.create_permission("a")

        with pytest.raises(PermissionAlreadyExistsError):
            await warden.create_permission("a")

    async def test_find_missing_fails(self, warden: Warden) -> None:
        with pytest.raises(PermissionNotFoundError) as exc:
            await warden.find_permission("missing", guard="api")

        assert exc.value.guard == "api"

    async def test_find_or_create(self, warden: Warden) -> None:
        first = await warden.find_or_create_role("editor")
        second = await warden.find_or_create_role("editor")

        assert first.id == second.id
        assert len(await warden.all_roles()) == 1

    async def test_scoped_entity_is_preferred(
        self, make_warden: Callable[..., Warden]
    ) -> None:
        warden = make_warden(context_enabled=True)
        team = ContextRef(type="Team", id="1")
        global_role = await warden.create_role("member")
        team_role = await warden.create_role("member", context=team)

        assert (await warden.find_role("member", context=team)).id == team_role.id
        assert (await warden.find_role("member")).id == global_role.id

    async def test_delete_role_revokes_assignments(self, warden: Warden, user: SubjectRef) -> None:
        await warden.create_permission("a")
        await warden.create_role("r")
        await warden.grant_permission_to_role("r", "a")
        await warden.assign_role(user, "r")

        await warden.delete_role("r")

        assert not await warden.can(user, "a")
        assert await warden.role_names(user) == []
        with pytest.raises(RoleNotFoundError):
            await warden.find_role("r")

    async def test_delete_permission_revokes_grants(self, warden: Warden, user: SubjectRef) -> None:
        await warden.create_permission("a")
        await warden.grant(user, "a")

        await warden.delete_permission("a")

        assert not await warden.can(user, "a")
        assert await warden.permission_names(user) == []


class TestAssignmentErrors:
    """Tests for rejected assignments."""

    async def test_grant_unknown_permission(self, warden: Warden, user: SubjectRef) -> None:
        with pytest.raises(PermissionNotFoundError):
            await warden.grant(user, "missing")

    async def test_assign_role_of_other_guard(self, warden: Warden, user: SubjectRef) -> None:
        api_role = await warden.create_role("editor", guard="api")

        with pytest.raises(GuardMismatchError) as exc:
            await warden.assign_role(user, api_role)

        assert exc.value.expected == "web"
        assert exc.value.actual == "api"

    async def test_grant_permission_of_other_guard_to_role(self, warden: Warden) -> None:
        await warden.create_role("editor")
        api_permission = await warden.create_permission("a", guard="api")

        with pytest.raises(GuardMismatchError):
            await warden.grant_permission_to_role("editor", api_permission)

    async def test_role_lookup_by_name_is_guard_scoped(self, warden: Warden, user: SubjectRef) -> None:
        await warden.create_role("editor", guard="api")

        with pytest.raises(RoleNotFoundError):
            await warden.assign_role(user, "editor")

    async def test_failed_batch_writes_nothing(self, warden: Warden, user: SubjectRef) -> None:
        await warden.create_permission("a")

        with pytest.raises(PermissionNotFoundError):
            await warden.grant(user, ["a", "missing"])

        assert not await warden.can(user, "a")


class TestFeatureSwitches:
    """Capability operations require the capability feature."""

    async def test_capabilities_disabled(self, warden: Warden, user: SubjectRef) -> None:
        with pytest.raises(FeatureDisabledError) as exc:
            await warden.create_capability("reporting")

        assert exc.value.feature == "capabilities"

    async def test_direct_assignment_disabled(
        self, make_warden: Callable[..., Warden], user: SubjectRef
    ) -> None:
        warden = make_warden(capabilities_enabled=True)
        await warden.create_capability("reporting")

        with pytest.raises(FeatureDisabledError) as exc:
            await warden.assign_capability(user, "reporting")

        assert exc.value.feature == "capabilities.direct_assignment"


class TestSyncOperations:
    """Tests for exact-set replacement."""

    async def test_sync_roles(self, warden: Warden, user: SubjectRef) -> None:
        for name in ("a", "b", "c"):
            await warden.create_role(name)
        await warden.assign_role(user, ["a", "b"])

        await warden.sync_roles(user, ["b", "c"])

        assert sorted(await warden.role_names(user)) == ["b", "c"]

    async def test_sync_permissions(self, warden: Warden, user: SubjectRef) -> None:
        for name in ("a", "b"):
            await warden.create_permission(name)
        await warden.grant(user, "a")

        await warden.sync_permissions(user, ["b"])

        assert await warden.permission_names(user) == ["b"]

    async def test_sync_role_permissions(self, warden: Warden, user: SubjectRef) -> None:
        for name in ("a", "b"):
            await warden.create_permission(name)
        await warden.create_role("r")
        await warden.grant_permission_to_role("r", ["a"])
        await warden.assign_role(user, "r")

        await warden.sync_role_permissions("r", ["b"])

        assert await warden.permission_names(user) == ["b"]


class TestRoleChecks:
    """Tests for any, all and exact role checks."""

    @pytest.fixture
    async def editor(self, warden: Warden, user: SubjectRef) -> SubjectRef:
        for name in ("viewer", "editor", "admin"):
            await warden.create_role(name)
        await warden.assign_role(user, ["viewer", "editor"])
        return user

    async def test_has_role_any(self, warden: Warden, editor: SubjectRef) -> None:
        assert await warden.has_role(editor, ["admin", "editor"])
        assert not await warden.has_role(editor, "admin")

    async def test_has_all_roles(self, warden: Warden, editor: SubjectRef) -> None:
        assert await warden.has_all_roles(editor, ["viewer", "editor"])
        assert await warden.has_all_roles(editor, ["editor"])
        assert not await warden.has_all_roles(editor, ["editor", "admin"])

    async def test_has_exact_roles(self, warden: Warden, editor: SubjectRef) -> None:
        assert await warden.has_exact_roles(editor, ["editor", "viewer"])
        assert not await warden.has_exact_roles(editor, ["editor"])
        assert not await warden.has_exact_roles(editor, ["viewer", "editor", "admin"])

    async def test_exact_roles_of_subject_without_roles(
        self, warden: Warden, user: SubjectRef
    ) -> None:
        assert await warden.has_exact_roles(user, [])
        assert await warden.has_all_roles(user, [])
        assert not await warden.has_exact_roles(user, ["viewer"])

    async def test_checks_follow_context(self, make_warden: Callable[..., Warden]) -> None:
        warden = make_warden(context_enabled=True, context_global_fallback=False)
        team = ContextRef(type="Team", id="7")
        user = SubjectRef(type="User", id="1")
        await warden.create_role("editor")
        await warden.create_role("viewer")
        await warden.assign_role(user, "editor", team)
        await warden.assign_role(user, "viewer")

        assert await warden.has_exact_roles(user, ["editor"], team)
        assert await warden.has_exact_roles(user, ["viewer"])
        assert not await warden.has_all_roles(user, ["editor", "viewer"], team)


class TestAuditEvents:
    """Tests for audit event emission."""

    async def test_events_off_by_default(
        self, warden: Warden, user: SubjectRef, audit: MemoryAuditLogger
    ) -> None:
        await warden.create_role("r")
        await warden.assign_role(user, "r")

        assert audit.events == []

    async def test_assignment_events(
        self, make_warden: Callable[..., Warden], user: SubjectRef, audit: MemoryAuditLogger
    ) -> None:
        warden = make_warden(events_enabled=True)
        await warden.create_permission("a")
        await warden.create_role("r")

        await warden.assign_role(user, "r")
        await warden.grant(user, "a")
        await warden.revoke(user, "a")
        await warden.remove_role(user, "r")

        assert audit.names() == [
            "role_assigned",
            "permission_granted",
            "permission_revoked",
            "role_removed",
        ]
        assert audit.events[0][1] == {"subject": str(user), "role": "r", "context": None}

    async def test_check_event(
        self, make_warden: Callable[..., Warden], user: SubjectRef, audit: MemoryAuditLogger
    ) -> None:
        warden = make_warden(events_enabled=True)

        await warden.can(user, "a")

        [(event, fields)] = audit.events
        assert event == "permission_checked"
        assert fields["granted"] is False
        assert fields["guard"] == "web"


class TestHierarchyHelpers:
    """Tests for the hierarchy helpers exposed on the engine."""

    def test_inheritance_chain(self, warden: Warden) -> None:
        roles = [
            RoleDeclaration(name="admin", inherits_from=["editor"]),
            RoleDeclaration(name="editor"),
        ]

        assert warden.inheritance_chain("admin", roles) == ["editor", "admin"]
        assert warden.resolve_role_hierarchy(roles)[0].inherited_permissions == []

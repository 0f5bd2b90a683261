"""Unit tests for role hierarchy resolution."""

import pytest

from warden.core.errors import CircularRoleInheritanceError
from warden.permissions.hierarchy import RoleHierarchyResolver
from warden.permissions.schemas import RoleDeclaration


pytestmark = pytest.mark.unit


def role(name: str, permissions: list[str] | None = None, parents: list[str] | None = None):
    return RoleDeclaration(name=name, permissions=permissions or [], inherits_from=parents or [])


class TestResolve:
    """Tests for RoleHierarchyResolver.resolve."""

    @pytest.fixture
    def resolver(self) -> RoleHierarchyResolver:
        return RoleHierarchyResolver()

    def test_role_without_parents_inherits_nothing(self, resolver: RoleHierarchyResolver) -> None:
        [viewer] = resolver.resolve([role("viewer", ["article:view"])])

        assert viewer.inherited_permissions == []
        assert viewer.all_permissions() == ["article:view"]

    def test_chain_unions_every_ancestor(self, resolver: RoleHierarchyResolver) -> None:
        roles = [
            role("admin", ["user:manage"], ["editor"]),
            role("editor", ["article:edit"], ["viewer"]),
            role("viewer", ["article:view"]),
        ]

        resolved = {r.name: r for r in resolver.resolve(roles)}

        assert set(resolved["admin"].inherited_permissions) == {"article:edit", "article:view"}
        assert set(resolved["admin"].all_permissions()) == {
            "user:manage",
            "article:edit",
            "article:view",
        }
        assert resolved["editor"].inherited_permissions == ["article:view"]

    def test_output_preserves_input_order(self, resolver: RoleHierarchyResolver) -> None:
        roles = [role("b", parents=["a"]), role("a"), role("c")]

        assert [r.name for r in resolver.resolve(roles)] == ["b", "a", "c"]

    def test_diamond_is_deduplicated(self, resolver: RoleHierarchyResolver) -> None:
        roles = [
            role("base", ["shared"]),
            role("left", ["left"], ["base"]),
            role("right", ["right"], ["base"]),
            role("top", [], ["left", "right"]),
        ]

        top = next(r for r in resolver.resolve(roles) if r.name == "top")

        assert sorted(top.inherited_permissions) == ["left", "right", "shared"]

    def test_unknown_parent_is_skipped(self, resolver: RoleHierarchyResolver) -> None:
        [editor] = resolver.resolve([role("editor", ["article:edit"], ["external"])])

        assert editor.inherited_permissions == []

    def test_input_is_not_mutated(self, resolver: RoleHierarchyResolver) -> None:
        editor = role("editor", [], ["viewer"])
        resolver.resolve([editor, role("viewer", ["article:view"])])

        assert editor.inherited_permissions == []

    def test_two_role_cycle_fails(self, resolver: RoleHierarchyResolver) -> None:
        roles = [role("admin", parents=["editor"]), role("editor", parents=["admin"])]

        with pytest.raises(CircularRoleInheritanceError) as exc:
            resolver.resolve(roles)

        assert exc.value.role in {"admin", "editor"}
        assert exc.value.error_code == "circular_role_inheritance"

    def test_self_inheritance_fails(self, resolver: RoleHierarchyResolver) -> None:
        with pytest.raises(CircularRoleInheritanceError):
            resolver.resolve([role("loop", parents=["loop"])])

    def test_cycle_deeper_in_graph_fails_whole_pass(self, resolver: RoleHierarchyResolver) -> None:
        roles = [
            role("fine", ["x"]),
            role("a", parents=["b"]),
            role("b", parents=["c"]),
            role("c", parents=["a"]),
        ]

        with pytest.raises(CircularRoleInheritanceError):
            resolver.resolve(roles)

    def test_resolver_is_reusable_after_cycle(self, resolver: RoleHierarchyResolver) -> None:
        with pytest.raises(CircularRoleInheritanceError):
            resolver.resolve([role("a", parents=["b"]), role("b", parents=["a"])])

        [a, b] = resolver.resolve([role("a", parents=["b"]), role("b", ["p"])])

        assert a.inherited_permissions == ["p"]


class TestInheritanceChain:
    """Tests for RoleHierarchyResolver.inheritance_chain."""

    def test_ancestors_come_first(self) -> None:
        roles = [
            role("admin", parents=["editor"]),
            role("editor", parents=["viewer"]),
            role("viewer"),
        ]

        chain = RoleHierarchyResolver().inheritance_chain("admin", roles)

        assert chain == ["viewer", "editor", "admin"]

    def test_unknown_role_has_empty_chain(self) -> None:
        assert RoleHierarchyResolver().inheritance_chain("ghost", []) == []

    def test_chain_tolerates_cycles(self) -> None:
        roles = [role("a", parents=["b"]), role("b", parents=["a"])]

        assert RoleHierarchyResolver().inheritance_chain("a", roles) == ["b", "a"]

"""Role inheritance resolution.

Computes each declared role's inherited permissions by walking its
``inherits_from`` parents depth-first, memoizing every role resolved and
failing on cycles.
"""

from collections.abc import Sequence

import structlog

from warden.core.errors import CircularRoleInheritanceError
from warden.permissions.schemas import RoleDeclaration


logger = structlog.get_logger()


class RoleHierarchyResolver:
    """Resolves inherited permissions for a set of role declarations.

    Parents missing from the declaration set are skipped, which allows
    referring to roles that are declared and synced elsewhere.
    """

    def __init__(self) -> None:
        self._resolved: dict[str, list[str]] = {}
        self._resolving: set[str] = set()

    def resolve(self, roles: Sequence[RoleDeclaration]) -> list[RoleDeclaration]:
        """Resolve inherited permissions for all roles.

        Args:
            roles: Declarations to resolve

        Returns:
            Copies of ``roles``, in the same order, with
            ``inherited_permissions`` filled in

        Raises:
            CircularRoleInheritanceError: If any inheritance cycle exists.
                No result is produced for any role in that case.
        """
        self._resolved = {}
        self._resolving = set()
        role_map = {role.name: role for role in roles}

        resolved = [
            role.model_copy(
                update={"inherited_permissions": self._inherited(role, role_map)}
            )
            for role in roles
        ]
        logger.debug("role_hierarchy_resolved", roles=len(resolved))
        return resolved

    def inheritance_chain(
        self,
        role: RoleDeclaration | str,
        roles: Sequence[RoleDeclaration],
    ) -> list[str]:
        """Get the inheritance chain of a role, ancestors first.

        The role itself is the last element. Cycles are tolerated here
        since this is only used for display.

        Args:
            role: Role declaration or name
            roles: All known declarations

        Returns:
            Role names in inheritance order
        """
        role_map = {r.name: r for r in roles}
        start = role_map.get(role) if isinstance(role, str) else role
        if start is None:
            return []

        chain: list[str] = []
        visited: set[str] = set()
        self._build_chain(start, role_map, chain, visited)
        return chain

    def _inherited(
        self,
        role: RoleDeclaration,
        role_map: dict[str, RoleDeclaration],
    ) -> list[str]:
        if role.name in self._resolved:
            return self._resolved[role.name]

        if not role.inherits_from:
            self._resolved[role.name] = []
            return []

        if role.name in self._resolving:
            raise CircularRoleInheritanceError(role.name)

        self._resolving.add(role.name)

        inherited: list[str] = []
        for parent_name in role.inherits_from:
            parent = role_map.get(parent_name)
            if parent is None:
                logger.debug("role_parent_missing", role=role.name, parent=parent_name)
                continue
            inherited.extend(parent.permissions)
            inherited.extend(self._inherited(parent, role_map))

        self._resolving.discard(role.name)

        result = list(dict.fromkeys(inherited))
        self._resolved[role.name] = result
        return result

    def _build_chain(
        self,
        role: RoleDeclaration,
        role_map: dict[str, RoleDeclaration],
        chain: list[str],
        visited: set[str],
    ) -> None:
        if role.name in visited:
            return
        visited.add(role.name)

        for parent_name in role.inherits_from:
            parent = role_map.get(parent_name)
            if parent is not None:
                self._build_chain(parent, role_map, chain, visited)

        if role.name not in chain:
            chain.append(role.name)

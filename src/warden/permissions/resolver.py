"""Permission resolution.

Decides whether a subject holds a permission by evaluating, in order and
stopping at the first success:

1. Direct grant of the permission to the subject
2. A role of the subject granting the permission
3. A capability of one of those roles granting it (capabilities enabled)
4. A capability assigned directly to the subject (direct assignment enabled)

A granted name satisfies the check when it equals the requested name or,
with wildcards enabled, is a pattern matching it. With a context, the
four paths run against rows in that context first, then (global fallback
on) against global rows. Without a context only global rows count.
Direct capability rows are always global.

Entity collections come from the registrar. The subject's own rows are
read from the grant store per call unless preloaded assignments are
passed in, so a call costs one query set plus work proportional to the
subject's roles and capabilities.
"""

from collections.abc import Iterator

from warden.config import Settings
from warden.permissions.registrar import PermissionRegistrar, RegistryView
from warden.permissions.schemas import (
    CapabilityRecord,
    ContextRef,
    GrantMatch,
    GrantPath,
    PermissionRecord,
    RoleRecord,
    SubjectAssignments,
)
from warden.permissions.wildcard import WildcardMatcher


class PermissionResolver:
    """Evaluates permission, role and capability checks for one subject's rows."""

    def __init__(
        self,
        registrar: PermissionRegistrar,
        matcher: WildcardMatcher,
        settings: Settings,
    ) -> None:
        self.registrar = registrar
        self.matcher = matcher
        self.settings = settings

    # ============================================================
    # Scopes
    # ============================================================

    def effective_context(self, context: ContextRef | None) -> ContextRef | None:
        """The context a check really runs in; ignored when contexts are disabled."""
        return context if self.settings.context_enabled else None

    def scopes(self, context: ContextRef | None) -> list[ContextRef | None]:
        """Scopes to evaluate, most specific first."""
        context = self.effective_context(context)
        if context is None:
            return [None]
        if self.settings.context_global_fallback:
            return [context, None]
        return [context]

    def satisfies(self, granted: str, requested: str) -> bool:
        """Whether a granted permission name covers the requested one."""
        if granted == requested:
            return True
        return (
            self.settings.wildcards_enabled
            and self.matcher.is_wildcard(granted)
            and self.matcher.matches(granted, requested)
        )

    # ============================================================
    # Permission checks
    # ============================================================

    async def find_grant(
        self,
        assignments: SubjectAssignments,
        permission: str,
        guard: str,
        context: ContextRef | None = None,
    ) -> GrantMatch | None:
        """Find the first grant that allows ``permission``.

        Args:
            assignments: The subject's association rows
            permission: Requested permission name
            guard: Guard the check runs under
            context: Optional scoping context

        Returns:
            Description of the matching grant, or None when denied
        """
        view = await self.registrar.view()
        for scope in self.scopes(context):
            for path, record, role, capability in self._grants(view, assignments, guard, scope):
                if self.satisfies(record.name, permission):
                    return GrantMatch(
                        path=path,
                        requested=permission,
                        permission=record.name,
                        guard=guard,
                        context=scope,
                        role=role.name if role else None,
                        capability=capability.name if capability else None,
                    )
        return None

    async def granted_permissions(
        self,
        assignments: SubjectAssignments,
        guard: str,
        context: ContextRef | None = None,
    ) -> list[PermissionRecord]:
        """Materialize every permission the subject holds.

        Wildcard grants are expanded against the guard's permissions when
        wildcards are enabled; the pattern records themselves are kept.

        Returns:
            Permission records sorted by name, without duplicates
        """
        view = await self.registrar.view()
        granted: dict = {}
        for scope in self.scopes(context):
            for _, record, _, _ in self._grants(view, assignments, guard, scope):
                granted.setdefault(record.id, record)

        if self.settings.wildcards_enabled:
            candidates = view.permissions.for_guard(guard)
            for record in list(granted.values()):
                if not self.matcher.is_wildcard(record.name):
                    continue
                for candidate in candidates:
                    if self.matcher.matches(record.name, candidate.name):
                        granted.setdefault(candidate.id, candidate)

        return sorted(granted.values(), key=lambda r: r.name)

    # ============================================================
    # Role and capability checks
    # ============================================================

    async def roles(
        self,
        assignments: SubjectAssignments,
        guard: str,
        context: ContextRef | None = None,
    ) -> list[RoleRecord]:
        """Roles the subject holds for ``guard`` in the effective scopes."""
        view = await self.registrar.view()
        found: dict = {}
        for scope in self.scopes(context):
            for role in self._roles(view, assignments, guard, scope):
                found.setdefault(role.id, role)
        return list(found.values())

    async def capabilities(
        self,
        assignments: SubjectAssignments,
        guard: str,
        context: ContextRef | None = None,
    ) -> list[CapabilityRecord]:
        """Capabilities the subject holds through roles or direct assignment."""
        if not self.settings.capabilities_enabled:
            return []
        view = await self.registrar.view()
        found: dict = {}
        for scope in self.scopes(context):
            for role in self._roles(view, assignments, guard, scope):
                for capability in self._capabilities_of(view, role.capability_ids, guard):
                    found.setdefault(capability.id, capability)
        if self.settings.capabilities_direct_assignment:
            for capability in self._capabilities_of(view, assignments.capability_ids, guard):
                found.setdefault(capability.id, capability)
        return list(found.values())

    # ============================================================
    # Path enumeration
    # ============================================================

    def _grants(
        self,
        view: RegistryView,
        assignments: SubjectAssignments,
        guard: str,
        scope: ContextRef | None,
    ) -> Iterator[
        tuple[GrantPath, PermissionRecord, RoleRecord | None, CapabilityRecord | None]
    ]:
        """Yield every granted permission in ``scope`` in decision order."""
        for permission in self._permissions_of(view, assignments.permission_ids(scope), guard):
            yield GrantPath.DIRECT, permission, None, None

        roles = list(self._roles(view, assignments, guard, scope))
        for role in roles:
            for permission in self._permissions_of(view, role.permission_ids, guard):
                yield GrantPath.ROLE, permission, role, None

        if not self.settings.capabilities_enabled:
            return

        for role in roles:
            for capability in self._capabilities_of(view, role.capability_ids, guard):
                for permission in self._permissions_of(view, capability.permission_ids, guard):
                    yield GrantPath.ROLE_CAPABILITY, permission, role, capability

        if self.settings.capabilities_direct_assignment and scope is None:
            for capability in self._capabilities_of(view, assignments.capability_ids, guard):
                for permission in self._permissions_of(view, capability.permission_ids, guard):
                    yield GrantPath.CAPABILITY, permission, None, capability

    @staticmethod
    def _roles(
        view: RegistryView,
        assignments: SubjectAssignments,
        guard: str,
        scope: ContextRef | None,
    ) -> Iterator[RoleRecord]:
        for role_id in assignments.role_ids(scope):
            role = view.roles.by_id.get(role_id)
            if role is not None and role.guard == guard:
                yield role

    @staticmethod
    def _permissions_of(view: RegistryView, ids, guard: str) -> Iterator[PermissionRecord]:
        for permission_id in ids:
            permission = view.permissions.by_id.get(permission_id)
            if permission is not None and permission.guard == guard:
                yield permission

    @staticmethod
    def _capabilities_of(view: RegistryView, ids, guard: str) -> Iterator[CapabilityRecord]:
        for capability_id in ids:
            capability = view.capabilities.by_id.get(capability_id)
            if capability is not None and capability.guard == guard:
                yield capability

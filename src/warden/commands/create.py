"""Commands: warden create-permission / create-role / create-capability."""

import typer

from warden.commands import console, open_warden, run
from warden.core.errors import (
    CapabilityNotFoundError,
    PermissionAlreadyExistsError,
    RoleNotFoundError,
)
from warden.permissions.schemas import CapabilityRecord, RoleRecord
from warden.permissions.service import Warden


def _split(names: str | None) -> list[str]:
    """Parse a comma-separated option into names."""
    if not names:
        return []
    return [name.strip() for name in names.split(",") if name.strip()]


async def _missing_permission_count(
    warden: Warden, holder: RoleRecord | CapabilityRecord, names: list[str]
) -> int:
    """Find or create the named permissions; count those the holder lacks."""
    count = 0
    for name in dict.fromkeys(names):
        permission = await warden.find_or_create_permission(name, guard=holder.guard)
        if permission.id not in holder.permission_ids:
            count += 1
    return count


def _report(kind: str, name: str, guard: str, created: bool) -> None:
    if created:
        console.print(f"[green]✓[/green] {kind} '{name}' created for guard '{guard}'.")
    else:
        console.print(f"[yellow]![/yellow] {kind} '{name}' already exists for guard '{guard}'.")


def create_permission(
    name: str = typer.Argument(..., help="Permission name (e.g. article:view)"),
    guard: str | None = typer.Option(None, "--guard", "-g", help="Guard to create it for"),
) -> None:
    """Create a permission. An existing permission is left as it is."""

    async def _create() -> tuple[str, bool]:
        async with open_warden() as warden:
            try:
                permission = await warden.create_permission(name, guard=guard)
            except PermissionAlreadyExistsError:
                return guard or warden.settings.default_guard, False
            return permission.guard, True

    resolved_guard, created = run(_create())
    _report("Permission", name, resolved_guard, created)


def create_role(
    name: str = typer.Argument(..., help="Role name (e.g. editor)"),
    guard: str | None = typer.Option(None, "--guard", "-g", help="Guard to create it for"),
    permissions: str | None = typer.Option(
        None, "--permissions", "-p", help="Comma-separated permissions to grant"
    ),
) -> None:
    """Create a role, optionally granting permissions to it.

    Missing permissions are created. Running it again for an existing
    role only adds the permissions it does not hold yet.
    """
    names = _split(permissions)

    async def _create() -> tuple[RoleRecord, bool, int]:
        async with open_warden() as warden:
            try:
                role, created = await warden.find_role(name, guard), False
            except RoleNotFoundError:
                role, created = await warden.create_role(name, guard=guard), True
            granted = await _missing_permission_count(warden, role, names)
            if names:
                await warden.grant_permission_to_role(role.name, names, guard=role.guard)
            return role, created, granted

    role, created, granted = run(_create())
    _report("Role", role.name, role.guard, created)
    if granted:
        console.print(f"[green]✓[/green] Granted {granted} permission(s) to role '{role.name}'.")


def create_capability(
    name: str = typer.Argument(..., help="Capability name (e.g. manage-posts)"),
    guard: str | None = typer.Option(None, "--guard", "-g", help="Guard to create it for"),
    permissions: str | None = typer.Option(
        None, "--permissions", "-p", help="Comma-separated permissions to include"
    ),
) -> None:
    """Create a capability, optionally bundling permissions into it.

    Requires capabilities to be enabled.
    """
    names = _split(permissions)

    async def _create() -> tuple[CapabilityRecord, bool, int]:
        async with open_warden() as warden:
            try:
                capability, created = await warden.find_capability(name, guard), False
            except CapabilityNotFoundError:
                capability, created = await warden.create_capability(name, guard=guard), True
            added = await _missing_permission_count(warden, capability, names)
            if names:
                await warden.grant_permission_to_capability(
                    capability.name, names, guard=capability.guard
                )
            return capability, created, added

    capability, created, added = run(_create())
    _report("Capability", capability.name, capability.guard, created)
    if added:
        console.print(
            f"[green]✓[/green] Added {added} permission(s) to capability '{capability.name}'."
        )

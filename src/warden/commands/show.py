"""Command: warden show - List roles, capabilities and permissions."""

import typer
from rich.table import Table

from warden.commands import console, open_warden, run
from warden.permissions.registrar import RegistryView


def show(
    guard: str | None = typer.Option(None, "--guard", "-g", help="Only show one guard"),
) -> None:
    """Show what is in the grant store."""

    async def _load() -> RegistryView:
        async with open_warden() as warden:
            return await warden.registrar.view()

    view = run(_load())
    permissions = view.permissions.for_guard(guard)
    roles = view.roles.for_guard(guard)
    capabilities = view.capabilities.for_guard(guard)

    if not (permissions or roles or capabilities):
        console.print("[yellow]Nothing defined yet.[/yellow]")
        return

    def names(ids: tuple) -> str:
        return ", ".join(
            view.permissions.by_id[i].name for i in ids if i in view.permissions.by_id
        )

    table = Table(title="Roles", show_header=True)
    table.add_column("Role", style="cyan", no_wrap=True)
    table.add_column("Guard", style="green", no_wrap=True)
    table.add_column("Context", no_wrap=True)
    table.add_column("Permissions")
    table.add_column("Capabilities")
    for role in roles:
        table.add_row(
            role.name,
            role.guard,
            str(role.context or ""),
            names(role.permission_ids),
            ", ".join(
                view.capabilities.by_id[i].name
                for i in role.capability_ids
                if i in view.capabilities.by_id
            ),
        )
    console.print()
    console.print(table)

    if capabilities:
        table = Table(title="Capabilities", show_header=True)
        table.add_column("Capability", style="cyan", no_wrap=True)
        table.add_column("Guard", style="green", no_wrap=True)
        table.add_column("Permissions")
        for capability in capabilities:
            table.add_row(capability.name, capability.guard, names(capability.permission_ids))
        console.print()
        console.print(table)

    table = Table(title="Permissions", show_header=True)
    table.add_column("Permission", style="cyan", no_wrap=True)
    table.add_column("Guard", style="green", no_wrap=True)
    table.add_column("Label")
    for permission in permissions:
        table.add_row(permission.name, permission.guard, permission.label or "")
    console.print()
    console.print(table)
    console.print()

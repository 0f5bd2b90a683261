"""Command: warden sync - Sync a declaration file into the grant store."""

from pathlib import Path

import typer
from rich.table import Table

from warden.commands import console, open_warden, run
from warden.permissions.schemas import SyncResult
from warden.permissions.sync import load_declarations


def sync(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML declaration file"),
    guard: str | None = typer.Option(
        None, "--guard", "-g", help="Guard for declarations that name none"
    ),
    seed: bool = typer.Option(
        False, "--seed", help="Also reset permissions of existing roles"
    ),
) -> None:
    """Create and update permissions, capabilities and roles from a file.

    New roles receive their direct and inherited permissions. Existing
    roles keep theirs unless --seed is given.
    """

    async def _sync() -> SyncResult:
        declarations = load_declarations(file)
        async with open_warden() as warden:
            return await warden.sync(declarations, guard=guard, seed=seed)

    result = run(_sync())

    if not result.has_changes():
        console.print("[green]✓[/green] Already in sync.")
        return

    table = Table(title="Sync Result", show_header=True)
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Created", style="green", justify="right")
    table.add_column("Updated", style="yellow", justify="right")
    table.add_row("permissions", str(result.permissions_created), str(result.permissions_updated))
    table.add_row(
        "capabilities", str(result.capabilities_created), str(result.capabilities_updated)
    )
    table.add_row("roles", str(result.roles_created), str(result.roles_updated))

    console.print()
    console.print(table)
    if result.assignments_seeded:
        console.print("[dim]Role permissions were re-seeded.[/dim]")
    console.print(f"\n[green]✓[/green] Synced {result.total()} item(s).")

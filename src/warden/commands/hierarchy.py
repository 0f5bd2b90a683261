"""Command: warden hierarchy - Show resolved role inheritance from a file."""

from pathlib import Path

import typer
from rich.table import Table

from warden.commands import console
from warden.core.errors import CircularRoleInheritanceError, InvalidDeclarationError
from warden.permissions.hierarchy import RoleHierarchyResolver
from warden.permissions.sync import load_declarations


def hierarchy(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML declaration file"),
) -> None:
    """Resolve role inheritance without touching the database."""
    resolver = RoleHierarchyResolver()
    try:
        roles = load_declarations(file).roles
        resolved = resolver.resolve(roles)
    except (CircularRoleInheritanceError, InvalidDeclarationError) as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    if not resolved:
        console.print("[yellow]No roles declared.[/yellow]")
        return

    table = Table(title="Role Hierarchy", show_header=True)
    table.add_column("Role", style="cyan", no_wrap=True)
    table.add_column("Chain")
    table.add_column("Direct")
    table.add_column("Inherited", style="green")

    for role in resolved:
        table.add_row(
            role.name,
            " → ".join(resolver.inheritance_chain(role, roles)),
            ", ".join(role.permissions),
            ", ".join(role.inherited_permissions),
        )

    console.print()
    console.print(table)
    console.print()

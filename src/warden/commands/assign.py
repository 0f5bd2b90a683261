"""Commands: warden assign-role / assign-capability."""

import typer

from warden.commands import console, open_warden, run
from warden.permissions.schemas import ContextRef, SubjectRef


def assign_role(
    subject: str = typer.Argument(..., help="Subject as Type:id (e.g. User:1)"),
    role: str = typer.Argument(..., help="Role name"),
    guard: str | None = typer.Option(None, "--guard", "-g", help="Subject guard"),
    context: str | None = typer.Option(
        None, "--context", "-c", help="Context as Type:id (e.g. Team:7)"
    ),
) -> None:
    """Assign a role to a subject. The role must exist."""
    try:
        ref = SubjectRef.parse(subject, guard=guard)
        ctx = ContextRef.parse(context) if context else None
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    async def _assign() -> bool:
        async with open_warden() as warden:
            if role in await warden.role_names(ref, ctx):
                return False
            await warden.assign_role(ref, role, ctx)
            return True

    scope = f" in {ctx}" if ctx else ""
    if run(_assign()):
        console.print(f"[green]✓[/green] Role '{role}' assigned to {ref}{scope}.")
    else:
        console.print(f"[yellow]![/yellow] {ref} already has role '{role}'{scope}.")


def assign_capability(
    role: str = typer.Argument(..., help="Role name"),
    capability: str = typer.Argument(..., help="Capability name"),
    guard: str | None = typer.Option(None, "--guard", "-g", help="Guard of the role"),
) -> None:
    """Attach a capability to a role. Requires capabilities to be enabled."""

    async def _assign() -> bool:
        async with open_warden() as warden:
            record = await warden.find_role(role, guard)
            bundle = await warden.find_capability(capability, record.guard)
            await warden.assign_capability_to_role(record, bundle)
            return bundle.id not in record.capability_ids

    if run(_assign()):
        console.print(f"[green]✓[/green] Capability '{capability}' assigned to role '{role}'.")
    else:
        console.print(f"[yellow]![/yellow] Role '{role}' already has capability '{capability}'.")

"""Command: warden check - Check whether a subject holds a permission."""

import typer

from warden.commands import console, open_warden, run
from warden.permissions.schemas import ContextRef, GrantMatch, SubjectRef


def check(
    subject: str = typer.Argument(..., help="Subject as Type:id (e.g. User:1)"),
    permission: str = typer.Argument(..., help="Permission name"),
    context: str | None = typer.Option(
        None, "--context", "-c", help="Context as Type:id (e.g. Team:7)"
    ),
    guard: str | None = typer.Option(None, "--guard", "-g", help="Subject guard"),
) -> None:
    """Check a permission. Exits 0 when granted and 1 when denied."""
    try:
        ref = SubjectRef.parse(subject, guard=guard)
        ctx = ContextRef.parse(context) if context else None
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    async def _check() -> GrantMatch | None:
        async with open_warden() as warden:
            return await warden.find_grant(ref, permission, ctx)

    match = run(_check())
    scope = f" in {ctx}" if ctx else ""

    if match is None:
        console.print(f"[red]✗[/red] {ref} cannot [bold]{permission}[/bold]{scope}")
        raise typer.Exit(1)

    via = [f"path={match.path.value}"]
    if match.permission != permission:
        via.append(f"pattern={match.permission}")
    if match.role:
        via.append(f"role={match.role}")
    if match.capability:
        via.append(f"capability={match.capability}")
    if match.context is None and ctx is not None:
        via.append("global fallback")
    console.print(
        f"[green]✓[/green] {ref} can [bold]{permission}[/bold]{scope} "
        f"[dim]({', '.join(via)})[/dim]"
    )

"""Main Warden CLI application."""

import typer
from rich.console import Console

from warden import __version__
from warden.commands import assign, cache, check, create, hierarchy, show, sync


console = Console()

app = typer.Typer(
    name="warden",
    help="Check, sync and inspect roles, permissions and capabilities.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register commands
app.command(name="check")(check.check)
app.command(name="sync")(sync.sync)
app.command(name="hierarchy")(hierarchy.hierarchy)
app.command(name="show")(show.show)
app.command(name="clear-cache")(cache.clear_cache)
app.command(name="create-permission")(create.create_permission)
app.command(name="create-role")(create.create_role)
app.command(name="create-capability")(create.create_capability)
app.command(name="assign-role")(assign.assign_role)
app.command(name="assign-capability")(assign.assign_capability)


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit."
    ),
) -> None:
    """Warden CLI - Role, permission and capability resolution."""
    if version:
        console.print(f"[bold cyan]warden[/bold cyan] version {__version__}")
        raise typer.Exit()


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

"""Command: warden clear-cache - Evict the resolution cache."""

from warden.commands import console, open_warden, run


def clear_cache() -> None:
    """Invalidate cached permissions, roles and capabilities."""

    async def _clear() -> None:
        async with open_warden() as warden:
            await warden.invalidate_cache()

    run(_clear())
    console.print("[green]✓[/green] Permission cache cleared.")

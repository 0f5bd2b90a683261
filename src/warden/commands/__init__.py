"""CLI commands and the helpers they share."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

import typer
from rich.console import Console

from warden.config import get_settings
from warden.core.errors import WardenError
from warden.core.logging import configure_logging
from warden.permissions.service import Warden


T = TypeVar("T")

console = Console()


@asynccontextmanager
async def open_warden() -> AsyncGenerator[Warden, None]:
    """Build an engine from the environment and close it afterwards."""
    settings = get_settings()
    configure_logging(settings)
    warden = Warden.from_settings(settings)
    try:
        yield warden
    finally:
        await warden.aclose()


def run(coro: Awaitable[T]) -> T:
    """Run a coroutine, turning engine errors into a clean exit code 2."""
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except WardenError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(2) from e

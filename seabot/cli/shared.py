"""Shared utilities for SeaBot CLI commands."""

import asyncio
from contextlib import asynccontextmanager

from rich.console import Console

console = Console()

TIER_STYLES = {"owner": "bold magenta", "premium": "bold yellow", "standard": "white"}


@asynccontextmanager
async def database():
    """Open the pool for a one-shot CLI command and close it afterwards."""
    from seabot.config import load_settings
    from seabot.db.connection import close_db, init_db

    settings = load_settings()
    await init_db(settings.database_url, min_size=1, max_size=2)
    try:
        yield settings
    finally:
        await close_db()


def run_async(coro):
    """Run a coroutine from a synchronous click callback."""
    return asyncio.run(coro)


def styled_tier(tier: str) -> str:
    style = TIER_STYLES.get(tier, "white")
    return f"[{style}]{tier}[/{style}]"

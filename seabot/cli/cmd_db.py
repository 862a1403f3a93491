"""Database management commands."""

import click

from . import cli
from .shared import console, database, run_async


@cli.group()
def db():
    """Database management commands."""
    pass


@db.command("init")
def db_init():
    """Initialize database schema."""
    async def _init():
        from seabot.db.connection import apply_schema

        async with database():
            await apply_schema()
        console.print("[green]✓ Database schema initialized[/green]")

    run_async(_init())


@db.command("reset")
@click.confirmation_option(prompt="This will DELETE ALL DATA. Are you sure?")
def db_reset():
    """Reset database (DROP ALL + re-init)."""
    async def _reset():
        from seabot.db.connection import apply_schema, get_connection

        async with database():
            async with get_connection() as conn:
                await conn.execute("""
                    DROP TABLE IF EXISTS stats CASCADE;
                    DROP TABLE IF EXISTS commands CASCADE;
                    DROP TABLE IF EXISTS users CASCADE;
                """)
            console.print("[yellow]Tables dropped.[/yellow]")
            await apply_schema()
        console.print("[green]✓ Database re-initialized[/green]")

    run_async(_reset())

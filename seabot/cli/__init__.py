"""SeaBot CLI: command line interface."""

import click
from seabot import __version__
from .shared import console


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="seabot")
@click.pass_context
def cli(ctx):
    """SeaBot: WhatsApp command bot"""
    if ctx.invoked_subcommand is None:
        _show_help()


def _show_help():
    """Show all available commands grouped by category."""
    console.print(f"[bold]SeaBot v{__version__}[/bold]: WhatsApp command bot\n")

    groups = {
        "Run": [
            ("start", "Start the bot (WhatsApp bridge via wacli)"),
            ("dashboard", "Serve the admin dashboard API"),
            ("status", "Show bot and database status"),
        ],
        "Data": [
            ("db init", "Initialize database schema"),
            ("db reset", "Reset database (DROP ALL + re-init)"),
            ("user list", "List users"),
            ("user show", "Show one user"),
            ("user tier", "Change a user's tier"),
            ("user link", "Link a secondary JID to a user"),
            ("user delete", "Delete a user"),
            ("limits reset", "Reset daily limits for all standard users"),
        ],
    }

    for category, commands in groups.items():
        console.print(f"  [bold cyan]{category}[/bold cyan]")
        for name, desc in commands:
            console.print(f"    [bold]seabot {name:14s}[/bold] {desc}")
        console.print()

    console.print("[dim]Run 'seabot <command> --help' for details on a specific command.[/dim]")


# Import all command modules (registers commands onto cli group)
from . import cmd_start  # noqa: E402, F401
from . import cmd_status  # noqa: E402, F401
from . import cmd_db  # noqa: E402, F401
from . import cmd_user  # noqa: E402, F401


@cli.command(name="help", hidden=True)
def help_cmd():
    """Show all available commands."""
    _show_help()

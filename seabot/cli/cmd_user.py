"""User and usage-limit management commands."""

import click
from rich.table import Table

from . import cli
from .shared import console, database, run_async, styled_tier

TIER_CHOICES = ["owner", "premium", "standard"]


async def _find(identifier: str):
    from seabot.db import models
    from seabot.identity import normalize_jid

    user = await models.find_user(normalize_jid(identifier))
    if user is None:
        console.print(f"[red]User not found: {identifier}[/red]")
    return user


@cli.group()
def user():
    """Manage bot users."""
    pass


@user.command("list")
@click.option("--tier", type=click.Choice(TIER_CHOICES), default=None, help="Only this tier")
@click.option("--limit", default=20, show_default=True, help="Max users to show")
def user_list(tier, limit):
    """List users, most recently active first."""
    async def _list():
        from seabot.db import models
        from seabot.db.models import Tier

        async with database():
            tier_filter = Tier(tier) if tier else None
            users = await models.list_users(limit=limit, tier=tier_filter)
            total = await models.count_users(tier_filter)

        if not users:
            console.print("[yellow]No users.[/yellow]")
            return

        table = Table(title=f"Users ({len(users)} of {total})")
        table.add_column("Primary ID")
        table.add_column("Name")
        table.add_column("Tier")
        table.add_column("Limit", justify="right")
        table.add_column("Balance", justify="right")
        table.add_column("Last command")
        for u in users:
            limit_cell = "∞" if u.is_unlimited else f"{u.limit_used}/{u.daily_limit}"
            last = u.last_command_at.strftime("%Y-%m-%d %H:%M") if u.last_command_at else "[dim]never[/dim]"
            table.add_row(u.primary_id, u.display_name, styled_tier(u.tier.value), limit_cell, str(u.balance), last)
        console.print(table)

    run_async(_list())


@user.command("show")
@click.argument("identifier")
def user_show(identifier):
    """Show one user by primary or alternate JID."""
    async def _show():
        async with database():
            u = await _find(identifier)
        if u is None:
            return

        table = Table(show_header=False, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")
        table.add_row("ID", str(u.id))
        table.add_row("Primary ID", u.primary_id)
        table.add_row("Alternate IDs", "\n".join(u.alternate_ids) or "[dim]none[/dim]")
        table.add_row("Name", u.display_name)
        table.add_row("Tier", styled_tier(u.tier.value))
        table.add_row("Limit used", "∞" if u.is_unlimited else f"{u.limit_used}/{u.daily_limit}")
        table.add_row("Last reset", u.last_limit_reset.strftime("%Y-%m-%d %H:%M"))
        table.add_row("Balance", str(u.balance))
        table.add_row("Bonus credits", str(u.bonus_credits))
        table.add_row("Member since", u.member_since.strftime("%Y-%m-%d"))
        console.print(table)

    run_async(_show())


@user.command("tier")
@click.argument("identifier")
@click.argument("tier", type=click.Choice(TIER_CHOICES))
def user_tier(identifier, tier):
    """Change a user's tier."""
    async def _tier():
        from seabot.db import models
        from seabot.db.models import Tier

        async with database():
            u = await _find(identifier)
            if u is None:
                return
            await models.update_user(u.id, tier=Tier(tier))
        console.print(f"[green]✓ {u.display_name} ({u.primary_id}) is now {tier}[/green]")

    run_async(_tier())


@user.command("link")
@click.argument("primary")
@click.argument("secondary")
def user_link(primary, secondary):
    """Link SECONDARY JID to the user owning PRIMARY, merging accounts if needed."""
    async def _link():
        from seabot.errors import UserNotFound
        from seabot.identity import IdentityResolver

        async with database() as settings:
            resolver = IdentityResolver.from_settings(settings)
            try:
                linked = await resolver.link(primary, secondary)
            except UserNotFound as e:
                console.print(f"[red]{e}[/red]")
                return
        console.print(f"[green]✓ Linked {secondary} to {linked.display_name} ({linked.primary_id})[/green]")

    run_async(_link())


@user.command("delete")
@click.argument("identifier")
@click.confirmation_option(prompt="Delete this user and all their data?")
def user_delete(identifier):
    """Delete a user."""
    async def _delete():
        from seabot.db import models

        async with database():
            u = await _find(identifier)
            if u is None:
                return
            await models.delete_user(u.id)
        console.print(f"[green]✓ Deleted {u.primary_id}[/green]")

    run_async(_delete())


@cli.group()
def limits():
    """Manage daily usage limits."""
    pass


@limits.command("reset")
def limits_reset():
    """Reset daily limits for all standard users now."""
    async def _reset():
        from seabot.limits import UsageLedger

        async with database():
            count = await UsageLedger().reset_daily_limits()
        console.print(f"[green]✓ Reset daily limits for {count} user(s)[/green]")

    run_async(_reset())

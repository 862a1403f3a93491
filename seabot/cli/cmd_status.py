"""Status command."""

from datetime import datetime, timedelta, timezone

from rich.table import Table

from . import cli
from .shared import console, database, run_async


@cli.command()
def status():
    """Show SeaBot status."""
    async def _status():
        from seabot import __version__
        from seabot.config import load_settings
        from seabot.db import models
        from seabot.dispatcher import TOTAL_COMMANDS_STAT
        from seabot.whatsapp import default_wacli_db

        settings = load_settings()

        table = Table(title=f"SeaBot Status v{__version__}", show_header=False, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")

        table.add_row("Bot name", settings.bot_name)
        table.add_row("Prefixes", " ".join(settings.prefixes))
        table.add_row("Owners", ", ".join(settings.owner_ids) or "[red]none[/red]")
        table.add_row("Daily limit", str(settings.daily_limit))
        table.add_row("Cooldown", f"{settings.cooldown_ms} ms")
        table.add_row(
            "Rate limit",
            f"{settings.rate_limit_per_minute}/min, {settings.rate_limit_per_hour}/h, "
            f"ban {settings.ban_duration_ms // 60000} min",
        )
        table.add_row("wacli store", default_wacli_db())
        table.add_row("BetaBotz key", "[green]set[/green]" if settings.betabotz_api_key else "[dim]not set[/dim]")
        table.add_row("BotCahX key", "[green]set[/green]" if settings.botcahx_api_key else "[dim]not set[/dim]")

        try:
            async with database():
                since = datetime.now(timezone.utc) - timedelta(hours=24)
                by_tier = await models.count_users_by_tier()
                table.add_row("Database", "[green]Connected[/green]")
                table.add_row("Users", str(sum(by_tier.values())))
                table.add_row("By tier", ", ".join(f"{tier}: {count}" for tier, count in by_tier.items()))
                table.add_row("Active (24h)", str(await models.count_active_users(since)))
                table.add_row("Commands run", str(await models.get_stat(TOTAL_COMMANDS_STAT)))
        except Exception as e:
            table.add_row("Database", f"[red]Error: {e}[/red]")

        console.print(table)

    run_async(_status())

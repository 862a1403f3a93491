"""General commands: menu, profile, limit."""

from collections import defaultdict

from .base import Command
from ..db.models import Tier
from ..formatting import format_number
from ..identity import jid_local
from ..limits import UsageLedger, tier_label


class MenuCommand(Command):
    name = "menu"
    description = "List available commands"
    category = "general"

    def __init__(self, registry, bot_name: str = "SeaBot", prefix: str = "."):
        self.registry = registry
        self.bot_name = bot_name
        self.prefix = prefix

    async def run(self, client, message, user, args, started_at):
        by_category = defaultdict(list)
        for registered in self.registry.list_active():
            desc = registered.descriptor
            if desc.owner_only and user.tier is not Tier.OWNER:
                continue
            by_category[desc.category].append(desc)

        lines = [f"╭─「 *{self.bot_name} Menu* 」", f"│ Hi, {user.display_name}!", "│"]
        for category in sorted(by_category):
            lines.append(f"├─「 {category.title()} 」")
            for desc in by_category[category]:
                usage = f" {desc.usage}" if desc.usage else ""
                lines.append(f"│ • {self.prefix}{desc.name}{usage}")
                if desc.description:
                    lines.append(f"│   {desc.description}")
        lines.append("╰──────────────────────")
        await self.reply(client, message, "\n".join(lines))


class ProfileCommand(Command):
    name = "profile"
    description = "Show your user card"
    category = "general"

    def __init__(self, ledger: UsageLedger):
        self.ledger = ledger

    async def run(self, client, message, user, args, started_at):
        info = self.ledger.limit_info(user)
        limit = "∞/∞" if info.unlimited else f"{info.remaining}/{info.total}"
        sender = message.sender_id
        text = (
            "┌─「 User Info 」\n"
            f"│ • Username: {user.display_name}\n"
            f"│ • Tag: @{jid_local(sender)}\n"
            f"│ • Status: {tier_label(user.tier)}\n"
            f"│ • Limit: {limit}\n"
            f"│ • Balance: {format_number(user.balance)}\n"
            f"│ • Bonus credits: {format_number(user.bonus_credits)}\n"
            f"│ • Member since: {user.member_since.strftime('%d/%m/%Y')}\n"
            "└──────────────────────"
        )
        await self.reply(client, message, text, mentions=[sender])


class LimitCommand(Command):
    name = "limit"
    description = "Show your remaining daily limit"
    category = "general"

    def __init__(self, ledger: UsageLedger):
        self.ledger = ledger

    async def run(self, client, message, user, args, started_at):
        info = self.ledger.limit_info(user)
        if info.unlimited:
            text = f"♾️ You have unlimited usage ({tier_label(user.tier)})."
        else:
            text = (
                f"📊 Daily limit: {info.remaining}/{info.total} remaining\n"
                f"Used today: {info.used}\n"
                "Limits reset every midnight."
            )
        await self.reply(client, message, text)

"""Owner-only commands."""

import logging

from .base import Command
from ..errors import UserNotFound
from ..identity import IdentityResolver

logger = logging.getLogger("seabot.commands.owner")


class LinkJidCommand(Command):
    name = "linkjid"
    description = "Link a secondary JID to an existing user"
    category = "owner"
    usage = "<primary_jid> <secondary_jid>"
    owner_only = True

    def __init__(self, resolver: IdentityResolver, prefix: str = "."):
        self.resolver = resolver
        self.prefix = prefix

    async def run(self, client, message, user, args, started_at):
        if len(args) < 2:
            await self.reply(
                client, message,
                f"❌ {self.usage_hint(self.prefix)}\n\n"
                f"Example: {self.prefix}linkjid 6285709557572@s.whatsapp.net 78752604233848@lid\n\n"
                "The secondary JID will share the primary user's data.",
            )
            return

        primary_jid, secondary_jid = args[0], args[1]
        try:
            linked = await self.resolver.link(primary_jid, secondary_jid)
        except UserNotFound:
            await self.reply(client, message, f"❌ Primary user not found: {primary_jid}")
            return
        except ValueError as e:
            await self.reply(client, message, f"❌ {e}")
            return

        logger.info(f"{user.primary_id} linked {secondary_jid} to {linked.primary_id}")
        await self.reply(
            client, message,
            f"✅ Linked {secondary_jid} to {linked.display_name} ({linked.primary_id})\n\n"
            "Both JIDs now use the same user data.",
        )

"""Group commands: hidetag."""

import logging

from .base import Command

logger = logging.getLogger("seabot.commands.group")


class HidetagCommand(Command):
    name = "hidetag"
    description = "Send a message that mentions every group member"
    category = "group"
    usage = "<message>"

    def __init__(self, prefix: str = "."):
        self.prefix = prefix

    async def run(self, client, message, user, args, started_at):
        if not message.is_group:
            await self.reply(client, message, "❌ This command can only be used in groups!")
            return

        text = " ".join(args).strip()
        if not text:
            await self.reply(
                client, message,
                f"❌ *Usage:* {self.prefix}hidetag <message>\n\n"
                f"📋 *Example:* {self.prefix}hidetag Hello everyone! Important announcement\n\n"
                "💡 *Note:* every group member is mentioned without being listed.",
            )
            return

        participants = await client.list_participants(message.chat_id)
        if not participants:
            await self.reply(client, message, "❌ Could not get the group member list!")
            return

        logger.info(f"Hidetag in {message.chat_id} mentioning {len(participants)} participant(s)")
        await client.send_message(message.chat_id, text, mentions=participants)

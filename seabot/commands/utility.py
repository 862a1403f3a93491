"""Utility commands: ping, getlid."""

from datetime import datetime

from .base import Command
from ..identity import jid_local


def _elapsed_ms(started_at: datetime) -> int:
    now = datetime.now(started_at.tzinfo)
    return max(0, int((now - started_at).total_seconds() * 1000))


class PingCommand(Command):
    name = "ping"
    description = "Check bot response time"
    category = "utility"

    async def run(self, client, message, user, args, started_at):
        sent = await self.reply(client, message, "Calculating...")
        latency = _elapsed_ms(started_at)
        text = f"Pong! {latency}ms"
        if sent is not None:
            await client.send_message(message.chat_id, text, edit=sent)
        else:
            await self.reply(client, message, text)


class GetLidCommand(Command):
    name = "getlid"
    description = "Show your WhatsApp identifier (JID/LID)"
    category = "utility"

    async def run(self, client, message, user, args, started_at):
        sender = message.sender_id
        chat_type = "Group Chat" if message.is_group else "Private Chat"
        text = (
            "🔍 *LID Information*\n\n"
            f"📱 *Your JID:* {sender}\n"
            f"🆔 *Your LID:* {jid_local(sender)}\n"
            f"📧 *Chat Type:* {chat_type}\n\n"
            "*Note:* copy only the digits when adding an owner id to the config."
        )
        await self.reply(client, message, text, mentions=[sender])

"""Base Command class: all chat commands inherit from this."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..db.models import CommandDescriptor, User
from ..transport import InboundMessage, Transport


class Command(ABC):
    """Base class for SeaBot commands.

    Subclasses set the descriptor defaults as class attributes and implement
    ``run``. A command sends its own replies through the transport; the
    dispatcher only sends a reply when the command fails or times out.

    Attributes are seeds: once synced, the ``commands`` table is the source
    of truth for description, cooldown, owner-only and active flags.
    """

    name: str
    description: str = ""
    category: str = "general"
    usage: str = ""
    cooldown_seconds: int = 2
    owner_only: bool = False

    def descriptor(self) -> CommandDescriptor:
        return CommandDescriptor(
            name=self.name,
            description=self.description,
            category=self.category,
            usage=self.usage,
            cooldown_seconds=self.cooldown_seconds,
            owner_only=self.owner_only,
        )

    @abstractmethod
    async def run(
        self,
        client: Transport,
        message: InboundMessage,
        user: User,
        args: list[str],
        started_at: datetime,
    ) -> None:
        """Execute the command.

        Args:
            client: Transport used to reply
            message: The triggering message
            user: Resolved sender
            args: Whitespace-split arguments after the command name
            started_at: When the message was received, for latency reporting
        """
        ...

    async def reply(self, client: Transport, message: InboundMessage, text: str, **kwargs):
        return await client.send_message(message.chat_id, text, **kwargs)

    def usage_hint(self, prefix: str = ".") -> Optional[str]:
        if not self.usage:
            return None
        return f"Usage: {prefix}{self.name} {self.usage}"

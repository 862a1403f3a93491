"""Transport-facing message types.

The core only talks to the chat network through ``Transport.send_message``;
the WhatsApp bridge implements it and produces ``InboundMessage`` objects.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Union

GROUP_SERVER = "g.us"


@dataclass
class InboundMessage:
    """One text message received from the chat network."""
    message_id: str
    chat_id: str
    sender_id: str
    text: str
    display_name: str = ""
    from_me: bool = False

    @property
    def is_group(self) -> bool:
        return self.chat_id.endswith(f"@{GROUP_SERVER}")


@dataclass
class SentMessage:
    """Handle to a message we sent, usable for a later edit or delete."""
    chat_id: str
    message_id: Optional[str] = None


@dataclass
class OutboundMedia:
    """A local file to send, optionally captioned."""
    path: str
    caption: str = ""
    kind: str = "image"   # image | sticker | document


Content = Union[str, OutboundMedia]


class Transport(Protocol):
    async def send_message(
        self,
        chat_id: str,
        content: Optional[Content] = None,
        *,
        edit: Optional[SentMessage] = None,
        delete: Optional[SentMessage] = None,
        mentions: Optional[list[str]] = None,
    ) -> Optional[SentMessage]:
        """Send text or media to a chat, or edit/delete an earlier message."""
        ...

    async def list_participants(self, chat_id: str) -> list[str]:
        """JIDs of the members of a group chat."""
        ...


"""Command parsing and isolated, time-boxed command execution."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

from .commands.registry import RegisteredCommand
from .db import models
from .db.models import User
from .errors import HandlerTimeout, classify_error
from .transport import InboundMessage, Transport

logger = logging.getLogger("seabot.dispatcher")

TOTAL_COMMANDS_STAT = "total_commands"


@dataclass(frozen=True)
class ParsedCommand:
    prefix: str
    name: str
    args: list[str] = field(default_factory=list)


def parse_command(text: str, prefixes: Sequence[str]) -> Optional[ParsedCommand]:
    """Split a chat message into prefix, command name and arguments.

    Prefixes are tried in order and the first match wins. Returns None when
    the text carries no prefix or nothing follows it.
    """
    if not text:
        return None
    for prefix in prefixes:
        if prefix and text.startswith(prefix):
            tokens = text[len(prefix):].split()
            if not tokens:
                return None
            return ParsedCommand(prefix=prefix, name=tokens[0].lower(), args=tokens[1:])
    return None


class DispatchOutcome(str, Enum):
    OK = "ok"
    FAILED = "failed"
    TIMEOUT = "timeout"


class CommandDispatcher:
    """Runs one command handler with a timeout and failure isolation.

    A handler that overruns its budget is abandoned, not cancelled: it may
    still finish (and reply) later, but the caller moves on and the user is
    told the command timed out.
    """

    def __init__(self, timeout_ms: int = 30000):
        self.timeout = timeout_ms / 1000
        self._abandoned: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings) -> "CommandDispatcher":
        return cls(timeout_ms=settings.command_timeout_ms)

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    async def dispatch(
        self,
        registered: RegisteredCommand,
        client: Transport,
        message: InboundMessage,
        user: User,
        args: list[str],
        started_at: datetime,
    ) -> DispatchOutcome:
        name = registered.name
        context = f"command={name} chat={message.chat_id} user={user.primary_id}"

        task = asyncio.create_task(
            registered.handler.run(client, message, user, args, started_at),
            name=f"seabot-cmd-{name}",
        )
        done, _ = await asyncio.wait({task}, timeout=self.timeout)

        if task not in done:
            self._abandon(task, context)
            logger.warning(f"Command timed out after {self.timeout:.1f}s, abandoning handler ({context})")
            await self._notify_failure(client, message, HandlerTimeout(name, self.timeout), context)
            return DispatchOutcome.TIMEOUT

        error = task.exception() if not task.cancelled() else asyncio.CancelledError()
        if error is not None:
            logger.error(f"Command failed ({context}): {error}", exc_info=error)
            await self._notify_failure(client, message, error, context)
            return DispatchOutcome.FAILED

        await self._record_usage(name)
        return DispatchOutcome.OK

    def _abandon(self, task: asyncio.Task, context: str):
        self._abandoned.add(task)

        def _finished(t: asyncio.Task):
            self._abandoned.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.warning(f"Abandoned command raised after timeout ({context}): {exc}")
            else:
                logger.info(f"Abandoned command finished late ({context})")

        task.add_done_callback(_finished)

    async def _notify_failure(self, client: Transport, message: InboundMessage, error: BaseException, context: str):
        try:
            await client.send_message(message.chat_id, classify_error(error))
        except Exception as e:
            logger.error(f"Could not send failure notice ({context}): {e}")

    async def _record_usage(self, name: str):
        try:
            await models.increment_command_usage(name)
            await models.increment_stat(TOTAL_COMMANDS_STAT)
        except Exception as e:
            logger.warning(f"Failed to record usage for '{name}': {e}")

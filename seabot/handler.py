"""Inbound message pipeline: parse, gate, resolve, check quota, dispatch."""

import logging
from datetime import datetime, timezone
from typing import Sequence

from .commands.registry import CommandRegistry
from .db import models
from .db.models import Tier, User
from .dispatcher import CommandDispatcher, DispatchOutcome, parse_command
from .errors import ResolutionFailure, UnknownCommand
from .identity import IdentityResolver, normalize_jid
from .limits import UsageLedger
from .ratelimit import GateReason, RateGate
from .transport import InboundMessage, Transport

logger = logging.getLogger("seabot.handler")

OWNER_ONLY_NOTICE = "❌ Only the owner can use this command!"
LIMIT_REACHED_NOTICE = "❌ Your daily limit has been reached. Try again tomorrow!"


def cooldown_notice(seconds: float) -> str:
    return f"⏳ Please wait {max(1, round(seconds))}s before using another command."


class MessageHandler:
    """Runs one inbound message through the command pipeline.

    Nothing raised while handling a message escapes ``handle``; one bad
    message never stops the bridge from delivering the next.
    """

    def __init__(
        self,
        transport: Transport,
        registry: CommandRegistry,
        resolver: IdentityResolver,
        gate: RateGate,
        ledger: UsageLedger,
        dispatcher: CommandDispatcher,
        prefixes: Sequence[str],
    ):
        self.transport = transport
        self.registry = registry
        self.resolver = resolver
        self.gate = gate
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.prefixes = list(prefixes)

    async def handle(self, message: InboundMessage) -> None:
        try:
            await self._handle(message)
        except Exception as e:
            logger.error(f"Unhandled error for message {message.message_id} in {message.chat_id}: {e}", exc_info=True)

    async def _handle(self, message: InboundMessage):
        started_at = datetime.now(timezone.utc)

        if message.from_me or not (message.text or "").strip():
            return

        parsed = parse_command(message.text, self.prefixes)
        if parsed is None:
            return

        try:
            registered = self.registry.lookup(parsed.name)
        except UnknownCommand:
            logger.debug(f"Ignoring unknown command '{parsed.name}' from {message.sender_id}")
            return

        try:
            sender = normalize_jid(message.sender_id)
        except ValueError:
            logger.warning(f"Message {message.message_id} has no usable sender id")
            return

        decision = self.gate.check_abuse(sender)
        if not decision.allowed:
            logger.debug(f"Dropping message from banned {sender} ({decision.retry_after:.0f}s left)")
            return

        try:
            user = await self.resolver.resolve(message.sender_id, message.display_name)
        except ResolutionFailure as e:
            logger.error(f"Dropping '{parsed.name}' from {sender}: {e}")
            return

        descriptor = registered.descriptor
        if not descriptor.is_active:
            logger.debug(f"Command '{descriptor.name}' is disabled, ignoring")
            return

        if descriptor.owner_only and not self._is_owner(user):
            await self._notify(message, OWNER_ONLY_NOTICE)
            return

        decision = self.gate.check_cooldown(user, descriptor.name, descriptor.cooldown_seconds)
        if decision.reason is GateReason.COOLDOWN:
            await self._notify(message, cooldown_notice(decision.retry_after))
            return

        if not await self.ledger.check_limit(user):
            await self._notify(message, LIMIT_REACHED_NOTICE)
            return

        logger.info(f"Command '{descriptor.name}' from {user.display_name} ({user.primary_id}) in {message.chat_id}")
        outcome = await self.dispatcher.dispatch(
            registered, self.transport, message, user, parsed.args, started_at,
        )
        if outcome is DispatchOutcome.OK:
            await self._record_success(user, descriptor.name)

    def _is_owner(self, user: User) -> bool:
        return user.tier is Tier.OWNER or self.resolver.is_owner(user)

    async def _record_success(self, user: User, command: str):
        await self.ledger.use_limit(user)
        self.gate.mark_used(user.primary_id, command)
        now = datetime.now(timezone.utc)
        try:
            await models.update_user(user.id, last_command_at=now)
            user.last_command_at = now
        except Exception as e:
            logger.warning(f"Failed to record last command time for {user.primary_id}: {e}")

    async def _notify(self, message: InboundMessage, text: str):
        try:
            await self.transport.send_message(message.chat_id, text)
        except Exception as e:
            logger.error(f"Could not send notice to {message.chat_id}: {e}")

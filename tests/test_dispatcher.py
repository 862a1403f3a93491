"""Tests for CommandDispatcher timeout and failure isolation."""

import asyncio
from datetime import datetime, timezone

import pytest

from conftest import make_message
from seabot.commands.base import Command
from seabot.commands.registry import CommandRegistry
from seabot.db.models import User
from seabot.dispatcher import TOTAL_COMMANDS_STAT, CommandDispatcher, DispatchOutcome


class EchoCommand(Command):
    name = "echo"

    async def run(self, client, message, user, args, started_at):
        await self.reply(client, message, " ".join(args))


class BoomCommand(Command):
    name = "boom"

    async def run(self, client, message, user, args, started_at):
        raise RuntimeError("kaboom internal detail")


class SlowCommand(Command):
    name = "slow"

    def __init__(self, delay: float):
        self.delay = delay
        self.finished = False

    async def run(self, client, message, user, args, started_at):
        await asyncio.sleep(self.delay)
        self.finished = True
        await self.reply(client, message, "late reply")


USER = User(id=1, primary_id="6281234567890@s.whatsapp.net", display_name="Alice")


def _registered(command):
    registry = CommandRegistry()
    return registry.register(command)


async def _dispatch(dispatcher, command, transport, args=()):
    return await dispatcher.dispatch(
        _registered(command), transport, make_message(f".{command.name}"), USER,
        list(args), datetime.now(timezone.utc),
    )


class TestDispatch:
    @pytest.mark.asyncio
    async def test_ok_records_usage(self, store, transport):
        command = EchoCommand()
        await store.insert_command_if_missing(command.descriptor())
        outcome = await _dispatch(CommandDispatcher(), command, transport, ["hi", "there"])
        assert outcome is DispatchOutcome.OK
        assert transport.texts() == ["hi there"]
        assert store.commands["echo"].usage_count == 1
        assert store.stats[TOTAL_COMMANDS_STAT] == 1

    @pytest.mark.asyncio
    async def test_usage_recording_failure_is_not_fatal(self, store, transport):
        store.fail = True
        outcome = await _dispatch(CommandDispatcher(), EchoCommand(), transport, ["x"])
        assert outcome is DispatchOutcome.OK

    @pytest.mark.asyncio
    async def test_exception_sends_one_notice(self, store, transport):
        outcome = await _dispatch(CommandDispatcher(), BoomCommand(), transport)
        assert outcome is DispatchOutcome.FAILED
        assert len(transport.sent) == 1
        notice = transport.texts()[0]
        assert "RuntimeError" in notice
        assert "kaboom" not in notice
        assert store.stats == {}

    @pytest.mark.asyncio
    async def test_notice_send_failure_swallowed(self, store, transport):
        transport.fail = True
        outcome = await _dispatch(CommandDispatcher(), BoomCommand(), transport)
        assert outcome is DispatchOutcome.FAILED

    @pytest.mark.asyncio
    async def test_timeout_abandons_handler(self, store, transport):
        dispatcher = CommandDispatcher(timeout_ms=50)
        command = SlowCommand(delay=0.2)
        outcome = await _dispatch(dispatcher, command, transport)
        assert outcome is DispatchOutcome.TIMEOUT
        assert "too long" in transport.texts()[0]
        assert dispatcher.abandoned_count == 1

        # Abandoned, not cancelled: the handler still completes
        await asyncio.sleep(0.4)
        assert command.finished
        assert dispatcher.abandoned_count == 0
        assert transport.texts()[-1] == "late reply"
        assert store.stats == {}

    def test_from_settings(self):
        class S:
            command_timeout_ms = 1500
        assert CommandDispatcher.from_settings(S()).timeout == 1.5

"""Pytest configuration and shared fixtures.

The ``store`` fixture swaps every query helper in ``seabot.db.models`` for
an in-memory implementation, so the suite runs without PostgreSQL.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

import pytest

from seabot.db import models
from seabot.db.models import CommandDescriptor, Tier, User
from seabot.transport import InboundMessage, SentMessage


def _copy(user: Optional[User]) -> Optional[User]:
    if user is None:
        return None
    return replace(user, alternate_ids=list(user.alternate_ids))


class FakeStore:
    """Dict-backed stand-in for the users, commands and stats tables."""

    def __init__(self):
        self.users: dict[int, User] = {}
        self.commands: dict[str, CommandDescriptor] = {}
        self.stats: dict[str, int] = {}
        self._next_id = 1
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError("store unavailable")

    def add_user(self, primary_id: str, **fields) -> User:
        user = User(id=self._next_id, primary_id=primary_id, **fields)
        self._next_id += 1
        self.users[user.id] = user
        return _copy(user)

    def owner_of(self, identifier: str) -> Optional[User]:
        for user in self.users.values():
            if user.primary_id == identifier or identifier in user.alternate_ids:
                return user
        return None

    # users

    async def get_user(self, user_id):
        self._check()
        return _copy(self.users.get(user_id))

    async def get_user_by_primary_id(self, primary_id):
        self._check()
        return _copy(next((u for u in self.users.values() if u.primary_id == primary_id), None))

    async def get_user_by_alternate_id(self, identifier):
        self._check()
        return _copy(next((u for u in self.users.values() if identifier in u.alternate_ids), None))

    async def get_user_by_display_name(self, display_name):
        self._check()
        matches = sorted((u for u in self.users.values() if u.display_name == display_name), key=lambda u: u.id)
        return _copy(matches[0] if matches else None)

    async def find_user(self, identifier):
        return await self.get_user_by_primary_id(identifier) or await self.get_user_by_alternate_id(identifier)

    async def create_user(self, primary_id, display_name, tier, balance, bonus_credits, daily_limit):
        self._check()
        existing = await self.get_user_by_primary_id(primary_id)
        if existing:
            return existing
        return self.add_user(
            primary_id,
            display_name=display_name,
            tier=tier,
            balance=balance,
            bonus_credits=bonus_credits,
            daily_limit=daily_limit,
        )

    async def update_user(self, user_id, **fields):
        self._check()
        unknown = set(fields) - models.USER_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
        user = self.users.get(user_id)
        if user is None:
            return None
        for key, value in fields.items():
            setattr(user, key, Tier(value) if key == "tier" else value)
        return _copy(user)

    async def add_alternate_id(self, user_id, identifier):
        self._check()
        user = self.users.get(user_id)
        if user is None or user.primary_id == identifier or identifier in user.alternate_ids:
            return False
        other = self.owner_of(identifier)
        if other is not None and other.id != user_id:
            return False
        user.alternate_ids.append(identifier)
        return True

    async def merge_users(self, keep_id, drop_id):
        self._check()
        keep = self.users[keep_id]
        drop = self.users.pop(drop_id, None)
        if drop is not None:
            keep.balance = max(keep.balance, drop.balance)
            keep.bonus_credits = max(keep.bonus_credits, drop.bonus_credits)
            keep.limit_used = max(keep.limit_used, drop.limit_used)
            for identifier in [drop.primary_id, *drop.alternate_ids]:
                if identifier != keep.primary_id and identifier not in keep.alternate_ids:
                    keep.alternate_ids.append(identifier)
        return _copy(keep)

    async def increment_limit_used(self, user_id):
        self._check()
        user = self.users.get(user_id)
        if user is None:
            return None
        user.limit_used += 1
        return user.limit_used

    async def reset_standard_limits(self):
        self._check()
        count = 0
        for user in self.users.values():
            if user.tier is Tier.STANDARD:
                user.limit_used = 0
                user.last_limit_reset = datetime.now(timezone.utc)
                count += 1
        return count

    async def delete_user(self, user_id):
        self._check()
        return self.users.pop(user_id, None) is not None

    async def list_users(self, limit=50, offset=0, tier=None):
        self._check()
        users = [u for u in self.users.values() if tier is None or u.tier is tier]
        users.sort(key=lambda u: u.id)
        return [_copy(u) for u in users[offset:offset + limit]]

    async def count_users(self, tier=None):
        self._check()
        return sum(1 for u in self.users.values() if tier is None or u.tier is tier)

    async def count_users_by_tier(self):
        self._check()
        counts = {t.value: 0 for t in Tier}
        for user in self.users.values():
            counts[user.tier.value] += 1
        return counts

    async def count_active_users(self, since):
        self._check()
        return sum(1 for u in self.users.values() if u.last_command_at and u.last_command_at >= since)

    # commands

    async def get_commands(self):
        self._check()
        return [replace(c) for c in sorted(self.commands.values(), key=lambda c: (c.category, c.name))]

    async def insert_command_if_missing(self, descriptor):
        self._check()
        self.commands.setdefault(descriptor.name, replace(descriptor))

    async def update_command(self, name, **fields):
        self._check()
        unknown = set(fields) - models.COMMAND_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update command fields: {', '.join(sorted(unknown))}")
        command = self.commands.get(name)
        if command is None:
            return None
        for key, value in fields.items():
            setattr(command, key, value)
        return replace(command)

    async def increment_command_usage(self, name):
        self._check()
        if name in self.commands:
            self.commands[name].usage_count += 1

    # stats

    async def increment_stat(self, stat_type, amount=1):
        self._check()
        self.stats[stat_type] = self.stats.get(stat_type, 0) + amount
        return self.stats[stat_type]

    async def get_stat(self, stat_type):
        self._check()
        return self.stats.get(stat_type, 0)


_PATCHED = [
    "get_user", "get_user_by_primary_id", "get_user_by_alternate_id", "get_user_by_display_name",
    "find_user", "create_user", "update_user", "add_alternate_id", "merge_users",
    "increment_limit_used", "reset_standard_limits", "delete_user", "list_users", "count_users",
    "count_users_by_tier", "count_active_users", "get_commands", "insert_command_if_missing",
    "update_command", "increment_command_usage", "increment_stat", "get_stat",
]


@pytest.fixture
def store(monkeypatch):
    """In-memory store installed in place of the asyncpg-backed helpers."""
    fake = FakeStore()
    for name in _PATCHED:
        monkeypatch.setattr(models, name, getattr(fake, name))
    return fake


class FakeTransport:
    """Records outbound messages instead of sending them."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False
        self._counter = 0
        self.participants: dict[str, list[str]] = {}

    async def send_message(self, chat_id, content=None, *, edit=None, delete=None, mentions=None):
        if self.fail:
            raise RuntimeError("transport down")
        self._counter += 1
        self.sent.append({"chat_id": chat_id, "content": content, "edit": edit, "delete": delete, "mentions": mentions})
        if delete is not None:
            return None
        return SentMessage(chat_id=chat_id, message_id=f"m{self._counter}")

    async def list_participants(self, chat_id):
        return list(self.participants.get(chat_id, []))

    def texts(self) -> list[str]:
        return [m["content"] for m in self.sent if isinstance(m["content"], str)]


@pytest.fixture
def transport():
    return FakeTransport()


def make_message(text: str, sender: str = "6281234567890@s.whatsapp.net", **kwargs) -> InboundMessage:
    kwargs.setdefault("message_id", "msg-1")
    kwargs.setdefault("chat_id", sender)
    kwargs.setdefault("display_name", "Alice")
    return InboundMessage(sender_id=sender, text=text, **kwargs)

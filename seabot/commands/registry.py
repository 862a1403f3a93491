"""Command Registry: maps command names to handlers and persisted settings."""

import logging
from dataclasses import dataclass
from typing import Optional

from .base import Command
from ..db import models
from ..db.models import CommandDescriptor
from ..errors import UnknownCommand

logger = logging.getLogger("seabot.commands.registry")


@dataclass
class RegisteredCommand:
    """A handler together with its current (possibly admin-edited) settings."""
    descriptor: CommandDescriptor
    handler: Command

    @property
    def name(self) -> str:
        return self.descriptor.name


class CommandRegistry:
    """Name -> command lookup used by the dispatcher.

    Responsibilities:
    - Register handlers at startup
    - Seed the ``commands`` table and pull admin edits back from it
    - Reject unknown names with ``UnknownCommand``
    """

    def __init__(self):
        self._commands: dict[str, RegisteredCommand] = {}

    def register(self, command: Command) -> RegisteredCommand:
        name = command.name.lower()
        if name in self._commands:
            logger.warning(f"Command '{name}' registered twice; replacing previous handler")
        registered = RegisteredCommand(descriptor=command.descriptor(), handler=command)
        registered.descriptor.name = name
        self._commands[name] = registered
        logger.debug(f"Registered command: {name} (category={command.category})")
        return registered

    def get(self, name: str) -> Optional[RegisteredCommand]:
        """Get a registered command by name, or None."""
        return self._commands.get((name or "").lower())

    def lookup(self, name: str) -> RegisteredCommand:
        """Like get(), but raises UnknownCommand for unregistered names."""
        registered = self.get(name)
        if registered is None:
            raise UnknownCommand(name)
        return registered

    def list_all(self) -> list[RegisteredCommand]:
        return sorted(self._commands.values(), key=lambda c: (c.descriptor.category, c.name))

    def list_active(self) -> list[RegisteredCommand]:
        return [c for c in self.list_all() if c.descriptor.is_active]

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        return len(self._commands)

    async def sync_to_db(self):
        """Seed missing rows, then load stored settings over the defaults."""
        for registered in self._commands.values():
            await models.insert_command_if_missing(registered.descriptor)
        await self.reload()

    async def reload(self) -> int:
        """Refresh descriptors from the ``commands`` table.

        Rows without a registered handler are ignored (a handler is code, not data).
        """
        rows = await models.get_commands()
        refreshed = 0
        for row in rows:
            registered = self._commands.get(row.name)
            if registered is None:
                logger.debug(f"Command '{row.name}' in database has no handler, skipping")
                continue
            registered.descriptor = row
            refreshed += 1
        logger.debug(f"Loaded settings for {refreshed} command(s)")
        return refreshed

    async def set_active(self, name: str, active: bool) -> bool:
        registered = self.get(name)
        if registered is None:
            return False
        updated = await models.update_command(registered.name, is_active=active)
        registered.descriptor = updated or registered.descriptor
        registered.descriptor.is_active = active
        logger.info(f"Command '{registered.name}' {'enabled' if active else 'disabled'}")
        return True

"""SeaBot chat commands."""

from .base import Command
from .registry import CommandRegistry, RegisteredCommand
from .fun import BratCommand
from .group import HidetagCommand
from .general import LimitCommand, MenuCommand, ProfileCommand
from .owner import LinkJidCommand
from .stalk import StalkIgCommand, StalkMlCommand, StalkTtCommand
from .utility import GetLidCommand, PingCommand

__all__ = [
    "Command",
    "CommandRegistry",
    "RegisteredCommand",
    "build_registry",
]


def build_registry(settings, resolver, ledger) -> CommandRegistry:
    """Register every bundled command."""
    prefix = settings.prefixes[0]
    registry = CommandRegistry()
    keys = {
        "betabotz_api_key": settings.betabotz_api_key,
        "botcahx_api_key": settings.botcahx_api_key,
        "prefix": prefix,
    }
    for command in (
        PingCommand(),
        MenuCommand(registry, bot_name=settings.bot_name, prefix=prefix),
        ProfileCommand(ledger),
        LimitCommand(ledger),
        GetLidCommand(),
        HidetagCommand(prefix=prefix),
        LinkJidCommand(resolver, prefix=prefix),
        BratCommand(settings.betabotz_api_key, prefix=prefix),
        StalkIgCommand(**keys),
        StalkTtCommand(**keys),
        StalkMlCommand(**keys),
    ):
        registry.register(command)
    return registry

"""Error types and user-facing error classification."""

import asyncio

import asyncpg
import httpx


class SeaBotError(Exception):
    """Base class for SeaBot errors."""


class ResolutionFailure(SeaBotError):
    """The sender could not be resolved to a user (store unavailable)."""


class UserNotFound(SeaBotError):
    """No user owns the given identifier."""


class UnknownCommand(SeaBotError, KeyError):
    """No handler is registered under the given command name."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown command: {self.name}"


class HandlerTimeout(SeaBotError):
    """A command handler did not finish within its execution budget."""

    def __init__(self, command: str, timeout: float):
        super().__init__(f"Command '{command}' timed out after {timeout:.1f}s")
        self.command = command
        self.timeout = timeout


def classify_error(e: Exception) -> str:
    """Classify a handler exception into a short user-facing message.

    Never leaks internals beyond the exception type name.
    """
    if isinstance(e, (HandlerTimeout, asyncio.TimeoutError)):
        return "⏳ Command took too long to finish. Please try again later."

    if isinstance(e, httpx.HTTPStatusError):
        code = e.response.status_code
        if code == 429:
            return "❌ The service is busy right now. Please wait a moment and try again."
        if code in (401, 403):
            return "❌ The service rejected our credentials. Please contact the owner."
        if code == 404:
            return "❌ Nothing was found for that request."
        if 500 <= code < 600:
            return "❌ The service is having server issues. Please try again later."
        return f"❌ The service returned HTTP {code}. Please try again later."

    if isinstance(e, httpx.ConnectError):
        return "🌐 Cannot reach the service, please try again later."
    if isinstance(e, (httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout, httpx.ConnectTimeout)):
        return "⏳ Request timed out, please try again later."

    if isinstance(e, asyncpg.InterfaceError):
        return "❌ Database is busy. Please try again in a moment."
    if isinstance(e, asyncpg.PostgresError):
        return "❌ Database error. Please try again later."

    type_name = type(e).__name__
    return f"❌ Something went wrong ({type_name}). Please try again later."

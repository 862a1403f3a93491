"""Cooldown and abuse gate.

Two independent checks run before a command is dispatched:

- a short per-user cooldown between commands (plus each command's own
  cooldown), answered with a "please wait" notice;
- a sliding-window request counter per identifier. Exceeding the per-minute
  or per-hour ceiling bans the identifier for a while and every request is
  then dropped without a reply.

All state lives in a ``RateState`` owned by the gate. It is process-local and
lost on restart.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

logger = logging.getLogger("seabot.ratelimit")

MINUTE = 60.0
HOUR = 3600.0


class GateReason(str, Enum):
    OK = "ok"
    COOLDOWN = "cooldown"
    BANNED = "banned"


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: GateReason = GateReason.OK
    retry_after: float = 0.0


ALLOW = GateDecision(True)


class RateState:
    """Volatile per-identifier bookkeeping for the gate."""

    def __init__(self):
        self.requests: dict[str, list[float]] = defaultdict(list)
        self.bans: dict[str, float] = {}                       # identifier -> ban expiry
        self.command_use: dict[tuple[str, str], float] = {}    # (identifier, command) -> last use
        self._last_prune = 0.0

    def prune(self, now: float, keep_seconds: float = HOUR):
        """Drop request timestamps, bans and command uses that can no longer matter."""
        for key in list(self.requests):
            recent = [t for t in self.requests[key] if now - t < HOUR]
            if recent:
                self.requests[key] = recent
            else:
                del self.requests[key]
        self.bans = {k: until for k, until in self.bans.items() if until > now}
        self.command_use = {k: t for k, t in self.command_use.items() if now - t < keep_seconds}
        self._last_prune = now

    def maybe_prune(self, now: float, every: float = MINUTE):
        if now - self._last_prune > every:
            self.prune(now)

    def clear(self):
        self.requests.clear()
        self.bans.clear()
        self.command_use.clear()


class RateGate:
    """Cooldown and sliding-window abuse protection."""

    def __init__(
        self,
        state: RateState,
        cooldown_ms: int = 2000,
        per_minute: int = 20,
        per_hour: int = 100,
        ban_duration_ms: int = 3600000,
    ):
        self.state = state
        self.cooldown = cooldown_ms / 1000
        self.per_minute = max(1, per_minute)
        self.per_hour = max(1, per_hour)
        self.ban_duration = ban_duration_ms / 1000

    @classmethod
    def from_settings(cls, settings, state: Optional[RateState] = None) -> "RateGate":
        return cls(
            state or RateState(),
            cooldown_ms=settings.cooldown_ms,
            per_minute=settings.rate_limit_per_minute,
            per_hour=settings.rate_limit_per_hour,
            ban_duration_ms=settings.ban_duration_ms,
        )

    def check_abuse(self, identifier: str, now: Optional[float] = None) -> GateDecision:
        """Record one request and decide whether the identifier is (now) banned."""
        now = time.time() if now is None else now
        state = self.state
        state.maybe_prune(now)

        until = state.bans.get(identifier)
        if until is not None:
            if until > now:
                return GateDecision(False, GateReason.BANNED, until - now)
            del state.bans[identifier]

        window = [t for t in state.requests[identifier] if now - t < HOUR]
        window.append(now)
        state.requests[identifier] = window

        last_minute = sum(1 for t in window if now - t < MINUTE)
        if last_minute > self.per_minute or len(window) > self.per_hour:
            state.bans[identifier] = now + self.ban_duration
            state.requests.pop(identifier, None)
            logger.warning(
                f"Rate limit exceeded by {identifier} "
                f"({last_minute}/min, {len(window)}/h), banned for {int(self.ban_duration)}s"
            )
            return GateDecision(False, GateReason.BANNED, self.ban_duration)

        return ALLOW

    def check_cooldown(
        self,
        user,
        command: Optional[str] = None,
        command_cooldown: float = 0,
        now: Optional[float] = None,
    ) -> GateDecision:
        """Reject if the user's last command (or last use of this command) is too recent.

        Args:
            user: Resolved User; its ``last_command_at`` drives the global cooldown
            command: Command name for the per-command cooldown
            command_cooldown: That command's cooldown in seconds
        """
        now = time.time() if now is None else now

        last: Optional[datetime] = user.last_command_at
        if last is not None:
            elapsed = now - last.timestamp()
            if elapsed < self.cooldown:
                return GateDecision(False, GateReason.COOLDOWN, self.cooldown - elapsed)

        if command and command_cooldown > 0:
            used = self.state.command_use.get((user.primary_id, command))
            if used is not None and now - used < command_cooldown:
                return GateDecision(False, GateReason.COOLDOWN, command_cooldown - (now - used))

        return ALLOW

    def mark_used(self, identifier: str, command: str, now: Optional[float] = None):
        self.state.command_use[(identifier, command)] = time.time() if now is None else now

    def unban(self, identifier: str):
        if self.state.bans.pop(identifier, None) is not None:
            logger.info(f"Ban lifted for {identifier}")
        self.state.requests.pop(identifier, None)

    def reset_all(self):
        self.state.clear()
        logger.info("All rate limits reset")

    def status(self, identifier: str, now: Optional[float] = None) -> dict:
        """Current window counts and ban state for one identifier."""
        now = time.time() if now is None else now
        window = [t for t in self.state.requests.get(identifier, []) if now - t < HOUR]
        until = self.state.bans.get(identifier)
        return {
            "requests_last_minute": sum(1 for t in window if now - t < MINUTE),
            "requests_last_hour": len(window),
            "max_per_minute": self.per_minute,
            "max_per_hour": self.per_hour,
            "banned": until is not None and until > now,
            "ban_remaining_seconds": max(0, int(until - now)) if until else 0,
        }

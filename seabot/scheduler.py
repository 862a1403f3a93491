"""Scheduler: nightly reset of daily usage limits.

Runs as an asyncio background task alongside the WhatsApp bridge. Sleeps
until the next local midnight, resets every standard user's counter and
goes back to sleep.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from .limits import UsageLedger

logger = logging.getLogger("seabot.scheduler")

# Floor on the sleep so a clock jump cannot spin the loop
_MIN_SLEEP = 1.0


def seconds_until_midnight(now: Optional[datetime] = None) -> float:
    """Seconds from `now` (local time) until the next midnight."""
    now = now or datetime.now()
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (tomorrow - now).total_seconds()


class DailyResetScheduler:
    """Background task that resets daily limits at midnight.

    Usage:
        scheduler = DailyResetScheduler(ledger)
        await scheduler.start()
        # ... later ...
        await scheduler.stop()
    """

    def __init__(self, ledger: UsageLedger):
        self._ledger = ledger
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the scheduler background task."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Daily reset scheduler started")

    async def stop(self):
        """Stop the scheduler."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Daily reset scheduler stopped")

    async def _run_loop(self):
        while self._running:
            delay = max(_MIN_SLEEP, seconds_until_midnight())
            logger.debug(f"Next daily limit reset in {delay:.0f}s")
            await asyncio.sleep(delay)
            await self.run_once()

    async def run_once(self) -> int:
        """Perform one reset. Errors are logged and reported as 0 rows."""
        try:
            return await self._ledger.reset_daily_limits()
        except Exception as e:
            logger.error(f"Daily limit reset failed: {e}", exc_info=True)
            return 0

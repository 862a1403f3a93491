"""Daily usage ledger for standard-tier users."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .db import models
from .db.models import Tier, User

logger = logging.getLogger("seabot.limits")

RESET_PERIOD = timedelta(days=1)


@dataclass(frozen=True)
class LimitInfo:
    unlimited: bool
    used: int
    remaining: int
    total: int


class UsageLedger:
    """Checks and consumes the per-user daily command budget.

    OWNER and PREMIUM users are unlimited and never touch the store here.
    Quota reads fail closed: if the store cannot be reached the command is
    refused rather than run for free.
    """

    async def check_limit(self, user: User, now: Optional[datetime] = None) -> bool:
        if user.is_unlimited:
            return True

        now = now or datetime.now(timezone.utc)
        try:
            if now - user.last_limit_reset >= RESET_PERIOD:
                updated = await models.update_user(user.id, limit_used=0, last_limit_reset=now)
                user.limit_used = 0
                user.last_limit_reset = now
                if updated is not None:
                    user.daily_limit = updated.daily_limit
                logger.debug(f"Daily limit rolled over for {user.primary_id}")
        except Exception as e:
            logger.error(f"Limit check failed for {user.primary_id}: {e}")
            return False

        return user.limit_used < user.daily_limit

    async def use_limit(self, user: User) -> None:
        """Consume one unit of the daily budget. Errors are logged, not raised."""
        if user.is_unlimited:
            return
        try:
            used = await models.increment_limit_used(user.id)
        except Exception as e:
            logger.error(f"Failed to record limit use for {user.primary_id}: {e}")
            return
        if used is not None:
            user.limit_used = used

    async def reset_daily_limits(self) -> int:
        """Zero the usage counter of every standard-tier user."""
        count = await models.reset_standard_limits()
        logger.info(f"Daily limits reset for {count} user(s)")
        return count

    def limit_info(self, user: User) -> LimitInfo:
        if user.is_unlimited:
            return LimitInfo(unlimited=True, used=0, remaining=-1, total=-1)
        remaining = max(0, user.daily_limit - user.limit_used)
        return LimitInfo(unlimited=False, used=user.limit_used, remaining=remaining, total=user.daily_limit)


def tier_label(tier: Tier) -> str:
    return {Tier.OWNER: "Owner", Tier.PREMIUM: "Premium", Tier.STANDARD: "Standard"}[tier]

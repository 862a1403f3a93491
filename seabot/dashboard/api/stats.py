"""Bot statistics API endpoint."""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from ...db import models
from ...dispatcher import TOTAL_COMMANDS_STAT
from ..auth import require_admin

logger = logging.getLogger("seabot.dashboard.stats")

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats")
async def get_stats(request: Request, admin_auth: Dict = Depends(require_admin)):
    """
    Aggregate counters for the dashboard home page.

    Returns:
        dict: user totals (overall, by tier, active in the last 24 h),
            total commands run and dashboard uptime in seconds
    """
    try:
        since = datetime.now(timezone.utc) - timedelta(hours=24)
        return {
            "users": {
                "total": await models.count_users(),
                "by_tier": await models.count_users_by_tier(),
                "active_24h": await models.count_active_users(since),
            },
            "total_commands": await models.get_stat(TOTAL_COMMANDS_STAT),
            "uptime_seconds": int(time.time() - request.app.state.started_at),
        }
    except Exception as e:
        logger.error(f"Failed to collect stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to collect stats")

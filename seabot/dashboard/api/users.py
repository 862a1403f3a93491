"""User management API endpoints."""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ...db import models
from ...db.models import Tier, User
from ...errors import UserNotFound
from ...identity import normalize_jid
from ..auth import require_admin

logger = logging.getLogger("seabot.dashboard.users")

router = APIRouter(prefix="/api/users", tags=["users"])
limits_router = APIRouter(prefix="/api/limits", tags=["limits"])


# Request Models
class UpdateUserRequest(BaseModel):
    """Field-level user update. Omitted fields are left unchanged."""
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    tier: Optional[Tier] = Field(None, description="owner, premium or standard")
    balance: Optional[int] = Field(None, ge=0)
    bonus_credits: Optional[int] = Field(None, ge=0)
    daily_limit: Optional[int] = Field(None, ge=0)
    limit_used: Optional[int] = Field(None, ge=0)


class LinkUserRequest(BaseModel):
    """Attach another identifier to a user."""
    secondary_id: str = Field(..., min_length=1, description="JID or LID to link")


async def _get_or_404(primary_id: str) -> User:
    try:
        identifier = normalize_jid(primary_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    user = await models.find_user(identifier)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found: {identifier}")
    return user


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    tier: Optional[Tier] = Query(None),
    admin_auth: Dict = Depends(require_admin),
):
    """
    Paginated user list, most recently active first.

    Returns:
        dict: users, total, page, limit
    """
    users = await models.list_users(limit=limit, offset=(page - 1) * limit, tier=tier)
    total = await models.count_users(tier)
    return {
        "users": [u.to_dict() for u in users],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/export")
async def export_users(admin_auth: Dict = Depends(require_admin)):
    """Every user as JSON, for backups."""
    total = await models.count_users()
    users = await models.list_users(limit=max(total, 1), offset=0)
    return {"count": len(users), "users": [u.to_dict() for u in users]}


@router.get("/{primary_id}")
async def get_user(primary_id: str, admin_auth: Dict = Depends(require_admin)):
    user = await _get_or_404(primary_id)
    return user.to_dict()


@router.patch("/{primary_id}")
async def update_user(
    primary_id: str,
    request: UpdateUserRequest,
    admin_auth: Dict = Depends(require_admin),
):
    """
    Update selected fields of a user.

    Raises:
        HTTPException: 400 with no fields, 404 if the user does not exist
    """
    fields = request.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    user = await _get_or_404(primary_id)
    updated = await models.update_user(user.id, **fields)
    if updated is None:
        raise HTTPException(status_code=404, detail="User disappeared during update")
    logger.info(f"Dashboard updated {updated.primary_id}: {', '.join(sorted(fields))}")
    return updated.to_dict()


@router.delete("/{primary_id}")
async def delete_user(primary_id: str, admin_auth: Dict = Depends(require_admin)):
    user = await _get_or_404(primary_id)
    await models.delete_user(user.id)
    logger.info(f"Dashboard deleted user {user.primary_id}")
    return {"deleted": user.primary_id}


@router.post("/{primary_id}/link")
async def link_user(
    primary_id: str,
    request: LinkUserRequest,
    http_request: Request,
    admin_auth: Dict = Depends(require_admin),
):
    """Link `secondary_id` to the user owning `primary_id`, merging accounts if needed."""
    resolver = http_request.app.state.resolver
    try:
        linked = await resolver.link(primary_id, request.secondary_id)
    except UserNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return linked.to_dict()


@limits_router.post("/reset")
async def reset_limits(request: Request, admin_auth: Dict = Depends(require_admin)):
    """Reset the daily usage of every standard-tier user now."""
    try:
        count = await request.app.state.ledger.reset_daily_limits()
    except Exception as e:
        logger.error(f"Failed to reset limits: {e}")
        raise HTTPException(status_code=500, detail="Failed to reset limits")
    return {"reset": count}

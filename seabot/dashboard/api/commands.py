"""Command settings API endpoints."""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...db import models
from ..auth import require_admin

logger = logging.getLogger("seabot.dashboard.commands")

router = APIRouter(prefix="/api/commands", tags=["commands"])


class UpdateCommandRequest(BaseModel):
    """Editable command settings. Omitted fields are left unchanged."""
    description: Optional[str] = Field(None, max_length=200)
    category: Optional[str] = Field(None, min_length=1, max_length=40)
    is_active: Optional[bool] = None
    owner_only: Optional[bool] = None
    cooldown_seconds: Optional[int] = Field(None, ge=0, le=3600)


@router.get("")
async def list_commands(admin_auth: Dict = Depends(require_admin)):
    commands = await models.get_commands()
    return {"count": len(commands), "commands": [c.to_dict() for c in commands]}


@router.patch("/{name}")
async def update_command(
    name: str,
    request: UpdateCommandRequest,
    admin_auth: Dict = Depends(require_admin),
):
    """
    Update a command's stored settings.

    The running bot picks the change up on its next settings reload.
    """
    fields = request.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    updated = await models.update_command(name.lower(), **fields)
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Command not found: {name}")
    logger.info(f"Dashboard updated command '{updated.name}': {', '.join(sorted(fields))}")
    return updated.to_dict()

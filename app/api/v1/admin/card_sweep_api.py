"""
Card Sweep Management API Endpoints

Admin endpoints for monitoring and triggering the daily card deactivation
sweep.
"""
from datetime import datetime
from typing import List, Optional
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db
from app.core.permission_checker import require_admin
from app.core.sweep_log import SweepTrigger
from app.models.user_model import User
from app.task.card_sweep import CardDeactivationSweep

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/card-sweep", tags=["Card Sweep"])


class SweepRunResponse(BaseModel):
    id: uuid.UUID
    trigger: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    scanned: int
    deactivated: int
    failed: int

    model_config = {"from_attributes": True}


def get_card_sweep(request: Request) -> CardDeactivationSweep:
    sweep = getattr(request.app.state, "card_sweep", None)
    if sweep is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Card sweep is not initialized"
        )
    return sweep


@router.get("/status")
async def get_sweep_status(
    current_user: User = Depends(require_admin()),
    sweep: CardDeactivationSweep = Depends(get_card_sweep)
):
    """
    Current sweep status.

    **Requires**: Admin role
    """
    sweep_status = sweep.get_status()
    return {
        "status": "active" if sweep_status["running"] else "stopped",
        **sweep_status,
    }


@router.post("/trigger", response_model=SweepRunResponse)
async def trigger_sweep(
    current_user: User = Depends(require_admin()),
    sweep: CardDeactivationSweep = Depends(get_card_sweep)
):
    """
    Run the deactivation sweep immediately.

    **Requires**: Admin role

    Safe to repeat: a second run on the same day finds nothing left to
    deactivate.
    """
    try:
        run = await sweep.run_once(trigger=SweepTrigger.MANUAL)
    except Exception as e:
        logger.error(f"Manual card sweep failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run card sweep"
        )

    logger.info(
        f"Manual card sweep by {current_user.username}: "
        f"{run.deactivated} deactivated, {run.failed} failed"
    )
    return run


@router.get("/runs", response_model=List[SweepRunResponse])
async def list_sweep_runs(
    current_user: User = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
    sweep: CardDeactivationSweep = Depends(get_card_sweep),
    limit: int = Query(default=20, ge=1, le=100, description="Number of runs to return")
):
    """
    Most recent sweep runs, newest first.

    **Requires**: Admin role
    """
    return await sweep.get_recent_runs(db, limit=limit)

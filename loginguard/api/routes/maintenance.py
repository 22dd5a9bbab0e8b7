from fastapi import APIRouter, Depends, Query
from loginguard.api.dependencies import get_login_guard, get_sweeper
from loginguard.core.logger import logger
from loginguard.schemas.attempt import AttemptStats
from loginguard.schemas.guard import ActiveThreat
from loginguard.schemas.maintenance import SweepReport
from loginguard.security.login_guard import LoginGuard
from loginguard.services.retention_sweeper import RetentionSweeper

router = APIRouter(prefix="/api/security", tags=["maintenance"])


@router.post("/maintenance/sweep", response_model=SweepReport)
async def run_sweep(sweeper: RetentionSweeper = Depends(get_sweeper)):
    report = sweeper.run()
    logger.info("retention_sweep_completed", **report.model_dump())
    return report


@router.get("/threats", response_model=list[ActiveThreat])
async def get_active_threats(
    limit: int = Query(100, ge=1, le=1000),
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.active_threats(limit=limit)


@router.get("/stats/attempts", response_model=list[AttemptStats])
async def get_attempt_stats(
    hours: int = Query(24, ge=1, le=168),
    limit: int = Query(100, ge=1, le=1000),
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.tracker.attempt_stats(hours=hours, limit=limit)

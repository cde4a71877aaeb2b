"""
Manual triggers for the scheduled jobs (admin only).

- POST /event-status/run: Run one lifecycle tick now
- POST /due-dates/run: Run the due-date check now

Both run the same code path as the timers and return the tick report.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from app.core.auth import AuthenticatedUser, require_admin
from app.services.scheduler import LifecycleScheduler
from studio_shared.schemas.jobs import DueDateReport, LifecycleTickReport

router = APIRouter()
log = structlog.get_logger()


def get_scheduler(request: Request) -> LifecycleScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialised")
    return scheduler


@router.post("/event-status/run", response_model=LifecycleTickReport)
async def run_event_status_update(
    auth: AuthenticatedUser = Depends(require_admin),
    scheduler: LifecycleScheduler = Depends(get_scheduler),
):
    log.info("jobs.manual_trigger", job="event-status", user_id=str(auth.user_id))
    return await scheduler.run_lifecycle_tick()


@router.post("/due-dates/run", response_model=DueDateReport)
async def run_due_date_check(
    auth: AuthenticatedUser = Depends(require_admin),
    scheduler: LifecycleScheduler = Depends(get_scheduler),
):
    log.info("jobs.manual_trigger", job="due-dates", user_id=str(auth.user_id))
    return await scheduler.run_due_date_check()

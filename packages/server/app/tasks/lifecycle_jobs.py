"""
ARQ background tasks: the lifecycle tick, the daily due-date check and the
daily notification purge, for deployments that run the scheduler in a worker
process instead of inside the web server.

Run with ``arq app.tasks.lifecycle_jobs.WorkerSettings``. Set
``STUDIO_SCHEDULER_ENABLED=false`` on the web process so the ticks are not
driven twice.
"""

from __future__ import annotations

import structlog
from arq import cron
from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.database import async_session_factory
from app.core.logging import configure_logging
from app.core.realtime import build_realtime_channel, manager
from app.core.redis import close_redis
from app.services.scheduler import build_scheduler

log = structlog.get_logger()
settings = get_settings()


async def startup(ctx: dict) -> None:
    configure_logging(settings.log_level, settings.log_format)
    realtime = build_realtime_channel(settings.realtime_backend, manager)
    ctx["scheduler"] = build_scheduler(async_session_factory, realtime, settings=settings)
    log.info("worker.started", backend=settings.realtime_backend)


async def shutdown(ctx: dict) -> None:
    await close_redis()
    log.info("worker.stopped")


async def run_lifecycle_tick(ctx: dict) -> dict:
    """Advance client events whose shoot window started or ended."""
    report = await ctx["scheduler"].run_lifecycle_tick()
    return report.model_dump(mode="json")


async def run_due_date_check(ctx: dict) -> dict:
    """Notify about deadlines reaching the threshold."""
    report = await ctx["scheduler"].run_due_date_check()
    return report.model_dump(mode="json")


async def run_daily_maintenance(ctx: dict) -> dict:
    report = await ctx["scheduler"].run_daily_maintenance()
    return report.model_dump(mode="json")


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    on_startup = startup
    on_shutdown = shutdown
    functions = [run_lifecycle_tick, run_due_date_check, run_daily_maintenance]
    cron_jobs = [
        # Every minute
        cron(run_lifecycle_tick, second=0, unique=True),
        # Daily
        cron(run_due_date_check, hour=settings.due_date_check_hour, minute=0, unique=True),
        cron(run_daily_maintenance, hour=settings.due_date_check_hour, minute=5, unique=True),
    ]

"""
Lifecycle scheduler: the periodic driver of the client event lifecycle.

One instance is built at process start with its collaborators injected
(session factory, notification dispatcher, real-time channel, clock). Ticks
can be run directly, which is what the manual-trigger endpoints, the ARQ
worker and the tests do, or from the in-process timers started by
``start()``.

For every event that transitions, in this order:

1. conditional status write (skip everything if another writer won)
2. audit entry
3. status update broadcast to the tenant
4. admin notifications, plus "assign an editor" todos when a finished
   shoot has no editor

Steps 2-4 run under a per-event timeout and their failures never stop the
rest of the tick.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Optional, TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings, get_settings
from app.core.locks import TickLease
from app.core.realtime import RealtimeChannel
from app.models.base import as_utc, utcnow
from app.models.client_event import ClientEvent
from app.models.notification import Notification
from app.services import notifications as notification_store
from app.services.audit import EVENT_STATUS_CHANGED, record_audit, status_change
from app.services.due_dates import DueDateChecker
from app.services.lifecycle import (
    CatalogIncompleteError,
    StatusCatalog,
    claim_transition,
    decide_transition,
    find_shoot_end_candidates,
    find_shoot_start_candidates,
    resolve_catalog,
)
from app.services.notifications import NotificationDispatcher
from app.services.todos import ensure_editor_assignment_todos
from app.services.users import get_admin_user_ids, get_display_names
from studio_shared.schemas.common import SYSTEM_ACTOR, DeliveryStatusCode, NotificationType
from studio_shared.schemas.jobs import (
    DueDateReport,
    LifecycleTickReport,
    MaintenanceReport,
    TransitionRecord,
)
from studio_shared.schemas.notifications import (
    AssignEditorNeededPayload,
    ShootInProgressPayload,
    StatusUpdateMessage,
)

log = structlog.get_logger()

R = TypeVar("R")

LIFECYCLE_LEASE = "lifecycle"
DUE_DATE_LEASE = "due-dates"
TRIGGER = "scheduled-job"

SHOOT_STARTED_TITLE = "Shoot Started"
EDITOR_NEEDED_TITLE = "Editor Assignment Required"


def seconds_until_hour(now: datetime, hour: int) -> float:
    """Seconds from ``now`` until the next occurrence of ``hour``:00 UTC."""
    now = as_utc(now)
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class LifecycleScheduler:
    """Owns the lifecycle and due-date ticks and their timers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: NotificationDispatcher,
        realtime: RealtimeChannel,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        lease: Optional[TickLease] = None,
        due_date_checker: Optional[DueDateChecker] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._realtime = realtime
        self._clock = clock
        if lease is None and self.settings.tick_lease_enabled:
            lease = TickLease(self.settings.tick_lease_ttl_seconds)
        self._lease = lease
        self.due_date_checker = due_date_checker or DueDateChecker(
            session_factory,
            dispatcher,
            threshold_days=self.settings.due_date_threshold_days,
            match_mode=self.settings.due_date_match_mode,
        )
        self._lifecycle_lock = asyncio.Lock()
        self._daily_lock = asyncio.Lock()
        self._tasks: list[asyncio.Task] = []

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._lifecycle_loop(), name="lifecycle-tick"),
            asyncio.create_task(self._daily_loop(), name="due-date-check"),
        ]
        log.info(
            "scheduler.started",
            tick_seconds=self.settings.lifecycle_tick_seconds,
            due_date_hour=self.settings.due_date_check_hour,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            log.info("scheduler.stopped")

    async def _lifecycle_loop(self) -> None:
        while True:
            try:
                await self.run_lifecycle_tick()
            except Exception as exc:
                log.error("lifecycle.tick_failed", error=str(exc))
            await asyncio.sleep(self.settings.lifecycle_tick_seconds)

    async def _daily_loop(self) -> None:
        while True:
            await asyncio.sleep(seconds_until_hour(self._clock(), self.settings.due_date_check_hour))
            try:
                await self.run_due_date_check()
            except Exception as exc:
                log.error("due_dates.tick_failed", error=str(exc))
            try:
                await self.run_daily_maintenance()
            except Exception as exc:
                log.error("maintenance.tick_failed", error=str(exc))

    async def _with_lease(
        self,
        name: str,
        run: Callable[[], Awaitable[R]],
        skipped: Callable[[str], R],
    ) -> R:
        """Run ``run`` while holding the named lease, when leases are enabled."""
        if self._lease is None:
            return await run()
        try:
            token = await self._lease.acquire(name)
        except Exception as exc:
            log.warning("scheduler.lease_unavailable", lease=name, error=str(exc))
            return skipped("lease_unavailable")
        if token is None:
            log.info("scheduler.lease_held", lease=name)
            return skipped("lease_held")
        try:
            return await run()
        finally:
            try:
                await self._lease.release(name, token)
            except Exception as exc:
                log.warning("scheduler.lease_release_failed", lease=name, error=str(exc))

    # ------------------------------------------------------------------
    # Lifecycle tick
    # ------------------------------------------------------------------

    async def run_lifecycle_tick(self, now: Optional[datetime] = None) -> LifecycleTickReport:
        """Run one lifecycle tick. Never overlaps with another tick of this scheduler."""
        now = as_utc(now) if now else self._clock()
        async with self._lifecycle_lock:
            return await self._with_lease(
                LIFECYCLE_LEASE,
                lambda: self._lifecycle_tick(now),
                lambda reason: LifecycleTickReport(
                    started_at=now, finished_at=now, skipped_reason=reason
                ),
            )

    async def _lifecycle_tick(self, now: datetime) -> LifecycleTickReport:
        report = LifecycleTickReport(started_at=now)

        # Both candidate sets are read before any transition is applied
        async with self._session_factory() as session:
            try:
                catalog = await resolve_catalog(session)
            except CatalogIncompleteError as exc:
                log.error("lifecycle.catalog_incomplete", missing=exc.missing)
                report.skipped_reason = "catalog_incomplete"
                report.finished_at = self._clock()
                return report
            starting = await find_shoot_start_candidates(session, catalog, now)
            ending = await find_shoot_end_candidates(session, catalog, now)

        plan = [
            (event, DeliveryStatusCode.SCHEDULED) for event in starting
        ] + [
            (event, DeliveryStatusCode.SHOOT_IN_PROGRESS) for event in ending
        ]

        for event, current in plan:
            target = decide_transition(current, now, event.from_datetime, event.to_datetime)
            if target is None:
                continue

            try:
                async with self._session_factory() as session:
                    claimed = await claim_transition(
                        session, event.id, catalog.id_of(current), catalog.id_of(target), now
                    )
                    await session.commit()
            except Exception as exc:
                log.error(
                    "lifecycle.status_write_failed",
                    event_id=str(event.id),
                    to_status=target.value,
                    error=str(exc),
                )
                report.failed_event_ids.append(event.id)
                continue

            if not claimed:
                log.info(
                    "lifecycle.transition_already_applied",
                    event_id=str(event.id),
                    to_status=target.value,
                )
                continue

            record = TransitionRecord(
                event_id=event.id,
                tenant_id=event.tenant_id,
                from_status=current,
                to_status=target,
            )
            try:
                await asyncio.wait_for(
                    self._side_effects(event, catalog, current, target, now, record),
                    timeout=self.settings.event_side_effect_timeout_seconds,
                )
            except asyncio.TimeoutError:
                record.error = "side effects timed out"
                log.warning(
                    "lifecycle.side_effects_timeout",
                    event_id=str(event.id),
                    timeout=self.settings.event_side_effect_timeout_seconds,
                )
            except Exception as exc:
                record.error = str(exc)
                log.error(
                    "lifecycle.side_effects_failed",
                    event_id=str(event.id),
                    to_status=target.value,
                    error=str(exc),
                )

            if record.error:
                report.failed_event_ids.append(event.id)
            report.transitions.append(record)
            log.info(
                "lifecycle.event_transitioned",
                event_id=str(event.id),
                tenant_id=str(event.tenant_id),
                from_status=current.value,
                to_status=target.value,
            )

        report.finished_at = self._clock()
        log.info(
            "lifecycle.tick_completed",
            in_progress=report.moved_to_in_progress,
            awaiting_editing=report.moved_to_awaiting_editing,
            failed=len(report.failed_event_ids),
        )
        return report

    async def _side_effects(
        self,
        event: ClientEvent,
        catalog: StatusCatalog,
        current: DeliveryStatusCode,
        target: DeliveryStatusCode,
        now: datetime,
        record: TransitionRecord,
    ) -> None:
        old_id = catalog.id_of(current)
        new_id = catalog.id_of(target)

        await record_audit(
            self._session_factory,
            action=EVENT_STATUS_CHANGED,
            entity_type="client_event",
            entity_id=event.id,
            performed_by=SYSTEM_ACTOR,
            tenant_id=event.tenant_id,
            changes=status_change(old_id, new_id),
            details={
                "project_id": str(event.project_id),
                "from_status": current.value,
                "to_status": target.value,
                "from_datetime": as_utc(event.from_datetime).isoformat(),
                "to_datetime": as_utc(event.to_datetime).isoformat(),
                "trigger": TRIGGER,
            },
            timestamp=now,
        )

        await self._realtime.broadcast(
            event.tenant_id,
            StatusUpdateMessage(
                event_id=event.id,
                project_id=event.project_id,
                status_id=new_id,
                status_code=target,
                timestamp=now,
            ),
        )

        if target == DeliveryStatusCode.SHOOT_IN_PROGRESS:
            await self._notify_shoot_started(event, record)
        elif target == DeliveryStatusCode.AWAITING_EDITING and event.album_editor_id is None:
            await self._request_editor(event, record)

    async def _notify_shoot_started(self, event: ClientEvent, record: TransitionRecord) -> None:
        async with self._session_factory() as session:
            event_name, project_name = await get_display_names(session, event)
            admin_ids = await get_admin_user_ids(session, event.tenant_id)

        sent: list[Notification] = []
        try:
            await self._dispatcher.create(
                admin_ids,
                event.tenant_id,
                NotificationType.SHOOT_IN_PROGRESS,
                SHOOT_STARTED_TITLE,
                f"{event_name} shoot is now in progress for project {project_name}",
                payload=ShootInProgressPayload(
                    event_id=event.id,
                    project_id=event.project_id,
                    event_name=event_name,
                    project_name=project_name,
                ),
                action_url="/projects",
                collect_into=sent,
            )
        finally:
            record.notifications_created += len(sent)

    async def _request_editor(self, event: ClientEvent, record: TransitionRecord) -> None:
        async with self._session_factory() as session:
            event_name, project_name = await get_display_names(session, event)
            admin_ids = await get_admin_user_ids(session, event.tenant_id)

        sent: list[Notification] = []
        try:
            await self._dispatcher.create(
                admin_ids,
                event.tenant_id,
                NotificationType.ASSIGN_EDITOR_NEEDED,
                EDITOR_NEEDED_TITLE,
                f"Please assign an editor to {event_name} in project {project_name}",
                payload=AssignEditorNeededPayload(
                    event_id=event.id,
                    project_id=event.project_id,
                    event_name=event_name,
                    project_name=project_name,
                ),
                action_url="/projects",
                collect_into=sent,
            )
        finally:
            record.notifications_created += len(sent)

        async with self._session_factory() as session:
            todos = await ensure_editor_assignment_todos(
                session,
                tenant_id=event.tenant_id,
                event_id=event.id,
                project_id=event.project_id,
                event_name=event_name,
                project_name=project_name,
                admin_ids=admin_ids,
            )
        record.todos_created += len(todos)

    # ------------------------------------------------------------------
    # Daily jobs
    # ------------------------------------------------------------------

    async def run_due_date_check(self, now: Optional[datetime] = None) -> DueDateReport:
        now = as_utc(now) if now else self._clock()
        async with self._daily_lock:
            return await self._with_lease(
                DUE_DATE_LEASE,
                lambda: self.due_date_checker.run(now),
                lambda reason: DueDateReport(checked_at=now, skipped_reason=reason),
            )

    async def run_daily_maintenance(self, now: Optional[datetime] = None) -> MaintenanceReport:
        """Purge notifications read longer ago than the retention period."""
        now = as_utc(now) if now else self._clock()
        async with self._session_factory() as session:
            purged = await notification_store.purge_read_notifications(
                session, now, self.settings.notification_retention_days
            )
            await session.commit()
        log.info("maintenance.notifications_purged", count=purged)
        return MaintenanceReport(ran_at=now, notifications_purged=purged)


def build_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    realtime: RealtimeChannel,
    *,
    settings: Optional[Settings] = None,
    clock: Callable[[], datetime] = utcnow,
) -> LifecycleScheduler:
    """Wire a scheduler and its dispatcher from settings."""
    settings = settings or get_settings()
    dispatcher = NotificationDispatcher(
        session_factory,
        realtime,
        dedup_window_seconds=settings.notification_dedup_window_seconds,
        clock=clock,
    )
    return LifecycleScheduler(
        session_factory,
        dispatcher,
        realtime,
        settings=settings,
        clock=clock,
    )

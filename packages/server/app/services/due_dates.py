"""
Due-date threshold checks.

Once a day, look at three deadline fields and notify when a deadline is the
configured number of days away:

- client_events.editing_due_date       admins + the assigned editor
- client_events.album_design_due_date  admins + the assigned designer
- projects.delivery_due_date           admins

``days_until`` is the ceiling of the remaining time in whole days. In exact
mode (the default) only ``days_until == threshold`` fires, so a missed daily
run skips that reminder for good. Range mode fires for any
``0 < days_until <= threshold`` and relies on a notification dedupe key so
each recipient hears about a given deadline once.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.models.base import as_utc, utcnow
from app.models.client_event import ClientEvent
from app.models.project import Project
from app.services.notifications import NotificationDispatcher
from app.services.users import (
    UNKNOWN_PROJECT,
    get_admin_user_ids,
    get_display_names,
    get_team_member_user_id,
)
from studio_shared.schemas.common import DueDateMatchMode, NotificationType
from studio_shared.schemas.jobs import DueDateReport
from studio_shared.schemas.notifications import DueDateApproachingPayload

log = structlog.get_logger()

DAY = timedelta(days=1)


def days_until(due: datetime, now: datetime) -> int:
    """Whole days until ``due``, rounded up."""
    return math.ceil((as_utc(due) - as_utc(now)) / DAY)


def format_due_date(due: datetime) -> str:
    """E.g. ``Mar 7, 2026``."""
    due = as_utc(due)
    return f"{due:%b} {due.day}, {due.year}"


def due_dedupe_key(due_field: str, entity_id: uuid.UUID, due: datetime) -> str:
    return f"due:{due_field}:{entity_id}:{as_utc(due).isoformat()}"


@dataclass(frozen=True)
class _EventDueRule:
    due_field: str
    assignee_field: str
    admin_title: str
    admin_message: str
    assignee_title: str
    assignee_message: str


EDITING_RULE = _EventDueRule(
    due_field="editing_due_date",
    assignee_field="album_editor_id",
    admin_title="⏰ Editing Due Date Approaching",
    admin_message='Editing for "{event}" in project "{project}" is due on {due} (in {days} days)',
    assignee_title="⏰ Your Editing Deadline Approaching",
    assignee_message=(
        'Your editing work for "{event}" in project "{project}" is due on {due} (in {days} days)'
    ),
)

ALBUM_DESIGN_RULE = _EventDueRule(
    due_field="album_design_due_date",
    assignee_field="album_designer_id",
    admin_title="⏰ Album Design Due Date Approaching",
    admin_message='Album design for "{event}" in project "{project}" is due on {due} (in {days} days)',
    assignee_title="⏰ Your Album Design Deadline Approaching",
    assignee_message=(
        'Your album design work for "{event}" in project "{project}" '
        "is due on {due} (in {days} days)"
    ),
)

PROJECT_DELIVERY_TITLE = "⏰ Project Delivery Due Date Approaching"
PROJECT_DELIVERY_MESSAGE = 'Project "{project}" delivery is due on {due} (in {days} days)'


class DueDateChecker:
    """Runs the three deadline scans against one notification dispatcher."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: NotificationDispatcher,
        *,
        threshold_days: int = 2,
        match_mode: DueDateMatchMode | str = DueDateMatchMode.EXACT,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self.threshold_days = threshold_days
        self.match_mode = DueDateMatchMode(match_mode)

    def should_notify(self, days: int) -> bool:
        if self.match_mode == DueDateMatchMode.RANGE:
            return 0 < days <= self.threshold_days
        return days == self.threshold_days

    def _dedupe_key(self, due_field: str, entity_id: uuid.UUID, due: datetime) -> Optional[str]:
        if self.match_mode == DueDateMatchMode.RANGE:
            return due_dedupe_key(due_field, entity_id, due)
        return None

    def _window(self, now: datetime) -> tuple[datetime, datetime]:
        # ceil(x) <= threshold  <=>  x <= threshold, and ceil(x) > 0  <=>  x > 0
        return now, now + self.threshold_days * DAY

    async def run(self, now: datetime | None = None) -> DueDateReport:
        """Run every scan. A failing scan is logged and the others still run."""
        now = as_utc(now) if now else utcnow()
        report = DueDateReport(checked_at=now)

        scans = [
            ("editing", self.check_editing_due_dates),
            ("album_design", self.check_album_design_due_dates),
            ("project_delivery", self.check_project_delivery_due_dates),
        ]
        for name, scan in scans:
            try:
                entities, created = await scan(now)
            except Exception as exc:
                log.error("due_dates.check_failed", check=name, error=str(exc))
                report.failed_checks.append(name)
                continue
            setattr(report, f"{name}_notified", entities)
            report.notifications_created += created

        log.info(
            "due_dates.check_completed",
            editing=report.editing_notified,
            album_design=report.album_design_notified,
            project_delivery=report.project_delivery_notified,
            notifications=report.notifications_created,
            failed=report.failed_checks,
        )
        return report

    async def check_editing_due_dates(self, now: datetime) -> tuple[int, int]:
        return await self.check_event_due_dates(EDITING_RULE, now)

    async def check_album_design_due_dates(self, now: datetime) -> tuple[int, int]:
        return await self.check_event_due_dates(ALBUM_DESIGN_RULE, now)

    async def check_event_due_dates(self, rule: _EventDueRule, now: datetime) -> tuple[int, int]:
        """Scan one client event deadline field. Returns (events notified, notifications created)."""
        column = getattr(ClientEvent, rule.due_field)
        lower, upper = self._window(now)
        entities = 0
        created = 0

        async with self._session_factory() as session:
            result = await session.execute(
                select(ClientEvent)
                .where(column.is_not(None), column > lower, column <= upper)
                .order_by(column, ClientEvent.id)
            )
            events = list(result.scalars().all())

            for event in events:
                due = getattr(event, rule.due_field)
                days = days_until(due, now)
                if not self.should_notify(days):
                    continue

                event_name, project_name = await get_display_names(session, event)
                admin_ids = await get_admin_user_ids(session, event.tenant_id)
                assignee_id = await get_team_member_user_id(
                    session, getattr(event, rule.assignee_field)
                )

                text = {
                    "event": event_name,
                    "project": project_name,
                    "due": format_due_date(due),
                    "days": days,
                }
                payload = DueDateApproachingPayload(
                    entity_type="client_event",
                    entity_id=event.id,
                    due_field=rule.due_field,
                    due_date=as_utc(due),
                    days_remaining=days,
                )
                dedupe_key = self._dedupe_key(rule.due_field, event.id, due)
                action_url = f"/projects/{event.project_id}"

                sent = await self._dispatcher.create(
                    admin_ids,
                    event.tenant_id,
                    NotificationType.DUE_DATE_APPROACHING,
                    rule.admin_title,
                    rule.admin_message.format(**text),
                    payload=payload,
                    action_url=action_url,
                    dedupe_key=dedupe_key,
                )
                created += len(sent)

                if assignee_id is not None:
                    sent = await self._dispatcher.create(
                        assignee_id,
                        event.tenant_id,
                        NotificationType.DUE_DATE_APPROACHING,
                        rule.assignee_title,
                        rule.assignee_message.format(**text),
                        payload=payload,
                        action_url=action_url,
                        dedupe_key=dedupe_key,
                    )
                    created += len(sent)

                entities += 1
                log.info(
                    "due_dates.event_notified",
                    due_field=rule.due_field,
                    event_id=str(event.id),
                    days=days,
                )

        return entities, created

    async def check_project_delivery_due_dates(self, now: datetime) -> tuple[int, int]:
        """Scan project delivery deadlines. Returns (projects notified, notifications created)."""
        lower, upper = self._window(now)
        entities = 0
        created = 0

        async with self._session_factory() as session:
            result = await session.execute(
                select(Project)
                .where(
                    Project.delivery_due_date.is_not(None),
                    Project.delivery_due_date > lower,
                    Project.delivery_due_date <= upper,
                )
                .order_by(Project.delivery_due_date, Project.id)
            )
            projects = list(result.scalars().all())

            for project in projects:
                due = project.delivery_due_date
                days = days_until(due, now)
                if not self.should_notify(days):
                    continue

                admin_ids = await get_admin_user_ids(session, project.tenant_id)
                sent = await self._dispatcher.create(
                    admin_ids,
                    project.tenant_id,
                    NotificationType.DUE_DATE_APPROACHING,
                    PROJECT_DELIVERY_TITLE,
                    PROJECT_DELIVERY_MESSAGE.format(
                        project=project.name or UNKNOWN_PROJECT,
                        due=format_due_date(due),
                        days=days,
                    ),
                    payload=DueDateApproachingPayload(
                        entity_type="project",
                        entity_id=project.id,
                        due_field="delivery_due_date",
                        due_date=as_utc(due),
                        days_remaining=days,
                    ),
                    action_url=f"/projects/{project.id}",
                    dedupe_key=self._dedupe_key("delivery_due_date", project.id, due),
                )
                created += len(sent)
                entities += 1
                log.info("due_dates.project_notified", project_id=str(project.id), days=days)

        return entities, created

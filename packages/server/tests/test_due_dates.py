"""
Tests for the daily due-date checks.

Covers:
- Day arithmetic and date formatting
- Exact-threshold matching for event and project deadlines
- Recipients: admins plus the assigned team member when they can log in
- Range mode with one reminder per recipient and deadline
- A failing scan does not stop the others
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.models.notification import Notification
from app.models.project import Project
from app.services.due_dates import (
    DueDateChecker,
    days_until,
    due_dedupe_key,
    format_due_date,
)
from studio_shared.schemas.common import DeliveryStatusCode, DueDateMatchMode, NotificationType

S = DeliveryStatusCode
NOW = datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)
DAY = timedelta(days=1)


@pytest.fixture
def checker(session_factory, dispatcher) -> DueDateChecker:
    return DueDateChecker(session_factory, dispatcher, threshold_days=2)


@pytest.fixture
def make_shot_event(make_event):
    """A client event whose shoot is over, with the given deadline fields."""

    async def _make(**fields):
        return await make_event(S.AWAITING_EDITING, NOW - 3 * DAY, NOW - 3 * DAY + timedelta(hours=4), **fields)

    return _make


@pytest.fixture
def set_delivery_due(session_factory, studio):
    async def _set(due):
        async with session_factory() as session:
            project = await session.get(Project, studio.project_id)
            project.delivery_due_date = due
            session.add(project)
            await session.commit()

    return _set


# ---------------------------------------------------------------------------
# Unit tests
# ---------------------------------------------------------------------------


class TestDayArithmetic:
    @pytest.mark.parametrize(
        "due, expected",
        [
            (NOW + 2 * DAY, 2),
            (NOW + timedelta(days=1, hours=12), 2),  # rounded up
            (NOW + timedelta(minutes=1), 1),
            (NOW, 0),
            (NOW - timedelta(hours=1), 0),
        ],
    )
    def test_days_until(self, due, expected):
        assert days_until(due, NOW) == expected

    def test_naive_due_is_utc(self):
        assert days_until((NOW + 2 * DAY).replace(tzinfo=None), NOW) == 2

    def test_format_due_date(self):
        assert format_due_date(datetime(2026, 3, 7, 9, 30, tzinfo=timezone.utc)) == "Mar 7, 2026"

    def test_dedupe_key_names_field_entity_and_date(self, studio):
        key = due_dedupe_key("editing_due_date", studio.project_id, NOW)
        assert key == f"due:editing_due_date:{studio.project_id}:2026-03-05T12:00:00+00:00"

    @pytest.mark.parametrize("days, exact, ranged", [(0, False, False), (1, False, True), (2, True, True), (3, False, False)])
    def test_should_notify(self, session_factory, dispatcher, days, exact, ranged):
        assert DueDateChecker(session_factory, dispatcher, threshold_days=2).should_notify(days) is exact
        assert (
            DueDateChecker(
                session_factory, dispatcher, threshold_days=2, match_mode=DueDateMatchMode.RANGE
            ).should_notify(days)
            is ranged
        )


# ---------------------------------------------------------------------------
# Integration tests: scans
# ---------------------------------------------------------------------------


class TestEditingDueDates:
    @pytest.mark.asyncio
    async def test_exact_threshold_notifies_admins_and_editor(
        self, checker, make_shot_event, studio, fetch_all
    ):
        await make_shot_event(editing_due_date=NOW + 2 * DAY, album_editor_id=studio.editor_member_id)

        report = await checker.run(NOW)

        assert report.editing_notified == 1
        assert report.notifications_created == 3
        notifications = await fetch_all(Notification)
        by_user = {n.user_id: n for n in notifications}
        assert set(by_user) == {*studio.admin_ids, studio.member_id}

        admin_note = by_user[studio.admin_ids[0]]
        assert admin_note.type == NotificationType.DUE_DATE_APPROACHING.value
        assert admin_note.title == "⏰ Editing Due Date Approaching"
        assert admin_note.message == (
            'Editing for "Wedding Ceremony" in project "Smith Wedding" is due on Mar 7, 2026 (in 2 days)'
        )
        assert admin_note.action_url == f"/projects/{studio.project_id}"
        assert admin_note.payload["days_remaining"] == 2
        assert admin_note.payload["due_field"] == "editing_due_date"

        editor_note = by_user[studio.member_id]
        assert editor_note.title == "⏰ Your Editing Deadline Approaching"
        assert editor_note.message.startswith('Your editing work for "Wedding Ceremony"')

    @pytest.mark.asyncio
    @pytest.mark.parametrize("due", [NOW + DAY, NOW + 3 * DAY, NOW - DAY])
    async def test_other_distances_are_ignored(self, checker, make_shot_event, fetch_all, due):
        await make_shot_event(editing_due_date=due)

        report = await checker.run(NOW)

        assert report.editing_notified == 0
        assert await fetch_all(Notification) == []

    @pytest.mark.asyncio
    async def test_member_without_login_is_not_notified(
        self, checker, make_shot_event, studio, fetch_all
    ):
        await make_shot_event(editing_due_date=NOW + 2 * DAY, album_editor_id=studio.offline_member_id)

        await checker.run(NOW)

        assert {n.user_id for n in await fetch_all(Notification)} == set(studio.admin_ids)

    @pytest.mark.asyncio
    async def test_missed_day_is_not_caught_up_in_exact_mode(self, checker, make_shot_event, fetch_all):
        await make_shot_event(editing_due_date=NOW + 2 * DAY)

        await checker.run(NOW + DAY)

        assert await fetch_all(Notification) == []


class TestAlbumDesignDueDates:
    @pytest.mark.asyncio
    async def test_designer_gets_own_wording(self, checker, make_shot_event, studio, fetch_all):
        await make_shot_event(
            album_design_due_date=NOW + 2 * DAY,
            album_designer_id=studio.editor_member_id,
        )

        report = await checker.run(NOW)

        assert report.album_design_notified == 1
        assert report.editing_notified == 0
        mine = await fetch_all(Notification, Notification.user_id == studio.member_id)
        assert [n.title for n in mine] == ["⏰ Your Album Design Deadline Approaching"]


class TestProjectDeliveryDueDates:
    @pytest.mark.asyncio
    async def test_admins_only(self, checker, set_delivery_due, studio, fetch_all):
        await set_delivery_due(NOW + 2 * DAY)

        report = await checker.run(NOW)

        assert report.project_delivery_notified == 1
        notifications = await fetch_all(Notification)
        assert {n.user_id for n in notifications} == set(studio.admin_ids)
        assert notifications[0].message == (
            'Project "Smith Wedding" delivery is due on Mar 7, 2026 (in 2 days)'
        )
        assert notifications[0].payload["entity_type"] == "project"


class TestRangeMode:
    @pytest.fixture
    def ranged(self, session_factory, dispatcher) -> DueDateChecker:
        return DueDateChecker(
            session_factory, dispatcher, threshold_days=2, match_mode=DueDateMatchMode.RANGE
        )

    @pytest.mark.asyncio
    async def test_inside_range_notifies(self, ranged, make_shot_event, studio, fetch_all):
        await make_shot_event(editing_due_date=NOW + DAY)

        report = await ranged.run(NOW)

        assert report.editing_notified == 1
        assert len(await fetch_all(Notification)) == len(studio.admin_ids)

    @pytest.mark.asyncio
    async def test_one_reminder_per_deadline(self, ranged, make_shot_event, clock, fetch_all):
        await make_shot_event(editing_due_date=NOW + 2 * DAY)

        first = await ranged.run(NOW)
        clock.advance(days=1)
        second = await ranged.run(NOW + DAY)

        assert first.notifications_created == 2
        assert second.notifications_created == 0
        assert len(await fetch_all(Notification)) == 2

    @pytest.mark.asyncio
    async def test_moved_deadline_is_a_new_reminder(
        self, ranged, make_shot_event, session_factory, clock, fetch_all
    ):
        event = await make_shot_event(editing_due_date=NOW + 2 * DAY)
        await ranged.run(NOW)

        async with session_factory() as session:
            stored = await session.get(type(event), event.id)
            stored.editing_due_date = NOW + timedelta(days=1, hours=12)
            session.add(stored)
            await session.commit()
        clock.advance(hours=1)
        report = await ranged.run(NOW + timedelta(hours=1))

        assert report.notifications_created == 2
        assert len(await fetch_all(Notification)) == 4


class TestErrorIsolation:
    @pytest.mark.asyncio
    async def test_failing_scan_is_reported(self, checker, set_delivery_due, monkeypatch):
        await set_delivery_due(NOW + 2 * DAY)

        async def broken(now):
            raise RuntimeError("query failed")

        monkeypatch.setattr(checker, "check_editing_due_dates", broken)

        report = await checker.run(NOW)

        assert report.failed_checks == ["editing"]
        assert report.project_delivery_notified == 1

    @pytest.mark.asyncio
    async def test_scheduler_runs_checker(self, scheduler, set_delivery_due):
        await set_delivery_due(NOW + 2 * DAY)

        report = await scheduler.run_due_date_check(NOW)

        assert report.skipped_reason is None
        assert report.project_delivery_notified == 1

"""
HTTP API tests: notification endpoints against the test database and the
admin-only job triggers against a stub scheduler.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.auth import create_jwt
from app.core.database import get_session
from app.main import app
from studio_shared.schemas.common import NotificationType
from studio_shared.schemas.jobs import DueDateReport, LifecycleTickReport

NOW = datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_session, None)


def auth_headers(user_id, tenant_id, role="member") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_jwt(user_id, tenant_id, role)}"}


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestNotificationEndpoints:
    @pytest.fixture
    async def inbox(self, dispatcher, studio, clock):
        """Three notifications for the first admin, one for the second."""
        user_id = studio.admin_ids[0]
        for i in range(3):
            await dispatcher.create(
                user_id,
                studio.tenant_id,
                NotificationType.SHOOT_IN_PROGRESS,
                "Shoot Started",
                f"shoot {i}",
                action_url="/projects",
            )
            clock.advance(seconds=1)
        await dispatcher.create(
            studio.admin_ids[1], studio.tenant_id, NotificationType.SHOOT_IN_PROGRESS, "Shoot Started", "other"
        )
        return auth_headers(user_id, studio.tenant_id, "admin")

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.get("/api/v1/notifications")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_list_and_count(self, client, inbox):
        response = await client.get("/api/v1/notifications", params={"limit": 2}, headers=inbox)
        assert response.status_code == 200
        items = response.json()["notifications"]
        assert [n["message"] for n in items] == ["shoot 2", "shoot 1"]
        assert items[0]["action_url"] == "/projects"
        assert items[0]["is_read"] is False

        response = await client.get("/api/v1/notifications/unread-count", headers=inbox)
        assert response.json() == {"count": 3}

    @pytest.mark.asyncio
    async def test_mark_read(self, client, inbox):
        items = (await client.get("/api/v1/notifications", headers=inbox)).json()["notifications"]

        response = await client.patch(f"/api/v1/notifications/{items[0]['id']}/read", headers=inbox)

        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert response.json()["read_at"] is not None
        count = await client.get("/api/v1/notifications/unread-count", headers=inbox)
        assert count.json() == {"count": 2}
        unread = await client.get("/api/v1/notifications", params={"unread_only": True}, headers=inbox)
        assert len(unread.json()["notifications"]) == 2

    @pytest.mark.asyncio
    async def test_cannot_touch_someone_elses(self, client, inbox, studio):
        other = auth_headers(studio.admin_ids[1], studio.tenant_id, "admin")
        theirs = (await client.get("/api/v1/notifications", headers=other)).json()["notifications"][0]

        assert (await client.patch(f"/api/v1/notifications/{theirs['id']}/read", headers=inbox)).status_code == 404
        assert (await client.delete(f"/api/v1/notifications/{theirs['id']}", headers=inbox)).status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_id(self, client, inbox):
        response = await client.patch(f"/api/v1/notifications/{uuid.uuid4()}/read", headers=inbox)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_read_all_and_delete(self, client, inbox):
        response = await client.patch("/api/v1/notifications/read-all", headers=inbox)
        assert response.json() == {"updated": 3}

        items = (await client.get("/api/v1/notifications", headers=inbox)).json()["notifications"]
        response = await client.delete(f"/api/v1/notifications/{items[0]['id']}", headers=inbox)
        assert response.status_code == 204

        response = await client.delete("/api/v1/notifications", headers=inbox)
        assert response.json() == {"deleted": 2}
        remaining = await client.get("/api/v1/notifications", headers=inbox)
        assert remaining.json() == {"notifications": []}


# ---------------------------------------------------------------------------
# Manual job triggers
# ---------------------------------------------------------------------------


class TestJobEndpoints:
    @pytest.fixture
    def stub_scheduler(self):
        stub = AsyncMock()
        stub.run_lifecycle_tick = AsyncMock(return_value=LifecycleTickReport(started_at=NOW, finished_at=NOW))
        stub.run_due_date_check = AsyncMock(
            return_value=DueDateReport(checked_at=NOW, project_delivery_notified=1, notifications_created=2)
        )
        original = app.state.scheduler
        app.state.scheduler = stub
        yield stub
        app.state.scheduler = original

    @pytest.mark.asyncio
    async def test_member_forbidden(self, client, stub_scheduler):
        headers = auth_headers(uuid.uuid4(), uuid.uuid4(), "member")

        response = await client.post("/api/v1/jobs/event-status/run", headers=headers)

        assert response.status_code == 403
        stub_scheduler.run_lifecycle_tick.assert_not_called()

    @pytest.mark.asyncio
    async def test_admin_runs_lifecycle_tick(self, client, stub_scheduler):
        headers = auth_headers(uuid.uuid4(), uuid.uuid4(), "admin")

        response = await client.post("/api/v1/jobs/event-status/run", headers=headers)

        assert response.status_code == 200
        assert response.json()["transitions"] == []
        stub_scheduler.run_lifecycle_tick.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_admin_runs_due_date_check(self, client, stub_scheduler):
        headers = auth_headers(uuid.uuid4(), uuid.uuid4(), "admin")

        response = await client.post("/api/v1/jobs/due-dates/run", headers=headers)

        assert response.status_code == 200
        assert response.json()["notifications_created"] == 2

    @pytest.mark.asyncio
    async def test_scheduler_missing(self, client):
        original = app.state.scheduler
        app.state.scheduler = None
        try:
            response = await client.post(
                "/api/v1/jobs/due-dates/run",
                headers=auth_headers(uuid.uuid4(), uuid.uuid4(), "admin"),
            )
        finally:
            app.state.scheduler = original
        assert response.status_code == 503

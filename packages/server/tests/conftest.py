"""
Shared fixtures: an in-memory SQLite database with the full schema, a
seeded status catalog and studio directory, a controllable clock and a
real-time channel that records what it was asked to send.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import select

from app.core.config import Settings
from app.core.database import build_session_factory, init_db
from app.core.realtime import BestEffort, RealtimeChannel
from app.models.client_event import ClientEvent
from app.models.delivery_status import EventDeliveryStatus
from app.models.event_type import EventType
from app.models.project import Project
from app.models.team_member import TeamMember
from app.models.user import User
from app.services.notifications import NotificationDispatcher
from app.services.scheduler import LifecycleScheduler
from studio_shared.schemas.common import DELIVERY_STATUS_ORDER, DeliveryStatusCode, Role

NOW = datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingChannel(RealtimeChannel):
    """Real-time channel that records pushes instead of sending them."""

    def __init__(self) -> None:
        self.published: list[tuple[uuid.UUID, Any]] = []
        self.broadcasts: list[tuple[uuid.UUID, Any]] = []

    async def publish(self, user_id, message) -> BestEffort:
        self.published.append((user_id, message))
        return BestEffort(1)

    async def broadcast(self, tenant_id, message) -> BestEffort:
        self.broadcasts.append((tenant_id, message))
        return BestEffort(1)


@dataclass
class Studio:
    """One seeded tenant."""

    tenant_id: uuid.UUID
    admin_ids: list[uuid.UUID]
    inactive_admin_id: uuid.UUID
    member_id: uuid.UUID
    editor_member_id: uuid.UUID
    offline_member_id: uuid.UUID
    project_id: uuid.UUID
    event_type_id: uuid.UUID
    statuses: dict[DeliveryStatusCode, uuid.UUID] = field(default_factory=dict)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        tick_lease_enabled=False,
        realtime_backend="local",
        event_side_effect_timeout_seconds=5.0,
    )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def catalog(session_factory) -> dict[DeliveryStatusCode, uuid.UUID]:
    rows = [
        EventDeliveryStatus(code=code.value, description=code.value.replace("_", " ").title(), step=step)
        for step, code in enumerate(DELIVERY_STATUS_ORDER, start=1)
    ]
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()
    return {DeliveryStatusCode(row.code): row.id for row in rows}


@pytest.fixture
async def studio(session_factory, catalog, clock) -> Studio:
    tenant_id = uuid.uuid4()
    admins = [
        User(
            tenant_id=tenant_id,
            email=f"admin{i}@studio.test",
            display_name=f"Admin {i}",
            role=Role.ADMIN.value,
            created_at=clock() - timedelta(days=10 - i),
        )
        for i in range(2)
    ]
    inactive_admin = User(
        tenant_id=tenant_id,
        email="former@studio.test",
        display_name="Former Admin",
        role=Role.ADMIN.value,
        is_active=False,
    )
    member = User(
        tenant_id=tenant_id,
        email="editor@studio.test",
        display_name="Editor",
        role=Role.MEMBER.value,
    )
    # Admin of another tenant, never notified
    outsider = User(
        tenant_id=uuid.uuid4(),
        email="outsider@elsewhere.test",
        display_name="Outsider",
        role=Role.ADMIN.value,
    )
    editor = TeamMember(tenant_id=tenant_id, name="Editor", user_id=member.id)
    offline = TeamMember(tenant_id=tenant_id, name="Freelancer")
    project = Project(tenant_id=tenant_id, name="Smith Wedding")
    event_type = EventType(tenant_id=tenant_id, name="Wedding Ceremony")

    async with session_factory() as session:
        session.add_all([*admins, inactive_admin, member, outsider])
        await session.flush()
        session.add_all([editor, offline, project, event_type])
        await session.commit()

    return Studio(
        tenant_id=tenant_id,
        admin_ids=[a.id for a in admins],
        inactive_admin_id=inactive_admin.id,
        member_id=member.id,
        editor_member_id=editor.id,
        offline_member_id=offline.id,
        project_id=project.id,
        event_type_id=event_type.id,
        statuses=catalog,
    )


@pytest.fixture
def make_event(session_factory, studio):
    """Factory: insert a client event for the seeded studio."""

    async def _make(
        status: DeliveryStatusCode,
        from_datetime: datetime,
        to_datetime: datetime,
        album_editor_id: Optional[uuid.UUID] = None,
        **fields,
    ) -> ClientEvent:
        event = ClientEvent(
            tenant_id=studio.tenant_id,
            project_id=studio.project_id,
            event_type_id=studio.event_type_id,
            delivery_status_id=studio.statuses[status],
            from_datetime=from_datetime,
            to_datetime=to_datetime,
            album_editor_id=album_editor_id,
            **fields,
        )
        async with session_factory() as session:
            session.add(event)
            await session.commit()
        return event

    return _make


@pytest.fixture
def dispatcher(session_factory, channel, clock) -> NotificationDispatcher:
    return NotificationDispatcher(session_factory, channel, clock=clock)


@pytest.fixture
def scheduler(session_factory, dispatcher, channel, clock, settings) -> LifecycleScheduler:
    return LifecycleScheduler(
        session_factory,
        dispatcher,
        channel,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def fetch_all(session_factory):
    """Load every row of a model matching the given criteria."""

    async def _fetch(model, *where):
        async with session_factory() as session:
            result = await session.execute(select(model).where(*where))
            return list(result.scalars().all())

    return _fetch


@pytest.fixture
def status_of(session_factory, studio):
    """Current delivery status code of a client event."""
    by_id = {v: k for k, v in studio.statuses.items()}

    async def _status(event_id: uuid.UUID) -> DeliveryStatusCode:
        async with session_factory() as session:
            event = await session.get(ClientEvent, event_id)
        return by_id[event.delivery_status_id]

    return _status

"""
Notification service layer: dispatch with de-duplication and real-time push,
plus the read/mark-read/delete operations of the notification store.

Handles:
- Fan-out of one logical notification to one or many recipients
- Short rolling-window de-duplication on (user, tenant, type, title, message)
- Optional permanent de-duplication on an explicit key
- Best-effort real-time push after each record is committed
- Retention purge of read notifications
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

import structlog
from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.realtime import RealtimeChannel
from app.models.base import utcnow
from app.models.notification import Notification
from studio_shared.schemas.notifications import (
    NotificationMessage,
    NotificationPayload,
    NotificationRead,
    payload_to_dict,
)

log = structlog.get_logger()

DEFAULT_DEDUP_WINDOW_SECONDS = 10


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _normalize_recipients(
    recipients: uuid.UUID | str | Iterable[uuid.UUID | str],
) -> list[uuid.UUID]:
    """Accept one id or many, as UUIDs or strings; drop repeats while keeping order."""
    if isinstance(recipients, (uuid.UUID, str)):
        return [_as_uuid(recipients)]
    seen: set[uuid.UUID] = set()
    ordered = []
    for user_id in map(_as_uuid, recipients):
        if user_id not in seen:
            seen.add(user_id)
            ordered.append(user_id)
    return ordered


class NotificationDispatcher:
    """Creates notification records and pushes them to connected sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        realtime: RealtimeChannel,
        *,
        dedup_window_seconds: int = DEFAULT_DEDUP_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._realtime = realtime
        self._dedup_window = timedelta(seconds=dedup_window_seconds)
        self._clock = clock

    async def create(
        self,
        recipients: uuid.UUID | str | Iterable[uuid.UUID | str],
        tenant_id: uuid.UUID,
        type: str | Enum,
        title: str,
        message: str,
        payload: NotificationPayload | dict[str, Any] | None = None,
        action_url: Optional[str] = None,
        dedupe_key: Optional[str] = None,
        collect_into: Optional[list[Notification]] = None,
    ) -> list[Notification]:
        """
        Persist one notification per recipient and push each one.

        Recipients with an identical notification inside the dedup window (or
        any notification carrying the same ``dedupe_key``) are skipped. Returns
        only the notifications actually created.

        Each notification is also appended to ``collect_into`` as soon as it is
        committed, so a caller that gets cancelled still knows what was sent.
        """
        type_value = type.value if isinstance(type, Enum) else type
        data = payload_to_dict(payload)
        created: list[Notification] = []

        for user_id in _normalize_recipients(recipients):
            async with self._session_factory() as session:
                now = self._clock()
                if await self._is_duplicate(
                    session, user_id, tenant_id, type_value, title, message, dedupe_key, now
                ):
                    log.info(
                        "notification.duplicate_skipped",
                        user_id=str(user_id),
                        tenant_id=str(tenant_id),
                        type=type_value,
                    )
                    continue

                notification = Notification(
                    user_id=user_id,
                    tenant_id=tenant_id,
                    type=type_value,
                    title=title,
                    message=message,
                    payload=data,
                    action_url=action_url,
                    dedupe_key=dedupe_key,
                    created_at=now,
                )
                session.add(notification)
                await session.commit()

            created.append(notification)
            if collect_into is not None:
                collect_into.append(notification)
            await self.push(notification)

        if created:
            log.info(
                "notification.created",
                tenant_id=str(tenant_id),
                type=type_value,
                count=len(created),
            )
        return created

    async def push(self, notification: Notification):
        """Fire-and-forget push of a stored notification to its recipient."""
        message = NotificationMessage(notification=NotificationRead.model_validate(notification))
        return await self._realtime.publish(notification.user_id, message)

    async def _is_duplicate(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        type_value: str,
        title: str,
        message: str,
        dedupe_key: Optional[str],
        now: datetime,
    ) -> bool:
        if dedupe_key is not None:
            result = await session.execute(
                select(Notification.id)
                .where(
                    Notification.user_id == user_id,
                    Notification.tenant_id == tenant_id,
                    Notification.dedupe_key == dedupe_key,
                )
                .limit(1)
            )
            if result.first() is not None:
                return True

        result = await session.execute(
            select(Notification.id)
            .where(
                Notification.user_id == user_id,
                Notification.tenant_id == tenant_id,
                Notification.type == type_value,
                Notification.title == title,
                Notification.message == message,
                Notification.created_at >= now - self._dedup_window,
            )
            .limit(1)
        )
        return result.first() is not None


# ---------------------------------------------------------------------------
# Store operations
# ---------------------------------------------------------------------------


async def list_for_user(
    session: AsyncSession,
    user_id: uuid.UUID,
    tenant_id: uuid.UUID,
    limit: int = 20,
    unread_only: bool = False,
) -> list[Notification]:
    stmt = select(Notification).where(
        Notification.user_id == user_id,
        Notification.tenant_id == tenant_id,
    )
    if unread_only:
        stmt = stmt.where(Notification.is_read == False)  # noqa: E712
    result = await session.execute(
        stmt.order_by(Notification.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def unread_count(session: AsyncSession, user_id: uuid.UUID, tenant_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.tenant_id == tenant_id,
            Notification.is_read == False,  # noqa: E712
        )
    )
    return int(result.scalar_one())


async def mark_as_read(
    session: AsyncSession,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
    tenant_id: uuid.UUID,
    now: datetime | None = None,
) -> Optional[Notification]:
    notification = await session.get(Notification, notification_id)
    if not notification or notification.user_id != user_id or notification.tenant_id != tenant_id:
        return None
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = now or utcnow()
        session.add(notification)
        await session.flush()
    return notification


async def mark_all_as_read(
    session: AsyncSession,
    user_id: uuid.UUID,
    tenant_id: uuid.UUID,
    now: datetime | None = None,
) -> int:
    result = await session.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.tenant_id == tenant_id,
            Notification.is_read == False,  # noqa: E712
        )
        .values(is_read=True, read_at=now or utcnow())
    )
    return result.rowcount or 0


async def delete_notification(
    session: AsyncSession,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
    tenant_id: uuid.UUID,
) -> bool:
    result = await session.execute(
        delete(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
            Notification.tenant_id == tenant_id,
        )
    )
    return (result.rowcount or 0) > 0


async def delete_all(session: AsyncSession, user_id: uuid.UUID, tenant_id: uuid.UUID) -> int:
    result = await session.execute(
        delete(Notification).where(
            Notification.user_id == user_id,
            Notification.tenant_id == tenant_id,
        )
    )
    return result.rowcount or 0


async def purge_read_notifications(
    session: AsyncSession, now: datetime, retention_days: int
) -> int:
    """Delete notifications that were read more than ``retention_days`` ago."""
    cutoff = now - timedelta(days=retention_days)
    result = await session.execute(
        delete(Notification).where(
            Notification.is_read == True,  # noqa: E712
            Notification.read_at.is_not(None),
            Notification.read_at < cutoff,
        )
    )
    return result.rowcount or 0

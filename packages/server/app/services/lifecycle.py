"""
Client event lifecycle: transition rules, status catalog resolution,
candidate selection and the conditional status write.

Only the first three delivery statuses are driven by time. Later statuses are
reached by people working the project and are never touched here.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import as_utc
from app.models.client_event import ClientEvent
from app.models.delivery_status import EventDeliveryStatus
from studio_shared.schemas.common import (
    ENGINE_STATUS_CODES,
    SYSTEM_ACTOR,
    DeliveryStatusCode,
)


class CatalogIncompleteError(Exception):
    """Raised when a delivery status code the engine relies on has no catalog row."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Delivery status catalog is missing: {', '.join(missing)}")


def decide_transition(
    status: DeliveryStatusCode | str,
    now: datetime,
    from_datetime: datetime,
    to_datetime: datetime,
) -> Optional[DeliveryStatusCode]:
    """
    Decide the next delivery status for an event at ``now``.

    - SCHEDULED -> SHOOT_IN_PROGRESS when from <= now < to
    - SHOOT_IN_PROGRESS -> AWAITING_EDITING when to <= now
    - anything else stays put

    At most one step is taken per call, so an event whose whole window is in
    the past needs two evaluations to reach AWAITING_EDITING.
    """
    try:
        code = DeliveryStatusCode(status)
    except ValueError:
        return None

    now = as_utc(now)
    start = as_utc(from_datetime)
    end = as_utc(to_datetime)

    if code == DeliveryStatusCode.SCHEDULED:
        if start <= now < end:
            return DeliveryStatusCode.SHOOT_IN_PROGRESS
        return None
    if code == DeliveryStatusCode.SHOOT_IN_PROGRESS:
        if end <= now:
            return DeliveryStatusCode.AWAITING_EDITING
        return None
    return None


@dataclass(frozen=True)
class StatusCatalog:
    """Code <-> id mapping of the delivery status catalog, resolved once per tick."""

    ids: dict[DeliveryStatusCode, uuid.UUID]

    def id_of(self, code: DeliveryStatusCode) -> uuid.UUID:
        return self.ids[code]

    def code_of(self, status_id: uuid.UUID) -> Optional[DeliveryStatusCode]:
        for code, value in self.ids.items():
            if value == status_id:
                return code
        return None


async def resolve_catalog(session: AsyncSession) -> StatusCatalog:
    """Load the catalog. Raises CatalogIncompleteError if an engine-driven code is missing."""
    result = await session.execute(select(EventDeliveryStatus))
    ids: dict[DeliveryStatusCode, uuid.UUID] = {}
    for row in result.scalars().all():
        try:
            ids[DeliveryStatusCode(row.code)] = row.id
        except ValueError:
            continue  # codes this service does not know about

    missing = [code.value for code in ENGINE_STATUS_CODES if code not in ids]
    if missing:
        raise CatalogIncompleteError(missing)
    return StatusCatalog(ids=ids)


# ---------------------------------------------------------------------------
# Candidate selection
# ---------------------------------------------------------------------------


async def find_shoot_start_candidates(
    session: AsyncSession, catalog: StatusCatalog, now: datetime
) -> list[ClientEvent]:
    """SCHEDULED events whose shoot window contains ``now``."""
    result = await session.execute(
        select(ClientEvent)
        .where(
            ClientEvent.delivery_status_id == catalog.id_of(DeliveryStatusCode.SCHEDULED),
            ClientEvent.from_datetime <= now,
            ClientEvent.to_datetime > now,
        )
        .order_by(ClientEvent.from_datetime, ClientEvent.id)
    )
    return list(result.scalars().all())


async def find_shoot_end_candidates(
    session: AsyncSession, catalog: StatusCatalog, now: datetime
) -> list[ClientEvent]:
    """SHOOT_IN_PROGRESS events whose shoot window has ended."""
    result = await session.execute(
        select(ClientEvent)
        .where(
            ClientEvent.delivery_status_id
            == catalog.id_of(DeliveryStatusCode.SHOOT_IN_PROGRESS),
            ClientEvent.to_datetime <= now,
        )
        .order_by(ClientEvent.to_datetime, ClientEvent.id)
    )
    return list(result.scalars().all())


async def claim_transition(
    session: AsyncSession,
    event_id: uuid.UUID,
    expected_status_id: uuid.UUID,
    new_status_id: uuid.UUID,
    now: datetime,
) -> bool:
    """
    Move an event to ``new_status_id`` only if it still has ``expected_status_id``.

    Returns False when another writer got there first; the caller must then
    skip every side effect for the event. The caller owns the commit.
    """
    result = await session.execute(
        update(ClientEvent)
        .where(
            ClientEvent.id == event_id,
            ClientEvent.delivery_status_id == expected_status_id,
        )
        .values(
            delivery_status_id=new_status_id,
            updated_by=SYSTEM_ACTOR,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1

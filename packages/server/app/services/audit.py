"""
Audit recorder: append-only change log for state transitions.

Writes are best effort. An audit failure is logged and reported back as
``None``; it never undoes the change being audited.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.audit_entry import AuditEntry
from app.models.base import utcnow

log = structlog.get_logger()

EVENT_STATUS_CHANGED = "EVENT_STATUS_CHANGED"


async def record_audit(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str,
    performed_by: str,
    tenant_id: Optional[uuid.UUID] = None,
    changes: Optional[dict[str, Any]] = None,
    details: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> Optional[AuditEntry]:
    """Persist one audit entry in its own session. Returns None if the write failed."""
    entry = AuditEntry(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        tenant_id=tenant_id,
        performed_by=performed_by,
        changes=changes or {},
        details=details or {},
        ip_address=ip_address,
        timestamp=timestamp or utcnow(),
    )
    try:
        async with session_factory() as session:
            session.add(entry)
            await session.commit()
    except Exception as exc:
        log.error(
            "audit.write_failed",
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            error=str(exc),
        )
        return None

    log.info(
        "audit.recorded",
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        performed_by=performed_by,
    )
    return entry


def status_change(old_status_id: uuid.UUID, new_status_id: uuid.UUID) -> dict[str, Any]:
    """Changes map for a delivery status move."""
    return {
        "delivery_status_id": {"old": str(old_status_id), "new": str(new_status_id)},
    }

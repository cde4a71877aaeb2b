"""
Tests for the audit recorder.
"""

from __future__ import annotations

import uuid

import pytest

from app.models.audit_entry import AuditEntry
from app.services.audit import EVENT_STATUS_CHANGED, record_audit, status_change
from studio_shared.schemas.common import SYSTEM_ACTOR


class TestRecordAudit:
    @pytest.mark.asyncio
    async def test_writes_entry(self, session_factory, studio, fetch_all):
        event_id = uuid.uuid4()
        old, new = uuid.uuid4(), uuid.uuid4()

        entry = await record_audit(
            session_factory,
            action=EVENT_STATUS_CHANGED,
            entity_type="client_event",
            entity_id=event_id,
            performed_by=SYSTEM_ACTOR,
            tenant_id=studio.tenant_id,
            changes=status_change(old, new),
        )

        assert entry is not None
        stored = await fetch_all(AuditEntry)
        assert len(stored) == 1
        assert stored[0].entity_id == str(event_id)
        assert stored[0].changes == {"delivery_status_id": {"old": str(old), "new": str(new)}}
        assert stored[0].details == {}

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self):
        def broken_factory():
            raise RuntimeError("database unavailable")

        entry = await record_audit(
            broken_factory,
            action=EVENT_STATUS_CHANGED,
            entity_type="client_event",
            entity_id=uuid.uuid4(),
            performed_by=SYSTEM_ACTOR,
        )

        assert entry is None

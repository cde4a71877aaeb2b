"""
Reports returned by the scheduled jobs (and by their manual-trigger endpoints).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import DeliveryStatusCode


class TransitionRecord(BaseModel):
    event_id: uuid.UUID
    tenant_id: uuid.UUID
    from_status: DeliveryStatusCode
    to_status: DeliveryStatusCode
    notifications_created: int = 0
    todos_created: int = 0
    error: Optional[str] = None


class LifecycleTickReport(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped_reason: Optional[str] = None
    transitions: list[TransitionRecord] = Field(default_factory=list)
    failed_event_ids: list[uuid.UUID] = Field(default_factory=list)

    @property
    def moved_to_in_progress(self) -> int:
        return sum(
            1
            for t in self.transitions
            if t.to_status == DeliveryStatusCode.SHOOT_IN_PROGRESS
        )

    @property
    def moved_to_awaiting_editing(self) -> int:
        return sum(
            1
            for t in self.transitions
            if t.to_status == DeliveryStatusCode.AWAITING_EDITING
        )


class DueDateReport(BaseModel):
    checked_at: datetime
    skipped_reason: Optional[str] = None
    editing_notified: int = 0
    album_design_notified: int = 0
    project_delivery_notified: int = 0
    notifications_created: int = 0
    failed_checks: list[str] = Field(default_factory=list)


class MaintenanceReport(BaseModel):
    ran_at: datetime
    notifications_purged: int = 0

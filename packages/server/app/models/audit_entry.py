"""Audit entry model (append-only, never updated by the application)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, utcnow


class AuditEntry(SQLModel, table=True):
    __tablename__ = "audit_entries"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    action: str = Field(nullable=False, index=True)  # e.g., EVENT_STATUS_CHANGED
    entity_type: str = Field(nullable=False)
    entity_id: str = Field(nullable=False, index=True)
    tenant_id: Optional[uuid.UUID] = Field(default=None, index=True)
    performed_by: str = Field(nullable=False)  # user id, or "system"
    changes: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    details: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    ip_address: Optional[str] = None
    timestamp: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )

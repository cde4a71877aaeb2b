"""Notification model (one message to one user, auto-expired after being read)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, UUIDMixin, utcnow


class Notification(UUIDMixin, SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (
        sa.Index("ix_notifications_user_tenant_read_created", "user_id", "tenant_id", "is_read", "created_at"),
        sa.Index("ix_notifications_dedup", "user_id", "tenant_id", "type", "created_at"),
    )

    user_id: uuid.UUID = Field(nullable=False, index=True)
    tenant_id: uuid.UUID = Field(nullable=False, index=True)
    type: str = Field(nullable=False)  # see NotificationType
    title: str = Field(nullable=False)
    message: str = Field(nullable=False)
    payload: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    is_read: bool = Field(default=False, nullable=False)
    action_url: Optional[str] = None
    dedupe_key: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    read_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))

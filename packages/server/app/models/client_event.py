"""Client event model: one booked shoot belonging to a project."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class ClientEvent(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "client_events"
    __table_args__ = (
        sa.Index("ix_client_events_status_window", "delivery_status_id", "from_datetime", "to_datetime"),
    )

    tenant_id: uuid.UUID = Field(nullable=False, index=True)
    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    event_type_id: uuid.UUID = Field(foreign_key="event_types.id", nullable=False)
    delivery_status_id: uuid.UUID = Field(foreign_key="event_delivery_statuses.id", nullable=False)

    from_datetime: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    to_datetime: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))

    editing_due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    album_design_due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    album_editor_id: Optional[uuid.UUID] = Field(default=None, foreign_key="team_members.id")
    album_designer_id: Optional[uuid.UUID] = Field(default=None, foreign_key="team_members.id")

    updated_by: Optional[str] = None  # user id, or "system" for scheduler writes

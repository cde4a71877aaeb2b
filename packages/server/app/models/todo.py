"""Todo model: an actionable follow-up task assigned to one user."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Todo(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "todos"
    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "user_id", "idempotency_key", name="uq_todos_tenant_user_key"),
    )

    tenant_id: uuid.UUID = Field(nullable=False, index=True)
    user_id: uuid.UUID = Field(nullable=False, index=True)
    description: str = Field(nullable=False)
    project_id: Optional[uuid.UUID] = Field(default=None, index=True)
    event_id: Optional[uuid.UUID] = Field(default=None, index=True)
    priority: str = Field(nullable=False, default="medium")  # low | medium | high
    due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    redirect_url: Optional[str] = None
    is_done: bool = Field(default=False, nullable=False)
    added_by: str = Field(nullable=False)
    # Set on system-created todos, e.g. "assign-editor:<event id>"
    idempotency_key: Optional[str] = Field(default=None, index=True)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))

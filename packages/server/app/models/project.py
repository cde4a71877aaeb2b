"""Project model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    tenant_id: uuid.UUID = Field(nullable=False, index=True)
    name: str = Field(nullable=False)
    delivery_due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))

"""Event type master data (Wedding, Reception, Pre-wedding shoot, ...)."""

import uuid

from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class EventType(UUIDMixin, SQLModel, table=True):
    __tablename__ = "event_types"

    tenant_id: uuid.UUID = Field(nullable=False, index=True)
    name: str = Field(nullable=False)

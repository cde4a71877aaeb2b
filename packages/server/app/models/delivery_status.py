"""Event delivery status catalog (code -> id lookup, one row per code)."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class EventDeliveryStatus(UUIDMixin, SQLModel, table=True):
    __tablename__ = "event_delivery_statuses"

    code: str = Field(nullable=False, unique=True)  # SCHEDULED | SHOOT_IN_PROGRESS | ...
    description: str = Field(nullable=False)
    step: int = Field(nullable=False)
    is_hidden: bool = Field(default=False, nullable=False)
    customer_note: Optional[str] = None

"""Team member model (photographers, editors, designers)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class TeamMember(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "team_members"

    tenant_id: uuid.UUID = Field(nullable=False, index=True)
    name: str = Field(nullable=False)
    # Members without a login cannot receive in-app notifications
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

"""
Notification and real-time message schemas shared between server and clients.

Covers: typed notification payloads (one model per known notification type),
the notification read model, and the two real-time message kinds pushed
over the per-user channel.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .common import DeliveryStatusCode, NotificationType


# ---------------------------------------------------------------------------
# Typed payloads
# ---------------------------------------------------------------------------

class EventContextPayload(BaseModel):
    """Payload shared by notifications that point at a single client event."""

    event_id: uuid.UUID
    project_id: uuid.UUID
    event_name: str
    project_name: str


class ShootInProgressPayload(EventContextPayload):
    kind: Literal["SHOOT_IN_PROGRESS"] = NotificationType.SHOOT_IN_PROGRESS.value


class AssignEditorNeededPayload(EventContextPayload):
    kind: Literal["ASSIGN_EDITOR_NEEDED"] = NotificationType.ASSIGN_EDITOR_NEEDED.value


class DueDateApproachingPayload(BaseModel):
    kind: Literal["DUE_DATE_APPROACHING"] = NotificationType.DUE_DATE_APPROACHING.value
    entity_type: Literal["client_event", "project"]
    entity_id: uuid.UUID
    due_field: Literal["editing_due_date", "album_design_due_date", "delivery_due_date"]
    due_date: datetime
    days_remaining: int


NotificationPayload = Union[
    ShootInProgressPayload,
    AssignEditorNeededPayload,
    DueDateApproachingPayload,
]

_PAYLOAD_MODELS: dict[str, type[BaseModel]] = {
    NotificationType.SHOOT_IN_PROGRESS.value: ShootInProgressPayload,
    NotificationType.ASSIGN_EDITOR_NEEDED.value: AssignEditorNeededPayload,
    NotificationType.DUE_DATE_APPROACHING.value: DueDateApproachingPayload,
}


def payload_to_dict(payload: NotificationPayload | dict[str, Any] | None) -> dict[str, Any]:
    """Serialize a payload for storage. Open mappings pass through untouched."""
    if payload is None:
        return {}
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return dict(payload)


def parse_payload(
    notification_type: str, data: dict[str, Any] | None
) -> NotificationPayload | dict[str, Any]:
    """
    Parse a stored payload back into its typed model.

    Unknown notification types, and payloads written before a type had a
    model, come back as a plain dict.
    """
    data = data or {}
    model = _PAYLOAD_MODELS.get(notification_type)
    if model is None:
        return data
    try:
        return model.model_validate(data)
    except ValueError:
        return data


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------

class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    tenant_id: uuid.UUID
    type: str
    title: str
    message: str
    payload: Union[NotificationPayload, dict[str, Any]] = Field(default_factory=dict)
    is_read: bool = False
    action_url: Optional[str] = None
    created_at: datetime
    read_at: Optional[datetime] = None

    @field_validator("payload", mode="before")
    @classmethod
    def _typed_payload(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, BaseModel):
            return value
        return parse_payload(info.data.get("type", ""), value)


class NotificationList(BaseModel):
    notifications: list[NotificationRead]


class UnreadCount(BaseModel):
    count: int


# ---------------------------------------------------------------------------
# Real-time messages
# ---------------------------------------------------------------------------

class NotificationMessage(BaseModel):
    type: Literal["notification"] = "notification"
    notification: NotificationRead


class StatusUpdateMessage(BaseModel):
    type: Literal["event.status_updated"] = "event.status_updated"
    event_id: uuid.UUID
    project_id: uuid.UUID
    status_id: uuid.UUID
    status_code: DeliveryStatusCode
    timestamp: datetime

from enum import Enum


class DeliveryStatusCode(str, Enum):
    SCHEDULED = "SCHEDULED"
    SHOOT_IN_PROGRESS = "SHOOT_IN_PROGRESS"
    AWAITING_EDITING = "AWAITING_EDITING"
    EDITING_IN_PROGRESS = "EDITING_IN_PROGRESS"
    CLIENT_SELECTION = "CLIENT_SELECTION"
    ALBUM_DESIGN = "ALBUM_DESIGN"
    DELIVERED = "DELIVERED"

# Canonical order of the event delivery lifecycle
DELIVERY_STATUS_ORDER: list["DeliveryStatusCode"] = [
    DeliveryStatusCode.SCHEDULED,
    DeliveryStatusCode.SHOOT_IN_PROGRESS,
    DeliveryStatusCode.AWAITING_EDITING,
    DeliveryStatusCode.EDITING_IN_PROGRESS,
    DeliveryStatusCode.CLIENT_SELECTION,
    DeliveryStatusCode.ALBUM_DESIGN,
    DeliveryStatusCode.DELIVERED,
]

# Codes the scheduler must be able to resolve before it can run a tick
ENGINE_STATUS_CODES: list["DeliveryStatusCode"] = [
    DeliveryStatusCode.SCHEDULED,
    DeliveryStatusCode.SHOOT_IN_PROGRESS,
    DeliveryStatusCode.AWAITING_EDITING,
]

class NotificationType(str, Enum):
    SHOOT_IN_PROGRESS = "SHOOT_IN_PROGRESS"
    ASSIGN_EDITOR_NEEDED = "ASSIGN_EDITOR_NEEDED"
    DUE_DATE_APPROACHING = "DUE_DATE_APPROACHING"

class TodoPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class Role(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"

class DueDateMatchMode(str, Enum):
    EXACT = "exact"
    RANGE = "range"

# Actor recorded on rows and audit entries changed by background jobs
SYSTEM_ACTOR = "system"


# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .team_member import TeamMember  # noqa: F401
from .event_type import EventType  # noqa: F401
from .project import Project  # noqa: F401
from .delivery_status import EventDeliveryStatus  # noqa: F401
from .client_event import ClientEvent  # noqa: F401
from .notification import Notification  # noqa: F401
from .todo import Todo  # noqa: F401
from .audit_entry import AuditEntry  # noqa: F401

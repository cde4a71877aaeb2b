"""Lifecycle schema: directory tables, client events, notifications, todos and audit log.

Revision ID: 0001_lifecycle_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_lifecycle_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Delivery status catalog seeded with the migration; ids are stable across environments
DELIVERY_STATUSES = [
    ("9b0d6c56-0b1e-4f0a-9d1a-000000000001", "SCHEDULED", "Scheduled", 1),
    ("9b0d6c56-0b1e-4f0a-9d1a-000000000002", "SHOOT_IN_PROGRESS", "Shoot in progress", 2),
    ("9b0d6c56-0b1e-4f0a-9d1a-000000000003", "AWAITING_EDITING", "Awaiting editing", 3),
    ("9b0d6c56-0b1e-4f0a-9d1a-000000000004", "EDITING_IN_PROGRESS", "Editing in progress", 4),
    ("9b0d6c56-0b1e-4f0a-9d1a-000000000005", "CLIENT_SELECTION", "Client selection", 5),
    ("9b0d6c56-0b1e-4f0a-9d1a-000000000006", "ALBUM_DESIGN", "Album design", 6),
    ("9b0d6c56-0b1e-4f0a-9d1a-000000000007", "DELIVERED", "Delivered", 7),
]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. Directory tables
    # -----------------------------------------------------------------------

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.Text(), nullable=True, unique=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_users_tenant_role", "users", ["tenant_id", "role"])

    op.create_table(
        "team_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_team_members_tenant", "team_members", ["tenant_id"])

    op.create_table(
        "event_types",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
    )
    op.create_index("idx_event_types_tenant", "event_types", ["tenant_id"])

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("delivery_due_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_projects_tenant", "projects", ["tenant_id"])
    op.create_index("idx_projects_delivery_due", "projects", ["delivery_due_date"])

    # -----------------------------------------------------------------------
    # 2. Delivery status catalog
    # -----------------------------------------------------------------------

    statuses = op.create_table(
        "event_delivery_statuses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.Text(), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("step", sa.Integer(), nullable=False),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("customer_note", sa.Text(), nullable=True),
    )
    op.bulk_insert(
        statuses,
        [
            {"id": status_id, "code": code, "description": description, "step": step}
            for status_id, code, description, step in DELIVERY_STATUSES
        ],
    )

    # -----------------------------------------------------------------------
    # 3. Client events
    # -----------------------------------------------------------------------

    op.create_table(
        "client_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("event_type_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("event_types.id"), nullable=False),
        sa.Column(
            "delivery_status_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("event_delivery_statuses.id"),
            nullable=False,
        ),
        sa.Column("from_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("to_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("editing_due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("album_design_due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("album_editor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("team_members.id"), nullable=True),
        sa.Column("album_designer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("team_members.id"), nullable=True),
        sa.Column("updated_by", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_client_events_tenant", "client_events", ["tenant_id"])
    op.create_index("idx_client_events_project", "client_events", ["project_id"])
    op.create_index(
        "ix_client_events_status_window",
        "client_events",
        ["delivery_status_id", "from_datetime", "to_datetime"],
    )
    op.create_index("idx_client_events_editing_due", "client_events", ["editing_due_date"])
    op.create_index("idx_client_events_album_due", "client_events", ["album_design_due_date"])

    # -----------------------------------------------------------------------
    # 4. Notifications and todos
    # -----------------------------------------------------------------------

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("action_url", sa.Text(), nullable=True),
        sa.Column("dedupe_key", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_notifications_user_tenant_read_created",
        "notifications",
        ["user_id", "tenant_id", "is_read", "created_at"],
    )
    op.create_index("ix_notifications_dedup", "notifications", ["user_id", "tenant_id", "type", "created_at"])
    op.create_index("ix_notifications_dedupe_key", "notifications", ["dedupe_key"])
    # Retention purge scans read notifications by read time
    op.execute(
        "CREATE INDEX idx_notifications_read_at ON notifications (read_at) WHERE is_read"
    )

    op.create_table(
        "todos",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("priority", sa.Text(), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redirect_url", sa.Text(), nullable=True),
        sa.Column("is_done", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("added_by", sa.Text(), nullable=False),
        sa.Column("idempotency_key", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "user_id", "idempotency_key", name="uq_todos_tenant_user_key"),
    )
    op.create_index("idx_todos_user", "todos", ["tenant_id", "user_id", "is_done"])
    op.create_index("idx_todos_key", "todos", ["tenant_id", "idempotency_key"])

    # -----------------------------------------------------------------------
    # 5. Audit log (append-only)
    # -----------------------------------------------------------------------

    op.create_table(
        "audit_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=False),
        sa.Column("entity_id", sa.Text(), nullable=False),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("performed_by", sa.Text(), nullable=False),
        sa.Column("changes", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_audit_entries_entity", "audit_entries", ["entity_type", "entity_id"])
    op.create_index("idx_audit_entries_tenant_time", "audit_entries", ["tenant_id", "timestamp"])

    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_audit_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'Audit entries are append-only. UPDATE and DELETE are not permitted.';
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER audit_entries_immutable
        BEFORE UPDATE OR DELETE ON audit_entries
        FOR EACH ROW EXECUTE FUNCTION prevent_audit_mutation()
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS audit_entries_immutable ON audit_entries")
    op.execute("DROP FUNCTION IF EXISTS prevent_audit_mutation()")

    for table in [
        "audit_entries",
        "todos",
        "notifications",
        "client_events",
        "event_delivery_statuses",
        "projects",
        "event_types",
        "team_members",
        "users",
    ]:
        op.drop_table(table)

"""
Follow-up task creation for work a transition left unassigned.

Each system-created todo carries an idempotency key. A unique constraint on
(tenant, user, key) backs it, so a second run can never add a twin even if
two writers race.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.todo import Todo
from studio_shared.schemas.common import SYSTEM_ACTOR, TodoPriority

log = structlog.get_logger()


def assign_editor_key(event_id: uuid.UUID) -> str:
    return f"assign-editor:{event_id}"


async def todo_key_exists(session: AsyncSession, tenant_id: uuid.UUID, key: str) -> bool:
    """True if any todo of the tenant, open or done, carries ``key``."""
    result = await session.execute(
        select(Todo.id)
        .where(Todo.tenant_id == tenant_id, Todo.idempotency_key == key)
        .limit(1)
    )
    return result.first() is not None


async def ensure_editor_assignment_todos(
    session: AsyncSession,
    *,
    tenant_id: uuid.UUID,
    event_id: uuid.UUID,
    project_id: uuid.UUID,
    event_name: str,
    project_name: str,
    admin_ids: Sequence[uuid.UUID],
) -> list[Todo]:
    """
    Give every admin a high-priority "assign an editor" todo for the event.

    All-or-nothing per event: if the key already exists for the tenant no
    todo is created for anyone. Returns the todos actually created.
    """
    key = assign_editor_key(event_id)
    if not admin_ids:
        return []
    if await todo_key_exists(session, tenant_id, key):
        log.info("todos.assign_editor_exists", tenant_id=str(tenant_id), event_id=str(event_id))
        return []

    todos = [
        Todo(
            tenant_id=tenant_id,
            user_id=admin_id,
            description=f"Assign an editor to {event_name} in project {project_name}",
            project_id=project_id,
            event_id=event_id,
            priority=TodoPriority.HIGH.value,
            redirect_url=f"/projects/{project_id}",
            added_by=SYSTEM_ACTOR,
            idempotency_key=key,
        )
        for admin_id in admin_ids
    ]
    session.add_all(todos)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        log.info("todos.assign_editor_conflict", tenant_id=str(tenant_id), event_id=str(event_id))
        return []

    log.info(
        "todos.assign_editor_created",
        tenant_id=str(tenant_id),
        event_id=str(event_id),
        count=len(todos),
    )
    return todos

"""
Directory lookups used by the background jobs: tenant admins, team member
login identities, and display names for events and projects.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.client_event import ClientEvent
from app.models.event_type import EventType
from app.models.project import Project
from app.models.team_member import TeamMember
from app.models.user import User
from studio_shared.schemas.common import Role

UNKNOWN_EVENT = "Unknown Event"
UNKNOWN_PROJECT = "Unknown Project"


async def get_admin_users(session: AsyncSession, tenant_id: uuid.UUID) -> list[User]:
    """All active admin users of a tenant, oldest first."""
    result = await session.execute(
        select(User)
        .where(
            User.tenant_id == tenant_id,
            User.role == Role.ADMIN.value,
            User.is_active == True,  # noqa: E712
        )
        .order_by(User.created_at, User.id)
    )
    return list(result.scalars().all())


async def get_admin_user_ids(session: AsyncSession, tenant_id: uuid.UUID) -> list[uuid.UUID]:
    return [u.id for u in await get_admin_users(session, tenant_id)]


async def get_team_member_user_id(
    session: AsyncSession, member_id: Optional[uuid.UUID]
) -> Optional[uuid.UUID]:
    """Login identity of a team member, or None if the member has no active login."""
    if member_id is None:
        return None
    member = await session.get(TeamMember, member_id)
    if member is None or member.user_id is None:
        return None
    user = await session.get(User, member.user_id)
    if user is None or not user.is_active:
        return None
    return user.id


async def get_event_name(session: AsyncSession, event: ClientEvent) -> str:
    event_type = await session.get(EventType, event.event_type_id)
    if event_type is None or event_type.tenant_id != event.tenant_id:
        return UNKNOWN_EVENT
    return event_type.name or UNKNOWN_EVENT


async def get_project_name(session: AsyncSession, project_id: uuid.UUID) -> str:
    project = await session.get(Project, project_id)
    return (project.name if project else None) or UNKNOWN_PROJECT


async def get_display_names(session: AsyncSession, event: ClientEvent) -> tuple[str, str]:
    """(event name, project name) for notification and todo text."""
    return await get_event_name(session, event), await get_project_name(session, event.project_id)

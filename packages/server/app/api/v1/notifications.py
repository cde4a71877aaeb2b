"""
Notification endpoints for the signed-in user.

- GET /: Latest notifications (``limit``, ``unread_only``)
- GET /unread-count: Number of unread notifications
- PATCH /{notification_id}/read: Mark one as read
- PATCH /read-all: Mark all as read
- DELETE /{notification_id}: Delete one
- DELETE /: Delete all
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_member
from app.core.database import get_session
from app.services import notifications as notification_store
from studio_shared.schemas.notifications import NotificationList, NotificationRead, UnreadCount

router = APIRouter()


@router.get("", response_model=NotificationList)
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    notifications = await notification_store.list_for_user(
        session, auth.user_id, auth.tenant_id, limit=limit, unread_only=unread_only
    )
    return NotificationList(
        notifications=[NotificationRead.model_validate(n) for n in notifications]
    )


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_count(
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    count = await notification_store.unread_count(session, auth.user_id, auth.tenant_id)
    return UnreadCount(count=count)


@router.patch("/read-all")
async def mark_all_read(
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    updated = await notification_store.mark_all_as_read(session, auth.user_id, auth.tenant_id)
    return {"updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    notification = await notification_store.mark_as_read(
        session, notification_id, auth.user_id, auth.tenant_id
    )
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationRead.model_validate(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    deleted = await notification_store.delete_notification(
        session, notification_id, auth.user_id, auth.tenant_id
    )
    if not deleted:
        raise HTTPException(status_code=404, detail="Notification not found")


@router.delete("")
async def delete_all_notifications(
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    deleted = await notification_store.delete_all(session, auth.user_id, auth.tenant_id)
    return {"deleted": deleted}

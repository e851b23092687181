"""
In-app notification endpoints for the authenticated user.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.db.session import get_db
from admissions.schemas.notification import NotificationResponse
from admissions.services.notification_store import list_user_notifications, mark_as_read
from admissions.core.permissions import Actor
from admissions.core.security import get_current_actor

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def get_my_notifications(
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Newest notifications first."""
    return await list_user_notifications(db, actor.id, limit)


@router.put("/{notification_id}/read")
async def read_notification(
    notification_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    await mark_as_read(db, notification_id, actor.id)
    return {"message": "Notification marked as read", "id": notification_id}

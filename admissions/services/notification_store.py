"""
In-app notification store.

Writes run in their own short session, never in the request session that
performed the admission transition.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from admissions.core.exceptions import NotFoundError
from admissions.core.logging import get_logger
from admissions.core.permissions import Actor
from admissions.models.enums import Role
from admissions.models.notification import Notification
from admissions.models.user import User

logger = get_logger(__name__)

DEFAULT_ACTOR_NAME = "Admin"
DEFAULT_ACTOR_AVATAR = "/images/notify-icon.png"


def _attribution(actor: Optional[Actor]) -> dict:
    if actor is None:
        return {"actor_id": None, "actor_name": None, "actor_avatar": None}
    return {
        "actor_id": actor.id,
        "actor_name": actor.name or DEFAULT_ACTOR_NAME,
        "actor_avatar": actor.avatar or DEFAULT_ACTOR_AVATAR,
    }


class InAppNotificationStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_notification(
        self,
        user_id: int,
        type: str,
        content: str,
        related_id: Optional[int] = None,
        actor: Optional[Actor] = None,
    ) -> Notification:
        async with self._session_factory() as session:
            notification = Notification(
                user_id=user_id,
                type=type,
                content=content,
                related_id=related_id,
                **_attribution(actor),
            )
            session.add(notification)
            await session.commit()
            await session.refresh(notification)
            return notification

    async def notify_all_admins(
        self,
        type: str,
        content: str,
        related_id: Optional[int] = None,
        actor: Optional[Actor] = None,
    ) -> list[int]:
        """Create one notification per active admin; returns the admin ids."""
        async with self._session_factory() as session:
            admin_ids = list(
                (
                    await session.scalars(
                        select(User.id).where(User.role == Role.ADMIN.value, User.is_active.is_(True))
                    )
                ).all()
            )
            if not admin_ids:
                logger.info("no_admins_to_notify", type=type, related_id=related_id)
                return []

            attribution = _attribution(actor)
            session.add_all(
                Notification(
                    user_id=admin_id,
                    type=type,
                    content=content,
                    related_id=related_id,
                    **attribution,
                )
                for admin_id in admin_ids
            )
            await session.commit()
            return admin_ids


async def list_user_notifications(db: AsyncSession, user_id: int, limit: int = 50) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_as_read(db: AsyncSession, notification_id: int, user_id: int) -> None:
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFoundError(f"Notification {notification_id} not found")
    await db.commit()

import logging
from typing import Optional

from sqlalchemy import select, update, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from fightbet.core.errors import NotFoundError
from fightbet.models.notification import Notification
from fightbet.services.events import EventDispatcher

logger = logging.getLogger(__name__)


def notification_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "is_read": bool(n.is_read),
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


class NotificationService:
    def __init__(self, db: AsyncSession, events: EventDispatcher):
        self.db = db
        self.events = events

    async def notify(self, user_id: int, type: str, title: str, message: str) -> Optional[Notification]:
        """Persist and push a notification after the money movement has committed.

        Runs in its own commit; a failure here is logged and never undoes the
        caller's work.
        """
        try:
            n = Notification(user_id=user_id, type=type, title=title, message=message)
            self.db.add(n)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception("Could not store %s notification for user %s", type, user_id)
            return None
        await self.events.to_user(user_id, "notification", notification_dict(n))
        return n

    async def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 20, offset: int = 0):
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).offset(offset)
        return list(await self.db.scalars(query))

    async def unread_count(self, user_id: int) -> int:
        count = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read == False,
            )
        )
        return count or 0

    async def mark_read(self, user_id: int, notification_id: int) -> None:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
        if result.rowcount == 0:
            raise NotFoundError("Notification not found")
        await self.db.commit()

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount

    async def remove(self, user_id: int, notification_id: int) -> None:
        result = await self.db.execute(
            delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("Notification not found")
        await self.db.commit()

"""In-app notifications written alongside workflow mutations."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.common.enums import NotificationType
from gorizont.common.exceptions import NotFoundError
from gorizont.common.logging import get_logger
from gorizont.db.models.notification import Notification

logger = get_logger("notifications.service")


async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    notification_type: NotificationType,
    title: str,
    body: str,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification:
    """Queue an in-app notification in the caller's transaction."""
    notification = Notification(
        user_id=user_id,
        category=notification_type.value,
        title=title,
        body=body,
        action_url=action_url,
        metadata_=metadata or {},
    )
    db.add(notification)
    await db.flush()

    logger.info("Created notification: type=%s user=%s title='%s'", notification_type.value, user_id, title)
    return notification


def _inbox(user_id: uuid.UUID, unread_only: bool = False) -> Select:
    query = select(Notification).where(
        Notification.user_id == user_id,
        Notification.is_deleted.is_(False),
    )
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    return query


def inbox_query(user_id: uuid.UUID, unread_only: bool = False) -> Select:
    """Newest-first notifications of one user, ready for pagination."""
    return _inbox(user_id, unread_only).order_by(Notification.created_at.desc())


async def count_unread(db: AsyncSession, user_id: uuid.UUID) -> int:
    subquery = _inbox(user_id, unread_only=True).subquery()
    result = await db.execute(select(func.count()).select_from(subquery))
    return result.scalar() or 0


async def mark_read(db: AsyncSession, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
    result = await db.execute(
        _inbox(user_id).where(Notification.id == notification_id)
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification", str(notification_id))

    notification.is_read = True
    await db.flush()
    await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
            Notification.is_deleted.is_(False),
        )
        .values(is_read=True)
    )
    await db.flush()
    logger.info("Marked %d notifications read for user %s", result.rowcount, user_id)
    return result.rowcount

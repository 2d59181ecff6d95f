"""In-app notifications for order and dispute events."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db
from gorizont.common.pagination import PaginatedResponse, PaginationParams, page_response, paginate
from gorizont.core.notifications import service as notifications
from gorizont.db.models.notification import Notification
from gorizont.db.models.user import User

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# ---------- Schemas ----------

class NotificationOut(BaseModel):
    id: uuid.UUID
    category: str
    title: str
    body: str
    is_read: bool
    action_url: str | None
    metadata: dict
    created_at: str


class InboxPage(PaginatedResponse[NotificationOut]):
    unread_count: int


class ReadAllResult(BaseModel):
    updated: int


# ---------- Endpoints ----------

@router.get("", response_model=InboxPage)
async def inbox(
    unread_only: bool = False,
    params: PaginationParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = notifications.inbox_query(current_user.id, unread_only=unread_only)
    items, total = await paginate(db, query, params, Notification)
    unread = await notifications.count_unread(db, current_user.id)
    return page_response(InboxPage, items, total, params, _to_out, unread_count=unread)


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def read_one(
    notification_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await notifications.mark_read(db, notification_id, current_user.id)
    return _to_out(notification)


@router.post("/read-all", response_model=ReadAllResult)
async def read_all(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ReadAllResult(updated=await notifications.mark_all_read(db, current_user.id))


def _to_out(n: Notification) -> NotificationOut:
    return NotificationOut(
        id=n.id,
        category=n.category,
        title=n.title,
        body=n.body,
        is_read=n.is_read,
        action_url=n.action_url,
        metadata=n.metadata_ or {},
        created_at=n.created_at.isoformat(),
    )

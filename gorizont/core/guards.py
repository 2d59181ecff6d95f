"""Shared authorization and state predicates used by the workflow services.

Each rule lives here once so that endpoints which must agree on it (for
example the dispute lock checked by both status change and cancellation
resolution) cannot drift apart.
"""

from __future__ import annotations

import uuid

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.common.enums import DisputeStatus, OrderStatus, UserRole
from gorizont.db.models.conversation import ConversationParticipant
from gorizont.db.models.dispute import Dispute
from gorizont.db.models.order import Order
from gorizont.db.models.user import User

ACTIVE_DISPUTE_STATUSES: frozenset[str] = frozenset({
    DisputeStatus.OPENED.value,
    DisputeStatus.NEGOTIATING.value,
    DisputeStatus.ESCALATED.value,
})

REVIEWABLE_ORDER_STATUSES: frozenset[str] = frozenset({
    OrderStatus.COMPLETED.value,
    OrderStatus.DELIVERED.value,
})


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN.value


def is_buyer_of(order: Order, user: User) -> bool:
    return order.buyer_id == user.id


def is_vendor_of(order: Order, user: User) -> bool:
    return order.vendor_id == user.id


def can_manage_order(order: Order, user: User) -> bool:
    """Only the assigned vendor or an admin may drive the order workflow."""
    return is_vendor_of(order, user) or is_admin(user)


def can_view_order(order: Order, user: User) -> bool:
    return is_buyer_of(order, user) or can_manage_order(order, user)


def is_reviewable(order: Order) -> bool:
    return order.status in REVIEWABLE_ORDER_STATUSES


async def has_active_dispute(db: AsyncSession, order_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(
            exists().where(
                Dispute.order_id == order_id,
                Dispute.status.in_(ACTIVE_DISPUTE_STATUSES),
                Dispute.is_deleted.is_(False),
            )
        )
    )
    return bool(result.scalar())


async def is_participant(
    db: AsyncSession, conversation_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    result = await db.execute(
        select(
            exists().where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.is_deleted.is_(False),
            )
        )
    )
    return bool(result.scalar())

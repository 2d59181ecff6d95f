"""Conversations and messages between buyers, vendors and admins."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.common.enums import ConversationType
from gorizont.common.exceptions import BadRequestError, NotFoundError, PermissionDeniedError
from gorizont.common.logging import get_logger
from gorizont.config import settings
from gorizont.core import guards
from gorizont.db.base import utcnow
from gorizont.db.models.conversation import Conversation, ConversationParticipant, Message
from gorizont.db.models.user import User

logger = get_logger("messaging.service")


def participant_key(participant_ids: Iterable[uuid.UUID]) -> str:
    """Canonical, order-insensitive representation of a participant set."""
    return ",".join(sorted({str(pid) for pid in participant_ids}))


def _canonical(value: Any) -> Any:
    # bool is an int subclass; keep True and 1 distinct
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def contexts_equal(a: dict | None, b: dict | None) -> bool:
    """Deep structural equality. Key order is irrelevant; empty equals absent."""
    return _canonical(a or {}) == _canonical(b or {})


class ConversationService:
    async def get_or_create_conversation(
        self,
        conversation_type: ConversationType,
        participant_ids: list[uuid.UUID],
        context: dict[str, Any] | None,
        acting_user_id: uuid.UUID,
        db: AsyncSession,
    ) -> tuple[Conversation, bool]:
        """Return ``(conversation, created)``.

        A conversation is identified by its type, its participant set and its
        context. Asking for an existing triple returns the stored row as is.
        """
        members = set(participant_ids)
        if acting_user_id not in members:
            raise PermissionDeniedError("You must be a participant")

        known = await db.execute(
            select(func.count(User.id)).where(User.id.in_(members), User.is_deleted.is_(False))
        )
        if (known.scalar() or 0) != len(members):
            raise BadRequestError("One or more participants do not exist")

        key = participant_key(members)
        result = await db.execute(
            select(Conversation)
            .where(
                Conversation.type == conversation_type.value,
                Conversation.participant_key == key,
                Conversation.is_deleted.is_(False),
            )
            .order_by(Conversation.created_at.asc())
        )
        for candidate in result.scalars().all():
            if contexts_equal(candidate.context, context):
                return candidate, False

        conversation = Conversation(
            type=conversation_type.value,
            participant_key=key,
            context=context or {},
            last_message_at=utcnow(),
        )
        db.add(conversation)
        await db.flush()

        for member_id in sorted(members, key=str):
            db.add(ConversationParticipant(conversation_id=conversation.id, user_id=member_id))
        await db.flush()
        await db.refresh(conversation)

        logger.info(
            "Created %s conversation %s for %d participants",
            conversation_type.value, conversation.id, len(members),
        )
        return conversation, True

    async def get_conversation(self, conversation_id: uuid.UUID, db: AsyncSession) -> Conversation:
        result = await db.execute(
            select(Conversation).where(
                Conversation.id == conversation_id, Conversation.is_deleted.is_(False)
            )
        )
        conversation = result.scalar_one_or_none()
        if not conversation:
            raise NotFoundError("Conversation", str(conversation_id))
        return conversation

    async def get_accessible_conversation(
        self, conversation_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession
    ) -> Conversation:
        conversation = await self.get_conversation(conversation_id, db)
        if not await guards.is_participant(db, conversation.id, user_id):
            raise PermissionDeniedError("Access denied")
        return conversation

    async def send_message(
        self,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        text: str,
        attachments: list[str] | None,
        db: AsyncSession,
    ) -> Message:
        conversation = await self.get_accessible_conversation(conversation_id, sender_id, db)

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender_id,
            text=text,
            attachments=attachments or [],
            read_by=[str(sender_id)],
            sent_at=utcnow(),
        )
        db.add(message)
        conversation.last_message_at = message.sent_at

        # Message row and conversation timestamp are flushed in the same transaction
        try:
            await db.flush()
        except SQLAlchemyError:
            logger.error(
                "Failed to store message and bump timestamp for conversation %s",
                conversation.id,
            )
            raise
        await db.refresh(message)
        return message

    async def list_conversations(self, user_id: uuid.UUID, db: AsyncSession) -> list[Conversation]:
        result = await db.execute(
            select(Conversation)
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Conversation.id,
            )
            .where(
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.is_deleted.is_(False),
                Conversation.is_deleted.is_(False),
            )
            .order_by(Conversation.last_message_at.desc())
        )
        return list(result.scalars().all())

    async def participants_for(
        self, conversation_ids: list[uuid.UUID], db: AsyncSession
    ) -> dict[uuid.UUID, list[uuid.UUID]]:
        if not conversation_ids:
            return {}
        result = await db.execute(
            select(ConversationParticipant.conversation_id, ConversationParticipant.user_id).where(
                ConversationParticipant.conversation_id.in_(conversation_ids),
                ConversationParticipant.is_deleted.is_(False),
            )
        )
        members: dict[uuid.UUID, list[uuid.UUID]] = {cid: [] for cid in conversation_ids}
        for conversation_id, member_id in result.all():
            members[conversation_id].append(member_id)
        return members

    async def unread_counts(
        self, conversation_ids: list[uuid.UUID], user_id: uuid.UUID, db: AsyncSession
    ) -> dict[uuid.UUID, int]:
        if not conversation_ids:
            return {}
        result = await db.execute(
            select(Message.conversation_id, Message.read_by).where(
                Message.conversation_id.in_(conversation_ids),
                Message.sender_id != user_id,
                Message.is_deleted.is_(False),
            )
        )
        # read_by is a JSON list; membership is checked here to stay portable across backends
        me = str(user_id)
        counts = {cid: 0 for cid in conversation_ids}
        for conversation_id, read_by in result.all():
            if me not in (read_by or []):
                counts[conversation_id] += 1
        return counts

    async def list_messages(
        self,
        conversation_id: uuid.UUID,
        user_id: uuid.UUID,
        db: AsyncSession,
        limit: int | None = None,
    ) -> list[Message]:
        conversation = await self.get_accessible_conversation(conversation_id, user_id, db)
        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id, Message.is_deleted.is_(False))
            .order_by(Message.sent_at.asc(), Message.created_at.asc())
            .limit(limit or settings.MESSAGES_PAGE_LIMIT)
        )
        return list(result.scalars().all())

    async def mark_read(
        self, conversation_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession
    ) -> int:
        conversation = await self.get_accessible_conversation(conversation_id, user_id, db)
        result = await db.execute(
            select(Message).where(
                Message.conversation_id == conversation.id, Message.is_deleted.is_(False)
            )
        )
        me = str(user_id)
        marked = 0
        for message in result.scalars().all():
            if me not in (message.read_by or []):
                message.read_by = [*(message.read_by or []), me]
                marked += 1
        if marked:
            await db.flush()
        return marked

"""Buyer, vendor and admin conversations."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db
from gorizont.common.enums import ConversationType
from gorizont.core.messaging.service import ConversationService
from gorizont.db.models.conversation import Conversation, Message
from gorizont.db.models.user import User

router = APIRouter(prefix="/conversations", tags=["Conversations"])
conversation_service = ConversationService()


# ---------- Schemas ----------

class ConversationCreateRequest(BaseModel):
    type: ConversationType
    participant_ids: list[uuid.UUID] = Field(min_length=1)
    context: dict[str, Any] | None = None


class ConversationResponse(BaseModel):
    id: uuid.UUID
    type: str
    participant_ids: list[uuid.UUID]
    context: dict[str, Any]
    last_message_at: datetime
    unread_count: int = 0
    created: bool = False


class ConversationListResponse(BaseModel):
    conversations: list[ConversationResponse]
    total: int


class MessageResponse(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    text: str
    attachments: list[str]
    read_by: list[str]
    sent_at: datetime


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]
    total: int


class MarkReadResponse(BaseModel):
    marked: int


# ---------- Endpoints ----------

@router.post("", response_model=ConversationResponse, status_code=201)
async def get_or_create_conversation(
    body: ConversationCreateRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation, created = await conversation_service.get_or_create_conversation(
        body.type, body.participant_ids, body.context, current_user.id, db
    )
    if not created:
        response.status_code = 200

    members = await conversation_service.participants_for([conversation.id], db)
    return _conversation_response(conversation, members[conversation.id], created=created)


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversations = await conversation_service.list_conversations(current_user.id, db)
    ids = [c.id for c in conversations]
    members = await conversation_service.participants_for(ids, db)
    unread = await conversation_service.unread_counts(ids, current_user.id, db)

    return ConversationListResponse(
        conversations=[
            _conversation_response(c, members[c.id], unread_count=unread[c.id])
            for c in conversations
        ],
        total=len(conversations),
    )


@router.get("/{conversation_id}/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    limit: int | None = Query(None, ge=1, le=500),
):
    messages = await conversation_service.list_messages(
        conversation_id, current_user.id, db, limit=limit
    )
    return MessageListResponse(
        messages=[message_to_response(m) for m in messages],
        total=len(messages),
    )


@router.post("/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_conversation_read(
    conversation_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    marked = await conversation_service.mark_read(conversation_id, current_user.id, db)
    return MarkReadResponse(marked=marked)


def _conversation_response(
    conversation: Conversation,
    participant_ids: list[uuid.UUID],
    unread_count: int = 0,
    created: bool = False,
) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        type=conversation.type,
        participant_ids=sorted(participant_ids, key=str),
        context=conversation.context or {},
        last_message_at=conversation.last_message_at,
        unread_count=unread_count,
        created=created,
    )


def message_to_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        text=message.text,
        attachments=message.attachments or [],
        read_by=message.read_by or [],
        sent_at=message.sent_at,
    )

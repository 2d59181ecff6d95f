import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db
from gorizont.api.v1.conversations import MessageResponse, message_to_response
from gorizont.core.messaging.service import ConversationService
from gorizont.db.models.user import User

router = APIRouter(prefix="/messages", tags=["Conversations"])
conversation_service = ConversationService()


# ---------- Schemas ----------


class MessageCreateRequest(BaseModel):
    conversation_id: uuid.UUID
    text: str = Field(min_length=1, max_length=10000)
    attachments: list[str] = []


# ---------- Endpoints ----------


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    body: MessageCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await conversation_service.send_message(
        body.conversation_id, current_user.id, body.text, body.attachments, db
    )
    return message_to_response(message)

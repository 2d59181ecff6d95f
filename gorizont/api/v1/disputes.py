import uuid
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db
from gorizont.common.enums import DisputeReason, DisputeStatus
from gorizont.common.exceptions import BadRequestError
from gorizont.core.disputes.service import DisputeService
from gorizont.db.models.dispute import Dispute
from gorizont.db.models.user import User

router = APIRouter(prefix="/disputes", tags=["Disputes"])
dispute_service = DisputeService()


# ---------- Schemas ----------


class DisputeCreateRequest(BaseModel):
    order_id: uuid.UUID
    reason: DisputeReason
    description: str = ""
    amount_requested: Decimal = Field(default=Decimal("0.00"), ge=0)
    evidence: list[str] = []


class DisputeUpdateRequest(BaseModel):
    action: str  # "respond", "escalate", "resolve"
    text: str | None = None
    resolution: DisputeStatus | None = None
    note: str | None = None


class DisputeResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID | None
    initiator_id: uuid.UUID
    respondent_id: uuid.UUID
    reason: str
    description: str
    amount_requested: Decimal
    status: str
    evidence: list[str]
    messages: list[dict]
    resolution_note: str | None
    conversation_id: uuid.UUID | None
    status_changed_at: datetime
    resolved_at: datetime | None
    created_at: str


class DisputeListResponse(BaseModel):
    disputes: list[DisputeResponse]
    total: int


# ---------- Endpoints ----------


@router.post("", response_model=DisputeResponse, status_code=201)
async def open_dispute(
    body: DisputeCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    dispute = await dispute_service.open_dispute(
        order_id=body.order_id,
        actor=current_user,
        reason=body.reason,
        description=body.description,
        amount_requested=body.amount_requested,
        evidence=body.evidence,
        db=db,
    )
    return _dispute_to_response(dispute)


@router.get("", response_model=DisputeListResponse)
async def list_disputes(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    disputes = await dispute_service.list_disputes(current_user, db)
    return DisputeListResponse(
        disputes=[_dispute_to_response(d) for d in disputes],
        total=len(disputes),
    )


@router.get("/{dispute_id}", response_model=DisputeResponse)
async def get_dispute(
    dispute_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    dispute = await dispute_service.get_visible_dispute(dispute_id, current_user, db)
    return _dispute_to_response(dispute)


@router.patch("/{dispute_id}", response_model=DisputeResponse)
async def update_dispute(
    dispute_id: uuid.UUID,
    body: DisputeUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    dispute = await dispute_service.get_visible_dispute(dispute_id, current_user, db)

    if body.action == "respond":
        dispute = await dispute_service.respond(dispute, current_user, body.text, db)

    elif body.action == "escalate":
        dispute = await dispute_service.escalate(
            dispute, db, actor=current_user, reason=body.text or ""
        )

    elif body.action == "resolve":
        if not body.resolution:
            raise BadRequestError("A resolution is required when resolving a dispute")
        dispute = await dispute_service.resolve(
            dispute, current_user, body.resolution, db, note=body.note
        )

    else:
        raise BadRequestError(f"Unknown action: {body.action}")

    return _dispute_to_response(dispute)


def _dispute_to_response(dispute: Dispute) -> DisputeResponse:
    return DisputeResponse(
        id=dispute.id,
        order_id=dispute.order_id,
        product_id=dispute.product_id,
        initiator_id=dispute.initiator_id,
        respondent_id=dispute.respondent_id,
        reason=dispute.reason,
        description=dispute.description,
        amount_requested=dispute.amount_requested,
        status=dispute.status,
        evidence=dispute.evidence or [],
        messages=dispute.messages or [],
        resolution_note=dispute.resolution_note,
        conversation_id=dispute.conversation_id,
        status_changed_at=dispute.status_changed_at,
        resolved_at=dispute.resolved_at,
        created_at=dispute.created_at.isoformat(),
    )

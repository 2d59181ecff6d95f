import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db, require_role
from gorizont.common.enums import AppealStatus, AppealTargetType, UserRole
from gorizont.common.pagination import PaginatedResponse, PaginationParams, page_response, paginate
from gorizont.core.appeals.service import AppealService
from gorizont.db.models.appeal import Appeal
from gorizont.db.models.user import User

router = APIRouter(prefix="/appeals", tags=["Appeals"])
appeal_service = AppealService()


# ---------- Schemas ----------


class AppealCreateRequest(BaseModel):
    target_type: AppealTargetType
    target_id: uuid.UUID
    reason: str = Field(min_length=1, max_length=500)
    details: str = Field(default="", max_length=5000)


class AppealUpdateRequest(BaseModel):
    status: AppealStatus | None = None
    admin_note: str | None = Field(default=None, max_length=5000)


class AppealResponse(BaseModel):
    id: uuid.UUID
    reporter_id: uuid.UUID
    target_type: str
    target_id: uuid.UUID
    reason: str
    details: str
    status: str
    admin_note: str | None
    handled_by_id: uuid.UUID | None
    closed_at: str | None
    created_at: str


class AppealListResponse(PaginatedResponse[AppealResponse]):
    pass


# ---------- Endpoints ----------


@router.post("", response_model=AppealResponse, status_code=201)
async def file_appeal(
    body: AppealCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    appeal = await appeal_service.file_appeal(
        current_user, body.target_type, body.target_id, body.reason, db, details=body.details
    )
    return _appeal_response(appeal)


@router.get("", response_model=AppealListResponse)
async def list_appeals(
    status: AppealStatus | None = None,
    target_type: AppealTargetType | None = None,
    params: PaginationParams = Depends(),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    query = appeal_service.appeals_query(status=status, target_type=target_type)
    items, total = await paginate(db, query, params, Appeal)
    return page_response(AppealListResponse, items, total, params, _appeal_response)


@router.get("/{appeal_id}", response_model=AppealResponse)
async def get_appeal(
    appeal_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _appeal_response(await appeal_service.get_appeal(appeal_id, current_user, db))


@router.patch("/{appeal_id}", response_model=AppealResponse)
async def update_appeal(
    appeal_id: uuid.UUID,
    body: AppealUpdateRequest,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    appeal = await appeal_service.get_appeal(appeal_id, current_user, db)
    appeal = await appeal_service.update_appeal(
        appeal, current_user, db, status=body.status, admin_note=body.admin_note
    )
    return _appeal_response(appeal)


def _appeal_response(appeal: Appeal) -> AppealResponse:
    return AppealResponse(
        id=appeal.id,
        reporter_id=appeal.reporter_id,
        target_type=appeal.target_type,
        target_id=appeal.target_id,
        reason=appeal.reason,
        details=appeal.details,
        status=appeal.status,
        admin_note=appeal.admin_note,
        handled_by_id=appeal.handled_by_id,
        closed_at=appeal.closed_at.isoformat() if appeal.closed_at else None,
        created_at=appeal.created_at.isoformat(),
    )

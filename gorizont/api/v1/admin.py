import uuid
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel as PydanticModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_db, require_role
from gorizont.common.enums import UserRole
from gorizont.common.pagination import PaginatedResponse, PaginationParams, page_response, paginate
from gorizont.db.models.audit import AuditLog
from gorizont.db.models.user import User

router = APIRouter(prefix="/admin", tags=["Admin"])


# ---------- Schemas ----------


class AuditEntryResponse(PydanticModel):
    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    action: str
    actor_id: uuid.UUID | None
    diff: dict[str, Any] | None
    created_at: str


class AuditListResponse(PaginatedResponse[AuditEntryResponse]):
    pass


# ---------- Endpoints ----------


@router.get("/audit", response_model=AuditListResponse)
async def list_audit_log(
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
    params: PaginationParams = Depends(),
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
):
    query = select(AuditLog).where(AuditLog.is_deleted.is_(False))
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.where(AuditLog.entity_id == entity_id)
    query = query.order_by(AuditLog.created_at.desc())

    items, total = await paginate(db, query, params, AuditLog)
    return page_response(AuditListResponse, items, total, params, _audit_response)


def _audit_response(entry: AuditLog) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=entry.id,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        action=entry.action,
        actor_id=entry.actor_id,
        diff=entry.diff,
        created_at=entry.created_at.isoformat(),
    )

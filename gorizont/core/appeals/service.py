"""Appeals: reports filed by users and worked through by admins."""

from __future__ import annotations

import uuid

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.common.enums import AppealStatus, AppealTargetType, NotificationType
from gorizont.common.exceptions import (
    BadRequestError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from gorizont.common.logging import get_logger
from gorizont.core import guards
from gorizont.core.appeals.workflow import CLOSED_STATUSES, can_transition
from gorizont.core.audit.service import record_audit
from gorizont.core.notifications.service import create_notification
from gorizont.db.base import utcnow
from gorizont.db.models.appeal import Appeal
from gorizont.db.models.order import Order
from gorizont.db.models.product import Product
from gorizont.db.models.review import Review
from gorizont.db.models.user import User

logger = get_logger("appeals.service")

TARGET_MODELS = {
    AppealTargetType.PRODUCT: Product,
    AppealTargetType.REVIEW: Review,
    AppealTargetType.ORDER: Order,
    AppealTargetType.USER: User,
}


class AppealService:
    async def file_appeal(
        self,
        reporter: User,
        target_type: AppealTargetType,
        target_id: uuid.UUID,
        reason: str,
        db: AsyncSession,
        details: str = "",
    ) -> Appeal:
        if target_type == AppealTargetType.USER and target_id == reporter.id:
            raise BadRequestError("You cannot file an appeal against yourself")

        model = TARGET_MODELS[target_type]
        found = await db.execute(
            select(model.id).where(model.id == target_id, model.is_deleted.is_(False))
        )
        if found.scalar_one_or_none() is None:
            raise NotFoundError(target_type.value.capitalize(), str(target_id))

        duplicate = await db.execute(
            select(Appeal.id).where(
                Appeal.reporter_id == reporter.id,
                Appeal.target_type == target_type.value,
                Appeal.target_id == target_id,
                Appeal.status.not_in([s.value for s in CLOSED_STATUSES]),
                Appeal.is_deleted.is_(False),
            )
        )
        if duplicate.first() is not None:
            raise ConflictError("You already have an open appeal about this")

        appeal = Appeal(
            reporter_id=reporter.id,
            target_type=target_type.value,
            target_id=target_id,
            reason=reason,
            details=details,
            status=AppealStatus.OPEN.value,
        )
        db.add(appeal)
        await db.flush()

        await record_audit(
            db, "appeal", appeal.id, "filed", reporter.id,
            {"target_type": target_type.value, "target_id": str(target_id)},
        )
        await db.refresh(appeal)

        logger.info("Appeal %s filed by %s on %s %s", appeal.id, reporter.id, target_type.value, target_id)
        return appeal

    async def get_appeal(self, appeal_id: uuid.UUID, user: User, db: AsyncSession) -> Appeal:
        result = await db.execute(
            select(Appeal).where(Appeal.id == appeal_id, Appeal.is_deleted.is_(False))
        )
        appeal = result.scalar_one_or_none()
        if not appeal:
            raise NotFoundError("Appeal", str(appeal_id))
        if appeal.reporter_id != user.id and not guards.is_admin(user):
            raise PermissionDeniedError("You do not have access to this appeal")
        return appeal

    def appeals_query(
        self,
        status: AppealStatus | None = None,
        target_type: AppealTargetType | None = None,
    ) -> Select:
        query = select(Appeal).where(Appeal.is_deleted.is_(False))
        if status:
            query = query.where(Appeal.status == status.value)
        if target_type:
            query = query.where(Appeal.target_type == target_type.value)
        return query.order_by(Appeal.created_at.desc())

    async def update_appeal(
        self,
        appeal: Appeal,
        admin: User,
        db: AsyncSession,
        status: AppealStatus | None = None,
        admin_note: str | None = None,
    ) -> Appeal:
        if status is None and admin_note is None:
            raise BadRequestError("Nothing to update")

        previous = appeal.status
        if status is not None and status.value != previous:
            if not can_transition(previous, status):
                raise InvalidStateError(
                    f"Cannot move appeal from '{previous}' to '{status.value}'"
                )
            appeal.status = status.value
            if status in CLOSED_STATUSES:
                appeal.closed_at = utcnow()
        if admin_note is not None:
            appeal.admin_note = admin_note
        appeal.handled_by_id = admin.id
        await db.flush()

        await record_audit(
            db, "appeal", appeal.id, "updated", admin.id,
            {"from": previous, "to": appeal.status},
        )
        if appeal.status != previous:
            await create_notification(
                db,
                appeal.reporter_id,
                NotificationType.APPEAL_UPDATED,
                title="Your appeal was updated",
                body=f"Your appeal is now {appeal.status}",
                metadata={"appeal_id": str(appeal.id), "status": appeal.status},
            )
        await db.refresh(appeal)
        return appeal

import uuid
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.common.enums import (
    ConversationType,
    DisputeReason,
    DisputeStatus,
    NotificationType,
    OrderStatus,
    UserRole,
)
from gorizont.common.exceptions import (
    BadRequestError,
    ConflictError,
    GorizontException,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from gorizont.common.logging import get_logger
from gorizont.core import guards
from gorizont.core.audit.service import record_audit
from gorizont.core.disputes.workflow import (
    BUYER_RESOLUTIONS,
    TERMINAL_STATUSES,
    VENDOR_RESOLUTIONS,
    can_transition,
    check_escalation_needed,
    log_entry,
)
from gorizont.core.messaging.service import ConversationService
from gorizont.core.notifications.service import create_notification
from gorizont.core.orders.service import OrderService
from gorizont.db.base import utcnow
from gorizont.db.models.dispute import Dispute
from gorizont.db.models.user import User

logger = get_logger("disputes.service")


class DisputeService:
    def __init__(self) -> None:
        self.orders = OrderService()
        self.conversations = ConversationService()

    async def get_dispute(self, dispute_id: uuid.UUID, db: AsyncSession) -> Dispute:
        result = await db.execute(
            select(Dispute).where(Dispute.id == dispute_id, Dispute.is_deleted.is_(False))
        )
        dispute = result.scalar_one_or_none()
        if not dispute:
            raise NotFoundError("Dispute", str(dispute_id))
        return dispute

    async def get_visible_dispute(
        self, dispute_id: uuid.UUID, user: User, db: AsyncSession
    ) -> Dispute:
        dispute = await self.get_dispute(dispute_id, db)
        if not (_is_party(dispute, user) or guards.is_admin(user)):
            raise PermissionDeniedError("You do not have access to this dispute")
        return dispute

    async def list_disputes(self, user: User, db: AsyncSession) -> list[Dispute]:
        query = select(Dispute).where(Dispute.is_deleted.is_(False))
        if not guards.is_admin(user):
            query = query.where(
                or_(Dispute.initiator_id == user.id, Dispute.respondent_id == user.id)
            )
        result = await db.execute(query.order_by(Dispute.created_at.desc()))
        return list(result.scalars().all())

    async def open_dispute(
        self,
        order_id: uuid.UUID,
        actor: User,
        reason: DisputeReason,
        description: str,
        amount_requested: Decimal,
        evidence: list[str],
        db: AsyncSession,
    ) -> Dispute:
        order = await self.orders.get_order(order_id, db)

        if not guards.is_buyer_of(order, actor):
            raise PermissionDeniedError("You can only dispute your own orders")
        if order.status == OrderStatus.CANCELLED.value:
            raise InvalidStateError("A cancelled order cannot be disputed")

        # Query-then-insert: two simultaneous requests can both pass this check
        if await guards.has_active_dispute(db, order.id):
            raise ConflictError("An active dispute already exists for this order")

        items = order.items or []
        product_id = uuid.UUID(items[0]["product_id"]) if len(items) == 1 else None

        dispute = Dispute(
            order_id=order.id,
            product_id=product_id,
            initiator_id=actor.id,
            respondent_id=order.vendor_id,
            reason=reason.value,
            description=description,
            amount_requested=amount_requested,
            status=DisputeStatus.OPENED.value,
            evidence=list(evidence),
            messages=[],
            status_changed_at=utcnow(),
        )
        db.add(dispute)
        await db.flush()

        await record_audit(
            db, "dispute", dispute.id, "opened", actor.id,
            {"order_id": str(order.id), "reason": reason.value},
        )
        await create_notification(
            db,
            dispute.respondent_id,
            NotificationType.DISPUTE_OPENED,
            title="A dispute was opened",
            body=f"The buyer opened a dispute on order {order.id}: {reason.value}",
            metadata={"order_id": str(order.id), "dispute_id": str(dispute.id)},
        )
        await db.refresh(dispute)

        logger.info("Dispute %s opened on order %s by %s", dispute.id, order.id, actor.id)
        return dispute

    async def respond(self, dispute: Dispute, actor: User, text: str | None, db: AsyncSession) -> Dispute:
        if not text:
            raise BadRequestError("Response text is required")
        self._ensure_active(dispute)
        if not (_is_party(dispute, actor) or guards.is_admin(actor)):
            raise PermissionDeniedError("You do not have access to this dispute")

        dispute.messages = [*(dispute.messages or []), log_entry("response", str(actor.id), text)]
        if dispute.status == DisputeStatus.OPENED.value and actor.id == dispute.respondent_id:
            self._set_status(dispute, DisputeStatus.NEGOTIATING)

        await db.flush()
        await record_audit(db, "dispute", dispute.id, "responded", actor.id, {"status": dispute.status})
        await db.refresh(dispute)
        return dispute

    async def escalate(
        self,
        dispute: Dispute,
        db: AsyncSession,
        actor: User | None = None,
        reason: str = "",
    ) -> Dispute:
        """Escalate to platform review. ``actor`` is None for automatic escalation."""
        if actor is not None and not _is_party(dispute, actor):
            raise PermissionDeniedError("Only the parties of a dispute can escalate it")
        if not can_transition(dispute.status, DisputeStatus.ESCALATED):
            raise InvalidStateError(f"A dispute that is '{dispute.status}' cannot be escalated")

        previous = dispute.status
        self._set_status(dispute, DisputeStatus.ESCALATED)
        dispute.messages = [
            *(dispute.messages or []),
            log_entry(
                "escalated",
                str(actor.id) if actor else None,
                reason,
                **{"from": previous, "to": DisputeStatus.ESCALATED.value},
            ),
        ]

        participants = [dispute.initiator_id, dispute.respondent_id]
        admin = await _first_admin(db)
        if admin and admin.id not in participants:
            participants.append(admin.id)

        conversation, _ = await self.conversations.get_or_create_conversation(
            ConversationType.DISPUTE,
            participants,
            {"order_id": str(dispute.order_id), "dispute_id": str(dispute.id)},
            actor.id if actor else dispute.initiator_id,
            db,
        )
        dispute.conversation_id = conversation.id
        await db.flush()

        await record_audit(
            db, "dispute", dispute.id, "escalated", actor.id if actor else None,
            {"from": previous, "automatic": actor is None},
        )
        for user_id in (dispute.initiator_id, dispute.respondent_id):
            await create_notification(
                db,
                user_id,
                NotificationType.DISPUTE_ESCALATED,
                title="Dispute escalated",
                body=reason or "The dispute was escalated to platform review",
                metadata={"dispute_id": str(dispute.id), "conversation_id": str(conversation.id)},
            )
        await db.refresh(dispute)
        return dispute

    async def resolve(
        self,
        dispute: Dispute,
        actor: User,
        resolution: DisputeStatus,
        db: AsyncSession,
        note: str | None = None,
    ) -> Dispute:
        if resolution not in TERMINAL_STATUSES:
            raise BadRequestError(
                "Resolution must be one of: "
                + ", ".join(sorted(s.value for s in TERMINAL_STATUSES))
            )
        self._ensure_active(dispute)
        self._authorize_resolution(dispute, actor, resolution)

        previous = dispute.status
        self._set_status(dispute, resolution)
        dispute.resolution_note = note
        dispute.messages = [
            *(dispute.messages or []),
            log_entry("resolved", str(actor.id), note or "", resolution=resolution.value),
        ]
        await db.flush()

        await record_audit(
            db, "dispute", dispute.id, "resolved", actor.id,
            {"from": previous, "to": resolution.value},
        )
        for user_id in {dispute.initiator_id, dispute.respondent_id} - {actor.id}:
            await create_notification(
                db,
                user_id,
                NotificationType.DISPUTE_RESOLVED,
                title="Dispute closed",
                body=f"The dispute on order {dispute.order_id} was closed: {resolution.value}",
                metadata={"dispute_id": str(dispute.id), "resolution": resolution.value},
            )
        await db.refresh(dispute)

        logger.info("Dispute %s resolved as %s by %s", dispute.id, resolution.value, actor.id)
        return dispute

    async def check_escalations(self, db: AsyncSession) -> list[str]:
        result = await db.execute(
            select(Dispute).where(
                Dispute.status.in_([DisputeStatus.OPENED.value, DisputeStatus.NEGOTIATING.value]),
                Dispute.is_deleted.is_(False),
            )
        )
        escalated = []
        for dispute in result.scalars().all():
            rule = check_escalation_needed(dispute.status, dispute.status_changed_at)
            if not rule:
                continue

            # A rolled back savepoint expires the row, so keep plain values for logging
            dispute_id, old_status = dispute.id, dispute.status
            try:
                async with db.begin_nested():
                    await self.escalate(dispute, db, reason=rule.message)
            except (GorizontException, SQLAlchemyError) as e:
                logger.error("Could not auto-escalate dispute %s: %s", dispute_id, e)
                continue

            escalated.append(str(dispute_id))
            logger.info("Auto-escalated dispute %s: %s -> escalated", dispute_id, old_status)
        return escalated

    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_active(dispute: Dispute) -> None:
        if DisputeStatus(dispute.status) in TERMINAL_STATUSES:
            raise InvalidStateError(f"Dispute is already closed ({dispute.status})")

    @staticmethod
    def _authorize_resolution(dispute: Dispute, actor: User, resolution: DisputeStatus) -> None:
        if guards.is_admin(actor):
            return
        if actor.id == dispute.respondent_id and resolution in VENDOR_RESOLUTIONS:
            if dispute.status == DisputeStatus.ESCALATED.value:
                raise PermissionDeniedError("Escalated disputes are resolved by the platform")
            return
        if actor.id == dispute.initiator_id and resolution in BUYER_RESOLUTIONS:
            return
        raise PermissionDeniedError(f"You cannot resolve this dispute as '{resolution.value}'")

    @staticmethod
    def _set_status(dispute: Dispute, status: DisputeStatus) -> None:
        dispute.status = status.value
        dispute.status_changed_at = utcnow()
        if status in TERMINAL_STATUSES:
            dispute.resolved_at = dispute.status_changed_at


def _is_party(dispute: Dispute, user: User) -> bool:
    return user.id in (dispute.initiator_id, dispute.respondent_id)


async def _first_admin(db: AsyncSession) -> User | None:
    result = await db.execute(
        select(User)
        .where(
            User.role == UserRole.ADMIN.value,
            User.is_active.is_(True),
            User.is_deleted.is_(False),
        )
        .order_by(User.created_at.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()

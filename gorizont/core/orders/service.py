from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from gorizont.common.enums import NotificationType, OrderStatus, PaymentMethod
from gorizont.common.exceptions import (
    BadRequestError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from gorizont.common.logging import get_logger
from gorizont.core import guards
from gorizont.core.audit.service import record_audit
from gorizont.core.notifications.service import create_notification
from gorizont.core.orders.workflow import (
    BUYER_CANCELLABLE,
    can_transition,
    compute_subtotal,
    delivery_price_for,
    money,
    normalize_status,
    timeline_entry,
)
from gorizont.db.models.order import Order
from gorizont.db.models.product import Product
from gorizont.db.models.user import User

logger = get_logger("orders.service")


class OrderService:
    async def get_order(self, order_id: uuid.UUID, db: AsyncSession) -> Order:
        result = await db.execute(
            select(Order).where(Order.id == order_id, Order.is_deleted.is_(False))
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order", str(order_id))
        return order

    async def get_visible_order(self, order_id: uuid.UUID, user: User, db: AsyncSession) -> Order:
        order = await self.get_order(order_id, db)
        if not guards.can_view_order(order, user):
            raise PermissionDeniedError("You do not have access to this order")
        return order

    async def create_order(
        self,
        buyer: User,
        items: list[tuple[uuid.UUID, int]],
        payment_method: PaymentMethod,
        city: str,
        address: str,
        db: AsyncSession,
        customer_name: str | None = None,
        phone: str | None = None,
        comment: str | None = None,
    ) -> Order:
        if not items:
            raise BadRequestError("An order must contain at least one item")

        product_ids = {product_id for product_id, _ in items}
        result = await db.execute(
            select(Product).where(Product.id.in_(product_ids), Product.is_deleted.is_(False))
        )
        products = {p.id: p for p in result.scalars().all()}

        line_items = []
        vendor_ids = set()
        for product_id, quantity in items:
            product = products.get(product_id)
            if not product:
                raise NotFoundError("Product", str(product_id))
            if not product.in_stock:
                raise BadRequestError(f"Product '{product.title}' is out of stock")
            vendor_ids.add(product.vendor_id)
            line_items.append({
                "product_id": str(product.id),
                "title": product.title,
                "unit_price": str(money(product.price)),
                "quantity": quantity,
            })

        if len(vendor_ids) > 1:
            raise BadRequestError("All items in an order must come from the same vendor")

        subtotal = compute_subtotal(line_items)
        delivery_price = delivery_price_for(city)

        order = Order(
            buyer_id=buyer.id,
            vendor_id=vendor_ids.pop(),
            items=line_items,
            subtotal=subtotal,
            delivery_price=delivery_price,
            total=subtotal + delivery_price,
            payment_method=payment_method.value,
            customer_name=customer_name or buyer.full_name,
            phone=phone,
            city=city,
            address=address,
            shipping_address=f"{city}, {address}",
            comment=comment,
            status=OrderStatus.PENDING.value,
            timeline=[
                timeline_entry(OrderStatus.PENDING, str(buyer.id), buyer.full_name, "Order placed")
            ],
        )
        db.add(order)
        await db.flush()
        await record_audit(
            db, "order", order.id, "created", buyer.id,
            {"total": str(order.total), "items": len(line_items)},
        )
        await db.refresh(order)

        logger.info("Order %s placed by %s (total %s)", order.id, buyer.id, order.total)
        return order

    async def request_status_change(
        self,
        order_id: uuid.UUID,
        new_status: str,
        actor: User,
        db: AsyncSession,
        note: str | None = None,
    ) -> Order:
        order = await self.get_order(order_id, db)

        if not guards.can_manage_order(order, actor):
            raise PermissionDeniedError("Only the vendor can update order status")

        await self._ensure_not_locked(order, db)
        target = normalize_status(new_status)

        if order.status == OrderStatus.CANCELLATION_REQUESTED.value and target == OrderStatus.SHIPPED:
            raise ConflictError("Buyer requested cancellation. Resolve the request first")

        if not can_transition(order.status, target):
            raise InvalidStateError(
                f"Cannot move order from '{order.status}' to '{target.value}'"
            )

        previous = order.status
        self._apply_status(order, target, actor, note)
        await self._save(order, db)

        await record_audit(
            db, "order", order.id, "status_changed", actor.id,
            {"from": previous, "to": target.value},
        )
        await create_notification(
            db,
            order.buyer_id,
            NotificationType.ORDER_STATUS,
            title="Order status updated",
            body=f"Your order is now {target.value}",
            metadata={"order_id": str(order.id), "status": target.value},
        )

        logger.info("Order %s: %s -> %s by %s", order.id, previous, target.value, actor.id)
        return order

    async def request_cancellation(
        self,
        order_id: uuid.UUID,
        actor: User,
        db: AsyncSession,
        reason: str | None = None,
    ) -> Order:
        order = await self.get_order(order_id, db)

        if not guards.is_buyer_of(order, actor):
            raise PermissionDeniedError("Only the buyer can request cancellation")
        if order.status not in {s.value for s in BUYER_CANCELLABLE}:
            raise InvalidStateError(
                f"Cancellation cannot be requested for an order that is '{order.status}'"
            )

        order.status_before_cancellation = order.status
        self._apply_status(order, OrderStatus.CANCELLATION_REQUESTED, actor, reason)
        await self._save(order, db)

        await record_audit(db, "order", order.id, "cancellation_requested", actor.id, {"reason": reason})
        await create_notification(
            db,
            order.vendor_id,
            NotificationType.CANCELLATION_REQUESTED,
            title="Cancellation requested",
            body=f"The buyer asked to cancel order {order.id}",
            metadata={"order_id": str(order.id)},
        )
        return order

    async def resolve_cancellation(
        self,
        order_id: uuid.UUID,
        actor: User,
        accept: bool,
        db: AsyncSession,
        note: str | None = None,
    ) -> Order:
        order = await self.get_order(order_id, db)

        if not guards.can_manage_order(order, actor):
            raise PermissionDeniedError("Only the vendor can resolve a cancellation request")

        await self._ensure_not_locked(order, db)

        if order.status != OrderStatus.CANCELLATION_REQUESTED.value:
            raise InvalidStateError("There is no pending cancellation request for this order")

        if accept:
            target = OrderStatus.CANCELLED
        else:
            target = OrderStatus(order.status_before_cancellation or OrderStatus.PENDING.value)

        order.status_before_cancellation = None
        self._apply_status(order, target, actor, note)
        await self._save(order, db)

        await record_audit(
            db, "order", order.id, "cancellation_resolved", actor.id,
            {"accepted": accept, "status": target.value},
        )
        await create_notification(
            db,
            order.buyer_id,
            NotificationType.CANCELLATION_RESOLVED,
            title="Cancellation accepted" if accept else "Cancellation declined",
            body=f"Your order is now {target.value}",
            metadata={"order_id": str(order.id), "accepted": accept},
        )
        return order

    # ------------------------------------------------------------------

    async def _ensure_not_locked(self, order: Order, db: AsyncSession) -> None:
        if await guards.has_active_dispute(db, order.id):
            raise ConflictError("Order is locked due to an active dispute")

    @staticmethod
    def _apply_status(order: Order, status: OrderStatus, actor: User, note: str | None) -> None:
        # Status and timeline always change together in one row update
        order.status = status.value
        order.timeline = [
            *(order.timeline or []),
            timeline_entry(status, str(actor.id), actor.full_name, note),
        ]

    @staticmethod
    async def _save(order: Order, db: AsyncSession) -> None:
        # A failed flush expires the instance, so the id is read up front
        order_id = order.id
        try:
            await db.flush()
        except StaleDataError:
            logger.warning("Concurrent update detected on order %s", order_id)
            raise ConflictError("Order was modified by another request. Reload and retry")
        await db.refresh(order)

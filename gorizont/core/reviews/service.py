"""Review gate and product rating aggregates."""

from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.common.enums import ReviewStatus
from gorizont.common.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from gorizont.common.logging import get_logger
from gorizont.core import guards
from gorizont.core.audit.service import record_audit
from gorizont.core.orders.service import OrderService
from gorizont.db.models.product import Product
from gorizont.db.models.review import Review
from gorizont.db.models.user import User

logger = get_logger("reviews.service")


class ReviewService:
    def __init__(self) -> None:
        self.orders = OrderService()

    async def create_review(
        self,
        actor: User,
        product_id: uuid.UUID,
        order_id: uuid.UUID,
        rating: int,
        text: str | None,
        db: AsyncSession,
    ) -> Review:
        order = await self.orders.get_order(order_id, db)
        if not guards.is_buyer_of(order, actor):
            raise PermissionDeniedError("You did not make this order")
        if not guards.is_reviewable(order):
            raise InvalidStateError("Order must be completed to leave a review")

        existing = await db.execute(
            select(Review.id).where(Review.user_id == actor.id, Review.product_id == product_id)
        )
        if existing.scalar_one_or_none():
            raise ConflictError("You have already reviewed this product")

        product = await _get_product(product_id, db)

        if not any(item.get("product_id") == str(product_id) for item in order.items or []):
            logger.warning(
                "Review for product %s references order %s which does not list it",
                product_id, order_id,
            )

        review = Review(
            product_id=product.id,
            order_id=order.id,
            user_id=actor.id,
            rating=rating,
            text=text,
            status=ReviewStatus.APPROVED.value,
        )
        db.add(review)
        await db.flush()

        await self.recompute_product_rating(product, db)
        await record_audit(
            db, "review", review.id, "created", actor.id,
            {"product_id": str(product.id), "rating": rating},
        )
        await db.refresh(review)
        return review

    async def get_review(self, review_id: uuid.UUID, db: AsyncSession) -> Review:
        result = await db.execute(
            select(Review).where(Review.id == review_id, Review.is_deleted.is_(False))
        )
        review = result.scalar_one_or_none()
        if not review:
            raise NotFoundError("Review", str(review_id))
        return review

    async def moderate(
        self, review: Review, status: ReviewStatus, actor: User, db: AsyncSession
    ) -> Review:
        previous = review.status
        review.status = status.value
        await db.flush()

        product = await _get_product(review.product_id, db)
        await self.recompute_product_rating(product, db)
        await record_audit(
            db, "review", review.id, "moderated", actor.id,
            {"from": previous, "to": status.value},
        )
        await db.refresh(review)
        return review

    async def delete(self, review: Review, actor: User, db: AsyncSession) -> None:
        product_id = review.product_id
        review_id = review.id
        await db.delete(review)
        await db.flush()

        product = await _get_product(product_id, db)
        await self.recompute_product_rating(product, db)
        await record_audit(db, "review", review_id, "deleted", actor.id, {"product_id": str(product_id)})

    async def recompute_product_rating(self, product: Product, db: AsyncSession) -> Product:
        """Recompute count and mean from every approved review.

        Aggregates are never adjusted incrementally, so removals and
        moderation cannot accumulate floating-point drift.
        """
        result = await db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(
                Review.product_id == product.id,
                Review.status == ReviewStatus.APPROVED.value,
                Review.is_deleted.is_(False),
            )
        )
        count, average = result.one()
        product.reviews_count = count or 0
        product.average_rating = round(float(average), 2) if average is not None else 0.0
        await db.flush()
        await db.refresh(product)
        return product


async def _get_product(product_id: uuid.UUID, db: AsyncSession) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.is_deleted.is_(False))
    )
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product", str(product_id))
    return product

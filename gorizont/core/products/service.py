"""Product catalogue: listing by vendors and owner-only removal."""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.common.exceptions import NotFoundError, PermissionDeniedError
from gorizont.common.logging import get_logger
from gorizont.core import guards
from gorizont.core.audit.service import record_audit
from gorizont.db.base import utcnow
from gorizont.db.models.product import Product
from gorizont.db.models.user import User

logger = get_logger("products.service")


class ProductService:
    async def create_product(
        self,
        vendor: User,
        title: str,
        price: Decimal,
        db: AsyncSession,
        description: str | None = None,
        in_stock: bool = True,
    ) -> Product:
        product = Product(
            vendor_id=vendor.id,
            title=title,
            description=description,
            price=price,
            in_stock=in_stock,
            average_rating=0.0,
            reviews_count=0,
        )
        db.add(product)
        await db.flush()
        await record_audit(db, "product", product.id, "created", vendor.id, {"price": str(price)})
        await db.refresh(product)
        return product

    async def get_product(self, product_id: uuid.UUID, db: AsyncSession) -> Product:
        result = await db.execute(
            select(Product).where(Product.id == product_id, Product.is_deleted.is_(False))
        )
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product", str(product_id))
        return product

    async def delete_product(self, product_id: uuid.UUID, actor: User, db: AsyncSession) -> None:
        """Soft delete. Orders keep their item snapshots, so history stays intact."""
        product = await self.get_product(product_id, db)

        if product.vendor_id != actor.id and not guards.is_admin(actor):
            logger.warning(
                "User %s tried to delete product %s owned by %s",
                actor.id, product.id, product.vendor_id,
            )
            raise PermissionDeniedError("You do not own this product")

        product.is_deleted = True
        product.deleted_at = utcnow()
        await db.flush()
        await record_audit(db, "product", product.id, "deleted", actor.id)
        logger.info("Product %s deleted by %s", product.id, actor.id)

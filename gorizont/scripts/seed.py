"""
Seed script for the Gorizont marketplace.

Populates the database with demo accounts (an admin, two vendors and two
buyers), a small product catalogue and one placed order.

Usage:
    python -m gorizont.scripts.seed
"""

import asyncio
import uuid
from decimal import Decimal

from sqlalchemy import select

from gorizont.common.enums import PaymentMethod, UserRole
from gorizont.common.security import get_password_hash
from gorizont.core.orders.service import OrderService
from gorizont.db.models import Product, User
from gorizont.db.session import async_session_factory


async def main() -> None:
    async with async_session_factory() as session:
        # ------------------------------------------------------------------
        # Guard: skip if already seeded (check for admin user)
        # ------------------------------------------------------------------
        result = await session.execute(
            select(User).where(User.email == "admin@gorizont.shop")
        )
        if result.scalar_one_or_none() is not None:
            print("Database already seeded -- skipping.")
            return

        # ==================================================================
        # USERS
        # ==================================================================
        hashed = get_password_hash("testpass123")

        def make_user(email: str, full_name: str, role: UserRole, phone: str | None = None) -> User:
            return User(
                id=uuid.uuid4(),
                email=email,
                hashed_password=hashed,
                full_name=full_name,
                phone=phone,
                role=role.value,
                is_active=True,
            )

        admin = make_user("admin@gorizont.shop", "Platform Admin", UserRole.ADMIN)
        honey_farm = make_user("apiary@example.com", "Ritsa Apiary", UserRole.VENDOR, "+7 940 555 0101")
        citrus = make_user("citrus@example.com", "Gagra Citrus Co", UserRole.VENDOR, "+7 940 555 0102")
        amra = make_user("amra@example.com", "Amra Lakoba", UserRole.BUYER, "+7 940 555 0201")
        dato = make_user("dato@example.com", "Dato Ardzinba", UserRole.BUYER, "+7 940 555 0202")

        users = [admin, honey_farm, citrus, amra, dato]
        session.add_all(users)
        await session.flush()

        # ==================================================================
        # PRODUCTS
        # ==================================================================
        catalogue = [
            (honey_farm, "Chestnut honey, 1 kg", "Dark mountain honey", Decimal("950.00")),
            (honey_farm, "Acacia honey, 500 g", "Light spring harvest", Decimal("520.00")),
            (honey_farm, "Beeswax candles (set of 4)", None, Decimal("380.00")),
            (citrus, "Tangerines, 5 kg box", "Unshiu variety, picked to order", Decimal("1200.00")),
            (citrus, "Feijoa jam, 300 g", None, Decimal("310.00")),
        ]
        products = [
            Product(
                vendor_id=vendor.id,
                title=title,
                description=description,
                price=price,
                in_stock=True,
                average_rating=0.0,
                reviews_count=0,
            )
            for vendor, title, description, price in catalogue
        ]
        session.add_all(products)
        await session.flush()

        # ==================================================================
        # ORDERS
        # ==================================================================
        await OrderService().create_order(
            buyer=amra,
            items=[(products[0].id, 1), (products[1].id, 2)],
            payment_method=PaymentMethod.CASH,
            city="Sukhum",
            address="Lakoba St 12",
            db=session,
            phone=amra.phone,
        )

        # ==================================================================
        # COMMIT
        # ==================================================================
        await session.commit()

        print(f"Seeded: {len(users)} users, {len(products)} products, 1 order")


if __name__ == "__main__":
    asyncio.run(main())

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from gorizont.common.enums import PaymentMethod, UserRole
from gorizont.common.exceptions import ConflictError
from gorizont.core.orders.service import OrderService
from gorizont.db.base import Base
from gorizont.db.models.dispute import Dispute
from gorizont.db.models.product import Product
from gorizont.db.models.user import User


async def _open_dispute_row(db_session, order, status="opened"):
    dispute = Dispute(
        order_id=uuid.UUID(order["id"]),
        initiator_id=uuid.UUID(order["buyer_id"]),
        respondent_id=uuid.UUID(order["vendor_id"]),
        reason="not_received",
        description="Nothing arrived",
        status=status,
    )
    db_session.add(dispute)
    await db_session.flush()
    return dispute


@pytest.mark.asyncio
async def test_create_order_local_delivery(order, buyer_user, vendor_user):
    assert order["status"] == "pending"
    assert order["buyer_id"] == str(buyer_user.id)
    assert order["vendor_id"] == str(vendor_user.id)
    assert Decimal(order["subtotal"]) == Decimal("1000.00")
    assert Decimal(order["delivery_price"]) == Decimal("200.00")
    assert Decimal(order["total"]) == Decimal("1200.00")
    assert order["shipping_address"] == "Sukhum, Lakoba St 12"
    assert order["customer_name"] == "Test Buyer"
    assert len(order["timeline"]) == 1
    assert order["timeline"][0]["status"] == "pending"


@pytest.mark.asyncio
async def test_create_order_remote_delivery(client, buyer_headers, product):
    response = await client.post(
        "/api/v1/orders",
        headers=buyer_headers,
        json={
            "items": [{"product_id": str(product.id), "quantity": 1}],
            "payment_method": "card",
            "city": "Gagra",
            "address": "Seaside 3",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert Decimal(data["delivery_price"]) == Decimal("400.00")
    assert Decimal(data["total"]) == Decimal("900.00")


@pytest.mark.asyncio
async def test_create_order_mixed_vendors_rejected(
    client, buyer_headers, product, other_vendor, db_session
):
    from gorizont.db.models.product import Product

    foreign = Product(vendor_id=other_vendor.id, title="Tangerines", price=Decimal("100.00"))
    db_session.add(foreign)
    await db_session.flush()

    response = await client.post(
        "/api/v1/orders",
        headers=buyer_headers,
        json={
            "items": [
                {"product_id": str(product.id), "quantity": 1},
                {"product_id": str(foreign.id), "quantity": 1},
            ],
            "payment_method": "cash",
            "city": "Sukhum",
            "address": "Lakoba St 12",
        },
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_order_unknown_product(client, buyer_headers):
    response = await client.post(
        "/api/v1/orders",
        headers=buyer_headers,
        json={
            "items": [{"product_id": str(uuid.uuid4()), "quantity": 1}],
            "payment_method": "cash",
            "city": "Sukhum",
            "address": "Lakoba St 12",
        },
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_vendor_advances_order(client, vendor_headers, order):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "confirmed", "note": "Packed today"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "confirmed"
    assert len(data["timeline"]) == 2
    assert data["timeline"][-1]["status"] == "confirmed"
    assert data["timeline"][-1]["note"] == "Packed today"
    assert data["timeline"][-1]["actor_name"] == "Test Vendor"


@pytest.mark.asyncio
async def test_status_aliases(client, vendor_headers, order):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "processing"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_unknown_status_rejected(client, vendor_headers, order):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "teleported"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_backward_transition_is_invalid_state(client, vendor_headers, order, advance_order):
    await advance_order(order["id"], "shipped")

    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "confirmed"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_timeline_replays_status_history(client, order, advance_order):
    data = await advance_order(order["id"], "confirmed", "shipped", "delivered", "completed")
    assert data["status"] == "completed"
    assert [e["status"] for e in data["timeline"]] == [
        "pending", "confirmed", "shipped", "delivered", "completed",
    ]
    assert data["timeline"][-1]["status"] == data["status"]


@pytest.mark.asyncio
async def test_buyer_cannot_change_status(client, buyer_headers, order):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=buyer_headers,
        json={"status": "confirmed"},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Only the vendor can update order status"


@pytest.mark.asyncio
async def test_other_vendor_cannot_change_status(client, other_vendor_headers, order):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=other_vendor_headers,
        json={"status": "confirmed"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_can_change_status(client, admin_headers, order):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=admin_headers,
        json={"status": "cancelled"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_status_change_missing_order(client, vendor_headers):
    response = await client.put(
        f"/api/v1/orders/{uuid.uuid4()}/status",
        headers=vendor_headers,
        json={"status": "confirmed"},
    )
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_status_change_requires_session(client, order):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        json={"status": "confirmed"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_active_dispute_locks_order(client, vendor_headers, order, db_session):
    await _open_dispute_row(db_session, order)

    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "confirmed"},
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Order is locked due to an active dispute"

    detail = await client.get(f"/api/v1/orders/{order['id']}", headers=vendor_headers)
    assert detail.json()["status"] == "pending"
    assert len(detail.json()["timeline"]) == 1


@pytest.mark.asyncio
async def test_closed_dispute_does_not_lock(client, vendor_headers, order, db_session):
    await _open_dispute_row(db_session, order, status="resolved_dismissed")

    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "confirmed"},
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_get_order_visibility(client, order, buyer_headers, vendor_headers,
                                    admin_headers, other_buyer_headers):
    for headers in (buyer_headers, vendor_headers, admin_headers):
        response = await client.get(f"/api/v1/orders/{order['id']}", headers=headers)
        assert response.status_code == 200

    response = await client.get(f"/api/v1/orders/{order['id']}", headers=other_buyer_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_orders_scoped_by_role(client, order, buyer_headers, vendor_headers,
                                          other_buyer_headers, admin_headers):
    buyer_list = await client.get("/api/v1/orders", headers=buyer_headers)
    assert buyer_list.json()["total"] == 1

    vendor_list = await client.get("/api/v1/orders", headers=vendor_headers)
    assert vendor_list.json()["total"] == 1

    stranger_list = await client.get("/api/v1/orders", headers=other_buyer_headers)
    assert stranger_list.json()["total"] == 0

    admin_list = await client.get("/api/v1/orders?status=pending", headers=admin_headers)
    assert admin_list.json()["total"] == 1


# ---------- Cancellation ----------


@pytest.mark.asyncio
async def test_cancellation_accepted(client, order, buyer_headers, vendor_headers):
    response = await client.post(
        f"/api/v1/orders/{order['id']}/cancellation",
        headers=buyer_headers,
        json={"reason": "Ordered by mistake"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancellation_requested"

    response = await client.post(
        f"/api/v1/orders/{order['id']}/cancellation/resolve",
        headers=vendor_headers,
        json={"accept": True},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert [e["status"] for e in data["timeline"]] == [
        "pending", "cancellation_requested", "cancelled",
    ]


@pytest.mark.asyncio
async def test_cancellation_declined_restores_prior_status(
    client, order, buyer_headers, vendor_headers, advance_order
):
    await advance_order(order["id"], "confirmed")
    await client.post(
        f"/api/v1/orders/{order['id']}/cancellation",
        headers=buyer_headers,
        json={},
    )

    response = await client.post(
        f"/api/v1/orders/{order['id']}/cancellation/resolve",
        headers=vendor_headers,
        json={"accept": False, "note": "Already packed"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_cannot_ship_while_cancellation_pending(client, order, buyer_headers, vendor_headers):
    await client.post(
        f"/api/v1/orders/{order['id']}/cancellation", headers=buyer_headers, json={}
    )

    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "shipped"},
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Buyer requested cancellation. Resolve the request first"


@pytest.mark.asyncio
async def test_cancellation_not_allowed_after_shipping(client, order, buyer_headers, advance_order):
    await advance_order(order["id"], "confirmed", "shipped")

    response = await client.post(
        f"/api/v1/orders/{order['id']}/cancellation", headers=buyer_headers, json={}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_only_buyer_requests_cancellation(client, order, vendor_headers):
    response = await client.post(
        f"/api/v1/orders/{order['id']}/cancellation", headers=vendor_headers, json={}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_dispute_lock_blocks_cancellation_resolution(
    client, order, buyer_headers, vendor_headers, db_session
):
    await client.post(
        f"/api/v1/orders/{order['id']}/cancellation", headers=buyer_headers, json={}
    )
    await _open_dispute_row(db_session, order)

    response = await client.post(
        f"/api/v1/orders/{order['id']}/cancellation/resolve",
        headers=vendor_headers,
        json={"accept": True},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_status_change_notifies_buyer(client, order, buyer_headers, advance_order):
    await advance_order(order["id"], "confirmed")

    response = await client.get("/api/v1/notifications", headers=buyer_headers)
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["category"] == "order_status"
    assert data["items"][0]["metadata"]["status"] == "confirmed"


@pytest.mark.asyncio
async def test_pending_order_ships_directly(client, vendor_headers, order):
    assert Decimal(order["total"]) == Decimal(order["subtotal"]) + Decimal(order["delivery_price"])

    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "shipped"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "shipped"
    assert len(data["timeline"]) == len(order["timeline"]) + 1
    assert data["version"] == order["version"] + 1


@pytest.mark.asyncio
async def test_completed_order_is_terminal(client, vendor_headers, order, advance_order):
    await advance_order(order["id"], "completed")

    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "cancelled"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_bad_status_on_missing_order_is_not_found(client, vendor_headers):
    response = await client.put(
        f"/api/v1/orders/{uuid.uuid4()}/status",
        headers=vendor_headers,
        json={"status": "teleported"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bad_status_from_stranger_is_forbidden(client, other_vendor_headers, order):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=other_vendor_headers,
        json={"status": "teleported"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_concurrent_status_change_conflicts(tmp_path):
    # Two independent connections need a database file rather than :memory:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    service = OrderService()

    try:
        async with session_factory() as setup:
            vendor = User(email="race-vendor@test.com", hashed_password="x",
                          full_name="Race Vendor", role=UserRole.VENDOR.value)
            buyer = User(email="race-buyer@test.com", hashed_password="x",
                         full_name="Race Buyer", role=UserRole.BUYER.value)
            setup.add_all([vendor, buyer])
            await setup.flush()
            product = Product(vendor_id=vendor.id, title="Walnut jam", price=Decimal("300.00"),
                              in_stock=True, average_rating=0.0, reviews_count=0)
            setup.add(product)
            await setup.flush()
            placed = await service.create_order(
                buyer, [(product.id, 1)], PaymentMethod.CASH, "Gagra", "Sea St 1", setup
            )
            await setup.commit()
            order_id = placed.id

        async with session_factory() as first, session_factory() as second:
            # Both writers hold version 1 of the row
            await service.get_order(order_id, second)
            second_vendor = await second.get(User, vendor.id)
            first_vendor = await first.get(User, vendor.id)

            await service.request_status_change(order_id, "confirmed", first_vendor, first)
            await first.commit()

            with pytest.raises(ConflictError):
                await service.request_status_change(order_id, "shipped", second_vendor, second)

        async with session_factory() as check:
            stored = await service.get_order(order_id, check)
            assert stored.status == "confirmed"
            assert stored.version == 2
    finally:
        await engine.dispose()

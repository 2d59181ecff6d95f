import uuid
from datetime import timedelta

import pytest

from gorizont.core.disputes.service import DisputeService
from gorizont.db.base import utcnow
from gorizont.db.models.dispute import Dispute


def _dispute_payload(order, **overrides):
    payload = {
        "order_id": order["id"],
        "reason": "not_received",
        "description": "The parcel never arrived",
        "amount_requested": "1200.00",
        "evidence": ["https://files.example.com/tracking.png"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def dispute(client, buyer_headers, order):
    response = await client.post(
        "/api/v1/disputes", headers=buyer_headers, json=_dispute_payload(order)
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_open_dispute(dispute, order, buyer_user, vendor_user, product):
    assert dispute["status"] == "opened"
    assert dispute["order_id"] == order["id"]
    assert dispute["initiator_id"] == str(buyer_user.id)
    assert dispute["respondent_id"] == str(vendor_user.id)
    assert dispute["product_id"] == str(product.id)
    assert dispute["messages"] == []
    assert dispute["evidence"] == ["https://files.example.com/tracking.png"]


@pytest.mark.asyncio
async def test_open_dispute_notifies_vendor(client, dispute, vendor_headers):
    response = await client.get("/api/v1/notifications", headers=vendor_headers)
    categories = [n["category"] for n in response.json()["items"]]
    assert "dispute_opened" in categories


@pytest.mark.asyncio
async def test_open_dispute_locks_order(client, dispute, order, vendor_headers):
    response = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "delivered"},
    )
    assert response.status_code == 409
    assert response.json()["code"] == "conflict"
    assert response.json()["detail"] == "Order is locked due to an active dispute"


@pytest.mark.asyncio
async def test_second_active_dispute_rejected(client, dispute, order, buyer_headers):
    response = await client.post(
        "/api/v1/disputes",
        headers=buyer_headers,
        json=_dispute_payload(order, reason="damaged"),
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "An active dispute already exists for this order"


@pytest.mark.asyncio
async def test_only_buyer_can_open(client, order, vendor_headers, other_buyer_headers):
    for headers in (vendor_headers, other_buyer_headers):
        response = await client.post(
            "/api/v1/disputes", headers=headers, json=_dispute_payload(order)
        )
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_open_dispute_missing_order(client, buyer_headers):
    response = await client.post(
        "/api/v1/disputes",
        headers=buyer_headers,
        json=_dispute_payload({"id": str(uuid.uuid4())}),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_open_dispute_missing_fields(client, buyer_headers, order):
    response = await client.post(
        "/api/v1/disputes",
        headers=buyer_headers,
        json={"order_id": order["id"]},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cancelled_order_cannot_be_disputed(client, order, buyer_headers, advance_order):
    await advance_order(order["id"], "cancelled")

    response = await client.post(
        "/api/v1/disputes", headers=buyer_headers, json=_dispute_payload(order)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_vendor_response_starts_negotiation(client, dispute, vendor_headers):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=vendor_headers,
        json={"action": "respond", "text": "Tracking shows it at the depot"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "negotiating"
    assert data["messages"][-1]["action"] == "response"
    assert data["messages"][-1]["text"] == "Tracking shows it at the depot"


@pytest.mark.asyncio
async def test_buyer_response_keeps_status(client, dispute, buyer_headers):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=buyer_headers,
        json={"action": "respond", "text": "Any news?"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "opened"


@pytest.mark.asyncio
async def test_vendor_refund_releases_lock(client, dispute, order, vendor_headers):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=vendor_headers,
        json={"action": "resolve", "resolution": "resolved_refund", "note": "Refunded in cash"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "resolved_refund"
    assert data["resolution_note"] == "Refunded in cash"
    assert data["resolved_at"] is not None

    status_change = await client.put(
        f"/api/v1/orders/{order['id']}/status",
        headers=vendor_headers,
        json={"status": "cancelled"},
    )
    assert status_change.status_code == 200


@pytest.mark.asyncio
async def test_vendor_cannot_withdraw_for_buyer(client, dispute, vendor_headers):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=vendor_headers,
        json={"action": "resolve", "resolution": "cancelled"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_buyer_withdraws_dispute(client, dispute, buyer_headers):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=buyer_headers,
        json={"action": "resolve", "resolution": "cancelled"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_buyer_cannot_refund_themselves(client, dispute, buyer_headers):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=buyer_headers,
        json={"action": "resolve", "resolution": "resolved_refund"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_resolve_requires_terminal_resolution(client, dispute, admin_headers):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=admin_headers,
        json={"action": "resolve", "resolution": "escalated"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_closed_dispute_cannot_be_resolved_again(client, dispute, admin_headers):
    url = f"/api/v1/disputes/{dispute['id']}"
    await client.patch(
        url, headers=admin_headers, json={"action": "resolve", "resolution": "resolved_dismissed"}
    )

    response = await client.patch(
        url, headers=admin_headers, json={"action": "resolve", "resolution": "resolved_refund"}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_escalate_opens_dispute_conversation(
    client, dispute, buyer_headers, vendor_headers, admin_headers, admin_user
):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=buyer_headers,
        json={"action": "escalate", "text": "No reply from the shop"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "escalated"
    assert data["conversation_id"] is not None
    assert data["messages"][-1]["action"] == "escalated"

    inbox = await client.get("/api/v1/conversations", headers=admin_headers)
    conversations = inbox.json()["conversations"]
    assert len(conversations) == 1
    conversation = conversations[0]
    assert conversation["id"] == data["conversation_id"]
    assert conversation["type"] == "dispute"
    assert conversation["context"] == {"order_id": dispute["order_id"], "dispute_id": dispute["id"]}
    assert str(admin_user.id) in conversation["participant_ids"]

    # Escalated disputes are decided by the platform
    vendor_resolve = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=vendor_headers,
        json={"action": "resolve", "resolution": "resolved_dismissed"},
    )
    assert vendor_resolve.status_code == 403

    admin_resolve = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=admin_headers,
        json={"action": "resolve", "resolution": "resolved_refund"},
    )
    assert admin_resolve.status_code == 200


@pytest.mark.asyncio
async def test_escalated_dispute_cannot_escalate_again(client, dispute, buyer_headers):
    url = f"/api/v1/disputes/{dispute['id']}"
    await client.patch(url, headers=buyer_headers, json={"action": "escalate"})

    response = await client.patch(url, headers=buyer_headers, json={"action": "escalate"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_action(client, dispute, buyer_headers):
    response = await client.patch(
        f"/api/v1/disputes/{dispute['id']}",
        headers=buyer_headers,
        json={"action": "shrug"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_dispute_visibility(client, dispute, buyer_headers, vendor_headers,
                                  admin_headers, other_buyer_headers):
    for headers in (buyer_headers, vendor_headers, admin_headers):
        response = await client.get(f"/api/v1/disputes/{dispute['id']}", headers=headers)
        assert response.status_code == 200

    response = await client.get(f"/api/v1/disputes/{dispute['id']}", headers=other_buyer_headers)
    assert response.status_code == 403

    listing = await client.get("/api/v1/disputes", headers=other_buyer_headers)
    assert listing.json()["total"] == 0

    listing = await client.get("/api/v1/disputes", headers=vendor_headers)
    assert listing.json()["total"] == 1


@pytest.mark.asyncio
async def test_check_escalations(db_session, order, admin_user):
    stale = await _insert_dispute(db_session, order, "opened", hours_ago=80)
    fresh = await _insert_dispute(db_session, order, "negotiating", hours_ago=10)

    escalated = await DisputeService().check_escalations(db_session)

    assert escalated == [str(stale.id)]
    assert stale.status == "escalated"
    assert stale.conversation_id is not None
    assert stale.messages[-1]["action"] == "escalated"
    assert stale.messages[-1]["author_id"] is None

    await db_session.refresh(fresh)
    assert fresh.status == "negotiating"


async def _insert_dispute(db_session, order, status, hours_ago):
    dispute = Dispute(
        order_id=uuid.UUID(order["id"]),
        initiator_id=uuid.UUID(order["buyer_id"]),
        respondent_id=uuid.UUID(order["vendor_id"]),
        reason="not_received",
        description="Nothing arrived",
        status=status,
        status_changed_at=utcnow() - timedelta(hours=hours_ago),
    )
    db_session.add(dispute)
    await db_session.flush()
    return dispute


@pytest.mark.asyncio
async def test_check_escalations_skips_dispute_that_fails(db_session, order, other_buyer, admin_user):
    broken = await _insert_dispute(db_session, order, "opened", hours_ago=720)
    broken.initiator_id = other_buyer.id
    other_buyer.is_deleted = True
    await db_session.flush()
    healthy = await _insert_dispute(db_session, order, "opened", hours_ago=80)

    escalated = await DisputeService().check_escalations(db_session)

    assert escalated == [str(healthy.id)]
    assert healthy.status == "escalated"

    await db_session.refresh(broken)
    assert broken.status == "opened"
    assert broken.conversation_id is None


@pytest.mark.asyncio
async def test_open_dispute_without_description(client, buyer_headers, order):
    response = await client.post(
        "/api/v1/disputes",
        headers=buyer_headers,
        json={"order_id": order["id"], "reason": "not_received"},
    )
    assert response.status_code == 201
    assert response.json()["description"] == ""

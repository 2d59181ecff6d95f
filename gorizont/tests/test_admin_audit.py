import pytest


@pytest.mark.asyncio
async def test_audit_requires_admin(client, buyer_headers, vendor_headers):
    for headers in (buyer_headers, vendor_headers):
        response = await client.get("/api/v1/admin/audit", headers=headers)
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_order_workflow_is_audited(client, order, admin_headers, advance_order):
    await advance_order(order["id"], "confirmed")

    response = await client.get(
        f"/api/v1/admin/audit?entity_type=order&entity_id={order['id']}",
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    actions = sorted(e["action"] for e in data["items"])
    assert actions == ["created", "status_changed"]

    status_entry = next(e for e in data["items"] if e["action"] == "status_changed")
    assert status_entry["diff"] == {"from": "pending", "to": "confirmed"}


@pytest.mark.asyncio
async def test_dispute_actions_are_audited(client, order, buyer_headers, vendor_headers, admin_headers):
    created = await client.post(
        "/api/v1/disputes",
        headers=buyer_headers,
        json={
            "order_id": order["id"],
            "reason": "damaged",
            "description": "Jar arrived cracked",
        },
    )
    dispute_id = created.json()["id"]
    await client.patch(
        f"/api/v1/disputes/{dispute_id}",
        headers=vendor_headers,
        json={"action": "respond", "text": "Sending a replacement"},
    )

    response = await client.get(
        f"/api/v1/admin/audit?entity_type=dispute&entity_id={dispute_id}",
        headers=admin_headers,
    )
    actions = sorted(e["action"] for e in response.json()["items"])
    assert actions == ["opened", "responded"]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "gorizont"

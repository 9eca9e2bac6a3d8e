import uuid

from conftest import create_shipper


async def record_cheque(client, headers, shipper_id, **fields) -> dict:
    payload = {
        "shipper_id": shipper_id,
        "cheque_number": "004512",
        "bank_name": "HDFC Bank",
        "branch_name": "Fort, Mumbai",
        "amount": 15000,
        "cheque_date": "2026-10-15",
        **fields,
    }
    response = await client.post("/api/v1/cheques", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_cheque_for_unknown_shipper_is_rejected(client, admin_headers):
    response = await client.post(
        "/api/v1/cheques",
        json={
            "shipper_id": str(uuid.uuid4()),
            "cheque_number": "000001",
            "bank_name": "SBI",
            "amount": 100,
            "cheque_date": "2026-10-15",
        },
        headers=admin_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


async def test_cleared_cheque_is_locked(client, admin_headers, shipper):
    cheque = await record_cheque(client, admin_headers, shipper["id"])
    assert cheque["status"] == "Pending"
    assert cheque["shipper_name"] == "Desai Textiles"
    assert cheque["received_date"] is not None

    edited = await client.put(
        f"/api/v1/cheques/{cheque['id']}", json={"amount": 15500.5}, headers=admin_headers
    )
    assert edited.json()["amount"] == 15500.5

    cleared = await client.post(
        f"/api/v1/cheques/{cheque['id']}/status",
        json={"status": "Cleared", "status_date": "2026-10-18"},
        headers=admin_headers,
    )
    assert cleared.status_code == 200
    assert cleared.json()["status"] == "Cleared"
    assert cleared.json()["cleared_date"] == "2026-10-18"

    late_edit = await client.put(
        f"/api/v1/cheques/{cheque['id']}", json={"amount": 1}, headers=admin_headers
    )
    assert late_edit.status_code == 400
    assert late_edit.json()["error"] == "StateConflict"

    bounce = await client.post(
        f"/api/v1/cheques/{cheque['id']}/status",
        json={"status": "Bounced", "bounce_reason": "Insufficient funds"},
        headers=admin_headers,
    )
    assert bounce.status_code == 400

    delete = await client.delete(f"/api/v1/cheques/{cheque['id']}", headers=admin_headers)
    assert delete.status_code == 400


async def test_bounced_cheque_needs_a_reason(client, admin_headers, shipper):
    cheque = await record_cheque(client, admin_headers, shipper["id"])
    url = f"/api/v1/cheques/{cheque['id']}/status"

    missing = await client.post(url, json={"status": "Bounced"}, headers=admin_headers)
    assert missing.status_code == 422

    bounced = await client.post(
        url,
        json={"status": "Bounced", "bounce_reason": "Signature mismatch", "status_date": "2026-10-17"},
        headers=admin_headers,
    )
    assert bounced.json()["status"] == "Bounced"
    assert bounced.json()["bounced_date"] == "2026-10-17"
    assert bounced.json()["bounce_reason"] == "Signature mismatch"


async def test_pending_cheque_can_be_deleted(client, admin_headers, shipper):
    cheque = await record_cheque(client, admin_headers, shipper["id"])

    response = await client.delete(f"/api/v1/cheques/{cheque['id']}", headers=admin_headers)
    assert response.status_code == 200

    gone = await client.get(f"/api/v1/cheques/{cheque['id']}", headers=admin_headers)
    assert gone.status_code == 404


async def test_cheque_register_filters_and_stats(client, admin_headers, shipper):
    other = await create_shipper(client, admin_headers, email="accounts@patelexports.com", company="Patel Exports")
    first = await record_cheque(client, admin_headers, shipper["id"], cheque_number="100001", amount=5000)
    await record_cheque(client, admin_headers, shipper["id"], cheque_number="100002", bank_name="ICICI Bank", amount=2500)
    await record_cheque(client, admin_headers, other["id"], cheque_number="200001", amount=1200)
    await client.post(
        f"/api/v1/cheques/{first['id']}/status", json={"status": "Cleared"}, headers=admin_headers
    )

    by_shipper = await client.get(f"/api/v1/cheques?shipper_id={shipper['id']}", headers=admin_headers)
    assert by_shipper.json()["total"] == 2

    by_bank = await client.get("/api/v1/cheques?search=icici", headers=admin_headers)
    assert [c["cheque_number"] for c in by_bank.json()["items"]] == ["100002"]

    pending = await client.get("/api/v1/cheques?status=Pending", headers=admin_headers)
    assert pending.json()["total"] == 2

    shipper_cheques = await client.get(f"/api/v1/cheques/shipper/{other['id']}", headers=admin_headers)
    assert [c["cheque_number"] for c in shipper_cheques.json()] == ["200001"]

    stats = (await client.get("/api/v1/cheques/stats", headers=admin_headers)).json()
    assert stats["total_cheques"] == 3
    assert stats["by_status"] == {"Cleared": 1, "Pending": 2}
    assert stats["cleared_amount"] == 5000
    assert stats["pending_amount"] == 3700


async def test_clerk_cannot_record_cheques(client, clerk_headers, admin_headers, shipper):
    response = await client.post(
        "/api/v1/cheques",
        json={
            "shipper_id": shipper["id"],
            "cheque_number": "000009",
            "bank_name": "SBI",
            "amount": 100,
            "cheque_date": "2026-10-15",
        },
        headers=clerk_headers,
    )
    assert response.status_code == 403

import uuid

from conftest import CONSIGNEE, auth_headers, create_booking, create_shipper, create_user
from courier.models.role import Role, DataScope, empty_permissions


async def test_create_booking_rates_and_numbers_it(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])

    assert booking["awb_number"].startswith("AWB")
    assert len(booking["awb_number"]) == 12
    assert booking["status"] == "Booked"
    assert booking["shipping_charge"] == 125.0
    assert booking["insurance_charge"] == 100.0
    assert booking["fuel_surcharge"] == 12.5
    assert booking["gst_amount"] == 42.75
    assert booking["total_amount"] == 280.25
    assert booking["origin_city"] == "Mumbai"
    assert booking["consignee_name"] == CONSIGNEE["name"]
    assert [h["status"] for h in booking["status_history"]] == ["Booked"]

    shipper_view = await client.get(f"/api/v1/shippers/{shipper['id']}", headers=admin_headers)
    assert shipper_view.json()["total_bookings"] == 1


async def test_awb_numbers_are_consecutive(client, admin_headers, shipper):
    first = await create_booking(client, admin_headers, shipper["id"])
    second = await create_booking(client, admin_headers, shipper["id"])

    assert int(second["awb_number"][-7:]) == int(first["awb_number"][-7:]) + 1


async def test_cod_amount_ignored_for_prepaid(client, admin_headers, shipper):
    booking = await create_booking(
        client, admin_headers, shipper["id"], payment_mode="Prepaid", cod_amount=1500
    )
    assert booking["cod_amount"] == 0
    assert booking["cod_charge"] == 0


async def test_cod_booking_pays_cod_charge(client, admin_headers, shipper):
    booking = await create_booking(
        client, admin_headers, shipper["id"], payment_mode="COD", cod_amount=1500
    )
    assert booking["cod_amount"] == 1500
    assert booking["cod_charge"] == 30.0


async def test_booking_requires_consignee(client, admin_headers, shipper):
    response = await client.post(
        "/api/v1/bookings",
        json={"shipper_id": shipper["id"], "weight": 1},
        headers=admin_headers,
    )
    assert response.status_code == 422


async def test_booking_for_unknown_shipper_is_404(client, admin_headers):
    response = await client.post(
        "/api/v1/bookings",
        json={"shipper_id": str(uuid.uuid4()), "consignee": CONSIGNEE, "weight": 1},
        headers=admin_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


async def test_status_updates_append_history(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    url = f"/api/v1/bookings/{booking['id']}/status"

    await client.post(url, json={"status": "Picked Up", "location": "Mumbai"}, headers=admin_headers)
    response = await client.post(
        url,
        json={"status": "Delivered", "location": "Pune", "delivered_to": "Ravi"},
        headers=admin_headers,
    )

    data = response.json()
    assert response.status_code == 200
    assert data["status"] == "Delivered"
    assert data["delivered_to"] == "Ravi"
    assert data["delivery_date"] is not None
    assert [h["status"] for h in data["status_history"]] == ["Booked", "Picked Up", "Delivered"]


async def test_delivered_booking_is_terminal(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    url = f"/api/v1/bookings/{booking['id']}/status"
    await client.post(url, json={"status": "Delivered"}, headers=admin_headers)

    response = await client.post(url, json={"status": "In Transit"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidTransition"

    edit = await client.put(
        f"/api/v1/bookings/{booking['id']}", json={"weight": 5}, headers=admin_headers
    )
    assert edit.status_code == 400

    override = await client.post(
        url,
        json={"status": "Returned", "remarks": "Wrong scan", "override": True},
        headers=admin_headers,
    )
    assert override.status_code == 200
    assert override.json()["status"] == "Returned"


async def test_editing_weight_rerates(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], declared_value=0)

    response = await client.put(
        f"/api/v1/bookings/{booking['id']}", json={"weight": 5}, headers=admin_headers
    )
    assert response.status_code == 200
    # Express: 100 + 5 * 10 = 150 shipping, 15 fuel, 18% GST on 165
    assert response.json()["shipping_charge"] == 150.0
    assert response.json()["total_amount"] == 194.7


async def test_cancel_booking(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    url = f"/api/v1/bookings/{booking['id']}/cancel"

    response = await client.post(url, json={"reason": "Shipper request"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "Cancelled"
    assert response.json()["status_history"][-1]["remarks"] == "Shipper request"

    again = await client.post(url, json={}, headers=admin_headers)
    assert again.status_code == 400


async def test_proof_of_delivery_marks_delivered(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])

    response = await client.post(
        f"/api/v1/bookings/{booking['id']}/pod",
        json={"delivery_proof": "pod/awb.jpg", "delivered_to": "Security desk"},
        headers=admin_headers,
    )

    data = response.json()
    assert response.status_code == 200
    assert data["status"] == "Delivered"
    assert data["delivery_proof"] == "pod/awb.jpg"
    assert data["delivered_to"] == "Security desk"


async def test_only_booked_or_cancelled_bookings_can_be_deleted(client, admin_headers, shipper):
    in_transit = await create_booking(client, admin_headers, shipper["id"])
    await client.post(
        f"/api/v1/bookings/{in_transit['id']}/status",
        json={"status": "In Transit"},
        headers=admin_headers,
    )
    refused = await client.delete(f"/api/v1/bookings/{in_transit['id']}", headers=admin_headers)
    assert refused.status_code == 400

    booked = await create_booking(client, admin_headers, shipper["id"])
    deleted = await client.delete(f"/api/v1/bookings/{booked['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    missing = await client.get(f"/api/v1/bookings/{booked['id']}", headers=admin_headers)
    assert missing.status_code == 404


async def test_bulk_create_reports_rejected_rows(client, admin_headers, shipper):
    row = {"shipper_id": shipper["id"], "consignee": CONSIGNEE, "weight": 1, "service_type": "Standard"}
    bad_row = {**row, "shipper_id": str(uuid.uuid4())}

    response = await client.post(
        "/api/v1/bookings/bulk",
        json={"bookings": [row, bad_row, row]},
        headers=admin_headers,
    )

    data = response.json()
    assert response.status_code == 201
    assert data["total"] == 3
    assert data["success_count"] == 2
    assert data["failure_count"] == 1
    assert data["errors"][0]["index"] == 1
    assert len(set(data["created"])) == 2


async def test_tracking_by_awb(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    await client.post(
        f"/api/v1/bookings/{booking['id']}/status",
        json={"status": "In Transit", "location": "Lonavala"},
        headers=admin_headers,
    )

    response = await client.get(
        f"/api/v1/bookings/track/{booking['awb_number'].lower()}", headers=admin_headers
    )

    data = response.json()
    assert response.status_code == 200
    assert data["status"] == "In Transit"
    assert data["destination_city"] == "Pune"
    assert data["history"][-1]["location"] == "Lonavala"
    assert "internal_notes" not in data


async def test_own_scope_sees_only_own_bookings(client, admin_headers, clerk_headers, shipper):
    await create_booking(client, admin_headers, shipper["id"])
    mine = await create_booking(client, clerk_headers, shipper["id"])

    response = await client.get("/api/v1/bookings", headers=clerk_headers)

    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["awb_number"] == mine["awb_number"]
    assert data["items"][0]["branch"] == "Pune"


async def test_clerk_cannot_change_status(client, clerk_headers, admin_headers, shipper):
    booking = await create_booking(client, clerk_headers, shipper["id"])
    response = await client.post(
        f"/api/v1/bookings/{booking['id']}/status",
        json={"status": "Picked Up"},
        headers=clerk_headers,
    )
    assert response.status_code == 403


async def test_inactive_shipper_cannot_book(client, admin_headers):
    shipper = await create_shipper(client, admin_headers, email="ops@desaitextiles.com")
    await client.put(
        f"/api/v1/shippers/{shipper['id']}", json={"status": "Suspended"}, headers=admin_headers
    )

    response = await client.post(
        "/api/v1/bookings",
        json={"shipper_id": shipper["id"], "consignee": CONSIGNEE, "weight": 1},
        headers=admin_headers,
    )
    assert response.status_code == 400


async def test_booking_stats(client, admin_headers, shipper):
    await create_booking(client, admin_headers, shipper["id"])
    cod = await create_booking(client, admin_headers, shipper["id"], payment_mode="COD", cod_amount=800)
    await client.post(f"/api/v1/bookings/{cod['id']}/cancel", json={}, headers=admin_headers)

    response = await client.get("/api/v1/bookings/stats", headers=admin_headers)

    data = response.json()
    assert data["total_bookings"] == 2
    assert data["by_status"] == {"Booked": 1, "Cancelled": 1}
    assert data["pending_pickup"] == 1
    assert data["total_revenue"] == 280.25
    assert data["total_cod_amount"] == 0


async def test_only_super_admin_may_reopen_a_delivered_booking(client, db, admin_headers, shipper):
    permissions = empty_permissions()
    permissions["tracking"]["can_view"] = True
    permissions["tracking"]["can_edit"] = True
    role = Role(name="Hub Scanner", permissions=permissions, data_scope=DataScope.ALL.value)
    db.add(role)
    await db.commit()
    scanner = await create_user(db, "scanner@courierexpress.com", role)
    scanner_headers = auth_headers(scanner)

    booking = await create_booking(client, admin_headers, shipper["id"])
    url = f"/api/v1/bookings/{booking['id']}/status"
    scanned = await client.post(url, json={"status": "Picked Up"}, headers=scanner_headers)
    assert scanned.status_code == 200
    await client.post(url, json={"status": "Delivered"}, headers=scanner_headers)

    reopen = await client.post(url, json={"status": "In Transit", "override": True}, headers=scanner_headers)
    assert reopen.status_code == 403
    assert reopen.json()["required"] == "status:override"

    tracking = await client.get(f"/api/v1/bookings/{booking['id']}", headers=admin_headers)
    assert tracking.json()["status"] == "Delivered"

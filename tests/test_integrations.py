import pytest_asyncio

from conftest import create_booking, create_shipper

PUBLIC = "/api/public/v1"

BOOKING_PAYLOAD = {
    "consignee": {
        "name": "Meera Iyer",
        "phone": "9811122233",
        "address": "4 Residency Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560025",
    },
    "serviceType": "Express",
    "weight": 2.5,
    "packageValue": 5000,
    "referenceNumber": "ORD-1001",
}


async def issue_key(client, headers, shipper_id, **fields) -> dict:
    response = await client.post(
        "/api/v1/api-keys",
        json={"name": "Storefront", "shipper_id": shipper_id, **fields},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def key_headers(key: dict) -> dict:
    return {"X-API-Key": key["api_key"], "X-API-Secret": key["api_secret"]}


@pytest_asyncio.fixture
async def api_key(client, admin_headers, shipper) -> dict:
    return await issue_key(client, admin_headers, shipper["id"])


async def test_issued_key_has_default_permissions(api_key):
    assert api_key["api_key"].startswith("ak_")
    assert api_key["api_secret"].startswith("sk_")
    assert api_key["status"] == "Active"
    assert "booking.create" in api_key["permissions"]
    assert "invoice.read" not in api_key["permissions"]


async def test_create_booking_through_public_api(client, api_key, admin_headers, shipper):
    response = await client.post(f"{PUBLIC}/bookings", json=BOOKING_PAYLOAD, headers=key_headers(api_key))

    body = response.json()
    assert response.status_code == 201
    assert body["success"] is True
    assert body["data"]["awbNumber"].startswith("AWB")
    assert body["data"]["status"] == "Booked"
    assert body["data"]["totalAmount"] == 280.25
    assert body["data"]["charges"]["fuelSurcharge"] == 12.5
    assert body["data"]["consignee"]["phone"] == "9811122233"

    booking = await client.get(f"/api/v1/bookings/awb/{body['data']['awbNumber']}", headers=admin_headers)
    assert booking.json()["shipper_id"] == shipper["id"]
    assert booking.json()["payment_mode"] == "Prepaid"
    assert booking.json()["reference_number"] == "ORD-1001"


async def test_repeat_consignee_is_reused(client, api_key, admin_headers, shipper):
    first = await client.post(f"{PUBLIC}/bookings", json=BOOKING_PAYLOAD, headers=key_headers(api_key))
    second = await client.post(f"{PUBLIC}/bookings", json=BOOKING_PAYLOAD, headers=key_headers(api_key))

    a = await client.get(f"/api/v1/bookings/awb/{first.json()['data']['awbNumber']}", headers=admin_headers)
    b = await client.get(f"/api/v1/bookings/awb/{second.json()['data']['awbNumber']}", headers=admin_headers)
    assert a.json()["consignee_id"] is not None
    assert a.json()["consignee_id"] == b.json()["consignee_id"]


async def test_missing_fields_are_listed(client, api_key):
    response = await client.post(
        f"{PUBLIC}/bookings", json={"weight": 1}, headers=key_headers(api_key)
    )

    body = response.json()
    assert response.status_code == 400
    assert body["success"] is False
    assert body["required"] == ["consignee", "serviceType", "weight"]


async def test_wrong_secret_is_rejected(client, api_key):
    headers = {"X-API-Key": api_key["api_key"], "X-API-Secret": "sk_wrong"}

    response = await client.post(f"{PUBLIC}/rates/calculate", json={"serviceType": "Express", "weight": 1}, headers=headers)

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid API credentials"}


async def test_missing_headers_are_rejected(client):
    response = await client.get(f"{PUBLIC}/track/AWB260000001")
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_revoked_key_is_rejected(client, admin_headers, api_key):
    await client.post(f"/api/v1/api-keys/{api_key['id']}/revoke", headers=admin_headers)

    response = await client.get(f"{PUBLIC}/track/AWB260000001", headers=key_headers(api_key))
    assert response.status_code == 401


async def test_regenerated_secret_replaces_old_one(client, admin_headers, api_key):
    regenerated = await client.post(f"/api/v1/api-keys/{api_key['id']}/regenerate", headers=admin_headers)
    new_secret = regenerated.json()["api_secret"]
    assert new_secret != api_key["api_secret"]

    old = await client.post(f"{PUBLIC}/rates/calculate", json={"serviceType": "Express", "weight": 1}, headers=key_headers(api_key))
    assert old.status_code == 401

    fresh = await client.post(
        f"{PUBLIC}/rates/calculate",
        json={"serviceType": "Express", "weight": 1},
        headers={"X-API-Key": api_key["api_key"], "X-API-Secret": new_secret},
    )
    assert fresh.status_code == 200


async def test_ip_outside_whitelist_is_forbidden(client, admin_headers, shipper):
    key = await issue_key(client, admin_headers, shipper["id"], ip_whitelist=["10.0.0.1"])

    response = await client.get(f"{PUBLIC}/track/AWB260000001", headers=key_headers(key))

    assert response.status_code == 403
    assert response.json()["success"] is False


async def test_permission_not_granted_is_forbidden(client, api_key):
    response = await client.get(f"{PUBLIC}/invoices", headers=key_headers(api_key))

    assert response.status_code == 403
    assert response.json()["required"] == "invoice.read"


async def test_minute_limit(client, admin_headers, shipper):
    key = await issue_key(client, admin_headers, shipper["id"], rate_limit_per_minute=1)
    quote = {"serviceType": "Standard", "weight": 1}

    first = await client.post(f"{PUBLIC}/rates/calculate", json=quote, headers=key_headers(key))
    second = await client.post(f"{PUBLIC}/rates/calculate", json=quote, headers=key_headers(key))

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.json()["success"] is False

    usage = await client.get(f"/api/v1/api-keys/{key['id']}/usage", headers=admin_headers)
    assert usage.json()["total_requests"] == 1
    assert usage.json()["requests_this_minute"] == 1


async def test_rate_quote_always_charges_cod(client, api_key):
    response = await client.post(
        f"{PUBLIC}/rates/calculate",
        json={"serviceType": "Express", "weight": 2.5, "packageValue": 5000, "codAmount": 1000},
        headers=key_headers(api_key),
    )

    charges = response.json()["data"]["charges"]
    assert charges["cod"] == 20.0
    assert charges["subtotal"] == 257.5
    assert response.json()["data"]["estimatedDelivery"]


async def test_booking_lookup_is_limited_to_own_shipper(client, admin_headers, api_key):
    other = await create_shipper(client, admin_headers, email="orders@punespices.com", company="Pune Spices")
    foreign = await create_booking(client, admin_headers, other["id"])

    response = await client.get(f"{PUBLIC}/bookings/{foreign['awb_number']}", headers=key_headers(api_key))
    assert response.status_code == 404
    assert response.json()["success"] is False

    tracked = await client.get(f"{PUBLIC}/track/{foreign['awb_number']}", headers=key_headers(api_key))
    assert tracked.status_code == 200
    assert tracked.json()["data"]["currentStatus"] == "Booked"
    assert tracked.json()["data"]["pod"]["available"] is False


async def test_own_invoices_listed_with_permission(client, admin_headers, shipper):
    key = await issue_key(client, admin_headers, shipper["id"], permissions=["invoice.read"])
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    await client.post("/api/v1/invoices/from-booking", json={"booking_id": booking["id"]}, headers=admin_headers)

    response = await client.get(f"{PUBLIC}/invoices", headers=key_headers(key))

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["invoiceNumber"] == "INV000001"
    assert body["data"][0]["paymentStatus"] == "Unpaid"
    assert body["data"][0]["balanceAmount"] == 280.25

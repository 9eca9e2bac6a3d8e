from datetime import datetime, timezone

from conftest import create_booking


async def create_manifest(client, headers, bookings, **fields) -> dict:
    response = await client.post(
        "/api/v1/manifests",
        json={"booking_ids": [b["id"] for b in bookings], "origin_city": "Mumbai", **fields},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_manifest_snapshots_totals(client, admin_headers, shipper):
    prepaid = await create_booking(client, admin_headers, shipper["id"], weight=2.5, pieces=2)
    cod = await create_booking(
        client, admin_headers, shipper["id"], weight=1.2, payment_mode="COD", cod_amount=1500
    )

    manifest = await create_manifest(
        client, admin_headers, [prepaid, cod], manifest_date="2026-10-19T09:30:00Z"
    )

    assert manifest["manifest_number"] == "MAN202610190001"
    assert manifest["status"] == "Draft"
    assert manifest["total_bookings"] == 2
    assert manifest["total_weight"] == 3.7
    assert manifest["total_pieces"] == 3
    assert manifest["total_cod_amount"] == 1500
    assert manifest["totals_as_of"] is not None
    assert {b["awb_number"] for b in manifest["bookings"]} == {prepaid["awb_number"], cod["awb_number"]}


async def test_manifest_numbers_count_per_day(client, admin_headers, shipper):
    first = await create_booking(client, admin_headers, shipper["id"])
    second = await create_booking(client, admin_headers, shipper["id"])
    third = await create_booking(client, admin_headers, shipper["id"])

    a = await create_manifest(client, admin_headers, [first], manifest_date="2026-10-19T08:00:00Z")
    b = await create_manifest(client, admin_headers, [second], manifest_date="2026-10-19T18:00:00Z")
    c = await create_manifest(client, admin_headers, [third], manifest_date="2026-10-20T08:00:00Z")

    assert [a["manifest_number"], b["manifest_number"], c["manifest_number"]] == [
        "MAN202610190001",
        "MAN202610190002",
        "MAN202610200001",
    ]


async def test_booking_only_on_one_manifest(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    await create_manifest(client, admin_headers, [booking])

    response = await client.post(
        "/api/v1/manifests", json={"booking_ids": [booking["id"]]}, headers=admin_headers
    )
    assert response.status_code == 400


async def test_terminal_bookings_cannot_be_manifested(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    await client.post(f"/api/v1/bookings/{booking['id']}/cancel", json={}, headers=admin_headers)

    response = await client.post(
        "/api/v1/manifests", json={"booking_ids": [booking["id"]]}, headers=admin_headers
    )
    assert response.status_code == 400


async def test_dispatch_moves_bookings_in_transit(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    manifest = await create_manifest(client, admin_headers, [booking])

    dispatched = await client.post(
        f"/api/v1/manifests/{manifest['id']}/dispatch", json={}, headers=admin_headers
    )
    assert dispatched.json()["status"] == "Dispatched"
    assert dispatched.json()["dispatched_at"] is not None

    tracked = await client.get(f"/api/v1/bookings/{booking['id']}", headers=admin_headers)
    history = tracked.json()["status_history"]
    assert tracked.json()["status"] == "In Transit"
    assert history[-1]["location"] == "Mumbai"
    assert manifest["manifest_number"] in history[-1]["remarks"]

    again = await client.post(
        f"/api/v1/manifests/{manifest['id']}/dispatch", json={}, headers=admin_headers
    )
    assert again.status_code == 400

    completed = await client.post(f"/api/v1/manifests/{manifest['id']}/complete", headers=admin_headers)
    assert completed.json()["status"] == "Completed"


async def test_totals_change_only_on_refresh(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], weight=2)
    manifest = await create_manifest(client, admin_headers, [booking])

    await client.put(f"/api/v1/bookings/{booking['id']}", json={"weight": 5}, headers=admin_headers)

    stale = await client.get(f"/api/v1/manifests/{manifest['id']}", headers=admin_headers)
    assert stale.json()["total_weight"] == 2

    refreshed = await client.post(
        f"/api/v1/manifests/{manifest['id']}/refresh-totals", headers=admin_headers
    )
    assert refreshed.json()["total_weight"] == 5
    assert refreshed.json()["totals_as_of"] is not None


async def test_only_draft_manifest_can_be_deleted(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    manifest = await create_manifest(client, admin_headers, [booking])

    deleted = await client.delete(f"/api/v1/manifests/{manifest['id']}", headers=admin_headers)
    assert deleted.status_code == 200

    unlinked = await client.get(f"/api/v1/bookings/{booking['id']}", headers=admin_headers)
    assert unlinked.json()["manifest_id"] is None

    other = await create_manifest(client, admin_headers, [booking])
    await client.post(f"/api/v1/manifests/{other['id']}/dispatch", json={}, headers=admin_headers)
    refused = await client.delete(f"/api/v1/manifests/{other['id']}", headers=admin_headers)
    assert refused.status_code == 400


async def test_dispatch_merges_manifests_and_loose_bookings(client, admin_headers, shipper):
    on_manifest = await create_booking(client, admin_headers, shipper["id"], weight=2)
    loose = await create_booking(client, admin_headers, shipper["id"], weight=1)
    manifest = await create_manifest(client, admin_headers, [on_manifest])

    response = await client.post(
        "/api/v1/dispatches",
        json={
            "manifest_ids": [manifest["id"]],
            "booking_ids": [loose["id"], on_manifest["id"]],
            "destination_branch": "Pune Hub",
            "total_bags": 2,
        },
        headers=admin_headers,
    )

    dispatch = response.json()
    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    assert response.status_code == 201
    assert dispatch["dispatch_number"] == f"DSP{today}0001"
    assert dispatch["status"] == "Pending"
    assert dispatch["total_bookings"] == 2
    assert dispatch["total_weight"] == 3
    assert [m["manifest_number"] for m in dispatch["manifests"]] == [manifest["manifest_number"]]

    sent = await client.post(f"/api/v1/dispatches/{dispatch['id']}/dispatch", headers=admin_headers)
    assert sent.json()["status"] == "Dispatched"
    assert sent.json()["manifests"][0]["status"] == "In Transit"

    for booking in (on_manifest, loose):
        view = await client.get(f"/api/v1/bookings/{booking['id']}", headers=admin_headers)
        assert view.json()["status"] == "In Transit"

    received = await client.post(f"/api/v1/dispatches/{dispatch['id']}/receive", headers=admin_headers)
    assert received.json()["status"] == "Received"
    assert received.json()["received_at"] is not None


async def test_dispatch_needs_contents(client, admin_headers):
    response = await client.post("/api/v1/dispatches", json={}, headers=admin_headers)
    assert response.status_code == 422


async def test_manifest_cannot_join_two_dispatches(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    manifest = await create_manifest(client, admin_headers, [booking])

    first = await client.post(
        "/api/v1/dispatches", json={"manifest_ids": [manifest["id"]]}, headers=admin_headers
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/dispatches", json={"manifest_ids": [manifest["id"]]}, headers=admin_headers
    )
    assert second.status_code == 400

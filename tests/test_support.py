from conftest import auth_headers, create_booking, create_user
from courier.models.role import Role, DataScope, empty_permissions


async def report(client, headers, awb_number, exception_type="Delivery Delay", **fields) -> dict:
    response = await client.post(
        "/api/v1/exceptions",
        json={
            "awb_number": awb_number,
            "exception_type": exception_type,
            "description": "Consignment not received at hub",
            **fields,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def open_ticket(client, headers, **fields) -> dict:
    payload = {
        "subject": "Parcel not delivered",
        "description": "Consignee says nothing arrived",
        "department": "Operations",
        **fields,
    }
    response = await client.post("/api/v1/tickets", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# ==================== EXCEPTIONS ====================

async def test_exception_numbering_and_default_priority(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])

    first = await report(client, admin_headers, booking["awb_number"].lower())
    second = await report(client, admin_headers, booking["awb_number"], exception_type="Delivery Refused")

    assert first["exception_number"] == "EXC000001"
    assert second["exception_number"] == "EXC000002"
    assert first["awb_number"] == booking["awb_number"]
    assert first["priority"] == "Medium"
    assert second["priority"] == "Urgent"
    assert first["status"] == "Open"
    assert [h["status"] for h in first["status_history"]] == ["Open"]


async def test_exception_for_unknown_awb_is_404(client, admin_headers):
    response = await client.post(
        "/api/v1/exceptions",
        json={"awb_number": "AWB269999999", "exception_type": "Package Lost", "description": "Gone"},
        headers=admin_headers,
    )
    assert response.status_code == 404


async def test_lost_package_puts_booking_on_hold(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])

    exception = await report(client, admin_headers, booking["awb_number"], exception_type="Package Lost")

    assert exception["priority"] == "High"
    held = await client.get(f"/api/v1/bookings/{booking['id']}", headers=admin_headers)
    assert held.json()["status"] == "On Hold"
    assert exception["exception_number"] in held.json()["status_history"][-1]["remarks"]


async def test_exception_lifecycle(client, admin_headers, admin, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    exception = await report(client, admin_headers, booking["awb_number"])
    url = f"/api/v1/exceptions/{exception['id']}"

    jump = await client.post(f"{url}/status", json={"status": "Closed"}, headers=admin_headers)
    assert jump.status_code == 400
    assert jump.json()["allowed"] == ["Escalated", "In Progress"]

    assigned = await client.post(f"{url}/assign", json={"assigned_to": str(admin.id)}, headers=admin_headers)
    assert assigned.json()["status"] == "In Progress"
    assert assigned.json()["assigned_to"] == str(admin.id)

    noted = await client.post(f"{url}/notes", json={"note": "Called hub manager"}, headers=admin_headers)
    assert noted.json()["notes"][0]["note"] == "Called hub manager"

    resolved = await client.post(f"{url}/resolve", json={"resolution": "Found at Pune hub"}, headers=admin_headers)
    assert resolved.json()["status"] == "Resolved"
    assert resolved.json()["resolution"] == "Found at Pune hub"
    assert resolved.json()["resolved_at"] is not None
    assert resolved.json()["resolved_by"] == str(admin.id)

    closed = await client.post(f"{url}/status", json={"status": "Closed"}, headers=admin_headers)
    assert closed.json()["status"] == "Closed"
    assert [h["status"] for h in closed.json()["status_history"]] == [
        "Open", "In Progress", "Resolved", "Closed",
    ]

    reopened = await client.post(f"{url}/status", json={"status": "In Progress"}, headers=admin_headers)
    assert reopened.status_code == 400


async def test_resolving_open_exception_passes_through_in_progress(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    exception = await report(client, admin_headers, booking["awb_number"])

    resolved = await client.post(
        f"/api/v1/exceptions/{exception['id']}/resolve",
        json={"resolution": "Delivered next day"},
        headers=admin_headers,
    )

    assert [h["status"] for h in resolved.json()["status_history"]] == ["Open", "In Progress", "Resolved"]


# ==================== TICKETS ====================

async def test_ticket_numbering_priority_and_deadline(client, admin_headers, shipper):
    general = await open_ticket(client, admin_headers, shipper_id=shipper["id"])
    damage = await open_ticket(client, admin_headers, category="Damage/Loss", subject="Box crushed")

    assert general["ticket_number"] == "TKT-000001"
    assert damage["ticket_number"] == "TKT-000002"
    assert general["priority"] == "Medium"
    assert damage["priority"] == "High"
    assert general["resolution_deadline"] is not None
    assert general["status"] == "Open"


async def test_ticket_escalation_and_close(client, admin_headers, admin):
    ticket = await open_ticket(client, admin_headers)
    url = f"/api/v1/tickets/{ticket['id']}"

    escalated = await client.post(
        f"{url}/escalate",
        json={"escalated_to": str(admin.id), "reason": "Third follow-up"},
        headers=admin_headers,
    )
    assert escalated.json()["status"] == "Escalated"
    assert escalated.json()["escalated_at"] is not None
    assert escalated.json()["escalation_reason"] == "Third follow-up"

    early_close = await client.post(f"{url}/close", json={}, headers=admin_headers)
    assert early_close.status_code == 400

    await client.post(f"{url}/resolve", json={"resolution": "Refund issued"}, headers=admin_headers)
    closed = await client.post(f"{url}/close", json={"remarks": "Customer confirmed"}, headers=admin_headers)
    assert closed.json()["status"] == "Closed"
    assert closed.json()["closed_at"] is not None

    reply = await client.post(f"{url}/responses", json={"message": "Anything else?"}, headers=admin_headers)
    assert reply.status_code == 400


async def test_closed_ticket_reopened_only_by_super_admin(client, db, admin_headers):
    permissions = empty_permissions()
    for action in ("view", "add", "edit"):
        permissions["complaints"][f"can_{action}"] = True
    role = Role(name="Support Agent", permissions=permissions, data_scope=DataScope.ALL.value)
    db.add(role)
    await db.commit()
    agent_headers = auth_headers(await create_user(db, "support@courierexpress.com", role))

    ticket = await open_ticket(client, admin_headers)
    url = f"/api/v1/tickets/{ticket['id']}"
    await client.post(f"{url}/resolve", json={"resolution": "Parcel redelivered"}, headers=admin_headers)
    await client.post(f"{url}/close", json={}, headers=admin_headers)

    denied = await client.post(
        f"{url}/status", json={"status": "In Progress", "override": True}, headers=agent_headers
    )
    assert denied.status_code == 403

    reopened = await client.post(
        f"{url}/status",
        json={"status": "In Progress", "remarks": "Customer disputes delivery", "override": True},
        headers=admin_headers,
    )
    assert reopened.status_code == 200
    assert reopened.json()["status"] == "In Progress"


async def test_ticket_responses_are_kept_in_order(client, admin_headers):
    ticket = await open_ticket(client, admin_headers)
    url = f"/api/v1/tickets/{ticket['id']}/responses"

    await client.post(url, json={"message": "Checking with the hub"}, headers=admin_headers)
    response = await client.post(
        url, json={"message": "Hub says out for delivery", "is_internal": True}, headers=admin_headers
    )

    messages = response.json()["responses"]
    assert [m["message"] for m in messages] == ["Checking with the hub", "Hub says out for delivery"]
    assert messages[1]["is_internal"] is True


async def test_dashboard_counts_open_cases(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    await report(client, admin_headers, booking["awb_number"])
    await open_ticket(client, admin_headers)

    response = await client.get("/api/v1/reports/dashboard", headers=admin_headers)

    data = response.json()
    assert response.status_code == 200
    assert data["open_exceptions"] == 1
    assert data["open_tickets"] == 1
    assert data["active_shippers"] == 1
    assert data["bookings"]["total_bookings"] == 1

from datetime import date, datetime, timedelta, timezone

from conftest import create_booking, create_shipper
from courier.services.report_service import period_axis, period_start


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def this_week() -> dict:
    today = utc_today()
    return {"start_date": str(today - timedelta(days=1)), "end_date": str(today + timedelta(days=1))}


async def invoice_booking(client, headers, booking) -> dict:
    response = await client.post(
        "/api/v1/invoices/from-booking", json={"booking_id": booking["id"]}, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


async def deliver(client, headers, booking) -> None:
    url = f"/api/v1/bookings/{booking['id']}/status"
    await client.post(url, json={"status": "Picked Up", "location": "Mumbai"}, headers=headers)
    response = await client.post(
        url, json={"status": "Delivered", "location": "Pune", "delivered_to": "Ravi"}, headers=headers
    )
    assert response.json()["status"] == "Delivered"


def test_period_start_and_axis():
    assert period_start(date(2026, 10, 22), "week") == date(2026, 10, 19)
    assert period_start(date(2026, 10, 22), "month") == date(2026, 10, 1)
    assert period_start(date(2026, 10, 22)) == date(2026, 10, 22)

    assert period_axis(date(2026, 11, 20), date(2027, 1, 5), "month") == [
        date(2026, 11, 1), date(2026, 12, 1), date(2027, 1, 1)
    ]
    assert len(period_axis(date(2026, 10, 1), date(2026, 10, 7))) == 7


async def test_revenue_report_splits_paid_and_outstanding(client, admin_headers, shipper):
    other = await create_shipper(client, admin_headers, email="accounts@patelexports.com", company="Patel Exports")
    prepaid = await create_booking(client, admin_headers, shipper["id"], payment_mode="Prepaid")
    credit = await create_booking(client, admin_headers, other["id"], payment_mode="Credit")
    await invoice_booking(client, admin_headers, prepaid)
    await invoice_booking(client, admin_headers, credit)

    response = await client.post(
        "/api/v1/reports/revenue", json={**this_week(), "group_by": "month"}, headers=admin_headers
    )
    assert response.status_code == 200
    report = response.json()

    assert report["summary"] == {
        "total_revenue": 560.5,
        "total_paid": 280.25,
        "total_outstanding": 280.25,
        "invoice_count": 2,
    }
    assert [p["period"] for p in report["by_period"]] == [str(utc_today().replace(day=1))]
    assert {s["shipper_name"] for s in report["by_shipper"]} == {"Desai Textiles", "Patel Exports"}
    assert report["by_service"] == []

    one_shipper = await client.post(
        "/api/v1/reports/revenue",
        json={**this_week(), "shipper_id": other["id"]},
        headers=admin_headers,
    )
    assert one_shipper.json()["summary"]["invoice_count"] == 1
    assert one_shipper.json()["summary"]["total_paid"] == 0


async def test_booking_report_filters_by_service(client, admin_headers, shipper):
    await create_booking(client, admin_headers, shipper["id"])
    await create_booking(client, admin_headers, shipper["id"])
    await create_booking(client, admin_headers, shipper["id"], service_type="Standard", weight=1)

    response = await client.post(
        "/api/v1/reports/bookings", json={**this_week(), "service_type": "Express"}, headers=admin_headers
    )
    report = response.json()

    assert report["summary"]["total_bookings"] == 2
    assert report["summary"]["total_amount"] == 560.5
    assert report["summary"]["avg_booking_value"] == 280.25
    assert report["summary"]["total_weight"] == 5.0
    assert len(report["bookings"]) == 2
    assert report["bookings"][0]["shipper_name"] == "Desai Textiles"
    assert [s["service_type"] for s in report["service_breakdown"]] == ["Express"]
    assert [(s["status"], s["count"]) for s in report["status_breakdown"]] == [("Booked", 3)]
    assert report["daily_trend"][-1]["count"] == 2
    assert report["top_shippers"][0]["bookings"] == 2


async def test_performance_report_counts_deliveries_and_exceptions(client, admin_headers, shipper):
    delivered = await create_booking(client, admin_headers, shipper["id"])
    delayed = await create_booking(client, admin_headers, shipper["id"])
    await deliver(client, admin_headers, delivered)
    await client.post(
        "/api/v1/exceptions",
        json={
            "awb_number": delayed["awb_number"],
            "exception_type": "Delivery Delay",
            "description": "Held at hub",
        },
        headers=admin_headers,
    )

    response = await client.post("/api/v1/reports/performance", json=this_week(), headers=admin_headers)
    report = response.json()

    performance = report["delivery_performance"][0]
    assert performance["service_type"] == "Express"
    assert performance["total_deliveries"] == 1
    assert performance["on_time"] == 1
    assert report["exception_analysis"] == [
        {"exception_type": "Delivery Delay", "count": 1, "resolved": 0, "avg_resolution_hours": None}
    ]
    assert report["financial"]["revenue"] == 280.25
    assert report["financial"]["booking_count"] == 1
    assert report["satisfaction"] == {"total_deliveries": 1, "total_exceptions": 1, "satisfaction_rate": 0.0}


async def test_dashboard_performance_metrics(client, admin_headers, shipper):
    delivered = await create_booking(client, admin_headers, shipper["id"], payment_mode="Prepaid")
    await create_booking(client, admin_headers, shipper["id"])
    await deliver(client, admin_headers, delivered)
    await invoice_booking(client, admin_headers, delivered)

    metrics = (await client.get("/api/v1/reports/dashboard/performance", headers=admin_headers)).json()

    assert metrics["success_rate"] == 50.0
    assert metrics["collection_rate"] == 100.0
    assert metrics["satisfaction_rate"] == 100.0
    assert metrics["avg_pickup_hours"] >= 0
    assert metrics["active_shippers"] == 1
    assert metrics["recent_activity"]["new_bookings"] == 2
    assert metrics["recent_activity"]["deliveries"] == 1


async def test_dashboard_trends_fill_every_day(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Prepaid")
    await create_booking(client, admin_headers, shipper["id"])
    await invoice_booking(client, admin_headers, booking)

    revenue = (await client.get("/api/v1/reports/dashboard/revenue?days=7", headers=admin_headers)).json()
    assert len(revenue["daily_revenue"]) == 8
    assert revenue["daily_revenue"][-1] == {
        "date": str(utc_today()), "revenue": 280.25, "paid": 280.25, "count": 1
    }
    assert revenue["daily_revenue"][0]["count"] == 0

    bookings = (await client.get("/api/v1/reports/dashboard/bookings?days=7", headers=admin_headers)).json()
    assert bookings["daily_bookings"][-1] == {"date": str(utc_today()), "count": 2, "delivered": 0, "cancelled": 0}
    assert bookings["by_status"] == {"Booked": 2}
    assert bookings["delivery_performance"] == {"on_time": 0, "delayed": 0, "total": 0}


async def test_recent_activities_newest_first(client, admin_headers, shipper):
    await create_booking(client, admin_headers, shipper["id"])
    latest = await create_booking(client, admin_headers, shipper["id"])

    response = await client.get("/api/v1/reports/dashboard/activities?limit=1", headers=admin_headers)
    activities = response.json()

    assert [b["awb_number"] for b in activities["bookings"]] == [latest["awb_number"]]
    assert activities["bookings"][0]["shipper_name"] == "Desai Textiles"
    assert activities["payments"] == []


async def test_report_range_is_validated(client, admin_headers, clerk_headers):
    backwards = {"start_date": "2026-10-19", "end_date": "2026-10-01"}
    response = await client.post("/api/v1/reports/revenue", json=backwards, headers=admin_headers)
    assert response.status_code == 422

    forbidden = await client.post("/api/v1/reports/bookings", json=this_week(), headers=clerk_headers)
    assert forbidden.status_code == 403

import uuid
from datetime import date, timedelta

from sqlalchemy import update

from conftest import create_booking, create_shipper
from courier.models.invoice import Invoice
from courier.services.invoice_service import InvoiceService


async def invoice_for(client, headers, booking, **fields) -> dict:
    response = await client.post(
        "/api/v1/invoices/from-booking",
        json={"booking_id": booking["id"], **fields},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_prepaid_booking_invoice_is_already_paid(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Prepaid")

    invoice = await invoice_for(client, admin_headers, booking)

    assert invoice["invoice_number"] == "INV000001"
    assert invoice["grand_total"] == 280.25
    assert invoice["taxable_amount"] == 237.5
    assert round(invoice["cgst_amount"] + invoice["sgst_amount"], 2) == 42.75
    assert invoice["igst_amount"] == 0
    assert invoice["round_off"] == 0
    assert invoice["payment_status"] == "Paid"
    assert invoice["status"] == "Paid"
    assert invoice["balance_amount"] == 0
    assert invoice["payments"][0]["payment_mode"] == "Adjustment"
    assert invoice["payments"][0]["reference"] == booking["awb_number"]
    assert [item["amount"] for item in invoice["items"]] == [125.0, 100.0, 12.5]
    assert invoice["supplier_details"]["name"] == "Courier Express Pvt Ltd"
    assert invoice["shipper_details"]["company"] == "Desai Textiles"


async def test_credit_booking_invoice_takes_partial_payments(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    invoice = await invoice_for(client, admin_headers, booking)
    assert invoice["payment_status"] == "Unpaid"
    assert invoice["status"] == "Draft"

    url = f"/api/v1/invoices/{invoice['id']}/payments"
    partial = await client.post(url, json={"amount": 100, "payment_mode": "UPI"}, headers=admin_headers)
    assert partial.json()["payment_status"] == "Partially Paid"
    assert partial.json()["balance_amount"] == 180.25

    too_much = await client.post(url, json={"amount": 500}, headers=admin_headers)
    assert too_much.status_code == 400
    assert too_much.json()["error"] == "InvalidAmount"
    assert too_much.json()["balance"] == 180.25

    rest = await client.post(url, json={"amount": 180.25, "payment_mode": "Cash"}, headers=admin_headers)
    assert rest.json()["payment_status"] == "Paid"
    assert rest.json()["status"] == "Paid"
    assert len(rest.json()["payments"]) == 2


async def test_interstate_shipper_is_charged_igst(client, admin_headers):
    shipper = await create_shipper(
        client, admin_headers, email="billing@blrtraders.com", city="Bengaluru", state="Karnataka"
    )
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")

    invoice = await invoice_for(client, admin_headers, booking)

    assert invoice["is_interstate"] is True
    assert invoice["igst_amount"] == 42.75
    assert invoice["cgst_amount"] == 0
    assert invoice["sgst_amount"] == 0
    assert invoice["place_of_supply"] == "Karnataka"


async def test_booking_cannot_be_invoiced_twice(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    first = await invoice_for(client, admin_headers, booking)

    again = await client.post(
        "/api/v1/invoices/from-booking", json={"booking_id": booking["id"]}, headers=admin_headers
    )
    assert again.status_code == 400
    assert first["invoice_number"] in again.json()["detail"]

    await client.post(
        f"/api/v1/invoices/{first['id']}/cancel", json={"reason": "Wrong GSTIN"}, headers=admin_headers
    )
    reissued = await invoice_for(client, admin_headers, booking)
    assert reissued["invoice_number"] == "INV000002"


async def test_cancelled_booking_cannot_be_invoiced(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"])
    await client.post(f"/api/v1/bookings/{booking['id']}/cancel", json={}, headers=admin_headers)

    response = await client.post(
        "/api/v1/invoices/from-booking", json={"booking_id": booking["id"]}, headers=admin_headers
    )
    assert response.status_code == 400


async def test_manual_invoice_with_percentage_discount(client, admin_headers, shipper):
    response = await client.post(
        "/api/v1/invoices",
        json={
            "shipper_id": shipper["id"],
            "items": [{"description": "Monthly freight", "rate": 1000}],
            "discount": 10,
            "discount_type": "percentage",
        },
        headers=admin_headers,
    )

    invoice = response.json()
    assert response.status_code == 201
    assert invoice["discount_amount"] == 100
    assert invoice["taxable_amount"] == 900
    assert invoice["cgst_amount"] == 81
    assert invoice["sgst_amount"] == 81
    assert invoice["grand_total"] == 1062
    assert invoice["items"][0]["sac_code"] == "996791"


async def test_discount_larger_than_invoice_is_rejected(client, admin_headers, shipper):
    too_large = await client.post(
        "/api/v1/invoices",
        json={"shipper_id": shipper["id"], "items": [{"description": "Freight", "rate": 100}], "discount": 500},
        headers=admin_headers,
    )
    assert too_large.status_code == 400
    assert too_large.json()["error"] == "InvalidAmount"

    created = await client.post(
        "/api/v1/invoices",
        json={"shipper_id": shipper["id"], "items": [{"description": "Freight", "rate": 100}], "discount": 10},
        headers=admin_headers,
    )
    invoice_id = created.json()["id"]

    over_percent = await client.put(
        f"/api/v1/invoices/{invoice_id}",
        json={"discount": 150, "discount_type": "percentage"},
        headers=admin_headers,
    )
    assert over_percent.status_code == 422

    over_fixed = await client.put(f"/api/v1/invoices/{invoice_id}", json={"discount": 101}, headers=admin_headers)
    assert over_fixed.status_code == 400

    unchanged = await client.get(f"/api/v1/invoices/{invoice_id}", headers=admin_headers)
    assert unchanged.json()["discount_amount"] == 10


async def test_consolidated_invoice_charges_gst_once(client, admin_headers, shipper):
    first = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    second = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")

    response = await client.post(
        "/api/v1/invoices/consolidated",
        json={"shipper_id": shipper["id"], "booking_ids": [first["id"], second["id"]]},
        headers=admin_headers,
    )

    invoice = response.json()
    assert response.status_code == 201
    assert len(invoice["items"]) == 2
    assert invoice["subtotal"] == 475
    assert invoice["total_tax"] == 85.5
    assert invoice["total_before_round"] == 560.5
    assert invoice["grand_total"] == 561
    assert invoice["round_off"] == 0.5

    overlap = await client.post(
        "/api/v1/invoices/from-booking", json={"booking_id": first["id"]}, headers=admin_headers
    )
    assert overlap.status_code == 400


async def test_consolidated_invoice_rejects_other_shippers_bookings(client, admin_headers, shipper):
    other = await create_shipper(client, admin_headers, email="ship@kolkatajute.com", company="Kolkata Jute")
    mine = await create_booking(client, admin_headers, shipper["id"])
    theirs = await create_booking(client, admin_headers, other["id"])

    response = await client.post(
        "/api/v1/invoices/consolidated",
        json={"shipper_id": shipper["id"], "booking_ids": [mine["id"], theirs["id"]]},
        headers=admin_headers,
    )
    assert response.status_code == 400


async def test_invoice_with_payments_cannot_be_cancelled_or_deleted(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    invoice = await invoice_for(client, admin_headers, booking)
    await client.post(
        f"/api/v1/invoices/{invoice['id']}/payments", json={"amount": 50}, headers=admin_headers
    )

    cancel = await client.post(
        f"/api/v1/invoices/{invoice['id']}/cancel", json={"reason": "Duplicate"}, headers=admin_headers
    )
    assert cancel.status_code == 400
    assert cancel.json()["error"] == "HasPayments"

    delete = await client.delete(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert delete.status_code == 400


async def test_cancelled_invoice_takes_no_payment(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    invoice = await invoice_for(client, admin_headers, booking)

    cancelled = await client.post(
        f"/api/v1/invoices/{invoice['id']}/cancel", json={"reason": "Duplicate"}, headers=admin_headers
    )
    assert cancelled.json()["status"] == "Cancelled"
    assert cancelled.json()["payment_status"] == "Cancelled"

    payment = await client.post(
        f"/api/v1/invoices/{invoice['id']}/payments", json={"amount": 10}, headers=admin_headers
    )
    assert payment.status_code == 400


async def test_send_moves_draft_to_sent(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    invoice = await invoice_for(client, admin_headers, booking)

    response = await client.post(f"/api/v1/invoices/{invoice['id']}/send", headers=admin_headers)

    assert response.json()["status"] == "Sent"
    assert response.json()["sent_at"] is not None


async def test_gateway_payment_completes_invoice(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    invoice = await invoice_for(client, admin_headers, booking)

    created = await client.post(
        "/api/v1/payments",
        json={"invoice_id": invoice["id"], "gateway": "PayPal", "payer_email": "accounts@desaitextiles.com"},
        headers=admin_headers,
    )
    payment = created.json()
    assert created.status_code == 201
    assert payment["transaction_id"] == "TXN00000001"
    assert payment["amount"] == 280.25
    assert payment["status"] == "Pending"

    await client.post(f"/api/v1/payments/{payment['id']}/processing", headers=admin_headers)
    completed = await client.post(
        f"/api/v1/payments/{payment['id']}/complete",
        json={"gateway_transaction_id": "PAYID-7XK2"},
        headers=admin_headers,
    )
    assert completed.json()["status"] == "Completed"

    refreshed = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert refreshed.json()["payment_status"] == "Paid"
    assert refreshed.json()["payments"][0]["payment_id"] == payment["id"]
    assert refreshed.json()["payments"][0]["reference"] == "PAYID-7XK2"

    refund = await client.post(
        f"/api/v1/payments/{payment['id']}/refund",
        json={"amount": 80.25, "reason": "Damaged parcel"},
        headers=admin_headers,
    )
    assert refund.json()["status"] == "Refunded"
    assert refund.json()["refund_amount"] == 80.25


async def test_failed_payment_is_terminal(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    invoice = await invoice_for(client, admin_headers, booking)
    created = await client.post(
        "/api/v1/payments",
        json={"invoice_id": invoice["id"], "amount": 100, "gateway": "Skrill"},
        headers=admin_headers,
    )
    payment_id = created.json()["id"]

    failed = await client.post(
        f"/api/v1/payments/{payment_id}/fail",
        json={"failure_message": "Card declined"},
        headers=admin_headers,
    )
    assert failed.json()["status"] == "Failed"

    complete = await client.post(f"/api/v1/payments/{payment_id}/complete", json={}, headers=admin_headers)
    assert complete.status_code == 400

    refund = await client.post(f"/api/v1/payments/{payment_id}/refund", json={}, headers=admin_headers)
    assert refund.status_code == 400

    untouched = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert untouched.json()["paid_amount"] == 0


async def test_payment_for_paid_invoice_rejected(client, admin_headers, shipper):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Prepaid")
    invoice = await invoice_for(client, admin_headers, booking)

    response = await client.post(
        "/api/v1/payments",
        json={"invoice_id": invoice["id"], "gateway": "Manual"},
        headers=admin_headers,
    )
    assert response.status_code == 400


async def test_overdue_sweep(client, admin_headers, shipper, db):
    booking = await create_booking(client, admin_headers, shipper["id"], payment_mode="Credit")
    invoice = await invoice_for(client, admin_headers, booking)
    assert invoice["payment_status"] == "Unpaid"
    assert await InvoiceService(db).sweep_overdue() == 0

    await db.execute(
        update(Invoice)
        .where(Invoice.id == uuid.UUID(invoice["id"]))
        .values(due_date=date.today() - timedelta(days=1))
    )
    await db.commit()

    assert await InvoiceService(db).sweep_overdue() == 1

    response = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert response.json()["payment_status"] == "Overdue"

    stats = await client.get("/api/v1/invoices/stats", headers=admin_headers)
    assert stats.json()["by_payment_status"] == {"Overdue": 1}
    assert stats.json()["outstanding_amount"] == 280.25

from datetime import date, timedelta
from decimal import Decimal

import pytest

from courier.core.exceptions import HasPayments, InvalidAmount, StateConflict
from courier.models.invoice import Invoice, PaymentStatus, InvoiceStatus, derive_payment_status
from courier.services.invoice_composer import (
    LineItem,
    apply_payment,
    apply_totals,
    compose_invoice,
    ensure_cancellable,
    is_interstate_supply,
)


def test_same_state_splits_gst_into_cgst_and_sgst():
    totals = compose_invoice(
        [LineItem(description="Freight", amount=Decimal("1000"))],
        discount=10,
        discount_type="percentage",
        recipient_state="Maharashtra",
        supplier_state="Maharashtra",
        gst_rate=18,
    )

    assert totals.discount_amount == Decimal("100")
    assert totals.taxable_amount == Decimal("900")
    assert totals.cgst_amount == Decimal("81")
    assert totals.sgst_amount == Decimal("81")
    assert totals.igst_amount == 0
    assert totals.grand_total == Decimal("1062")
    assert totals.round_off == 0
    assert not totals.is_interstate


def test_other_state_charges_igst():
    totals = compose_invoice(
        [LineItem(description="Freight", amount=Decimal("1000"))],
        recipient_state="Karnataka",
        supplier_state="Maharashtra",
        gst_rate=18,
    )
    assert totals.is_interstate
    assert totals.cgst_amount == 0
    assert totals.sgst_amount == 0
    assert totals.igst_amount == Decimal("180")
    assert totals.grand_total == Decimal("1180")


def test_state_comparison_ignores_case_and_spacing():
    assert not is_interstate_supply("Maharashtra", "  maharashtra ")
    assert is_interstate_supply("Maharashtra", None)
    assert is_interstate_supply(None, "Maharashtra")


def test_grand_total_rounds_to_whole_rupees():
    totals = compose_invoice(
        [LineItem(description="Freight", quantity=1, rate=Decimal("100.30"))],
        recipient_state="Maharashtra",
        supplier_state="Maharashtra",
        gst_rate=18,
    )
    assert totals.total_before_round == Decimal("118.354")
    assert totals.grand_total == Decimal("118")
    assert totals.round_off == Decimal("-0.354")


def test_line_amount_defaults_to_quantity_times_rate():
    item = LineItem(description="Pickup", quantity=3, rate=Decimal("40"))
    assert item.amount == Decimal("120")


def make_invoice(grand_total="1062", due_date=None) -> Invoice:
    return Invoice(
        invoice_number="INV000001",
        grand_total=Decimal(grand_total),
        paid_amount=Decimal("0"),
        balance_amount=Decimal(grand_total),
        due_date=due_date,
        payment_status=PaymentStatus.UNPAID.value,
        status=InvoiceStatus.SENT.value,
    )


def test_partial_then_full_payment():
    invoice = make_invoice()

    apply_payment(invoice, Decimal("500"), "Cash", date.today())
    assert invoice.payment_status == PaymentStatus.PARTIALLY_PAID.value
    assert invoice.balance_amount == Decimal("562")

    apply_payment(invoice, Decimal("562"), "UPI", date.today())
    assert invoice.payment_status == PaymentStatus.PAID.value
    assert invoice.status == InvoiceStatus.PAID.value
    assert invoice.balance_amount == 0
    assert len(invoice.payments) == 2


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), Decimal("1062.01")])
def test_payment_amount_must_be_positive_and_within_balance(amount):
    invoice = make_invoice()
    with pytest.raises(InvalidAmount):
        apply_payment(invoice, amount, "Cash", date.today())
    assert invoice.paid_amount == 0


def test_no_payment_on_paid_or_cancelled_invoice():
    paid = make_invoice()
    apply_payment(paid, Decimal("1062"), "Cash", date.today())
    with pytest.raises(StateConflict):
        apply_payment(paid, Decimal("1"), "Cash", date.today())

    cancelled = make_invoice()
    cancelled.status = InvoiceStatus.CANCELLED.value
    with pytest.raises(StateConflict):
        apply_payment(cancelled, Decimal("1"), "Cash", date.today())


def test_invoice_with_payments_cannot_be_cancelled():
    invoice = make_invoice()
    ensure_cancellable(invoice)

    apply_payment(invoice, Decimal("10"), "Cash", date.today())
    with pytest.raises(HasPayments):
        ensure_cancellable(invoice)


def test_payment_status_derivation():
    today = date(2026, 10, 19)
    yesterday = today - timedelta(days=1)

    assert derive_payment_status(Decimal("0"), Decimal("100"), None, today=today) == "Unpaid"
    assert derive_payment_status(Decimal("40"), Decimal("100"), today, today=today) == "Partially Paid"
    assert derive_payment_status(Decimal("0"), Decimal("100"), yesterday, today=today) == "Overdue"
    assert derive_payment_status(Decimal("40"), Decimal("100"), yesterday, today=today) == "Overdue"
    assert derive_payment_status(Decimal("100"), Decimal("100"), yesterday, today=today) == "Paid"
    assert derive_payment_status(Decimal("0"), Decimal("100"), yesterday, current="Cancelled", today=today) == "Cancelled"


def test_stored_gst_halves_add_up_to_total_tax():
    totals = compose_invoice(
        [LineItem(description="Freight", rate=Decimal("237.50"))],
        recipient_state="Maharashtra",
        supplier_state="Maharashtra",
        gst_rate=18,
    )
    invoice = Invoice(invoice_number="INV000001", paid_amount=Decimal("0"))

    apply_totals(invoice, totals)

    assert invoice.total_tax == Decimal("42.75")
    assert invoice.cgst_amount == Decimal("21.38")
    assert invoice.sgst_amount == Decimal("21.37")
    assert invoice.cgst_amount + invoice.sgst_amount + invoice.igst_amount == invoice.total_tax
    assert invoice.total_before_round + invoice.round_off == invoice.grand_total


@pytest.mark.parametrize(
    "discount, discount_type",
    [(Decimal("500"), "fixed"), (Decimal("101"), "percentage"), (Decimal("-1"), "fixed")],
)
def test_discount_cannot_exceed_subtotal(discount, discount_type):
    with pytest.raises(InvalidAmount):
        compose_invoice(
            [LineItem(description="Freight", rate=Decimal("100"))],
            discount=discount,
            discount_type=discount_type,
            gst_rate=18,
        )


def test_full_discount_leaves_nothing_owed():
    totals = compose_invoice(
        [LineItem(description="Goodwill redelivery", rate=Decimal("100"))],
        discount=100,
        discount_type="percentage",
        gst_rate=18,
    )
    assert totals.grand_total == 0

    invoice = Invoice(invoice_number="INV000002", paid_amount=Decimal("0"), due_date=date(2020, 1, 1))
    apply_totals(invoice, totals)
    assert invoice.payment_status == PaymentStatus.PAID.value
    assert derive_payment_status(Decimal("0"), Decimal("0"), date(2020, 1, 1), today=date(2026, 10, 19)) == "Paid"

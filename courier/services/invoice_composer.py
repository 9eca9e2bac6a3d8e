"""
Invoice arithmetic.

compose_invoice() turns line items, a discount and a pair of tax
jurisdictions into invoice totals. Same jurisdiction splits GST evenly
into CGST and SGST; different (or unknown) jurisdictions charge the
full rate as IGST. The grand total is rounded half-up to whole rupees
and the difference is kept as round_off.

apply_payment() and ensure_cancellable() hold the payment-tracking rules
shared by manual payment recording, gateway payments and cancellation.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from courier.config import settings
from courier.core.exceptions import InvalidAmount, HasPayments, StateConflict
from courier.models.invoice import (
    Invoice,
    InvoicePaymentRecord,
    InvoiceStatus,
    PaymentStatus,
    DiscountType,
)
from courier.services.rate_calculator import money, to_decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass
class LineItem:
    description: str
    quantity: Decimal = Decimal("1")
    rate: Decimal = ZERO
    amount: Optional[Decimal] = None
    sac_code: Optional[str] = None
    unit: str = "Nos"
    is_taxable: bool = True
    booking_id: Optional[object] = None

    def __post_init__(self):
        self.quantity = to_decimal(self.quantity)
        self.rate = to_decimal(self.rate)
        if self.amount is None:
            self.amount = self.quantity * self.rate
        else:
            self.amount = to_decimal(self.amount)


@dataclass
class InvoiceTotals:
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    gst_rate: Decimal
    is_interstate: bool
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    total_tax: Decimal
    total_before_round: Decimal
    round_off: Decimal
    grand_total: Decimal
    items: list = field(default_factory=list)


def normalize_state(state: Optional[str]) -> Optional[str]:
    if state is None:
        return None
    cleaned = " ".join(state.split()).casefold()
    return cleaned or None


def is_interstate_supply(supplier_state: Optional[str], recipient_state: Optional[str]) -> bool:
    """A missing state on either side counts as interstate."""
    supplier = normalize_state(supplier_state)
    recipient = normalize_state(recipient_state)
    if supplier is None or recipient is None:
        return True
    return supplier != recipient


def round_to_rupee(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def split_gst(tax: Decimal, interstate: bool) -> tuple[Decimal, Decimal, Decimal]:
    """(cgst, sgst, igst) for a tax amount."""
    if interstate:
        return ZERO, ZERO, tax
    half = tax / 2
    return half, half, ZERO


def compose_invoice(
    items: Iterable[LineItem],
    discount=None,
    discount_type: str = DiscountType.FIXED.value,
    recipient_state: Optional[str] = None,
    supplier_state: Optional[str] = None,
    gst_rate=None,
) -> InvoiceTotals:
    """
    Totals for an invoice.

    Example: subtotal 1000, 10% discount, same state at 18% gives
    discount 100, taxable 900, CGST 81, SGST 81, grand total 1062.
    """
    items = list(items)
    supplier_state = settings.COMPANY_STATE if supplier_state is None else supplier_state
    rate = to_decimal(settings.GST_RATE if gst_rate is None else gst_rate)

    subtotal = sum((item.amount for item in items), ZERO)

    discount_value = to_decimal(discount)
    if discount_value < 0:
        raise InvalidAmount("Discount cannot be negative")
    if discount_type == DiscountType.PERCENTAGE.value:
        if discount_value > HUNDRED:
            raise InvalidAmount("Percentage discount cannot exceed 100")
        discount_amount = subtotal * discount_value / HUNDRED
    else:
        discount_amount = discount_value
    if discount_amount > subtotal:
        raise InvalidAmount(
            f"Discount {money(discount_amount)} exceeds subtotal {money(subtotal)}",
            subtotal=float(money(subtotal)),
        )

    taxable = subtotal - discount_amount

    interstate = is_interstate_supply(supplier_state, recipient_state)
    cgst, sgst, igst = split_gst(taxable * rate / HUNDRED, interstate)

    total_tax = cgst + sgst + igst
    total_before_round = taxable + total_tax
    grand_total = round_to_rupee(total_before_round)

    return InvoiceTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable,
        gst_rate=rate,
        is_interstate=interstate,
        cgst_amount=cgst,
        sgst_amount=sgst,
        igst_amount=igst,
        total_tax=total_tax,
        total_before_round=total_before_round,
        round_off=grand_total - total_before_round,
        grand_total=grand_total,
        items=items,
    )


def apply_totals(invoice: Invoice, totals: InvoiceTotals) -> None:
    """Copy computed totals onto an invoice, rounded for storage."""
    invoice.subtotal = money(totals.subtotal)
    invoice.discount_amount = money(totals.discount_amount)
    invoice.taxable_amount = money(totals.taxable_amount)
    invoice.gst_rate = totals.gst_rate
    invoice.is_interstate = totals.is_interstate
    total_tax = money(totals.total_tax)
    if totals.is_interstate:
        invoice.cgst_amount = invoice.sgst_amount = ZERO
    else:
        # Stored halves add up to the stored tax; SGST takes the odd paisa
        invoice.cgst_amount = money(totals.cgst_amount)
        invoice.sgst_amount = total_tax - invoice.cgst_amount
    invoice.igst_amount = money(totals.igst_amount)
    invoice.total_tax = total_tax
    invoice.total_before_round = invoice.taxable_amount + total_tax
    invoice.grand_total = money(totals.grand_total)
    invoice.round_off = invoice.grand_total - invoice.total_before_round
    invoice.refresh_payment_status()


def apply_payment(
    invoice: Invoice,
    amount,
    mode: str,
    payment_date: date,
    reference: Optional[str] = None,
    remarks: Optional[str] = None,
    recorded_by=None,
    payment_id=None,
) -> InvoicePaymentRecord:
    """
    Append a payment record and update paid amount and status.

    Rejects amounts <= 0 or above the outstanding balance, and any
    payment on a fully paid or cancelled invoice.
    """
    if invoice.payment_status == PaymentStatus.CANCELLED.value or invoice.status == InvoiceStatus.CANCELLED.value:
        raise StateConflict("Cannot record payment on a cancelled invoice")
    if invoice.payment_status == PaymentStatus.PAID.value:
        raise StateConflict("Invoice is already fully paid")

    value = to_decimal(amount)
    balance = to_decimal(invoice.grand_total) - to_decimal(invoice.paid_amount)
    if value <= 0:
        raise InvalidAmount("Payment amount must be greater than zero")
    if value > balance:
        raise InvalidAmount(
            f"Payment amount {money(value)} exceeds balance {money(balance)}",
            balance=float(money(balance)),
        )

    record = InvoicePaymentRecord(
        amount=money(value),
        payment_mode=mode,
        payment_date=payment_date,
        reference=reference,
        remarks=remarks,
        recorded_by=recorded_by,
        payment_id=payment_id,
    )
    invoice.payments.append(record)
    invoice.paid_amount = money(to_decimal(invoice.paid_amount) + value)
    invoice.refresh_payment_status()
    return record


def ensure_cancellable(invoice: Invoice) -> None:
    """Invoices with any payment recorded cannot be cancelled or deleted."""
    if to_decimal(invoice.paid_amount) > 0:
        raise HasPayments("Cannot cancel or delete an invoice with payments recorded")

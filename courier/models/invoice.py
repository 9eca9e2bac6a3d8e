"""Invoice models: header, line items and payment records."""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, ForeignKey, Integer, Numeric, Text, Date, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courier.database import Base
from courier.db_types import JSONType, UUIDType, UTCDateTime, utc_now


class InvoiceType(str, Enum):
    FREIGHT = "Freight"
    PROFORMA = "Proforma"
    CREDIT_NOTE = "Credit Note"
    DEBIT_NOTE = "Debit Note"
    GST_INVOICE = "GST Invoice"


class InvoiceStatus(str, Enum):
    """Document lifecycle."""
    DRAFT = "Draft"
    SENT = "Sent"
    VIEWED = "Viewed"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    """Derived from paid amount, grand total and due date."""
    UNPAID = "Unpaid"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


class DiscountType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class PaymentRecordMode(str, Enum):
    CASH = "Cash"
    CHEQUE = "Cheque"
    BANK_TRANSFER = "Bank Transfer"
    UPI = "UPI"
    CARD = "Card"
    ONLINE = "Online"
    ADJUSTMENT = "Adjustment"


# Plain edits are blocked once an invoice reaches one of these
INVOICE_LOCKED_STATUSES = frozenset({InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value})


def derive_payment_status(
    paid_amount: Decimal,
    grand_total: Decimal,
    due_date: Optional[date],
    current: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    """
    Payment status from amounts and due date.

    Cancelled is sticky. Otherwise Unpaid / Partially Paid / Paid by
    amount, and anything not fully paid past its due date is Overdue.
    An invoice with nothing owed (grand total 0) is Paid.
    """
    if current == PaymentStatus.CANCELLED.value:
        return PaymentStatus.CANCELLED.value

    paid = Decimal(paid_amount or 0)
    grand = Decimal(grand_total or 0)

    if grand <= 0 or (paid > 0 and paid >= grand):
        result = PaymentStatus.PAID.value
    elif paid == 0:
        result = PaymentStatus.UNPAID.value
    else:
        result = PaymentStatus.PARTIALLY_PAID.value

    today = today or datetime.now(timezone.utc).date()
    if result != PaymentStatus.PAID.value and due_date is not None and due_date < today:
        result = PaymentStatus.OVERDUE.value

    return result


class Invoice(Base):
    """
    Invoice raised to a shipper.

    balance_amount and payment_status are recomputed before every save.
    """
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="INV{6-digit seq}"
    )
    invoice_type: Mapped[str] = mapped_column(String(20), default=InvoiceType.FREIGHT.value)

    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Set when generated from a single booking"
    )
    shipper_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shippers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    shipper_details: Mapped[dict] = mapped_column(JSONType, default=dict, comment="Snapshot at invoice time")
    supplier_details: Mapped[dict] = mapped_column(JSONType, default=dict, comment="Issuing company at invoice time")

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    period_from: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    period_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Tax jurisdictions
    supplier_state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    place_of_supply: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_interstate: Mapped[bool] = mapped_column(Boolean, default=False)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        default=Decimal("0"),
        comment="Percent or flat amount depending on discount_type"
    )
    discount_type: Mapped[str] = mapped_column(String(20), default=DiscountType.FIXED.value)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    taxable_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    gst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("18"))
    cgst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    sgst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    igst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    total_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    total_before_round: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    round_off: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    grand_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    balance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))

    # Status
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.UNPAID.value,
        nullable=False,
        index=True
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=InvoiceStatus.DRAFT.value,
        nullable=False,
        index=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.line_number",
        lazy="selectin"
    )
    payments: Mapped[List["InvoicePaymentRecord"]] = relationship(
        "InvoicePaymentRecord",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePaymentRecord.recorded_at",
        lazy="selectin"
    )

    @property
    def is_locked(self) -> bool:
        return self.status in INVOICE_LOCKED_STATUSES

    def refresh_payment_status(self, today: Optional[date] = None) -> None:
        """Recompute balance and payment status from current amounts."""
        grand = Decimal(self.grand_total or 0)
        paid = Decimal(self.paid_amount or 0)
        self.balance_amount = grand - paid
        self.payment_status = derive_payment_status(
            paid, grand, self.due_date, current=self.payment_status, today=today
        )
        if self.payment_status == PaymentStatus.PAID.value and self.status != InvoiceStatus.CANCELLED.value:
            self.status = InvoiceStatus.PAID.value

    def __repr__(self) -> str:
        return f"<Invoice(number='{self.invoice_number}', status='{self.payment_status}')>"


@event.listens_for(Invoice, "before_insert")
@event.listens_for(Invoice, "before_update")
def _invoice_before_save(mapper, connection, target: Invoice) -> None:
    target.refresh_payment_status()


class InvoiceItem(Base):
    """Invoice line item."""
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, default=1)
    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    sac_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, comment="SAC/HSN code")
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("1"))
    unit: Mapped[str] = mapped_column(String(20), default="Nos")
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=True)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")


class InvoicePaymentRecord(Base):
    """Append-only record of money received against an invoice."""
    __tablename__ = "invoice_payment_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("payments.id", ondelete="SET NULL"),
        nullable=True,
        comment="Gateway payment that produced this record"
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_mode: Mapped[str] = mapped_column(String(30), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    recorded_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        nullable=False
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payments")

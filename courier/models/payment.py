"""Payment transaction model."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, ForeignKey, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from courier.database import Base
from courier.db_types import JSONType, UUIDType, UTCDateTime, utc_now


class PaymentGateway(str, Enum):
    PAYPAL = "PayPal"
    SKRILL = "Skrill"
    MANUAL = "Manual"
    CASH = "Cash"
    CHEQUE = "Cheque"
    BANK_TRANSFER = "Bank Transfer"


class PaymentCurrency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    INR = "INR"
    AUD = "AUD"
    CAD = "CAD"


class PaymentState(str, Enum):
    """Payment transaction status."""
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


# Gateway mode -> mode recorded on the invoice
GATEWAY_RECORD_MODES = {
    PaymentGateway.PAYPAL.value: "Online",
    PaymentGateway.SKRILL.value: "Online",
    PaymentGateway.MANUAL.value: "Adjustment",
    PaymentGateway.CASH.value: "Cash",
    PaymentGateway.CHEQUE.value: "Cheque",
    PaymentGateway.BANK_TRANSFER.value: "Bank Transfer",
}


class Payment(Base):
    """A payment attempt against an invoice."""
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    transaction_id: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="TXN{8-digit seq}"
    )

    invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True
    )
    shipper_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shippers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default=PaymentCurrency.INR.value)
    gateway: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    gateway_transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gateway_response: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentState.PENDING.value,
        nullable=False,
        index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    payer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    failure_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    failure_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    def __repr__(self) -> str:
        return f"<Payment(txn='{self.transaction_id}', status='{self.status}')>"

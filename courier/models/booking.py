"""Booking (shipment) model with append-only status history."""
import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, ForeignKey, Integer, Numeric, Text, Date, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courier.config import settings
from courier.database import Base
from courier.db_types import UUIDType, UTCDateTime, utc_now

if TYPE_CHECKING:
    from courier.models.shipper import Shipper, Consignee


class ServiceType(str, Enum):
    EXPRESS = "Express"
    STANDARD = "Standard"
    ECONOMY = "Economy"
    SAME_DAY = "Same Day"
    OVERNIGHT = "Overnight"
    INTERNATIONAL = "International"


class ShipmentType(str, Enum):
    DOCUMENT = "Document"
    PARCEL = "Parcel"
    CARGO = "Cargo"


class DestinationType(str, Enum):
    LOCAL = "Local"
    DOMESTIC = "Domestic"
    INTERNATIONAL = "International"


class PaymentMode(str, Enum):
    COD = "COD"
    PREPAID = "Prepaid"
    CREDIT = "Credit"


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    BOOKED = "Booked"
    PICKED_UP = "Picked Up"
    IN_TRANSIT = "In Transit"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    RETURNED = "Returned"
    CANCELLED = "Cancelled"
    ON_HOLD = "On Hold"
    FAILED_DELIVERY = "Failed Delivery"


# No field edits once a booking reaches one of these
BOOKING_TERMINAL_STATUSES = frozenset({BookingStatus.DELIVERED.value, BookingStatus.CANCELLED.value})

# Hard delete allowed only from these
BOOKING_DELETABLE_STATUSES = frozenset({BookingStatus.BOOKED.value, BookingStatus.CANCELLED.value})

LB_TO_KG = Decimal("0.45359237")

CHARGE_FIELDS = (
    "shipping_charge",
    "insurance_charge",
    "cod_charge",
    "fuel_surcharge",
    "gst_amount",
)


class Booking(Base):
    """
    A shipment booked by a shipper.

    total_amount is always the sum of the charge components and
    volumetric_weight is derived from the dimensions; both are
    recomputed before every insert and update.
    """
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    awb_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="AWB{YY}{7-digit seq}"
    )

    # Parties
    shipper_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shippers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    consignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("consignees.id", ondelete="SET NULL"),
        nullable=True
    )
    consignee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    consignee_mobile: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    consignee_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    consignee_company: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    consignee_street: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    consignee_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    consignee_state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    consignee_postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    consignee_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    origin_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Service
    service_type: Mapped[str] = mapped_column(String(30), default=ServiceType.STANDARD.value, index=True)
    shipment_type: Mapped[str] = mapped_column(String(20), default=ShipmentType.PARCEL.value)
    destination_type: Mapped[str] = mapped_column(String(20), default=DestinationType.LOCAL.value)

    # Package
    pieces: Mapped[int] = mapped_column(Integer, default=1)
    weight: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False)
    weight_unit: Mapped[str] = mapped_column(String(5), default="kg", comment="kg, lb")
    length: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    width: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    height: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    dimension_unit: Mapped[str] = mapped_column(String(5), default="cm", comment="cm, in")
    volumetric_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    declared_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    # Charges (stored at 2 decimals)
    shipping_charge: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    insurance_charge: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    cod_charge: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    fuel_surcharge: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    gst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        default=Decimal("0"),
        comment="Sum of charge components"
    )

    # Payment
    payment_mode: Mapped[str] = mapped_column(String(20), default=PaymentMode.COD.value, index=True)
    cod_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))

    # Status
    status: Mapped[str] = mapped_column(
        String(30),
        default=BookingStatus.BOOKED.value,
        nullable=False,
        index=True
    )
    booking_date: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, index=True)
    expected_delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Delivery
    delivery_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    delivered_to: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    delivery_signature: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    delivery_proof: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, comment="POD image URL")
    delivery_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Return
    return_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    return_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Manifest & dispatch
    manifest_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("manifests.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    dispatch_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("dispatches.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Ownership (data scope)
    booked_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    branch: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    zone: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

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

    # Relationships
    shipper: Mapped["Shipper"] = relationship("Shipper")
    consignee: Mapped[Optional["Consignee"]] = relationship("Consignee")
    status_history: Mapped[List["BookingStatusHistory"]] = relationship(
        "BookingStatusHistory",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingStatusHistory.recorded_at",
        lazy="selectin"
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in BOOKING_TERMINAL_STATUSES

    @property
    def weight_kg(self) -> Decimal:
        weight = Decimal(self.weight or 0)
        if self.weight_unit == "lb":
            return weight * LB_TO_KG
        return weight

    @property
    def charges_subtotal(self) -> Decimal:
        """Pre-tax charges: shipping + insurance + COD + fuel surcharge."""
        return (
            Decimal(self.shipping_charge or 0)
            + Decimal(self.insurance_charge or 0)
            + Decimal(self.cod_charge or 0)
            + Decimal(self.fuel_surcharge or 0)
        )

    def compute_volumetric_weight(self) -> Optional[Decimal]:
        if not (self.length and self.width and self.height):
            return None
        divisor = (
            settings.VOLUMETRIC_DIVISOR_IN
            if self.dimension_unit == "in"
            else settings.VOLUMETRIC_DIVISOR_CM
        )
        volume = Decimal(self.length) * Decimal(self.width) * Decimal(self.height)
        return (volume / divisor).quantize(Decimal("0.001"))

    def recalculate_totals(self) -> None:
        self.volumetric_weight = self.compute_volumetric_weight()
        self.total_amount = sum(
            (Decimal(getattr(self, field) or 0) for field in CHARGE_FIELDS),
            Decimal("0"),
        )

    def __repr__(self) -> str:
        return f"<Booking(awb='{self.awb_number}', status='{self.status}')>"


@event.listens_for(Booking, "before_insert")
@event.listens_for(Booking, "before_update")
def _booking_before_save(mapper, connection, target: Booking) -> None:
    target.recalculate_totals()


class BookingStatusHistory(Base):
    """One entry in a booking's status ledger. Never updated or deleted on its own."""
    __tablename__ = "booking_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    recorded_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        nullable=False
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="status_history")

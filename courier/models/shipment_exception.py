"""Shipment exception (delivery incident) model."""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courier.database import Base
from courier.db_types import UUIDType, UTCDateTime, utc_now


class ExceptionType(str, Enum):
    DAMAGED_PACKAGE = "Damaged Package"
    MISSING_ITEMS = "Missing Items"
    WRONG_ADDRESS = "Wrong Address"
    DELIVERY_DELAY = "Delivery Delay"
    PACKAGE_LOST = "Package Lost"
    DELIVERY_REFUSED = "Delivery Refused"
    WRONG_ITEM_DELIVERED = "Wrong Item Delivered"
    CUSTOMER_NOT_AVAILABLE = "Customer Not Available"
    WEATHER_DELAY = "Weather Delay"
    VEHICLE_BREAKDOWN = "Vehicle Breakdown"
    OTHER = "Other"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class CaseStatus(str, Enum):
    """Status shared by exceptions and support tickets."""
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"
    ESCALATED = "Escalated"


class ReporterRelationship(str, Enum):
    SHIPPER = "Shipper"
    CONSIGNEE = "Consignee"
    SYSTEM = "System"
    AGENT = "Agent"
    CUSTOMER_SUPPORT = "Customer Support"


EXCEPTION_TYPE_PRIORITY = {
    ExceptionType.PACKAGE_LOST.value: Priority.HIGH.value,
    ExceptionType.DAMAGED_PACKAGE.value: Priority.HIGH.value,
    ExceptionType.MISSING_ITEMS.value: Priority.HIGH.value,
    ExceptionType.DELIVERY_REFUSED.value: Priority.URGENT.value,
}

# These put the booking on hold when reported
HOLD_BOOKING_TYPES = frozenset({ExceptionType.PACKAGE_LOST.value, ExceptionType.DAMAGED_PACKAGE.value})


class ShipmentException(Base):
    """An incident reported against a booking."""
    __tablename__ = "shipment_exceptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    exception_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="EXC{6-digit seq}"
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    awb_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    exception_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(10), default=Priority.MEDIUM.value)
    status: Mapped[str] = mapped_column(
        String(20),
        default=CaseStatus.OPEN.value,
        nullable=False,
        index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Reporter
    reporter_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    reporter_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reporter_mobile: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    reporter_relationship: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # Handling
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    assigned_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    follow_up_required: Mapped[bool] = mapped_column(Boolean, default=False)
    follow_up_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    reported_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
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

    notes: Mapped[List["ExceptionNote"]] = relationship(
        "ExceptionNote",
        cascade="all, delete-orphan",
        order_by="ExceptionNote.created_at",
        lazy="selectin"
    )
    status_history: Mapped[List["ExceptionStatusHistory"]] = relationship(
        "ExceptionStatusHistory",
        cascade="all, delete-orphan",
        order_by="ExceptionStatusHistory.recorded_at",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<ShipmentException(number='{self.exception_number}', status='{self.status}')>"


class ExceptionNote(Base):
    """Internal note on an exception."""
    __tablename__ = "shipment_exception_notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    exception_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shipment_exceptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)
    added_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)


class ExceptionStatusHistory(Base):
    """Status ledger entry for an exception."""
    __tablename__ = "shipment_exception_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    exception_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shipment_exceptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)

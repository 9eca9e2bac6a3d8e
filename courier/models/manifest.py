"""Manifest and dispatch models: containers that group bookings for movement."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courier.database import Base
from courier.db_types import UUIDType, UTCDateTime, utc_now

if TYPE_CHECKING:
    from courier.models.booking import Booking


class ManifestType(str, Enum):
    PICKUP = "Pickup"
    DELIVERY = "Delivery"
    TRANSFER = "Transfer"


class ManifestStatus(str, Enum):
    """Manifest status enumeration."""
    DRAFT = "Draft"
    DISPATCHED = "Dispatched"
    IN_TRANSIT = "In Transit"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class DispatchType(str, Enum):
    OUTBOUND = "Outbound"
    INBOUND = "Inbound"
    TRANSFER = "Transfer"


class TransportMode(str, Enum):
    ROAD = "Road"
    AIR = "Air"
    RAIL = "Rail"
    SEA = "Sea"


class DispatchStatus(str, Enum):
    PENDING = "Pending"
    DISPATCHED = "Dispatched"
    IN_TRANSIT = "In Transit"
    RECEIVED = "Received"
    CANCELLED = "Cancelled"


class Manifest(Base):
    """
    Group of bookings handed to one vehicle/route.

    Totals are a snapshot of the linked bookings taken at creation
    (or on an explicit refresh); totals_as_of records when.
    """
    __tablename__ = "manifests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    manifest_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="MAN{YYYYMMDD}{4-digit seq}"
    )
    manifest_date: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, index=True)
    manifest_type: Mapped[str] = mapped_column(String(20), default=ManifestType.DELIVERY.value)

    # Route
    origin_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    destination_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    route: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Vehicle
    driver_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    driver_mobile: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # Snapshot totals
    total_bookings: Mapped[int] = mapped_column(Integer, default=0)
    total_weight: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    total_pieces: Mapped[int] = mapped_column(Integer, default=0)
    total_cod_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    totals_as_of: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ManifestStatus.DRAFT.value,
        nullable=False,
        index=True
    )
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    dispatch_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("dispatches.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    branch: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    zone: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

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

    bookings: Mapped[List["Booking"]] = relationship(
        "Booking",
        primaryjoin="Manifest.id == Booking.manifest_id",
        foreign_keys="Booking.manifest_id",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Manifest(number='{self.manifest_number}', status='{self.status}')>"


class Dispatch(Base):
    """Movement of manifests and loose bookings between branches."""
    __tablename__ = "dispatches"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    dispatch_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="DSP{YYYYMMDD}{4-digit seq}"
    )
    dispatch_date: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, index=True)
    dispatch_type: Mapped[str] = mapped_column(String(20), default=DispatchType.OUTBOUND.value)

    destination_branch: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    destination_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    transport_mode: Mapped[str] = mapped_column(String(10), default=TransportMode.ROAD.value)
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    driver_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    driver_mobile: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    carrier_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    seal_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Snapshot totals
    total_bookings: Mapped[int] = mapped_column(Integer, default=0)
    total_weight: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    total_bags: Mapped[int] = mapped_column(Integer, default=0)
    totals_as_of: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=DispatchStatus.PENDING.value,
        nullable=False,
        index=True
    )
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    received_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    received_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    branch: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    zone: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

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

    manifests: Mapped[List["Manifest"]] = relationship(
        "Manifest",
        primaryjoin="Dispatch.id == Manifest.dispatch_id",
        foreign_keys="Manifest.dispatch_id",
        lazy="selectin"
    )
    bookings: Mapped[List["Booking"]] = relationship(
        "Booking",
        primaryjoin="Dispatch.id == Booking.dispatch_id",
        foreign_keys="Booking.dispatch_id",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Dispatch(number='{self.dispatch_number}', status='{self.status}')>"

"""Shipper (customer account) and consignee address book models."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courier.database import Base
from courier.db_types import UUIDType, UTCDateTime, utc_now


class ShipperStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"
    BLOCKED = "Blocked"


class Shipper(Base):
    """Customer account that books shipments."""
    __tablename__ = "shippers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="Contact person")
    company: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    mobile: Mapped[str] = mapped_column(String(20), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Address
    street: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Compared with company state for CGST/SGST vs IGST"
    )
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[str] = mapped_column(String(100), default="India")

    # Tax registration
    gstin: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    pan: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Account configuration
    payment_type: Mapped[str] = mapped_column(
        String(20),
        default="COD",
        comment="COD, Prepaid, Credit"
    )
    credit_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), default=ShipperStatus.ACTIVE.value, index=True)

    # Business metrics
    total_bookings: Mapped[int] = mapped_column(Integer, default=0)
    last_booking_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
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

    consignees: Mapped[List["Consignee"]] = relationship(
        "Consignee",
        back_populates="shipper",
        cascade="all, delete-orphan"
    )

    @property
    def is_active(self) -> bool:
        return self.status == ShipperStatus.ACTIVE.value

    def snapshot(self) -> dict:
        """Billing details copied onto invoices."""
        return {
            "name": self.name,
            "company": self.company,
            "email": self.email,
            "mobile": self.mobile,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "gstin": self.gstin,
        }

    def __repr__(self) -> str:
        return f"<Shipper(company='{self.company}')>"


class Consignee(Base):
    """Saved receiver address belonging to a shipper."""
    __tablename__ = "consignees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    shipper_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shippers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    company: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mobile: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    street: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[str] = mapped_column(String(100), default="India")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

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

    shipper: Mapped["Shipper"] = relationship("Shipper", back_populates="consignees")

    def __repr__(self) -> str:
        return f"<Consignee(name='{self.name}', mobile='{self.mobile}')>"

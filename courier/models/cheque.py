"""Cheques received from shippers."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, TYPE_CHECKING

from sqlalchemy import String, ForeignKey, Numeric, Text, Date, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courier.database import Base
from courier.db_types import UUIDType, UTCDateTime, utc_now

if TYPE_CHECKING:
    from courier.models.shipper import Shipper


class ChequeStatus(str, Enum):
    PENDING = "Pending"
    CLEARED = "Cleared"
    BOUNCED = "Bounced"
    CANCELLED = "Cancelled"


class Cheque(Base):
    """
    A cheque handed over by a shipper, tracked until it clears or bounces.

    Only Pending cheques change status or details; Cleared, Bounced and
    Cancelled are final.
    """
    __tablename__ = "cheques"
    __table_args__ = (
        Index("ix_cheques_shipper_status_date", "shipper_id", "status", "cheque_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    shipper_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shippers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    cheque_number: Mapped[str] = mapped_column(String(30), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(200), nullable=False)
    branch_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    cheque_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ChequeStatus.PENDING.value,
        nullable=False,
        index=True
    )
    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    cleared_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    bounced_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    bounce_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    processed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
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

    shipper: Mapped["Shipper"] = relationship("Shipper", lazy="selectin")

    @property
    def shipper_name(self) -> Optional[str]:
        if self.shipper is None:
            return None
        return self.shipper.company or self.shipper.name

    @property
    def is_final(self) -> bool:
        return self.status != ChequeStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<Cheque(number='{self.cheque_number}', status='{self.status}')>"

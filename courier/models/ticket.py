"""Customer support ticket model."""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courier.database import Base
from courier.db_types import UUIDType, UTCDateTime, utc_now
from courier.models.shipment_exception import CaseStatus, Priority


class TicketCategory(str, Enum):
    DELIVERY_ISSUE = "Delivery Issue"
    PAYMENT_ISSUE = "Payment Issue"
    TRACKING_ISSUE = "Tracking Issue"
    DAMAGE_LOSS = "Damage/Loss"
    GENERAL_INQUIRY = "General Inquiry"
    OTHER = "Other"


class Department(str, Enum):
    OPERATIONS = "Operations"
    FINANCE = "Finance"
    CUSTOMER_SERVICE = "Customer Service"
    TECHNICAL = "Technical"
    MANAGEMENT = "Management"


TICKET_CATEGORY_PRIORITY = {
    TicketCategory.DAMAGE_LOSS.value: Priority.HIGH.value,
    TicketCategory.PAYMENT_ISSUE.value: Priority.HIGH.value,
}


class SupportTicket(Base):
    """Support ticket raised by or for a shipper."""
    __tablename__ = "support_tickets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    ticket_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="TKT-{6-digit seq}"
    )
    shipper_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("shippers.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    awb_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)

    subject: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(30), default=TicketCategory.GENERAL_INQUIRY.value)
    priority: Mapped[str] = mapped_column(String(10), default=Priority.MEDIUM.value, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=CaseStatus.OPEN.value,
        nullable=False,
        index=True
    )
    department: Mapped[str] = mapped_column(String(30), default=Department.CUSTOMER_SERVICE.value)

    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution_deadline: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    escalated_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    escalated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    escalation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

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

    responses: Mapped[List["TicketResponse"]] = relationship(
        "TicketResponse",
        cascade="all, delete-orphan",
        order_by="TicketResponse.responded_at",
        lazy="selectin"
    )
    status_history: Mapped[List["TicketStatusHistory"]] = relationship(
        "TicketStatusHistory",
        cascade="all, delete-orphan",
        order_by="TicketStatusHistory.recorded_at",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<SupportTicket(number='{self.ticket_number}', status='{self.status}')>"


class TicketResponse(Base):
    """Message on a ticket thread; internal ones are hidden from shippers."""
    __tablename__ = "support_ticket_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("support_tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False)
    responded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    responded_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)


class TicketStatusHistory(Base):
    """Status ledger entry for a ticket."""
    __tablename__ = "support_ticket_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("support_tickets.id", ondelete="CASCADE"),
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

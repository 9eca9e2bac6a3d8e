"""
Document Sequence Model for Atomic Number Generation

One counter row per (document class, scope). Global classes use the
scope "ALL"; manifests and dispatches use the date (YYYYMMDD) so their
numbering restarts every day.

DOCUMENT FORMATS:
━━━━━━━━━━━━━━━━
• AWB: AWB260000001      (AWB + YY + 7 digits)
• INV: INV000001         (INV + 6 digits)
• MAN: MAN202610190001   (MAN + YYYYMMDD + 4 digits)
• DSP: DSP202610190001   (DSP + YYYYMMDD + 4 digits)
• EXC: EXC000001         (EXC + 6 digits)
• TKT: TKT-000001        (TKT- + 6 digits)
• TXN: TXN00000001       (TXN + 8 digits)
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import String, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from courier.database import Base
from courier.db_types import UUIDType, UTCDateTime, utc_now


class DocumentClass(str, Enum):
    """Document classes that use sequence numbering."""
    BOOKING = "AWB"
    INVOICE = "INV"
    MANIFEST = "MAN"
    DISPATCH = "DSP"
    EXCEPTION = "EXC"
    TICKET = "TKT"
    TRANSACTION = "TXN"


GLOBAL_SCOPE = "ALL"


class DocumentSequence(Base):
    """
    Counter row for a document class within a scope.

    Example:
        document_type = "MAN"
        scope_key = "20261019"
        current_number = 41
        → Next manifest number: MAN202610190042
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint(
            "document_type", "scope_key",
            name="uq_document_type_scope"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    document_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True,
        comment="AWB, INV, MAN, DSP, EXC, TKT, TXN"
    )
    scope_key: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=GLOBAL_SCOPE,
        comment="ALL or YYYYMMDD"
    )
    current_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last used sequence number"
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

    def advance(self) -> int:
        """
        Increment and return the counter.

        Does NOT commit; the caller owns the transaction and the row lock.
        """
        self.current_number += 1
        return self.current_number

    def __repr__(self) -> str:
        return f"<DocumentSequence({self.document_type}/{self.scope_key}: {self.current_number})>"

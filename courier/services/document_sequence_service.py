"""
Document Sequence Service for Atomic Number Generation

Human-readable identifiers for every numbered document class. Each
class has a counter row that is locked (SELECT FOR UPDATE), incremented
and flushed inside the caller's transaction, so concurrent creators are
serialized by the database instead of racing on a document count.

A counter row is seeded the first time it is needed from the data that
already exists: the last invoice's numeric suffix for invoices, the
document count for everything else. Existing numbering therefore
continues where it left off.

Identifiers are never retried. If the uniqueness constraint on the
document still rejects one, DuplicateIdentifier is raised to the caller.

USAGE:
    service = DocumentSequenceService(db)
    awb = await service.next_identifier(DocumentClass.BOOKING)
    # Returns: AWB260000001
"""

import logging
import re
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import DuplicateIdentifier
from courier.models.booking import Booking
from courier.models.document_sequence import DocumentSequence, DocumentClass, GLOBAL_SCOPE
from courier.models.invoice import Invoice
from courier.models.manifest import Manifest, Dispatch
from courier.models.payment import Payment
from courier.models.shipment_exception import ShipmentException
from courier.models.ticket import SupportTicket

logger = logging.getLogger(__name__)


# Classes whose counter restarts every day
DATE_SCOPED_CLASSES = frozenset({DocumentClass.MANIFEST.value, DocumentClass.DISPATCH.value})

INVOICE_NUMBER_PATTERN = re.compile(r"^INV(\d+)$")


def format_identifier(document_class: str, number: int, on: date) -> str:
    """
    Render a sequence number in the class's wire format.

    Numbers that outgrow the padding keep all their digits.
    """
    doc_class = DocumentClass(document_class).value
    if doc_class == DocumentClass.BOOKING.value:
        return f"AWB{on:%y}{number:07d}"
    if doc_class == DocumentClass.INVOICE.value:
        return f"INV{number:06d}"
    if doc_class == DocumentClass.MANIFEST.value:
        return f"MAN{on:%Y%m%d}{number:04d}"
    if doc_class == DocumentClass.DISPATCH.value:
        return f"DSP{on:%Y%m%d}{number:04d}"
    if doc_class == DocumentClass.EXCEPTION.value:
        return f"EXC{number:06d}"
    if doc_class == DocumentClass.TICKET.value:
        return f"TKT-{number:06d}"
    return f"TXN{number:08d}"


def scope_for(document_class: str, on: date) -> str:
    if document_class in DATE_SCOPED_CLASSES:
        return on.strftime("%Y%m%d")
    return GLOBAL_SCOPE


def parse_invoice_suffix(invoice_number: Optional[str]) -> int:
    """Numeric suffix of an INV number, 0 when absent or malformed."""
    if not invoice_number:
        return 0
    match = INVOICE_NUMBER_PATTERN.match(invoice_number)
    return int(match.group(1)) if match else 0


class DocumentSequenceService:
    """
    Service for generating atomic document numbers.

    Uses database-level locking (SELECT FOR UPDATE) so two requests never
    receive the same number from the same counter row.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_identifier(self, document_class: DocumentClass | str, on: Optional[date] = None) -> str:
        """
        Consume and return the next identifier for a document class.

        The counter increment is flushed but not committed; it commits or
        rolls back together with the document that uses the number.
        """
        doc_class = DocumentClass(document_class).value
        on = on or datetime.now(timezone.utc).date()
        scope = scope_for(doc_class, on)

        sequence = await self._get_or_create_sequence(doc_class, scope, on)
        number = sequence.advance()
        await self.db.flush()

        identifier = format_identifier(doc_class, number, on)
        logger.debug(f"Issued {identifier} from {doc_class}/{scope}")
        return identifier

    async def preview_identifier(self, document_class: DocumentClass | str, on: Optional[date] = None) -> str:
        """Preview what the next identifier would be without consuming it."""
        doc_class = DocumentClass(document_class).value
        on = on or datetime.now(timezone.utc).date()
        scope = scope_for(doc_class, on)

        result = await self.db.execute(
            select(DocumentSequence.current_number).where(
                DocumentSequence.document_type == doc_class,
                DocumentSequence.scope_key == scope,
            )
        )
        current = result.scalar_one_or_none()
        if current is None:
            current = await self._seed_value(doc_class, on)
        return format_identifier(doc_class, current + 1, on)

    async def flush_document(self, identifier: str) -> None:
        """
        Flush a newly added document carrying a generated identifier.

        A uniqueness violation is surfaced as DuplicateIdentifier, never retried.
        """
        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Identifier collision on {identifier}: {e.orig}")
            raise DuplicateIdentifier(f"Identifier {identifier} already exists") from e

    async def _get_or_create_sequence(self, doc_class: str, scope: str, on: date) -> DocumentSequence:
        result = await self.db.execute(
            select(DocumentSequence)
            .where(
                DocumentSequence.document_type == doc_class,
                DocumentSequence.scope_key == scope,
            )
            .with_for_update()
        )
        sequence = result.scalar_one_or_none()
        if sequence:
            return sequence

        seed = await self._seed_value(doc_class, on)
        sequence = DocumentSequence(
            document_type=doc_class,
            scope_key=scope,
            current_number=seed,
        )
        self.db.add(sequence)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise DuplicateIdentifier(f"Sequence {doc_class}/{scope} was created concurrently") from e
        logger.info(f"Created sequence {doc_class}/{scope} starting after {seed}")
        return sequence

    async def _seed_value(self, doc_class: str, on: date) -> int:
        """Last number already in use, derived from existing documents."""
        if doc_class == DocumentClass.INVOICE.value:
            result = await self.db.execute(
                select(Invoice.invoice_number)
                .order_by(Invoice.created_at.desc())
                .limit(1)
            )
            return parse_invoice_suffix(result.scalar_one_or_none())

        if doc_class == DocumentClass.MANIFEST.value:
            stmt = select(func.count(Manifest.id)).where(
                Manifest.manifest_number.like(f"MAN{on:%Y%m%d}%")
            )
        elif doc_class == DocumentClass.DISPATCH.value:
            stmt = select(func.count(Dispatch.id)).where(
                Dispatch.dispatch_number.like(f"DSP{on:%Y%m%d}%")
            )
        elif doc_class == DocumentClass.BOOKING.value:
            stmt = select(func.count(Booking.id))
        elif doc_class == DocumentClass.EXCEPTION.value:
            stmt = select(func.count(ShipmentException.id))
        elif doc_class == DocumentClass.TICKET.value:
            stmt = select(func.count(SupportTicket.id))
        else:
            stmt = select(func.count(Payment.id))

        return (await self.db.execute(stmt)).scalar() or 0

"""
Invoice Service for courier billing.

Builds invoices from manual line items, from a single booking or from a
batch of bookings, and tracks payments against them.

GST rules:
- Supplier (company) state == recipient (shipper) state: CGST + SGST, half the rate each
- Different or unknown states: IGST at the full rate
- Grand total rounded half-up to whole rupees, difference kept as round-off

Invoices generated from one booking copy the booking's stored charges
instead of re-rating, so the invoice always agrees with what the
shipper was quoted.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple, Iterable
import uuid

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from courier.config import settings
from courier.core.exceptions import NotFound, StateConflict, InvalidAmount
from courier.db_types import utc_now
from courier.models.booking import Booking, BookingStatus, PaymentMode
from courier.models.document_sequence import DocumentClass
from courier.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    InvoiceType,
    PaymentStatus,
    PaymentRecordMode,
    DiscountType,
)
from courier.models.shipper import Shipper
from courier.models.user import User
from courier.schemas.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceItemCreate,
    ConsolidatedInvoiceRequest,
    RecordPaymentRequest,
)
from courier.services.document_sequence_service import DocumentSequenceService
from courier.services.invoice_composer import (
    LineItem,
    compose_invoice,
    apply_totals,
    apply_payment,
    ensure_cancellable,
    is_interstate_supply,
    split_gst,
)
from courier.services.rate_calculator import money, to_decimal

logger = logging.getLogger(__name__)

RECOMPUTE_FIELDS = frozenset({"items", "discount", "discount_type", "gst_rate", "place_of_supply"})


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def booking_line_items(booking: Booking) -> List[LineItem]:
    """One line per non-zero charge; shipping is always present."""
    sac = settings.INVOICE_SAC_CODE
    lines = [
        LineItem(
            description=f"{booking.service_type} shipping charges - AWB {booking.awb_number}",
            rate=booking.shipping_charge,
            sac_code=sac,
            booking_id=booking.id,
        )
    ]
    optional = (
        ("Insurance charges", booking.insurance_charge),
        ("COD charges", booking.cod_charge),
        ("Fuel surcharge", booking.fuel_surcharge),
    )
    for label, value in optional:
        if to_decimal(value) > 0:
            lines.append(LineItem(
                description=f"{label} - AWB {booking.awb_number}",
                rate=value,
                sac_code=sac,
                booking_id=booking.id,
            ))
    return lines


class InvoiceService:
    """Service for invoice generation, payments and cancellation."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)

    # ==================== LOOKUPS ====================

    async def get_invoice(self, invoice_id: uuid.UUID, refresh: bool = False) -> Optional[Invoice]:
        stmt = select(Invoice).where(Invoice.id == invoice_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_invoice(self, invoice_id: uuid.UUID) -> Invoice:
        invoice = await self.get_invoice(invoice_id)
        if invoice is None:
            raise NotFound("Invoice not found")
        return invoice

    async def get_invoices(
        self,
        shipper_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Invoice], int]:
        filters = []
        if shipper_id:
            filters.append(Invoice.shipper_id == shipper_id)
        if status:
            filters.append(Invoice.status == status)
        if payment_status:
            filters.append(Invoice.payment_status == payment_status)
        if search:
            filters.append(Invoice.invoice_number.ilike(f"%{search}%"))
        if date_from:
            filters.append(Invoice.invoice_date >= date_from)
        if date_to:
            filters.append(Invoice.invoice_date <= date_to)

        stmt = select(Invoice).order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc())
        count_stmt = select(func.count(Invoice.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def _require_shipper(self, shipper_id: uuid.UUID) -> Shipper:
        shipper = await self.db.get(Shipper, shipper_id)
        if shipper is None:
            raise NotFound("Shipper not found")
        return shipper

    async def _invoiced_booking_ids(self, booking_ids: Iterable[uuid.UUID]) -> dict:
        """{booking_id: invoice_number} for bookings already on a live invoice."""
        booking_ids = list(booking_ids)
        live = Invoice.status != InvoiceStatus.CANCELLED.value

        direct = await self.db.execute(
            select(Invoice.booking_id, Invoice.invoice_number)
            .where(Invoice.booking_id.in_(booking_ids), live)
        )
        via_items = await self.db.execute(
            select(InvoiceItem.booking_id, Invoice.invoice_number)
            .join(Invoice, InvoiceItem.invoice_id == Invoice.id)
            .where(InvoiceItem.booking_id.in_(booking_ids), live)
        )
        return {row[0]: row[1] for row in [*direct.all(), *via_items.all()]}

    def _new_invoice(
        self,
        invoice_number: str,
        shipper: Shipper,
        invoice_date: date,
        due_date: Optional[date],
        user: Optional[User],
        **fields,
    ) -> Invoice:
        return Invoice(
            invoice_number=invoice_number,
            shipper_id=shipper.id,
            shipper_details=shipper.snapshot(),
            supplier_details=settings.company_details(),
            invoice_date=invoice_date,
            due_date=due_date or invoice_date + timedelta(days=settings.INVOICE_DUE_DAYS),
            supplier_state=settings.COMPANY_STATE,
            place_of_supply=fields.pop("place_of_supply", None) or shipper.state,
            paid_amount=Decimal("0"),
            payment_status=PaymentStatus.UNPAID.value,
            status=InvoiceStatus.DRAFT.value,
            created_by=user.id if user else None,
            **fields,
        )

    @staticmethod
    def _attach_items(invoice: Invoice, items: List[LineItem]) -> None:
        for number, item in enumerate(items, start=1):
            invoice.items.append(InvoiceItem(
                line_number=number,
                booking_id=item.booking_id,
                description=item.description,
                sac_code=item.sac_code,
                quantity=item.quantity,
                unit=item.unit,
                rate=money(item.rate),
                amount=money(item.amount),
                is_taxable=item.is_taxable,
            ))

    @staticmethod
    def _line_items(items: List[InvoiceItemCreate]) -> List[LineItem]:
        return [
            LineItem(
                description=item.description,
                quantity=item.quantity,
                rate=item.rate,
                amount=item.amount,
                sac_code=item.sac_code or settings.INVOICE_SAC_CODE,
                unit=item.unit,
                is_taxable=item.is_taxable,
                booking_id=item.booking_id,
            )
            for item in items
        ]

    async def _finish(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        await self.sequences.flush_document(invoice.invoice_number)
        await self.db.commit()
        logger.info(
            f"Invoice {invoice.invoice_number} generated for shipper {invoice.shipper_id}: "
            f"grand total {invoice.grand_total}, {invoice.payment_status}"
        )
        return await self.get_invoice(invoice.id, refresh=True)

    # ==================== CREATE ====================

    async def create_invoice(self, data: InvoiceCreate, user: Optional[User] = None) -> Invoice:
        """Manual invoice from line items."""
        shipper = await self._require_shipper(data.shipper_id)
        if data.booking_id is not None:
            booking = await self.db.get(Booking, data.booking_id)
            if booking is None or booking.shipper_id != shipper.id:
                raise NotFound("Booking not found for this shipper")
            invoiced = await self._invoiced_booking_ids([booking.id])
            if booking.id in invoiced:
                raise StateConflict(f"Booking {booking.awb_number} is already invoiced on {invoiced[booking.id]}")

        items = self._line_items(data.items)
        recipient_state = data.place_of_supply or shipper.state
        totals = compose_invoice(
            items,
            discount=data.discount,
            discount_type=data.discount_type.value,
            recipient_state=recipient_state,
            supplier_state=settings.COMPANY_STATE,
            gst_rate=data.gst_rate,
        )

        invoice_date = data.invoice_date or today_utc()
        invoice_number = await self.sequences.next_identifier(DocumentClass.INVOICE)
        invoice = self._new_invoice(
            invoice_number,
            shipper,
            invoice_date,
            data.due_date,
            user,
            invoice_type=data.invoice_type.value,
            booking_id=data.booking_id,
            period_from=data.period_from,
            period_to=data.period_to,
            place_of_supply=recipient_state,
            discount=money(data.discount),
            discount_type=data.discount_type.value,
            notes=data.notes,
            terms=data.terms,
        )
        self._attach_items(invoice, items)
        apply_totals(invoice, totals)
        return await self._finish(invoice)

    async def create_from_booking(
        self,
        booking_id: uuid.UUID,
        due_date: Optional[date] = None,
        notes: Optional[str] = None,
        user: Optional[User] = None,
    ) -> Invoice:
        """
        Invoice for a single booking using its stored charge breakdown.

        taxable = booking subtotal, GST = booking GST split by state,
        grand total = booking total with no round-off. A prepaid booking
        yields an invoice that is already paid.
        """
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        if booking.status == BookingStatus.CANCELLED.value:
            raise StateConflict("Cannot invoice a cancelled booking")
        invoiced = await self._invoiced_booking_ids([booking.id])
        if booking.id in invoiced:
            raise StateConflict(f"Booking {booking.awb_number} is already invoiced on {invoiced[booking.id]}")

        shipper = await self._require_shipper(booking.shipper_id)
        interstate = is_interstate_supply(settings.COMPANY_STATE, shipper.state)
        gst = money(booking.gst_amount)
        if interstate:
            cgst, sgst, igst = split_gst(gst, True)
        else:
            cgst = money(gst / 2)
            sgst, igst = gst - cgst, Decimal("0")
        subtotal = money(booking.charges_subtotal)

        invoice_date = today_utc()
        invoice_number = await self.sequences.next_identifier(DocumentClass.INVOICE)
        invoice = self._new_invoice(
            invoice_number,
            shipper,
            invoice_date,
            due_date,
            user,
            invoice_type=InvoiceType.FREIGHT.value,
            booking_id=booking.id,
            period_from=booking.booking_date.date(),
            period_to=booking.booking_date.date(),
            is_interstate=interstate,
            subtotal=subtotal,
            discount=Decimal("0"),
            discount_type=DiscountType.FIXED.value,
            discount_amount=Decimal("0"),
            taxable_amount=subtotal,
            gst_rate=to_decimal(settings.GST_RATE),
            cgst_amount=cgst,
            sgst_amount=sgst,
            igst_amount=igst,
            total_tax=gst,
            total_before_round=money(booking.total_amount),
            round_off=Decimal("0"),
            grand_total=money(booking.total_amount),
            notes=notes,
        )
        self._attach_items(invoice, booking_line_items(booking))
        invoice.refresh_payment_status()

        if booking.payment_mode == PaymentMode.PREPAID.value:
            apply_payment(
                invoice,
                invoice.grand_total,
                PaymentRecordMode.ADJUSTMENT.value,
                invoice_date,
                reference=booking.awb_number,
                remarks="Prepaid at booking",
                recorded_by=user.id if user else None,
            )
        return await self._finish(invoice)

    async def create_consolidated(self, data: ConsolidatedInvoiceRequest, user: Optional[User] = None) -> Invoice:
        """
        One invoice for several bookings of a shipper.

        Each booking becomes a line at its pre-tax subtotal and the
        invoice is composed normally, so GST is charged once.
        """
        shipper = await self._require_shipper(data.shipper_id)
        booking_ids = list(dict.fromkeys(data.booking_ids))

        result = await self.db.execute(select(Booking).where(Booking.id.in_(booking_ids)))
        bookings = {b.id: b for b in result.scalars().all()}
        missing = [str(i) for i in booking_ids if i not in bookings]
        if missing:
            raise NotFound(f"Bookings not found: {', '.join(missing)}")

        for booking in bookings.values():
            if booking.shipper_id != shipper.id:
                raise StateConflict(f"Booking {booking.awb_number} belongs to another shipper")
            if booking.status == BookingStatus.CANCELLED.value:
                raise StateConflict(f"Booking {booking.awb_number} is cancelled")

        invoiced = await self._invoiced_booking_ids(booking_ids)
        if invoiced:
            taken = ", ".join(f"{bookings[b].awb_number} ({n})" for b, n in invoiced.items())
            raise StateConflict(f"Bookings already invoiced: {taken}")

        ordered = sorted(bookings.values(), key=lambda b: b.booking_date)
        items = [
            LineItem(
                description=f"{b.service_type} courier charges - AWB {b.awb_number}",
                rate=b.charges_subtotal,
                sac_code=settings.INVOICE_SAC_CODE,
                booking_id=b.id,
            )
            for b in ordered
        ]
        totals = compose_invoice(
            items,
            discount=data.discount,
            discount_type=data.discount_type.value,
            recipient_state=shipper.state,
            supplier_state=settings.COMPANY_STATE,
        )

        invoice_date = today_utc()
        invoice_number = await self.sequences.next_identifier(DocumentClass.INVOICE)
        invoice = self._new_invoice(
            invoice_number,
            shipper,
            invoice_date,
            data.due_date,
            user,
            invoice_type=InvoiceType.GST_INVOICE.value,
            period_from=data.period_from or ordered[0].booking_date.date(),
            period_to=data.period_to or ordered[-1].booking_date.date(),
            discount=money(data.discount),
            discount_type=data.discount_type.value,
            notes=data.notes,
        )
        self._attach_items(invoice, items)
        apply_totals(invoice, totals)
        return await self._finish(invoice)

    # ==================== UPDATE ====================

    async def update_invoice(self, invoice_id: uuid.UUID, data: InvoiceUpdate) -> Invoice:
        invoice = await self.require_invoice(invoice_id)
        if invoice.is_locked:
            raise StateConflict(f"Invoice is {invoice.status}; it can no longer be edited")

        update_data = data.model_dump(exclude_unset=True)

        if data.items is not None:
            invoice.items.clear()
            self._attach_items(invoice, self._line_items(data.items))
        for field in ("due_date", "notes", "terms", "place_of_supply", "gst_rate"):
            if field in update_data and (update_data[field] is not None or field in ("notes", "terms")):
                setattr(invoice, field, update_data[field])
        if data.discount is not None:
            invoice.discount = money(data.discount)
        if data.discount_type is not None:
            invoice.discount_type = data.discount_type.value

        if RECOMPUTE_FIELDS & update_data.keys():
            items = [
                LineItem(
                    description=item.description,
                    quantity=item.quantity,
                    rate=item.rate,
                    amount=item.amount,
                    sac_code=item.sac_code,
                    unit=item.unit,
                    is_taxable=item.is_taxable,
                    booking_id=item.booking_id,
                )
                for item in invoice.items
            ]
            totals = compose_invoice(
                items,
                discount=invoice.discount,
                discount_type=invoice.discount_type,
                recipient_state=invoice.place_of_supply,
                supplier_state=invoice.supplier_state,
                gst_rate=invoice.gst_rate,
            )
            if totals.grand_total < to_decimal(invoice.paid_amount):
                raise InvalidAmount("New grand total is below the amount already paid")
            apply_totals(invoice, totals)
        else:
            invoice.refresh_payment_status()

        await self.db.commit()
        return await self.get_invoice(invoice_id, refresh=True)

    async def mark_sent(self, invoice_id: uuid.UUID) -> Invoice:
        invoice = await self.require_invoice(invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise StateConflict("Cannot send a cancelled invoice")
        if invoice.status == InvoiceStatus.DRAFT.value:
            invoice.status = InvoiceStatus.SENT.value
        invoice.sent_at = utc_now()
        await self.db.commit()
        return await self.get_invoice(invoice_id, refresh=True)

    # ==================== PAYMENTS ====================

    async def record_payment(self, invoice_id: uuid.UUID, data: RecordPaymentRequest, user: Optional[User] = None) -> Invoice:
        invoice = await self.require_invoice(invoice_id)
        apply_payment(
            invoice,
            data.amount,
            data.payment_mode.value,
            data.payment_date or today_utc(),
            reference=data.reference,
            remarks=data.remarks,
            recorded_by=user.id if user else None,
        )
        await self.db.commit()
        logger.info(
            f"Payment {data.amount} recorded on {invoice.invoice_number}, "
            f"balance {invoice.balance_amount}, {invoice.payment_status}"
        )
        return await self.get_invoice(invoice_id, refresh=True)

    # ==================== CANCEL / DELETE ====================

    async def cancel_invoice(self, invoice_id: uuid.UUID, reason: str, user: Optional[User] = None) -> Invoice:
        invoice = await self.require_invoice(invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise StateConflict("Invoice is already cancelled")
        ensure_cancellable(invoice)

        invoice.status = InvoiceStatus.CANCELLED.value
        invoice.payment_status = PaymentStatus.CANCELLED.value
        invoice.cancelled_at = utc_now()
        invoice.cancelled_by = user.id if user else None
        invoice.cancellation_reason = reason
        await self.db.commit()
        logger.info(f"Invoice {invoice.invoice_number} cancelled: {reason}")
        return await self.get_invoice(invoice_id, refresh=True)

    async def delete_invoice(self, invoice_id: uuid.UUID) -> None:
        invoice = await self.require_invoice(invoice_id)
        ensure_cancellable(invoice)
        number = invoice.invoice_number
        await self.db.delete(invoice)
        await self.db.commit()
        logger.info(f"Invoice {number} deleted")

    # ==================== STATS / JOBS ====================

    async def get_stats(
        self,
        shipper_id: Optional[uuid.UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> dict:
        filters = []
        if shipper_id:
            filters.append(Invoice.shipper_id == shipper_id)
        if date_from:
            filters.append(Invoice.invoice_date >= date_from)
        if date_to:
            filters.append(Invoice.invoice_date <= date_to)

        status_stmt = select(Invoice.payment_status, func.count(Invoice.id)).group_by(Invoice.payment_status)
        if filters:
            status_stmt = status_stmt.where(and_(*filters))
        by_status = {row[0]: row[1] for row in (await self.db.execute(status_stmt)).all()}

        amounts_stmt = select(
            func.coalesce(func.sum(Invoice.grand_total), 0),
            func.coalesce(func.sum(Invoice.paid_amount), 0),
            func.coalesce(func.sum(Invoice.balance_amount), 0),
        ).where(and_(Invoice.status != InvoiceStatus.CANCELLED.value, *filters))
        total, paid, outstanding = (await self.db.execute(amounts_stmt)).one()

        return {
            "total_invoices": sum(by_status.values()),
            "total_amount": float(total or 0),
            "paid_amount": float(paid or 0),
            "outstanding_amount": float(outstanding or 0),
            "by_payment_status": by_status,
        }

    async def sweep_overdue(self, today: Optional[date] = None) -> int:
        """Mark unpaid or partially paid invoices past their due date as Overdue."""
        today = today or today_utc()
        result = await self.db.execute(
            select(Invoice).where(
                Invoice.payment_status.in_([PaymentStatus.UNPAID.value, PaymentStatus.PARTIALLY_PAID.value]),
                Invoice.due_date < today,
                Invoice.status != InvoiceStatus.CANCELLED.value,
            )
        )
        invoices = list(result.scalars().all())
        for invoice in invoices:
            invoice.refresh_payment_status(today=today)
        await self.db.commit()
        if invoices:
            logger.info(f"Overdue sweep marked {len(invoices)} invoice(s) as Overdue")
        return len(invoices)

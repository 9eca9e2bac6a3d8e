"""
Service for booking intake and the booking lifecycle.

Creating a booking rates it, takes the next AWB from the document
sequence, writes the first status history entry and bumps the
shipper's booking counters, all in the request's transaction. Every
later status change goes through the status ledger.
"""
import logging
from datetime import datetime, date, time, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import select, func, and_, or_, update, case
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import CourierException, NotFound, StateConflict
from courier.core.permissions import PermissionChecker
from courier.db_types import utc_now
from courier.models.booking import (
    Booking,
    BookingStatus,
    PaymentMode,
    BOOKING_DELETABLE_STATUSES,
    LB_TO_KG,
)
from courier.models.document_sequence import DocumentClass
from courier.models.shipper import Shipper, Consignee
from courier.models.user import User
from courier.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingStatusUpdate,
    ProofOfDeliveryRequest,
    ConsigneeDetails,
)
from courier.services.document_sequence_service import DocumentSequenceService
from courier.services.rate_calculator import RateCalculator, ChargeBreakdown, money, expected_delivery
from courier.services.status_ledger import append_status, record_initial_status

logger = logging.getLogger(__name__)

# Changing any of these re-rates the booking
RATING_FIELDS = frozenset({
    "service_type",
    "weight",
    "weight_unit",
    "declared_value",
    "cod_amount",
    "payment_mode",
})

IN_TRANSIT_STATUSES = (
    BookingStatus.PICKED_UP.value,
    BookingStatus.IN_TRANSIT.value,
    BookingStatus.OUT_FOR_DELIVERY.value,
)


def chargeable_weight_kg(weight, weight_unit: str) -> Decimal:
    weight = Decimal(str(weight))
    if weight_unit == "lb":
        return weight * LB_TO_KG
    return weight


def apply_charges(booking: Booking, breakdown: ChargeBreakdown) -> None:
    """Store a breakdown on the booking at 2 decimals."""
    rounded = breakdown.rounded()
    booking.shipping_charge = rounded.shipping
    booking.insurance_charge = rounded.insurance
    booking.cod_charge = rounded.cod
    booking.fuel_surcharge = rounded.fuel_surcharge
    booking.gst_amount = rounded.gst
    booking.recalculate_totals()


def day_bounds(date_from: Optional[date], date_to: Optional[date]):
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None
    end = datetime.combine(date_to, time.max, tzinfo=timezone.utc) if date_to else None
    return start, end


class BookingService:
    """Service for booking CRUD and status updates."""

    def __init__(self, db: AsyncSession, calculator: Optional[RateCalculator] = None):
        self.db = db
        self.calculator = calculator or RateCalculator()
        self.sequences = DocumentSequenceService(db)

    # ==================== LOOKUPS ====================

    async def get_booking(self, booking_id: uuid.UUID, refresh: bool = False) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.id == booking_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_booking(self, booking_id: uuid.UUID) -> Booking:
        booking = await self.get_booking(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    async def get_by_awb(self, awb_number: str, shipper_id: Optional[uuid.UUID] = None) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.awb_number == awb_number.strip().upper())
        if shipper_id is not None:
            stmt = stmt.where(Booking.shipper_id == shipper_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    def _filters(
        self,
        checker: Optional[PermissionChecker] = None,
        search: Optional[str] = None,
        status: Optional[str] = None,
        shipper_id: Optional[uuid.UUID] = None,
        service_type: Optional[str] = None,
        destination_type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list:
        filters = []
        if checker is not None:
            scope = checker.scope_filter(Booking, owner_column="booked_by")
            if scope is not None:
                filters.append(scope)
        if search:
            pattern = f"%{search}%"
            filters.append(or_(
                Booking.awb_number.ilike(pattern),
                Booking.reference_number.ilike(pattern),
                Booking.consignee_name.ilike(pattern),
                Booking.consignee_mobile.ilike(pattern),
            ))
        if status:
            filters.append(Booking.status == status)
        if shipper_id:
            filters.append(Booking.shipper_id == shipper_id)
        if service_type:
            filters.append(Booking.service_type == service_type)
        if destination_type:
            filters.append(Booking.destination_type == destination_type)
        start, end = day_bounds(date_from, date_to)
        if start:
            filters.append(Booking.booking_date >= start)
        if end:
            filters.append(Booking.booking_date <= end)
        return filters

    async def get_bookings(
        self,
        checker: Optional[PermissionChecker] = None,
        skip: int = 0,
        limit: int = 20,
        **criteria,
    ) -> Tuple[List[Booking], int]:
        """Paginated bookings visible to the checker's data scope."""
        filters = self._filters(checker, **criteria)

        stmt = select(Booking).order_by(Booking.booking_date.desc())
        count_stmt = select(func.count(Booking.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    # ==================== CREATE ====================

    async def _resolve_consignee(
        self,
        shipper_id: uuid.UUID,
        consignee_id: Optional[uuid.UUID],
        details: Optional[ConsigneeDetails],
    ) -> Tuple[Optional[Consignee], dict]:
        """Saved consignee (if referenced) and the snapshot fields to store on the booking."""
        if consignee_id is not None:
            result = await self.db.execute(
                select(Consignee).where(
                    Consignee.id == consignee_id,
                    Consignee.shipper_id == shipper_id,
                )
            )
            consignee = result.scalar_one_or_none()
            if consignee is None:
                raise NotFound("Consignee not found")
            source = consignee
        else:
            consignee = None
            source = details

        snapshot = {
            "consignee_name": source.name,
            "consignee_mobile": source.mobile,
            "consignee_email": source.email,
            "consignee_company": source.company,
            "consignee_street": source.street,
            "consignee_city": source.city,
            "consignee_state": source.state,
            "consignee_postal_code": source.postal_code,
            "consignee_country": source.country,
        }
        return consignee, snapshot

    async def _build_booking(self, data: BookingCreate, user: Optional[User]) -> Booking:
        """
        Validate, rate and stage a booking in the session.

        Every check happens before anything is written, so a rejected
        item leaves the session untouched.
        """
        shipper = await self.db.get(Shipper, data.shipper_id)
        if shipper is None:
            raise NotFound("Shipper not found")
        if not shipper.is_active:
            raise StateConflict(f"Shipper account is {shipper.status}")

        consignee, snapshot = await self._resolve_consignee(shipper.id, data.consignee_id, data.consignee)

        payment_mode = data.payment_mode.value
        cod_amount = data.cod_amount if payment_mode == PaymentMode.COD.value else Decimal("0")
        breakdown = self.calculator.calculate(
            data.service_type,
            chargeable_weight_kg(data.weight, data.weight_unit),
            declared_value=data.declared_value,
            cod_amount=cod_amount,
            payment_mode=payment_mode,
        )

        now = utc_now()
        awb_number = await self.sequences.next_identifier(DocumentClass.BOOKING, on=now.date())

        booking = Booking(
            awb_number=awb_number,
            shipper_id=shipper.id,
            consignee_id=consignee.id if consignee else None,
            **snapshot,
            origin_city=data.origin_city or shipper.city,
            service_type=data.service_type,
            shipment_type=data.shipment_type.value,
            destination_type=data.destination_type.value,
            pieces=data.pieces,
            weight=data.weight,
            weight_unit=data.weight_unit,
            length=data.length,
            width=data.width,
            height=data.height,
            dimension_unit=data.dimension_unit,
            description=data.description,
            declared_value=data.declared_value,
            currency=data.currency,
            payment_mode=payment_mode,
            cod_amount=money(cod_amount),
            status=BookingStatus.BOOKED.value,
            booking_date=now,
            expected_delivery_date=expected_delivery(data.service_type, now.date()),
            special_instructions=data.special_instructions,
            reference_number=data.reference_number,
            internal_notes=data.internal_notes,
            booked_by=user.id if user else None,
            branch=user.branch if user else None,
            zone=user.zone if user else None,
        )
        apply_charges(booking, breakdown)
        record_initial_status(
            booking,
            location=booking.origin_city,
            remarks="Booking created",
            actor_id=user.id if user else None,
        )

        self.db.add(booking)
        await self.sequences.flush_document(awb_number)

        await self.db.execute(
            update(Shipper)
            .where(Shipper.id == shipper.id)
            .values(
                total_bookings=Shipper.total_bookings + 1,
                last_booking_date=now,
            )
            .execution_options(synchronize_session=False)
        )
        return booking

    async def create_booking(self, data: BookingCreate, user: Optional[User] = None) -> Booking:
        booking = await self._build_booking(data, user)
        await self.db.commit()
        logger.info(f"Booking {booking.awb_number} created for shipper {booking.shipper_id} total {booking.total_amount}")
        return await self.get_booking(booking.id, refresh=True)

    async def bulk_create(self, items: List[BookingCreate], user: Optional[User] = None) -> Tuple[List[str], List[dict]]:
        """
        Create each booking independently.

        Returns (created AWB numbers, [{"index", "error"}] for rejected items).
        """
        created: List[str] = []
        errors: List[dict] = []
        for index, data in enumerate(items):
            try:
                booking = await self._build_booking(data, user)
            except CourierException as e:
                errors.append({"index": index, "error": e.detail})
                continue
            created.append(booking.awb_number)

        await self.db.commit()
        logger.info(f"Bulk booking: {len(created)} created, {len(errors)} rejected")
        return created, errors

    # ==================== UPDATE / DELETE ====================

    async def update_booking(self, booking_id: uuid.UUID, data: BookingUpdate) -> Booking:
        booking = await self.require_booking(booking_id)
        if booking.is_terminal:
            raise StateConflict(f"Booking is {booking.status}; it can no longer be edited")

        update_data = data.model_dump(exclude_unset=True)
        consignee = update_data.pop("consignee", None)
        if consignee:
            for field, value in consignee.items():
                setattr(booking, f"consignee_{field}", value)

        for field, value in update_data.items():
            if value is None and field in ("service_type", "weight", "weight_unit", "dimension_unit", "pieces", "payment_mode"):
                continue
            if hasattr(value, "value"):
                value = value.value
            setattr(booking, field, value)

        if RATING_FIELDS & update_data.keys():
            if booking.payment_mode != PaymentMode.COD.value:
                booking.cod_amount = Decimal("0")
            breakdown = self.calculator.calculate(
                booking.service_type,
                booking.weight_kg,
                declared_value=booking.declared_value,
                cod_amount=booking.cod_amount,
                payment_mode=booking.payment_mode,
            )
            apply_charges(booking, breakdown)
            if "service_type" in update_data:
                booking.expected_delivery_date = expected_delivery(
                    booking.service_type, booking.booking_date.date()
                )
            logger.info(f"Booking {booking.awb_number} re-rated, total {booking.total_amount}")

        await self.db.commit()
        return await self.get_booking(booking_id, refresh=True)

    async def delete_booking(self, booking_id: uuid.UUID) -> None:
        booking = await self.require_booking(booking_id)
        if booking.status not in BOOKING_DELETABLE_STATUSES:
            raise StateConflict(
                f"Only Booked or Cancelled bookings can be deleted (current: {booking.status})"
            )
        awb = booking.awb_number
        await self.db.delete(booking)
        await self.db.commit()
        logger.info(f"Booking {awb} deleted")

    # ==================== STATUS ====================

    async def update_status(self, booking_id: uuid.UUID, data: BookingStatusUpdate, user: Optional[User] = None) -> Booking:
        booking = await self.require_booking(booking_id)
        append_status(
            booking,
            data.status.value,
            location=data.location,
            remarks=data.remarks,
            actor_id=user.id if user else None,
            override=data.override,
        )
        if data.status == BookingStatus.DELIVERED and data.delivered_to:
            booking.delivered_to = data.delivered_to
        if data.status == BookingStatus.RETURNED and data.return_reason:
            booking.return_reason = data.return_reason

        await self.db.commit()
        return await self.get_booking(booking_id, refresh=True)

    async def cancel_booking(self, booking_id: uuid.UUID, reason: Optional[str] = None, user: Optional[User] = None) -> Booking:
        booking = await self.require_booking(booking_id)
        if booking.status == BookingStatus.DELIVERED.value:
            raise StateConflict("Cannot cancel a delivered booking")
        if booking.status == BookingStatus.CANCELLED.value:
            raise StateConflict("Booking is already cancelled")

        append_status(
            booking,
            BookingStatus.CANCELLED.value,
            remarks=reason or "Booking cancelled",
            actor_id=user.id if user else None,
        )
        await self.db.commit()
        logger.info(f"Booking {booking.awb_number} cancelled")
        return await self.get_booking(booking_id, refresh=True)

    async def upload_pod(self, booking_id: uuid.UUID, data: ProofOfDeliveryRequest, user: Optional[User] = None) -> Booking:
        """Attach proof of delivery; marks the booking Delivered if it is not already."""
        booking = await self.require_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED.value:
            raise StateConflict("Cannot attach proof of delivery to a cancelled booking")

        booking.delivery_proof = data.delivery_proof
        if data.delivered_to:
            booking.delivered_to = data.delivered_to
        if data.delivery_signature:
            booking.delivery_signature = data.delivery_signature
        if data.delivery_remarks:
            booking.delivery_remarks = data.delivery_remarks

        if booking.status != BookingStatus.DELIVERED.value:
            append_status(
                booking,
                BookingStatus.DELIVERED.value,
                location=data.location,
                remarks="Proof of delivery uploaded",
                actor_id=user.id if user else None,
            )

        await self.db.commit()
        return await self.get_booking(booking_id, refresh=True)

    # ==================== STATS ====================

    async def get_stats(
        self,
        checker: Optional[PermissionChecker] = None,
        shipper_id: Optional[uuid.UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> dict:
        filters = self._filters(checker, shipper_id=shipper_id, date_from=date_from, date_to=date_to)

        status_stmt = select(Booking.status, func.count(Booking.id)).group_by(Booking.status)
        if filters:
            status_stmt = status_stmt.where(and_(*filters))
        by_status = {row[0]: row[1] for row in (await self.db.execute(status_stmt)).all()}

        not_cancelled = Booking.status != BookingStatus.CANCELLED.value
        amounts_stmt = select(
            func.coalesce(func.sum(Booking.total_amount), 0),
            func.coalesce(
                func.sum(case((Booking.payment_mode == PaymentMode.COD.value, Booking.cod_amount), else_=0)),
                0,
            ),
        ).where(and_(not_cancelled, *filters))
        revenue, cod_total = (await self.db.execute(amounts_stmt)).one()

        return {
            "total_bookings": sum(by_status.values()),
            "by_status": by_status,
            "total_revenue": float(revenue or 0),
            "total_cod_amount": float(cod_total or 0),
            "delivered": by_status.get(BookingStatus.DELIVERED.value, 0),
            "in_transit": sum(by_status.get(s, 0) for s in IN_TRANSIT_STATUSES),
            "pending_pickup": by_status.get(BookingStatus.BOOKED.value, 0),
        }

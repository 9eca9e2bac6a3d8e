"""Service for shipment exceptions (delivery incidents)."""
import logging
from datetime import date
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import NotFound, StateConflict
from courier.db_types import utc_now
from courier.models.booking import Booking, BookingStatus
from courier.models.document_sequence import DocumentClass
from courier.models.shipment_exception import (
    ShipmentException,
    ExceptionNote,
    CaseStatus,
    Priority,
    EXCEPTION_TYPE_PRIORITY,
    HOLD_BOOKING_TYPES,
)
from courier.models.user import User
from courier.schemas.support import ExceptionCreate
from courier.services.booking_service import day_bounds
from courier.services.document_sequence_service import DocumentSequenceService
from courier.services.status_ledger import append_status, record_initial_status

logger = logging.getLogger(__name__)


def exception_priority(exception_type: str) -> str:
    return EXCEPTION_TYPE_PRIORITY.get(exception_type, Priority.MEDIUM.value)


async def require_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFound("Assignee not found or inactive")
    return user


class ExceptionService:
    """Service for reporting and working shipment exceptions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)

    async def get_exception(self, exception_id: uuid.UUID, refresh: bool = False) -> Optional[ShipmentException]:
        stmt = select(ShipmentException).where(ShipmentException.id == exception_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_exception(self, exception_id: uuid.UUID) -> ShipmentException:
        exception = await self.get_exception(exception_id)
        if exception is None:
            raise NotFound("Exception not found")
        return exception

    async def get_exceptions(
        self,
        status: Optional[str] = None,
        exception_type: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ShipmentException], int]:
        """Get paginated list of exceptions."""
        filters = []
        if status:
            filters.append(ShipmentException.status == status)
        if exception_type:
            filters.append(ShipmentException.exception_type == exception_type)
        if priority:
            filters.append(ShipmentException.priority == priority)
        if assigned_to:
            filters.append(ShipmentException.assigned_to == assigned_to)
        if search:
            pattern = f"%{search}%"
            filters.append(or_(
                ShipmentException.exception_number.ilike(pattern),
                ShipmentException.awb_number.ilike(pattern),
                ShipmentException.description.ilike(pattern),
            ))
        start, end = day_bounds(date_from, date_to)
        if start:
            filters.append(ShipmentException.reported_at >= start)
        if end:
            filters.append(ShipmentException.reported_at <= end)

        stmt = select(ShipmentException).order_by(ShipmentException.reported_at.desc())
        count_stmt = select(func.count(ShipmentException.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def report_exception(self, data: ExceptionCreate, user: Optional[User] = None) -> ShipmentException:
        """
        Report an exception against a booking by AWB.

        Lost or damaged packages put the booking On Hold unless it is
        already Delivered or Cancelled.
        """
        awb_number = data.awb_number.strip().upper()
        result = await self.db.execute(select(Booking).where(Booking.awb_number == awb_number))
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFound(f"Booking {awb_number} not found")

        exception_type = data.exception_type.value
        priority = data.priority.value if data.priority else exception_priority(exception_type)
        actor_id = user.id if user else None

        exception_number = await self.sequences.next_identifier(DocumentClass.EXCEPTION)
        exception = ShipmentException(
            exception_number=exception_number,
            booking_id=booking.id,
            awb_number=booking.awb_number,
            exception_type=exception_type,
            priority=priority,
            status=CaseStatus.OPEN.value,
            description=data.description,
            location=data.location,
            reporter_name=data.reporter_name,
            reporter_email=data.reporter_email,
            reporter_mobile=data.reporter_mobile,
            reporter_relationship=data.reporter_relationship.value if data.reporter_relationship else None,
            follow_up_required=data.follow_up_required,
            follow_up_date=data.follow_up_date,
            reported_at=utc_now(),
            created_by=actor_id,
        )
        record_initial_status(exception, location=data.location, remarks="Exception reported", actor_id=actor_id)
        self.db.add(exception)
        await self.sequences.flush_document(exception_number)

        if exception_type in HOLD_BOOKING_TYPES and not booking.is_terminal:
            append_status(
                booking,
                BookingStatus.ON_HOLD.value,
                location=data.location,
                remarks=f"{exception_type} reported ({exception_number})",
                actor_id=actor_id,
            )

        await self.db.commit()
        logger.info(f"Exception {exception_number} ({exception_type}, {priority}) reported on {awb_number}")
        return await self.get_exception(exception.id, refresh=True)

    async def change_status(
        self,
        exception_id: uuid.UUID,
        status: str,
        remarks: Optional[str] = None,
        user: Optional[User] = None,
        override: bool = False,
    ) -> ShipmentException:
        exception = await self.require_exception(exception_id)
        append_status(exception, status, remarks=remarks, actor_id=user.id if user else None, override=override)
        await self.db.commit()
        return await self.get_exception(exception_id, refresh=True)

    async def assign(
        self,
        exception_id: uuid.UUID,
        assigned_to: uuid.UUID,
        remarks: Optional[str] = None,
        user: Optional[User] = None,
    ) -> ShipmentException:
        """Assign a handler; an Open exception moves to In Progress."""
        exception = await self.require_exception(exception_id)
        if exception.status == CaseStatus.CLOSED.value:
            raise StateConflict("Closed exceptions cannot be reassigned")
        assignee = await require_user(self.db, assigned_to)

        exception.assigned_to = assignee.id
        exception.assigned_at = utc_now()
        if exception.status == CaseStatus.OPEN.value:
            append_status(
                exception,
                CaseStatus.IN_PROGRESS.value,
                remarks=remarks or f"Assigned to {assignee.name}",
                actor_id=user.id if user else None,
            )

        await self.db.commit()
        logger.info(f"Exception {exception.exception_number} assigned to {assignee.email}")
        return await self.get_exception(exception_id, refresh=True)

    async def resolve(self, exception_id: uuid.UUID, resolution: str, user: Optional[User] = None) -> ShipmentException:
        exception = await self.require_exception(exception_id)
        actor_id = user.id if user else None
        if exception.status == CaseStatus.OPEN.value:
            append_status(exception, CaseStatus.IN_PROGRESS.value, remarks="Taken up for resolution", actor_id=actor_id)

        exception.resolution = resolution
        append_status(exception, CaseStatus.RESOLVED.value, remarks=resolution, actor_id=actor_id)
        await self.db.commit()
        logger.info(f"Exception {exception.exception_number} resolved")
        return await self.get_exception(exception_id, refresh=True)

    async def add_note(self, exception_id: uuid.UUID, note: str, user: Optional[User] = None) -> ShipmentException:
        exception = await self.require_exception(exception_id)
        exception.notes.append(ExceptionNote(note=note, added_by=user.id if user else None, created_at=utc_now()))
        await self.db.commit()
        return await self.get_exception(exception_id, refresh=True)

    async def count_open(self) -> int:
        result = await self.db.execute(
            select(func.count(ShipmentException.id)).where(
                ShipmentException.status.not_in([CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value])
            )
        )
        return result.scalar() or 0

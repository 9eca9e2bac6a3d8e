"""
Support ticket service.

Tickets share the case status machine with shipment exceptions. Priority
is derived from the category unless given, and the resolution deadline
from the priority.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import NotFound, StateConflict
from courier.db_types import utc_now
from courier.models.document_sequence import DocumentClass
from courier.models.shipment_exception import CaseStatus, Priority
from courier.models.shipper import Shipper
from courier.models.ticket import SupportTicket, TicketResponse, TICKET_CATEGORY_PRIORITY
from courier.models.user import User
from courier.schemas.support import TicketCreate
from courier.services.document_sequence_service import DocumentSequenceService
from courier.services.exception_service import require_user
from courier.services.status_ledger import append_status, record_initial_status

logger = logging.getLogger(__name__)

RESOLUTION_WINDOWS = {
    Priority.URGENT.value: timedelta(hours=4),
    Priority.HIGH.value: timedelta(hours=24),
    Priority.MEDIUM.value: timedelta(days=3),
}
DEFAULT_RESOLUTION_WINDOW = timedelta(days=7)


def ticket_priority(category: str) -> str:
    return TICKET_CATEGORY_PRIORITY.get(category, Priority.MEDIUM.value)


def resolution_deadline(priority: str, opened_at: datetime) -> datetime:
    return opened_at + RESOLUTION_WINDOWS.get(priority, DEFAULT_RESOLUTION_WINDOW)


class TicketService:
    """Service for support tickets."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)

    async def get_ticket(self, ticket_id: uuid.UUID, refresh: bool = False) -> Optional[SupportTicket]:
        stmt = select(SupportTicket).where(SupportTicket.id == ticket_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_ticket(self, ticket_id: uuid.UUID) -> SupportTicket:
        ticket = await self.get_ticket(ticket_id)
        if ticket is None:
            raise NotFound("Ticket not found")
        return ticket

    async def get_tickets(
        self,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
        department: Optional[str] = None,
        shipper_id: Optional[uuid.UUID] = None,
        assigned_to: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[SupportTicket], int]:
        filters = []
        if status:
            filters.append(SupportTicket.status == status)
        if priority:
            filters.append(SupportTicket.priority == priority)
        if category:
            filters.append(SupportTicket.category == category)
        if department:
            filters.append(SupportTicket.department == department)
        if shipper_id:
            filters.append(SupportTicket.shipper_id == shipper_id)
        if assigned_to:
            filters.append(SupportTicket.assigned_to == assigned_to)
        if search:
            pattern = f"%{search}%"
            filters.append(or_(
                SupportTicket.ticket_number.ilike(pattern),
                SupportTicket.subject.ilike(pattern),
                SupportTicket.awb_number.ilike(pattern),
            ))

        stmt = select(SupportTicket).order_by(SupportTicket.created_at.desc())
        count_stmt = select(func.count(SupportTicket.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def create_ticket(self, data: TicketCreate, user: Optional[User] = None) -> SupportTicket:
        if data.shipper_id is not None and await self.db.get(Shipper, data.shipper_id) is None:
            raise NotFound("Shipper not found")

        category = data.category.value
        priority = data.priority.value if data.priority else ticket_priority(category)
        now = utc_now()
        actor_id = user.id if user else None

        ticket_number = await self.sequences.next_identifier(DocumentClass.TICKET)
        ticket = SupportTicket(
            ticket_number=ticket_number,
            shipper_id=data.shipper_id,
            awb_number=data.awb_number.strip().upper() if data.awb_number else None,
            subject=data.subject,
            description=data.description,
            category=category,
            priority=priority,
            status=CaseStatus.OPEN.value,
            department=data.department.value,
            resolution_deadline=resolution_deadline(priority, now),
            created_by=actor_id,
        )
        record_initial_status(ticket, remarks="Ticket opened", actor_id=actor_id)
        self.db.add(ticket)
        await self.sequences.flush_document(ticket_number)
        await self.db.commit()
        logger.info(f"Ticket {ticket_number} opened ({category}, {priority})")
        return await self.get_ticket(ticket.id, refresh=True)

    async def change_status(
        self,
        ticket_id: uuid.UUID,
        status: str,
        remarks: Optional[str] = None,
        user: Optional[User] = None,
        override: bool = False,
    ) -> SupportTicket:
        ticket = await self.require_ticket(ticket_id)
        append_status(ticket, status, remarks=remarks, actor_id=user.id if user else None, override=override)
        await self.db.commit()
        return await self.get_ticket(ticket_id, refresh=True)

    async def assign(
        self,
        ticket_id: uuid.UUID,
        assigned_to: uuid.UUID,
        remarks: Optional[str] = None,
        user: Optional[User] = None,
    ) -> SupportTicket:
        ticket = await self.require_ticket(ticket_id)
        if ticket.status == CaseStatus.CLOSED.value:
            raise StateConflict("Closed tickets cannot be reassigned")
        assignee = await require_user(self.db, assigned_to)

        ticket.assigned_to = assignee.id
        if ticket.status == CaseStatus.OPEN.value:
            append_status(
                ticket,
                CaseStatus.IN_PROGRESS.value,
                remarks=remarks or f"Assigned to {assignee.name}",
                actor_id=user.id if user else None,
            )
        await self.db.commit()
        logger.info(f"Ticket {ticket.ticket_number} assigned to {assignee.email}")
        return await self.get_ticket(ticket_id, refresh=True)

    async def escalate(
        self,
        ticket_id: uuid.UUID,
        escalated_to: uuid.UUID,
        reason: str,
        user: Optional[User] = None,
    ) -> SupportTicket:
        ticket = await self.require_ticket(ticket_id)
        target = await require_user(self.db, escalated_to)

        append_status(ticket, CaseStatus.ESCALATED.value, remarks=reason, actor_id=user.id if user else None)
        ticket.escalated_to = target.id
        ticket.escalation_reason = reason
        await self.db.commit()
        logger.warning(f"Ticket {ticket.ticket_number} escalated to {target.email}: {reason}")
        return await self.get_ticket(ticket_id, refresh=True)

    async def resolve(self, ticket_id: uuid.UUID, resolution: str, user: Optional[User] = None) -> SupportTicket:
        ticket = await self.require_ticket(ticket_id)
        actor_id = user.id if user else None
        if ticket.status == CaseStatus.OPEN.value:
            append_status(ticket, CaseStatus.IN_PROGRESS.value, remarks="Taken up for resolution", actor_id=actor_id)

        ticket.resolution = resolution
        append_status(ticket, CaseStatus.RESOLVED.value, remarks=resolution, actor_id=actor_id)
        await self.db.commit()
        logger.info(f"Ticket {ticket.ticket_number} resolved")
        return await self.get_ticket(ticket_id, refresh=True)

    async def close(self, ticket_id: uuid.UUID, remarks: Optional[str] = None, user: Optional[User] = None) -> SupportTicket:
        """Close a resolved ticket. Closed is final."""
        ticket = await self.require_ticket(ticket_id)
        append_status(ticket, CaseStatus.CLOSED.value, remarks=remarks, actor_id=user.id if user else None)
        await self.db.commit()
        logger.info(f"Ticket {ticket.ticket_number} closed")
        return await self.get_ticket(ticket_id, refresh=True)

    async def respond(
        self,
        ticket_id: uuid.UUID,
        message: str,
        is_internal: bool = False,
        user: Optional[User] = None,
    ) -> SupportTicket:
        ticket = await self.require_ticket(ticket_id)
        if ticket.status == CaseStatus.CLOSED.value:
            raise StateConflict("Cannot respond to a closed ticket")
        ticket.responses.append(TicketResponse(
            message=message,
            is_internal=is_internal,
            responded_by=user.id if user else None,
            responded_at=utc_now(),
        ))
        await self.db.commit()
        return await self.get_ticket(ticket_id, refresh=True)

    async def count_open(self) -> int:
        result = await self.db.execute(
            select(func.count(SupportTicket.id)).where(
                SupportTicket.status.not_in([CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value])
            )
        )
        return result.scalar() or 0

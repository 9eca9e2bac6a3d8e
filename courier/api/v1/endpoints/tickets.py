from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, Permissions, require_permissions, ensure_status_override
from courier.schemas.support import (
    AssignRequest,
    CaseStatusUpdate,
    ResolveRequest,
    TicketCloseRequest,
    TicketCreate,
    TicketDetailResponse,
    TicketEscalateRequest,
    TicketListResponse,
    TicketResponse,
    TicketResponseCreate,
)
from courier.services.ticket_service import TicketService


router = APIRouter(tags=["Support Tickets"])


@router.get(
    "",
    response_model=TicketListResponse,
    dependencies=[Depends(require_permissions("complaints:view"))]
)
async def list_tickets(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    category: Optional[str] = None,
    department: Optional[str] = None,
    shipper_id: Optional[uuid.UUID] = None,
    assigned_to: Optional[uuid.UUID] = None,
    search: Optional[str] = Query(None, description="Ticket number, subject or AWB"),
):
    skip = (page - 1) * size
    tickets, total = await TicketService(db).get_tickets(
        status=status_filter,
        priority=priority,
        category=category,
        department=department,
        shipper_id=shipper_id,
        assigned_to=assigned_to,
        search=search,
        skip=skip,
        limit=size,
    )
    return TicketListResponse(
        items=[TicketResponse.model_validate(t) for t in tickets],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post(
    "",
    response_model=TicketDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("complaints:add"))]
)
async def create_ticket(data: TicketCreate, db: DB, current_user: CurrentUser):
    """
    Open a support ticket. Priority follows the category unless given;
    the resolution deadline follows the priority.
    """
    ticket = await TicketService(db).create_ticket(data, current_user)
    return TicketDetailResponse.model_validate(ticket)


@router.get(
    "/{ticket_id}",
    response_model=TicketDetailResponse,
    dependencies=[Depends(require_permissions("complaints:view"))]
)
async def get_ticket(ticket_id: uuid.UUID, db: DB):
    ticket = await TicketService(db).get_ticket(ticket_id)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return TicketDetailResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/status",
    response_model=TicketDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def change_ticket_status(
    ticket_id: uuid.UUID, data: CaseStatusUpdate, db: DB, current_user: CurrentUser, checker: Permissions
):
    ensure_status_override(checker, data.override)
    ticket = await TicketService(db).change_status(
        ticket_id, data.status.value, remarks=data.remarks, user=current_user, override=data.override
    )
    return TicketDetailResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def assign_ticket(ticket_id: uuid.UUID, data: AssignRequest, db: DB, current_user: CurrentUser):
    ticket = await TicketService(db).assign(ticket_id, data.assigned_to, remarks=data.remarks, user=current_user)
    return TicketDetailResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/escalate",
    response_model=TicketDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def escalate_ticket(ticket_id: uuid.UUID, data: TicketEscalateRequest, db: DB, current_user: CurrentUser):
    ticket = await TicketService(db).escalate(ticket_id, data.escalated_to, data.reason, current_user)
    return TicketDetailResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/resolve",
    response_model=TicketDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def resolve_ticket(ticket_id: uuid.UUID, data: ResolveRequest, db: DB, current_user: CurrentUser):
    ticket = await TicketService(db).resolve(ticket_id, data.resolution, current_user)
    return TicketDetailResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/close",
    response_model=TicketDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def close_ticket(ticket_id: uuid.UUID, data: TicketCloseRequest, db: DB, current_user: CurrentUser):
    ticket = await TicketService(db).close(ticket_id, data.remarks, current_user)
    return TicketDetailResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/responses",
    response_model=TicketDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def respond_to_ticket(ticket_id: uuid.UUID, data: TicketResponseCreate, db: DB, current_user: CurrentUser):
    ticket = await TicketService(db).respond(ticket_id, data.message, data.is_internal, current_user)
    return TicketDetailResponse.model_validate(ticket)

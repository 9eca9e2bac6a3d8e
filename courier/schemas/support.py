"""Schemas for shipment exceptions and support tickets."""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime
import uuid

from courier.models.shipment_exception import CaseStatus, ExceptionType, Priority, ReporterRelationship
from courier.models.ticket import Department, TicketCategory
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, ListResponse


class CaseStatusHistoryResponse(BaseResponseSchema):
    id: uuid.UUID
    status: str
    location: Optional[str] = None
    remarks: Optional[str] = None
    updated_by: Optional[uuid.UUID] = None
    recorded_at: datetime


class CaseStatusUpdate(BaseModel):
    status: CaseStatus
    remarks: Optional[str] = None
    override: bool = False


class AssignRequest(BaseModel):
    assigned_to: uuid.UUID
    remarks: Optional[str] = None


class ResolveRequest(BaseModel):
    resolution: str = Field(..., min_length=1)


# ==================== EXCEPTION SCHEMAS ====================

class ExceptionCreate(BaseCreateSchema):
    awb_number: str = Field(..., min_length=1, max_length=20)
    exception_type: ExceptionType
    description: str = Field(..., min_length=1)
    priority: Optional[Priority] = None
    location: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_email: Optional[EmailStr] = None
    reporter_mobile: Optional[str] = None
    reporter_relationship: Optional[ReporterRelationship] = None
    follow_up_required: bool = False
    follow_up_date: Optional[datetime] = None


class ExceptionNoteCreate(BaseModel):
    note: str = Field(..., min_length=1)


class ExceptionNoteResponse(BaseResponseSchema):
    id: uuid.UUID
    note: str
    added_by: Optional[uuid.UUID] = None
    created_at: datetime


class ExceptionResponse(BaseResponseSchema):
    id: uuid.UUID
    exception_number: str
    booking_id: uuid.UUID
    awb_number: str
    exception_type: str
    priority: str
    status: str
    description: str
    location: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None
    reporter_mobile: Optional[str] = None
    reporter_relationship: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = None
    assigned_at: Optional[datetime] = None
    resolution: Optional[str] = None
    resolved_by: Optional[uuid.UUID] = None
    resolved_at: Optional[datetime] = None
    follow_up_required: bool
    follow_up_date: Optional[datetime] = None
    reported_at: datetime
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class ExceptionDetailResponse(ExceptionResponse):
    notes: List[ExceptionNoteResponse] = []
    status_history: List[CaseStatusHistoryResponse] = []


class ExceptionListResponse(ListResponse):
    items: List[ExceptionResponse]


# ==================== TICKET SCHEMAS ====================

class TicketCreate(BaseCreateSchema):
    subject: str = Field(..., min_length=1, max_length=300)
    description: str = Field(..., min_length=1)
    shipper_id: Optional[uuid.UUID] = None
    awb_number: Optional[str] = None
    category: TicketCategory = TicketCategory.GENERAL_INQUIRY
    priority: Optional[Priority] = None
    department: Department = Department.CUSTOMER_SERVICE


class TicketEscalateRequest(BaseModel):
    escalated_to: uuid.UUID
    reason: str = Field(..., min_length=1)


class TicketCloseRequest(BaseModel):
    remarks: Optional[str] = None


class TicketResponseCreate(BaseModel):
    message: str = Field(..., min_length=1)
    is_internal: bool = False


class TicketMessageResponse(BaseResponseSchema):
    id: uuid.UUID
    message: str
    is_internal: bool
    responded_by: Optional[uuid.UUID] = None
    responded_at: datetime


class TicketResponse(BaseResponseSchema):
    id: uuid.UUID
    ticket_number: str
    shipper_id: Optional[uuid.UUID] = None
    awb_number: Optional[str] = None
    subject: str
    description: str
    category: str
    priority: str
    status: str
    department: str
    assigned_to: Optional[uuid.UUID] = None
    resolution: Optional[str] = None
    resolution_deadline: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[uuid.UUID] = None
    escalated_to: Optional[uuid.UUID] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    closed_at: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class TicketDetailResponse(TicketResponse):
    responses: List[TicketMessageResponse] = []
    status_history: List[CaseStatusHistoryResponse] = []


class TicketListResponse(ListResponse):
    items: List[TicketResponse]

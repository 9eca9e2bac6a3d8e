"""Cheque schemas."""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal
import uuid

from courier.models.cheque import ChequeStatus
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, ListResponse


class ChequeCreate(BaseCreateSchema):
    shipper_id: uuid.UUID
    cheque_number: str = Field(..., min_length=1, max_length=30)
    bank_name: str = Field(..., min_length=1, max_length=200)
    branch_name: Optional[str] = Field(None, max_length=200)
    amount: Decimal = Field(..., gt=0)
    cheque_date: date
    received_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ChequeUpdate(BaseUpdateSchema):
    cheque_number: Optional[str] = Field(None, min_length=1, max_length=30)
    bank_name: Optional[str] = Field(None, min_length=1, max_length=200)
    branch_name: Optional[str] = Field(None, max_length=200)
    amount: Optional[Decimal] = Field(None, gt=0)
    cheque_date: Optional[date] = None
    received_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ChequeStatusUpdate(BaseModel):
    status: ChequeStatus
    bounce_reason: Optional[str] = None
    status_date: Optional[date] = Field(None, description="Clearing or bounce date; defaults to today")

    @model_validator(mode="after")
    def bounce_needs_reason(self):
        if self.status == ChequeStatus.BOUNCED and not (self.bounce_reason or "").strip():
            raise ValueError("bounce_reason is required when a cheque bounces")
        return self


class ChequeResponse(BaseResponseSchema):
    id: uuid.UUID
    shipper_id: uuid.UUID
    shipper_name: Optional[str] = None
    cheque_number: str
    bank_name: str
    branch_name: Optional[str] = None
    amount: float
    cheque_date: date
    status: str
    received_date: date
    cleared_date: Optional[date] = None
    bounced_date: Optional[date] = None
    bounce_reason: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    processed_by: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class ChequeListResponse(ListResponse):
    items: List[ChequeResponse]


class ChequeStats(BaseModel):
    total_cheques: int
    by_status: Dict[str, int]
    pending_amount: float
    cleared_amount: float
    bounced_amount: float

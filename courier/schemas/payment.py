"""Payment transaction schemas."""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
import uuid

from courier.models.payment import PaymentCurrency, PaymentGateway
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, ListResponse


class PaymentCreate(BaseCreateSchema):
    invoice_id: uuid.UUID
    amount: Optional[Decimal] = Field(None, gt=0, description="Defaults to the invoice balance")
    currency: PaymentCurrency = PaymentCurrency.INR
    gateway: PaymentGateway
    description: Optional[str] = None
    payer_name: Optional[str] = None
    payer_email: Optional[EmailStr] = None


class PaymentCompleteRequest(BaseModel):
    gateway_transaction_id: Optional[str] = None
    gateway_response: Optional[dict] = None


class PaymentFailRequest(BaseModel):
    failure_code: Optional[str] = None
    failure_message: str = Field(..., min_length=1)
    gateway_response: Optional[dict] = None


class PaymentRefundRequest(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, description="Defaults to the full payment amount")
    reason: Optional[str] = None


class PaymentResponse(BaseResponseSchema):
    id: uuid.UUID
    transaction_id: str
    invoice_id: Optional[uuid.UUID] = None
    booking_id: Optional[uuid.UUID] = None
    shipper_id: uuid.UUID
    amount: float
    currency: str
    gateway: str
    gateway_transaction_id: Optional[str] = None
    status: str
    description: Optional[str] = None
    payer_name: Optional[str] = None
    payer_email: Optional[str] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[float] = None
    refund_reason: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class PaymentListResponse(ListResponse):
    items: List[PaymentResponse]


class PaymentStats(BaseModel):
    total_payments: int
    by_status: Dict[str, int]
    completed_revenue: float
    refunded_amount: float
    revenue_by_gateway: Dict[str, float]

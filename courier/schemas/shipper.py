"""Pydantic schemas for shippers and consignees."""
from pydantic import EmailStr, Field
from typing import Optional, List
from datetime import datetime
import uuid

from courier.models.booking import PaymentMode
from courier.models.shipper import ShipperStatus
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, ListResponse


class ShipperCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    company: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    mobile: str = Field(..., min_length=5, max_length=20)
    phone: Optional[str] = None
    street: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "India"
    gstin: Optional[str] = None
    pan: Optional[str] = None
    payment_type: PaymentMode = PaymentMode.COD
    credit_limit: float = Field(0, ge=0)
    notes: Optional[str] = None


class ShipperUpdate(BaseUpdateSchema):
    name: Optional[str] = None
    company: Optional[str] = None
    mobile: Optional[str] = None
    phone: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    gstin: Optional[str] = None
    pan: Optional[str] = None
    payment_type: Optional[PaymentMode] = None
    credit_limit: Optional[float] = Field(None, ge=0)
    status: Optional[ShipperStatus] = None
    notes: Optional[str] = None


class ShipperResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    company: str
    email: str
    mobile: str
    phone: Optional[str] = None
    street: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str
    gstin: Optional[str] = None
    pan: Optional[str] = None
    payment_type: str
    credit_limit: float
    status: str
    total_bookings: int
    last_booking_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ShipperListResponse(ListResponse):
    items: List[ShipperResponse]


class ConsigneeCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    mobile: str = Field(..., min_length=5, max_length=20)
    company: Optional[str] = None
    email: Optional[EmailStr] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "India"


class ConsigneeResponse(BaseResponseSchema):
    id: uuid.UUID
    shipper_id: uuid.UUID
    name: str
    mobile: str
    company: Optional[str] = None
    email: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str
    created_at: datetime

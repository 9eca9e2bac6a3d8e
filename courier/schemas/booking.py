"""Pydantic schemas for bookings."""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from datetime import datetime, date
from decimal import Decimal
import uuid

from courier.models.booking import (
    BookingStatus,
    DestinationType,
    PaymentMode,
    ShipmentType,
)
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, ListResponse


# ==================== CONSIGNEE SNAPSHOT ====================

class ConsigneeDetails(BaseModel):
    """Inline receiver details used when no saved consignee is referenced."""
    name: str = Field(..., min_length=1, max_length=200)
    mobile: str = Field(..., min_length=5, max_length=20)
    email: Optional[str] = None
    company: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = "India"


# ==================== BOOKING SCHEMAS ====================

class BookingCreate(BaseCreateSchema):
    """Booking creation schema. Either consignee_id or consignee is required."""
    shipper_id: uuid.UUID
    consignee_id: Optional[uuid.UUID] = None
    consignee: Optional[ConsigneeDetails] = None
    origin_city: Optional[str] = None

    service_type: str = Field("Standard", max_length=30)
    shipment_type: ShipmentType = ShipmentType.PARCEL
    destination_type: DestinationType = DestinationType.LOCAL

    pieces: int = Field(1, ge=1)
    weight: Decimal = Field(..., gt=0)
    weight_unit: str = Field("kg", pattern="^(kg|lb)$")
    length: Optional[Decimal] = Field(None, gt=0)
    width: Optional[Decimal] = Field(None, gt=0)
    height: Optional[Decimal] = Field(None, gt=0)
    dimension_unit: str = Field("cm", pattern="^(cm|in)$")
    description: Optional[str] = None
    declared_value: Decimal = Field(Decimal("0"), ge=0)
    currency: str = "INR"

    payment_mode: PaymentMode = PaymentMode.COD
    cod_amount: Decimal = Field(Decimal("0"), ge=0)

    special_instructions: Optional[str] = None
    reference_number: Optional[str] = None
    internal_notes: Optional[str] = None

    @model_validator(mode="after")
    def check_consignee(self):
        if self.consignee_id is None and self.consignee is None:
            raise ValueError("Either consignee_id or consignee details are required")
        return self


class BookingUpdate(BaseUpdateSchema):
    """Partial booking update. Rating inputs trigger a charge recalculation."""
    consignee: Optional[ConsigneeDetails] = None
    origin_city: Optional[str] = None
    service_type: Optional[str] = None
    shipment_type: Optional[ShipmentType] = None
    destination_type: Optional[DestinationType] = None
    pieces: Optional[int] = Field(None, ge=1)
    weight: Optional[Decimal] = Field(None, gt=0)
    weight_unit: Optional[str] = Field(None, pattern="^(kg|lb)$")
    length: Optional[Decimal] = Field(None, gt=0)
    width: Optional[Decimal] = Field(None, gt=0)
    height: Optional[Decimal] = Field(None, gt=0)
    dimension_unit: Optional[str] = Field(None, pattern="^(cm|in)$")
    description: Optional[str] = None
    declared_value: Optional[Decimal] = Field(None, ge=0)
    payment_mode: Optional[PaymentMode] = None
    cod_amount: Optional[Decimal] = Field(None, ge=0)
    special_instructions: Optional[str] = None
    reference_number: Optional[str] = None
    internal_notes: Optional[str] = None


class BookingStatusHistoryResponse(BaseResponseSchema):
    id: uuid.UUID
    status: str
    location: Optional[str] = None
    remarks: Optional[str] = None
    updated_by: Optional[uuid.UUID] = None
    recorded_at: datetime


class BookingResponse(BaseResponseSchema):
    """Booking response schema."""
    id: uuid.UUID
    awb_number: str
    shipper_id: uuid.UUID
    consignee_id: Optional[uuid.UUID] = None
    consignee_name: str
    consignee_mobile: str
    consignee_email: Optional[str] = None
    consignee_company: Optional[str] = None
    consignee_street: Optional[str] = None
    consignee_city: Optional[str] = None
    consignee_state: Optional[str] = None
    consignee_postal_code: Optional[str] = None
    consignee_country: Optional[str] = None
    origin_city: Optional[str] = None

    service_type: str
    shipment_type: str
    destination_type: str
    pieces: int
    weight: float
    weight_unit: str
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    dimension_unit: str
    volumetric_weight: Optional[float] = None
    description: Optional[str] = None
    declared_value: float
    currency: str

    shipping_charge: float
    insurance_charge: float
    cod_charge: float
    fuel_surcharge: float
    gst_amount: float
    total_amount: float
    payment_mode: str
    cod_amount: float

    status: str
    booking_date: datetime
    expected_delivery_date: Optional[date] = None
    delivery_date: Optional[datetime] = None
    delivered_to: Optional[str] = None
    delivery_proof: Optional[str] = None
    delivery_remarks: Optional[str] = None
    return_reason: Optional[str] = None
    return_date: Optional[datetime] = None

    special_instructions: Optional[str] = None
    reference_number: Optional[str] = None
    internal_notes: Optional[str] = None
    manifest_id: Optional[uuid.UUID] = None
    dispatch_id: Optional[uuid.UUID] = None
    booked_by: Optional[uuid.UUID] = None
    branch: Optional[str] = None
    zone: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BookingDetailResponse(BookingResponse):
    """Booking with its status history."""
    status_history: List[BookingStatusHistoryResponse] = []


class BookingListResponse(ListResponse):
    """Paginated booking list."""
    items: List[BookingResponse]


class BookingBrief(BaseResponseSchema):
    id: uuid.UUID
    awb_number: str
    status: str
    consignee_name: str
    weight: float
    pieces: int
    cod_amount: float


class BookingTrackingResponse(BaseModel):
    """Public tracking view; leaves out internal notes and charges."""
    awb_number: str
    status: str
    service_type: str
    origin_city: Optional[str] = None
    destination_city: Optional[str] = None
    booking_date: datetime
    expected_delivery_date: Optional[date] = None
    delivery_date: Optional[datetime] = None
    delivered_to: Optional[str] = None
    history: List[BookingStatusHistoryResponse] = []


# ==================== BOOKING OPERATIONS ====================

class BookingStatusUpdate(BaseModel):
    """Append a status to the booking's history."""
    status: BookingStatus
    location: Optional[str] = None
    remarks: Optional[str] = None
    delivered_to: Optional[str] = None
    return_reason: Optional[str] = None
    override: bool = False


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = None


class ProofOfDeliveryRequest(BaseModel):
    delivery_proof: str = Field(..., min_length=1, max_length=500)
    delivered_to: Optional[str] = None
    delivery_signature: Optional[str] = None
    delivery_remarks: Optional[str] = None
    location: Optional[str] = None


class BulkBookingRequest(BaseModel):
    bookings: List[BookingCreate] = Field(..., min_length=1, max_length=500)


class BulkBookingError(BaseModel):
    index: int
    error: str


class BulkBookingResponse(BaseModel):
    created: List[str]
    errors: List[BulkBookingError]
    total: int
    success_count: int
    failure_count: int


class BookingStats(BaseModel):
    total_bookings: int
    by_status: Dict[str, int]
    total_revenue: float
    total_cod_amount: float
    delivered: int
    in_transit: int
    pending_pickup: int

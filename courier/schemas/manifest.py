"""Pydantic schemas for manifests and dispatches."""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
import uuid

from courier.models.manifest import DispatchType, ManifestType, TransportMode
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, ListResponse
from courier.schemas.booking import BookingBrief


# ==================== MANIFEST SCHEMAS ====================

class ManifestCreate(BaseCreateSchema):
    """Manifest creation schema."""
    booking_ids: List[uuid.UUID] = Field(..., min_length=1)
    manifest_type: ManifestType = ManifestType.DELIVERY
    manifest_date: Optional[datetime] = None
    origin_city: Optional[str] = None
    destination_city: Optional[str] = None
    route: Optional[str] = None
    driver_name: Optional[str] = None
    driver_mobile: Optional[str] = None
    vehicle_number: Optional[str] = None
    remarks: Optional[str] = None


class ManifestUpdate(BaseUpdateSchema):
    """Manifest update schema."""
    origin_city: Optional[str] = None
    destination_city: Optional[str] = None
    route: Optional[str] = None
    driver_name: Optional[str] = None
    driver_mobile: Optional[str] = None
    vehicle_number: Optional[str] = None
    remarks: Optional[str] = None


class ManifestResponse(BaseResponseSchema):
    """Manifest response schema."""
    id: uuid.UUID
    manifest_number: str
    manifest_date: datetime
    manifest_type: str
    origin_city: Optional[str] = None
    destination_city: Optional[str] = None
    route: Optional[str] = None
    driver_name: Optional[str] = None
    driver_mobile: Optional[str] = None
    vehicle_number: Optional[str] = None
    total_bookings: int
    total_weight: float
    total_pieces: int
    total_cod_amount: float
    totals_as_of: Optional[datetime] = None
    status: str
    dispatched_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    remarks: Optional[str] = None
    dispatch_id: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    branch: Optional[str] = None
    zone: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ManifestDetailResponse(ManifestResponse):
    """Detailed manifest response with bookings."""
    bookings: List[BookingBrief] = []


class ManifestListResponse(ListResponse):
    """Paginated manifest list."""
    items: List[ManifestResponse]


class ManifestDispatchRequest(BaseModel):
    location: Optional[str] = None
    remarks: Optional[str] = None


# ==================== DISPATCH SCHEMAS ====================

class DispatchCreate(BaseCreateSchema):
    """Dispatch creation schema. At least one manifest or booking is required."""
    manifest_ids: List[uuid.UUID] = []
    booking_ids: List[uuid.UUID] = []
    dispatch_type: DispatchType = DispatchType.OUTBOUND
    dispatch_date: Optional[datetime] = None
    destination_branch: Optional[str] = None
    destination_city: Optional[str] = None
    transport_mode: TransportMode = TransportMode.ROAD
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_mobile: Optional[str] = None
    carrier_name: Optional[str] = None
    seal_number: Optional[str] = None
    total_bags: int = Field(0, ge=0)
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def check_contents(self):
        if not self.manifest_ids and not self.booking_ids:
            raise ValueError("A dispatch needs at least one manifest or booking")
        return self


class DispatchResponse(BaseResponseSchema):
    id: uuid.UUID
    dispatch_number: str
    dispatch_date: datetime
    dispatch_type: str
    destination_branch: Optional[str] = None
    destination_city: Optional[str] = None
    transport_mode: str
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_mobile: Optional[str] = None
    carrier_name: Optional[str] = None
    seal_number: Optional[str] = None
    total_bookings: int
    total_weight: float
    total_bags: int
    totals_as_of: Optional[datetime] = None
    status: str
    dispatched_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    received_by: Optional[uuid.UUID] = None
    remarks: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    branch: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ManifestBrief(BaseResponseSchema):
    id: uuid.UUID
    manifest_number: str
    status: str
    total_bookings: int


class DispatchDetailResponse(DispatchResponse):
    manifests: List[ManifestBrief] = []
    bookings: List[BookingBrief] = []


class DispatchListResponse(ListResponse):
    items: List[DispatchResponse]

"""
Public integrator API payloads.

Field names follow the camelCase wire contract integrators already
use. Request fields are optional at the schema level so that missing
required fields are reported together as a 400 with a `required`
list instead of a 422 per field.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Optional
from datetime import date, datetime
from decimal import Decimal


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ==================== BOOKINGS ====================

class ApiConsignee(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class ApiDimensions(CamelModel):
    length: Optional[Decimal] = Field(None, gt=0)
    width: Optional[Decimal] = Field(None, gt=0)
    height: Optional[Decimal] = Field(None, gt=0)
    unit: str = "cm"


class ApiBookingCreate(CamelModel):
    consignee: Optional[ApiConsignee] = None
    service_type: Optional[str] = None
    shipment_type: Optional[str] = None
    weight: Optional[Decimal] = None
    pieces: int = Field(1, ge=1)
    dimensions: Optional[ApiDimensions] = None
    payment_mode: Optional[str] = None
    cod_amount: Optional[Decimal] = Field(None, ge=0)
    package_value: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None
    reference_number: Optional[str] = None
    special_instructions: Optional[str] = None


class ApiCharges(CamelModel):
    shipping: float
    insurance: float
    cod: float
    fuel_surcharge: float
    gst: float
    total: float


class ApiConsigneeSummary(CamelModel):
    name: str
    phone: str
    address: Optional[str] = None


class ApiBookingCreated(CamelModel):
    awb_number: str
    booking_id: str
    status: str
    expected_delivery: Optional[date] = None
    total_amount: float
    consignee: ApiConsigneeSummary
    charges: ApiCharges


class ApiTrackingEntry(CamelModel):
    status: str
    location: Optional[str] = None
    remarks: Optional[str] = None
    timestamp: datetime


class ApiBookingConsignee(CamelModel):
    name: str
    phone: str
    city: Optional[str] = None
    state: Optional[str] = None


class ApiBookingDates(CamelModel):
    booked: datetime
    expected: Optional[date] = None
    delivered: Optional[datetime] = None


class ApiBookingDetail(CamelModel):
    awb_number: str
    status: str
    service_type: str
    weight: float
    consignee: ApiBookingConsignee
    dates: ApiBookingDates
    tracking: list[ApiTrackingEntry]


class ApiProofOfDelivery(CamelModel):
    available: bool
    url: Optional[str] = None


class ApiTrackingResult(CamelModel):
    awb_number: str
    current_status: str
    current_location: str
    expected_delivery: Optional[date] = None
    timeline: list[ApiTrackingEntry]
    pod: ApiProofOfDelivery


# ==================== RATES ====================

class ApiRateRequest(CamelModel):
    service_type: Optional[str] = None
    weight: Optional[Decimal] = None
    package_value: Optional[Decimal] = Field(None, ge=0)
    cod_amount: Optional[Decimal] = Field(None, ge=0)


class ApiRateCharges(ApiCharges):
    subtotal: float


class ApiRateResult(CamelModel):
    service_type: str
    weight: float
    charges: ApiRateCharges
    estimated_delivery: date


# ==================== INVOICES ====================

class ApiInvoiceSummary(CamelModel):
    invoice_number: str
    invoice_date: date
    due_date: Optional[date] = None
    total_amount: float
    paid_amount: float
    balance_amount: float
    status: str
    payment_status: str


class ApiPagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class ApiInvoiceList(BaseModel):
    success: bool = True
    data: list[ApiInvoiceSummary]
    pagination: ApiPagination


def dump_camel(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")

"""Pydantic schemas for invoices and invoice payment records."""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from datetime import datetime, date
from decimal import Decimal
import uuid

from courier.models.invoice import DiscountType, InvoiceType, PaymentRecordMode
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, ListResponse


# ==================== INVOICE ITEM SCHEMAS ====================

class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    sac_code: Optional[str] = None
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit: str = "Nos"
    rate: Decimal = Field(Decimal("0"), ge=0)
    amount: Optional[Decimal] = Field(None, ge=0)
    is_taxable: bool = True
    booking_id: Optional[uuid.UUID] = None


class InvoiceItemResponse(BaseResponseSchema):
    id: uuid.UUID
    line_number: int
    booking_id: Optional[uuid.UUID] = None
    description: str
    sac_code: Optional[str] = None
    quantity: float
    unit: str
    rate: float
    amount: float
    is_taxable: bool


# ==================== INVOICE SCHEMAS ====================

class InvoiceCreate(BaseCreateSchema):
    """
    Manual invoice.

    discount_percentage is accepted from older clients and, when given,
    takes precedence over discount/discount_type.
    """
    shipper_id: uuid.UUID
    booking_id: Optional[uuid.UUID] = None
    invoice_type: InvoiceType = InvoiceType.FREIGHT
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    items: List[InvoiceItemCreate] = Field(..., min_length=1)
    discount: Decimal = Field(Decimal("0"), ge=0)
    discount_type: DiscountType = DiscountType.FIXED
    discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    gst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    place_of_supply: Optional[str] = None
    notes: Optional[str] = None
    terms: Optional[str] = None

    @model_validator(mode="after")
    def apply_legacy_discount(self):
        if self.discount_percentage is not None:
            self.discount = self.discount_percentage
            self.discount_type = DiscountType.PERCENTAGE
        if self.discount_type == DiscountType.PERCENTAGE and self.discount > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class InvoiceUpdate(BaseUpdateSchema):
    """Editable fields; items or discount changes recompute totals."""
    due_date: Optional[date] = None
    items: Optional[List[InvoiceItemCreate]] = Field(None, min_length=1)
    discount: Optional[Decimal] = Field(None, ge=0)
    discount_type: Optional[DiscountType] = None
    gst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    place_of_supply: Optional[str] = None
    notes: Optional[str] = None
    terms: Optional[str] = None

    @model_validator(mode="after")
    def cap_percentage_discount(self):
        # discount without discount_type is checked by compose_invoice
        if self.discount_type == DiscountType.PERCENTAGE and self.discount is not None and self.discount > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class InvoicePaymentRecordResponse(BaseResponseSchema):
    id: uuid.UUID
    payment_id: Optional[uuid.UUID] = None
    amount: float
    payment_mode: str
    payment_date: date
    reference: Optional[str] = None
    remarks: Optional[str] = None
    recorded_by: Optional[uuid.UUID] = None
    recorded_at: datetime


class InvoiceResponse(BaseResponseSchema):
    id: uuid.UUID
    invoice_number: str
    invoice_type: str
    booking_id: Optional[uuid.UUID] = None
    shipper_id: uuid.UUID
    shipper_details: Optional[dict] = None
    supplier_details: Optional[dict] = None
    invoice_date: date
    due_date: Optional[date] = None
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    supplier_state: Optional[str] = None
    place_of_supply: Optional[str] = None
    is_interstate: bool

    subtotal: float
    discount: float
    discount_type: str
    discount_amount: float
    taxable_amount: float
    gst_rate: float
    cgst_amount: float
    sgst_amount: float
    igst_amount: float
    total_tax: float
    total_before_round: float
    round_off: float
    grand_total: float
    paid_amount: float
    balance_amount: float

    payment_status: str
    status: str
    notes: Optional[str] = None
    terms: Optional[str] = None
    sent_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class InvoiceDetailResponse(InvoiceResponse):
    items: List[InvoiceItemResponse] = []
    payments: List[InvoicePaymentRecordResponse] = []


class InvoiceListResponse(ListResponse):
    items: List[InvoiceResponse]


# ==================== INVOICE OPERATIONS ====================

class InvoiceFromBookingRequest(BaseModel):
    booking_id: uuid.UUID
    due_date: Optional[date] = None
    notes: Optional[str] = None


class ConsolidatedInvoiceRequest(BaseModel):
    """One invoice covering several bookings of the same shipper."""
    shipper_id: uuid.UUID
    booking_ids: List[uuid.UUID] = Field(..., min_length=1)
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    due_date: Optional[date] = None
    discount: Decimal = Field(Decimal("0"), ge=0)
    discount_type: DiscountType = DiscountType.FIXED
    notes: Optional[str] = None


class RecordPaymentRequest(BaseModel):
    amount: Decimal = Field(..., description="Must be positive and not exceed the balance")
    payment_mode: PaymentRecordMode = PaymentRecordMode.BANK_TRANSFER
    payment_date: Optional[date] = None
    reference: Optional[str] = None
    remarks: Optional[str] = None


class InvoiceCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class InvoiceStats(BaseModel):
    total_invoices: int
    total_amount: float
    paid_amount: float
    outstanding_amount: float
    by_payment_status: Dict[str, int]

"""Rate quote schemas."""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
from decimal import Decimal

from courier.models.booking import PaymentMode


class RateQuoteRequest(BaseModel):
    service_type: str = Field(..., max_length=30)
    weight: Decimal = Field(..., gt=0)
    weight_unit: str = Field("kg", pattern="^(kg|lb)$")
    declared_value: Optional[Decimal] = Field(None, ge=0)
    cod_amount: Optional[Decimal] = Field(None, ge=0)
    payment_mode: Optional[PaymentMode] = None


class RateQuoteResponse(BaseModel):
    service_type: str
    weight_kg: float
    base_rate: float
    shipping: float
    insurance: float
    cod: float
    fuel_surcharge: float
    subtotal: float
    gst: float
    total: float
    expected_delivery: date

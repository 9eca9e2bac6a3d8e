"""Report request and dashboard summary schemas."""
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date
import uuid

from courier.models.booking import BookingStatus, ServiceType
from courier.schemas.booking import BookingStats
from courier.schemas.invoice import InvoiceStats
from courier.schemas.payment import PaymentStats


class DashboardSummary(BaseModel):
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    bookings: BookingStats
    invoices: InvoiceStats
    payments: PaymentStats
    open_exceptions: int
    open_tickets: int
    active_shippers: int


class ReportRange(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RevenueReportRequest(ReportRange):
    shipper_id: Optional[uuid.UUID] = None
    group_by: str = Field("day", pattern="^(day|week|month)$")


class BookingReportRequest(ReportRange):
    status: Optional[BookingStatus] = None
    service_type: Optional[ServiceType] = None
    shipper_id: Optional[uuid.UUID] = None


class PerformanceReportRequest(ReportRange):
    pass

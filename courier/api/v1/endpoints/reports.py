from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from courier.api.deps import DB, Permissions, require_permissions
from courier.schemas.report import (
    DashboardSummary,
    RevenueReportRequest,
    BookingReportRequest,
    PerformanceReportRequest,
)
from courier.services.report_service import ReportService


router = APIRouter(tags=["Reports"])


# ==================== Dashboard ====================

@router.get(
    "/dashboard",
    response_model=DashboardSummary,
    dependencies=[Depends(require_permissions("dashboard:view"))]
)
async def dashboard_summary(
    db: DB,
    checker: Permissions,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    """
    Booking, invoice and payment statistics over an optional date range.
    Requires: dashboard:view permission
    """
    summary = await ReportService(db).dashboard(checker, date_from=date_from, date_to=date_to)
    return DashboardSummary(**summary)


@router.get(
    "/dashboard/revenue",
    dependencies=[Depends(require_permissions("dashboard:view"))]
)
async def revenue_analytics(db: DB, days: int = Query(30, ge=1, le=365)):
    """Daily revenue, delivered revenue by service, payments by gateway and top shippers."""
    return await ReportService(db).revenue_analytics(days=days)


@router.get(
    "/dashboard/bookings",
    dependencies=[Depends(require_permissions("dashboard:view"))]
)
async def booking_analytics(db: DB, checker: Permissions, days: int = Query(30, ge=1, le=365)):
    return await ReportService(db).booking_analytics(checker, days=days)


@router.get(
    "/dashboard/performance",
    dependencies=[Depends(require_permissions("dashboard:view"))]
)
async def performance_metrics(db: DB):
    """Success, collection and satisfaction rates for the last 30 days."""
    return await ReportService(db).performance_metrics()


@router.get(
    "/dashboard/activities",
    dependencies=[Depends(require_permissions("dashboard:view"))]
)
async def recent_activities(db: DB, limit: int = Query(20, ge=1, le=100)):
    return await ReportService(db).recent_activities(limit=limit)


# ==================== Reports ====================

@router.post(
    "/revenue",
    dependencies=[Depends(require_permissions("reports:view"))]
)
async def revenue_report(data: RevenueReportRequest, db: DB):
    """
    Invoiced revenue grouped by day, week or month, with breakdowns by
    service, shipper and payment gateway.
    Requires: reports:view permission
    """
    return await ReportService(db).revenue_report(
        data.start_date,
        data.end_date,
        shipper_id=data.shipper_id,
        group_by=data.group_by,
    )


@router.post(
    "/bookings",
    dependencies=[Depends(require_permissions("reports:view"))]
)
async def booking_report(data: BookingReportRequest, db: DB, checker: Permissions):
    """
    Bookings in a date range with status, service, daily and shipper breakdowns.
    Requires: reports:view permission
    """
    return await ReportService(db).booking_report(
        data.start_date,
        data.end_date,
        checker=checker,
        status=data.status.value if data.status else None,
        service_type=data.service_type.value if data.service_type else None,
        shipper_id=data.shipper_id,
    )


@router.post(
    "/performance",
    dependencies=[Depends(require_permissions("reports:view"))]
)
async def performance_report(data: PerformanceReportRequest, db: DB):
    """
    Delivery timeliness, exception handling and delivered revenue.
    Requires: reports:view permission
    """
    return await ReportService(db).performance_report(data.start_date, data.end_date)

"""
Reports and dashboard analytics.

Revenue, booking and performance reports run over an explicit date range;
the dashboard analytics run over a trailing window of days. Period
grouping (day, week, month) is done in Python on fetched dates so the
same code serves PostgreSQL and SQLite.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
import uuid

from sqlalchemy import select, func, and_, case, desc
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.permissions import PermissionChecker
from courier.db_types import utc_now
from courier.models.booking import Booking, BookingStatus, BookingStatusHistory, PaymentMode
from courier.models.invoice import Invoice, InvoiceStatus
from courier.models.payment import Payment, PaymentState
from courier.models.shipment_exception import ShipmentException
from courier.models.shipper import Shipper, ShipperStatus
from courier.services.booking_service import BookingService, day_bounds
from courier.services.exception_service import ExceptionService
from courier.services.invoice_service import InvoiceService, today_utc
from courier.services.payment_service import PaymentService
from courier.services.ticket_service import TicketService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def period_start(value: date, group_by: str = "day") -> date:
    """First day of the day, ISO week (Monday) or month holding ``value``."""
    if group_by == "week":
        return value - timedelta(days=value.weekday())
    if group_by == "month":
        return value.replace(day=1)
    return value


def period_axis(start: date, end: date, group_by: str = "day") -> List[date]:
    """Every period start between two dates, so sparse results chart without gaps."""
    axis = []
    current = period_start(start, group_by)
    while current <= end:
        axis.append(current)
        if group_by == "month":
            current = (current.replace(day=28) + timedelta(days=4)).replace(day=1)
        else:
            current += timedelta(days=7 if group_by == "week" else 1)
    return axis


def percent(part, whole, places: int = 1) -> float:
    if not whole:
        return 0.0
    return round(float(part) / float(whole) * 100, places)


def delivery_performance(rows: Iterable) -> List[dict]:
    """
    Group delivered bookings by service type.

    Each row is (service_type, booking_date, delivery_date,
    expected_delivery_date). A booking without an expected date counts as
    on time.
    """
    groups: Dict[str, dict] = {}
    for service_type, booked_at, delivered_at, expected in rows:
        group = groups.setdefault(service_type, {"total": 0, "on_time": 0, "delayed": 0, "days": 0.0})
        group["total"] += 1
        if expected is None or delivered_at.date() <= expected:
            group["on_time"] += 1
        else:
            group["delayed"] += 1
        group["days"] += (delivered_at - booked_at).total_seconds() / 86400

    return [
        {
            "service_type": service_type,
            "total_deliveries": g["total"],
            "on_time": g["on_time"],
            "delayed": g["delayed"],
            "on_time_rate": percent(g["on_time"], g["total"]),
            "avg_delivery_days": round(g["days"] / g["total"], 2),
        }
        for service_type, g in sorted(groups.items(), key=lambda item: -item[1]["total"])
    ]


class ReportService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== DASHBOARD SUMMARY ====================

    async def dashboard(
        self,
        checker: Optional[PermissionChecker] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> dict:
        """Summary over an optional date range. Open case counts ignore the range."""
        bookings = await BookingService(self.db).get_stats(checker, date_from=date_from, date_to=date_to)
        invoices = await InvoiceService(self.db).get_stats(date_from=date_from, date_to=date_to)
        payments = await PaymentService(self.db).get_stats(date_from=date_from, date_to=date_to)

        active_shippers = (await self.db.execute(
            select(func.count(Shipper.id)).where(Shipper.status == ShipperStatus.ACTIVE.value)
        )).scalar() or 0

        return {
            "from_date": date_from,
            "to_date": date_to,
            "bookings": bookings,
            "invoices": invoices,
            "payments": payments,
            "open_exceptions": await ExceptionService(self.db).count_open(),
            "open_tickets": await TicketService(self.db).count_open(),
            "active_shippers": active_shippers,
        }

    # ==================== SHARED QUERIES ====================

    def _invoice_filters(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        shipper_id: Optional[uuid.UUID] = None,
    ) -> list:
        filters = [Invoice.status != InvoiceStatus.CANCELLED.value]
        if date_from:
            filters.append(Invoice.invoice_date >= date_from)
        if date_to:
            filters.append(Invoice.invoice_date <= date_to)
        if shipper_id:
            filters.append(Invoice.shipper_id == shipper_id)
        return filters

    async def _invoice_periods(self, filters: list, group_by: str) -> Dict[date, dict]:
        result = await self.db.execute(
            select(Invoice.invoice_date, Invoice.grand_total, Invoice.paid_amount).where(and_(*filters))
        )
        periods: Dict[date, dict] = defaultdict(lambda: {"revenue": ZERO, "paid": ZERO, "count": 0})
        for invoice_date, grand_total, paid in result.all():
            bucket = periods[period_start(invoice_date, group_by)]
            bucket["revenue"] += grand_total or ZERO
            bucket["paid"] += paid or ZERO
            bucket["count"] += 1
        return periods

    async def _revenue_by_service(self, filters: list) -> List[dict]:
        revenue = func.coalesce(func.sum(Booking.total_amount), 0)
        result = await self.db.execute(
            select(Booking.service_type, func.count(Booking.id).label("deliveries"), revenue.label("revenue"))
            .where(and_(Booking.status == BookingStatus.DELIVERED.value, *filters))
            .group_by(Booking.service_type)
            .order_by(desc("revenue"))
        )
        return [
            {
                "service_type": row.service_type,
                "revenue": float(row.revenue or 0),
                "count": row.deliveries,
                "avg_revenue": round(float(row.revenue or 0) / row.deliveries, 2) if row.deliveries else 0.0,
            }
            for row in result.all()
        ]

    async def _revenue_by_gateway(self, since: datetime, until: Optional[datetime] = None,
                                  shipper_id: Optional[uuid.UUID] = None) -> List[dict]:
        filters = [Payment.status == PaymentState.COMPLETED.value, Payment.created_at >= since]
        if until:
            filters.append(Payment.created_at <= until)
        if shipper_id:
            filters.append(Payment.shipper_id == shipper_id)
        amount = func.coalesce(func.sum(Payment.amount), 0)
        result = await self.db.execute(
            select(Payment.gateway, func.count(Payment.id).label("transactions"), amount.label("amount"))
            .where(and_(*filters))
            .group_by(Payment.gateway)
            .order_by(desc("amount"))
        )
        return [
            {
                "gateway": row.gateway,
                "amount": float(row.amount or 0),
                "count": row.transactions,
                "avg_amount": round(float(row.amount or 0) / row.transactions, 2) if row.transactions else 0.0,
            }
            for row in result.all()
        ]

    async def _top_shippers_by_bookings(self, filters: list, order: str, limit: int) -> List[dict]:
        revenue = func.coalesce(func.sum(Booking.total_amount), 0)
        result = await self.db.execute(
            select(
                Shipper.id,
                Shipper.company,
                Shipper.name,
                func.count(Booking.id).label("bookings"),
                revenue.label("revenue"),
            )
            .join(Shipper, Booking.shipper_id == Shipper.id)
            .where(and_(*filters))
            .group_by(Shipper.id, Shipper.company, Shipper.name)
            .order_by(desc(order))
            .limit(limit)
        )
        return [
            {
                "shipper_id": row.id,
                "shipper_name": row.company or row.name,
                "bookings": row.bookings,
                "revenue": float(row.revenue or 0),
            }
            for row in result.all()
        ]

    async def _delivered_rows(self, filters: list) -> list:
        result = await self.db.execute(
            select(
                Booking.service_type,
                Booking.booking_date,
                Booking.delivery_date,
                Booking.expected_delivery_date,
            ).where(and_(
                Booking.status == BookingStatus.DELIVERED.value,
                Booking.delivery_date.is_not(None),
                *filters,
            ))
        )
        return result.all()

    # ==================== REPORTS ====================

    async def revenue_report(
        self,
        start_date: date,
        end_date: date,
        shipper_id: Optional[uuid.UUID] = None,
        group_by: str = "day",
    ) -> dict:
        """Invoiced revenue by period and shipper, delivered revenue by service, payments by gateway."""
        invoice_filters = self._invoice_filters(start_date, end_date, shipper_id)
        periods = await self._invoice_periods(invoice_filters, group_by)

        by_period = [
            {
                "period": period,
                "revenue": float(bucket["revenue"]),
                "paid": float(bucket["paid"]),
                "outstanding": float(bucket["revenue"] - bucket["paid"]),
                "invoice_count": bucket["count"],
            }
            for period, bucket in sorted(periods.items())
        ]

        total_revenue = sum((b["revenue"] for b in periods.values()), ZERO)
        total_paid = sum((b["paid"] for b in periods.values()), ZERO)

        revenue = func.coalesce(func.sum(Invoice.grand_total), 0)
        paid = func.coalesce(func.sum(Invoice.paid_amount), 0)
        shipper_rows = (await self.db.execute(
            select(
                Shipper.id,
                Shipper.company,
                Shipper.name,
                func.count(Invoice.id).label("invoices"),
                revenue.label("revenue"),
                paid.label("paid"),
            )
            .join(Shipper, Invoice.shipper_id == Shipper.id)
            .where(and_(*invoice_filters))
            .group_by(Shipper.id, Shipper.company, Shipper.name)
            .order_by(desc("revenue"))
            .limit(20)
        )).all()

        start, end = day_bounds(start_date, end_date)
        booking_filters = [Booking.booking_date >= start, Booking.booking_date <= end]
        if shipper_id:
            booking_filters.append(Booking.shipper_id == shipper_id)

        logger.info(f"Revenue report {start_date}..{end_date} by {group_by}: {total_revenue}")
        return {
            "filters": {
                "start_date": start_date,
                "end_date": end_date,
                "shipper_id": shipper_id,
                "group_by": group_by,
            },
            "summary": {
                "total_revenue": float(total_revenue),
                "total_paid": float(total_paid),
                "total_outstanding": float(total_revenue - total_paid),
                "invoice_count": sum(b["count"] for b in periods.values()),
            },
            "by_period": by_period,
            "by_service": await self._revenue_by_service(booking_filters),
            "by_shipper": [
                {
                    "shipper_id": row.id,
                    "shipper_name": row.company or row.name,
                    "revenue": float(row.revenue or 0),
                    "paid": float(row.paid or 0),
                    "invoice_count": row.invoices,
                }
                for row in shipper_rows
            ],
            "by_gateway": await self._revenue_by_gateway(start, end, shipper_id),
        }

    async def booking_report(
        self,
        start_date: date,
        end_date: date,
        checker: Optional[PermissionChecker] = None,
        status: Optional[str] = None,
        service_type: Optional[str] = None,
        shipper_id: Optional[uuid.UUID] = None,
    ) -> dict:
        """
        Bookings in the range matching the filters.

        The status breakdown ignores the status and service filters so it
        always shows the whole mix for the range.
        """
        bookings = BookingService(self.db)
        filters = bookings._filters(
            checker,
            status=status,
            service_type=service_type,
            shipper_id=shipper_id,
            date_from=start_date,
            date_to=end_date,
        )
        range_filters = bookings._filters(checker, shipper_id=shipper_id, date_from=start_date, date_to=end_date)

        total_amount = func.coalesce(func.sum(Booking.total_amount), 0)
        count, amount, weight = (await self.db.execute(
            select(func.count(Booking.id), total_amount, func.coalesce(func.sum(Booking.weight), 0))
            .where(and_(*filters))
        )).one()

        detail_rows = (await self.db.execute(
            select(Booking, Shipper.company, Shipper.name)
            .join(Shipper, Booking.shipper_id == Shipper.id)
            .where(and_(*filters))
            .order_by(Booking.booking_date.desc())
            .limit(100)
        )).all()

        status_rows = (await self.db.execute(
            select(Booking.status, func.count(Booking.id), total_amount)
            .where(and_(*range_filters))
            .group_by(Booking.status)
        )).all()

        service_rows = (await self.db.execute(
            select(
                Booking.service_type,
                func.count(Booking.id).label("bookings"),
                total_amount,
                func.avg(Booking.weight),
            )
            .where(and_(*filters))
            .group_by(Booking.service_type)
            .order_by(desc("bookings"))
        )).all()

        daily: Dict[date, dict] = defaultdict(lambda: {"count": 0, "amount": ZERO})
        for booked_at, booking_amount in (await self.db.execute(
            select(Booking.booking_date, Booking.total_amount).where(and_(*filters))
        )).all():
            bucket = daily[booked_at.date()]
            bucket["count"] += 1
            bucket["amount"] += booking_amount or ZERO

        return {
            "filters": {
                "start_date": start_date,
                "end_date": end_date,
                "status": status,
                "service_type": service_type,
                "shipper_id": shipper_id,
            },
            "summary": {
                "total_bookings": count,
                "total_amount": float(amount or 0),
                "avg_booking_value": round(float(amount or 0) / count, 2) if count else 0.0,
                "total_weight": float(weight or 0),
            },
            "bookings": [
                {
                    "id": booking.id,
                    "awb_number": booking.awb_number,
                    "shipper_name": company or name,
                    "consignee_name": booking.consignee_name,
                    "consignee_city": booking.consignee_city,
                    "service_type": booking.service_type,
                    "status": booking.status,
                    "weight": float(booking.weight),
                    "total_amount": float(booking.total_amount or 0),
                    "booking_date": booking.booking_date,
                }
                for booking, company, name in detail_rows
            ],
            "status_breakdown": [
                {"status": row[0], "count": row[1], "total_amount": float(row[2] or 0)}
                for row in status_rows
            ],
            "service_breakdown": [
                {
                    "service_type": row[0],
                    "count": row[1],
                    "total_amount": float(row[2] or 0),
                    "avg_weight": round(float(row[3] or 0), 3),
                }
                for row in service_rows
            ],
            "daily_trend": [
                {"date": day, "count": bucket["count"], "total_amount": float(bucket["amount"])}
                for day, bucket in sorted(daily.items())
            ],
            "top_shippers": await self._top_shippers_by_bookings(filters, "bookings", 10),
        }

    async def performance_report(self, start_date: date, end_date: date) -> dict:
        """Delivery timeliness, exception handling, delivered revenue and a satisfaction rate."""
        start, end = day_bounds(start_date, end_date)
        delivered_in_range = [Booking.delivery_date >= start, Booking.delivery_date <= end]
        booked_in_range = [Booking.booking_date >= start, Booking.booking_date <= end]

        deliveries = await self._delivered_rows(delivered_in_range)

        exception_rows = (await self.db.execute(
            select(ShipmentException.exception_type, ShipmentException.created_at, ShipmentException.resolved_at)
            .where(and_(ShipmentException.created_at >= start, ShipmentException.created_at <= end))
        )).all()
        exceptions: Dict[str, dict] = {}
        for exception_type, created_at, resolved_at in exception_rows:
            group = exceptions.setdefault(exception_type, {"count": 0, "resolved": 0, "hours": 0.0})
            group["count"] += 1
            if resolved_at is not None:
                group["resolved"] += 1
                group["hours"] += (resolved_at - created_at).total_seconds() / 3600

        cod = case((Booking.payment_mode == PaymentMode.COD.value, Booking.cod_amount), else_=0)
        revenue, cod_amount, shipping, booking_count = (await self.db.execute(
            select(
                func.coalesce(func.sum(Booking.total_amount), 0),
                func.coalesce(func.sum(cod), 0),
                func.coalesce(func.sum(Booking.shipping_charge), 0),
                func.count(Booking.id),
            ).where(and_(Booking.status == BookingStatus.DELIVERED.value, *booked_in_range))
        )).one()

        total_deliveries = len(deliveries)
        total_exceptions = len(exception_rows)
        if total_deliveries:
            satisfaction = max(0.0, percent(total_deliveries - total_exceptions, total_deliveries, 2))
        else:
            satisfaction = 100.0

        return {
            "filters": {"start_date": start_date, "end_date": end_date},
            "delivery_performance": delivery_performance(deliveries),
            "exception_analysis": [
                {
                    "exception_type": exception_type,
                    "count": g["count"],
                    "resolved": g["resolved"],
                    "avg_resolution_hours": round(g["hours"] / g["resolved"], 2) if g["resolved"] else None,
                }
                for exception_type, g in sorted(exceptions.items(), key=lambda item: -item[1]["count"])
            ],
            "financial": {
                "revenue": float(revenue or 0),
                "cod_amount": float(cod_amount or 0),
                "shipping_charges": float(shipping or 0),
                "booking_count": booking_count,
            },
            "satisfaction": {
                "total_deliveries": total_deliveries,
                "total_exceptions": total_exceptions,
                "satisfaction_rate": satisfaction,
            },
        }

    # ==================== DASHBOARD ANALYTICS ====================

    async def revenue_analytics(self, days: int = 30) -> dict:
        """Daily invoiced revenue over the last ``days`` days, gaps filled with zeros."""
        today = today_utc()
        since_day = today - timedelta(days=days)
        since = utc_now() - timedelta(days=days)

        periods = await self._invoice_periods(self._invoice_filters(date_from=since_day), "day")
        empty = {"revenue": ZERO, "paid": ZERO, "count": 0}
        daily = [
            {
                "date": day,
                "revenue": float(periods.get(day, empty)["revenue"]),
                "paid": float(periods.get(day, empty)["paid"]),
                "count": periods.get(day, empty)["count"],
            }
            for day in period_axis(since_day, today)
        ]

        booked_since = [Booking.booking_date >= since]
        return {
            "days": days,
            "daily_revenue": daily,
            "by_service": await self._revenue_by_service(booked_since),
            "by_gateway": await self._revenue_by_gateway(since),
            "top_shippers": await self._top_shippers_by_bookings(
                [Booking.status == BookingStatus.DELIVERED.value, *booked_since], "revenue", 10
            ),
        }

    async def booking_analytics(self, checker: Optional[PermissionChecker] = None, days: int = 30) -> dict:
        today = today_utc()
        since = utc_now() - timedelta(days=days)
        filters = BookingService(self.db)._filters(checker)
        booked_since = [Booking.booking_date >= since, *filters]

        daily: Dict[date, dict] = defaultdict(lambda: {"count": 0, "delivered": 0, "cancelled": 0})
        for booked_at, status in (await self.db.execute(
            select(Booking.booking_date, Booking.status).where(and_(*booked_since))
        )).all():
            bucket = daily[booked_at.date()]
            bucket["count"] += 1
            if status == BookingStatus.DELIVERED.value:
                bucket["delivered"] += 1
            elif status == BookingStatus.CANCELLED.value:
                bucket["cancelled"] += 1

        service_rows = (await self.db.execute(
            select(Booking.service_type, func.count(Booking.id), func.coalesce(func.sum(Booking.total_amount), 0))
            .where(and_(*booked_since))
            .group_by(Booking.service_type)
        )).all()
        status_rows = (await self.db.execute(
            select(Booking.status, func.count(Booking.id)).where(and_(*booked_since)).group_by(Booking.status)
        )).all()

        recent = delivery_performance(await self._delivered_rows([Booking.delivery_date >= since, *filters]))
        on_time = sum(s["on_time"] for s in recent)
        delayed = sum(s["delayed"] for s in recent)

        return {
            "days": days,
            "daily_bookings": [
                {"date": day, **daily.get(day, {"count": 0, "delivered": 0, "cancelled": 0})}
                for day in period_axis(today - timedelta(days=days), today)
            ],
            "by_service": [
                {"service_type": row[0], "count": row[1], "total_amount": float(row[2] or 0)}
                for row in service_rows
            ],
            "by_status": {row[0]: row[1] for row in status_rows},
            "delivery_performance": {"on_time": on_time, "delayed": delayed, "total": on_time + delayed},
            "avg_delivery_time": [
                {
                    "service_type": s["service_type"],
                    "avg_days": s["avg_delivery_days"],
                    "count": s["total_deliveries"],
                }
                for s in delivery_performance(await self._delivered_rows(filters))
            ],
        }

    async def performance_metrics(self) -> dict:
        """Thirty-day success, collection and satisfaction rates plus recent activity counts."""
        now = utc_now()
        last_30 = now - timedelta(days=30)
        last_7 = now - timedelta(days=7)
        last_24h = now - timedelta(hours=24)
        delivered = Booking.status == BookingStatus.DELIVERED.value

        async def count(stmt) -> int:
            return (await self.db.execute(stmt)).scalar() or 0

        total_bookings = await count(select(func.count(Booking.id)).where(Booking.booking_date >= last_30))
        delivered_bookings = await count(
            select(func.count(Booking.id)).where(delivered, Booking.delivery_date >= last_30)
        )

        invoiced, collected = (await self.db.execute(
            select(
                func.coalesce(func.sum(Invoice.grand_total), 0),
                func.coalesce(func.sum(Invoice.paid_amount), 0),
            ).where(and_(*self._invoice_filters(date_from=last_30.date())))
        )).one()

        with_exception = select(ShipmentException.booking_id)
        delivered_clean = await count(
            select(func.count(Booking.id)).where(
                delivered,
                Booking.delivery_date >= last_30,
                Booking.id.not_in(with_exception),
            )
        )

        pickups = (await self.db.execute(
            select(Booking.booking_date, func.min(BookingStatusHistory.recorded_at))
            .join(BookingStatusHistory, BookingStatusHistory.booking_id == Booking.id)
            .where(
                BookingStatusHistory.status == BookingStatus.PICKED_UP.value,
                Booking.booking_date >= last_30,
            )
            .group_by(Booking.id, Booking.booking_date)
        )).all()
        pickup_hours = [(picked - booked).total_seconds() / 3600 for booked, picked in pickups]

        return {
            "success_rate": percent(delivered_bookings, total_bookings),
            "collection_rate": percent(collected, invoiced),
            "satisfaction_rate": percent(delivered_clean, delivered_bookings),
            "avg_pickup_hours": round(sum(pickup_hours) / len(pickup_hours), 1) if pickup_hours else 0.0,
            "active_shippers": await count(
                select(func.count(func.distinct(Booking.shipper_id))).where(Booking.booking_date >= last_7)
            ),
            "recent_activity": {
                "new_bookings": await count(select(func.count(Booking.id)).where(Booking.booking_date >= last_24h)),
                "new_payments": await count(
                    select(func.count(Payment.id)).where(
                        Payment.status == PaymentState.COMPLETED.value,
                        Payment.created_at >= last_24h,
                    )
                ),
                "deliveries": await count(
                    select(func.count(Booking.id)).where(delivered, Booking.delivery_date >= last_24h)
                ),
            },
        }

    async def recent_activities(self, limit: int = 20) -> dict:
        """Newest bookings, payments and invoices with their shipper names."""
        bookings = (await self.db.execute(
            select(Booking, Shipper.company, Shipper.name)
            .join(Shipper, Booking.shipper_id == Shipper.id)
            .order_by(Booking.created_at.desc())
            .limit(limit)
        )).all()
        payments = (await self.db.execute(
            select(Payment, Shipper.company, Shipper.name)
            .join(Shipper, Payment.shipper_id == Shipper.id)
            .order_by(Payment.created_at.desc())
            .limit(limit)
        )).all()
        invoices = (await self.db.execute(
            select(Invoice, Shipper.company, Shipper.name)
            .join(Shipper, Invoice.shipper_id == Shipper.id)
            .order_by(Invoice.created_at.desc())
            .limit(limit)
        )).all()

        return {
            "bookings": [
                {
                    "id": b.id,
                    "awb_number": b.awb_number,
                    "shipper_name": company or name,
                    "status": b.status,
                    "service_type": b.service_type,
                    "total_amount": float(b.total_amount or 0),
                    "created_at": b.created_at,
                }
                for b, company, name in bookings
            ],
            "payments": [
                {
                    "id": p.id,
                    "transaction_id": p.transaction_id,
                    "shipper_name": company or name,
                    "amount": float(p.amount),
                    "gateway": p.gateway,
                    "status": p.status,
                    "created_at": p.created_at,
                }
                for p, company, name in payments
            ],
            "invoices": [
                {
                    "id": i.id,
                    "invoice_number": i.invoice_number,
                    "shipper_name": company or name,
                    "grand_total": float(i.grand_total or 0),
                    "status": i.status,
                    "created_at": i.created_at,
                }
                for i, company, name in invoices
            ],
        }

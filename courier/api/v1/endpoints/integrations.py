"""
Public API for third-party integrators.

Authenticated with X-API-Key / X-API-Secret instead of a user token.
Every response is wrapped as {"success": true, "data": ...} with
camelCase field names.
"""
from datetime import date
from typing import Annotated, Optional
import logging
from math import ceil

from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError

from courier.api.deps import DB, require_api_permission
from courier.core.exceptions import CourierException, NotFound, RequiredFieldsMissing
from courier.models.api_key import ApiKey, ApiPermission
from courier.models.booking import PaymentMode
from courier.schemas.booking import BookingCreate
from courier.schemas.integration import (
    ApiBookingConsignee,
    ApiBookingCreate,
    ApiBookingCreated,
    ApiBookingDates,
    ApiBookingDetail,
    ApiCharges,
    ApiConsigneeSummary,
    ApiInvoiceList,
    ApiInvoiceSummary,
    ApiPagination,
    ApiProofOfDelivery,
    ApiRateCharges,
    ApiRateRequest,
    ApiRateResult,
    ApiTrackingEntry,
    ApiTrackingResult,
    dump_camel,
)
from courier.schemas.shipper import ConsigneeCreate
from courier.services.booking_service import BookingService
from courier.services.invoice_service import InvoiceService
from courier.services.rate_calculator import RateCalculator, expected_delivery
from courier.services.shipper_service import ShipperService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Integrator API"])

BOOKING_REQUIRED_FIELDS = ["consignee", "serviceType", "weight"]
RATE_REQUIRED_FIELDS = ["serviceType", "weight"]


def envelope(model) -> dict:
    return {"success": True, "data": dump_camel(model)}


def tracking_entries(booking) -> list[ApiTrackingEntry]:
    return [
        ApiTrackingEntry(status=h.status, location=h.location, remarks=h.remarks, timestamp=h.recorded_at)
        for h in booking.status_history
    ]


def current_location(booking) -> str:
    for entry in reversed(booking.status_history):
        if entry.location:
            return entry.location
    return "In Transit"


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: ApiBookingCreate,
    db: DB,
    api_key: Annotated[ApiKey, Depends(require_api_permission(ApiPermission.BOOKING_CREATE.value))],
):
    """
    Create a booking for the key's shipper.

    The consignee is looked up by phone in the shipper's address book and
    added when absent. Payment mode defaults to Prepaid.
    """
    if not data.consignee or not data.service_type or not data.weight:
        raise RequiredFieldsMissing(BOOKING_REQUIRED_FIELDS)

    consignee_in = data.consignee
    dimensions = data.dimensions
    try:
        consignee = ConsigneeCreate(
            name=consignee_in.name,
            mobile=consignee_in.phone,
            email=consignee_in.email,
            street=consignee_in.address,
            city=consignee_in.city,
            state=consignee_in.state,
            postal_code=consignee_in.pincode,
        )
        saved = await ShipperService(db).find_or_create_consignee(api_key.shipper_id, consignee)
        booking_in = BookingCreate(
            shipper_id=api_key.shipper_id,
            consignee_id=saved.id,
            service_type=data.service_type,
            shipment_type=data.shipment_type or "Parcel",
            weight=data.weight,
            pieces=data.pieces,
            length=dimensions.length if dimensions else None,
            width=dimensions.width if dimensions else None,
            height=dimensions.height if dimensions else None,
            dimension_unit=dimensions.unit if dimensions else "cm",
            payment_mode=data.payment_mode or PaymentMode.PREPAID.value,
            cod_amount=data.cod_amount or 0,
            declared_value=data.package_value or 0,
            description=data.description,
            reference_number=data.reference_number,
            special_instructions=data.special_instructions,
        )
    except ValidationError as e:
        raise CourierException(
            "Invalid booking payload",
            errors=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
        )

    booking = await BookingService(db).create_booking(booking_in)
    logger.info(f"Integrator key {api_key.api_key} created booking {booking.awb_number}")

    return envelope(ApiBookingCreated(
        awb_number=booking.awb_number,
        booking_id=str(booking.id),
        status=booking.status,
        expected_delivery=booking.expected_delivery_date,
        total_amount=float(booking.total_amount),
        consignee=ApiConsigneeSummary(
            name=booking.consignee_name,
            phone=booking.consignee_mobile,
            address=booking.consignee_street,
        ),
        charges=ApiCharges(
            shipping=float(booking.shipping_charge),
            insurance=float(booking.insurance_charge),
            cod=float(booking.cod_charge),
            fuel_surcharge=float(booking.fuel_surcharge),
            gst=float(booking.gst_amount),
            total=float(booking.total_amount),
        ),
    ))


@router.get("/bookings/{awb_number}")
async def get_booking(
    awb_number: str,
    db: DB,
    api_key: Annotated[ApiKey, Depends(require_api_permission(ApiPermission.BOOKING_READ.value))],
):
    """A booking of the key's own shipper."""
    booking = await BookingService(db).get_by_awb(awb_number, shipper_id=api_key.shipper_id)
    if booking is None:
        raise NotFound("Booking not found")

    return envelope(ApiBookingDetail(
        awb_number=booking.awb_number,
        status=booking.status,
        service_type=booking.service_type,
        weight=float(booking.weight),
        consignee=ApiBookingConsignee(
            name=booking.consignee_name,
            phone=booking.consignee_mobile,
            city=booking.consignee_city,
            state=booking.consignee_state,
        ),
        dates=ApiBookingDates(
            booked=booking.booking_date,
            expected=booking.expected_delivery_date,
            delivered=booking.delivery_date,
        ),
        tracking=tracking_entries(booking),
    ))


@router.get("/track/{awb_number}")
async def track_shipment(
    awb_number: str,
    db: DB,
    api_key: Annotated[ApiKey, Depends(require_api_permission(ApiPermission.TRACKING_READ.value))],
):
    booking = await BookingService(db).get_by_awb(awb_number)
    if booking is None:
        raise NotFound("Shipment not found")

    return envelope(ApiTrackingResult(
        awb_number=booking.awb_number,
        current_status=booking.status,
        current_location=current_location(booking),
        expected_delivery=booking.expected_delivery_date,
        timeline=tracking_entries(booking),
        pod=ApiProofOfDelivery(available=bool(booking.delivery_proof), url=booking.delivery_proof),
    ))


@router.post("/rates/calculate")
async def calculate_rate(
    data: ApiRateRequest,
    api_key: Annotated[ApiKey, Depends(require_api_permission(ApiPermission.RATE_CALCULATE.value))],
):
    """Rate quote; a COD amount is always charged when given."""
    if not data.service_type or not data.weight:
        raise RequiredFieldsMissing(RATE_REQUIRED_FIELDS)

    breakdown = RateCalculator().calculate(
        data.service_type,
        data.weight,
        declared_value=data.package_value,
        cod_amount=data.cod_amount,
    ).rounded()

    return envelope(ApiRateResult(
        service_type=data.service_type,
        weight=float(data.weight),
        charges=ApiRateCharges(
            shipping=float(breakdown.shipping),
            insurance=float(breakdown.insurance),
            cod=float(breakdown.cod),
            fuel_surcharge=float(breakdown.fuel_surcharge),
            gst=float(breakdown.gst),
            subtotal=float(breakdown.subtotal),
            total=float(breakdown.total),
        ),
        estimated_delivery=expected_delivery(data.service_type, date.today()),
    ))


@router.get("/invoices")
async def list_invoices(
    db: DB,
    api_key: Annotated[ApiKey, Depends(require_api_permission(ApiPermission.INVOICE_READ.value))],
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    limit: int = Query(50, ge=1, le=200),
    page: int = Query(1, ge=1),
):
    """Invoices of the key's own shipper."""
    invoices, total = await InvoiceService(db).get_invoices(
        shipper_id=api_key.shipper_id,
        status=status_filter,
        date_from=start_date,
        date_to=end_date,
        skip=(page - 1) * limit,
        limit=limit,
    )

    result = ApiInvoiceList(
        data=[
            ApiInvoiceSummary(
                invoice_number=inv.invoice_number,
                invoice_date=inv.invoice_date,
                due_date=inv.due_date,
                total_amount=float(inv.grand_total),
                paid_amount=float(inv.paid_amount),
                balance_amount=float(inv.balance_amount),
                status=inv.status,
                payment_status=inv.payment_status,
            )
            for inv in invoices
        ],
        pagination=ApiPagination(total=total, page=page, limit=limit, pages=ceil(total / limit)),
    )
    return dump_camel(result)

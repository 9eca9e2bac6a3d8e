from datetime import date
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, Permissions, require_permissions, ensure_status_override
from courier.schemas.base import MessageResponse
from courier.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingResponse,
    BookingDetailResponse,
    BookingListResponse,
    BookingTrackingResponse,
    BookingStatusHistoryResponse,
    BookingStatusUpdate,
    BookingCancelRequest,
    ProofOfDeliveryRequest,
    BulkBookingRequest,
    BulkBookingResponse,
    BulkBookingError,
    BookingStats,
)
from courier.services.booking_service import BookingService


router = APIRouter(tags=["Bookings"])


def tracking_view(booking) -> BookingTrackingResponse:
    return BookingTrackingResponse(
        awb_number=booking.awb_number,
        status=booking.status,
        service_type=booking.service_type,
        origin_city=booking.origin_city,
        destination_city=booking.consignee_city,
        booking_date=booking.booking_date,
        expected_delivery_date=booking.expected_delivery_date,
        delivery_date=booking.delivery_date,
        delivered_to=booking.delivered_to,
        history=[BookingStatusHistoryResponse.model_validate(h) for h in booking.status_history],
    )


@router.get(
    "",
    response_model=BookingListResponse,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def list_bookings(
    db: DB,
    checker: Permissions,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="AWB, reference, consignee name or mobile"),
    status_filter: Optional[str] = Query(None, alias="status"),
    shipper_id: Optional[uuid.UUID] = None,
    service_type: Optional[str] = None,
    destination_type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    """
    Get paginated bookings within the user's data scope.
    Requires: booking:view permission
    """
    skip = (page - 1) * size
    bookings, total = await BookingService(db).get_bookings(
        checker,
        skip=skip,
        limit=size,
        search=search,
        status=status_filter,
        shipper_id=shipper_id,
        service_type=service_type,
        destination_type=destination_type,
        date_from=date_from,
        date_to=date_to,
    )

    return BookingListResponse(
        items=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get(
    "/stats",
    response_model=BookingStats,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def booking_stats(
    db: DB,
    checker: Permissions,
    shipper_id: Optional[uuid.UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    stats = await BookingService(db).get_stats(checker, shipper_id=shipper_id, date_from=date_from, date_to=date_to)
    return BookingStats(**stats)


@router.get(
    "/awb/{awb_number}",
    response_model=BookingDetailResponse,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def get_booking_by_awb(awb_number: str, db: DB):
    booking = await BookingService(db).get_by_awb(awb_number)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return BookingDetailResponse.model_validate(booking)


@router.get(
    "/track/{awb_number}",
    response_model=BookingTrackingResponse,
    dependencies=[Depends(require_permissions("tracking:view"))]
)
async def track_booking(awb_number: str, db: DB):
    """Tracking view of a booking with its full status history."""
    booking = await BookingService(db).get_by_awb(awb_number)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return tracking_view(booking)


@router.post(
    "",
    response_model=BookingDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("booking:add"))]
)
async def create_booking(data: BookingCreate, db: DB, current_user: CurrentUser):
    """
    Create a booking: rates it, assigns the AWB and records the first status.
    Requires: booking:add permission
    """
    booking = await BookingService(db).create_booking(data, current_user)
    return BookingDetailResponse.model_validate(booking)


@router.post(
    "/bulk",
    response_model=BulkBookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("booking:add"))]
)
async def bulk_create_bookings(data: BulkBookingRequest, db: DB, current_user: CurrentUser):
    """
    Create many bookings; rejected rows are reported by index and do not
    stop the others.
    """
    created, errors = await BookingService(db).bulk_create(data.bookings, current_user)
    return BulkBookingResponse(
        created=created,
        errors=[BulkBookingError(**e) for e in errors],
        total=len(data.bookings),
        success_count=len(created),
        failure_count=len(errors),
    )


@router.get(
    "/{booking_id}",
    response_model=BookingDetailResponse,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def get_booking(booking_id: uuid.UUID, db: DB):
    booking = await BookingService(db).get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return BookingDetailResponse.model_validate(booking)


@router.put(
    "/{booking_id}",
    response_model=BookingDetailResponse,
    dependencies=[Depends(require_permissions("booking:edit"))]
)
async def update_booking(booking_id: uuid.UUID, data: BookingUpdate, db: DB):
    """
    Edit a booking that is not yet Delivered or Cancelled. Changing a
    rating field re-rates it.
    """
    booking = await BookingService(db).update_booking(booking_id, data)
    return BookingDetailResponse.model_validate(booking)


@router.delete(
    "/{booking_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions("booking:delete"))]
)
async def delete_booking(booking_id: uuid.UUID, db: DB):
    await BookingService(db).delete_booking(booking_id)
    return MessageResponse(message="Booking deleted successfully")


@router.post(
    "/{booking_id}/status",
    response_model=BookingDetailResponse,
    dependencies=[Depends(require_permissions("tracking:edit"))]
)
async def update_booking_status(
    booking_id: uuid.UUID,
    data: BookingStatusUpdate,
    db: DB,
    current_user: CurrentUser,
    checker: Permissions,
):
    """
    Append a status to the booking's history.
    Requires: tracking:edit permission; override also requires Super Admin
    """
    ensure_status_override(checker, data.override)
    booking = await BookingService(db).update_status(booking_id, data, current_user)
    return BookingDetailResponse.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingDetailResponse,
    dependencies=[Depends(require_permissions("booking:edit"))]
)
async def cancel_booking(
    booking_id: uuid.UUID,
    data: BookingCancelRequest,
    db: DB,
    current_user: CurrentUser,
):
    booking = await BookingService(db).cancel_booking(booking_id, data.reason, current_user)
    return BookingDetailResponse.model_validate(booking)


@router.post(
    "/{booking_id}/pod",
    response_model=BookingDetailResponse,
    dependencies=[Depends(require_permissions("tracking:edit"))]
)
async def upload_proof_of_delivery(
    booking_id: uuid.UUID,
    data: ProofOfDeliveryRequest,
    db: DB,
    current_user: CurrentUser,
):
    booking = await BookingService(db).upload_pod(booking_id, data, current_user)
    return BookingDetailResponse.model_validate(booking)

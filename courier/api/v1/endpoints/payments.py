from datetime import date
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, require_permissions
from courier.schemas.payment import (
    PaymentCreate,
    PaymentCompleteRequest,
    PaymentFailRequest,
    PaymentRefundRequest,
    PaymentResponse,
    PaymentListResponse,
    PaymentStats,
)
from courier.services.payment_service import PaymentService


router = APIRouter(tags=["Payments"])


@router.get(
    "",
    response_model=PaymentListResponse,
    dependencies=[Depends(require_permissions("payments:view"))]
)
async def list_payments(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    shipper_id: Optional[uuid.UUID] = None,
    invoice_id: Optional[uuid.UUID] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    gateway: Optional[str] = None,
):
    skip = (page - 1) * size
    payments, total = await PaymentService(db).get_payments(
        shipper_id=shipper_id,
        invoice_id=invoice_id,
        status=status_filter,
        gateway=gateway,
        skip=skip,
        limit=size,
    )
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get(
    "/stats",
    response_model=PaymentStats,
    dependencies=[Depends(require_permissions("payments:view"))]
)
async def payment_stats(
    db: DB,
    shipper_id: Optional[uuid.UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    stats = await PaymentService(db).get_stats(shipper_id=shipper_id, date_from=date_from, date_to=date_to)
    return PaymentStats(**stats)


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("payments:add"))]
)
async def create_payment(data: PaymentCreate, db: DB, current_user: CurrentUser):
    """
    Start a gateway payment for an invoice. The amount defaults to the
    invoice balance.
    Requires: payments:add permission
    """
    payment = await PaymentService(db).create_payment(data, current_user)
    return PaymentResponse.model_validate(payment)


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    dependencies=[Depends(require_permissions("payments:view"))]
)
async def get_payment(payment_id: uuid.UUID, db: DB):
    payment = await PaymentService(db).get_payment(payment_id)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/processing",
    response_model=PaymentResponse,
    dependencies=[Depends(require_permissions("payments:edit"))]
)
async def mark_payment_processing(payment_id: uuid.UUID, db: DB):
    payment = await PaymentService(db).mark_processing(payment_id)
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/complete",
    response_model=PaymentResponse,
    dependencies=[Depends(require_permissions("payments:edit"))]
)
async def complete_payment(
    payment_id: uuid.UUID,
    data: PaymentCompleteRequest,
    db: DB,
    current_user: CurrentUser,
):
    """Complete the payment and record it on its invoice."""
    payment = await PaymentService(db).complete_payment(payment_id, data, current_user)
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/fail",
    response_model=PaymentResponse,
    dependencies=[Depends(require_permissions("payments:edit"))]
)
async def fail_payment(payment_id: uuid.UUID, data: PaymentFailRequest, db: DB):
    payment = await PaymentService(db).fail_payment(payment_id, data)
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/cancel",
    response_model=PaymentResponse,
    dependencies=[Depends(require_permissions("payments:edit"))]
)
async def cancel_payment(payment_id: uuid.UUID, db: DB):
    payment = await PaymentService(db).cancel_payment(payment_id)
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/refund",
    response_model=PaymentResponse,
    dependencies=[Depends(require_permissions("payments:edit"))]
)
async def refund_payment(payment_id: uuid.UUID, data: PaymentRefundRequest, db: DB):
    payment = await PaymentService(db).refund_payment(payment_id, data)
    return PaymentResponse.model_validate(payment)

from datetime import date
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, require_permissions
from courier.schemas.base import MessageResponse
from courier.schemas.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceResponse,
    InvoiceDetailResponse,
    InvoiceListResponse,
    InvoiceFromBookingRequest,
    ConsolidatedInvoiceRequest,
    RecordPaymentRequest,
    InvoiceCancelRequest,
    InvoiceStats,
)
from courier.services.invoice_service import InvoiceService


router = APIRouter(tags=["Invoices"])


@router.get(
    "",
    response_model=InvoiceListResponse,
    dependencies=[Depends(require_permissions("invoicing:view"))]
)
async def list_invoices(
    db: DB,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    shipper_id: Optional[uuid.UUID] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = None,
    search: Optional[str] = Query(None, description="Invoice number"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    """
    Get paginated invoices.
    Requires: invoicing:view permission
    """
    skip = (page - 1) * size
    invoices, total = await InvoiceService(db).get_invoices(
        shipper_id=shipper_id,
        status=status_filter,
        payment_status=payment_status,
        search=search,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=size,
    )

    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(i) for i in invoices],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get(
    "/stats",
    response_model=InvoiceStats,
    dependencies=[Depends(require_permissions("invoicing:view"))]
)
async def invoice_stats(
    db: DB,
    shipper_id: Optional[uuid.UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    stats = await InvoiceService(db).get_stats(shipper_id=shipper_id, date_from=date_from, date_to=date_to)
    return InvoiceStats(**stats)


@router.post(
    "",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("invoicing:add"))]
)
async def create_invoice(data: InvoiceCreate, db: DB, current_user: CurrentUser):
    """
    Create an invoice from explicit line items.
    Requires: invoicing:add permission
    """
    invoice = await InvoiceService(db).create_invoice(data, current_user)
    return InvoiceDetailResponse.model_validate(invoice)


@router.post(
    "/from-booking",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("invoicing:add"))]
)
async def create_invoice_from_booking(data: InvoiceFromBookingRequest, db: DB, current_user: CurrentUser):
    """Invoice a single booking from its stored charges."""
    invoice = await InvoiceService(db).create_from_booking(
        data.booking_id, due_date=data.due_date, notes=data.notes, user=current_user
    )
    return InvoiceDetailResponse.model_validate(invoice)


@router.post(
    "/consolidated",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("invoicing:add"))]
)
async def create_consolidated_invoice(data: ConsolidatedInvoiceRequest, db: DB, current_user: CurrentUser):
    invoice = await InvoiceService(db).create_consolidated(data, current_user)
    return InvoiceDetailResponse.model_validate(invoice)


@router.get(
    "/{invoice_id}",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_permissions("invoicing:view"))]
)
async def get_invoice(invoice_id: uuid.UUID, db: DB):
    invoice = await InvoiceService(db).get_invoice(invoice_id)
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return InvoiceDetailResponse.model_validate(invoice)


@router.put(
    "/{invoice_id}",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_permissions("invoicing:edit"))]
)
async def update_invoice(invoice_id: uuid.UUID, data: InvoiceUpdate, db: DB):
    """
    Edit an invoice that is not Paid or Cancelled; totals are recomputed
    when items, discount or tax inputs change.
    """
    invoice = await InvoiceService(db).update_invoice(invoice_id, data)
    return InvoiceDetailResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/send",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_permissions("invoicing:edit"))]
)
async def send_invoice(invoice_id: uuid.UUID, db: DB):
    invoice = await InvoiceService(db).mark_sent(invoice_id)
    return InvoiceDetailResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/payments",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_permissions("payments:add"))]
)
async def record_invoice_payment(
    invoice_id: uuid.UUID,
    data: RecordPaymentRequest,
    db: DB,
    current_user: CurrentUser,
):
    """
    Record a payment against the invoice balance.
    Requires: payments:add permission
    """
    invoice = await InvoiceService(db).record_payment(invoice_id, data, current_user)
    return InvoiceDetailResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_permissions("invoicing:edit"))]
)
async def cancel_invoice(
    invoice_id: uuid.UUID,
    data: InvoiceCancelRequest,
    db: DB,
    current_user: CurrentUser,
):
    """Cancel an invoice that has no payments recorded."""
    invoice = await InvoiceService(db).cancel_invoice(invoice_id, data.reason, current_user)
    return InvoiceDetailResponse.model_validate(invoice)


@router.delete(
    "/{invoice_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions("invoicing:delete"))]
)
async def delete_invoice(invoice_id: uuid.UUID, db: DB):
    await InvoiceService(db).delete_invoice(invoice_id)
    return MessageResponse(message="Invoice deleted successfully")

from typing import List, Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, require_permissions
from courier.models.cheque import ChequeStatus
from courier.schemas.base import MessageResponse
from courier.schemas.cheque import (
    ChequeCreate,
    ChequeUpdate,
    ChequeStatusUpdate,
    ChequeResponse,
    ChequeListResponse,
    ChequeStats,
)
from courier.services.cheque_service import ChequeService
from courier.services.shipper_service import ShipperService


router = APIRouter(tags=["Cheques"])


@router.get(
    "",
    response_model=ChequeListResponse,
    dependencies=[Depends(require_permissions("payments:view"))]
)
async def list_cheques(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    shipper_id: Optional[uuid.UUID] = None,
    status_filter: Optional[ChequeStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Cheque number, bank or reference"),
):
    skip = (page - 1) * size
    cheques, total = await ChequeService(db).get_cheques(
        shipper_id=shipper_id,
        status=status_filter.value if status_filter else None,
        search=search,
        skip=skip,
        limit=size,
    )
    return ChequeListResponse(
        items=[ChequeResponse.model_validate(c) for c in cheques],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get(
    "/stats",
    response_model=ChequeStats,
    dependencies=[Depends(require_permissions("payments:view"))]
)
async def cheque_stats(db: DB, shipper_id: Optional[uuid.UUID] = None):
    stats = await ChequeService(db).get_stats(shipper_id=shipper_id)
    return ChequeStats(**stats)


@router.get(
    "/shipper/{shipper_id}",
    response_model=List[ChequeResponse],
    dependencies=[Depends(require_permissions("payments:view"))]
)
async def list_shipper_cheques(shipper_id: uuid.UUID, db: DB):
    """Every cheque of one shipper, newest cheque date first."""
    await ShipperService(db).require_shipper(shipper_id)
    cheques, _ = await ChequeService(db).get_cheques(shipper_id=shipper_id, limit=None)
    return [ChequeResponse.model_validate(c) for c in cheques]


@router.post(
    "",
    response_model=ChequeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("payments:add"))]
)
async def create_cheque(data: ChequeCreate, db: DB, current_user: CurrentUser):
    """
    Record a cheque received from a shipper; it starts as Pending.
    Requires: payments:add permission
    """
    cheque = await ChequeService(db).create_cheque(data, current_user)
    return ChequeResponse.model_validate(cheque)


@router.get(
    "/{cheque_id}",
    response_model=ChequeResponse,
    dependencies=[Depends(require_permissions("payments:view"))]
)
async def get_cheque(cheque_id: uuid.UUID, db: DB):
    cheque = await ChequeService(db).get_cheque(cheque_id)
    if not cheque:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cheque not found")
    return ChequeResponse.model_validate(cheque)


@router.put(
    "/{cheque_id}",
    response_model=ChequeResponse,
    dependencies=[Depends(require_permissions("payments:edit"))]
)
async def update_cheque(cheque_id: uuid.UUID, data: ChequeUpdate, db: DB):
    cheque = await ChequeService(db).update_cheque(cheque_id, data)
    return ChequeResponse.model_validate(cheque)


@router.post(
    "/{cheque_id}/status",
    response_model=ChequeResponse,
    dependencies=[Depends(require_permissions("payments:edit"))]
)
async def change_cheque_status(
    cheque_id: uuid.UUID,
    data: ChequeStatusUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Mark a pending cheque Cleared, Bounced (reason required) or Cancelled.
    Requires: payments:edit permission
    """
    cheque = await ChequeService(db).change_status(cheque_id, data, current_user)
    return ChequeResponse.model_validate(cheque)


@router.delete(
    "/{cheque_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions("payments:delete"))]
)
async def delete_cheque(cheque_id: uuid.UUID, db: DB):
    await ChequeService(db).delete_cheque(cheque_id)
    return MessageResponse(message="Cheque deleted successfully")

from typing import List, Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, require_permissions
from courier.schemas.shipper import (
    ShipperCreate,
    ShipperUpdate,
    ShipperResponse,
    ShipperListResponse,
    ConsigneeCreate,
    ConsigneeResponse,
)
from courier.services.shipper_service import ShipperService


router = APIRouter(tags=["Shippers"])


@router.get(
    "",
    response_model=ShipperListResponse,
    dependencies=[Depends(require_permissions("shipper:view"))]
)
async def list_shippers(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search company, name, email or mobile"),
    status_filter: Optional[str] = Query(None, alias="status"),
    city: Optional[str] = None,
):
    """
    Get paginated list of shippers.
    Requires: shipper:view permission
    """
    skip = (page - 1) * size
    shippers, total = await ShipperService(db).get_shippers(
        search=search, status=status_filter, city=city, skip=skip, limit=size
    )

    return ShipperListResponse(
        items=[ShipperResponse.model_validate(s) for s in shippers],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post(
    "",
    response_model=ShipperResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("shipper:add"))]
)
async def create_shipper(data: ShipperCreate, db: DB, current_user: CurrentUser):
    shipper = await ShipperService(db).create_shipper(data, created_by=current_user.id)
    return ShipperResponse.model_validate(shipper)


@router.get(
    "/{shipper_id}",
    response_model=ShipperResponse,
    dependencies=[Depends(require_permissions("shipper:view"))]
)
async def get_shipper(shipper_id: uuid.UUID, db: DB):
    shipper = await ShipperService(db).get_shipper(shipper_id)
    if not shipper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shipper not found")
    return ShipperResponse.model_validate(shipper)


@router.put(
    "/{shipper_id}",
    response_model=ShipperResponse,
    dependencies=[Depends(require_permissions("shipper:edit"))]
)
async def update_shipper(shipper_id: uuid.UUID, data: ShipperUpdate, db: DB):
    shipper = await ShipperService(db).update_shipper(shipper_id, data)
    return ShipperResponse.model_validate(shipper)


@router.delete(
    "/{shipper_id}",
    response_model=ShipperResponse,
    dependencies=[Depends(require_permissions("shipper:delete"))]
)
async def deactivate_shipper(shipper_id: uuid.UUID, db: DB):
    """
    Deactivate a shipper. Shippers are never removed because bookings
    and invoices reference them.
    """
    shipper = await ShipperService(db).deactivate_shipper(shipper_id)
    return ShipperResponse.model_validate(shipper)


# ==================== CONSIGNEES ====================

@router.get(
    "/{shipper_id}/consignees",
    response_model=List[ConsigneeResponse],
    dependencies=[Depends(require_permissions("shipper:view"))]
)
async def list_consignees(shipper_id: uuid.UUID, db: DB, search: Optional[str] = None):
    service = ShipperService(db)
    await service.require_shipper(shipper_id)
    consignees = await service.get_consignees(shipper_id, search=search)
    return [ConsigneeResponse.model_validate(c) for c in consignees]


@router.post(
    "/{shipper_id}/consignees",
    response_model=ConsigneeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("shipper:edit"))]
)
async def add_consignee(shipper_id: uuid.UUID, data: ConsigneeCreate, db: DB):
    consignee = await ShipperService(db).add_consignee(shipper_id, data)
    return ConsigneeResponse.model_validate(consignee)

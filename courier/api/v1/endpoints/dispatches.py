from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, Permissions, require_permissions
from courier.schemas.base import MessageResponse
from courier.schemas.manifest import (
    DispatchCreate,
    DispatchResponse,
    DispatchDetailResponse,
    DispatchListResponse,
)
from courier.services.manifest_service import ManifestService


router = APIRouter(tags=["Dispatches"])


@router.get(
    "",
    response_model=DispatchListResponse,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def list_dispatches(
    db: DB,
    checker: Permissions,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Dispatch number"),
):
    skip = (page - 1) * size
    dispatches, total = await ManifestService(db).get_dispatches(
        checker, status=status_filter, search=search, skip=skip, limit=size
    )
    return DispatchListResponse(
        items=[DispatchResponse.model_validate(d) for d in dispatches],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post(
    "",
    response_model=DispatchDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("booking:add"))]
)
async def create_dispatch(data: DispatchCreate, db: DB, current_user: CurrentUser):
    """
    Create a dispatch from manifests and/or loose bookings.
    Requires: booking:add permission
    """
    dispatch = await ManifestService(db).create_dispatch(data, current_user)
    return DispatchDetailResponse.model_validate(dispatch)


@router.get(
    "/{dispatch_id}",
    response_model=DispatchDetailResponse,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def get_dispatch(dispatch_id: uuid.UUID, db: DB):
    dispatch = await ManifestService(db).get_dispatch(dispatch_id)
    if not dispatch:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dispatch not found")
    return DispatchDetailResponse.model_validate(dispatch)


@router.post(
    "/{dispatch_id}/dispatch",
    response_model=DispatchDetailResponse,
    dependencies=[Depends(require_permissions("booking:edit"))]
)
async def mark_dispatched(dispatch_id: uuid.UUID, db: DB, current_user: CurrentUser):
    dispatch = await ManifestService(db).mark_dispatched(dispatch_id, current_user)
    return DispatchDetailResponse.model_validate(dispatch)


@router.post(
    "/{dispatch_id}/receive",
    response_model=DispatchDetailResponse,
    dependencies=[Depends(require_permissions("booking:edit"))]
)
async def mark_received(dispatch_id: uuid.UUID, db: DB, current_user: CurrentUser):
    dispatch = await ManifestService(db).mark_received(dispatch_id, current_user)
    return DispatchDetailResponse.model_validate(dispatch)


@router.delete(
    "/{dispatch_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions("booking:delete"))]
)
async def delete_dispatch(dispatch_id: uuid.UUID, db: DB):
    await ManifestService(db).delete_dispatch(dispatch_id)
    return MessageResponse(message="Dispatch deleted successfully")

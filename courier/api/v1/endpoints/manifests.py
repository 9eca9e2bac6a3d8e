from datetime import date
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, Permissions, require_permissions
from courier.schemas.base import MessageResponse
from courier.schemas.manifest import (
    ManifestCreate,
    ManifestUpdate,
    ManifestResponse,
    ManifestDetailResponse,
    ManifestListResponse,
    ManifestDispatchRequest,
)
from courier.services.manifest_service import ManifestService


router = APIRouter(tags=["Manifests"])


@router.get(
    "",
    response_model=ManifestListResponse,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def list_manifests(
    db: DB,
    checker: Permissions,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Manifest number"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    """
    Get paginated manifests within the user's data scope.
    Requires: booking:view permission
    """
    skip = (page - 1) * size
    manifests, total = await ManifestService(db).get_manifests(
        checker,
        status=status_filter,
        search=search,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=size,
    )

    return ManifestListResponse(
        items=[ManifestResponse.model_validate(m) for m in manifests],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post(
    "",
    response_model=ManifestDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("booking:add"))]
)
async def create_manifest(data: ManifestCreate, db: DB, current_user: CurrentUser):
    """
    Group bookings into a manifest and snapshot their totals.
    Requires: booking:add permission
    """
    manifest = await ManifestService(db).create_manifest(data, current_user)
    return ManifestDetailResponse.model_validate(manifest)


@router.get(
    "/{manifest_id}",
    response_model=ManifestDetailResponse,
    dependencies=[Depends(require_permissions("booking:view"))]
)
async def get_manifest(manifest_id: uuid.UUID, db: DB):
    manifest = await ManifestService(db).get_manifest(manifest_id)
    if not manifest:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Manifest not found")
    return ManifestDetailResponse.model_validate(manifest)


@router.put(
    "/{manifest_id}",
    response_model=ManifestDetailResponse,
    dependencies=[Depends(require_permissions("booking:edit"))]
)
async def update_manifest(manifest_id: uuid.UUID, data: ManifestUpdate, db: DB):
    manifest = await ManifestService(db).update_manifest(manifest_id, data)
    return ManifestDetailResponse.model_validate(manifest)


@router.post(
    "/{manifest_id}/dispatch",
    response_model=ManifestDetailResponse,
    dependencies=[Depends(require_permissions("booking:edit"))]
)
async def dispatch_manifest(
    manifest_id: uuid.UUID,
    data: ManifestDispatchRequest,
    db: DB,
    current_user: CurrentUser,
):
    """Dispatch a Draft manifest; its open bookings move to In Transit."""
    manifest = await ManifestService(db).dispatch_manifest(
        manifest_id, location=data.location, remarks=data.remarks, user=current_user
    )
    return ManifestDetailResponse.model_validate(manifest)


@router.post(
    "/{manifest_id}/complete",
    response_model=ManifestDetailResponse,
    dependencies=[Depends(require_permissions("booking:edit"))]
)
async def complete_manifest(manifest_id: uuid.UUID, db: DB):
    manifest = await ManifestService(db).complete_manifest(manifest_id)
    return ManifestDetailResponse.model_validate(manifest)


@router.post(
    "/{manifest_id}/refresh-totals",
    response_model=ManifestDetailResponse,
    dependencies=[Depends(require_permissions("booking:edit"))]
)
async def refresh_manifest_totals(manifest_id: uuid.UUID, db: DB):
    """Re-snapshot totals from the bookings currently on the manifest."""
    manifest = await ManifestService(db).refresh_totals(manifest_id)
    return ManifestDetailResponse.model_validate(manifest)


@router.delete(
    "/{manifest_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions("booking:delete"))]
)
async def delete_manifest(manifest_id: uuid.UUID, db: DB):
    await ManifestService(db).delete_manifest(manifest_id)
    return MessageResponse(message="Manifest deleted successfully")

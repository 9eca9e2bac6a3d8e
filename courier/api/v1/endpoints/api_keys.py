from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, require_permissions
from courier.schemas.api_key import (
    ApiKeyCreate,
    ApiKeyUpdate,
    ApiKeyResponse,
    ApiKeyWithSecret,
    ApiKeyListResponse,
    ApiKeyUsage,
)
from courier.services.api_key_service import ApiKeyService


router = APIRouter(tags=["API Keys"])


def with_secret(api_key, secret: str) -> ApiKeyWithSecret:
    return ApiKeyWithSecret(**ApiKeyResponse.model_validate(api_key).model_dump(), api_secret=secret)


@router.get(
    "",
    response_model=ApiKeyListResponse,
    dependencies=[Depends(require_permissions("api:view"))]
)
async def list_api_keys(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    shipper_id: Optional[uuid.UUID] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
):
    skip = (page - 1) * size
    keys, total = await ApiKeyService(db).get_api_keys(
        shipper_id=shipper_id, status=status_filter, skip=skip, limit=size
    )
    return ApiKeyListResponse(
        items=[ApiKeyResponse.model_validate(k) for k in keys],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post(
    "",
    response_model=ApiKeyWithSecret,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("api:add"))]
)
async def create_api_key(data: ApiKeyCreate, db: DB, current_user: CurrentUser):
    """
    Issue an API key pair for a shipper. The secret is only returned here.
    Requires: api:add permission
    """
    api_key, secret = await ApiKeyService(db).create_api_key(data, current_user)
    return with_secret(api_key, secret)


@router.get(
    "/{key_id}",
    response_model=ApiKeyResponse,
    dependencies=[Depends(require_permissions("api:view"))]
)
async def get_api_key(key_id: uuid.UUID, db: DB):
    api_key = await ApiKeyService(db).get_api_key(key_id)
    if not api_key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API key not found")
    return ApiKeyResponse.model_validate(api_key)


@router.put(
    "/{key_id}",
    response_model=ApiKeyResponse,
    dependencies=[Depends(require_permissions("api:edit"))]
)
async def update_api_key(key_id: uuid.UUID, data: ApiKeyUpdate, db: DB):
    api_key = await ApiKeyService(db).update_api_key(key_id, data)
    return ApiKeyResponse.model_validate(api_key)


@router.post(
    "/{key_id}/revoke",
    response_model=ApiKeyResponse,
    dependencies=[Depends(require_permissions("api:delete"))]
)
async def revoke_api_key(key_id: uuid.UUID, db: DB, current_user: CurrentUser):
    api_key = await ApiKeyService(db).revoke_api_key(key_id, current_user)
    return ApiKeyResponse.model_validate(api_key)


@router.post(
    "/{key_id}/regenerate",
    response_model=ApiKeyWithSecret,
    dependencies=[Depends(require_permissions("api:edit"))]
)
async def regenerate_api_secret(key_id: uuid.UUID, db: DB):
    """Issue a new secret; the previous one stops working."""
    api_key, secret = await ApiKeyService(db).regenerate_secret(key_id)
    return with_secret(api_key, secret)


@router.get(
    "/{key_id}/usage",
    response_model=ApiKeyUsage,
    dependencies=[Depends(require_permissions("api:view"))]
)
async def get_api_key_usage(key_id: uuid.UUID, db: DB):
    return ApiKeyUsage(**await ApiKeyService(db).get_usage(key_id))

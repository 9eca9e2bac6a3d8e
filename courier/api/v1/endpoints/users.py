from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, require_permissions
from courier.schemas.user import UserCreate, UserUpdate, UserResponse, UserListResponse
from courier.services.auth_service import AuthService


router = APIRouter(tags=["Users"])


@router.get(
    "",
    response_model=UserListResponse,
    dependencies=[Depends(require_permissions("users:view"))]
)
async def list_users(
    db: DB,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Search by name or email"),
    is_active: Optional[bool] = Query(None),
):
    """
    Get paginated list of users.
    Requires: users:view permission
    """
    skip = (page - 1) * size
    users, total = await AuthService(db).list_users(skip=skip, limit=size, search=search, is_active=is_active)

    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("users:add"))]
)
async def create_user(data: UserCreate, db: DB):
    """
    Create a back-office user.
    Requires: users:add permission
    """
    user = await AuthService(db).register_user(data)
    return UserResponse.model_validate(user)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    dependencies=[Depends(require_permissions("users:view"))]
)
async def get_user(user_id: uuid.UUID, db: DB):
    user = await AuthService(db).get_user(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(user)


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    dependencies=[Depends(require_permissions("users:edit"))]
)
async def update_user(user_id: uuid.UUID, data: UserUpdate, db: DB):
    user = await AuthService(db).update_user(user_id, data)
    return UserResponse.model_validate(user)

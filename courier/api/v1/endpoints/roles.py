import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, require_permissions
from courier.schemas.base import MessageResponse
from courier.schemas.user import RoleCreate, RoleUpdate, RoleResponse, RoleListResponse
from courier.services.rbac_service import RBACService


router = APIRouter(tags=["Roles"])


@router.get(
    "",
    response_model=RoleListResponse,
    dependencies=[Depends(require_permissions("roles:view"))]
)
async def list_roles(
    db: DB,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    include_inactive: bool = Query(False, description="Include inactive roles"),
):
    """
    Get paginated list of roles.
    Requires: roles:view permission
    """
    skip = (page - 1) * size
    roles, total = await RBACService(db).get_roles(skip=skip, limit=size, include_inactive=include_inactive)

    return RoleListResponse(
        items=[RoleResponse.model_validate(role) for role in roles],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get(
    "/{role_id}",
    response_model=RoleResponse,
    dependencies=[Depends(require_permissions("roles:view"))]
)
async def get_role(role_id: uuid.UUID, db: DB):
    role = await RBACService(db).get_role_by_id(role_id)
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return RoleResponse.model_validate(role)


@router.post(
    "",
    response_model=RoleResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("roles:add"))]
)
async def create_role(data: RoleCreate, db: DB):
    """
    Create a role with module permission flags.
    Requires: roles:add permission
    """
    role = await RBACService(db).create_role(data)
    return RoleResponse.model_validate(role)


@router.put(
    "/{role_id}",
    response_model=RoleResponse,
    dependencies=[Depends(require_permissions("roles:edit"))]
)
async def update_role(role_id: uuid.UUID, data: RoleUpdate, db: DB):
    """
    Update a role. System roles only accept description and is_active.
    Requires: roles:edit permission
    """
    role = await RBACService(db).update_role(role_id, data)
    return RoleResponse.model_validate(role)


@router.delete(
    "/{role_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permissions("roles:delete"))]
)
async def delete_role(role_id: uuid.UUID, db: DB):
    """
    Delete a role that is neither a system role nor assigned to users.
    Requires: roles:delete permission
    """
    await RBACService(db).delete_role(role_id)
    return MessageResponse(message="Role deleted successfully")

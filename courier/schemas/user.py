"""Pydantic schemas for users and roles."""
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime
import uuid

from courier.models.role import DataScope, PERMISSION_ACTIONS, PERMISSION_MODULES
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, ListResponse


# ==================== ROLE SCHEMAS ====================

ModuleFlags = Dict[str, bool]


def _validate_permission_map(value: Optional[Dict[str, ModuleFlags]]):
    if value is None:
        return value
    for module, flags in value.items():
        if module not in PERMISSION_MODULES:
            raise ValueError(f"Unknown permission module '{module}'")
        for flag in flags:
            if flag.removeprefix("can_") not in PERMISSION_ACTIONS:
                raise ValueError(f"Unknown permission flag '{flag}' on module '{module}'")
    return value


class RoleCreate(BaseCreateSchema):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    permissions: Dict[str, ModuleFlags] = {}
    data_scope: DataScope = DataScope.OWN

    _check_permissions = field_validator("permissions")(_validate_permission_map)


class RoleUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    permissions: Optional[Dict[str, ModuleFlags]] = None
    data_scope: Optional[DataScope] = None
    is_active: Optional[bool] = None

    _check_permissions = field_validator("permissions")(_validate_permission_map)


class RoleResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    permissions: Dict[str, ModuleFlags]
    data_scope: str
    is_system_role: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class RoleListResponse(ListResponse):
    items: List[RoleResponse]


class RoleBrief(BaseResponseSchema):
    id: uuid.UUID
    name: str
    data_scope: str


# ==================== USER SCHEMAS ====================

class UserCreate(BaseCreateSchema):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=100)
    mobile: Optional[str] = None
    branch: Optional[str] = None
    zone: Optional[str] = None
    role_id: Optional[uuid.UUID] = None


class UserUpdate(BaseUpdateSchema):
    name: Optional[str] = None
    mobile: Optional[str] = None
    branch: Optional[str] = None
    zone: Optional[str] = None
    role_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class UserResponse(BaseResponseSchema):
    id: uuid.UUID
    email: str
    name: str
    mobile: Optional[str] = None
    branch: Optional[str] = None
    zone: Optional[str] = None
    role_id: Optional[uuid.UUID] = None
    role: Optional[RoleBrief] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime


class UserListResponse(ListResponse):
    items: List[UserResponse]

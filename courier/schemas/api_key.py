"""API key management schemas."""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, date
import uuid

from courier.models.api_key import ApiEnvironment, ApiKeyStatus, ApiPermission, DEFAULT_API_PERMISSIONS
from courier.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, ListResponse


def _check_api_permissions(value: Optional[List[str]]):
    if value is None:
        return value
    valid = {p.value for p in ApiPermission}
    unknown = [p for p in value if p not in valid]
    if unknown:
        raise ValueError(f"Unknown API permissions: {', '.join(unknown)}")
    return value


class ApiKeyCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    shipper_id: uuid.UUID
    permissions: List[str] = Field(default_factory=lambda: list(DEFAULT_API_PERMISSIONS))
    environment: ApiEnvironment = ApiEnvironment.SANDBOX
    rate_limit_per_minute: Optional[int] = Field(None, ge=1)
    rate_limit_per_day: Optional[int] = Field(None, ge=1)
    ip_whitelist: List[str] = []
    webhook_url: Optional[str] = None
    expires_at: Optional[datetime] = None

    _validate_permissions = field_validator("permissions")(_check_api_permissions)


class ApiKeyUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[List[str]] = None
    status: Optional[ApiKeyStatus] = None
    rate_limit_per_minute: Optional[int] = Field(None, ge=1)
    rate_limit_per_day: Optional[int] = Field(None, ge=1)
    ip_whitelist: Optional[List[str]] = None
    webhook_url: Optional[str] = None
    expires_at: Optional[datetime] = None

    _validate_permissions = field_validator("permissions")(_check_api_permissions)


class ApiKeyResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    api_key: str
    shipper_id: uuid.UUID
    permissions: List[str]
    status: str
    environment: str
    rate_limit_per_minute: int
    rate_limit_per_day: int
    total_requests: int
    requests_today: int
    last_used_at: Optional[datetime] = None
    ip_whitelist: List[str] = []
    webhook_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ApiKeyWithSecret(ApiKeyResponse):
    """Returned only on create and regenerate; the secret is not stored."""
    api_secret: str


class ApiKeyListResponse(ListResponse):
    items: List[ApiKeyResponse]


class ApiKeyUsage(BaseModel):
    api_key: str
    total_requests: int
    requests_today: int
    rate_limit_per_day: int
    remaining_today: int
    requests_this_minute: int
    rate_limit_per_minute: int
    usage_reset_on: Optional[date] = None
    last_used_at: Optional[datetime] = None

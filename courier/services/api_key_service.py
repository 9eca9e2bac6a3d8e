"""
API key service for third-party integrators.

Keys are issued as an ak_/sk_ pair; the secret is returned once and only
its SHA-256 hash is kept. authenticate() is called on every integrator
request: it checks the pair, the key's status and expiry, the IP
whitelist and the daily and per-minute limits, then counts the request.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from courier.config import settings
from courier.core.exceptions import (
    AuthenticationFailed,
    NotFound,
    PermissionDenied,
    RateLimitExceeded,
    StateConflict,
)
from courier.core.security import (
    generate_api_key,
    generate_api_secret,
    hash_api_secret,
    verify_api_secret,
)
from courier.db_types import utc_now
from courier.models.api_key import ApiKey, ApiKeyStatus
from courier.models.shipper import Shipper
from courier.models.user import User
from courier.schemas.api_key import ApiKeyCreate, ApiKeyUpdate

logger = logging.getLogger(__name__)

MINUTE = timedelta(minutes=1)


def has_api_permission(api_key: ApiKey, permission: str) -> bool:
    return permission in (api_key.permissions or [])


class ApiKeyService:
    """Service for issuing, managing and authenticating API keys."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_api_key(self, key_id: uuid.UUID, refresh: bool = False) -> Optional[ApiKey]:
        stmt = select(ApiKey).where(ApiKey.id == key_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_api_key(self, key_id: uuid.UUID) -> ApiKey:
        api_key = await self.get_api_key(key_id)
        if api_key is None:
            raise NotFound("API key not found")
        return api_key

    async def get_api_keys(
        self,
        shipper_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ApiKey], int]:
        filters = []
        if shipper_id:
            filters.append(ApiKey.shipper_id == shipper_id)
        if status:
            filters.append(ApiKey.status == status)

        stmt = select(ApiKey).order_by(ApiKey.created_at.desc())
        count_stmt = select(func.count(ApiKey.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def create_api_key(self, data: ApiKeyCreate, user: Optional[User] = None) -> Tuple[ApiKey, str]:
        """Issue a new key pair. Returns the key and the plain secret."""
        if await self.db.get(Shipper, data.shipper_id) is None:
            raise NotFound("Shipper not found")

        secret = generate_api_secret()
        api_key = ApiKey(
            name=data.name,
            description=data.description,
            api_key=generate_api_key(),
            secret_hash=hash_api_secret(secret),
            shipper_id=data.shipper_id,
            permissions=list(dict.fromkeys(data.permissions)),
            status=ApiKeyStatus.ACTIVE.value,
            environment=data.environment.value,
            rate_limit_per_minute=data.rate_limit_per_minute or settings.API_REQUESTS_PER_MINUTE,
            rate_limit_per_day=data.rate_limit_per_day or settings.API_REQUESTS_PER_DAY,
            total_requests=0,
            requests_today=0,
            requests_this_minute=0,
            ip_whitelist=list(data.ip_whitelist),
            webhook_url=data.webhook_url,
            expires_at=data.expires_at,
            created_by=user.id if user else None,
        )
        self.db.add(api_key)
        await self.db.commit()
        logger.info(f"API key {api_key.api_key} issued to shipper {data.shipper_id}")
        return await self.get_api_key(api_key.id, refresh=True), secret

    async def update_api_key(self, key_id: uuid.UUID, data: ApiKeyUpdate) -> ApiKey:
        api_key = await self.require_api_key(key_id)
        if api_key.status == ApiKeyStatus.REVOKED.value:
            raise StateConflict("Revoked API keys cannot be changed")

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in ("name", "permissions", "status", "rate_limit_per_minute", "rate_limit_per_day", "ip_whitelist"):
                continue
            if hasattr(value, "value"):
                value = value.value
            setattr(api_key, field, value)

        await self.db.commit()
        return await self.get_api_key(key_id, refresh=True)

    async def revoke_api_key(self, key_id: uuid.UUID, user: Optional[User] = None) -> ApiKey:
        api_key = await self.require_api_key(key_id)
        if api_key.status == ApiKeyStatus.REVOKED.value:
            raise StateConflict("API key is already revoked")
        api_key.status = ApiKeyStatus.REVOKED.value
        api_key.revoked_at = utc_now()
        api_key.revoked_by = user.id if user else None
        await self.db.commit()
        logger.info(f"API key {api_key.api_key} revoked")
        return await self.get_api_key(key_id, refresh=True)

    async def regenerate_secret(self, key_id: uuid.UUID) -> Tuple[ApiKey, str]:
        """Replace the secret; the old one stops working immediately."""
        api_key = await self.require_api_key(key_id)
        if api_key.status == ApiKeyStatus.REVOKED.value:
            raise StateConflict("Revoked API keys cannot be regenerated")
        secret = generate_api_secret()
        api_key.secret_hash = hash_api_secret(secret)
        await self.db.commit()
        logger.info(f"Secret regenerated for API key {api_key.api_key}")
        return await self.get_api_key(key_id, refresh=True), secret

    async def get_usage(self, key_id: uuid.UUID, now: Optional[datetime] = None) -> dict:
        api_key = await self.require_api_key(key_id)
        now = now or utc_now()
        requests_today = api_key.requests_today if api_key.usage_reset_on == now.date() else 0
        in_window = api_key.minute_window_start is not None and now - api_key.minute_window_start < MINUTE
        return {
            "api_key": api_key.api_key,
            "total_requests": api_key.total_requests,
            "requests_today": requests_today,
            "rate_limit_per_day": api_key.rate_limit_per_day,
            "remaining_today": max(api_key.rate_limit_per_day - requests_today, 0),
            "requests_this_minute": api_key.requests_this_minute if in_window else 0,
            "rate_limit_per_minute": api_key.rate_limit_per_minute,
            "usage_reset_on": api_key.usage_reset_on,
            "last_used_at": api_key.last_used_at,
        }

    # ==================== AUTHENTICATION ====================

    async def authenticate(
        self,
        key: Optional[str],
        secret: Optional[str],
        client_ip: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ApiKey:
        """
        Authenticate an integrator request and count it against the key's limits.

        Raises AuthenticationFailed (401), PermissionDenied (403) for an IP
        outside the whitelist, or RateLimitExceeded (429).
        """
        if not key or not secret:
            raise AuthenticationFailed("X-API-Key and X-API-Secret headers are required")

        result = await self.db.execute(select(ApiKey).where(ApiKey.api_key == key))
        api_key = result.scalar_one_or_none()
        if api_key is None or not verify_api_secret(secret, api_key.secret_hash):
            logger.warning(f"Rejected integrator credentials for key {key}")
            raise AuthenticationFailed("Invalid API credentials")

        now = now or utc_now()
        if api_key.status != ApiKeyStatus.ACTIVE.value or (api_key.expires_at and api_key.expires_at <= now):
            logger.warning(f"Inactive or expired API key used: {key}")
            raise AuthenticationFailed("API key is inactive or expired")

        if api_key.ip_whitelist and client_ip not in api_key.ip_whitelist:
            logger.warning(f"API key {key} used from non-whitelisted address {client_ip}")
            raise PermissionDenied("IP address not whitelisted", ip=client_ip)

        today = now.date()
        if api_key.usage_reset_on != today:
            api_key.requests_today = 0
            api_key.usage_reset_on = today
        if api_key.requests_today >= api_key.rate_limit_per_day:
            raise RateLimitExceeded(api_key.rate_limit_per_day, api_key.requests_today, window="day")

        if api_key.minute_window_start is None or now - api_key.minute_window_start >= MINUTE:
            api_key.minute_window_start = now
            api_key.requests_this_minute = 0
        if api_key.requests_this_minute >= api_key.rate_limit_per_minute:
            raise RateLimitExceeded(api_key.rate_limit_per_minute, api_key.requests_this_minute, window="minute")

        api_key.requests_today += 1
        api_key.requests_this_minute += 1
        api_key.total_requests += 1
        api_key.last_used_at = now
        await self.db.commit()
        return api_key

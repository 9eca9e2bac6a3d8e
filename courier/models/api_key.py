"""API key model for third-party integrators."""
import uuid
from datetime import datetime, date
from enum import Enum
from typing import Optional

from sqlalchemy import String, ForeignKey, Integer, Text, Date
from sqlalchemy.orm import Mapped, mapped_column

from courier.database import Base
from courier.db_types import JSONType, UUIDType, UTCDateTime, utc_now


class ApiPermission(str, Enum):
    BOOKING_CREATE = "booking.create"
    BOOKING_READ = "booking.read"
    BOOKING_UPDATE = "booking.update"
    TRACKING_READ = "tracking.read"
    INVOICE_READ = "invoice.read"
    RATE_CALCULATE = "rate.calculate"


class ApiKeyStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    REVOKED = "Revoked"


class ApiEnvironment(str, Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"


DEFAULT_API_PERMISSIONS = [
    ApiPermission.BOOKING_CREATE.value,
    ApiPermission.BOOKING_READ.value,
    ApiPermission.TRACKING_READ.value,
    ApiPermission.RATE_CALCULATE.value,
]


class ApiKey(Base):
    """
    Integrator credential pair.

    Only the SHA-256 hash of the secret is stored. Usage counters are
    read-increment-write; requests_today resets when usage_reset_on
    is not today, requests_this_minute when the minute window rolls.
    """
    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    api_key: Mapped[str] = mapped_column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
        comment="ak_{32 hex}"
    )
    secret_hash: Mapped[str] = mapped_column(String(64), nullable=False, comment="SHA-256 of sk_ secret")

    shipper_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shippers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    permissions: Mapped[list] = mapped_column(JSONType, default=lambda: list(DEFAULT_API_PERMISSIONS))
    status: Mapped[str] = mapped_column(String(20), default=ApiKeyStatus.ACTIVE.value, index=True)
    environment: Mapped[str] = mapped_column(String(20), default=ApiEnvironment.SANDBOX.value)

    # Rate limits
    rate_limit_per_minute: Mapped[int] = mapped_column(Integer, default=60)
    rate_limit_per_day: Mapped[int] = mapped_column(Integer, default=10000)

    # Usage
    total_requests: Mapped[int] = mapped_column(Integer, default=0)
    requests_today: Mapped[int] = mapped_column(Integer, default=0)
    usage_reset_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    minute_window_start: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    requests_this_minute: Mapped[int] = mapped_column(Integer, default=0)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    ip_whitelist: Mapped[list] = mapped_column(JSONType, default=list)
    webhook_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    revoked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    revoked_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Active and not expired."""
        if self.status != ApiKeyStatus.ACTIVE.value:
            return False
        if self.expires_at is not None and self.expires_at <= (now or utc_now()):
            return False
        return True

    def has_permission(self, permission: str) -> bool:
        return permission in (self.permissions or [])

    def is_ip_allowed(self, ip: Optional[str]) -> bool:
        if not self.ip_whitelist:
            return True
        return ip in self.ip_whitelist

    def __repr__(self) -> str:
        return f"<ApiKey(name='{self.name}', key='{self.api_key}')>"

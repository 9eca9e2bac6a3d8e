"""Role model with per-module permission flags and data scope."""
import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courier.database import Base
from courier.db_types import JSONType, UUIDType, UTCDateTime, utc_now

if TYPE_CHECKING:
    from courier.models.user import User


SUPER_ADMIN_ROLE = "Super Admin"

# Modules guarded by role flags
PERMISSION_MODULES = (
    "dashboard",
    "booking",
    "tracking",
    "invoicing",
    "shipper",
    "users",
    "roles",
    "reports",
    "complaints",
    "api",
    "payments",
    "settings",
)

# Actions; stored as can_<action> flags per module
PERMISSION_ACTIONS = ("view", "add", "edit", "delete", "export", "print")


class DataScope(str, Enum):
    """Which records a role may see."""
    OWN = "own"
    BRANCH = "branch"
    ZONE = "zone"
    ALL = "all"


def empty_permissions() -> dict:
    return {
        module: {f"can_{action}": False for action in PERMISSION_ACTIONS}
        for module in PERMISSION_MODULES
    }


class Role(Base):
    """
    A named bundle of module permissions.

    permissions is stored as {module: {"can_view": bool, ...}}.
    The role named "Super Admin" passes every check.
    """
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    permissions: Mapped[dict] = mapped_column(
        JSONType,
        default=empty_permissions,
        nullable=False
    )
    data_scope: Mapped[str] = mapped_column(
        String(20),
        default=DataScope.OWN.value,
        nullable=False,
        comment="own, branch, zone, all"
    )
    is_system_role: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

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

    users: Mapped[List["User"]] = relationship("User", back_populates="role", passive_deletes=True)

    @property
    def is_super_admin(self) -> bool:
        return self.name == SUPER_ADMIN_ROLE

    def can(self, module: str, action: str) -> bool:
        """Check a single module/action flag."""
        if self.is_super_admin:
            return True
        flags = (self.permissions or {}).get(module) or {}
        return bool(flags.get(f"can_{action}", False))

    def __repr__(self) -> str:
        return f"<Role(name='{self.name}', scope='{self.data_scope}')>"

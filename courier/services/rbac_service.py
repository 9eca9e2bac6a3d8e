from typing import List, Optional
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import NotFound, StateConflict
from courier.models.role import Role, SUPER_ADMIN_ROLE, PERMISSION_ACTIONS, PERMISSION_MODULES
from courier.models.user import User
from courier.schemas.user import RoleCreate, RoleUpdate

logger = logging.getLogger(__name__)


def normalize_permissions(permissions: Optional[dict]) -> dict:
    """Full {module: {can_action: bool}} map with every flag present."""
    permissions = permissions or {}
    normalized = {}
    for module in PERMISSION_MODULES:
        flags = permissions.get(module) or {}
        normalized[module] = {
            f"can_{action}": bool(flags.get(f"can_{action}", False))
            for action in PERMISSION_ACTIONS
        }
    return normalized


class RBACService:
    """
    Role-Based Access Control service.
    Manages roles and their module permission flags.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_roles(
        self,
        skip: int = 0,
        limit: int = 100,
        include_inactive: bool = False
    ) -> tuple[List[Role], int]:
        count_stmt = select(func.count(Role.id))
        stmt = select(Role)
        if not include_inactive:
            count_stmt = count_stmt.where(Role.is_active == True)
            stmt = stmt.where(Role.is_active == True)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        result = await self.db.execute(stmt.order_by(Role.name).offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def get_role_by_id(self, role_id: uuid.UUID) -> Optional[Role]:
        result = await self.db.execute(select(Role).where(Role.id == role_id))
        return result.scalar_one_or_none()

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        result = await self.db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def create_role(self, data: RoleCreate) -> Role:
        if await self.get_role_by_name(data.name):
            raise StateConflict(f"Role '{data.name}' already exists")

        role = Role(
            name=data.name,
            description=data.description,
            permissions=normalize_permissions(data.permissions),
            data_scope=data.data_scope.value,
            is_system_role=False,
            is_active=True,
        )
        self.db.add(role)
        await self.db.commit()
        await self.db.refresh(role)
        logger.info(f"Role '{role.name}' created")
        return role

    async def update_role(self, role_id: uuid.UUID, data: RoleUpdate) -> Role:
        role = await self.get_role_by_id(role_id)
        if not role:
            raise NotFound("Role not found")

        update_data = data.model_dump(exclude_unset=True)
        if role.is_system_role:
            # System roles keep their name and permissions
            update_data = {k: v for k, v in update_data.items() if k in ("description", "is_active")}

        if "name" in update_data and update_data["name"] != role.name:
            if await self.get_role_by_name(update_data["name"]):
                raise StateConflict(f"Role '{update_data['name']}' already exists")

        for field, value in update_data.items():
            if value is None and field in ("name", "data_scope", "is_active", "permissions"):
                continue
            if field == "permissions":
                value = normalize_permissions(value)
            elif field == "data_scope":
                value = value.value
            setattr(role, field, value)

        await self.db.commit()
        await self.db.refresh(role)
        return role

    async def delete_role(self, role_id: uuid.UUID) -> None:
        """Delete a role. System roles and roles still assigned to users are kept."""
        role = await self.get_role_by_id(role_id)
        if not role:
            raise NotFound("Role not found")
        if role.is_system_role or role.name == SUPER_ADMIN_ROLE:
            raise StateConflict("System roles cannot be deleted")

        in_use = (await self.db.execute(
            select(func.count(User.id)).where(User.role_id == role_id)
        )).scalar() or 0
        if in_use:
            raise StateConflict(f"Role is assigned to {in_use} user(s)")

        await self.db.delete(role)
        await self.db.commit()
        logger.info(f"Role '{role.name}' deleted")

"""Service for shipper accounts and their consignee address books."""
import logging
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import NotFound, StateConflict
from courier.models.shipper import Shipper, Consignee, ShipperStatus
from courier.schemas.shipper import ShipperCreate, ShipperUpdate, ConsigneeCreate

logger = logging.getLogger(__name__)


class ShipperService:
    """Shipper CRUD and consignee lookup."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_shipper(self, shipper_id: uuid.UUID) -> Optional[Shipper]:
        result = await self.db.execute(select(Shipper).where(Shipper.id == shipper_id))
        return result.scalar_one_or_none()

    async def require_shipper(self, shipper_id: uuid.UUID) -> Shipper:
        shipper = await self.get_shipper(shipper_id)
        if shipper is None:
            raise NotFound("Shipper not found")
        return shipper

    async def get_shippers(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        city: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Shipper], int]:
        filters = []
        if search:
            pattern = f"%{search}%"
            filters.append(or_(
                Shipper.company.ilike(pattern),
                Shipper.name.ilike(pattern),
                Shipper.email.ilike(pattern),
                Shipper.mobile.ilike(pattern),
            ))
        if status:
            filters.append(Shipper.status == status)
        if city:
            filters.append(Shipper.city.ilike(city))

        stmt = select(Shipper).order_by(Shipper.created_at.desc())
        count_stmt = select(func.count(Shipper.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def create_shipper(self, data: ShipperCreate, created_by: Optional[uuid.UUID] = None) -> Shipper:
        email = data.email.lower()
        existing = await self.db.execute(select(Shipper.id).where(Shipper.email == email))
        if existing.scalar_one_or_none():
            raise StateConflict(f"Shipper with email {email} already exists")

        values = data.model_dump()
        values["email"] = email
        values["payment_type"] = data.payment_type.value
        shipper = Shipper(
            **values,
            status=ShipperStatus.ACTIVE.value,
            total_bookings=0,
            created_by=created_by,
        )
        self.db.add(shipper)
        await self.db.commit()
        await self.db.refresh(shipper)
        logger.info(f"Shipper {shipper.company} created")
        return shipper

    async def update_shipper(self, shipper_id: uuid.UUID, data: ShipperUpdate) -> Shipper:
        shipper = await self.require_shipper(shipper_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in ("name", "company", "mobile", "city", "country", "status", "payment_type"):
                continue
            if hasattr(value, "value"):
                value = value.value
            setattr(shipper, field, value)

        await self.db.commit()
        await self.db.refresh(shipper)
        return shipper

    async def deactivate_shipper(self, shipper_id: uuid.UUID) -> Shipper:
        """Shippers are never hard deleted; bookings and invoices reference them."""
        shipper = await self.require_shipper(shipper_id)
        shipper.status = ShipperStatus.INACTIVE.value
        await self.db.commit()
        await self.db.refresh(shipper)
        logger.info(f"Shipper {shipper.company} deactivated")
        return shipper

    # ==================== CONSIGNEES ====================

    async def get_consignees(self, shipper_id: uuid.UUID, search: Optional[str] = None) -> List[Consignee]:
        stmt = select(Consignee).where(
            Consignee.shipper_id == shipper_id,
            Consignee.is_active == True,
        )
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(Consignee.name.ilike(pattern), Consignee.mobile.ilike(pattern)))
        result = await self.db.execute(stmt.order_by(Consignee.name))
        return list(result.scalars().all())

    async def get_consignee(self, shipper_id: uuid.UUID, consignee_id: uuid.UUID) -> Optional[Consignee]:
        result = await self.db.execute(
            select(Consignee).where(
                Consignee.id == consignee_id,
                Consignee.shipper_id == shipper_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_consignee(self, shipper_id: uuid.UUID, data: ConsigneeCreate, commit: bool = True) -> Consignee:
        await self.require_shipper(shipper_id)
        consignee = Consignee(shipper_id=shipper_id, is_active=True, **data.model_dump())
        self.db.add(consignee)
        if commit:
            await self.db.commit()
            await self.db.refresh(consignee)
        else:
            await self.db.flush()
        return consignee

    async def find_or_create_consignee(self, shipper_id: uuid.UUID, data: ConsigneeCreate) -> Consignee:
        """Consignee with the same mobile number in this shipper's book, created if absent. Flushes only."""
        result = await self.db.execute(
            select(Consignee)
            .where(
                Consignee.shipper_id == shipper_id,
                Consignee.mobile == data.mobile,
            )
            .limit(1)
        )
        consignee = result.scalar_one_or_none()
        if consignee is not None:
            return consignee
        return await self.add_consignee(shipper_id, data, commit=False)

"""
Cheque register.

Cheques are recorded against a shipper as Pending and later marked
Cleared, Bounced or Cancelled. A final cheque keeps its details as they
were; a cleared cheque cannot be deleted.
"""
import logging
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import NotFound, StateConflict
from courier.models.cheque import Cheque, ChequeStatus
from courier.models.user import User
from courier.schemas.cheque import ChequeCreate, ChequeUpdate, ChequeStatusUpdate
from courier.services.invoice_service import today_utc
from courier.services.rate_calculator import money
from courier.services.shipper_service import ShipperService

logger = logging.getLogger(__name__)


class ChequeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_cheque(self, cheque_id: uuid.UUID, refresh: bool = False) -> Optional[Cheque]:
        stmt = select(Cheque).where(Cheque.id == cheque_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_cheque(self, cheque_id: uuid.UUID) -> Cheque:
        cheque = await self.get_cheque(cheque_id)
        if cheque is None:
            raise NotFound("Cheque not found")
        return cheque

    def _filters(
        self,
        shipper_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list:
        filters = []
        if shipper_id:
            filters.append(Cheque.shipper_id == shipper_id)
        if status:
            filters.append(Cheque.status == status)
        if search:
            pattern = f"%{search}%"
            filters.append(or_(
                Cheque.cheque_number.ilike(pattern),
                Cheque.bank_name.ilike(pattern),
                Cheque.reference.ilike(pattern),
            ))
        return filters

    async def get_cheques(
        self,
        shipper_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = 20,
    ) -> Tuple[List[Cheque], int]:
        """Newest cheque date first. ``limit=None`` returns every match."""
        filters = self._filters(shipper_id, status, search)

        stmt = select(Cheque).order_by(Cheque.cheque_date.desc(), Cheque.created_at.desc())
        count_stmt = select(func.count(Cheque.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def create_cheque(self, data: ChequeCreate, user: Optional[User] = None) -> Cheque:
        await ShipperService(self.db).require_shipper(data.shipper_id)

        cheque = Cheque(
            **data.model_dump(exclude={"amount", "received_date"}),
            amount=money(data.amount),
            received_date=data.received_date or today_utc(),
            status=ChequeStatus.PENDING.value,
            created_by=user.id if user else None,
        )
        self.db.add(cheque)
        await self.db.commit()
        logger.info(f"Cheque {cheque.cheque_number} ({cheque.bank_name}) recorded for shipper {cheque.shipper_id}: {cheque.amount}")
        return await self.get_cheque(cheque.id, refresh=True)

    async def update_cheque(self, cheque_id: uuid.UUID, data: ChequeUpdate) -> Cheque:
        cheque = await self.require_cheque(cheque_id)
        if cheque.is_final:
            raise StateConflict(f"Cheque is {cheque.status}; its details can no longer be edited")

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in ("branch_name", "reference", "notes"):
                continue
            setattr(cheque, field, money(value) if field == "amount" else value)

        await self.db.commit()
        return await self.get_cheque(cheque_id, refresh=True)

    async def change_status(
        self,
        cheque_id: uuid.UUID,
        data: ChequeStatusUpdate,
        user: Optional[User] = None,
    ) -> Cheque:
        cheque = await self.require_cheque(cheque_id)
        new_status = data.status.value
        if new_status == ChequeStatus.PENDING.value or cheque.is_final:
            raise StateConflict(f"Cannot move cheque from {cheque.status} to {new_status}")

        status_date = data.status_date or today_utc()
        cheque.status = new_status
        cheque.processed_by = user.id if user else None
        if new_status == ChequeStatus.CLEARED.value:
            cheque.cleared_date = status_date
        elif new_status == ChequeStatus.BOUNCED.value:
            cheque.bounced_date = status_date
            cheque.bounce_reason = data.bounce_reason

        await self.db.commit()
        if new_status == ChequeStatus.BOUNCED.value:
            logger.warning(f"Cheque {cheque.cheque_number} bounced: {data.bounce_reason}")
        else:
            logger.info(f"Cheque {cheque.cheque_number} marked {new_status}")
        return await self.get_cheque(cheque_id, refresh=True)

    async def delete_cheque(self, cheque_id: uuid.UUID) -> None:
        cheque = await self.require_cheque(cheque_id)
        if cheque.status == ChequeStatus.CLEARED.value:
            raise StateConflict("A cleared cheque cannot be deleted")
        await self.db.delete(cheque)
        await self.db.commit()
        logger.info(f"Cheque {cheque.cheque_number} deleted")

    async def get_stats(self, shipper_id: Optional[uuid.UUID] = None) -> dict:
        stmt = select(
            Cheque.status,
            func.count(Cheque.id),
            func.coalesce(func.sum(Cheque.amount), 0),
        ).group_by(Cheque.status)
        if shipper_id:
            stmt = stmt.where(Cheque.shipper_id == shipper_id)

        rows = (await self.db.execute(stmt)).all()
        counts = {row[0]: row[1] for row in rows}
        amounts = {row[0]: float(row[2] or 0) for row in rows}

        return {
            "total_cheques": sum(counts.values()),
            "by_status": counts,
            "pending_amount": amounts.get(ChequeStatus.PENDING.value, 0.0),
            "cleared_amount": amounts.get(ChequeStatus.CLEARED.value, 0.0),
            "bounced_amount": amounts.get(ChequeStatus.BOUNCED.value, 0.0),
        }

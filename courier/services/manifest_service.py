"""Service for manifests and dispatches.

A manifest groups bookings for one vehicle/route; a dispatch moves
manifests and loose bookings between branches. Both carry snapshot
totals taken when they are created, refreshed only on request, with
totals_as_of recording when.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
import uuid

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import NotFound, StateConflict
from courier.core.permissions import PermissionChecker
from courier.db_types import utc_now
from courier.models.booking import Booking, BookingStatus, PaymentMode
from courier.models.document_sequence import DocumentClass
from courier.models.manifest import Manifest, ManifestStatus, Dispatch, DispatchStatus
from courier.models.user import User
from courier.schemas.manifest import ManifestCreate, ManifestUpdate, DispatchCreate
from courier.services.booking_service import day_bounds
from courier.services.document_sequence_service import DocumentSequenceService
from courier.services.status_ledger import append_status

logger = logging.getLogger(__name__)

WEIGHT_PLACES = Decimal("0.001")


def booking_totals(bookings: Iterable[Booking]) -> dict:
    """Snapshot totals; COD amount only counts COD bookings."""
    bookings = list(bookings)
    return {
        "total_bookings": len(bookings),
        "total_weight": sum((b.weight_kg for b in bookings), Decimal("0")).quantize(WEIGHT_PLACES),
        "total_pieces": sum(b.pieces or 0 for b in bookings),
        "total_cod_amount": sum(
            (Decimal(b.cod_amount or 0) for b in bookings if b.payment_mode == PaymentMode.COD.value),
            Decimal("0"),
        ),
    }


class ManifestService:
    """Service for manifest and dispatch management."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)

    async def _load_bookings(self, booking_ids: List[uuid.UUID]) -> List[Booking]:
        """Bookings in the requested order; every id must exist."""
        booking_ids = list(dict.fromkeys(booking_ids))
        if not booking_ids:
            return []
        result = await self.db.execute(select(Booking).where(Booking.id.in_(booking_ids)))
        found = {b.id: b for b in result.scalars().all()}
        missing = [str(i) for i in booking_ids if i not in found]
        if missing:
            raise NotFound(f"Bookings not found: {', '.join(missing)}")
        return [found[i] for i in booking_ids]

    async def _move_in_transit(self, bookings: Iterable[Booking], location: Optional[str], remarks: str, user: Optional[User]) -> int:
        moved = 0
        for booking in bookings:
            if booking.is_terminal or booking.status == BookingStatus.IN_TRANSIT.value:
                continue
            append_status(
                booking,
                BookingStatus.IN_TRANSIT.value,
                location=location,
                remarks=remarks,
                actor_id=user.id if user else None,
            )
            moved += 1
        return moved

    # ==================== MANIFEST CRUD ====================

    async def get_manifest(self, manifest_id: uuid.UUID, refresh: bool = False) -> Optional[Manifest]:
        """Get manifest by ID with bookings."""
        stmt = select(Manifest).where(Manifest.id == manifest_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_manifest(self, manifest_id: uuid.UUID) -> Manifest:
        manifest = await self.get_manifest(manifest_id)
        if manifest is None:
            raise NotFound("Manifest not found")
        return manifest

    async def get_manifests(
        self,
        checker: Optional[PermissionChecker] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Manifest], int]:
        """Get paginated manifests with filters."""
        filters = []
        if checker is not None:
            scope = checker.scope_filter(Manifest)
            if scope is not None:
                filters.append(scope)
        if status:
            filters.append(Manifest.status == status)
        if search:
            filters.append(Manifest.manifest_number.ilike(f"%{search}%"))
        start, end = day_bounds(date_from, date_to)
        if start:
            filters.append(Manifest.manifest_date >= start)
        if end:
            filters.append(Manifest.manifest_date <= end)

        stmt = select(Manifest).order_by(Manifest.created_at.desc())
        count_stmt = select(func.count(Manifest.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def create_manifest(
        self,
        data: ManifestCreate,
        user: Optional[User] = None
    ) -> Manifest:
        """Create a manifest from bookings and snapshot its totals."""
        bookings = await self._load_bookings(data.booking_ids)
        for booking in bookings:
            if booking.is_terminal:
                raise StateConflict(f"Booking {booking.awb_number} is {booking.status}")
            if booking.manifest_id is not None:
                raise StateConflict(f"Booking {booking.awb_number} is already on a manifest")

        now = utc_now()
        manifest_date = data.manifest_date or now
        manifest_number = await self.sequences.next_identifier(DocumentClass.MANIFEST, on=manifest_date.date())

        manifest = Manifest(
            id=uuid.uuid4(),
            manifest_number=manifest_number,
            manifest_date=manifest_date,
            manifest_type=data.manifest_type.value,
            origin_city=data.origin_city,
            destination_city=data.destination_city,
            route=data.route,
            driver_name=data.driver_name,
            driver_mobile=data.driver_mobile,
            vehicle_number=data.vehicle_number,
            remarks=data.remarks,
            status=ManifestStatus.DRAFT.value,
            totals_as_of=now,
            created_by=user.id if user else None,
            branch=user.branch if user else None,
            zone=user.zone if user else None,
            **booking_totals(bookings),
        )
        self.db.add(manifest)
        await self.sequences.flush_document(manifest_number)

        for booking in bookings:
            booking.manifest_id = manifest.id

        await self.db.commit()
        logger.info(f"Manifest {manifest_number} created with {len(bookings)} bookings")
        return await self.get_manifest(manifest.id, refresh=True)

    async def update_manifest(self, manifest_id: uuid.UUID, data: ManifestUpdate) -> Manifest:
        manifest = await self.require_manifest(manifest_id)
        if manifest.status in (ManifestStatus.COMPLETED.value, ManifestStatus.CANCELLED.value):
            raise StateConflict(f"Manifest is {manifest.status}; it can no longer be edited")

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(manifest, field, value)

        await self.db.commit()
        return await self.get_manifest(manifest_id, refresh=True)

    async def dispatch_manifest(
        self,
        manifest_id: uuid.UUID,
        location: Optional[str] = None,
        remarks: Optional[str] = None,
        user: Optional[User] = None,
    ) -> Manifest:
        """Mark a draft manifest dispatched and move its bookings In Transit."""
        manifest = await self.require_manifest(manifest_id)
        if manifest.status != ManifestStatus.DRAFT.value:
            raise StateConflict(f"Only Draft manifests can be dispatched (current: {manifest.status})")

        manifest.status = ManifestStatus.DISPATCHED.value
        manifest.dispatched_at = utc_now()
        moved = await self._move_in_transit(
            manifest.bookings,
            location or manifest.origin_city,
            remarks or f"Dispatched on manifest {manifest.manifest_number}",
            user,
        )

        await self.db.commit()
        logger.info(f"Manifest {manifest.manifest_number} dispatched, {moved} bookings in transit")
        return await self.get_manifest(manifest_id, refresh=True)

    async def complete_manifest(self, manifest_id: uuid.UUID) -> Manifest:
        manifest = await self.require_manifest(manifest_id)
        if manifest.status not in (ManifestStatus.DISPATCHED.value, ManifestStatus.IN_TRANSIT.value):
            raise StateConflict(f"Manifest is {manifest.status}; only dispatched manifests can be completed")
        manifest.status = ManifestStatus.COMPLETED.value
        manifest.completed_at = utc_now()
        await self.db.commit()
        return await self.get_manifest(manifest_id, refresh=True)

    async def refresh_totals(self, manifest_id: uuid.UUID) -> Manifest:
        manifest = await self.require_manifest(manifest_id)
        for field, value in booking_totals(manifest.bookings).items():
            setattr(manifest, field, value)
        manifest.totals_as_of = utc_now()
        await self.db.commit()
        return await self.get_manifest(manifest_id, refresh=True)

    async def delete_manifest(self, manifest_id: uuid.UUID) -> None:
        """Delete a Draft manifest and unlink its bookings."""
        manifest = await self.require_manifest(manifest_id)
        if manifest.status != ManifestStatus.DRAFT.value:
            raise StateConflict("Only Draft manifests can be deleted")

        for booking in manifest.bookings:
            booking.manifest_id = None
        number = manifest.manifest_number
        await self.db.delete(manifest)
        await self.db.commit()
        logger.info(f"Manifest {number} deleted")

    # ==================== DISPATCH ====================

    async def get_dispatch(self, dispatch_id: uuid.UUID, refresh: bool = False) -> Optional[Dispatch]:
        stmt = select(Dispatch).where(Dispatch.id == dispatch_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_dispatch(self, dispatch_id: uuid.UUID) -> Dispatch:
        dispatch = await self.get_dispatch(dispatch_id)
        if dispatch is None:
            raise NotFound("Dispatch not found")
        return dispatch

    async def get_dispatches(
        self,
        checker: Optional[PermissionChecker] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Dispatch], int]:
        filters = []
        if checker is not None:
            scope = checker.scope_filter(Dispatch)
            if scope is not None:
                filters.append(scope)
        if status:
            filters.append(Dispatch.status == status)
        if search:
            filters.append(Dispatch.dispatch_number.ilike(f"%{search}%"))

        stmt = select(Dispatch).order_by(Dispatch.created_at.desc())
        count_stmt = select(func.count(Dispatch.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def create_dispatch(self, data: DispatchCreate, user: Optional[User] = None) -> Dispatch:
        """Create a dispatch from manifests and/or loose bookings."""
        manifests: List[Manifest] = []
        for manifest_id in dict.fromkeys(data.manifest_ids):
            manifest = await self.require_manifest(manifest_id)
            if manifest.dispatch_id is not None:
                raise StateConflict(f"Manifest {manifest.manifest_number} is already on a dispatch")
            if manifest.status in (ManifestStatus.COMPLETED.value, ManifestStatus.CANCELLED.value):
                raise StateConflict(f"Manifest {manifest.manifest_number} is {manifest.status}")
            manifests.append(manifest)

        bookings = {b.id: b for m in manifests for b in m.bookings}
        for booking in await self._load_bookings(data.booking_ids):
            if booking.is_terminal:
                raise StateConflict(f"Booking {booking.awb_number} is {booking.status}")
            bookings.setdefault(booking.id, booking)
        for booking in bookings.values():
            if booking.dispatch_id is not None:
                raise StateConflict(f"Booking {booking.awb_number} is already on a dispatch")

        now = utc_now()
        dispatch_date = data.dispatch_date or now
        dispatch_number = await self.sequences.next_identifier(DocumentClass.DISPATCH, on=dispatch_date.date())
        totals = booking_totals(bookings.values())

        dispatch = Dispatch(
            id=uuid.uuid4(),
            dispatch_number=dispatch_number,
            dispatch_date=dispatch_date,
            dispatch_type=data.dispatch_type.value,
            destination_branch=data.destination_branch,
            destination_city=data.destination_city,
            transport_mode=data.transport_mode.value,
            vehicle_number=data.vehicle_number,
            driver_name=data.driver_name,
            driver_mobile=data.driver_mobile,
            carrier_name=data.carrier_name,
            seal_number=data.seal_number,
            total_bookings=totals["total_bookings"],
            total_weight=totals["total_weight"],
            total_bags=data.total_bags,
            totals_as_of=now,
            status=DispatchStatus.PENDING.value,
            remarks=data.remarks,
            created_by=user.id if user else None,
            branch=user.branch if user else None,
            zone=user.zone if user else None,
        )
        self.db.add(dispatch)
        await self.sequences.flush_document(dispatch_number)

        for manifest in manifests:
            manifest.dispatch_id = dispatch.id
        for booking in bookings.values():
            booking.dispatch_id = dispatch.id

        await self.db.commit()
        logger.info(
            f"Dispatch {dispatch_number} created: {len(manifests)} manifests, {len(bookings)} bookings"
        )
        return await self.get_dispatch(dispatch.id, refresh=True)

    async def mark_dispatched(self, dispatch_id: uuid.UUID, user: Optional[User] = None) -> Dispatch:
        dispatch = await self.require_dispatch(dispatch_id)
        if dispatch.status != DispatchStatus.PENDING.value:
            raise StateConflict(f"Only Pending dispatches can be dispatched (current: {dispatch.status})")

        now = utc_now()
        dispatch.status = DispatchStatus.DISPATCHED.value
        dispatch.dispatched_at = now
        for manifest in dispatch.manifests:
            if manifest.status in (ManifestStatus.DRAFT.value, ManifestStatus.DISPATCHED.value):
                manifest.status = ManifestStatus.IN_TRANSIT.value
                manifest.dispatched_at = manifest.dispatched_at or now
        await self._move_in_transit(
            dispatch.bookings,
            dispatch.branch,
            f"Dispatched on {dispatch.dispatch_number}",
            user,
        )

        await self.db.commit()
        logger.info(f"Dispatch {dispatch.dispatch_number} dispatched")
        return await self.get_dispatch(dispatch_id, refresh=True)

    async def mark_received(self, dispatch_id: uuid.UUID, user: Optional[User] = None) -> Dispatch:
        dispatch = await self.require_dispatch(dispatch_id)
        if dispatch.status not in (DispatchStatus.DISPATCHED.value, DispatchStatus.IN_TRANSIT.value):
            raise StateConflict(f"Dispatch is {dispatch.status}; only dispatched shipments can be received")

        dispatch.status = DispatchStatus.RECEIVED.value
        dispatch.received_at = utc_now()
        dispatch.received_by = user.id if user else None
        await self.db.commit()
        logger.info(f"Dispatch {dispatch.dispatch_number} received")
        return await self.get_dispatch(dispatch_id, refresh=True)

    async def delete_dispatch(self, dispatch_id: uuid.UUID) -> None:
        dispatch = await self.require_dispatch(dispatch_id)
        if dispatch.status != DispatchStatus.PENDING.value:
            raise StateConflict("Only Pending dispatches can be deleted")

        for manifest in dispatch.manifests:
            manifest.dispatch_id = None
        for booking in dispatch.bookings:
            booking.dispatch_id = None
        number = dispatch.dispatch_number
        await self.db.delete(dispatch)
        await self.db.commit()
        logger.info(f"Dispatch {number} deleted")

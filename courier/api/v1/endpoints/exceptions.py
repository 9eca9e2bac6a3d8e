from datetime import date
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from courier.api.deps import DB, CurrentUser, Permissions, require_permissions, ensure_status_override
from courier.schemas.support import (
    AssignRequest,
    CaseStatusUpdate,
    ExceptionCreate,
    ExceptionDetailResponse,
    ExceptionListResponse,
    ExceptionNoteCreate,
    ExceptionResponse,
    ResolveRequest,
)
from courier.services.exception_service import ExceptionService


router = APIRouter(tags=["Shipment Exceptions"])


@router.get(
    "",
    response_model=ExceptionListResponse,
    dependencies=[Depends(require_permissions("complaints:view"))]
)
async def list_exceptions(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    exception_type: Optional[str] = None,
    priority: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    search: Optional[str] = Query(None, description="Exception number, AWB or description"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    skip = (page - 1) * size
    exceptions, total = await ExceptionService(db).get_exceptions(
        status=status_filter,
        exception_type=exception_type,
        priority=priority,
        assigned_to=assigned_to,
        search=search,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=size,
    )
    return ExceptionListResponse(
        items=[ExceptionResponse.model_validate(e) for e in exceptions],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post(
    "",
    response_model=ExceptionDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("complaints:add"))]
)
async def report_exception(data: ExceptionCreate, db: DB, current_user: CurrentUser):
    """
    Report an exception against a booking by AWB. Lost or damaged
    packages put the booking On Hold.
    Requires: complaints:add permission
    """
    exception = await ExceptionService(db).report_exception(data, current_user)
    return ExceptionDetailResponse.model_validate(exception)


@router.get(
    "/{exception_id}",
    response_model=ExceptionDetailResponse,
    dependencies=[Depends(require_permissions("complaints:view"))]
)
async def get_exception(exception_id: uuid.UUID, db: DB):
    exception = await ExceptionService(db).get_exception(exception_id)
    if not exception:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exception not found")
    return ExceptionDetailResponse.model_validate(exception)


@router.post(
    "/{exception_id}/status",
    response_model=ExceptionDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def change_exception_status(
    exception_id: uuid.UUID,
    data: CaseStatusUpdate,
    db: DB,
    current_user: CurrentUser,
    checker: Permissions,
):
    ensure_status_override(checker, data.override)
    exception = await ExceptionService(db).change_status(
        exception_id, data.status.value, remarks=data.remarks, user=current_user, override=data.override
    )
    return ExceptionDetailResponse.model_validate(exception)


@router.post(
    "/{exception_id}/assign",
    response_model=ExceptionDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def assign_exception(
    exception_id: uuid.UUID,
    data: AssignRequest,
    db: DB,
    current_user: CurrentUser,
):
    exception = await ExceptionService(db).assign(
        exception_id, data.assigned_to, remarks=data.remarks, user=current_user
    )
    return ExceptionDetailResponse.model_validate(exception)


@router.post(
    "/{exception_id}/resolve",
    response_model=ExceptionDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def resolve_exception(
    exception_id: uuid.UUID,
    data: ResolveRequest,
    db: DB,
    current_user: CurrentUser,
):
    exception = await ExceptionService(db).resolve(exception_id, data.resolution, current_user)
    return ExceptionDetailResponse.model_validate(exception)


@router.post(
    "/{exception_id}/notes",
    response_model=ExceptionDetailResponse,
    dependencies=[Depends(require_permissions("complaints:edit"))]
)
async def add_exception_note(
    exception_id: uuid.UUID,
    data: ExceptionNoteCreate,
    db: DB,
    current_user: CurrentUser,
):
    exception = await ExceptionService(db).add_note(exception_id, data.note, current_user)
    return ExceptionDetailResponse.model_validate(exception)

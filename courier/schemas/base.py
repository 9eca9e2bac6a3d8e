"""
Shared pydantic bases for the courier API.

Response models read straight off ORM rows, so they must subclass
BaseResponseSchema. Request bodies drop unknown keys rather than fail,
which lets integrators send their full order payload unchanged.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """ORM-backed response, e.g. BookingResponse.model_validate(booking)."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class BaseCreateSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")


class BaseUpdateSchema(BaseModel):
    """PATCH bodies; only fields the client actually sent are applied (exclude_unset)."""
    model_config = ConfigDict(extra="ignore")


class ListResponse(BaseModel):
    """Paging fields carried by every *ListResponse; subclasses add `items`."""
    total: int
    page: int
    size: int
    pages: int


class MessageResponse(BaseModel):
    message: str

"""
Domain exceptions for the courier backend.

Services raise these; the application registers a handler that renders
them as JSON with the exception's status code and any extra payload
(for example the list of missing fields or the rate-limit usage).
"""

from typing import Any, Optional

from fastapi import status


class CourierException(Exception):
    """Base class for all domain errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        self.detail = detail or self.default_detail
        self.extra = extra
        super().__init__(self.detail)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.detail, "error": type(self).__name__, **self.extra}


class RequiredFieldsMissing(CourierException):
    default_detail = "Required fields are missing"

    def __init__(self, fields: list[str], detail: Optional[str] = None):
        super().__init__(detail or f"Missing required fields: {', '.join(fields)}", required=fields)


class NotFound(CourierException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class PermissionDenied(CourierException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Permission denied"


class AuthenticationFailed(CourierException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid credentials"


class StateConflict(CourierException):
    """Operation not allowed in the entity's current state."""
    default_detail = "Operation not allowed in current state"


class InvalidTransition(StateConflict):
    default_detail = "Status transition not allowed"


class InvalidAmount(CourierException):
    default_detail = "Invalid amount"


class HasPayments(StateConflict):
    default_detail = "Invoice has payments recorded"


class UnknownServiceType(CourierException):
    default_detail = "Unknown service type"


class RateLimitExceeded(CourierException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Rate limit exceeded"

    def __init__(self, limit: int, usage: int, window: str = "day"):
        super().__init__(
            f"Rate limit exceeded: {usage}/{limit} requests per {window}",
            limit=limit,
            usage=usage,
            window=window,
        )


class DuplicateIdentifier(CourierException):
    """A generated identifier collided with an existing document."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Generated identifier already exists, retry the request"

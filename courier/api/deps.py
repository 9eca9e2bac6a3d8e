"""
Request dependencies.

Back-office endpoints authenticate with a JWT bearer token and check
role flags through require_permissions("module:action"). Integrator
endpoints authenticate with the X-API-Key / X-API-Secret pair and check
dot-namespaced key permissions through require_api_permission.
"""
from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from courier.database import get_db
from courier.core.exceptions import AuthenticationFailed, PermissionDenied
from courier.core.security import verify_access_token
from courier.core.permissions import PermissionChecker
from courier.models.api_key import ApiKey
from courier.models.user import User
from courier.services.api_key_service import ApiKeyService, has_api_permission
from courier.services.auth_service import AuthService


logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Active user named by the bearer token's subject; 401 otherwise."""
    if credentials is None:
        raise AuthenticationFailed("Not authenticated")

    user_id = verify_access_token(credentials.credentials)
    if user_id is None:
        logger.warning("Rejected invalid or expired access token")
        raise AuthenticationFailed("Could not validate credentials")

    try:
        user = await AuthService(db).get_user(uuid.UUID(user_id))
    except ValueError:
        raise AuthenticationFailed("Could not validate credentials")

    if user is None:
        logger.warning(f"Access token for missing user {user_id}")
        raise AuthenticationFailed("Could not validate credentials")
    if not user.is_active:
        raise PermissionDenied("User account is deactivated")

    return user


async def get_permission_checker(
    user: Annotated[User, Depends(get_current_user)],
) -> PermissionChecker:
    return PermissionChecker(user)


def require_permissions(*required_permissions: str):
    """
    Dependency factory requiring every listed "module:action" flag.

    Usage:
        @router.get("", dependencies=[Depends(require_permissions("booking:view"))])
    """
    async def permission_dependency(
        checker: Annotated[PermissionChecker, Depends(get_permission_checker)]
    ) -> PermissionChecker:
        for permission in required_permissions:
            if not checker.has_permission(permission):
                logger.warning(f"User {checker.user.email} denied {permission}")
                raise PermissionDenied(f"Permission denied. Required: {permission}", required=permission)
        return checker

    return permission_dependency


def ensure_status_override(checker: PermissionChecker, override: bool) -> None:
    """Reject an override flag from a user who may only append ordinary statuses."""
    if override and not checker.can_override_status():
        logger.warning(f"User {checker.user.email} denied status override")
        raise PermissionDenied("Status override requires the Super Admin role", required="status:override")


# ==================== INTEGRATOR API KEYS ====================

async def get_api_client(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    x_api_key: Annotated[Optional[str], Header(alias="X-API-Key")] = None,
    x_api_secret: Annotated[Optional[str], Header(alias="X-API-Secret")] = None,
) -> ApiKey:
    """Authenticate an integrator request by its key pair and count it."""
    client_ip = request.client.host if request.client else None
    return await ApiKeyService(db).authenticate(x_api_key, x_api_secret, client_ip)


def require_api_permission(permission: str):
    """Integrator counterpart of require_permissions, e.g. require_api_permission("booking.create")."""
    async def api_permission_dependency(
        api_key: Annotated[ApiKey, Depends(get_api_client)]
    ) -> ApiKey:
        if not has_api_permission(api_key, permission):
            raise PermissionDenied("Insufficient permissions", required=permission)
        return api_key

    return api_permission_dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
Permissions = Annotated[PermissionChecker, Depends(get_permission_checker)]
ApiClient = Annotated[ApiKey, Depends(get_api_client)]

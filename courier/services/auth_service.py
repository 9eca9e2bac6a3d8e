"""Staff login, token issue/refresh and back-office user accounts."""
from typing import Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from courier.config import settings
from courier.core.exceptions import NotFound, StateConflict
from courier.core.security import (
    verify_and_check_needs_rehash,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from courier.db_types import utc_now
from courier.models.role import Role
from courier.models.user import User
from courier.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

TokenPair = Tuple[str, str, int]


class AuthService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID, refresh: bool = False) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Active user matching the email/password pair, else None.

        A bcrypt hash carried over from an imported account is replaced
        with an argon2 hash on the first successful login.
        """
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()
        if user is None:
            logger.warning(f"Login for unknown email {email}")
            return None

        is_valid, needs_rehash = verify_and_check_needs_rehash(password, user.password_hash)
        if not is_valid or not user.is_active:
            logger.warning(f"Failed login for {email}")
            return None

        if needs_rehash:
            user.password_hash = get_password_hash(password)
            logger.info(f"Upgraded password hash for {email}")
        return user

    async def create_tokens(self, user: User) -> TokenPair:
        """(access_token, refresh_token, expires_in_seconds); stamps last_login_at."""
        claims = {
            "email": user.email,
            "role": user.role.name if user.role else None,
            "branch": user.branch,
        }
        access_token = create_access_token(user.id, additional_claims=claims)
        refresh_token = create_refresh_token(user.id)

        user.last_login_at = utc_now()
        await self.db.commit()
        logger.info(f"Issued tokens for {user.email}")

        return access_token, refresh_token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    async def refresh_tokens(self, refresh_token: str) -> Optional[TokenPair]:
        """New pair for a valid refresh token whose user still exists and is active."""
        subject = verify_refresh_token(refresh_token)
        if subject is None:
            return None
        try:
            user = await self.get_user(uuid.UUID(subject))
        except ValueError:
            return None
        if user is None or not user.is_active:
            return None
        return await self.create_tokens(user)

    # ==================== USER ACCOUNTS ====================

    async def register_user(self, data: UserCreate) -> User:
        """Create a back-office user. Email is stored lower-cased."""
        email = data.email.lower()
        existing = await self.db.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none():
            raise StateConflict(f"User with email {email} already exists")

        if data.role_id is not None:
            role = await self.db.get(Role, data.role_id)
            if role is None:
                raise NotFound("Role not found")

        user = User(
            email=email,
            password_hash=get_password_hash(data.password),
            name=data.name,
            mobile=data.mobile or None,
            branch=data.branch,
            zone=data.zone,
            role_id=data.role_id,
            is_active=True,
        )
        self.db.add(user)
        await self.db.commit()
        logger.info(f"User {email} created")

        return await self.get_user(user.id, refresh=True)

    async def update_user(self, user_id: uuid.UUID, data: UserUpdate) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise NotFound("User not found")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("role_id") is not None:
            if await self.db.get(Role, update_data["role_id"]) is None:
                raise NotFound("Role not found")
        for field, value in update_data.items():
            setattr(user, field, value)

        await self.db.commit()
        return await self.get_user(user_id, refresh=True)

    async def list_users(
        self,
        skip: int = 0,
        limit: int = 20,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[list[User], int]:
        query = select(User)
        count_query = select(func.count(User.id))

        if search:
            pattern = f"%{search}%"
            condition = User.name.ilike(pattern) | User.email.ilike(pattern)
            query = query.where(condition)
            count_query = count_query.where(condition)
        if is_active is not None:
            query = query.where(User.is_active == is_active)
            count_query = count_query.where(User.is_active == is_active)

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(User.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

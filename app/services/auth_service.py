from datetime import datetime, timezone
from typing import Optional, Tuple
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, UserRole
from app.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from app.config import settings


logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service for user login and token management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def authenticate_user(
        self,
        email: str,
        password: str
    ) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Returns:
            User object if authentication successful, None otherwise
        """
        user = await self.get_by_email(email)

        if user is None:
            return None

        if not verify_password(password, user.password_hash):
            return None

        if not user.is_active:
            return None

        return user

    async def create_tokens(
        self,
        user: User
    ) -> Tuple[str, str, int]:
        """
        Create access and refresh tokens for a user.

        Returns:
            Tuple of (access_token, refresh_token, expires_in_seconds)
        """
        additional_claims = {
            "email": user.email,
            "role": user.role,
        }

        access_token = create_access_token(
            subject=user.id,
            additional_claims=additional_claims
        )
        refresh_token = create_refresh_token(subject=user.id)
        expires_in = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

        user.last_login_at = datetime.now(timezone.utc)
        await self.db.flush()

        return access_token, refresh_token, expires_in

    async def refresh_tokens(
        self,
        refresh_token: str
    ) -> Optional[Tuple[str, str, int]]:
        """
        Issue a new token pair from a valid refresh token.
        Returns None if the token is invalid or the user is gone or inactive.
        """
        user_id = verify_refresh_token(refresh_token)

        if user_id is None:
            return None

        try:
            user_uuid = uuid.UUID(user_id)
        except ValueError:
            return None

        user = await self.db.get(User, user_uuid)

        if user is None or not user.is_active:
            return None

        return await self.create_tokens(user)

    async def register_user(
        self,
        email: str,
        password: str,
        full_name: str,
        role: UserRole = UserRole.EMPLOYEE,
        employee_id: Optional[uuid.UUID] = None,
    ) -> User:
        """Create a user account with a hashed password."""
        user = User(
            email=email.lower(),
            password_hash=get_password_hash(password),
            full_name=full_name,
            role=role.value,
            employee_id=employee_id,
            is_active=True,
        )

        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)

        return user

    async def ensure_first_admin(self) -> Optional[User]:
        """Seed the bootstrap ADMIN from settings when configured and missing."""
        if not settings.FIRST_ADMIN_EMAIL or not settings.FIRST_ADMIN_PASSWORD:
            return None

        existing = await self.get_by_email(settings.FIRST_ADMIN_EMAIL)
        if existing is not None:
            return existing

        logger.info("Creating bootstrap admin %s", settings.FIRST_ADMIN_EMAIL)
        return await self.register_user(
            email=settings.FIRST_ADMIN_EMAIL,
            password=settings.FIRST_ADMIN_PASSWORD,
            full_name="Administrator",
            role=UserRole.ADMIN,
        )

"""User service — lookups and credential checks."""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.auth.password import verify_password
from orderhub.db.models import User
from orderhub.errors import AuthenticationRequiredError, InvalidInputError

logger = structlog.get_logger()


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def validate_credentials(self, username: str, password: str) -> Optional[User]:
        """Return the user when the password matches, else None."""
        user = await self.get_by_username(username)
        if user is None:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    async def authenticate(self, username: Optional[str], password: Optional[str]) -> User:
        """Login check. Unknown user and wrong password share one message."""
        if not username or not username.strip():
            raise InvalidInputError("Username is required")
        if not password:
            raise InvalidInputError("Password is required")

        user = await self.validate_credentials(username.strip(), password)
        if user is None:
            logger.warning("auth.login_failed", username=username.strip())
            raise AuthenticationRequiredError("Invalid username or password")
        logger.info("auth.login_succeeded", user_id=user.id, role=user.role.value)
        return user

from datetime import datetime, timezone
from typing import List, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import TokenManager, get_password_hash, verify_password
from app.core.utils import logger
from app.models.user_model import User
from app.repositories.user_repo import UserRepository
from app.schemas.user_schemas import (
    AdminSignupSchema,
    UserCreateSchema,
    UserRole,
)


class UserService:
    """Service layer for staff accounts and login."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = UserRepository(self.db)

    async def _ensure_unique(self, username: str, email: str) -> None:
        if await self.repo.get_user_by_username(username):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Username already exists",
            )
        if await self.repo.get_user_by_email(email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already exists",
            )

    async def _create(self, user_data: AdminSignupSchema, role: UserRole) -> User:
        await self._ensure_unique(user_data.username, user_data.email)

        user_dict = user_data.model_dump(exclude={"password_confirm", "role"})
        user_dict["password"] = get_password_hash(user_data.password)
        user_dict["role"] = role

        db_user = User(**user_dict)
        db_user.normalize_email()
        return await self.repo.create_user(db_user)

    async def signup_admin(self, user_data: AdminSignupSchema) -> User:
        """
        Bootstrap the first administrator account.

        Raises:
            HTTPException: 403 once an admin already exists
        """
        if await self.repo.count_users_with_role(UserRole.ADMIN) > 0:
            logger.log_security_event(
                {
                    "event_type": "admin_signup_rejected",
                    "username": user_data.username,
                    "reason": "admin_already_exists",
                }
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="An administrator account already exists",
            )

        admin = await self._create(user_data, UserRole.ADMIN)
        logger.log_info(
            {"event_type": "admin_signup", "user_id": str(admin.id)}
        )
        return admin

    async def create_user(self, user_data: UserCreateSchema) -> User:
        """
        Create a staff account with the requested role.

        Raises:
            HTTPException: 409 if the username or email is taken
        """
        user = await self._create(user_data, user_data.role)
        logger.log_info(
            {
                "event_type": "user_created",
                "user_id": str(user.id),
                "role": user.role.value,
            }
        )
        return user

    async def login_user(
        self, login: str, password: str, ip_address: Optional[str] = None
    ) -> tuple[User, str]:
        """
        Authenticate by username or email and issue an access token.

        Returns:
            Tuple of (user, access_token)
        """
        user = await self.repo.get_user_by_login(login)

        if not user:
            logger.log_security_event(
                {
                    "event_type": "authentication_failed",
                    "ip_address": ip_address,
                    "reason": f"user_not_found => {login}",
                }
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username or password",
            )

        can_login, login_error = user.can_login()
        if not can_login:
            logger.log_security_event(
                {
                    "event_type": "authentication_failed",
                    "user_id": str(user.id),
                    "ip_address": ip_address,
                    "reason": login_error,
                }
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail=login_error
            )

        if not verify_password(password, user.password):
            logger.log_security_event(
                {
                    "event_type": "authentication_failed",
                    "user_id": str(user.id),
                    "ip_address": ip_address,
                    "reason": "invalid_password",
                }
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username or password",
            )

        user.last_login_at = datetime.now(timezone.utc)
        user = await self.repo.update_user(user)

        logger.log_info(
            {
                "event_type": "login_successful",
                "user_id": str(user.id),
                "ip_address": ip_address,
            }
        )

        return user, TokenManager.create_access_token(user)

    async def list_doctors(self) -> List[User]:
        """Active doctors available for patient assignment."""
        return await self.repo.get_users_by_role(UserRole.DOCTOR)

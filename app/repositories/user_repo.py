from app.models.user_model import User as UserModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import Optional, List
import uuid

from app.schemas.user_schemas import UserRole


class UserRepository:
    """Repository layer for user data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[UserModel]:
        result = await self.db.execute(
            select(UserModel).where(
                UserModel.id == user_id, UserModel.is_deleted == False
            )
        )
        return result.scalars().first()

    async def get_user_by_username(self, username: str) -> Optional[UserModel]:
        result = await self.db.execute(
            select(UserModel).where(
                UserModel.username == username, UserModel.is_deleted == False
            )
        )
        return result.scalars().first()

    async def get_user_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.db.execute(
            select(UserModel).where(
                UserModel.email == email.lower(),
                UserModel.is_deleted == False,
            )
        )
        return result.scalars().first()

    async def get_user_by_login(self, login: str) -> Optional[UserModel]:
        """Find a user by username or email."""
        result = await self.db.execute(
            select(UserModel).where(
                or_(
                    UserModel.username == login,
                    UserModel.email == login.lower(),
                ),
                UserModel.is_deleted == False,
            )
        )
        return result.scalars().first()

    async def get_users_by_role(self, role: UserRole) -> List[UserModel]:
        result = await self.db.execute(
            select(UserModel)
            .where(
                UserModel.role == role,
                UserModel.is_active == True,
                UserModel.is_deleted == False,
            )
            .order_by(UserModel.last_name, UserModel.first_name)
        )
        return list(result.scalars().all())

    async def count_users_with_role(self, role: UserRole) -> int:
        result = await self.db.execute(
            select(func.count(UserModel.id)).where(
                UserModel.role == role, UserModel.is_deleted == False
            )
        )
        return result.scalar() or 0

    async def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def update_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

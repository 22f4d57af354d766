from typing import Optional
import uuid
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status
import logging

from app.config.config import settings as app_settings
from app.core.settings import CardPolicy
from app.core.settings_schemas import CardPolicyResponse, CardPolicyUpdate

logger = logging.getLogger(__name__)

# In-memory snapshot of the card policy (refreshed periodically).
# Plain values only, so a rollback on the loading session cannot expire it.
_policy_cache: Optional[CardPolicyResponse] = None
_cache_timestamp: Optional[datetime] = None
CACHE_TTL_SECONDS = 60  # Cache for 60 seconds


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CardPolicyService:
    """
    Service layer for the clinic-wide card policy.
    Implements caching for performance and singleton pattern for data integrity.
    """

    @staticmethod
    async def get_policy(
        db: AsyncSession,
        use_cache: bool = True
    ) -> CardPolicyResponse:
        """
        Get the card policy. Uses cache by default for performance.

        Args:
            db: Database session
            use_cache: Whether to use the cached policy (default True)

        Returns:
            Detached snapshot of the policy

        Raises:
            HTTPException: If the policy doesn't exist and can't be created
        """
        global _policy_cache, _cache_timestamp

        if use_cache and _policy_cache and _cache_timestamp:
            cache_age = (_utcnow() - _cache_timestamp).total_seconds()
            if cache_age < CACHE_TTL_SECONDS:
                logger.debug("Returning cached card policy")
                return _policy_cache

        policy = await CardPolicyService._load_policy(db)
        snapshot = CardPolicyResponse.model_validate(policy)

        _policy_cache = snapshot
        _cache_timestamp = _utcnow()

        return snapshot

    @staticmethod
    async def _load_policy(db: AsyncSession) -> CardPolicy:
        """Policy row bound to ``db``, created with defaults when missing."""
        logger.debug("Fetching card policy from database")
        result = await db.execute(
            select(CardPolicy).where(CardPolicy.id == 1)
        )
        policy = result.scalar_one_or_none()

        if not policy:
            logger.warning("No card policy found, creating default policy")
            policy = await CardPolicyService.create_default_policy(db)

        return policy

    @staticmethod
    async def create_default_policy(db: AsyncSession) -> CardPolicy:
        """
        Create the default policy (used on first startup).

        Args:
            db: Database session

        Returns:
            Created CardPolicy object
        """
        policy = CardPolicy(
            id=1,  # Singleton ID
            card_validity_days=app_settings.DEFAULT_CARD_VALIDITY_DAYS,
            grace_period_days=7,
            auto_suspend=True,
            payment_reminder_days=5,
            updated_by_id=None
        )

        try:
            db.add(policy)
            await db.commit()
            await db.refresh(policy)
            logger.info("Default card policy created successfully")
            return policy
        except IntegrityError as e:
            await db.rollback()
            logger.error(f"Failed to create default card policy: {e}")
            # Another request may have created it first
            result = await db.execute(
                select(CardPolicy).where(CardPolicy.id == 1)
            )
            policy = result.scalar_one_or_none()
            if not policy:
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to create or retrieve card policy"
                )
            return policy

    @staticmethod
    async def update_policy(
        db: AsyncSession,
        policy_update: CardPolicyUpdate,
        user_id: uuid.UUID
    ) -> CardPolicy:
        """
        Update the card policy.

        Args:
            db: Database session
            policy_update: Fields to change
            user_id: ID of user making the update

        Returns:
            Updated CardPolicy object
        """
        policy = await CardPolicyService._load_policy(db)

        update_data = policy_update.model_dump(exclude_unset=True, exclude_none=True)

        try:
            for field, value in update_data.items():
                setattr(policy, field, value)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )

        policy.updated_at = _utcnow()
        policy.updated_by_id = user_id

        try:
            await db.commit()
            await db.refresh(policy)

            CardPolicyService.invalidate_cache()

            logger.info(
                f"Card policy updated by user {user_id}. "
                f"Fields: {', '.join(update_data.keys())}"
            )

            return policy
        except IntegrityError as e:
            await db.rollback()
            logger.error(f"Failed to update card policy: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid card policy data"
            )

    @staticmethod
    async def get_card_validity_days(db: AsyncSession) -> int:
        policy = await CardPolicyService.get_policy(db)
        return policy.card_validity_days

    @staticmethod
    def invalidate_cache():
        """Invalidate the card policy cache"""
        global _policy_cache, _cache_timestamp
        _policy_cache = None
        _cache_timestamp = None
        logger.debug("Card policy cache invalidated")

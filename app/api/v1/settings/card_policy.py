from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Annotated
from app.core.permission_checker import require_admin, require_card_staff
from app.core.settings_schemas import CardPolicyResponse, CardPolicyUpdate
from app.core.settings_service import CardPolicyService
from app.api.dependencies import get_db
import logging

from app.models.user_model import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/card-policy", tags=["Card Policy"])


@router.get("", response_model=CardPolicyResponse)
async def get_card_policy(
    current_user: Annotated[User, Depends(require_card_staff())],
    db: AsyncSession = Depends(get_db)
):
    """
    Get the clinic-wide card policy.

    **Permissions:** Receptionist or admin

    **Returns:** Card policy (created with defaults on first access)
    """
    try:
        return await CardPolicyService.get_policy(db)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching card policy: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve card policy"
        )


@router.patch("", response_model=CardPolicyResponse)
async def update_card_policy(
    policy_update: CardPolicyUpdate,
    current_user: Annotated[User, Depends(require_admin())],
    db: AsyncSession = Depends(get_db)
):
    """
    Update the card policy.

    **Permissions:** Admin only

    **Notes:**
    - Only provided fields are updated
    - The new validity applies to registrations and activations from now on;
      existing expiry dates are not recomputed
    - Cache is invalidated
    """
    try:
        policy = await CardPolicyService.update_policy(
            db=db,
            policy_update=policy_update,
            user_id=current_user.id
        )

        logger.info(
            f"Card policy updated by {current_user.username} "
            f"(ID: {current_user.id})"
        )

        return policy
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating card policy: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update card policy"
        )

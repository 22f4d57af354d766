from fastapi import Depends, HTTPException, Request, status
from app.core.security import get_current_user
from app.models.user_model import User
from app.schemas.user_schemas import UserRole
from app.core.utils import logger


def require_role(*roles: UserRole):
    """
    Dependency factory to enforce roles.

    Args:
        *roles: Accepted roles (user needs one of them)

    Usage:
        current_user: User = Depends(require_role(UserRole.ADMIN))
    """

    async def checker(
        request: Request,
        current_user: User = Depends(get_current_user),
    ):
        if not current_user.has_role(*roles):
            logger.log_security_event(
                {
                    "event_type": "unauthorized_role_access_attempt",
                    "user_id": str(current_user.id),
                    "user_role": current_user.role.value,
                    "required_roles": [role.value for role in roles],
                    "path": request.url.path,
                    "ip_address": (
                        getattr(request.client, "host", "unknown")
                        if request.client
                        else "unknown"
                    ),
                }
            )

            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    "Access denied. Requires at least one of these roles: "
                    f"{', '.join(role.value for role in roles)}"
                ),
            )

        logger.log_debug(
            {
                "event_type": "access_granted_role",
                "user_id": str(current_user.id),
                "user_role": current_user.role.value,
            }
        )

        return current_user

    return checker


def require_admin():
    """Admin only."""
    return require_role(UserRole.ADMIN)


def require_card_staff():
    """Roles that administer card lifecycle: receptionists and admins."""
    return require_role(UserRole.RECEPTIONIST, UserRole.ADMIN)


def require_authenticated():
    """Any signed-in staff member."""
    return require_role(*UserRole)

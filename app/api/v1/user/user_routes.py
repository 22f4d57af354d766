import traceback
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db
from app.core.permission_checker import require_admin, require_card_staff
from app.core.security import get_current_user
from app.models.user_model import User
from app.schemas.user_schemas import (
    AdminSignupSchema,
    AuthResponse,
    DoctorSchema,
    UserCreateSchema,
    UserLoginSchema,
    UserSchema,
)
from app.services.user_service import UserService
from app.core.utils import logger


router = APIRouter(prefix="/users", tags=["users"])


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post(
    "/admin-signup", response_model=UserSchema, status_code=status.HTTP_201_CREATED
)
async def admin_signup(
    signup_data: AdminSignupSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Create the first administrator account.

    Only allowed while the clinic has no admin; afterwards admins create
    staff accounts through ``POST /users``.
    """
    user_service = UserService(db)
    try:
        admin = await user_service.signup_admin(signup_data)
        return UserSchema.model_validate(admin, from_attributes=True)

    except HTTPException:
        raise

    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    except Exception as e:
        logger.log_error(
            {
                "event": "admin_signup_error",
                "error": str(e),
                "error_type": type(e).__name__,
                "traceback": traceback.format_exc(),
            }
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during signup",
        )


@router.post("/login", response_model=AuthResponse)
async def login_user(
    login_data: UserLoginSchema,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with username (or email) and password.

    Returns:
        AuthResponse: Bearer access token and the user's profile
    """
    user_service = UserService(db)
    ip_address = _client_ip(request)

    try:
        user, access_token = await user_service.login_user(
            login=login_data.username,
            password=login_data.password,
            ip_address=ip_address,
        )

        return AuthResponse(
            access_token=access_token,
            user=UserSchema.model_validate(user, from_attributes=True),
        )

    except HTTPException as e:
        if e.status_code == status.HTTP_401_UNAUTHORIZED:
            logger.log_warning(
                {
                    "event": "login_failed",
                    "username": login_data.username,
                    "ip_address": ip_address,
                    "reason": e.detail,
                }
            )
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "login_error",
                "username": login_data.username,
                "ip_address": ip_address,
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during login",
        )


@router.get("/me", response_model=UserSchema)
async def get_me(current_user: User = Depends(get_current_user)):
    """Profile of the authenticated user."""
    return UserSchema.model_validate(current_user, from_attributes=True)


@router.post("", response_model=UserSchema, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreateSchema,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    """
    Create a staff account.

    Args:
        user_data: Credentials, profile and role of the new user
        db: Database session
        current_user: Authenticated admin

    Returns:
        UserSchema: Created user information
    """
    user_service = UserService(db)
    try:
        user = await user_service.create_user(user_data)
        logger.log_info(
            {
                "event": "staff_created",
                "user_id": str(user.id),
                "role": user.role.value,
                "created_by": str(current_user.id),
            }
        )
        return UserSchema.model_validate(user, from_attributes=True)

    except HTTPException:
        raise

    except ValueError as e:
        logger.log_warning(
            {
                "event": "user_creation_failed",
                "reason": "validation_error",
                "error": str(e),
            }
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    except Exception as e:
        logger.log_error(
            {
                "event": "user_creation_error",
                "error": str(e),
                "error_type": type(e).__name__,
                "traceback": traceback.format_exc(),
            }
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while creating user",
        )


@router.get("/doctors", response_model=List[DoctorSchema])
async def list_doctors(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_card_staff()),
):
    """Active doctors a card can be assigned to."""
    user_service = UserService(db)
    doctors = await user_service.list_doctors()
    return [DoctorSchema.model_validate(d, from_attributes=True) for d in doctors]

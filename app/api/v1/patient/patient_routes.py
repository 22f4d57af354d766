import traceback
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db
from app.core.pagination import (
    PaginatedResponse,
    PaginationParams,
    get_pagination_params,
)
from app.core.permission_checker import require_authenticated, require_card_staff
from app.models.user_model import User
from app.schemas.patient_schemas import (
    CardActivationSchema,
    CardSummarySchema,
    PatientCreateSchema,
    PatientListFilter,
    PatientResponseSchema,
    SuspendCardSchema,
)
from app.services.patient_service import PatientService
from app.core.utils import logger


router = APIRouter(prefix="/patients", tags=["patients"])


def _unexpected(event: str, e: Exception, current_user: User, detail: str, **extra):
    logger.log_error(
        {
            "event": event,
            "error": str(e),
            "error_type": type(e).__name__,
            "traceback": traceback.format_exc(),
            "user_id": str(current_user.id),
            **extra,
        }
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )


# ============= Registration =============
@router.post(
    "",
    response_model=PatientResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def register_patient(
    patient_data: PatientCreateSchema,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_card_staff()),
):
    """
    Register a new patient and issue an active card.

    Args:
        patient_data: Patient demographics and card options
        db: Database session
        current_user: Authenticated receptionist or admin

    Returns:
        PatientResponseSchema: Created patient with live card state
    """
    service = PatientService(db)
    try:
        patient = await service.register_patient(patient_data, current_user)
        return service.to_response(patient)

    except HTTPException:
        raise

    except ValueError as e:
        logger.log_warning(
            {
                "event": "patient_registration_failed",
                "reason": "validation_error",
                "error": str(e),
                "created_by": str(current_user.id),
            }
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    except Exception as e:
        raise _unexpected(
            "patient_registration_error",
            e,
            current_user,
            "An unexpected error occurred while registering patient",
        )


# ============= Scoped Reads =============
@router.get("", response_model=PaginatedResponse[PatientResponseSchema])
async def list_patients(
    filter_status: PatientListFilter = Query(
        default=PatientListFilter.ALL, description="Card state filter"
    ),
    search: Optional[str] = Query(
        default=None, description="Match on name or patient number"
    ),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authenticated()),
):
    """
    List the patients visible to the caller.

    Receptionists and admins see every card; doctors see their own patients
    with a usable card; other clinical staff see every usable card.
    """
    service = PatientService(db)
    try:
        return await service.list_patients_for_viewer(
            viewer=current_user,
            pagination=pagination,
            list_filter=filter_status,
            search=search,
        )

    except HTTPException:
        raise

    except Exception as e:
        raise _unexpected(
            "list_patients_error",
            e,
            current_user,
            "An unexpected error occurred while listing patients",
        )


@router.get("/card-summary", response_model=CardSummarySchema)
async def get_card_summary(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authenticated()),
):
    """Card state counts over the patients visible to the caller."""
    service = PatientService(db)
    try:
        return await service.card_summary(current_user)

    except HTTPException:
        raise

    except Exception as e:
        raise _unexpected(
            "card_summary_error",
            e,
            current_user,
            "An unexpected error occurred while summarising cards",
        )


@router.get("/{patient_id}", response_model=PatientResponseSchema)
async def get_patient(
    patient_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authenticated()),
):
    """
    Get a patient by ID.

    Answers 404 when the patient is not visible to the caller.
    """
    service = PatientService(db)
    try:
        patient = await service.get_patient_for_viewer(patient_id, current_user)
        return service.to_response(patient)

    except HTTPException:
        raise

    except Exception as e:
        raise _unexpected(
            "get_patient_error",
            e,
            current_user,
            "An unexpected error occurred while retrieving patient",
            patient_id=str(patient_id),
        )


# ============= Card Actions =============
@router.post("/{patient_id}/activate", response_model=PatientResponseSchema)
async def activate_card(
    patient_id: uuid.UUID,
    activation: CardActivationSchema,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_card_staff()),
):
    """
    Full card activation after payment.

    Starts a new validity period, assigns the doctor and counts as today's
    daily activation.
    """
    service = PatientService(db)
    try:
        patient = await service.activate_card(patient_id, activation, current_user)
        return service.to_response(patient)

    except HTTPException:
        raise

    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    except Exception as e:
        raise _unexpected(
            "card_activation_error",
            e,
            current_user,
            "Failed to activate card, please retry",
            patient_id=str(patient_id),
        )


@router.post("/{patient_id}/daily-activation", response_model=PatientResponseSchema)
async def daily_activation(
    patient_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_card_staff()),
):
    """
    Confirm the card for today.

    Expired and suspended cards are refused with 400; they need a full
    activation.
    """
    service = PatientService(db)
    try:
        patient = await service.daily_activate(patient_id, current_user)
        return service.to_response(patient)

    except HTTPException:
        raise

    except Exception as e:
        raise _unexpected(
            "daily_activation_error",
            e,
            current_user,
            "Failed to activate card, please retry",
            patient_id=str(patient_id),
        )


@router.post("/{patient_id}/suspend", response_model=PatientResponseSchema)
async def suspend_card(
    patient_id: uuid.UUID,
    suspension: SuspendCardSchema,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_card_staff()),
):
    """Suspend a card until its next full activation."""
    service = PatientService(db)
    try:
        patient = await service.suspend_card(patient_id, suspension, current_user)
        return service.to_response(patient)

    except HTTPException:
        raise

    except Exception as e:
        raise _unexpected(
            "suspend_card_error",
            e,
            current_user,
            "Failed to suspend card, please retry",
            patient_id=str(patient_id),
        )

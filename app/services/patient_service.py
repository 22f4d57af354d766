from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, List, Optional, Tuple
import uuid
from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.config import settings
from app.core.card_policy import (
    effective_card_state,
    is_card_expired,
    is_expiring_soon,
    needs_activation,
    visible_patients,
)
from app.core.card_state import CardStatus, EffectiveCardState
from app.core.pagination import PaginatedResponse, PaginationParams, Paginator
from app.core.settings_service import CardPolicyService
from app.core.utils import LoggerMixin
from app.models.patient_model import Patient
from app.models.user_model import User
from app.repositories.patient_repo import PatientRepository
from app.repositories.user_repo import UserRepository
from app.schemas.patient_schemas import (
    CardActivationSchema,
    CardSummarySchema,
    PatientCreateSchema,
    PatientListFilter,
    PatientResponseSchema,
    SuspendCardSchema,
)
from app.schemas.user_schemas import UserRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PatientService(LoggerMixin):
    """
    Service layer for patient registration and the card lifecycle.

    Every read goes through the card policy evaluator and the visibility
    filter; the stored ``card_status`` is only ever written here and by the
    nightly sweep.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Callable[[], datetime]] = None,
        tz: Optional[tzinfo] = None,
    ):
        super().__init__()
        self.db = db
        self.repo = PatientRepository(self.db)
        self.user_repo = UserRepository(self.db)
        self.clock = clock or _utcnow
        self.tz = tz or settings.clinic_tz

    # ============= Helpers =============
    async def _get_patient_or_404(self, patient_id: uuid.UUID) -> Patient:
        patient = await self.repo.get_patient_by_id(patient_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )
        return patient

    async def _validate_doctor(self, doctor_id: uuid.UUID) -> User:
        doctor = await self.user_repo.get_user_by_id(doctor_id)
        if not doctor or doctor.role != UserRole.DOCTOR or not doctor.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Assigned doctor must be an active doctor",
            )
        return doctor

    async def _validity_days(self, requested: Optional[int]) -> int:
        if requested is not None:
            return requested
        return await CardPolicyService.get_card_validity_days(self.db)

    async def _save(self, patient: Patient, failure_detail: str) -> Patient:
        try:
            return await self.repo.update_patient(patient)
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.log_error(
                {
                    "event": "card_write_failed",
                    "patient_id": str(patient.id),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=failure_detail,
            )

    def to_response(
        self, patient: Patient, as_of: Optional[datetime] = None
    ) -> PatientResponseSchema:
        return PatientResponseSchema.from_patient(
            patient, as_of or self.clock(), self.tz
        )

    # ============= Card Lifecycle =============
    async def register_patient(
        self, patient_data: PatientCreateSchema, created_by: User
    ) -> Patient:
        """
        Register a patient with a freshly activated card.

        The card starts active, expires after the requested validity (or the
        clinic default) and counts as activated today.
        """
        if await self.repo.get_patient_by_number(patient_data.patient_number):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Patient with this patient number already exists",
            )

        if patient_data.assigned_doctor_id:
            await self._validate_doctor(patient_data.assigned_doctor_id)

        validity_days = await self._validity_days(patient_data.card_validity_days)
        now = self.clock()
        expiry = now + timedelta(days=validity_days)

        patient_dict = patient_data.model_dump(exclude={"card_validity_days"})
        db_patient = Patient(
            **patient_dict,
            card_status=CardStatus.ACTIVE,
            card_expiry_date=expiry,
            card_activated_date=now,
            last_daily_activation=now,
            last_payment_date=now,
            payment_due_date=expiry,
            created_by_id=created_by.id,
        )

        try:
            patient = await self.repo.create_patient(db_patient)
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.log_error(
                {"event": "patient_registration_failed", "error": str(e)},
                exc_info=True,
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to register patient, please retry",
            )

        self.log_card_event(
            {
                "event": "patient_registered",
                "patient_id": str(patient.id),
                "card_expiry_date": expiry,
                "validity_days": validity_days,
                "created_by": str(created_by.id),
            }
        )
        return patient

    async def activate_card(
        self,
        patient_id: uuid.UUID,
        activation: CardActivationSchema,
        activated_by: User,
    ) -> Patient:
        """
        Full activation: records the payment, starts a new validity period and
        counts as today's daily activation.
        """
        patient = await self._get_patient_or_404(patient_id)
        await self._validate_doctor(activation.assigned_doctor_id)

        validity_days = await self._validity_days(activation.validity_days)
        now = self.clock()
        expiry = now + timedelta(days=validity_days)

        patient.card_status = CardStatus.ACTIVE
        patient.card_expiry_date = expiry
        patient.card_activated_date = now
        patient.last_daily_activation = now
        patient.last_payment_date = now
        patient.payment_due_date = expiry
        patient.assigned_doctor_id = activation.assigned_doctor_id
        patient.daily_activation_required = activation.daily_activation_required

        patient = await self._save(patient, "Failed to activate card, please retry")

        self.log_card_event(
            {
                "event": "card_activated",
                "patient_id": str(patient.id),
                "payment_amount": str(activation.payment_amount),
                "payment_method": activation.payment_method.value,
                "validity_days": validity_days,
                "card_expiry_date": expiry,
                "activated_by": str(activated_by.id),
            }
        )
        return patient

    async def daily_activate(
        self, patient_id: uuid.UUID, activated_by: User
    ) -> Patient:
        """
        Daily confirmation. Leaves expiry untouched, so expired or suspended
        cards are refused and need a full activation instead.
        """
        patient = await self._get_patient_or_404(patient_id)
        now = self.clock()

        state = effective_card_state(patient, now, self.tz)
        if state is EffectiveCardState.EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Card has expired and requires full activation",
            )
        if state is EffectiveCardState.SUSPENDED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Card is suspended and requires full activation",
            )

        patient.card_status = CardStatus.ACTIVE
        patient.last_daily_activation = now

        patient = await self._save(patient, "Failed to activate card, please retry")

        self.log_card_event(
            {
                "event": "card_daily_activated",
                "patient_id": str(patient.id),
                "activated_by": str(activated_by.id),
            }
        )
        return patient

    async def suspend_card(
        self,
        patient_id: uuid.UUID,
        suspension: SuspendCardSchema,
        suspended_by: User,
    ) -> Patient:
        patient = await self._get_patient_or_404(patient_id)
        patient.card_status = CardStatus.SUSPENDED

        patient = await self._save(patient, "Failed to suspend card, please retry")

        self.log_card_event(
            {
                "event": "card_suspended",
                "patient_id": str(patient.id),
                "reason": suspension.reason,
                "suspended_by": str(suspended_by.id),
            }
        )
        return patient

    # ============= Scoped Reads =============
    async def _visible_to(self, viewer: User) -> Tuple[List[Patient], datetime]:
        as_of = self.clock()
        patients = await self.repo.get_patients()
        return visible_patients(patients, viewer.role, viewer.id, as_of, self.tz), as_of

    def _matches_filter(
        self, patient: Patient, list_filter: PatientListFilter, as_of: datetime
    ) -> bool:
        if list_filter is PatientListFilter.ALL:
            return True
        if list_filter is PatientListFilter.ACTIVE:
            return effective_card_state(patient, as_of, self.tz) is EffectiveCardState.ACTIVE
        if list_filter is PatientListFilter.EXPIRED:
            # past expiry counts even when the card is also suspended
            return (
                patient.card_status == CardStatus.EXPIRED
                or is_card_expired(patient, as_of)
            )
        if list_filter is PatientListFilter.EXPIRING_SOON:
            return is_expiring_soon(patient, as_of)
        if list_filter is PatientListFilter.NEEDS_ACTIVATION:
            return needs_activation(patient, as_of, self.tz)
        raise ValueError(f"Unknown patient filter: {list_filter}")

    @staticmethod
    def _matches_search(patient: Patient, search: Optional[str]) -> bool:
        if not search:
            return True
        haystack = f"{patient.first_name} {patient.last_name} {patient.patient_number}"
        return search.strip().lower() in haystack.lower()

    async def list_patients_for_viewer(
        self,
        viewer: User,
        pagination: PaginationParams,
        list_filter: PatientListFilter = PatientListFilter.ALL,
        search: Optional[str] = None,
    ) -> PaginatedResponse[PatientResponseSchema]:
        """Patients the viewer may see, filtered, searched and paginated."""
        patients, as_of = await self._visible_to(viewer)

        matching = [
            patient
            for patient in patients
            if self._matches_filter(patient, list_filter, as_of)
            and self._matches_search(patient, search)
        ]

        return Paginator.paginate(
            matching,
            pagination,
            transform=lambda patient: self.to_response(patient, as_of),
        )

    async def get_patient_for_viewer(
        self, patient_id: uuid.UUID, viewer: User
    ) -> Patient:
        """
        Fetch one patient, answering 404 both when it does not exist and when
        the viewer is not allowed to see it.
        """
        patient = await self._get_patient_or_404(patient_id)
        as_of = self.clock()

        if not visible_patients([patient], viewer.role, viewer.id, as_of, self.tz):
            self.log_warning(
                {
                    "event": "patient_not_visible",
                    "patient_id": str(patient_id),
                    "viewer_id": str(viewer.id),
                    "viewer_role": viewer.role.value,
                }
            )
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )
        return patient

    async def card_summary(self, viewer: User) -> CardSummarySchema:
        """Counts per effective card state over the viewer's patients."""
        patients, as_of = await self._visible_to(viewer)

        counts = {state: 0 for state in EffectiveCardState}
        lapsed_or_expired = 0
        expiring = 0
        for patient in patients:
            counts[effective_card_state(patient, as_of, self.tz)] += 1
            if needs_activation(patient, as_of, self.tz):
                lapsed_or_expired += 1
            if is_expiring_soon(patient, as_of):
                expiring += 1

        return CardSummarySchema(
            total=len(patients),
            active=counts[EffectiveCardState.ACTIVE],
            expired=counts[EffectiveCardState.EXPIRED],
            suspended=counts[EffectiveCardState.SUSPENDED],
            needs_daily_activation=counts[EffectiveCardState.NEEDS_DAILY_ACTIVATION],
            needs_activation=lapsed_or_expired,
            expiring_soon=expiring,
            as_of=as_of,
        )

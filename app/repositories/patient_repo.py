from datetime import datetime, timezone
from typing import Optional, List
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update

from app.core.card_state import CardStatus
from app.models.patient_model import Patient


class PatientRepository:
    """Repository layer for patient data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============= Lookups =============
    async def get_patient_by_id(self, patient_id: uuid.UUID) -> Optional[Patient]:
        """Get patient by ID."""
        result = await self.db.execute(select(Patient).where(Patient.id == patient_id))
        return result.scalars().first()

    async def get_patient_by_number(self, patient_number: str) -> Optional[Patient]:
        result = await self.db.execute(
            select(Patient).where(Patient.patient_number == patient_number)
        )
        return result.scalars().first()

    async def get_patients(self) -> List[Patient]:
        """Every patient, newest registration first."""
        result = await self.db.execute(
            select(Patient).order_by(Patient.created_at.desc(), Patient.patient_number)
        )
        return list(result.scalars().all())

    async def get_patients_requiring_daily_activation(self) -> List[Patient]:
        """Patients whose card needs a daily confirmation."""
        result = await self.db.execute(
            select(Patient).where(Patient.daily_activation_required == True)
        )
        return list(result.scalars().all())

    # ============= Writes =============
    async def create_patient(self, patient: Patient) -> Patient:
        """Create a new patient."""
        self.db.add(patient)
        await self.db.commit()
        await self.db.refresh(patient)
        return patient

    async def update_patient(self, patient: Patient) -> Patient:
        """Persist changes made to a loaded patient."""
        self.db.add(patient)
        await self.db.commit()
        await self.db.refresh(patient)
        return patient

    async def set_card_status(
        self, patient_id: uuid.UUID, card_status: CardStatus
    ) -> None:
        """
        Overwrite only the stored card status of one patient and commit.

        Expiry and activation timestamps are left untouched.
        """
        await self.db.execute(
            update(Patient)
            .where(Patient.id == patient_id)
            .values(card_status=card_status, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

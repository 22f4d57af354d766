import uuid
from datetime import datetime, date
from typing import Optional, TYPE_CHECKING
from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    ForeignKey,
    String,
    Date,
    Text,
    Enum as SQLEnum,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from app.db.base import Base
from app.core.card_state import CardStatus
from app.schemas.patient_schemas import Gender

if TYPE_CHECKING:
    from app.models.user_model import User


class Patient(Base):
    """Registered patient together with the state of their clinic card."""

    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )

    # Clinic-facing identifier printed on the card
    patient_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )

    # Basic Information
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[Gender] = mapped_column(
        SQLEnum(Gender, name="gender", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    phone: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    emergency_contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    emergency_contact_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    medical_history: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    allergies: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Card state. card_status is a cache refreshed by writes and the nightly
    # sweep; access decisions go through app.core.card_policy instead.
    card_status: Mapped[CardStatus] = mapped_column(
        SQLEnum(
            CardStatus,
            name="cardstatus",
            values_callable=lambda e: [m.value for m in e],
        ),
        default=CardStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    card_expiry_date: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    card_activated_date: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    daily_activation_required: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, index=True
    )
    last_daily_activation: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    # Informational billing dates, not consulted by any card rule
    last_payment_date: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    payment_due_date: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    assigned_doctor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    assigned_doctor: Mapped[Optional["User"]] = relationship(
        "User",
        foreign_keys=[assigned_doctor_id],
        back_populates="assigned_patients",
        lazy="selectin",
    )

    created_by: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[created_by_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return (
            f"<Patient id={self.id} number={self.patient_number} "
            f"card_status={self.card_status}>"
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

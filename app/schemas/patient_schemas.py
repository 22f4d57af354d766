from datetime import date, datetime, tzinfo
from decimal import Decimal
from enum import Enum
import re
from typing import Dict, Optional
import uuid
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.config.config import settings
from app.core.card_state import CardStatus, EffectiveCardState
from app.core.card_policy import (
    days_until_expiry,
    effective_card_state,
    needs_daily_activation,
)


class Gender(str, Enum):
    """Gender enumeration"""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class PaymentMethod(str, Enum):
    """Accepted card payment methods"""

    CASH = "cash"
    CARD = "card"
    INSURANCE = "insurance"


class PatientListFilter(str, Enum):
    """Card filters offered on the patient list"""

    ALL = "all"
    ACTIVE = "active"
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    NEEDS_ACTIVATION = "needs_activation"


def _validate_phone_value(v: str) -> str:
    v = v.strip()

    if any(c.isalpha() for c in v):
        raise ValueError("Phone number must not contain letters")

    if not re.match(r"^\+?\d{10,15}$", v):
        raise ValueError(
            "Phone number must be 10-15 digits, optionally starting with '+'"
        )

    return v


# ============= Helper Schemas for Names =============
class UserInfoSchema(BaseModel):
    """Schema for user information"""
    id: uuid.UUID
    name: str
    model_config = {"from_attributes": True}


# ============= Registration =============
class PatientCreateSchema(BaseModel):
    """
    Schema for registering a new patient.

    created_by_id is populated from the authenticated user.
    """

    patient_number: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    phone: str
    email: Optional[EmailStr] = None
    address: str
    emergency_contact_name: str
    emergency_contact_phone: str
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    assigned_doctor_id: Optional[uuid.UUID] = None
    daily_activation_required: bool = True
    card_validity_days: Optional[int] = Field(default=None, ge=1)

    @field_validator("patient_number")
    @classmethod
    def validate_patient_number(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Patient number is required")
        if len(v) > 50:
            raise ValueError("Patient number must not exceed 50 characters")
        return v

    @field_validator("first_name", "last_name", "emergency_contact_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name format."""
        if not v or not v.strip():
            raise ValueError("Name cannot be empty")

        v = v.strip()

        if len(v) > 100:
            raise ValueError("Name must not exceed 100 characters")

        if any(char.isdigit() for char in v):
            raise ValueError("Name must not contain numbers")

        return v

    @field_validator("phone", "emergency_contact_phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        """Validate phone number format."""
        if not v or not v.strip():
            raise ValueError("Phone number is required")
        return _validate_phone_value(v)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Address is required")
        return v.strip()

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


# ============= Card Actions =============
class CardActivationSchema(BaseModel):
    """Full activation: payment received, new validity period starts."""

    payment_amount: Decimal = Field(ge=0)
    payment_method: PaymentMethod
    assigned_doctor_id: uuid.UUID
    validity_days: Optional[int] = Field(default=None, ge=1)
    daily_activation_required: bool = True
    notes: Optional[str] = Field(default=None, max_length=1000)


class SuspendCardSchema(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


# ============= Responses =============
class PatientResponseSchema(BaseModel):
    """Patient with both the stored card status and the live card state."""

    id: uuid.UUID
    patient_number: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    phone: str
    email: Optional[str] = None
    address: str
    emergency_contact_name: str
    emergency_contact_phone: str
    medical_history: Optional[str] = None
    allergies: Optional[str] = None

    card_status: CardStatus
    effective_card_state: EffectiveCardState
    needs_daily_activation: bool
    days_until_expiry: Optional[int] = None
    card_expiry_date: Optional[datetime] = None
    card_activated_date: Optional[datetime] = None
    daily_activation_required: bool
    last_daily_activation: Optional[datetime] = None
    last_payment_date: Optional[datetime] = None
    payment_due_date: Optional[datetime] = None

    assigned_doctor: Optional[UserInfoSchema] = None
    created_by: Optional[UserInfoSchema] = None

    created_at: datetime
    updated_at: datetime
    links: Dict[str, str]

    model_config = {"from_attributes": True}

    @classmethod
    def from_patient(cls, patient, as_of: datetime, tz: Optional[tzinfo] = None):
        """Create schema with the card state evaluated at ``as_of``."""
        base = f"{settings.API_PREFIX}/patients/{patient.id}"

        assigned_doctor_info = None
        if patient.assigned_doctor:
            assigned_doctor_info = UserInfoSchema(
                id=patient.assigned_doctor.id,
                name=f"Dr. {patient.assigned_doctor.full_name}",
            )

        created_by_info = None
        if patient.created_by:
            created_by_info = UserInfoSchema(
                id=patient.created_by.id,
                name=patient.created_by.full_name or patient.created_by.username,
            )

        return cls(
            id=patient.id,
            patient_number=patient.patient_number,
            first_name=patient.first_name,
            last_name=patient.last_name,
            date_of_birth=patient.date_of_birth,
            gender=patient.gender,
            phone=patient.phone,
            email=patient.email,
            address=patient.address,
            emergency_contact_name=patient.emergency_contact_name,
            emergency_contact_phone=patient.emergency_contact_phone,
            medical_history=patient.medical_history,
            allergies=patient.allergies,
            card_status=patient.card_status,
            effective_card_state=effective_card_state(patient, as_of, tz),
            needs_daily_activation=needs_daily_activation(patient, as_of, tz),
            days_until_expiry=days_until_expiry(patient, as_of),
            card_expiry_date=patient.card_expiry_date,
            card_activated_date=patient.card_activated_date,
            daily_activation_required=patient.daily_activation_required,
            last_daily_activation=patient.last_daily_activation,
            last_payment_date=patient.last_payment_date,
            payment_due_date=patient.payment_due_date,
            assigned_doctor=assigned_doctor_info,
            created_by=created_by_info,
            created_at=patient.created_at,
            updated_at=patient.updated_at,
            links={
                "get_patient": base,
                "activate_card": f"{base}/activate",
                "daily_activation": f"{base}/daily-activation",
                "suspend_card": f"{base}/suspend",
            },
        )


class CardSummarySchema(BaseModel):
    """Card state counts over the patients visible to the caller."""

    total: int
    active: int
    expired: int
    suspended: int
    needs_daily_activation: int
    needs_activation: int
    expiring_soon: int
    as_of: datetime

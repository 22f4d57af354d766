"""
Builders for users, patients and auth headers used across the test suite.
"""

import uuid
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.card_state import CardStatus
from app.core.security import TokenManager, get_password_hash
from app.models.patient_model import Patient
from app.models.user_model import User
from app.schemas.patient_schemas import Gender
from app.schemas.user_schemas import UserRole


TEST_PASSWORD = "Clinic123!@#"


async def create_user(
    session: AsyncSession,
    role: UserRole,
    username: str,
    first_name: str = "Test",
    last_name: str = "User",
    is_active: bool = True,
) -> User:
    user = User(
        username=username,
        first_name=first_name,
        last_name=last_name,
        email=f"{username}@clinic.com",
        phone="+233201234567",
        password=get_password_hash(TEST_PASSWORD),
        role=role,
        is_active=is_active,
        is_deleted=False,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def create_patient(
    session: AsyncSession,
    patient_number: str,
    card_expiry_date: Optional[datetime],
    last_daily_activation: Optional[datetime],
    card_status: CardStatus = CardStatus.ACTIVE,
    daily_activation_required: bool = True,
    assigned_doctor_id: Optional[uuid.UUID] = None,
    first_name: str = "Ama",
    last_name: str = "Mensah",
) -> Patient:
    patient = Patient(
        patient_number=patient_number,
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date(1990, 5, 17),
        gender=Gender.FEMALE,
        phone="+233241234567",
        address="12 Ring Road, Accra",
        emergency_contact_name="Kofi Mensah",
        emergency_contact_phone="+233241234568",
        card_status=card_status,
        card_expiry_date=card_expiry_date,
        card_activated_date=(
            card_expiry_date - timedelta(days=30) if card_expiry_date else None
        ),
        daily_activation_required=daily_activation_required,
        last_daily_activation=last_daily_activation,
        assigned_doctor_id=assigned_doctor_id,
    )
    session.add(patient)
    await session.commit()
    await session.refresh(patient)
    return patient


def card(
    card_expiry_date: Optional[datetime],
    last_daily_activation: Optional[datetime],
    card_status: CardStatus = CardStatus.ACTIVE,
    daily_activation_required: bool = True,
    assigned_doctor_id=None,
    id=None,
) -> SimpleNamespace:
    """Plain in-memory patient for the pure policy functions."""
    return SimpleNamespace(
        id=id or uuid.uuid4(),
        card_status=card_status,
        card_expiry_date=card_expiry_date,
        daily_activation_required=daily_activation_required,
        last_daily_activation=last_daily_activation,
        assigned_doctor_id=assigned_doctor_id,
    )


def auth_headers_for(user: User) -> dict:
    token = TokenManager.create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


def registration_payload(patient_number: str = "P-100", **overrides) -> dict:
    payload = {
        "patient_number": patient_number,
        "first_name": "Afua",
        "last_name": "Ofori",
        "date_of_birth": "1985-03-02",
        "gender": "female",
        "phone": "+233501112223",
        "address": "4 Oxford Street, Osu",
        "emergency_contact_name": "Kwesi Ofori",
        "emergency_contact_phone": "+233501112224",
    }
    payload.update(overrides)
    return payload


def assert_paginated_response(data: dict):
    """Assert that response is a valid paginated response."""
    assert "items" in data
    assert "page_info" in data
    assert "total_items" in data["page_info"]
    assert "total_pages" in data["page_info"]
    assert "current_page" in data["page_info"]
    assert "has_next" in data["page_info"]

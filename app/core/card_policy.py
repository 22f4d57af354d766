"""
Card policy evaluator and role-based visibility filter.

Everything here is a pure function of its inputs: no I/O, no clock reads, no
mutation. Callers pass ``as_of`` explicitly and may pass the clinic time zone
used for calendar-day comparisons. Naive timestamps are read as UTC, which is
how the database layer stores them.

Patient arguments are duck-typed: anything exposing ``card_status``,
``card_expiry_date``, ``daily_activation_required``, ``last_daily_activation``
and ``assigned_doctor_id`` works (ORM rows, schemas, test doubles).
"""
from datetime import date, datetime, timezone, tzinfo
from typing import Iterable, List, Optional, TypeVar
import uuid

from app.core.card_state import (
    CARD_ADMINISTRATOR_ROLES,
    CLINICAL_ROLES,
    EXPIRING_SOON_DAYS,
    CardStatus,
    EffectiveCardState,
)
from app.schemas.user_schemas import UserRole


P = TypeVar("P")

SECONDS_PER_DAY = 24 * 60 * 60


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def calendar_date(value: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of ``value`` in ``tz`` (UTC when no zone is given)."""
    return _aware(value).astimezone(tz or timezone.utc).date()


def is_card_expired(patient, as_of: datetime) -> bool:
    """
    True when ``as_of`` is strictly after the card expiry.

    A card without an expiry date is treated as expired.
    """
    expiry = patient.card_expiry_date
    if expiry is None:
        return True
    return _aware(as_of) > _aware(expiry)


def needs_daily_activation(
    patient, as_of: datetime, tz: Optional[tzinfo] = None
) -> bool:
    """
    True when the card requires a daily confirmation it has not had today.

    Only calendar days are compared, never time of day.
    """
    if not patient.daily_activation_required:
        return False

    last_activation = patient.last_daily_activation
    if last_activation is None:
        return True

    return calendar_date(last_activation, tz) < calendar_date(as_of, tz)


def effective_card_state(
    patient, as_of: datetime, tz: Optional[tzinfo] = None
) -> EffectiveCardState:
    """
    Derive the live card state, ignoring any stale stored status.

    Precedence (first match wins): suspended, expired, daily-activation
    lapse, active. Expiry is checked before the daily lapse so staff see
    the payment problem first.
    """
    if patient.card_status == CardStatus.SUSPENDED:
        return EffectiveCardState.SUSPENDED

    if is_card_expired(patient, as_of):
        return EffectiveCardState.EXPIRED

    if needs_daily_activation(patient, as_of, tz):
        return EffectiveCardState.NEEDS_DAILY_ACTIVATION

    return EffectiveCardState.ACTIVE


def is_card_usable(patient, as_of: datetime, tz: Optional[tzinfo] = None) -> bool:
    return effective_card_state(patient, as_of, tz) is EffectiveCardState.ACTIVE


def days_until_expiry(patient, as_of: datetime) -> Optional[int]:
    """Whole days left before expiry, truncated toward zero. None without an expiry."""
    expiry = patient.card_expiry_date
    if expiry is None:
        return None
    remaining = (_aware(expiry) - _aware(as_of)).total_seconds()
    return int(remaining / SECONDS_PER_DAY)


def is_expiring_soon(patient, as_of: datetime) -> bool:
    days = days_until_expiry(patient, as_of)
    if days is None or is_card_expired(patient, as_of):
        return False
    return 0 <= days <= EXPIRING_SOON_DAYS


def needs_activation(patient, as_of: datetime, tz: Optional[tzinfo] = None) -> bool:
    """Card needs receptionist action: expired or lapsed daily activation."""
    return is_card_expired(patient, as_of) or needs_daily_activation(
        patient, as_of, tz
    )


def _same_user(assigned_id, viewer_id) -> bool:
    if assigned_id is None or viewer_id is None:
        return False
    if isinstance(assigned_id, uuid.UUID) or isinstance(viewer_id, uuid.UUID):
        return str(assigned_id) == str(viewer_id)
    return assigned_id == viewer_id


def can_view_patient(
    patient,
    viewer_role: UserRole,
    viewer_id,
    as_of: datetime,
    tz: Optional[tzinfo] = None,
) -> bool:
    """Whether a viewer with ``viewer_role``/``viewer_id`` may see ``patient``."""
    role = UserRole(viewer_role)

    if role in CARD_ADMINISTRATOR_ROLES:
        return True

    if role is UserRole.DOCTOR:
        if not _same_user(patient.assigned_doctor_id, viewer_id):
            return False
        return is_card_usable(patient, as_of, tz)

    if role in CLINICAL_ROLES:
        return is_card_usable(patient, as_of, tz)

    raise ValueError(f"No visibility rule for role: {role.value}")


def visible_patients(
    all_patients: Iterable[P],
    viewer_role: UserRole,
    viewer_id,
    as_of: datetime,
    tz: Optional[tzinfo] = None,
) -> List[P]:
    """
    Subset of ``all_patients`` the viewer may see, in input order.

    Receptionists and admins see every card. Doctors see their own assigned
    patients with a usable card. Other clinical roles see every patient with
    a usable card.
    """
    return [
        patient
        for patient in all_patients
        if can_view_patient(patient, viewer_role, viewer_id, as_of, tz)
    ]

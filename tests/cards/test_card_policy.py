"""
Card Policy Tests

Tests for the live card state evaluator and the role visibility filter.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.core.card_policy import (
    can_view_patient,
    days_until_expiry,
    effective_card_state,
    is_card_usable,
    is_expiring_soon,
    needs_activation,
    needs_daily_activation,
    visible_patients,
)
from app.core.card_state import CardStatus, EffectiveCardState
from app.schemas.user_schemas import UserRole
from factories import card


NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestEffectiveCardState:
    """Precedence: suspended, expired, daily lapse, active."""

    def test_suspended_wins_over_every_date(self):
        patient = card(
            card_expiry_date=NOW - timedelta(days=90),
            last_daily_activation=None,
            card_status=CardStatus.SUSPENDED,
        )
        assert effective_card_state(patient, NOW) is EffectiveCardState.SUSPENDED

    def test_suspended_with_valid_dates(self):
        patient = card(
            card_expiry_date=NOW + timedelta(days=10),
            last_daily_activation=NOW,
            card_status=CardStatus.SUSPENDED,
        )
        assert effective_card_state(patient, NOW) is EffectiveCardState.SUSPENDED

    def test_past_expiry_overrides_stored_active(self):
        patient = card(
            card_expiry_date=NOW - timedelta(seconds=1),
            last_daily_activation=NOW,
            daily_activation_required=False,
        )
        assert effective_card_state(patient, NOW) is EffectiveCardState.EXPIRED

    def test_expired_reported_before_daily_lapse(self):
        patient = card(
            card_expiry_date=NOW - timedelta(days=3),
            last_daily_activation=NOW - timedelta(days=5),
        )
        assert effective_card_state(patient, NOW) is EffectiveCardState.EXPIRED

    def test_expiry_is_time_precise(self):
        patient = card(card_expiry_date=NOW, last_daily_activation=NOW)
        assert effective_card_state(patient, NOW) is EffectiveCardState.ACTIVE
        assert (
            effective_card_state(patient, NOW + timedelta(microseconds=1))
            is EffectiveCardState.EXPIRED
        )

    def test_missing_expiry_is_expired(self):
        patient = card(card_expiry_date=None, last_daily_activation=NOW)
        assert effective_card_state(patient, NOW) is EffectiveCardState.EXPIRED

    def test_stored_inactive_is_not_trusted(self):
        patient = card(
            card_expiry_date=NOW + timedelta(days=5),
            last_daily_activation=NOW,
            card_status=CardStatus.INACTIVE,
        )
        assert effective_card_state(patient, NOW) is EffectiveCardState.ACTIVE

    def test_lapsed_daily_activation(self):
        patient = card(
            card_expiry_date=NOW + timedelta(days=5),
            last_daily_activation=NOW - timedelta(days=1),
        )
        assert (
            effective_card_state(patient, NOW)
            is EffectiveCardState.NEEDS_DAILY_ACTIVATION
        )

    def test_never_daily_activated(self):
        patient = card(card_expiry_date=NOW + timedelta(days=5), last_daily_activation=None)
        assert (
            effective_card_state(patient, NOW)
            is EffectiveCardState.NEEDS_DAILY_ACTIVATION
        )

    def test_daily_activation_not_required(self):
        patient = card(
            card_expiry_date=NOW + timedelta(days=5),
            last_daily_activation=None,
            daily_activation_required=False,
        )
        assert effective_card_state(patient, NOW) is EffectiveCardState.ACTIVE
        assert not needs_daily_activation(patient, NOW)


@pytest.mark.unit
class TestCalendarDayBoundary:
    """Daily activation compares calendar days, never time of day."""

    def test_same_day_counts_as_activated(self):
        last = datetime(2026, 10, 19, 23, 59, 59, tzinfo=timezone.utc)
        patient = card(
            card_expiry_date=last + timedelta(days=20), last_daily_activation=last
        )
        as_of = datetime(2026, 10, 19, 0, 0, 1, tzinfo=timezone.utc)
        assert effective_card_state(patient, as_of) is EffectiveCardState.ACTIVE

    def test_next_day_lapses(self):
        last = datetime(2026, 10, 19, 23, 59, 59, tzinfo=timezone.utc)
        patient = card(
            card_expiry_date=last + timedelta(days=20), last_daily_activation=last
        )
        as_of = datetime(2026, 10, 20, 0, 0, 1, tzinfo=timezone.utc)
        assert (
            effective_card_state(patient, as_of)
            is EffectiveCardState.NEEDS_DAILY_ACTIVATION
        )

    def test_days_are_taken_in_clinic_timezone(self):
        # 23:30 UTC is already the next day in Lagos (UTC+1)
        last = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
        as_of = datetime(2026, 3, 11, 10, 0, tzinfo=timezone.utc)
        patient = card(
            card_expiry_date=as_of + timedelta(days=20), last_daily_activation=last
        )

        lagos = ZoneInfo("Africa/Lagos")
        assert effective_card_state(patient, as_of, lagos) is EffectiveCardState.ACTIVE
        assert (
            effective_card_state(patient, as_of, timezone.utc)
            is EffectiveCardState.NEEDS_DAILY_ACTIVATION
        )

    def test_mixed_offsets_compare_on_the_utc_calendar(self):
        # 23:30 in UTC-5 is already 20 October in UTC
        last = datetime(2026, 10, 19, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        as_of = datetime(2026, 10, 20, 6, 0, tzinfo=timezone.utc)
        patient = card(
            card_expiry_date=as_of + timedelta(days=20), last_daily_activation=last
        )
        assert effective_card_state(patient, as_of) is EffectiveCardState.ACTIVE

    def test_naive_timestamps_are_read_as_utc(self):
        patient = card(
            card_expiry_date=datetime(2026, 11, 1, 0, 0),
            last_daily_activation=datetime(2026, 10, 19, 8, 0),
        )
        assert effective_card_state(patient, NOW, timezone.utc) is EffectiveCardState.ACTIVE


@pytest.mark.unit
class TestCardScenario:
    def test_thirty_day_card_lifecycle(self):
        t0 = NOW
        patient = card(
            card_expiry_date=t0 + timedelta(days=30), last_daily_activation=t0
        )

        assert effective_card_state(patient, t0) is EffectiveCardState.ACTIVE
        assert (
            effective_card_state(patient, t0 + timedelta(days=1))
            is EffectiveCardState.NEEDS_DAILY_ACTIVATION
        )
        assert (
            effective_card_state(patient, t0 + timedelta(days=31))
            is EffectiveCardState.EXPIRED
        )

        # Daily activations don't extend the card
        patient.last_daily_activation = t0 + timedelta(days=31)
        assert (
            effective_card_state(patient, t0 + timedelta(days=31))
            is EffectiveCardState.EXPIRED
        )


@pytest.mark.unit
class TestExpiryHelpers:
    def test_days_until_expiry(self):
        patient = card(
            card_expiry_date=NOW + timedelta(days=5, hours=3),
            last_daily_activation=NOW,
        )
        assert days_until_expiry(patient, NOW) == 5

    def test_days_until_expiry_without_expiry(self):
        assert days_until_expiry(card(None, NOW), NOW) is None

    def test_expiring_soon_window(self):
        soon = card(card_expiry_date=NOW + timedelta(days=7), last_daily_activation=NOW)
        later = card(card_expiry_date=NOW + timedelta(days=8), last_daily_activation=NOW)
        gone = card(card_expiry_date=NOW - timedelta(hours=1), last_daily_activation=NOW)

        assert is_expiring_soon(soon, NOW)
        assert not is_expiring_soon(later, NOW)
        assert not is_expiring_soon(gone, NOW)

    def test_needs_activation(self):
        lapsed = card(NOW + timedelta(days=3), NOW - timedelta(days=1))
        expired = card(NOW - timedelta(days=1), NOW, daily_activation_required=False)
        fine = card(NOW + timedelta(days=3), NOW)

        assert needs_activation(lapsed, NOW)
        assert needs_activation(expired, NOW)
        assert not needs_activation(fine, NOW)


@pytest.fixture
def ward():
    doctor_a = "doctor-a"
    doctor_b = "doctor-b"
    p1 = card(NOW + timedelta(days=10), NOW, assigned_doctor_id=doctor_a)
    p2 = card(NOW - timedelta(days=1), NOW, assigned_doctor_id=doctor_a)
    p3 = card(NOW + timedelta(days=10), NOW, assigned_doctor_id=doctor_b)
    return doctor_a, doctor_b, [p1, p2, p3]


@pytest.mark.unit
@pytest.mark.rbac
class TestVisibility:
    def test_doctor_sees_own_active_patients(self, ward):
        doctor_a, _, (p1, p2, p3) = ward
        assert visible_patients([p1, p2, p3], UserRole.DOCTOR, doctor_a, NOW) == [p1]

    @pytest.mark.parametrize("role", [UserRole.RECEPTIONIST, UserRole.ADMIN])
    def test_card_administrators_see_everyone(self, ward, role):
        _, _, patients = ward
        assert visible_patients(patients, role, "anyone", NOW) == patients

    @pytest.mark.parametrize(
        "role",
        [UserRole.TRIAGE_OFFICER, UserRole.LAB_TECHNICIAN, UserRole.PHARMACIST],
    )
    def test_other_clinical_roles_see_active_cards(self, ward, role):
        _, _, (p1, p2, p3) = ward
        assert visible_patients([p1, p2, p3], role, "someone", NOW) == [p1, p3]

    def test_doctor_loses_patient_with_lapsed_daily_activation(self):
        patient = card(
            NOW + timedelta(days=10),
            NOW - timedelta(days=1),
            assigned_doctor_id="doctor-a",
        )
        assert not can_view_patient(patient, UserRole.DOCTOR, "doctor-a", NOW)
        assert can_view_patient(patient, UserRole.RECEPTIONIST, "front-desk", NOW)

    def test_unassigned_patient_hidden_from_doctors(self):
        patient = card(NOW + timedelta(days=10), NOW, assigned_doctor_id=None)
        assert not can_view_patient(patient, UserRole.DOCTOR, "doctor-a", NOW)

    def test_uuid_and_string_ids_match(self):
        import uuid

        doctor_id = uuid.uuid4()
        patient = card(NOW + timedelta(days=10), NOW, assigned_doctor_id=doctor_id)
        assert can_view_patient(patient, UserRole.DOCTOR, str(doctor_id), NOW)

    def test_role_given_as_string(self, ward):
        doctor_a, _, (p1, p2, p3) = ward
        assert visible_patients([p1, p2, p3], "doctor", doctor_a, NOW) == [p1]

    def test_unknown_role_is_rejected(self, ward):
        _, _, patients = ward
        with pytest.raises(ValueError):
            visible_patients(patients, "nurse", "someone", NOW)

    def test_usable_matches_visibility_gate(self, ward):
        _, _, (p1, p2, _) = ward
        assert is_card_usable(p1, NOW)
        assert not is_card_usable(p2, NOW)

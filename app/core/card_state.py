"""
Patient card state model.

A card carries a stored ``CardStatus`` that is only a cache of the last write.
Two date-driven facts can override it when the card is read:

* hard expiry: ``card_expiry_date`` strictly in the past
* daily-activation lapse: ``daily_activation_required`` with no
  ``last_daily_activation`` on the current calendar day

The live result of combining them is an ``EffectiveCardState``.
"""
from enum import Enum

from app.schemas.user_schemas import UserRole


class CardStatus(str, Enum):
    """Stored card status."""

    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class EffectiveCardState(str, Enum):
    """Card state derived at read time."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    SUSPENDED = "SUSPENDED"
    NEEDS_DAILY_ACTIVATION = "NEEDS_DAILY_ACTIVATION"


# Roles that administer card lifecycle and therefore see every card.
CARD_ADMINISTRATOR_ROLES = frozenset({UserRole.RECEPTIONIST, UserRole.ADMIN})

# Clinical roles restricted to patients holding a usable card.
CLINICAL_ROLES = frozenset(
    {
        UserRole.DOCTOR,
        UserRole.TRIAGE_OFFICER,
        UserRole.LAB_TECHNICIAN,
        UserRole.PHARMACIST,
    }
)

EXPIRING_SOON_DAYS = 7

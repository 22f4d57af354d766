from typing import Optional
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Boolean, Integer, CheckConstraint, ForeignKey, TIMESTAMP
)
from sqlalchemy.orm import Mapped, mapped_column, validates, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CardPolicy(Base):
    """
    Clinic-wide patient card policy - Singleton pattern.
    Only one row allowed in the entire table (id=1).
    """
    __tablename__ = "card_policies"

    # Singleton pattern - enforce single row
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        default=1,
        comment="Fixed ID=1 for singleton pattern"
    )

    # ==================== VALIDITY ====================
    card_validity_days: Mapped[int] = mapped_column(
        Integer,
        default=30,
        nullable=False,
        comment="Days a card stays valid after activation and payment"
    )

    grace_period_days: Mapped[int] = mapped_column(
        Integer,
        default=7,
        nullable=False,
        comment="Additional days before an expired card is suspended"
    )

    auto_suspend: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Automatically suspend expired cards"
    )

    # ==================== PAYMENT ====================
    payment_reminder_days: Mapped[int] = mapped_column(
        Integer,
        default=5,
        nullable=False,
        comment="Days before expiry to remind patients about payment"
    )

    # ==================== AUDIT TRAIL ====================
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    updated_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="User who last updated the policy"
    )

    # ==================== RELATIONSHIPS ====================
    updated_by = relationship(
        "User",
        foreign_keys=[updated_by_id],
        lazy="joined"
    )

    # ==================== CONSTRAINTS ====================
    __table_args__ = (
        CheckConstraint('id = 1', name='single_card_policy_row'),
        CheckConstraint('card_validity_days >= 1', name='valid_card_validity'),
        CheckConstraint('grace_period_days >= 0', name='valid_grace_period'),
        CheckConstraint(
            'payment_reminder_days >= 0', name='valid_payment_reminder'
        ),
    )

    # ==================== VALIDATION ====================
    @validates('card_validity_days')
    def validate_card_validity_days(self, key, value):
        if value < 1:
            raise ValueError("Card validity must be at least 1 day")
        return value

    @validates('grace_period_days', 'payment_reminder_days')
    def validate_non_negative(self, key, value):
        if value < 0:
            raise ValueError(f"{key} cannot be negative")
        return value

    def __repr__(self) -> str:
        return (
            f"<CardPolicy(validity={self.card_validity_days}d, "
            f"grace={self.grace_period_days}d, updated_at={self.updated_at})>"
        )

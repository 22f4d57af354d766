"""
Card Sweep Run Model

One row per execution of the daily card deactivation sweep. The latest row
drives the missed-run catch-up check on startup.
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import TIMESTAMP, Integer, String, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from app.db.base import Base


class SweepTrigger(str, Enum):
    """What started a sweep run"""
    SCHEDULED = "scheduled"
    CATCH_UP = "catch_up"
    MANUAL = "manual"


class CardSweepRun(Base):
    """
    Record of a single deactivation sweep.
    """
    __tablename__ = "card_sweep_runs"

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique sweep run ID"
    )

    trigger: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SweepTrigger.SCHEDULED.value,
        comment="scheduled, catch_up or manual"
    )

    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        index=True,
        comment="Evaluation instant used for the whole run"
    )

    finished_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        comment="When the last patient write completed"
    )

    scanned: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Patients requiring daily activation that were examined"
    )

    deactivated: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Patients written to inactive"
    )

    failed: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Patient writes that raised and were skipped"
    )

    __table_args__ = (
        Index('idx_card_sweep_runs_trigger_started', 'trigger', 'started_at'),
    )

    def __repr__(self) -> str:
        return (
            f"<CardSweepRun(id={self.id}, trigger={self.trigger}, "
            f"deactivated={self.deactivated}, failed={self.failed})>"
        )

"""
Daily Card Deactivation Sweep

Once per clinic calendar day, marks every card whose daily activation has
lapsed as inactive so the stored status catches up with what the card policy
evaluator already reports live. Runs as a single asyncio task owned by the
application lifespan.
"""
import asyncio
import uuid
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Dict, Iterable, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import logging

from app.core.card_policy import calendar_date, needs_daily_activation
from app.core.card_state import CardStatus
from app.core.sweep_log import CardSweepRun, SweepTrigger
from app.repositories.patient_repo import PatientRepository

logger = logging.getLogger(__name__)

# Stored statuses the sweep never writes over
_UNTOUCHED_STATUSES = (CardStatus.SUSPENDED, CardStatus.INACTIVE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def start_of_local_day(now: datetime, tz: tzinfo) -> datetime:
    """Midnight that began the clinic day containing ``now``."""
    return datetime.combine(calendar_date(now, tz), time.min, tzinfo=tz)


def next_local_midnight(now: datetime, tz: tzinfo) -> datetime:
    """First clinic-local midnight strictly after ``now``."""
    tomorrow = calendar_date(now, tz) + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=tz)


def seconds_until_next_midnight(now: datetime, tz: tzinfo) -> float:
    # Aware subtraction goes through UTC, so DST days come out as 23h or 25h
    return (next_local_midnight(now, tz) - _aware(now)).total_seconds()


def plan_deactivations(
    patients: Iterable, now: datetime, tz: Optional[tzinfo] = None
) -> List[uuid.UUID]:
    """
    Ids of patients whose stored status must be downgraded to inactive.

    A patient qualifies when daily activation is required and has lapsed as
    of ``now``. Suspended and already inactive cards are left alone.
    """
    return [
        patient.id
        for patient in patients
        if patient.card_status not in _UNTOUCHED_STATUSES
        and needs_daily_activation(patient, now, tz)
    ]


class CardDeactivationSweep:
    """
    Scheduled sweep handle.

    Created and started in the application lifespan, kept on ``app.state``
    and stopped on shutdown. ``run_once`` can also be called directly (admin
    trigger, tests).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        tz: tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
        catch_up_on_startup: bool = True,
    ):
        self.session_factory = session_factory
        self.tz = tz
        self.clock = clock or _utcnow
        self.catch_up_on_startup = catch_up_on_startup

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._next_run_at: Optional[datetime] = None
        self._last_run: Optional[CardSweepRun] = None

        logger.info(
            f"Card sweep initialized for timezone={tz}, "
            f"catch_up_on_startup={catch_up_on_startup}"
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the sweep task"""
        if self._running:
            logger.warning("Card sweep already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Card sweep started")

    async def stop(self):
        """Stop the sweep task"""
        if not self._running:
            return

        logger.info("Stopping card sweep...")
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._next_run_at = None
        logger.info("Card sweep stopped")

    async def _run_loop(self):
        """Catch up if needed, then run at every clinic midnight"""
        if self.catch_up_on_startup:
            try:
                if await self.should_catch_up():
                    logger.info("Last sweep predates today, running catch-up sweep")
                    await self.run_once(trigger=SweepTrigger.CATCH_UP)
            except asyncio.CancelledError:
                return
            except Exception as e:
                logger.error(f"Catch-up sweep failed: {e}", exc_info=True)

        while self._running:
            try:
                now = self.clock()
                self._next_run_at = next_local_midnight(now, self.tz)
                await asyncio.sleep(seconds_until_next_midnight(now, self.tz))
                await self.run_once(trigger=SweepTrigger.SCHEDULED)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in card sweep loop: {e}", exc_info=True)
                await asyncio.sleep(60)

    async def should_catch_up(self, now: Optional[datetime] = None) -> bool:
        """
        True when no sweep has started since the beginning of the current
        clinic day (or none has ever run).
        """
        now = now or self.clock()
        async with self.session_factory() as db:
            last_started = await self._latest_started_at(db)

        if last_started is None:
            return True
        return _aware(last_started) < start_of_local_day(now, self.tz)

    @staticmethod
    async def _latest_started_at(db: AsyncSession) -> Optional[datetime]:
        result = await db.execute(
            select(CardSweepRun.started_at)
            .order_by(CardSweepRun.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def run_once(
        self,
        now: Optional[datetime] = None,
        trigger: SweepTrigger = SweepTrigger.MANUAL,
    ) -> CardSweepRun:
        """
        Run one sweep evaluated at ``now``.

        Each patient is written and committed on its own; a failing write is
        rolled back, logged and counted, and the sweep moves on. Nothing is
        retried within a run.
        """
        now = now or self.clock()

        async with self.session_factory() as db:
            repo = PatientRepository(db)
            patients = await repo.get_patients_requiring_daily_activation()
            to_deactivate = plan_deactivations(patients, now, self.tz)

            logger.info(
                f"Card sweep ({trigger.value}) at {now.isoformat()}: "
                f"{len(patients)} scanned, {len(to_deactivate)} lapsed"
            )

            deactivated = 0
            failed = 0
            for patient_id in to_deactivate:
                try:
                    await repo.set_card_status(patient_id, CardStatus.INACTIVE)
                    deactivated += 1
                except Exception as e:
                    await db.rollback()
                    failed += 1
                    logger.error(
                        f"Card sweep failed to deactivate patient {patient_id}: {e}",
                        exc_info=True,
                    )

            run = CardSweepRun(
                trigger=trigger.value,
                started_at=now,
                finished_at=self.clock(),
                scanned=len(patients),
                deactivated=deactivated,
                failed=failed,
            )
            db.add(run)
            await db.commit()
            await db.refresh(run)

        self._last_run = run
        logger.info(
            f"Card sweep ({trigger.value}) finished: "
            f"{deactivated} deactivated, {failed} failed"
        )
        return run

    async def get_recent_runs(self, db: AsyncSession, limit: int = 20) -> List[CardSweepRun]:
        result = await db.execute(
            select(CardSweepRun)
            .order_by(CardSweepRun.started_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    def get_status(self) -> Dict:
        """Snapshot of the sweep handle for the admin API"""
        last = self._last_run
        return {
            "running": self._running,
            "timezone": str(self.tz),
            "catch_up_on_startup": self.catch_up_on_startup,
            "next_run_at": self._next_run_at,
            "last_run_at": last.started_at if last else None,
            "last_run_trigger": last.trigger if last else None,
            "last_run_deactivated": last.deactivated if last else None,
            "last_run_failed": last.failed if last else None,
        }

"""Adherence sweep: decides which plan items are complete or need a reminder."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.core.logging import logger
from app.schemas.care_plan import (
    ActivePlanItem,
    Frequency,
    PlanItemRecord,
    Reminder,
    SweepFailure,
    SweepReport,
)
from app.services.record_store import RecordStore
from app.shared.exceptions import ItemSweepError, StoreError


ONE_DAY = timedelta(days=1)

MISSED_UNITS = {
    Frequency.WEEKLY: "week",
    Frequency.AS_NEEDED: "check-in",
}


@dataclass
class AdherenceDecision:
    """How one plan item stands at sweep time."""
    frequency: Frequency
    days_elapsed: int
    expected_check_ins: int
    actual_check_ins: int
    missed_days: int
    required_check_ins: int

    @property
    def is_complete(self) -> bool:
        return self.actual_check_ins >= self.required_check_ins


def coerce_frequency(value) -> Frequency:
    """Map a stored frequency onto the enum; unrecognized text maps to UNKNOWN."""
    if not isinstance(value, str):
        raise ValueError(f"frequency must be a string, got {type(value).__name__}")
    try:
        return Frequency(value.strip().lower())
    except ValueError:
        return Frequency.UNKNOWN


def expected_check_ins(frequency: Frequency, days_elapsed: int) -> int:
    """Number of check-ins that should exist after ``days_elapsed`` full days."""
    if frequency == Frequency.WEEKLY:
        return days_elapsed // 7 + 1
    if frequency == Frequency.AS_NEEDED:
        return 1
    # daily, and anything unrecognized
    return days_elapsed + 1


def evaluate(item: PlanItemRecord, now: datetime) -> AdherenceDecision:
    """
    Evaluate a plan item at ``now``.

    The required total grows by the number of missed days, so a late start
    extends the plan instead of failing it.

    Raises:
        ItemSweepError: If the stored item cannot be evaluated
    """
    try:
        frequency = coerce_frequency(item.frequency)
    except ValueError as e:
        raise ItemSweepError(item.id, f"Unrecognized frequency {item.frequency!r}", e) from e

    duration = item.duration
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise ItemSweepError(item.id, f"Invalid duration {duration!r}")

    if not isinstance(item.start_date, datetime):
        raise ItemSweepError(item.id, f"Invalid start date {item.start_date!r}")

    if not isinstance(item.check_ins, list):
        raise ItemSweepError(item.id, "Check-ins are not a list")

    days_elapsed = (now - item.start_date) // ONE_DAY
    expected = expected_check_ins(frequency, days_elapsed)
    actual = len(item.check_ins)
    missed_days = max(0, expected - actual)

    return AdherenceDecision(
        frequency=frequency,
        days_elapsed=days_elapsed,
        expected_check_ins=expected,
        actual_check_ins=actual,
        missed_days=missed_days,
        required_check_ins=duration + missed_days,
    )


def reminder_message(patient_name: str, action: str, decision: AdherenceDecision) -> str:
    unit = MISSED_UNITS.get(decision.frequency, "day")
    plural = "" if decision.missed_days == 1 else "s"
    return (
        f"Reminder for {patient_name}: {action} - "
        f"you have missed {decision.missed_days} {unit}{plural}"
    )


class AdherenceEngine:
    """
    Periodic pass over active plan items.

    Sweeps never overlap: a second call waits for the running one. Use
    ``is_running`` to skip a tick instead of queueing it.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def sweep(self, now: datetime) -> SweepReport:
        """
        Evaluate every active plan item at ``now``.

        Per-item failures are logged and reported; they never abort the sweep.

        Raises:
            StoreError: If the active items cannot be listed
        """
        async with self._lock:
            report = SweepReport(ran_at=now)
            candidates = await self.store.list_active_plan_items(now)

            for candidate in candidates:
                item_id = candidate.item.id
                try:
                    await self._process(candidate, now, report)
                except ItemSweepError as e:
                    self._record_failure(report, e)
                except Exception as e:
                    self._record_failure(report, ItemSweepError(item_id, f"Unexpected error: {e}", e))

            logger.info(
                f"Adherence sweep at {now.isoformat()}: evaluated {report.evaluated}, "
                f"completed {len(report.completed)}, reminders {len(report.reminders)}, "
                f"failures {len(report.failures)}, conflicts {len(report.conflicts)}"
            )
            return report

    async def _process(self, candidate: ActivePlanItem, now: datetime, report: SweepReport) -> None:
        item = candidate.item
        if isinstance(item.start_date, datetime) and item.start_date > now:
            return

        report.evaluated += 1
        decision = evaluate(item, now)

        if decision.is_complete:
            try:
                completed = await self.store.complete_plan_item(item.id, decision.actual_check_ins)
            except StoreError as e:
                raise ItemSweepError(item.id, "Failed to mark plan item completed", e) from e

            if completed:
                logger.info(
                    f"Plan item {item.id} completed with {decision.actual_check_ins}/"
                    f"{decision.required_check_ins} check-ins"
                )
                report.completed.append(item.id)
            else:
                # Check-ins changed since the item was read; next sweep re-evaluates it
                logger.info(f"Plan item {item.id} changed during sweep, skipping")
                report.conflicts.append(item.id)
            return

        if decision.missed_days > 0:
            name = candidate.patient_name or candidate.patient_id
            reminder = Reminder(
                plan_item_id=item.id,
                patient_id=candidate.patient_id,
                missed_days=decision.missed_days,
                message=reminder_message(name, item.action, decision),
            )
            logger.info(reminder.message)
            report.reminders.append(reminder)

    @staticmethod
    def _record_failure(report: SweepReport, error: ItemSweepError) -> None:
        logger.error(f"Failed to evaluate plan item {error.plan_item_id}: {error.message}")
        report.failures.append(SweepFailure(plan_item_id=error.plan_item_id, error=error.message))

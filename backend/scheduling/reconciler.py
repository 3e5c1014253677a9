"""
Schedule reconciliation.

Makes the persisted schedules of one or all professionals match what their
availability implies over the horizon: missing slots are inserted, obsolete
ones deleted, and a slot holding a live appointment is never deleted.

Running it twice without configuration changes is a no-op the second time.
Failures are contained: a batch failure skips that batch, a professional
failure skips that professional, and only a failure before any professional
is processed fails the whole run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.scheduling.slots import Horizon, compute_expected_slots, compute_horizon, get_timezone, to_utc
from backend.scheduling.store import ProfessionalRef, ScheduleStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS_MESSAGE = "Schedule generation completed successfully with full sync."


class ProfessionalNotFoundError(LookupError):
    pass


@dataclass
class ProfessionalReconciliation:
    professional_id: str
    name: str
    expected: int = 0
    existing: int = 0
    to_delete: int = 0
    deleted: int = 0
    kept_booked: int = 0
    to_insert: int = 0
    inserted: int = 0
    failed_batches: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.failed_batches == 0


@dataclass
class ReconciliationResult:
    success: bool
    logs: List[str] = field(default_factory=list)
    professionals: List[ProfessionalReconciliation] = field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None

    def to_response(self) -> dict:
        body = {"success": self.success, "logs": self.logs}
        if self.message is not None:
            body["message"] = self.message
        if self.error is not None:
            body["error"] = self.error
        return body


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for index in range(0, len(items), size):
        yield items[index:index + size]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScheduleReconciler:
    def __init__(
        self,
        store: ScheduleStore,
        timezone_name: str = config.CLINIC_TIMEZONE,
        horizon_months: int = config.SCHEDULE_HORIZON_MONTHS,
        slot_duration_minutes: int = config.SLOT_DURATION_MINUTES,
        batch_size: int = config.SCHEDULE_BATCH_SIZE,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.timezone_name = timezone_name
        self.horizon_months = horizon_months
        self.slot_duration_minutes = slot_duration_minutes
        self.batch_size = batch_size
        self.clock = clock
        self._logs: List[str] = []

    def _log(self, message: str) -> None:
        logger.info(message)
        self._logs.append(message)

    def run(self, professional_id: Optional[str] = None, now: Optional[datetime] = None) -> ReconciliationResult:
        self._logs = []
        result = ReconciliationResult(success=False, logs=self._logs)

        try:
            tz = get_timezone(self.timezone_name)
            horizon = compute_horizon(now or self.clock(), tz, self.horizon_months)
            self._log(
                f"Starting schedule generation from {horizon.start_date.isoformat()} "
                f"to {horizon.end_date.isoformat()} ({self.timezone_name})"
            )
            professionals = self.store.list_professionals(professional_id)
            if professional_id is not None and not professionals:
                raise ProfessionalNotFoundError(f"Professional not found: {professional_id}")
        except Exception as exc:
            logger.exception("Error in schedule generation")
            result.error = str(exc)
            return result

        for professional in professionals:
            result.professionals.append(self._reconcile_safely(professional, horizon, tz))

        failed = [item for item in result.professionals if item.error is not None]
        result.success = True
        if failed:
            result.message = f"Schedule generation completed with errors for {len(failed)} professional(s)."
        else:
            result.message = SUCCESS_MESSAGE
        self._log(result.message)
        return result

    def _reconcile_safely(self, professional: ProfessionalRef, horizon: Horizon, tz) -> ProfessionalReconciliation:
        outcome = ProfessionalReconciliation(professional_id=professional.id, name=professional.name)
        self._log(f"Processing professional: {professional.name} ({professional.id})")
        try:
            self._reconcile(professional, horizon, tz, outcome)
        except Exception as exc:
            logger.exception("Schedule generation failed for professional %s", professional.id)
            outcome.error = str(exc)
            self._log(f"Error processing professional {professional.name} ({professional.id}): {exc}")
        return outcome

    def _reconcile(
        self,
        professional: ProfessionalRef,
        horizon: Horizon,
        tz,
        outcome: ProfessionalReconciliation,
    ) -> None:
        rules = self.store.get_recurring_rules(professional.id)
        overrides = self.store.get_overrides(professional.id, horizon.start_date, horizon.end_date)
        self._log(f"Found {len(rules)} recurring rules and {len(overrides)} overrides.")

        expected = compute_expected_slots(rules, overrides, horizon, tz, self.slot_duration_minutes)
        outcome.expected = len(expected)
        self._log(f"Calculated {len(expected)} expected slots for {professional.name}.")

        existing = self.store.get_schedules(professional.id, horizon.range_start, horizon.range_end)
        outcome.existing = len(existing)

        # A row on the right start but with another end is replaced.
        stale = {
            start
            for start, persisted in existing.items()
            if start in expected and persisted.end_time != to_utc(expected[start].end_time)
        }
        to_delete = [
            persisted.id
            for start, persisted in sorted(existing.items())
            if start not in expected or start in stale
        ]
        to_insert = [slot for start, slot in sorted(expected.items()) if start not in existing or start in stale]
        outcome.to_delete = len(to_delete)
        outcome.to_insert = len(to_insert)

        if to_delete:
            self._log(
                f"Identified {len(to_delete)} slots to potentially delete (obsolete). Checking for appointments..."
            )
            self._delete_obsolete(to_delete, outcome)
            self._log(
                f"Deleted {outcome.deleted} obsolete unbooked slots. Kept {outcome.kept_booked} booked slots."
            )

        if to_insert:
            self._insert_missing(professional.id, to_insert, outcome)
            self._log(f"Inserted {outcome.inserted} new slots.")
        else:
            self._log("No new slots to insert.")

    def _delete_obsolete(self, schedule_ids: List[str], outcome: ProfessionalReconciliation) -> None:
        for batch in chunked(schedule_ids, self.batch_size):
            try:
                booked = self.store.get_booked_schedule_ids(batch)
            except SQLAlchemyError as exc:
                logger.exception("Booked-slot check failed")
                outcome.failed_batches += 1
                self._log(f"Skipped deleting {len(batch)} slots: could not check appointments ({exc}).")
                continue

            outcome.kept_booked += len(booked)
            safe = [schedule_id for schedule_id in batch if schedule_id not in booked]
            if not safe:
                continue

            try:
                deleted = self.store.delete_schedules(safe)
            except SQLAlchemyError as exc:
                logger.exception("Slot deletion failed")
                outcome.failed_batches += 1
                self._log(f"Failed to delete {len(safe)} slots ({exc}).")
                continue

            outcome.deleted += deleted

    def _insert_missing(self, professional_id: str, slots, outcome: ProfessionalReconciliation) -> None:
        for batch in chunked(slots, self.batch_size):
            try:
                outcome.inserted += self.store.insert_schedules(professional_id, batch)
            except SQLAlchemyError as exc:
                logger.exception("Slot insertion failed")
                outcome.failed_batches += 1
                self._log(f"Failed to insert {len(batch)} slots ({exc}).")

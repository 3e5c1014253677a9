"""
Schedule store.

The reads and writes the reconciler needs, on top of a SQLAlchemy session.
Every write commits on its own so a failed batch never takes earlier batches
down with it. On a database error the session is rolled back, leaving it
usable for the next call, and the error is re-raised.
"""

import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import exists
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment, CANCELLED_STATUS
from backend.models.availability import ProfessionalAvailabilityOverride, ProfessionalRecurringAvailability
from backend.models.professional import Professional
from backend.models.schedule import Schedule
from backend.scheduling.slots import DateOverride, ExpectedSlot, RecurringRule, to_utc

CONFLICT_COLUMNS = ["professional_id", "start_time"]


@dataclass(frozen=True)
class ProfessionalRef:
    id: str
    name: str


@dataclass(frozen=True)
class PersistedSlot:
    id: str
    end_time: datetime


class ScheduleStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _rollback_on_error(self):
        try:
            yield
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def list_professionals(self, professional_id: Optional[str] = None) -> List[ProfessionalRef]:
        with self._rollback_on_error():
            query = self.db.query(Professional.id, Professional.name)
            if professional_id is not None:
                query = query.filter(Professional.id == professional_id)
            rows = query.order_by(Professional.name.asc()).all()
        return [ProfessionalRef(id=row.id, name=row.name) for row in rows]

    def get_recurring_rules(self, professional_id: str) -> List[RecurringRule]:
        with self._rollback_on_error():
            rows = self.db.query(
                ProfessionalRecurringAvailability.day_of_week,
                ProfessionalRecurringAvailability.start_time,
                ProfessionalRecurringAvailability.end_time,
            ).filter(
                ProfessionalRecurringAvailability.professional_id == professional_id,
            ).all()
        return [RecurringRule(day_of_week=row.day_of_week, start_time=row.start_time, end_time=row.end_time) for row in rows]

    def get_overrides(self, professional_id: str, start_date: date, end_date: date) -> List[DateOverride]:
        with self._rollback_on_error():
            rows = self.db.query(
                ProfessionalAvailabilityOverride.override_date,
                ProfessionalAvailabilityOverride.start_time,
                ProfessionalAvailabilityOverride.end_time,
                ProfessionalAvailabilityOverride.is_available,
            ).filter(
                ProfessionalAvailabilityOverride.professional_id == professional_id,
                ProfessionalAvailabilityOverride.override_date >= start_date,
                ProfessionalAvailabilityOverride.override_date <= end_date,
            ).all()
        return [
            DateOverride(
                override_date=row.override_date,
                start_time=row.start_time,
                end_time=row.end_time,
                is_available=bool(row.is_available),
            )
            for row in rows
        ]

    def get_schedules(self, professional_id: str, range_start: datetime, range_end: datetime) -> Dict[datetime, PersistedSlot]:
        """Persisted slots keyed by UTC start, for starts in [range_start, range_end)."""
        with self._rollback_on_error():
            rows = self.db.query(Schedule.id, Schedule.start_time, Schedule.end_time).filter(
                Schedule.professional_id == professional_id,
                Schedule.start_time >= to_utc(range_start),
                Schedule.start_time < to_utc(range_end),
            ).all()
        return {
            to_utc(row.start_time): PersistedSlot(id=row.id, end_time=to_utc(row.end_time))
            for row in rows
        }

    def get_booked_schedule_ids(self, schedule_ids: Sequence[str]) -> Set[str]:
        if not schedule_ids:
            return set()
        with self._rollback_on_error():
            rows = self.db.query(Appointment.schedule_id).filter(
                Appointment.schedule_id.in_(list(schedule_ids)),
                Appointment.status != CANCELLED_STATUS,
            ).all()
        return {row.schedule_id for row in rows}

    def delete_schedules(self, schedule_ids: Sequence[str]) -> int:
        """Deletes the given slots, skipping any that picked up a live booking meanwhile."""
        if not schedule_ids:
            return 0
        live_booking = exists().where(
            Appointment.schedule_id == Schedule.id,
            Appointment.status != CANCELLED_STATUS,
        )
        with self._rollback_on_error():
            deleted = self.db.query(Schedule).filter(
                Schedule.id.in_(list(schedule_ids)),
                ~live_booking,
            ).delete(synchronize_session=False)
            self.db.commit()
        return deleted

    def insert_schedules(self, professional_id: str, slots: Iterable[ExpectedSlot]) -> int:
        """Inserts slots, ignoring any whose (professional_id, start_time) already exists."""
        rows = [
            {
                "id": str(uuid.uuid4()),
                "professional_id": professional_id,
                "start_time": to_utc(slot.start_time),
                "end_time": to_utc(slot.end_time),
            }
            for slot in slots
        ]
        if not rows:
            return 0

        with self._rollback_on_error():
            inserted = self._insert_ignoring_conflicts(rows)
            self.db.commit()
        return inserted

    def _insert_ignoring_conflicts(self, rows: List[dict]) -> int:
        dialect = self.db.get_bind().dialect.name

        if dialect == "postgresql":
            statement = postgresql.insert(Schedule).values(rows).on_conflict_do_nothing(index_elements=CONFLICT_COLUMNS)
            return self.db.connection().execute(statement).rowcount
        if dialect == "sqlite":
            statement = sqlite.insert(Schedule).values(rows).on_conflict_do_nothing(index_elements=CONFLICT_COLUMNS)
            return self.db.connection().execute(statement).rowcount

        # No native upsert: insert the rows whose start is still free.
        professional_id = rows[0]["professional_id"]
        taken = {
            to_utc(start_time)
            for (start_time,) in self.db.query(Schedule.start_time).filter(
                Schedule.professional_id == professional_id,
                Schedule.start_time.in_([row["start_time"] for row in rows]),
            ).all()
        }
        fresh = [row for row in rows if row["start_time"] not in taken]
        self.db.bulk_insert_mappings(Schedule, fresh)
        return len(fresh)

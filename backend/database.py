import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")

engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO, pool_pre_ping=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schedule_schema_checked = False
_availability_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _has_unique_slot_key(inspector) -> bool:
    columns = ['professional_id', 'start_time']
    if any(constraint['column_names'] == columns for constraint in inspector.get_unique_constraints('schedules')):
        return True
    return any(
        index.get('unique') and index['column_names'] == columns
        for index in inspector.get_indexes('schedules')
    )


def ensure_schedule_schema() -> None:
    global _schedule_schema_checked

    if _schedule_schema_checked:
        return

    with _schema_lock:
        if _schedule_schema_checked:
            return

        inspector = inspect(engine)
        table_names = inspector.get_table_names()

        with engine.begin() as connection:
            if 'schedules' in table_names and not _has_unique_slot_key(inspector):
                # Tables created before the unique constraint existed still need it for upserts.
                connection.execute(
                    text(
                        'CREATE UNIQUE INDEX IF NOT EXISTS uq_schedules_professional_start_time '
                        'ON schedules(professional_id, start_time)'
                    )
                )
            if 'appointments' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appointments_schedule_status ON appointments(schedule_id, status)')
                )

        _schedule_schema_checked = True


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        table_names = inspect(engine).get_table_names()

        with engine.begin() as connection:
            if 'professional_recurring_availability' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_recurring_professional_day '
                        'ON professional_recurring_availability(professional_id, day_of_week)'
                    )
                )
            if 'professional_availability_overrides' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_overrides_professional_date '
                        'ON professional_availability_overrides(professional_id, override_date)'
                    )
                )

        _availability_schema_checked = True

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool

from backend import database
from backend.database import Base


@pytest.fixture
def memory_engine(monkeypatch: pytest.MonkeyPatch):
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    monkeypatch.setattr(database, 'engine', engine)
    monkeypatch.setattr(database, '_schedule_schema_checked', False)
    try:
        yield engine
    finally:
        engine.dispose()


def unique_slot_keys(engine) -> int:
    inspector = inspect(engine)
    columns = ['professional_id', 'start_time']
    constraints = [
        constraint for constraint in inspector.get_unique_constraints('schedules')
        if constraint['column_names'] == columns
    ]
    indexes = [
        index for index in inspector.get_indexes('schedules')
        if index.get('unique') and index['column_names'] == columns
    ]
    return len(constraints) + len(indexes)


def test_ensure_schedule_schema_leaves_model_constraint_alone(memory_engine) -> None:
    Base.metadata.create_all(bind=memory_engine)

    database.ensure_schedule_schema()

    assert unique_slot_keys(memory_engine) == 1
    index_names = {index['name'] for index in inspect(memory_engine).get_indexes('appointments')}
    assert 'idx_appointments_schedule_status' in index_names


def test_ensure_schedule_schema_adds_key_to_legacy_table(memory_engine) -> None:
    with memory_engine.begin() as connection:
        connection.execute(text(
            'CREATE TABLE schedules (id VARCHAR(36) PRIMARY KEY, professional_id VARCHAR(36), '
            'start_time DATETIME, end_time DATETIME)'
        ))

    database.ensure_schedule_schema()

    assert unique_slot_keys(memory_engine) == 1
    index_names = {index['name'] for index in inspect(memory_engine).get_indexes('schedules')}
    assert 'uq_schedules_professional_start_time' in index_names

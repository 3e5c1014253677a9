import logging
from datetime import time

import pytest

from backend import generate_schedules
from backend.models.availability import ProfessionalRecurringAvailability
from backend.models.professional import Professional
from backend.models.schedule import Schedule
from backend.scheduling import tasks
from backend.scheduling.reconciler import ReconciliationResult


@pytest.fixture
def task_db(session_factory, db_session, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(tasks, 'SessionLocal', session_factory)
    db_session.add(Professional(id='pro-1', name='Ana Souza'))
    db_session.add(
        ProfessionalRecurringAvailability(professional_id='pro-1', day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    )
    db_session.commit()
    return db_session


def test_run_schedule_generation_uses_its_own_session(task_db) -> None:
    result = tasks.run_schedule_generation('pro-1')

    assert result.success is True
    # At least one Monday falls in any twelve month horizon.
    assert task_db.query(Schedule).count() >= 2 * 52


def test_background_reconciliation_logs_failures(task_db, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger='backend.scheduling.tasks'):
        tasks.reconcile_professional_in_background('missing')

    assert 'Background schedule generation failed for missing' in caplog.text


def test_cli_reports_success(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    calls = []

    def fake_run(professional_id=None):
        calls.append(professional_id)
        return ReconciliationResult(success=True, message='done')

    monkeypatch.setattr(generate_schedules, 'run_schedule_generation', fake_run)

    assert generate_schedules.main(['--professional-id', 'pro-1']) == 0
    assert calls == ['pro-1']
    assert 'done' in capsys.readouterr().out


def test_cli_exits_non_zero_on_failure(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    monkeypatch.setattr(
        generate_schedules,
        'run_schedule_generation',
        lambda professional_id=None: ReconciliationResult(success=False, error='boom'),
    )

    assert generate_schedules.main([]) == 1
    assert 'Schedule generation failed: boom' in capsys.readouterr().err

"""
Entry points that run a reconciliation on a session of their own: the
background job queued after availability edits and the command-line run.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from backend.database import SessionLocal
from backend.scheduling.reconciler import ReconciliationResult, ScheduleReconciler
from backend.scheduling.store import ScheduleStore

logger = logging.getLogger(__name__)


def run_schedule_generation(professional_id: Optional[str] = None) -> ReconciliationResult:
    db = SessionLocal()
    try:
        reconciler = ScheduleReconciler(ScheduleStore(db))
        return reconciler.run(professional_id=professional_id, now=datetime.now(timezone.utc))
    finally:
        db.close()


def reconcile_professional_in_background(professional_id: str) -> None:
    result = run_schedule_generation(professional_id)
    if not result.success:
        logger.error("Background schedule generation failed for %s: %s", professional_id, result.error)
        return
    for outcome in result.professionals:
        if not outcome.ok:
            logger.warning(
                "Background schedule generation for %s finished with problems: error=%s failed_batches=%d",
                outcome.professional_id,
                outcome.error,
                outcome.failed_batches,
            )

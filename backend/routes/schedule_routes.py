from datetime import date, datetime, time, timedelta, timezone

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator
from sqlalchemy import exists
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_admin
from backend.core import config
from backend.database import get_db
from backend.models.appointment import Appointment, CANCELLED_STATUS
from backend.models.schedule import Schedule
from backend.models.user import User
from backend.routes.common import database_unavailable, ensure_database_ready, get_professional_or_404
from backend.scheduling.reconciler import ScheduleReconciler
from backend.scheduling.slots import get_timezone, local_to_utc, to_utc
from backend.scheduling.store import ScheduleStore

router = APIRouter(tags=['schedules'])


class GenerateSchedulesRequest(BaseModel):
    professional_id: str | None = None

    @field_validator('professional_id')
    @classmethod
    def normalize_professional_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


class GenerateSchedulesResponse(BaseModel):
    success: bool
    message: str | None = None
    logs: list[str]
    error: str | None = None


class ScheduleSlotResponse(BaseModel):
    id: str
    professional_id: str
    start_time: datetime
    end_time: datetime


def build_reconciler(db: Session) -> ScheduleReconciler:
    return ScheduleReconciler(ScheduleStore(db))


@router.post('/generate', response_model=GenerateSchedulesResponse, response_model_exclude_none=True)
def generate_schedules(
    data: GenerateSchedulesRequest | None = None,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    ensure_database_ready()

    professional_id = data.professional_id if data else None
    result = build_reconciler(db).run(professional_id=professional_id, now=datetime.now(timezone.utc))

    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.to_response(),
        )
    return result.to_response()


@router.get('/professionals/{professional_id}/available', response_model=list[ScheduleSlotResponse])
def list_available_schedules(
    professional_id: str,
    day: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        get_professional_or_404(db, professional_id)

        tz = get_timezone(config.CLINIC_TIMEZONE)
        day_start = local_to_utc(day, time.min, tz)
        day_end = local_to_utc(day + timedelta(days=1), time.min, tz)
        now = datetime.now(timezone.utc)
        live_booking = exists().where(
            Appointment.schedule_id == Schedule.id,
            Appointment.status != CANCELLED_STATUS,
        )

        schedules = db.query(Schedule).filter(
            Schedule.professional_id == professional_id,
            Schedule.start_time >= max(day_start, now),
            Schedule.start_time < day_end,
            ~live_booking,
        ).order_by(Schedule.start_time.asc()).all()

        return [
            ScheduleSlotResponse(
                id=schedule.id,
                professional_id=schedule.professional_id,
                start_time=to_utc(schedule.start_time),
                end_time=to_utc(schedule.end_time),
            )
            for schedule in schedules
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

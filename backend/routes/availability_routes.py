from datetime import date, datetime, time

from dateutil.relativedelta import relativedelta
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, ValidationInfo, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import ensure_can_manage_professional, get_current_user
from backend.database import get_db
from backend.models.availability import ProfessionalAvailabilityOverride, ProfessionalRecurringAvailability
from backend.models.user import User
from backend.routes.common import database_unavailable, ensure_database_ready, get_professional_or_404
from backend.scheduling.tasks import reconcile_professional_in_background

router = APIRouter(tags=['availability'])

DAY_START = time(0, 0, 0)
DAY_END = time(23, 59, 59)


def _validate_window_end(value: time, info: ValidationInfo) -> time:
    start_time = info.data.get('start_time')
    if start_time is not None and value <= start_time:
        raise ValueError('End time must be after start time.')
    return value


class RecurringAvailabilityItem(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
        return value

    @field_validator('end_time')
    @classmethod
    def validate_end_time(cls, value: time, info: ValidationInfo) -> time:
        return _validate_window_end(value, info)


class SetRecurringAvailabilityRequest(BaseModel):
    availabilities: list[RecurringAvailabilityItem]


class RecurringAvailabilityResponse(BaseModel):
    id: str
    professional_id: str
    day_of_week: int
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class CreateOverrideRequest(BaseModel):
    override_date: date
    start_time: time
    end_time: time
    is_available: bool = True

    @field_validator('end_time')
    @classmethod
    def validate_end_time(cls, value: time, info: ValidationInfo) -> time:
        return _validate_window_end(value, info)


class BlockDayRequest(BaseModel):
    override_date: date


class OverrideResponse(BaseModel):
    id: str
    professional_id: str
    override_date: date
    start_time: time
    end_time: time
    is_available: bool

    class Config:
        from_attributes = True


def parse_month(month: str) -> tuple[date, date]:
    try:
        first_day = datetime.strptime(month.strip(), '%Y-%m').date()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Month must use the YYYY-MM format.',
        ) from exc

    return first_day, first_day + relativedelta(months=1, days=-1)


@router.get('/professionals/{professional_id}/recurring', response_model=list[RecurringAvailabilityResponse])
def list_recurring_availability(professional_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        get_professional_or_404(db, professional_id)
        return db.query(ProfessionalRecurringAvailability).filter(
            ProfessionalRecurringAvailability.professional_id == professional_id,
        ).order_by(
            ProfessionalRecurringAvailability.day_of_week.asc(),
            ProfessionalRecurringAvailability.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/professionals/{professional_id}/recurring', response_model=list[RecurringAvailabilityResponse])
def set_recurring_availability(
    professional_id: str,
    data: SetRecurringAvailabilityRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        professional = get_professional_or_404(db, professional_id)
        ensure_can_manage_professional(current_user, professional)

        db.query(ProfessionalRecurringAvailability).filter(
            ProfessionalRecurringAvailability.professional_id == professional_id,
        ).delete(synchronize_session=False)

        rules = [
            ProfessionalRecurringAvailability(
                professional_id=professional_id,
                day_of_week=item.day_of_week,
                start_time=item.start_time,
                end_time=item.end_time,
            )
            for item in data.availabilities
        ]
        db.add_all(rules)
        db.commit()
        for rule in rules:
            db.refresh(rule)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    background_tasks.add_task(reconcile_professional_in_background, professional_id)
    return sorted(rules, key=lambda rule: (rule.day_of_week, rule.start_time))


@router.get('/professionals/{professional_id}/overrides', response_model=list[OverrideResponse])
def list_availability_overrides(
    professional_id: str,
    month: str = Query(...),
    db: Session = Depends(get_db),
):
    first_day, last_day = parse_month(month)
    ensure_database_ready()

    try:
        get_professional_or_404(db, professional_id)
        return db.query(ProfessionalAvailabilityOverride).filter(
            ProfessionalAvailabilityOverride.professional_id == professional_id,
            ProfessionalAvailabilityOverride.override_date >= first_day,
            ProfessionalAvailabilityOverride.override_date <= last_day,
        ).order_by(
            ProfessionalAvailabilityOverride.override_date.asc(),
            ProfessionalAvailabilityOverride.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post(
    '/professionals/{professional_id}/overrides',
    response_model=OverrideResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_availability_override(
    professional_id: str,
    data: CreateOverrideRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        professional = get_professional_or_404(db, professional_id)
        ensure_can_manage_professional(current_user, professional)

        override = ProfessionalAvailabilityOverride(
            professional_id=professional_id,
            override_date=data.override_date,
            start_time=data.start_time,
            end_time=data.end_time,
            is_available=data.is_available,
        )
        db.add(override)
        db.commit()
        db.refresh(override)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    background_tasks.add_task(reconcile_professional_in_background, professional_id)
    return override


@router.delete('/overrides/{override_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability_override(
    override_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        override = db.query(ProfessionalAvailabilityOverride).filter(
            ProfessionalAvailabilityOverride.id == override_id,
        ).first()
        if override is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Availability override not found.',
            )

        professional_id = override.professional_id
        ensure_can_manage_professional(current_user, get_professional_or_404(db, professional_id))

        db.delete(override)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    background_tasks.add_task(reconcile_professional_in_background, professional_id)


@router.delete('/professionals/{professional_id}/overrides', status_code=status.HTTP_204_NO_CONTENT)
def remove_day_overrides(
    professional_id: str,
    background_tasks: BackgroundTasks,
    override_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        professional = get_professional_or_404(db, professional_id)
        ensure_can_manage_professional(current_user, professional)

        db.query(ProfessionalAvailabilityOverride).filter(
            ProfessionalAvailabilityOverride.professional_id == professional_id,
            ProfessionalAvailabilityOverride.override_date == override_date,
        ).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    background_tasks.add_task(reconcile_professional_in_background, professional_id)


@router.post(
    '/professionals/{professional_id}/block-day',
    response_model=OverrideResponse,
    status_code=status.HTTP_201_CREATED,
)
def block_day(
    professional_id: str,
    data: BlockDayRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        professional = get_professional_or_404(db, professional_id)
        ensure_can_manage_professional(current_user, professional)

        # A blocked day replaces whatever overrides the date had.
        db.query(ProfessionalAvailabilityOverride).filter(
            ProfessionalAvailabilityOverride.professional_id == professional_id,
            ProfessionalAvailabilityOverride.override_date == data.override_date,
        ).delete(synchronize_session=False)

        override = ProfessionalAvailabilityOverride(
            professional_id=professional_id,
            override_date=data.override_date,
            start_time=DAY_START,
            end_time=DAY_END,
            is_available=False,
        )
        db.add(override)
        db.commit()
        db.refresh(override)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    background_tasks.add_task(reconcile_professional_in_background, professional_id)
    return override

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.database import ensure_availability_schema, ensure_schedule_schema
from backend.models.professional import Professional

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
        ensure_availability_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


def get_professional_or_404(db: Session, professional_id: str) -> Professional:
    professional = db.query(Professional).filter(Professional.id == professional_id).first()
    if professional is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Professional not found.',
        )
    return professional

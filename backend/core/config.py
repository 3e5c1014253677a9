import os

import pytz


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:5173"])

# Wall-clock times of availability rules are interpreted in this zone.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/Sao_Paulo")
SCHEDULE_HORIZON_MONTHS = int(os.getenv("SCHEDULE_HORIZON_MONTHS", "12"))
SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "30"))
SCHEDULE_BATCH_SIZE = int(os.getenv("SCHEDULE_BATCH_SIZE", "1000"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if CLINIC_TIMEZONE not in pytz.all_timezones_set:
        raise RuntimeError(f"CLINIC_TIMEZONE '{CLINIC_TIMEZONE}' is not a known timezone.")
    for name, value in (
        ("SCHEDULE_HORIZON_MONTHS", SCHEDULE_HORIZON_MONTHS),
        ("SLOT_DURATION_MINUTES", SLOT_DURATION_MINUTES),
        ("SCHEDULE_BATCH_SIZE", SCHEDULE_BATCH_SIZE),
    ):
        if value <= 0:
            raise RuntimeError(f"{name} must be a positive integer.")

import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scheduling.db")
CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

REMINDER_TRIGGER_SECRET = os.getenv("REMINDER_TRIGGER_SECRET", "")

SCHEDULING_TIMEZONE = os.getenv("SCHEDULING_TIMEZONE", "UTC")
REQUESTER_CANCEL_LEAD_HOURS = int(os.getenv("REQUESTER_CANCEL_LEAD_HOURS", "2"))
MAX_DESCRIPTION_LENGTH = int(os.getenv("MAX_DESCRIPTION_LENGTH", "1000"))
MAX_NOTES_LENGTH = int(os.getenv("MAX_NOTES_LENGTH", "1000"))
MIN_SLOT_DURATION_MINUTES = int(os.getenv("MIN_SLOT_DURATION_MINUTES", "5"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    if JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if not REMINDER_TRIGGER_SECRET:
        raise RuntimeError("REMINDER_TRIGGER_SECRET must be set in production.")

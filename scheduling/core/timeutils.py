from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from scheduling.core import config


def utcnow() -> datetime:
    """Current wall-clock time as a naive UTC datetime, the storage convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_zone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or config.SCHEDULING_TIMEZONE)


def local_to_utc(day: date, clock_time: time, zone: ZoneInfo | None = None) -> datetime:
    local = datetime.combine(day, clock_time, tzinfo=zone or local_zone())
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def format_local_time(value: datetime, pattern: str = '%H:%M', zone: ZoneInfo | None = None) -> str:
    return value.replace(tzinfo=timezone.utc).astimezone(zone or local_zone()).strftime(pattern)

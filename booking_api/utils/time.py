from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def parse_date(s: str) -> date:
    """Parses a YYYY-MM-DD string."""
    return date.fromisoformat(s.strip())

def to_utc(dt: datetime) -> datetime:
    """Converts a naive datetime to a timezone-aware UTC datetime."""
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)

def store_today(now: datetime, tz_name: str) -> date:
    """The calendar date at the store for the given instant."""
    return to_utc(now).astimezone(ZoneInfo(tz_name)).date()

def start_of_day(day: date, tz_name: str) -> datetime:
    """Midnight of a store-local calendar date, as an aware UTC datetime."""
    local = datetime.combine(day, time.min, tzinfo=ZoneInfo(tz_name))
    return local.astimezone(timezone.utc)

def db_utc_naive(dt: datetime) -> datetime:
    """Converts a timezone-aware datetime to a naive UTC datetime for DB storage."""
    return to_utc(dt).astimezone(timezone.utc).replace(tzinfo=None)

def api_iso_z(dt: datetime | None) -> str | None:
    """Formats a datetime into an ISO 8601 string ending in 'Z' for API responses."""
    if dt is None:
        return None
    return to_utc(dt).astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional


def utc_now() -> datetime:
    """Timezone-aware current time in UTC. Default clock for the engine."""
    return datetime.now(timezone.utc)


def ensure_aware(ts: datetime) -> datetime:
    """Naive datetimes are interpreted as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def to_local_timezone(ts: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Convert an (assumed-UTC if naive) timestamp into `tz` (UTC if None)."""
    return ensure_aware(ts).astimezone(tz or timezone.utc)


def format_timestamp(ts: datetime, tz: Optional[tzinfo] = None, fmt: Optional[str] = None) -> str:
    """Render `ts` in `tz`; ISO 8601 unless an strftime `fmt` is given."""
    local = to_local_timezone(ts, tz)
    return local.strftime(fmt) if fmt else local.isoformat()


def expiry_timestamp(ts: datetime, minutes: int) -> datetime:
    return ensure_aware(ts) + timedelta(minutes=minutes)

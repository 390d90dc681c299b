from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def iso_utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def audit_timestamp(dt: datetime | None = None) -> str:
    """Millisecond ISO-8601 UTC string; sorts lexicographically in time order."""
    x = (dt or datetime.now(timezone.utc)).astimezone(timezone.utc)
    x = x.replace(microsecond=(x.microsecond // 1000) * 1000)
    return x.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_display_tz(dt: datetime, tz_name: str) -> str:
    try:
        tz = ZoneInfo(tz_name)
    except Exception:
        tz = timezone.utc

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz).replace(microsecond=0).isoformat()


def today_utc() -> date:
    return datetime.now(timezone.utc).date()

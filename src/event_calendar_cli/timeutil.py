from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
import re
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE_NAME = "Asia/Tokyo"
DEFAULT_TZ = ZoneInfo(DEFAULT_TIMEZONE_NAME)

_YYYYMMDD_PATTERN = re.compile(r"\d{8}")


def resolve_now(now: datetime | None = None, tz: tzinfo | None = None) -> datetime:
    """Return a tz-aware 'now' in the given zone, defaulting to the wall clock."""
    zone = tz or DEFAULT_TZ
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        return now.replace(tzinfo=zone)
    return now.astimezone(zone)


def format_utc_instant(dt: datetime) -> str | None:
    """Format a tz-aware datetime as YYYYMMDDTHHMMSSZ. Returns None for naive input."""
    if dt.tzinfo is None or dt.utcoffset() is None:
        return None
    try:
        utc_dt = dt.astimezone(timezone.utc)
    except OverflowError:
        return None
    return (
        f"{utc_dt.year:04d}{utc_dt.month:02d}{utc_dt.day:02d}"
        f"T{utc_dt.hour:02d}{utc_dt.minute:02d}{utc_dt.second:02d}Z"
    )


def format_local_yyyymmdd(value: date) -> str:
    return f"{value.year:04d}{value.month:02d}{value.day:02d}"


def parse_yyyymmdd(s: str) -> date | None:
    """Parse a strict 8-digit YYYYMMDD string. Returns None when malformed or not a real date."""
    raw = s.strip()
    if not _YYYYMMDD_PATTERN.fullmatch(raw):
        return None
    try:
        return date(int(raw[0:4]), int(raw[4:6]), int(raw[6:8]))
    except ValueError:
        return None


def is_yyyymmdd(s: str) -> bool:
    return parse_yyyymmdd(s) is not None


def next_day_yyyymmdd(yyyymmdd: str) -> str:
    """Add one calendar day to YYYYMMDD; malformed input is returned trimmed and unchanged."""
    raw = yyyymmdd.strip()
    parsed = parse_yyyymmdd(raw)
    if parsed is None:
        return raw
    try:
        return format_local_yyyymmdd(parsed + timedelta(days=1))
    except OverflowError:
        return raw


def add_hours(dt: datetime, hours: int) -> datetime:
    """Add wall-clock-independent hours (exact elapsed time, computed in UTC)."""
    return (dt.astimezone(timezone.utc) + timedelta(hours=hours)).astimezone(dt.tzinfo)


def parse_utc_instant(s: str) -> datetime | None:
    """Inverse of format_utc_instant."""
    try:
        naive = datetime.strptime(s.strip(), "%Y%m%dT%H%M%SZ")
    except ValueError:
        return None
    return naive.replace(tzinfo=timezone.utc)

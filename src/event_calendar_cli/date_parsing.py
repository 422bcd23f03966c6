"""Loose date/time parsing for event strings extracted from free-form page text.

Inputs are normalized first (full-width glyphs, Japanese hour markers, timezone
labels), then tried against ranked pattern tables. The first pattern that both
matches the shape and yields a real calendar date/time wins.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo

from dateutil.parser import isoparse

from event_calendar_cli.timeutil import DEFAULT_TZ, format_local_yyyymmdd, resolve_now

logger = logging.getLogger(__name__)

_WIDTH_FOLD = str.maketrans(
    {
        **{chr(0xFF10 + digit): str(digit) for digit in range(10)},
        "：": ":",
        "／": "/",
        **{glyph: "-" for glyph in "－‐‑‒–—―"},
    }
)
_TZ_LABEL_PATTERN = re.compile(r"(?<![A-Za-z])JST(?![A-Za-z])", re.IGNORECASE)
_HOUR_MINUTE_MARKER_PATTERN = re.compile(r"(\d{1,2})時(\d{1,2})分?")
_BARE_HOUR_MARKER_PATTERN = re.compile(r"(\d{1,2})時(?!\d)")
_STRAY_MARKER_PATTERN = re.compile(r"[分秒]")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_OFFSET_NO_COLON_PATTERN = re.compile(r"([+-]\d{2})(\d{2})$")
_TIME_PRESENT_PATTERN = re.compile(r"\d{1,2}:\d{2}")

_TIME_FRAGMENT = r"(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?"
_OFFSET_FRAGMENT = r"(?: ?(?P<offset>Z|[+-]\d{2}:\d{2}))?"


@dataclass(frozen=True)
class _DatePattern:
    name: str
    fragment: str
    time_separator: str = " "

    @property
    def has_year(self) -> bool:
        return "(?P<year>" in self.fragment


# Ranked: explicit-year shapes first, then year-omitted ones.
_DATE_PATTERNS: tuple[_DatePattern, ...] = (
    _DatePattern("y-m-d", r"(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})"),
    _DatePattern("y/m/d", r"(?P<year>\d{4})/(?P<month>\d{1,2})/(?P<day>\d{1,2})"),
    _DatePattern("y年m月d日", r"(?P<year>\d{4})年(?P<month>\d{1,2})月(?P<day>\d{1,2})日", " ?"),
    _DatePattern("m/d", r"(?P<month>\d{1,2})/(?P<day>\d{1,2})"),
    _DatePattern("m-d", r"(?P<month>\d{1,2})-(?P<day>\d{1,2})"),
    _DatePattern("m月d日", r"(?P<month>\d{1,2})月(?P<day>\d{1,2})日", " ?"),
)

_DATE_ONLY_TABLE: tuple[tuple[_DatePattern, re.Pattern[str]], ...] = tuple(
    (pattern, re.compile(pattern.fragment)) for pattern in _DATE_PATTERNS
)
_DATETIME_TABLE: tuple[tuple[_DatePattern, re.Pattern[str]], ...] = tuple(
    (
        pattern,
        re.compile(pattern.fragment + pattern.time_separator + _TIME_FRAGMENT + _OFFSET_FRAGMENT),
    )
    for pattern in _DATE_PATTERNS
)


def normalize_datetime_input(value: str) -> str:
    """Canonicalize glyphs and markers before pattern matching. Idempotent."""
    text = value.strip().translate(_WIDTH_FOLD)
    # Removing one label can expose another ("J日本時間ST"), so strip to a fixed point.
    text = _until_stable(text, _strip_labels)
    text = _until_stable(text, _rewrite_hour_markers)
    text = _WHITESPACE_PATTERN.sub(" ", text).strip()
    return _OFFSET_NO_COLON_PATTERN.sub(r"\1:\2", text)


def _strip_labels(text: str) -> str:
    text = _STRAY_MARKER_PATTERN.sub("", text)
    return _TZ_LABEL_PATTERN.sub("", text).replace("日本時間", "")


def _rewrite_hour_markers(text: str) -> str:
    text = _HOUR_MINUTE_MARKER_PATTERN.sub(
        lambda match: f"{match.group(1)}:{int(match.group(2)):02d}", text
    )
    return _BARE_HOUR_MARKER_PATTERN.sub(r"\1:00", text)


def _until_stable(text: str, step: Callable[[str], str]) -> str:
    # Every step only deletes or replaces marker characters, so this terminates.
    while True:
        updated = step(text)
        if updated == text:
            return text
        text = updated


def parse_date_only(
    text: str,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> date | None:
    """Parse a bare calendar date (no time of day). Year-omitted forms use the current year."""
    normalized = normalize_datetime_input(text)
    if not normalized:
        return None

    for pattern, regex in _DATE_ONLY_TABLE:
        match = regex.fullmatch(normalized)
        if match is None:
            continue
        parsed = _build_date(match, pattern, now=now, tz=tz)
        if parsed is not None:
            return parsed
        logger.debug("date_pattern_invalid pattern=%s value=%r", pattern.name, normalized)
    return None


def parse_date_only_to_yyyymmdd(
    text: str,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> str | None:
    parsed = parse_date_only(text, now=now, tz=tz)
    return format_local_yyyymmdd(parsed) if parsed is not None else None


def parse_datetime_loose(
    text: str,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> datetime | None:
    """Parse a date with a time of day into a tz-aware datetime.

    Strict ISO-8601 is tried first; naive results are placed in ``tz``. Then the
    explicit date+time table is walked in rank order.
    """
    zone = tz or DEFAULT_TZ
    normalized = normalize_datetime_input(text)
    if not normalized or not _TIME_PRESENT_PATTERN.search(normalized):
        return None

    iso_parsed = _parse_iso(normalized, zone)
    if iso_parsed is not None:
        return iso_parsed

    for pattern, regex in _DATETIME_TABLE:
        match = regex.fullmatch(normalized)
        if match is None:
            continue
        parsed_date = _build_date(match, pattern, now=now, tz=zone)
        if parsed_date is None:
            logger.debug("datetime_pattern_invalid_date pattern=%s value=%r", pattern.name, normalized)
            continue
        parsed = _combine(parsed_date, match, zone)
        if parsed is not None:
            return parsed
        logger.debug("datetime_pattern_invalid_time pattern=%s value=%r", pattern.name, normalized)

    return None


def _parse_iso(normalized: str, zone: tzinfo) -> datetime | None:
    candidate = normalized if "T" in normalized else normalized.replace(" ", "T", 1)
    try:
        parsed = isoparse(candidate)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=zone)
    return parsed


def _build_date(
    match: re.Match[str],
    pattern: _DatePattern,
    *,
    now: datetime | None,
    tz: tzinfo | None,
) -> date | None:
    year = int(match.group("year")) if pattern.has_year else resolve_now(now, tz).year
    try:
        return date(year, int(match.group("month")), int(match.group("day")))
    except ValueError:
        return None


def _combine(parsed_date: date, match: re.Match[str], zone: tzinfo) -> datetime | None:
    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    second = int(match.group("second") or 0)
    if hour > 23 or minute > 59 or second > 59:
        return None

    offset = match.group("offset")
    if offset is None:
        target_zone = zone
    else:
        target_zone = _parse_offset(offset)
        if target_zone is None:
            return None

    return datetime(
        parsed_date.year,
        parsed_date.month,
        parsed_date.day,
        hour,
        minute,
        second,
        tzinfo=target_zone,
    )


def _parse_offset(offset: str) -> tzinfo | None:
    if offset == "Z":
        return timezone.utc
    sign = -1 if offset[0] == "-" else 1
    hours = int(offset[1:3])
    minutes = int(offset[4:6])
    if hours > 23 or minutes > 59:
        return None
    return timezone(sign * timedelta(hours=hours, minutes=minutes))

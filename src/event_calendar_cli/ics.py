from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from datetime import datetime, tzinfo

from event_calendar_cli.event_range import AllDayRange, EventDateRange, resolve_event_range
from event_calendar_cli.ingest.types import DEFAULT_EVENT_TITLE, EventDetails
from event_calendar_cli.timeutil import format_utc_instant, resolve_now

logger = logging.getLogger(__name__)

PRODUCT_ID = "-//event-calendar-cli//EN"
MAX_LINE_OCTETS = 75
CRLF = "\r\n"

_FILE_NAME_ILLEGAL_PATTERN = re.compile(r'[\\/:*?"<>|]')
_MAX_FILE_NAME_LENGTH = 80


def escape_ics_text(value: str) -> str:
    """Escape a TEXT property value (RFC 5545 §3.3.11). Backslash goes first."""
    return (
        value.replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r", "")
    )


def fold_ics_line(line: str) -> str:
    """Fold a content line so no physical line exceeds 75 octets.

    Continuation lines start with one space, which counts toward their limit.
    Multi-byte UTF-8 sequences are never split.
    """
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return line

    chunks: list[str] = []
    current: list[str] = []
    current_octets = 0
    limit = MAX_LINE_OCTETS
    for char in line:
        char_octets = len(char.encode("utf-8"))
        if current_octets + char_octets > limit:
            chunks.append("".join(current))
            current = []
            current_octets = 0
            limit = MAX_LINE_OCTETS - 1
        current.append(char)
        current_octets += char_octets
    chunks.append("".join(current))
    return (CRLF + " ").join(chunks)


def build_ics(
    event: EventDetails,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    default_title: str = DEFAULT_EVENT_TITLE,
    uid_factory: Callable[[], str] | None = None,
) -> str | None:
    """Render a single-VEVENT calendar document, or None when the time range is unresolvable."""
    date_range = resolve_event_range(event.start, event.end, event.all_day, now=now, tz=tz)
    if date_range is None:
        return None

    dtstamp = format_utc_instant(resolve_now(now, tz))
    if dtstamp is None:
        return None

    uid = uid_factory() if uid_factory is not None else str(uuid.uuid4())
    location = event.location_text()
    description = event.description_text()

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODUCT_ID}",
        "CALSCALE:GREGORIAN",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{dtstamp}",
        *_date_lines(date_range),
        f"SUMMARY:{escape_ics_text(event.display_title(default_title))}",
    ]
    if location:
        lines.append(f"LOCATION:{escape_ics_text(location)}")
    if description:
        lines.append(f"DESCRIPTION:{escape_ics_text(description)}")
    lines.extend(["END:VEVENT", "END:VCALENDAR"])

    return CRLF.join(fold_ics_line(line) for line in lines) + CRLF


def _date_lines(date_range: EventDateRange) -> tuple[str, str]:
    if isinstance(date_range, AllDayRange):
        return (
            f"DTSTART;VALUE=DATE:{date_range.start_yyyymmdd}",
            f"DTEND;VALUE=DATE:{date_range.end_yyyymmdd_exclusive}",
        )
    return (f"DTSTART:{date_range.start_utc}", f"DTEND:{date_range.end_utc}")


def sanitize_file_name(name: str) -> str:
    trimmed = name.strip() or "event"
    return _FILE_NAME_ILLEGAL_PATTERN.sub("_", trimmed)[:_MAX_FILE_NAME_LENGTH] or "event"

from __future__ import annotations

from datetime import datetime, tzinfo
from enum import StrEnum
from typing import Any
from urllib.parse import urlencode

from event_calendar_cli.event_range import resolve_event_range
from event_calendar_cli.ingest.types import DEFAULT_EVENT_TITLE, EventDetails

GOOGLE_CALENDAR_RENDER_URL = "https://calendar.google.com/calendar/render"


class CalendarTarget(StrEnum):
    GOOGLE = "google"
    ICS = "ics"


DEFAULT_CALENDAR_TARGETS: tuple[CalendarTarget, ...] = (CalendarTarget.GOOGLE, CalendarTarget.ICS)


def build_google_calendar_url(
    event: EventDetails,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    default_title: str = DEFAULT_EVENT_TITLE,
) -> str | None:
    """Build a Google Calendar TEMPLATE link, or None when the time range is unresolvable."""
    date_range = resolve_event_range(event.start, event.end, event.all_day, now=now, tz=tz)
    if date_range is None:
        return None

    params: dict[str, str] = {
        "action": "TEMPLATE",
        "text": event.display_title(default_title),
        "dates": date_range.google_dates,
    }
    details = event.description_text()
    if details:
        params["details"] = details
    location = event.location_text()
    if location:
        params["location"] = location

    return f"{GOOGLE_CALENDAR_RENDER_URL}?{urlencode(params)}"


def normalize_calendar_targets(values: Any) -> list[CalendarTarget]:
    """Keep known targets in first-seen order, dropping duplicates and unknown values."""
    if not isinstance(values, (list, tuple)):
        return []

    targets: list[CalendarTarget] = []
    for item in values:
        if not isinstance(item, str):
            continue
        try:
            target = CalendarTarget(item.strip().lower())
        except ValueError:
            continue
        if target not in targets:
            targets.append(target)
    return targets


def resolve_calendar_targets(value: Any) -> list[CalendarTarget]:
    if not isinstance(value, (list, tuple)):
        return list(DEFAULT_CALENDAR_TARGETS)
    return normalize_calendar_targets(value)

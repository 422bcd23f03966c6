from __future__ import annotations

import json
import logging
import re
from datetime import datetime, tzinfo
from typing import Any

from event_calendar_cli.date_parsing import parse_date_only, parse_datetime_loose
from event_calendar_cli.ingest.types import DEFAULT_EVENT_TITLE, EventDetails

logger = logging.getLogger(__name__)

_WAVE_SEPARATOR_PATTERN = re.compile(r"^(.*?)\s*(?:〜|~|–|—)\s*(.*?)$")
_DASH_SEPARATOR_PATTERN = re.compile(r"^(.*?)\s+-\s+(.*?)$")
_TIME_DASH_PATTERN = re.compile(r"^(.+\d{1,2}:\d{2}(?::\d{2})?)\s*-\s*(\d{1,2}:\d{2}(?::\d{2})?)$")
_DATE_PREFIX_PATTERN = re.compile(
    r"^(\d{4}-\d{1,2}-\d{1,2}|\d{4}/\d{1,2}/\d{1,2}|\d{4}年\d{1,2}月\d{1,2}日|\d{1,2}[/-]\d{1,2}|\d{1,2}月\d{1,2}日)\s+"
)
_TIME_ONLY_PATTERN = re.compile(r"^(\d{1,2}:\d{2}(?::\d{2})?)$")
_ISO_STAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}(?:T\d{2}:\d{2}|[ T]\d{2}:\d{2}:\d{2})")


class EventExtractionError(ValueError):
    """Raised when an extraction response cannot be turned into event details."""


def parse_event_payload(
    payload_text: str,
    *,
    default_title: str = DEFAULT_EVENT_TITLE,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> EventDetails:
    """Parse an LLM JSON response body into normalized event details."""
    item = _load_json_object(payload_text)
    if item is None:
        raise EventExtractionError("Event payload is not a JSON object.")
    if not isinstance(item.get("title"), str) or not isinstance(item.get("start"), str):
        raise EventExtractionError("Event payload must contain string 'title' and 'start' fields.")
    return normalize_event(item, default_title=default_title, now=now, tz=tz)


def normalize_event(
    item: dict[str, Any],
    *,
    default_title: str = DEFAULT_EVENT_TITLE,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> EventDetails:
    title = _normalize_opt_str(item.get("title")) or default_title
    raw_start = _normalize_opt_str(item.get("start")) or ""
    raw_end = _normalize_opt_str(item.get("end"))
    raw_all_day = True if item.get("allDay") is True else None

    start, end, all_day = _split_packed_range(raw_start, raw_end, raw_all_day, now=now, tz=tz)
    return EventDetails(
        title=title,
        start=start,
        end=end,
        all_day=all_day,
        location=_normalize_opt_str(item.get("location")),
        description=_normalize_opt_str(item.get("description")),
    )


def split_text_range(value: str) -> tuple[str, str] | None:
    normalized = value.strip()
    if not normalized:
        return None
    for pattern in (_WAVE_SEPARATOR_PATTERN, _DASH_SEPARATOR_PATTERN, _TIME_DASH_PATTERN):
        match = pattern.match(normalized)
        if match is not None:
            return match.group(1).strip(), match.group(2).strip()
    return None


def format_event_text(event: EventDetails) -> str:
    lines = [f"タイトル: {event.title}"]
    lines.append(f"日時: {event.start}{f' 〜 {event.end}' if event.end else ''}")
    if event.location:
        lines.append(f"場所: {event.location}")
    if event.description:
        lines.extend(["", "概要:", event.description])
    return "\n".join(lines)


def _split_packed_range(
    start: str,
    end: str | None,
    all_day: bool | None,
    *,
    now: datetime | None,
    tz: tzinfo | None,
) -> tuple[str, str | None, bool | None]:
    # Models sometimes pack "2025-12-16 14:00〜15:00" into start alone.
    if end or not start:
        return start, end, all_day
    # In an ISO stamp a trailing "-05:00" is an offset, not an end time.
    if _ISO_STAMP_PATTERN.match(start) and parse_datetime_loose(start, now=now, tz=tz) is not None:
        return start, end, all_day
    if parse_date_only(start, now=now, tz=tz) is not None:
        return start, end, all_day

    parts = split_text_range(start)
    if parts is None:
        return start, end, all_day
    left, right = parts

    left_date = parse_date_only(left, now=now, tz=tz)
    if left_date is not None and parse_date_only(right, now=now, tz=tz) is not None:
        return left, right, True if all_day is None else all_day

    date_prefix = _DATE_PREFIX_PATTERN.match(left)
    time_only = _TIME_ONLY_PATTERN.match(right)
    if date_prefix is not None and time_only is not None:
        return left, f"{date_prefix.group(1)} {time_only.group(1)}", all_day
    if parse_datetime_loose(right, now=now, tz=tz) is not None:
        return left, right, all_day

    logger.debug("event_range_split_dropped_right value=%r", right)
    return left, end, all_day


def _load_json_object(payload_text: str) -> dict[str, Any] | None:
    cleaned = payload_text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned)
        cleaned = re.sub(r"\s*```$", "", cleaned)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            parsed = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            logger.warning("event_payload_invalid_json length=%s", len(payload_text))
            return None

    return parsed if isinstance(parsed, dict) else None


def _normalize_opt_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


__all__ = [
    "EventExtractionError",
    "format_event_text",
    "normalize_event",
    "parse_event_payload",
    "split_text_range",
]

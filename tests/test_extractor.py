from __future__ import annotations

from datetime import datetime
from urllib.parse import parse_qs, urlsplit
from zoneinfo import ZoneInfo

import pytest

from event_calendar_cli.calendar_link import build_google_calendar_url

from event_calendar_cli.ingest.extractor import (
    EventExtractionError,
    format_event_text,
    normalize_event,
    parse_event_payload,
    split_text_range,
)
from event_calendar_cli.ingest.types import EventDetails

TOKYO = ZoneInfo("Asia/Tokyo")


def test_parse_event_payload_strips_code_fence_and_repairs_time_range() -> None:
    payload = '```json\n{"title": "Meetup", "start": "2025-12-16 14:00〜15:00", "location": " Shibuya "}\n```'

    event = parse_event_payload(payload)

    assert event == EventDetails(
        title="Meetup",
        start="2025-12-16 14:00",
        end="2025-12-16 15:00",
        all_day=None,
        location="Shibuya",
        description=None,
    )


def test_parse_event_payload_falls_back_to_embedded_object() -> None:
    payload = 'Here you go: {"title": "Launch", "start": "2025-01-31"} Let me know!'

    event = parse_event_payload(payload)

    assert event.title == "Launch"
    assert event.start == "2025-01-31"


@pytest.mark.parametrize(
    "payload",
    [
        "not json at all",
        "[1, 2]",
        '{"title": 1, "start": "2025-01-31"}',
        '{"title": "x"}',
        "{broken",
    ],
)
def test_parse_event_payload_rejects_malformed_payload(payload: str) -> None:
    with pytest.raises(EventExtractionError):
        parse_event_payload(payload)


def test_normalize_event_defaults_blank_fields() -> None:
    event = normalize_event(
        {"title": "   ", "start": " 2025-01-31 ", "end": "", "allDay": "true", "description": "  "},
        default_title="Event",
    )

    assert event == EventDetails(title="Event", start="2025-01-31")


def test_normalize_event_keeps_literal_true_all_day() -> None:
    assert normalize_event({"title": "x", "start": "2025-01-31", "allDay": True}).all_day is True


def test_date_only_range_becomes_all_day() -> None:
    event = normalize_event({"title": "Fair", "start": "2025-12-16〜2025-12-17"})

    assert (event.start, event.end, event.all_day) == ("2025-12-16", "2025-12-17", True)


def test_spaced_dash_range_with_full_datetimes() -> None:
    event = normalize_event({"title": "x", "start": "2025-12-16 10:00 - 2025-12-16 12:00"})

    assert (event.start, event.end) == ("2025-12-16 10:00", "2025-12-16 12:00")


def test_time_dash_range_borrows_left_date() -> None:
    event = normalize_event({"title": "x", "start": "2025-12-16 10:00-11:00"})

    assert (event.start, event.end) == ("2025-12-16 10:00", "2025-12-16 11:00")


def test_unparseable_right_half_is_dropped() -> None:
    event = normalize_event({"title": "x", "start": "2025-12-16 10:00〜late"})

    assert (event.start, event.end) == ("2025-12-16 10:00", None)


def test_iso_start_with_negative_offset_is_not_split() -> None:
    event = parse_event_payload('{"title": "Call", "start": "2025-12-16T10:00:00-05:00"}', tz=TOKYO)

    assert event.start == "2025-12-16T10:00:00-05:00"
    assert event.end is None

    url = build_google_calendar_url(event, tz=TOKYO)
    assert url is not None
    assert parse_qs(urlsplit(url).query)["dates"] == ["20251216T150000Z/20251216T160000Z"]


@pytest.mark.parametrize("start", ["2025-12-16T10:00-05:00", "2025-12-16 10:00:00-05:00"])
def test_iso_shaped_offset_stamps_are_kept_whole(start: str) -> None:
    assert normalize_event({"title": "x", "start": start}).start == start


def test_year_omitted_range_uses_injected_clock() -> None:
    payload = '{"title": "Leap", "start": "2/29〜3/1"}'

    leap = parse_event_payload(payload, now=datetime(2024, 6, 1, tzinfo=TOKYO), tz=TOKYO)
    plain = parse_event_payload(payload, now=datetime(2025, 6, 1, tzinfo=TOKYO), tz=TOKYO)

    assert (leap.start, leap.end, leap.all_day) == ("2/29", "3/1", True)
    assert (plain.start, plain.end, plain.all_day) == ("2/29", None, None)


def test_explicit_end_disables_range_repair() -> None:
    event = normalize_event({"title": "x", "start": "2025-12-16 10:00〜11:00", "end": "2025-12-16 12:00"})

    assert (event.start, event.end) == ("2025-12-16 10:00〜11:00", "2025-12-16 12:00")


def test_split_text_range() -> None:
    assert split_text_range("a 〜 b") == ("a", "b")
    assert split_text_range("plain") is None
    assert split_text_range("  ") is None


def test_format_event_text() -> None:
    event = EventDetails(
        title="Meetup",
        start="2025-12-16 14:00",
        end="2025-12-16 15:00",
        location="Shibuya",
        description="Bring a laptop",
    )

    assert format_event_text(event) == (
        "タイトル: Meetup\n"
        "日時: 2025-12-16 14:00 〜 2025-12-16 15:00\n"
        "場所: Shibuya\n"
        "\n"
        "概要:\n"
        "Bring a laptop"
    )
    assert format_event_text(EventDetails(title="x", start="2025-01-31")) == "タイトル: x\n日時: 2025-01-31"

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from event_calendar_cli.event_range import AllDayRange, DateTimeRange, resolve_event_range
from event_calendar_cli.timeutil import parse_utc_instant

TOKYO = ZoneInfo("Asia/Tokyo")
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=TOKYO)


def _resolve(start: str, end: str | None = None, all_day: bool | None = None):
    return resolve_event_range(start, end, all_day, now=NOW, tz=TOKYO)


def test_bare_date_implies_all_day_with_exclusive_end() -> None:
    assert _resolve("2025-01-31") == AllDayRange(start_yyyymmdd="20250131", end_yyyymmdd_exclusive="20250201")


def test_timed_start_defaults_to_one_hour_in_utc() -> None:
    assert _resolve("2025-12-16T10:00:00+09:00") == DateTimeRange(
        start_utc="20251216T010000Z",
        end_utc="20251216T020000Z",
    )


def test_year_omitted_datetime_resolves_in_current_year() -> None:
    assert _resolve("12/16 10:00") == DateTimeRange(start_utc="20251216T010000Z", end_utc="20251216T020000Z")


def test_invalid_calendar_date_fails_whole_resolution() -> None:
    assert _resolve("2025-02-30") is None


@pytest.mark.parametrize("start", ["", "   ", "TBD", "tomorrow evening"])
def test_unusable_start_fails(start: str) -> None:
    assert _resolve(start) is None


def test_all_day_end_date_is_kept_when_after_start() -> None:
    assert _resolve("2025-01-31", "2025-02-02") == AllDayRange("20250131", "20250202")


@pytest.mark.parametrize("end", ["2025-01-30", "2025-01-31", "not a date"])
def test_all_day_end_not_after_start_is_forced_to_next_day(end: str) -> None:
    assert _resolve("2025-01-31", end) == AllDayRange("20250131", "20250201")


def test_explicit_all_day_keeps_only_local_date_of_datetime_start() -> None:
    assert _resolve("2025-12-16T10:00:00+09:00", None, True) == AllDayRange("20251216", "20251217")
    # 04:30 UTC on the 17th is already the 17th in Tokyo.
    assert _resolve("2025-12-16T23:30:00-05:00", None, True) == AllDayRange("20251217", "20251218")


def test_explicit_all_day_uses_date_of_datetime_end() -> None:
    assert _resolve("2025-12-16 10:00", "2025-12-18 09:00", True) == AllDayRange("20251216", "20251218")


def test_inferred_all_day_ignores_datetime_end() -> None:
    assert _resolve("2025-12-16", "2025-12-18 09:00") == AllDayRange("20251216", "20251217")


def test_false_flag_does_not_override_date_only_inference() -> None:
    assert _resolve("2025-12-16", None, False) == AllDayRange("20251216", "20251217")


def test_explicit_all_day_with_unparseable_start_fails() -> None:
    assert _resolve("sometime soon", None, True) is None


def test_last_representable_day_fails() -> None:
    assert _resolve("9999-12-31") is None


def test_timed_end_is_used_when_after_start() -> None:
    assert _resolve("2025-12-16 10:00", "2025-12-16 12:30") == DateTimeRange(
        start_utc="20251216T010000Z",
        end_utc="20251216T033000Z",
    )


@pytest.mark.parametrize("end", ["2025-12-16 09:00", "2025-12-16 10:00", "later", None])
def test_timed_end_missing_or_not_after_start_defaults_to_one_hour(end: str | None) -> None:
    assert _resolve("2025-12-16 10:00", end) == DateTimeRange(
        start_utc="20251216T010000Z",
        end_utc="20251216T020000Z",
    )


@pytest.mark.parametrize(
    ("start", "end", "all_day"),
    [
        ("2025-01-31", None, None),
        ("2024-12-31", "2024-12-01", None),
        ("2025/2/28", None, True),
        ("12/31 23:30", None, None),
        ("2025-12-31 23:59:59", "2025-12-31 23:00", None),
        ("2025-03-09T01:30:00-05:00", "2025-03-09T01:00:00-05:00", None),
    ],
)
def test_resolved_ranges_always_end_after_start(start: str, end: str | None, all_day: bool | None) -> None:
    resolved = _resolve(start, end, all_day)

    assert resolved is not None
    if isinstance(resolved, AllDayRange):
        assert resolved.end_yyyymmdd_exclusive > resolved.start_yyyymmdd
    else:
        assert parse_utc_instant(resolved.end_utc) > parse_utc_instant(resolved.start_utc)

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo

from event_calendar_cli.date_parsing import parse_date_only_to_yyyymmdd, parse_datetime_loose
from event_calendar_cli.timeutil import (
    DEFAULT_TZ,
    add_hours,
    format_local_yyyymmdd,
    format_utc_instant,
    is_yyyymmdd,
    next_day_yyyymmdd,
)

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION_HOURS = 1


@dataclass(frozen=True)
class AllDayRange:
    start_yyyymmdd: str
    end_yyyymmdd_exclusive: str

    @property
    def google_dates(self) -> str:
        return f"{self.start_yyyymmdd}/{self.end_yyyymmdd_exclusive}"


@dataclass(frozen=True)
class DateTimeRange:
    start_utc: str
    end_utc: str

    @property
    def google_dates(self) -> str:
        return f"{self.start_utc}/{self.end_utc}"


EventDateRange = AllDayRange | DateTimeRange


@dataclass(frozen=True)
class _RangeInput:
    start: str
    end: str
    explicit_all_day: bool
    start_date_only: str | None
    end_date_only: str | None
    now: datetime | None
    tz: tzinfo

    @property
    def treat_as_all_day(self) -> bool:
        return self.explicit_all_day or self.start_date_only is not None


def resolve_event_range(
    start: str,
    end: str | None = None,
    all_day: bool | None = None,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> EventDateRange | None:
    """Resolve loose start/end strings into one consistent all-day or timed range.

    A bare date in ``start`` implies all-day even without the flag. Returns None
    when no usable calendar entry can be built; never a partial range.
    """
    start_raw = (start or "").strip()
    if not start_raw:
        logger.debug("event_range_unresolved reason=empty_start")
        return None
    end_raw = (end or "").strip()

    zone = tz or DEFAULT_TZ
    params = _RangeInput(
        start=start_raw,
        end=end_raw,
        explicit_all_day=all_day is True,
        start_date_only=parse_date_only_to_yyyymmdd(start_raw, now=now, tz=zone),
        end_date_only=parse_date_only_to_yyyymmdd(end_raw, now=now, tz=zone) if end_raw else None,
        now=now,
        tz=zone,
    )

    if params.treat_as_all_day:
        return _resolve_all_day(params)
    return _resolve_timed(params)


def _resolve_all_day(params: _RangeInput) -> AllDayRange | None:
    start_date = params.start_date_only
    if start_date is None and params.explicit_all_day:
        # Caller said all-day: keep the local date of a full datetime, drop its time.
        start_date = _local_date_of(params.start, params)
    if start_date is None:
        logger.debug("event_range_unresolved reason=all_day_start_unparsed")
        return None

    end_date = params.end_date_only
    if end_date is None and params.explicit_all_day and params.end:
        end_date = _local_date_of(params.end, params)
    if end_date is None:
        end_date = next_day_yyyymmdd(start_date)

    if not is_yyyymmdd(end_date):
        logger.debug("event_range_unresolved reason=all_day_end_malformed")
        return None
    if end_date <= start_date:
        end_date = next_day_yyyymmdd(start_date)
    if end_date <= start_date:
        # 99991231 has no next day.
        logger.debug("event_range_unresolved reason=all_day_end_overflow")
        return None

    return AllDayRange(start_yyyymmdd=start_date, end_yyyymmdd_exclusive=end_date)


def _resolve_timed(params: _RangeInput) -> DateTimeRange | None:
    start_dt = parse_datetime_loose(params.start, now=params.now, tz=params.tz)
    if start_dt is None:
        logger.debug("event_range_unresolved reason=start_unparsed")
        return None

    end_dt = parse_datetime_loose(params.end, now=params.now, tz=params.tz) if params.end else None
    try:
        if end_dt is None or end_dt <= start_dt:
            end_dt = add_hours(start_dt, DEFAULT_EVENT_DURATION_HOURS)
    except OverflowError:
        logger.debug("event_range_unresolved reason=end_overflow")
        return None

    start_utc = format_utc_instant(start_dt)
    end_utc = format_utc_instant(end_dt)
    if not (start_utc and end_utc):
        logger.debug("event_range_unresolved reason=utc_format_failed")
        return None

    return DateTimeRange(start_utc=start_utc, end_utc=end_utc)


def _local_date_of(value: str, params: _RangeInput) -> str | None:
    parsed = parse_datetime_loose(value, now=params.now, tz=params.tz)
    if parsed is None:
        return None
    try:
        return format_local_yyyymmdd(parsed.astimezone(params.tz).date())
    except OverflowError:
        return None

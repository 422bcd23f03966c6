from __future__ import annotations

import logging
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlmodel import Session, select

from event_calendar_cli.calendar_link import (
    CalendarTarget,
    DEFAULT_CALENDAR_TARGETS,
    normalize_calendar_targets,
    resolve_calendar_targets,
)
from event_calendar_cli.ingest.types import DEFAULT_EVENT_TITLE
from event_calendar_cli.models import Settings
from event_calendar_cli.timeutil import DEFAULT_TIMEZONE_NAME

logger = logging.getLogger(__name__)

SETTING_DEFAULTS: dict[str, str] = {
    "timezone": DEFAULT_TIMEZONE_NAME,
    "default_title": DEFAULT_EVENT_TITLE,
    "calendar_targets": ",".join(target.value for target in DEFAULT_CALENDAR_TARGETS),
}
ALLOWED_SETTING_KEYS: frozenset[str] = frozenset(SETTING_DEFAULTS)


@dataclass(frozen=True)
class ExportSettings:
    timezone_name: str
    default_title: str
    calendar_targets: tuple[CalendarTarget, ...]

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone_name)


def validate_setting(key: str, value: str) -> None:
    if key not in ALLOWED_SETTING_KEYS:
        allowed = ", ".join(sorted(ALLOWED_SETTING_KEYS))
        raise ValueError(f"Unknown setting key: {key}. Allowed keys: {allowed}.")

    if key == "timezone":
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Invalid timezone '{value}'. Expected a valid IANA timezone.") from exc
        return

    if key == "default_title":
        if not value.strip():
            raise ValueError(f"Invalid value for {key}: must not be empty.")
        return

    if key == "calendar_targets":
        items = _split_targets(value)
        known = normalize_calendar_targets(items)
        if len(known) != len(set(items)):
            allowed = ", ".join(target.value for target in CalendarTarget)
            raise ValueError(f"Invalid value for {key}: comma-separated subset of {allowed}.")
        return


def parse_calendar_targets(value: str | None) -> list[CalendarTarget]:
    if value is None:
        return resolve_calendar_targets(None)
    return resolve_calendar_targets(_split_targets(value))


def _split_targets(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def read_settings(session: Session) -> dict[str, str]:
    """Every known setting, stored values overlaid on the defaults, sorted by key."""
    stored = {setting.key: setting.value for setting in session.exec(select(Settings))}
    merged = {**SETTING_DEFAULTS, **{key: value for key, value in stored.items() if key in SETTING_DEFAULTS}}
    return dict(sorted(merged.items()))


def seed_missing_settings(session: Session) -> list[str]:
    stored_keys = set(session.exec(select(Settings.key)))
    missing = [key for key in SETTING_DEFAULTS if key not in stored_keys]
    for key in missing:
        session.add(Settings(key=key, value=SETTING_DEFAULTS[key]))
    session.commit()
    if missing:
        logger.info("settings_seeded keys=%s", ",".join(missing))
    return missing


def save_setting(session: Session, key: str, value: str) -> str:
    """Validate, canonicalize and store one setting; returns the stored value."""
    validate_setting(key, value)
    canonical = _canonical_value(key, value)
    session.merge(Settings(key=key, value=canonical))
    session.commit()
    return canonical


def load_export_settings(session: Session) -> ExportSettings:
    return export_settings_from(read_settings(session))


def export_settings_from(values: dict[str, str]) -> ExportSettings:
    timezone_name = values.get("timezone") or SETTING_DEFAULTS["timezone"]
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Invalid timezone setting: {timezone_name}") from exc

    default_title = (values.get("default_title") or "").strip() or SETTING_DEFAULTS["default_title"]
    return ExportSettings(
        timezone_name=timezone_name,
        default_title=default_title,
        calendar_targets=tuple(parse_calendar_targets(values.get("calendar_targets"))),
    )


def _canonical_value(key: str, value: str) -> str:
    if key == "calendar_targets":
        return ",".join(target.value for target in parse_calendar_targets(value))
    return value.strip()

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich import print
from sqlmodel import Session

from event_calendar_cli.calendar_link import CalendarTarget, build_google_calendar_url
from event_calendar_cli.config import (
    ExportSettings,
    load_export_settings,
    read_settings,
    save_setting,
    seed_missing_settings,
)
from event_calendar_cli.db import prepare_database, resolve_db_path
from event_calendar_cli.event_range import AllDayRange, resolve_event_range
from event_calendar_cli.ics import build_ics, sanitize_file_name
from event_calendar_cli.ingest.extractor import EventExtractionError, format_event_text, parse_event_payload
from event_calendar_cli.ingest.types import EventDetails

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="evcal",
    help="Turn loosely formatted event dates into calendar files and links.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Manage export settings.")
event_app = typer.Typer(help="Resolve and export extracted events.")
app.add_typer(config_app, name="config")
app.add_typer(event_app, name="event")

_PAYLOAD_OPTION = typer.Option(None, "--payload", help="File with an extraction JSON response ('-' for stdin).")
_START_OPTION = typer.Option(None, "--start", help="Start date or datetime, loosely formatted.")
_END_OPTION = typer.Option(None, "--end", help="End date or datetime, loosely formatted.")
_ALL_DAY_OPTION = typer.Option(False, "--all-day", help="Treat the event as all-day.")
_TITLE_OPTION = typer.Option("", "--title", help="Event title.")
_LOCATION_OPTION = typer.Option(None, "--location", help="Event location.")
_DESCRIPTION_OPTION = typer.Option(None, "--description", help="Event description.")


def _load_export_settings() -> ExportSettings:
    with Session(prepare_database()) as session:
        try:
            return load_export_settings(session)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc


def _read_payload(path: Path) -> str:
    if str(path) == "-":
        return typer.get_text_stream("stdin").read()
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(f"Cannot read --payload file: {path}") from exc


def _event_from_options(
    settings: ExportSettings,
    *,
    payload: Path | None,
    start: str | None,
    end: str | None,
    all_day: bool,
    title: str,
    location: str | None,
    description: str | None,
) -> EventDetails:
    if payload is not None:
        try:
            return parse_event_payload(
                _read_payload(payload), default_title=settings.default_title, tz=settings.timezone
            )
        except EventExtractionError as exc:
            print(f"[red]Event extraction failed:[/red] {exc}")
            raise typer.Exit(code=1) from exc

    if start is None or not start.strip():
        raise typer.BadParameter("Either --payload or a non-empty --start is required.")
    return EventDetails(
        title=title,
        start=start,
        end=end,
        all_day=True if all_day else None,
        location=location,
        description=description,
    )


def _fail_unresolved(event: EventDetails) -> NoReturn:
    print("[red]Could not resolve event time.[/red] No calendar entry can be created.")
    typer.echo(f"start: {event.start}")
    if event.end:
        typer.echo(f"end: {event.end}")
    raise typer.Exit(code=1)


def _write_ics(event: EventDetails, ics: str, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / f"{sanitize_file_name(event.title or 'event')}.ics"
    target.write_bytes(ics.encode("utf-8"))
    logger.info("ics_written path=%s bytes=%s", target, target.stat().st_size)
    return target


@app.callback()
def root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Event calendar export CLI entrypoint."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s %(message)s")


@app.command()
def init() -> None:
    """Initialize DB, run migrations, and seed defaults."""
    with Session(prepare_database()) as session:
        seeded = seed_missing_settings(session)
    print(f"[green]Initialized database:[/green] {resolve_db_path()}")
    if seeded:
        typer.echo(f"Seeded defaults: {', '.join(seeded)}")


@config_app.command("show")
def config_show() -> None:
    """Print all settings as key=value, sorted by key."""
    with Session(prepare_database()) as session:
        settings = read_settings(session)

    for key, value in settings.items():
        typer.echo(f"{key}={value}")


@config_app.command("set")
def config_set(key: str, value: str) -> None:
    """Validate and upsert a setting."""
    with Session(prepare_database()) as session:
        try:
            stored = save_setting(session, key=key, value=value)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    typer.echo(f"{key}={stored}")


@event_app.command("resolve")
def event_resolve(
    start: str = typer.Option(..., "--start", help="Start date or datetime, loosely formatted."),
    end: str | None = _END_OPTION,
    all_day: bool = _ALL_DAY_OPTION,
) -> None:
    """Print the canonical range for the given start/end."""
    settings = _load_export_settings()
    date_range = resolve_event_range(start, end, True if all_day else None, tz=settings.timezone)
    if date_range is None:
        _fail_unresolved(EventDetails(title="", start=start, end=end))

    if isinstance(date_range, AllDayRange):
        typer.echo(f"all_day start={date_range.start_yyyymmdd} end={date_range.end_yyyymmdd_exclusive}")
    else:
        typer.echo(f"timed start={date_range.start_utc} end={date_range.end_utc}")


@event_app.command("ics")
def event_ics(
    payload: Path | None = _PAYLOAD_OPTION,
    start: str | None = _START_OPTION,
    end: str | None = _END_OPTION,
    all_day: bool = _ALL_DAY_OPTION,
    title: str = _TITLE_OPTION,
    location: str | None = _LOCATION_OPTION,
    description: str | None = _DESCRIPTION_OPTION,
    output_dir: Path = typer.Option(Path("."), "--output-dir", help="Directory for the .ics file."),
    stdout: bool = typer.Option(False, "--stdout", help="Write the calendar document to stdout."),
) -> None:
    """Build an RFC 5545 calendar file for one event."""
    settings = _load_export_settings()
    event = _event_from_options(
        settings,
        payload=payload,
        start=start,
        end=end,
        all_day=all_day,
        title=title,
        location=location,
        description=description,
    )
    ics = build_ics(event, tz=settings.timezone, default_title=settings.default_title)
    if ics is None:
        _fail_unresolved(event)

    if stdout:
        typer.echo(ics, nl=False)
        return

    path = _write_ics(event, ics, output_dir)
    print(f"[green]Wrote calendar file:[/green] {path}")


@event_app.command("link")
def event_link(
    payload: Path | None = _PAYLOAD_OPTION,
    start: str | None = _START_OPTION,
    end: str | None = _END_OPTION,
    all_day: bool = _ALL_DAY_OPTION,
    title: str = _TITLE_OPTION,
    location: str | None = _LOCATION_OPTION,
    description: str | None = _DESCRIPTION_OPTION,
) -> None:
    """Print a Google Calendar link for one event."""
    settings = _load_export_settings()
    event = _event_from_options(
        settings,
        payload=payload,
        start=start,
        end=end,
        all_day=all_day,
        title=title,
        location=location,
        description=description,
    )
    url = build_google_calendar_url(event, tz=settings.timezone, default_title=settings.default_title)
    if url is None:
        _fail_unresolved(event)
    typer.echo(url)


@event_app.command("export")
def event_export(
    payload: Path = typer.Option(..., "--payload", help="File with an extraction JSON response ('-' for stdin)."),
    output_dir: Path = typer.Option(Path("."), "--output-dir", help="Directory for the .ics file."),
) -> None:
    """Summarize an extracted event and export it to every enabled calendar target."""
    settings = _load_export_settings()
    event = _event_from_options(
        settings,
        payload=payload,
        start=None,
        end=None,
        all_day=False,
        title="",
        location=None,
        description=None,
    )
    typer.echo(format_event_text(event))

    if not settings.calendar_targets:
        print("[yellow]No calendar targets enabled.[/yellow] Set one via: evcal config set calendar_targets google,ics")
        return

    url = build_google_calendar_url(event, tz=settings.timezone, default_title=settings.default_title)
    if url is None:
        _fail_unresolved(event)

    if CalendarTarget.GOOGLE in settings.calendar_targets:
        typer.echo(f"google: {url}")

    if CalendarTarget.ICS in settings.calendar_targets:
        ics = build_ics(event, tz=settings.timezone, default_title=settings.default_title)
        if ics is None:
            _fail_unresolved(event)
        path = _write_ics(event, ics, output_dir)
        print(f"[green]Wrote calendar file:[/green] {path}")

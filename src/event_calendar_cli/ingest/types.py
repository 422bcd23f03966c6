from __future__ import annotations

from dataclasses import dataclass

DEFAULT_EVENT_TITLE = "予定"


@dataclass(frozen=True)
class EventDetails:
    """Event fields as extracted from page text; every value is untrusted."""

    title: str
    start: str
    end: str | None = None
    all_day: bool | None = None
    location: str | None = None
    description: str | None = None

    def display_title(self, default_title: str = DEFAULT_EVENT_TITLE) -> str:
        # Only blankness is judged on the trimmed value; the text itself is kept.
        if not (self.title or "").strip():
            return default_title
        return self.title

    def location_text(self) -> str:
        return (self.location or "").strip()

    def description_text(self) -> str:
        return (self.description or "").strip()

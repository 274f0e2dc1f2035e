"""iCalendar VEVENT <-> CalendarEvent mapping.

Rules
- Parsing keeps a VEVENT only when UID, SUMMARY, DTSTART and DTEND are all non-empty;
  incomplete events are skipped, never raised.
- STATUS is kept only for CONFIRMED/TENTATIVE/CANCELLED.
- Serialization is a fixed template; optional properties are omitted when unset and
  STATUS defaults to CONFIRMED.

Public API
- parse_icalendar(text: str) -> list[CalendarEvent]
- event_to_ical(event: CalendarEvent, *, now: datetime | None = None) -> str
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from ..models import EVENT_STATUSES, CalendarEvent
from .lines import scan_records

__all__ = ["PRODID", "event_to_ical", "format_utc", "parse_icalendar"]

log = logging.getLogger(__name__)


PRODID = "-//davtools//CalDAV Client//EN"

_EVENT_FIELDS = {
    "UID": "uid",
    "SUMMARY": "summary",
    "DTSTART": "start",
    "DTEND": "end",
    "DESCRIPTION": "description",
    "LOCATION": "location",
    "STATUS": "status",
}
_REQUIRED = ("uid", "summary", "start", "end")


def format_utc(value: datetime) -> str:
    """Render `value` as an iCalendar UTC timestamp (YYYYMMDDTHHMMSSZ).

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y%m%dT%H%M%SZ")


def parse_icalendar(text: str) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    for fields in scan_records(text, "VEVENT", _EVENT_FIELDS):
        if not all(fields.get(k) for k in _REQUIRED):
            log.debug("ical-skip-incomplete uid=%s", fields.get("uid"))
            continue
        status = fields.pop("status", None)
        events.append(
            CalendarEvent(
                **fields,
                status=status if status in EVENT_STATUSES else None,  # type: ignore[arg-type]
            )
        )
    return events


def event_to_ical(event: CalendarEvent, *, now: datetime | None = None) -> str:
    stamp = format_utc(now or datetime.now(UTC))
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "BEGIN:VEVENT",
        f"UID:{event.uid}",
        f"DTSTAMP:{stamp}",
        f"DTSTART:{event.start}",
        f"DTEND:{event.end}",
        f"SUMMARY:{event.summary}",
    ]
    if event.description:
        lines.append(f"DESCRIPTION:{event.description}")
    if event.location:
        lines.append(f"LOCATION:{event.location}")
    lines.append(f"STATUS:{event.status or 'CONFIRMED'}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines) + "\r\n"

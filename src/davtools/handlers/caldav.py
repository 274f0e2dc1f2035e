"""CalDAV handler.

Operations
- list_calendars(path="/calendars/") -> list[Collection]
- get_calendar_events(calendar_path, start=None, end=None) -> list[CalendarEvent]
- create_event(calendar_path, event) -> str  (path of the new <uid>.ics resource)
- delete_event(event_path) -> None

Notes
- Calendars are recognised by a `calendar` resourcetype, or by "calendar" in the
  content type; this is a heuristic, not full resourcetype resolution.
- A time-range filter is only sent when both bounds are given.

Security
- Do not log full ICS content; keep logs minimal.
"""

from __future__ import annotations

from datetime import datetime
from xml.sax.saxutils import quoteattr

import httpx

from ..config import ServerConfig
from ..dav.multistatus import parse_calendar_data
from ..mapping.events import event_to_ical, format_utc
from ..models import CalendarEvent, Collection, DavResource
from .base import DavHandler, item_path

__all__ = ["CalDAVHandler", "new_caldav_handler"]


_PROPFIND_CALENDARS = """<?xml version="1.0" encoding="utf-8" ?>
<d:propfind xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:caldav" xmlns:cs="http://calendarserver.org/ns/">
  <d:prop>
    <d:displayname />
    <d:resourcetype />
    <c:calendar-description />
    <c:supported-calendar-component-set />
  </d:prop>
</d:propfind>"""

_CALENDAR_QUERY = """<?xml version="1.0" encoding="utf-8" ?>
<c:calendar-query xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:caldav">
  <d:prop>
    <d:getetag />
    <c:calendar-data />
  </d:prop>
  <c:filter>
    <c:comp-filter name="VCALENDAR">
      <c:comp-filter name="VEVENT">
        {time_range}
      </c:comp-filter>
    </c:comp-filter>
  </c:filter>
</c:calendar-query>"""


def _bound(value: str | datetime) -> str:
    return format_utc(value) if isinstance(value, datetime) else value


def calendar_query_body(
    start: str | datetime | None = None,
    end: str | datetime | None = None,
) -> str:
    time_range = ""
    if start and end:
        time_range = (
            f"<c:time-range start={quoteattr(_bound(start))} end={quoteattr(_bound(end))}/>"
        )
    return _CALENDAR_QUERY.format(time_range=time_range)


def is_calendar(resource: DavResource) -> bool:
    return "calendar" in resource.resource_types or "calendar" in resource.content_type


class CalDAVHandler(DavHandler):
    def list_calendars(self, path: str = "/calendars/") -> list[Collection]:
        return self._discover(path, _PROPFIND_CALENDARS, "list calendars", is_calendar)

    def get_calendar_events(
        self,
        calendar_path: str,
        start: str | datetime | None = None,
        end: str | datetime | None = None,
    ) -> list[CalendarEvent]:
        return self._query(
            calendar_path,
            calendar_query_body(start, end),
            "get calendar events",
            parse_calendar_data,
        )

    def create_event(self, calendar_path: str, event: CalendarEvent) -> str:
        return self._put(
            item_path(calendar_path, event.uid, "ics"),
            event_to_ical(event),
            "text/calendar; charset=utf-8",
            "create event",
        )

    def delete_event(self, event_path: str) -> None:
        self._delete(event_path, "delete event")


def new_caldav_handler(
    config: ServerConfig,
    *,
    client: httpx.Client | None = None,
    timeout: float = 30.0,
    verify: bool | str = True,
) -> CalDAVHandler:
    return CalDAVHandler(config, client=client, timeout=timeout, verify=verify)

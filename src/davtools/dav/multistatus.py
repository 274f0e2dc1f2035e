"""Pure functions for parsing WebDAV/CalDAV/CardDAV multistatus bodies.

XML text in, structured records out; no I/O. Elements are looked up by their
namespace-qualified name first and by their bare local name second, so bodies
from servers that omit namespace declarations still parse.

- Malformed XML raises ParseError.
- Well-formed XML without a multistatus root yields no resources.
- A response entry without href or propstat contributes nothing.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from xml.etree import ElementTree as ET

from ..errors import ParseError
from ..mapping.contacts import parse_vcard
from ..mapping.events import parse_icalendar
from ..models import CalendarEvent, Contact, DavResource

__all__ = [
    "CALDAV_NS",
    "CARDDAV_NS",
    "CS_NS",
    "DAV_NS",
    "lookup_all",
    "lookup_any",
    "parse_address_data",
    "parse_calendar_data",
    "parse_multistatus",
]


DAV_NS = "DAV:"
CALDAV_NS = "urn:ietf:params:xml:ns:caldav"
CARDDAV_NS = "urn:ietf:params:xml:ns:carddav"
CS_NS = "http://calendarserver.org/ns/"


def _names(ns: str, local: str) -> tuple[str, str]:
    return f"{{{ns}}}{local}", local


MULTISTATUS = _names(DAV_NS, "multistatus")
RESPONSE = _names(DAV_NS, "response")
HREF = _names(DAV_NS, "href")
PROPSTAT = _names(DAV_NS, "propstat")
PROP = _names(DAV_NS, "prop")
GETETAG = _names(DAV_NS, "getetag")
GETCONTENTTYPE = _names(DAV_NS, "getcontenttype")
GETLASTMODIFIED = _names(DAV_NS, "getlastmodified")
DISPLAYNAME = _names(DAV_NS, "displayname")
RESOURCETYPE = _names(DAV_NS, "resourcetype")
CALENDAR_DATA = _names(CALDAV_NS, "calendar-data")
ADDRESS_DATA = _names(CARDDAV_NS, "address-data")
DESCRIPTION = (
    *_names(CALDAV_NS, "calendar-description"),
    *_names(CARDDAV_NS, "addressbook-description"),
)


def lookup_any(node: ET.Element, candidates: Sequence[str]) -> ET.Element | None:
    """Return the first direct child matching any of `candidates`, in order."""
    for name in candidates:
        found = node.find(name)
        if found is not None:
            return found
    return None


def lookup_all(node: ET.Element, candidates: Sequence[str]) -> list[ET.Element]:
    for name in candidates:
        found = node.findall(name)
        if found:
            return found
    return []


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _text(node: ET.Element | None) -> str | None:
    if node is None:
        return None
    value = "".join(node.itertext()).strip()
    return value or None


def _parse_xml(xml: str) -> ET.Element:
    try:
        return ET.fromstring(xml)
    except ET.ParseError as exc:
        raise ParseError(f"Failed to parse multistatus response: {exc}") from exc


def _iter_props(root: ET.Element) -> Iterator[tuple[str, ET.Element]]:
    """Yield (href, prop) of the first propstat for each usable response entry."""
    if root.tag in MULTISTATUS:
        multistatus: ET.Element | None = root
    else:
        multistatus = lookup_any(root, MULTISTATUS)
    if multistatus is None:
        return

    for response in lookup_all(multistatus, RESPONSE):
        href = _text(lookup_any(response, HREF))
        propstat = lookup_any(response, PROPSTAT)
        if not href or propstat is None:
            continue
        prop = lookup_any(propstat, PROP)
        if prop is None:
            prop = ET.Element(PROP[0])
        yield href, prop


def _resource(href: str, prop: ET.Element) -> DavResource:
    resourcetype = lookup_any(prop, RESOURCETYPE)
    types: tuple[str, ...] = ()
    if resourcetype is not None:
        types = tuple(_local_name(child.tag) for child in resourcetype)
    data = lookup_any(prop, (*CALENDAR_DATA, *ADDRESS_DATA))
    return DavResource(
        href=href,
        etag=_text(lookup_any(prop, GETETAG)),
        content_type=_text(lookup_any(prop, GETCONTENTTYPE)) or "unknown",
        last_modified=_text(lookup_any(prop, GETLASTMODIFIED)),
        display_name=_text(lookup_any(prop, DISPLAYNAME)),
        description=_text(lookup_any(prop, DESCRIPTION)),
        resource_types=types,
        data=_text(data),
    )


def parse_multistatus(xml: str) -> list[DavResource]:
    """Parse a multistatus body into one DavResource per response entry."""
    root = _parse_xml(xml)
    return [_resource(href, prop) for href, prop in _iter_props(root)]


def _embedded(xml: str, candidates: Sequence[str]) -> Iterable[str]:
    root = _parse_xml(xml)
    for _href, prop in _iter_props(root):
        payload = _text(lookup_any(prop, candidates))
        if payload:
            yield payload


def parse_calendar_data(xml: str) -> list[CalendarEvent]:
    """Events from every calendar-data payload, in document order."""
    events: list[CalendarEvent] = []
    for payload in _embedded(xml, CALENDAR_DATA):
        events.extend(parse_icalendar(payload))
    return events


def parse_address_data(xml: str) -> list[Contact]:
    """Contacts from every address-data payload, in document order."""
    contacts: list[Contact] = []
    for payload in _embedded(xml, ADDRESS_DATA):
        contacts.extend(parse_vcard(payload))
    return contacts

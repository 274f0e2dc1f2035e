from xml.etree import ElementTree as ET

import pytest

from davtools.dav.multistatus import (
    lookup_any,
    parse_address_data,
    parse_calendar_data,
    parse_multistatus,
)
from davtools.errors import ParseError

PROPFIND_XML = """<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:caldav">
  <d:response>
    <d:href>/calendars/user/personal/</d:href>
    <d:propstat>
      <d:prop>
        <d:displayname>Personal</d:displayname>
        <d:resourcetype><d:collection/><c:calendar/></d:resourcetype>
        <c:calendar-description>My calendar</c:calendar-description>
        <d:getetag>"abc123"</d:getetag>
        <d:getcontenttype>text/calendar</d:getcontenttype>
        <d:getlastmodified>Fri, 01 Dec 2023 10:00:00 GMT</d:getlastmodified>
      </d:prop>
      <d:status>HTTP/1.1 200 OK</d:status>
    </d:propstat>
  </d:response>
</d:multistatus>"""


def _calendar_report(*payloads: str) -> str:
    entries = "".join(
        f"""
  <d:response>
    <d:href>/calendars/user/personal/e{i}.ics</d:href>
    <d:propstat>
      <d:prop>
        <d:getetag>"etag-{i}"</d:getetag>
        <c:calendar-data>{payload}</c:calendar-data>
      </d:prop>
    </d:propstat>
  </d:response>"""
        for i, payload in enumerate(payloads)
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<d:multistatus xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:caldav">'
        f"{entries}\n</d:multistatus>"
    )


def _vevent(uid: str, summary: str) -> str:
    return "\n".join(
        [
            "BEGIN:VCALENDAR",
            "BEGIN:VEVENT",
            f"UID:{uid}",
            f"SUMMARY:{summary}",
            "DTSTART:20231201T100000Z",
            "DTEND:20231201T110000Z",
            "END:VEVENT",
            "END:VCALENDAR",
        ]
    )


class TestParseMultistatus:
    def test_single_response(self):
        (resource,) = parse_multistatus(PROPFIND_XML)

        assert resource.href == "/calendars/user/personal/"
        assert resource.etag == '"abc123"'
        assert resource.content_type == "text/calendar"
        assert resource.last_modified == "Fri, 01 Dec 2023 10:00:00 GMT"
        assert resource.display_name == "Personal"
        assert resource.description == "My calendar"
        assert resource.resource_types == ("collection", "calendar")

    def test_content_type_defaults_to_unknown(self):
        xml = """<d:multistatus xmlns:d="DAV:">
  <d:response><d:href>/a</d:href><d:propstat><d:prop/></d:propstat></d:response>
</d:multistatus>"""
        (resource,) = parse_multistatus(xml)
        assert resource.content_type == "unknown"
        assert resource.etag is None

    def test_multiple_responses_in_order(self):
        xml = """<d:multistatus xmlns:d="DAV:">
  <d:response><d:href>/one</d:href><d:propstat><d:prop/></d:propstat></d:response>
  <d:response><d:href>/two</d:href><d:propstat><d:prop/></d:propstat></d:response>
</d:multistatus>"""
        assert [r.href for r in parse_multistatus(xml)] == ["/one", "/two"]

    def test_entries_without_href_or_propstat_skipped(self):
        xml = """<d:multistatus xmlns:d="DAV:">
  <d:response><d:propstat><d:prop/></d:propstat></d:response>
  <d:response><d:href>/no-propstat</d:href><d:status>HTTP/1.1 404 Not Found</d:status></d:response>
  <d:response><d:href>/kept</d:href><d:propstat><d:prop/></d:propstat></d:response>
</d:multistatus>"""
        assert [r.href for r in parse_multistatus(xml)] == ["/kept"]

    def test_first_propstat_wins(self):
        xml = """<d:multistatus xmlns:d="DAV:">
  <d:response>
    <d:href>/a</d:href>
    <d:propstat><d:prop><d:getetag>"first"</d:getetag></d:prop></d:propstat>
    <d:propstat><d:prop><d:getetag>"second"</d:getetag></d:prop></d:propstat>
  </d:response>
</d:multistatus>"""
        assert parse_multistatus(xml)[0].etag == '"first"'

    def test_bare_element_names(self):
        xml = """<multistatus>
  <response>
    <href>/bare</href>
    <propstat><prop><getetag>"e"</getetag><getcontenttype>text/vcard</getcontenttype></prop></propstat>
  </response>
</multistatus>"""
        (resource,) = parse_multistatus(xml)
        assert resource.href == "/bare"
        assert resource.etag == '"e"'
        assert resource.content_type == "text/vcard"

    def test_other_prefix_spelling(self):
        xml = PROPFIND_XML.replace("d:", "D:").replace("xmlns:d=", "xmlns:D=")
        (resource,) = parse_multistatus(xml)
        assert resource.href == "/calendars/user/personal/"

    def test_non_multistatus_document_is_empty(self):
        assert parse_multistatus('<d:error xmlns:d="DAV:"><d:forbidden/></d:error>') == []

    def test_empty_multistatus(self):
        assert parse_multistatus('<d:multistatus xmlns:d="DAV:"/>') == []

    def test_malformed_xml_raises(self):
        with pytest.raises(ParseError, match="Failed to parse multistatus"):
            parse_multistatus("<d:multistatus xmlns:d='DAV:'><d:response>")

    def test_embedded_data_captured(self):
        xml = _calendar_report(_vevent("u1", "One"))
        (resource,) = parse_multistatus(xml)
        assert resource.data is not None
        assert "UID:u1" in resource.data


class TestParseCalendarData:
    def test_two_responses(self):
        xml = _calendar_report(_vevent("u1", "One"), _vevent("u2", "Two: the sequel"))

        events = parse_calendar_data(xml)

        assert [(e.uid, e.summary) for e in events] == [("u1", "One"), ("u2", "Two: the sequel")]
        assert all(e.start == "20231201T100000Z" for e in events)

    def test_cdata_payload(self):
        xml = _calendar_report(f"<![CDATA[{_vevent('u1', 'A & B')}]]>")
        (event,) = parse_calendar_data(xml)
        assert event.summary == "A & B"

    def test_bare_calendar_data(self):
        xml = (
            "<multistatus><response><href>/e.ics</href><propstat><prop>"
            f"<calendar-data>{_vevent('u1', 'Bare')}</calendar-data>"
            "</prop></propstat></response></multistatus>"
        )
        assert [e.uid for e in parse_calendar_data(xml)] == ["u1"]

    def test_incomplete_events_dropped(self):
        broken = _vevent("u1", "One").replace("SUMMARY:One\n", "")
        xml = _calendar_report(broken, _vevent("u2", "Two"))
        assert [e.uid for e in parse_calendar_data(xml)] == ["u2"]

    def test_no_entries(self):
        assert parse_calendar_data(_calendar_report()) == []

    def test_malformed_xml_raises(self):
        with pytest.raises(ParseError):
            parse_calendar_data("not xml at all")


class TestParseAddressData:
    def test_contacts_from_entries(self):
        vcard = "BEGIN:VCARD\nVERSION:3.0\nUID:c1\nFN:Alice\nEMAIL:alice@example.com\nEND:VCARD"
        xml = f"""<d:multistatus xmlns:d="DAV:" xmlns:card="urn:ietf:params:xml:ns:carddav">
  <d:response>
    <d:href>/addressbooks/user/contacts/c1.vcf</d:href>
    <d:propstat><d:prop><card:address-data>{vcard}</card:address-data></d:prop></d:propstat>
  </d:response>
</d:multistatus>"""

        (contact,) = parse_address_data(xml)

        assert contact.uid == "c1"
        assert contact.fn == "Alice"
        assert contact.email == "alice@example.com"


def test_lookup_any_prefers_first_candidate():
    node = ET.fromstring('<p xmlns:d="DAV:"><href>bare</href><d:href>qualified</d:href></p>')
    assert lookup_any(node, ("{DAV:}href", "href")).text == "qualified"
    assert lookup_any(node, ("href", "{DAV:}href")).text == "bare"
    assert lookup_any(node, ("missing",)) is None

"""CardDAV handler.

Operations
- list_address_books(path="/addressbooks/") -> list[Collection]
- get_contacts(address_book_path) -> list[Contact]
- search_contacts(address_book_path, query) -> list[Contact]  (case-insensitive FN match)
- create_contact(address_book_path, contact) -> str  (path of the new <uid>.vcf resource)
- delete_contact(contact_path) -> None

Security
- Do not log full vCard content; mask emails/phones when logging snippets.
"""

from __future__ import annotations

from xml.sax.saxutils import escape

import httpx

from ..config import ServerConfig
from ..dav.multistatus import parse_address_data
from ..mapping.contacts import contact_to_vcard
from ..models import Collection, Contact, DavResource
from .base import DavHandler, item_path

__all__ = ["CardDAVHandler", "new_carddav_handler"]


_PROPFIND_ADDRESS_BOOKS = """<?xml version="1.0" encoding="utf-8" ?>
<d:propfind xmlns:d="DAV:" xmlns:card="urn:ietf:params:xml:ns:carddav">
  <d:prop>
    <d:displayname />
    <d:resourcetype />
    <card:addressbook-description />
    <card:supported-address-data />
  </d:prop>
</d:propfind>"""

_ADDRESSBOOK_QUERY = """<?xml version="1.0" encoding="utf-8" ?>
<card:addressbook-query xmlns:d="DAV:" xmlns:card="urn:ietf:params:xml:ns:carddav">
  <d:prop>
    <d:getetag />
    <card:address-data />
  </d:prop>
  <card:filter>
    <card:prop-filter name="FN">
      {text_match}
    </card:prop-filter>
  </card:filter>
</card:addressbook-query>"""


def addressbook_query_body(query: str | None = None) -> str:
    text_match = ""
    if query:
        text_match = f'<card:text-match collation="i;unicode-casemap">{escape(query)}</card:text-match>'
    return _ADDRESSBOOK_QUERY.format(text_match=text_match)


def is_address_book(resource: DavResource) -> bool:
    return (
        "addressbook" in resource.resource_types
        or "addressbook" in resource.content_type
        or "addressbook" in resource.href
    )


class CardDAVHandler(DavHandler):
    def list_address_books(self, path: str = "/addressbooks/") -> list[Collection]:
        return self._discover(path, _PROPFIND_ADDRESS_BOOKS, "list address books", is_address_book)

    def get_contacts(self, address_book_path: str) -> list[Contact]:
        return self._query(
            address_book_path, addressbook_query_body(), "get contacts", parse_address_data
        )

    def search_contacts(self, address_book_path: str, query: str) -> list[Contact]:
        return self._query(
            address_book_path, addressbook_query_body(query), "search contacts", parse_address_data
        )

    def create_contact(self, address_book_path: str, contact: Contact) -> str:
        return self._put(
            item_path(address_book_path, contact.uid, "vcf"),
            contact_to_vcard(contact),
            "text/vcard; charset=utf-8",
            "create contact",
        )

    def delete_contact(self, contact_path: str) -> None:
        self._delete(contact_path, "delete contact")


def new_carddav_handler(
    config: ServerConfig,
    *,
    client: httpx.Client | None = None,
    timeout: float = 30.0,
    verify: bool | str = True,
) -> CardDAVHandler:
    return CardDAVHandler(config, client=client, timeout=timeout, verify=verify)

"""vCard <-> Contact mapping.

Key rules
- A VCARD is kept only when UID and FN are non-empty.
- EMAIL/TEL/ORG map to email/phone/organization; the last occurrence wins.
- Serialization emits vCard 3.0 with optional lines omitted when unset.
- Do not log raw contact fields; callers should redact when logging.
"""

from __future__ import annotations

import logging

from ..models import Contact
from .lines import scan_records

__all__ = ["contact_to_vcard", "parse_vcard"]

log = logging.getLogger(__name__)


_CONTACT_FIELDS = {
    "UID": "uid",
    "FN": "fn",
    "EMAIL": "email",
    "TEL": "phone",
    "ORG": "organization",
}


def parse_vcard(text: str) -> list[Contact]:
    contacts: list[Contact] = []
    for fields in scan_records(text, "VCARD", _CONTACT_FIELDS):
        if not (fields.get("uid") and fields.get("fn")):
            log.debug("vcard-skip-incomplete uid=%s", fields.get("uid"))
            continue
        contacts.append(Contact(**fields))
    return contacts


def contact_to_vcard(contact: Contact) -> str:
    lines = [
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"UID:{contact.uid}",
        f"FN:{contact.fn}",
    ]
    if contact.email:
        lines.append(f"EMAIL:{contact.email}")
    if contact.phone:
        lines.append(f"TEL:{contact.phone}")
    if contact.organization:
        lines.append(f"ORG:{contact.organization}")
    lines.append("END:VCARD")
    return "\r\n".join(lines) + "\r\n"

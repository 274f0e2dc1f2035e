"""Value objects exchanged between the DAV client, parsers and handlers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

__all__ = [
    "EVENT_STATUSES",
    "CalendarEvent",
    "Collection",
    "Contact",
    "DavRequest",
    "DavResource",
    "DavResponse",
    "Depth",
    "EventStatus",
]


Depth = Literal["0", "1", "infinity"]
EventStatus = Literal["CONFIRMED", "TENTATIVE", "CANCELLED"]

EVENT_STATUSES: frozenset[str] = frozenset({"CONFIRMED", "TENTATIVE", "CANCELLED"})
_DEPTHS = frozenset({"0", "1", "infinity"})


@dataclass(frozen=True)
class DavRequest:
    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str | None = None
    depth: Depth | None = None

    def __post_init__(self) -> None:
        if not self.method:
            raise ValueError("DavRequest.method must not be empty")
        object.__setattr__(self, "method", self.method.upper())
        if self.depth is not None and self.depth not in _DEPTHS:
            raise ValueError(f"depth must be one of {sorted(_DEPTHS)}, got {self.depth!r}")


@dataclass(frozen=True)
class DavResponse:
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str = ""
    status_text: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_multistatus(self) -> bool:
        return self.status == 207


@dataclass(frozen=True)
class DavResource:
    href: str
    etag: str | None = None
    content_type: str = "unknown"
    last_modified: str | None = None
    display_name: str | None = None
    description: str | None = None
    resource_types: tuple[str, ...] = ()
    data: str | None = None


@dataclass(frozen=True)
class CalendarEvent:
    uid: str
    summary: str
    start: str
    end: str
    description: str | None = None
    location: str | None = None
    status: EventStatus | None = None


@dataclass(frozen=True)
class Contact:
    uid: str
    fn: str
    email: str | None = None
    phone: str | None = None
    organization: str | None = None


@dataclass(frozen=True)
class Collection:
    """A calendar or address book discovered on the server."""

    name: str
    href: str
    description: str | None = None

"""Error taxonomy for DAV operations.

- ConfigurationError: bad or incomplete server configuration (raised before any I/O)
- UnsupportedAuthentication: digest auth requested
- TransportError: DNS/connect/timeout failures reported by httpx
- ProtocolStatusError: unexpected status for a DAV operation
- ParseError: malformed multistatus XML
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "DavError",
    "ParseError",
    "ProtocolStatusError",
    "TransportError",
    "UnsupportedAuthentication",
]


class DavError(RuntimeError):
    pass


class ConfigurationError(DavError, ValueError):
    pass


class UnsupportedAuthentication(DavError):
    pass


class TransportError(DavError):
    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"DAV request failed ({operation}): {message}")
        self.operation = operation


class ProtocolStatusError(DavError):
    def __init__(self, operation: str, status: int) -> None:
        super().__init__(f"Failed to {operation}: {status}")
        self.operation = operation
        self.status = status


class ParseError(DavError):
    pass

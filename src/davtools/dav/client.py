"""DAV request builder/executor.

One core (`DavClient`) turns a DavRequest into an httpx call and normalizes the
reply into a DavResponse. Status handling is a policy chosen per call:

- MULTISTATUS: only 207 is accepted (PROPFIND/REPORT)
- SUCCESS: any 2xx is accepted (PUT/DELETE)
- ANY: every status is returned verbatim (raw forwarding)

`WebDAVClient` is the raw-forwarding façade over the same core.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType

import httpx

from ..config import ServerConfig
from ..errors import ProtocolStatusError, TransportError
from ..models import DavRequest, DavResponse
from ..utils.http import create_client, send
from .auth import build_auth_headers

__all__ = [
    "ANY",
    "MULTISTATUS",
    "SUCCESS",
    "DavClient",
    "StatusPolicy",
    "WebDAVClient",
    "join_url",
    "new_webdav_client",
]


log = logging.getLogger(__name__)


XML_CONTENT_TYPE = "application/xml; charset=utf-8"

_PROBE_BODY = """<?xml version="1.0" encoding="utf-8" ?>
<d:propfind xmlns:d="DAV:">
  <d:prop>
    <d:displayname />
    <d:resourcetype />
  </d:prop>
</d:propfind>"""


@dataclass(frozen=True)
class StatusPolicy:
    name: str
    accepts: Callable[[int], bool]

    def check(self, response: DavResponse, operation: str) -> DavResponse:
        if not self.accepts(response.status):
            raise ProtocolStatusError(operation, response.status)
        return response


MULTISTATUS = StatusPolicy("multistatus", lambda status: status == 207)
SUCCESS = StatusPolicy("success", lambda status: 200 <= status < 300)
ANY = StatusPolicy("any", lambda status: True)


def join_url(base_url: str, path: str) -> str:
    """Join base URL and path with exactly one slash between them.

    Absolute http(s) URLs (as some servers return in hrefs) are used unchanged.
    """
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class DavClient:
    def __init__(
        self,
        config: ServerConfig,
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        verify: bool | str = True,
    ) -> None:
        """Bind a DAV client to one server.

        Args:
            config: validated ServerConfig
            client: pre-built httpx client (tests, shared pools); created when omitted
            timeout: request timeout in seconds for a created client
            verify: TLS verification flag or CA bundle path for a created client
        """
        self.config = config
        self._owns_client = client is None
        self.client = client or create_client(timeout=timeout, verify=verify)

    def build_url(self, path: str) -> str:
        return join_url(self.config.base_url, path)

    def build_headers(self, request: DavRequest) -> httpx.Headers:
        # Caller-supplied headers win over auth headers, whatever their case
        headers = httpx.Headers(build_auth_headers(self.config))
        headers.update(request.headers)
        if request.method == "PROPFIND" and request.depth:
            headers["Depth"] = request.depth
        return headers

    def execute(
        self,
        request: DavRequest,
        *,
        operation: str | None = None,
        policy: StatusPolicy = ANY,
    ) -> DavResponse:
        """Send `request` and return the normalized response.

        Raises UnsupportedAuthentication before any I/O for digest configs,
        TransportError on network failures and ProtocolStatusError when
        `policy` rejects the status.
        """
        op = operation or f"{request.method} {request.path}"
        try:
            headers = self.build_headers(request)
        except UnicodeEncodeError as exc:
            raise TransportError(op, f"header value is not ASCII: {exc}") from exc
        url = self.build_url(request.path)
        resp = send(self.client, request.method, url, headers=headers, body=request.body, operation=op)
        response = DavResponse(
            status=resp.status_code,
            status_text=resp.reason_phrase or None,
            headers=dict(resp.headers),
            body=resp.text or "",
        )
        return policy.check(response, op)

    def probe(self, request: DavRequest) -> bool:
        try:
            response = self.execute(request, operation="test connection")
        except Exception as exc:
            # Any failure, typed or not, means "not connected"
            log.info("dav-probe-failed server=%s err=%r", self.config.name, exc)
            return False
        return 200 <= response.status < 400

    def test_connection(self) -> bool:
        """PROPFIND depth 0 on the server root; False on any failure."""
        return self.probe(
            DavRequest(
                method="PROPFIND",
                path="/",
                depth="0",
                headers={"Content-Type": XML_CONTENT_TYPE},
                body=_PROBE_BODY,
            )
        )

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> DavClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class WebDAVClient:
    """Pass-through forwarder: any verb, any status returned as-is."""

    def __init__(self, dav: DavClient) -> None:
        self.dav = dav

    @property
    def config(self) -> ServerConfig:
        return self.dav.config

    def forward_request(self, request: DavRequest) -> DavResponse:
        return self.dav.execute(request, operation=f"forward {request.method} {request.path}")

    def test_connection(self) -> bool:
        """OPTIONS on the server root; False on any failure."""
        return self.dav.probe(DavRequest(method="OPTIONS", path="/"))

    def close(self) -> None:
        self.dav.close()


def new_webdav_client(
    config: ServerConfig,
    *,
    client: httpx.Client | None = None,
    timeout: float = 30.0,
    verify: bool | str = True,
) -> WebDAVClient:
    return WebDAVClient(DavClient(config, client=client, timeout=timeout, verify=verify))

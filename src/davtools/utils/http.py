"""HTTP transport built on httpx.

Intended use:
- Provide a single place for timeouts, TLS verification, and User-Agent.
- Perform exactly one request per call: no retries, no backoff.
- Every status code is a valid completion; only transport failures raise.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, MutableMapping

import httpx

from ..errors import ConfigurationError, TransportError

log = logging.getLogger(__name__)

__all__ = [
    "USER_AGENT",
    "create_client",
    "send",
]


USER_AGENT = "davtools/0.1"


def create_client(
    timeout: float = 30.0,
    headers: Mapping[str, str] | None = None,
    verify: bool | str = True,
    limits: httpx.Limits | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create a configured httpx client.

    Notes on connection limits:
    - Keep-alive connections are pooled; conservative defaults avoid server overload.
    - `transport` lets callers plug in e.g. httpx.MockTransport.
    """
    if verify is False and os.getenv("DAVTOOLS_ENVIRONMENT") == "production":
        raise ConfigurationError(
            "SSL certificate verification cannot be disabled in production environment. "
            "Set DAVTOOLS_ENVIRONMENT to 'development' or 'test' to allow insecure connections."
        )

    if verify is False:
        log.warning(
            "SSL certificate verification is DISABLED. This should only be used in development/testing."
        )

    base_headers: MutableMapping[str, str] = {"User-Agent": USER_AGENT}
    if headers:
        base_headers.update(headers)
    conn_limits = limits or httpx.Limits(max_keepalive_connections=10, max_connections=50)
    return httpx.Client(
        timeout=timeout,
        headers=base_headers,
        verify=verify,
        http2=False,
        limits=conn_limits,
        transport=transport,
        follow_redirects=False,
    )


def send(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    body: str | None = None,
    operation: str | None = None,
) -> httpx.Response:
    """Perform one HTTP request and return the response whatever its status.

    Raises TransportError when httpx reports a network-level failure.
    """
    op = operation or f"{method} {url}"
    try:
        resp = client.request(
            method=method,
            url=url,
            headers=headers,
            content=body.encode("utf-8") if body is not None else None,
        )
    except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as exc:
        # InvalidURL and header encoding errors are not HTTPError subclasses
        log.debug("dav-transport-failed op=%s err=%s", op, exc)
        raise TransportError(op, str(exc) or type(exc).__name__) from exc
    log.debug("dav-request method=%s url=%s status=%s", method, url, resp.status_code)
    return resp

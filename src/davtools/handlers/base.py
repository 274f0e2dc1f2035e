"""Shared plumbing for the CalDAV and CardDAV handlers.

Status contract:
- discovery (PROPFIND) and queries (REPORT) require 207 Multi-Status
- create (PUT) and delete (DELETE) require any 2xx
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from types import TracebackType
from typing import Self, TypeVar

import httpx

from ..config import ServerConfig
from ..dav.client import MULTISTATUS, SUCCESS, XML_CONTENT_TYPE, DavClient
from ..dav.multistatus import parse_multistatus
from ..errors import ParseError
from ..models import Collection, DavRequest, DavResource

__all__ = ["DavHandler", "collection_name", "item_path"]


log = logging.getLogger(__name__)

T = TypeVar("T")


def collection_name(resource: DavResource) -> str:
    if resource.display_name:
        return resource.display_name
    segments = [s for s in resource.href.split("/") if s]
    return segments[-1] if segments else "Unknown"


def item_path(collection_path: str, uid: str, extension: str) -> str:
    return f"{collection_path.rstrip('/')}/{uid}.{extension}"


class DavHandler:
    def __init__(
        self,
        config: ServerConfig,
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        verify: bool | str = True,
    ) -> None:
        self.dav = DavClient(config, client=client, timeout=timeout, verify=verify)

    @property
    def config(self) -> ServerConfig:
        return self.dav.config

    def test_connection(self) -> bool:
        return self.dav.test_connection()

    # -----------------
    # Helpers
    # -----------------

    def _discover(
        self,
        path: str,
        body: str,
        operation: str,
        keep: Callable[[DavResource], bool],
    ) -> list[Collection]:
        response = self.dav.execute(
            DavRequest(
                method="PROPFIND",
                path=path,
                depth="1",
                headers={"Content-Type": XML_CONTENT_TYPE},
                body=body,
            ),
            operation=operation,
            policy=MULTISTATUS,
        )
        # Malformed XML here is a hard failure
        resources = parse_multistatus(response.body)
        return [
            Collection(name=collection_name(r), href=r.href, description=r.description)
            for r in resources
            if keep(r)
        ]

    def _query(
        self,
        path: str,
        body: str,
        operation: str,
        parse: Callable[[str], Sequence[T]],
    ) -> list[T]:
        response = self.dav.execute(
            DavRequest(
                method="REPORT",
                path=path,
                headers={"Content-Type": XML_CONTENT_TYPE, "Depth": "1"},
                body=body,
            ),
            operation=operation,
            policy=MULTISTATUS,
        )
        try:
            return list(parse(response.body))
        except ParseError as exc:
            log.warning("dav-query-parse-failed op=%s path=%s err=%s", operation, path, exc)
            return []

    def _put(self, path: str, body: str, content_type: str, operation: str) -> str:
        self.dav.execute(
            DavRequest(method="PUT", path=path, headers={"Content-Type": content_type}, body=body),
            operation=operation,
            policy=SUCCESS,
        )
        log.info("dav-created op=%s path=%s", operation, path)
        return path

    def _delete(self, path: str, operation: str) -> None:
        self.dav.execute(DavRequest(method="DELETE", path=path), operation=operation, policy=SUCCESS)
        log.info("dav-deleted op=%s path=%s", operation, path)

    def close(self) -> None:
        self.dav.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

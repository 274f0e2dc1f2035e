"""Authorization header derivation for a ServerConfig."""

from __future__ import annotations

import base64

from ..config import ServerConfig
from ..errors import UnsupportedAuthentication

__all__ = ["build_auth_headers"]


def build_auth_headers(config: ServerConfig) -> dict[str, str]:
    """Return the Authorization header for `config`, or an empty mapping.

    Basic/bearer configs lacking their credentials yield no header. Digest is
    rejected before any request goes out.
    """
    headers: dict[str, str] = {}
    if config.auth_type == "basic":
        if config.username and config.password:
            raw = f"{config.username}:{config.password}".encode()
            headers["Authorization"] = f"Basic {base64.b64encode(raw).decode('ascii')}"
    elif config.auth_type == "bearer":
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
    elif config.auth_type == "digest":
        raise UnsupportedAuthentication(
            "Digest authentication is not supported. Please use basic or bearer authentication."
        )
    return headers

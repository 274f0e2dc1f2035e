"""Structured logging with optional JSON output and credential/PII redaction.

Exports:
- setup_logging(level: str = "INFO", json: bool = False) -> None
- mask_pii(text: str) -> str

Redaction:
- Authorization values: "Basic dXNlcjpwYXNz" / "Bearer abc..." keep the scheme only
- Email addresses: local-part masked except first/last char: a***z@example.com
- Phone numbers: digits masked except last 2: **********12 (preserves leading +)
- Token-like values (token=..., access_token: ...) are partially masked
- %-format arguments (URLs, paths) skip phone masking so timestamps stay readable

Notes:
- Contact records carry emails and phone numbers; never log them unmasked.
- Logs go to stderr so stdout stays free for command output.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, ClassVar

__all__ = ["JsonFormatter", "RedactingFilter", "mask_pii", "setup_logging"]


_AUTH_RE = re.compile(r"(?P<scheme>\b(?:Basic|Bearer))\s+(?P<cred>[A-Za-z0-9\-_\.~+/]+=*)")
_EMAIL_RE = re.compile(r"(?P<user>[A-Za-z0-9._%+-]{1,64})@(?P<host>[A-Za-z0-9.-]+\.[A-Za-z]{2,})")
_PHONE_RE = re.compile(
    r"(?P<lead>(?:\+)?)(?P<digits>(?:[()\-\s]*\d){6,})(?P<trail>)"  # 6+ digits loosely
)
_TOKEN_RE = re.compile(
    r"(?i)(?:(?P<prefix>access|refresh|id|auth)(?P<join>[_\- ]?)|)(?P<key>token|password)(?P<sep>\s*[:=]?\s*)(?P<val>[A-Za-z0-9\-_\.]{10,})"
)


def _mask_auth(match: re.Match[str]) -> str:
    return f"{match.group('scheme')} ********"


def _mask_email(match: re.Match[str]) -> str:
    user = match.group("user")
    host = match.group("host")
    if len(user) <= 2:
        masked_user = "*"
    else:
        masked_user = f"{user[0]}***{user[-1]}"
    return f"{masked_user}@{host}"


def _only_digits(s: str) -> str:
    return "".join(ch for ch in s if ch.isdigit())


def _mask_phone(match: re.Match[str]) -> str:
    raw = match.group(0)
    digits = _only_digits(raw)
    if len(digits) <= 2:
        masked_digits = "*" * len(digits)
    else:
        masked_digits = "*" * (len(digits) - 2) + digits[-2:]
    lead = "+" if raw.strip().startswith("+") else ""
    return f"{lead}{masked_digits}"


def _mask_token(match: re.Match[str]) -> str:
    key_txt = match.group("key")
    val = match.group("val")
    prefix_txt = match.group("prefix") or ""
    join_txt = match.group("join") or ""

    if len(val) <= 8:
        masked = "********"
    else:
        masked = f"{val[:4]}********{val[-4:]}"

    full_key = f"{prefix_txt}{join_txt}{key_txt}" if prefix_txt else key_txt
    return f"{full_key}: {masked}"


def mask_pii(text: str) -> str:
    """Mask credentials and PII in freeform text."""
    if not text:
        return text
    t = _AUTH_RE.sub(_mask_auth, text)
    t = _EMAIL_RE.sub(_mask_email, t)
    # Tokens before phone numbers so the phone regex does not pre-mask token digits
    t = _TOKEN_RE.sub(_mask_token, t)
    t = _PHONE_RE.sub(_mask_phone, t)
    return t


def _mask_arg(text: str) -> str:
    """Mask credentials and emails in a %-format argument; digit runs are left alone."""
    t = _AUTH_RE.sub(_mask_auth, text)
    t = _EMAIL_RE.sub(_mask_email, t)
    return _TOKEN_RE.sub(_mask_token, t)


class RedactingFilter(logging.Filter):
    """A logging filter that redacts credentials and PII in messages and selected extras."""

    EXTRA_KEYS_TO_MASK: ClassVar[set[str]] = {
        "email",
        "phone",
        "password",
        "token",
        "authorization",
    }

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if isinstance(record.msg, str):
            record.msg = mask_pii(record.msg)
            if record.args:
                if isinstance(record.args, Mapping):
                    record.args = {
                        k: (_mask_arg(v) if isinstance(v, str) else v)
                        for k, v in record.args.items()
                    }
                else:
                    record.args = tuple(
                        _mask_arg(a) if isinstance(a, str) else a for a in record.args
                    )
            record._pii_redacted = True

        for k in self.EXTRA_KEYS_TO_MASK:
            val = record.__dict__.get(k)
            if not isinstance(val, str):
                continue
            if k in {"password", "token", "authorization"}:
                record.__dict__[k] = "********"
            else:
                record.__dict__[k] = mask_pii(val)
        return True


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter.

    Fields:
    - ts (ISO8601), level, name, msg, and known extras if present.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        message = record.getMessage()
        base: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "msg": message if getattr(record, "_pii_redacted", False) else mask_pii(message),
        }

        for attr in ("funcName", "lineno", "module"):
            base[attr] = getattr(record, attr, None)

        # Custom extras only; avoid dumping large objects
        default_attrs = set(vars(logging.LogRecord("", 0, "", 0, "", (), None)))
        for k, v in record.__dict__.items():
            if k in default_attrs or k in {"msg", "args", "message", "_pii_redacted"}:
                continue
            if isinstance(v, str):
                base[k] = mask_pii(v)
            elif isinstance(v, int | float | bool) or v is None:
                base[k] = v
            elif isinstance(v, Mapping):
                base[k] = {
                    str(kk): (mask_pii(vv) if isinstance(vv, str) else vv)
                    for kk, vv in list(v.items())[:20]
                }
            else:
                base[k] = f"[{type(v).__name__}]"

        if record.exc_info:
            base["exc"] = mask_pii(self.formatException(record.exc_info))

        return json.dumps(base, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json: bool = False) -> None:
    """Configure the root logger for CLI execution.

    - Level from config or CLI flag (DEBUG/INFO/WARNING/ERROR)
    - JSON or console formatting, written to stderr
    - Redaction filter applied globally
    """
    if os.getenv("DAVTOOLS_FORCE_JSON_LOGS", "").lower() in {"1", "true", "yes"}:
        json = True

    # Reset handlers in case of repeated setup in tests
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.addFilter(RedactingFilter())

    if json:
        fmt: logging.Formatter = JsonFormatter()
    else:
        fmt = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    handler.setFormatter(fmt)

    root.addHandler(handler)

    # httpx logs full request lines at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

"""Configuration loader for davtools.

This module provides:
- Typed config models (pydantic BaseModel), including the per-server ServerConfig
- Precedence-aware loader: file (YAML) < ENV (DAVTOOLS__*) < CLI overrides
- Minimal coercion for ENV values (bool/int/float/list)

ENV format (nested via delimiter):
  DAVTOOLS__servers__home__base_url=https://cloud.example.com/remote.php/dav
  DAVTOOLS__servers__home__auth_type=basic
  DAVTOOLS__servers__home__username=nc_user
  DAVTOOLS__servers__home__password=secret
  DAVTOOLS__http__timeout=10

Example:
  cfg = load_config("/etc/davtools/config.yaml", cli_overrides={"logging": {"level": "DEBUG"}})
  server = cfg.server("home")
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import ConfigurationError

# ----------------------------
# Pydantic models (typed config)
# ----------------------------

AuthType = Literal["basic", "bearer", "digest"]


class ServerConfig(BaseModel):
    """Connection settings for one DAV server.

    Immutable once built. ``basic`` needs username and password, ``bearer``
    needs a token. ``digest`` is accepted here and rejected when the first
    request is built.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    name: str
    base_url: str = Field(alias="baseUrl")
    username: str | None = None
    password: str | None = Field(None, repr=False)
    auth_type: AuthType = Field(alias="authType")
    token: str | None = Field(None, repr=False)

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, v: str) -> str:
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v

    @model_validator(mode="after")
    def _validate_credentials(self) -> ServerConfig:
        if self.auth_type == "basic" and not (self.username and self.password):
            raise ValueError(f"server '{self.name}': basic auth requires username and password")
        if self.auth_type == "bearer" and not self.token:
            raise ValueError(f"server '{self.name}': bearer auth requires token")
        return self


class HttpConfig(BaseModel):
    timeout: float = Field(30.0, gt=0, le=600)
    verify: bool | str = True


class LoggingConfig(BaseModel):
    # Allow using alias "json" in config/env while avoiding BaseModel.json clash
    model_config = ConfigDict(populate_by_name=True)
    level: str = "INFO"
    as_json: bool = Field(False, alias="json")

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        lv = (v or "INFO").upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if lv not in allowed:
            raise ValueError(f"logging.level must be one of {sorted(allowed)}")
        return lv


def _default_http_config() -> HttpConfig:
    return HttpConfig()


def _default_logging_config() -> LoggingConfig:
    return LoggingConfig(json=False)


class AppConfig(BaseModel):
    servers: dict[str, ServerConfig] = Field(default_factory=dict)
    http: HttpConfig = Field(default_factory=_default_http_config)
    logging: LoggingConfig = Field(default_factory=_default_logging_config)

    @field_validator("servers", mode="before")
    @classmethod
    def _default_server_names(cls, v: Any) -> Any:
        # Server entries are keyed by name; the key fills a missing `name`.
        if not isinstance(v, Mapping):
            return v
        out: dict[str, Any] = {}
        for key, entry in v.items():
            if isinstance(entry, Mapping) and "name" not in entry:
                entry = {**entry, "name": key}
            out[key] = entry
        return out

    def server(self, name: str) -> ServerConfig:
        try:
            return self.servers[name]
        except KeyError:
            raise ConfigurationError(f"Server '{name}' not configured") from None


__all__ = [
    "AppConfig",
    "AuthType",
    "HttpConfig",
    "LoggingConfig",
    "ServerConfig",
    "build_server_config",
    "load_config",
    "merge_dicts",
    "read_env_config",
]


def build_server_config(**fields: Any) -> ServerConfig:
    """Validate `fields` into a ServerConfig, raising ConfigurationError on failure."""
    try:
        return ServerConfig.model_validate(fields)
    except ValidationError as ve:
        raise ConfigurationError(f"Invalid server configuration: {ve}") from ve


# ----------------------------
# Utilities
# ----------------------------


_BOOL_TRUE = {"1", "true", "yes", "on", "y", "t"}
_BOOL_FALSE = {"0", "false", "no", "off", "n", "f"}

_LIST_SPLIT_RE = re.compile(r"\s*,\s*")


def _coerce_value(val: str) -> Any:
    """Best-effort coercion for ENV values."""
    s = val.strip()

    # booleans
    ls = s.lower()
    if ls in _BOOL_TRUE:
        return True
    if ls in _BOOL_FALSE:
        return False

    # numbers (int then float)
    if re.fullmatch(r"[+-]?\d+", s):
        try:
            return int(s)
        except ValueError:
            pass
    if re.fullmatch(r"[+-]?\d+\.\d*", s):
        try:
            return float(s)
        except ValueError:
            pass

    # lists (comma-separated)
    if "," in s:
        parts = [p for p in _LIST_SPLIT_RE.split(s) if p != ""]
        return parts

    return s


def merge_dicts(
    base: MutableMapping[str, Any], override: Mapping[str, Any]
) -> MutableMapping[str, Any]:
    """Deep-merge override into base (mutates base). Lists/atoms are replaced."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, Mapping):
            merge_dicts(base[k], v)
        else:
            base[k] = v
    return base


def read_yaml_config(path: Path | None) -> dict[str, Any]:
    if not path:
        return {}
    p = Path(path).resolve()
    if not p.exists():
        return {}
    with p.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Top-level YAML must be a mapping in {p}")
        return data


def read_env_config(prefix: str = "DAVTOOLS__", nested_delim: str = "__") -> dict[str, Any]:
    """Build nested dict from environment variables.

    Keys must start with `prefix` (default 'DAVTOOLS__').
    Nested keys split by `nested_delim`.

    Example:
      DAVTOOLS__servers__home__base_url=...
      DAVTOOLS__http__timeout=10
    """
    if not prefix.endswith(nested_delim):
        raise ValueError("prefix must end with the nested_delim (default 'DAVTOOLS__' and '__').")

    result: dict[str, Any] = {}
    plen = len(prefix)
    for key, raw in os.environ.items():
        if not key.startswith(prefix):
            continue
        path_parts = key[plen:].split(nested_delim)
        cursor = result
        for part in path_parts[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[path_parts[-1]] = _coerce_value(raw)
    return result


# ----------------------------
# Loader (precedence: file < env < cli_overrides)
# ----------------------------


def load_config(
    file_path: str | Path | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
    env_prefix: str = "DAVTOOLS__",
    env_nested_delim: str = "__",
) -> AppConfig:
    """Load AppConfig with precedence: file < env < CLI overrides.

    Args:
        file_path: YAML path or None
        cli_overrides: nested mapping of overrides (e.g., from CLI args)
        env_prefix: environment variable prefix (must end with env_nested_delim)
        env_nested_delim: nested delimiter for env vars

    Returns:
        AppConfig instance (validated)
    """
    merged: dict[str, Any] = {}

    # 1) file
    file_data = read_yaml_config(Path(file_path) if file_path else None)
    merge_dicts(merged, file_data)

    # 2) env
    env_data = read_env_config(prefix=env_prefix, nested_delim=env_nested_delim)
    merge_dicts(merged, env_data)

    # 3) CLI overrides
    if cli_overrides:
        if not isinstance(cli_overrides, Mapping):
            raise TypeError("cli_overrides must be a mapping (nested dict-like).")
        merge_dicts(merged, cli_overrides)

    try:
        return AppConfig.model_validate(merged)
    except ValidationError as ve:
        raise ConfigurationError(f"Invalid configuration: {ve}") from ve

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import httpx
import pytest
import yaml  # type: ignore
from typer.testing import CliRunner

from davtools import cli
from davtools.cli import app
from davtools.config import AppConfig, load_config, read_env_config
from davtools.errors import ConfigurationError
from davtools.handlers.caldav import CalDAVHandler
from davtools.handlers.carddav import CardDAVHandler

CALENDARS_XML = """<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:caldav">
  <d:response>
    <d:href>/calendars/nc_user/personal/</d:href>
    <d:propstat><d:prop>
      <d:displayname>Personal</d:displayname>
      <d:resourcetype><d:collection/><c:calendar/></d:resourcetype>
    </d:prop></d:propstat>
  </d:response>
  <d:response>
    <d:href>/calendars/nc_user/</d:href>
    <d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype></d:prop></d:propstat>
  </d:response>
</d:multistatus>"""


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("DAVTOOLS__"):
            monkeypatch.delenv(key)


def _write_yaml(p: Path, data: dict[str, Any]) -> None:
    p.write_text(yaml.safe_dump(data, sort_keys=True), encoding="utf-8")


def _base_config() -> dict[str, Any]:
    return {
        "servers": {
            "home": {
                "base_url": "https://cloud.example.com/remote.php/dav",
                "auth_type": "basic",
                "username": "nc_user",
                "password": "secret-password",
            },
        },
        "logging": {"level": "WARNING", "json": False},
    }


@pytest.fixture
def config_file(tmp_path) -> Path:
    path = tmp_path / "config.yaml"
    _write_yaml(path, _base_config())
    return path


class TestLoadConfig:
    def test_config_precedence_file_env_cli(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "config.yaml"
        _write_yaml(path, _base_config())

        # ENV overrides logging.level -> DEBUG and adds an http timeout
        monkeypatch.setenv("DAVTOOLS__logging__level", "DEBUG")
        monkeypatch.setenv("DAVTOOLS__http__timeout", "10")
        # ENV can also override nested server values
        monkeypatch.setenv("DAVTOOLS__servers__home__username", "env_user")

        overrides = {
            "logging": {"level": "ERROR"},
            "servers": {"work": {"baseUrl": "https://dav.work.example", "authType": "bearer",
                                 "token": "tok"}},
        }

        cfg: AppConfig = load_config(file_path=str(path), cli_overrides=overrides)

        assert cfg.server("home").base_url == "https://cloud.example.com/remote.php/dav"
        assert cfg.server("home").username == "env_user"
        assert cfg.logging.level == "ERROR"
        assert cfg.http.timeout == 10
        assert cfg.server("work").auth_type == "bearer"

    def test_server_name_defaults_to_key(self, config_file) -> None:
        cfg = load_config(file_path=str(config_file))
        assert cfg.server("home").name == "home"

    def test_unknown_server(self, config_file) -> None:
        cfg = load_config(file_path=str(config_file))
        with pytest.raises(ConfigurationError, match="Server 'nope' not configured"):
            cfg.server("nope")

    def test_missing_file_yields_defaults(self, tmp_path) -> None:
        cfg = load_config(file_path=str(tmp_path / "absent.yaml"))
        assert cfg.servers == {}
        assert cfg.http.timeout == 30.0
        assert cfg.logging.level == "INFO"

    def test_invalid_server_raises_configuration_error(self, tmp_path) -> None:
        data = _base_config()
        del data["servers"]["home"]["password"]
        path = tmp_path / "config.yaml"
        _write_yaml(path, data)

        with pytest.raises(ConfigurationError, match="username and password"):
            load_config(file_path=str(path))

    def test_non_mapping_yaml_rejected(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_config(file_path=str(path))

    def test_env_values_are_coerced(self, monkeypatch) -> None:
        monkeypatch.setenv("DAVTOOLS__http__verify", "false")
        monkeypatch.setenv("DAVTOOLS__http__timeout", "2.5")
        assert read_env_config() == {"http": {"verify": False, "timeout": 2.5}}


@pytest.fixture
def dav_server(monkeypatch):
    """Route CLI handlers and clients through an in-memory transport."""
    state: dict[str, Any] = {"status": 207, "body": CALENDARS_XML, "requests": []}

    def _respond(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return httpx.Response(state["status"], text=state["body"])

    def _client() -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(_respond))

    monkeypatch.setattr(
        cli, "new_caldav_handler", lambda config, **_: CalDAVHandler(config, client=_client())
    )
    monkeypatch.setattr(
        cli, "new_carddav_handler", lambda config, **_: CardDAVHandler(config, client=_client())
    )
    return state


class TestCli:
    def test_calendars_prints_json(self, config_file, dav_server) -> None:
        result = CliRunner().invoke(app, ["calendars", "-s", "home", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            {"name": "Personal", "href": "/calendars/nc_user/personal/", "description": None}
        ]
        (request,) = dav_server["requests"]
        assert request.method == "PROPFIND"
        assert request.headers["Depth"] == "1"
        assert str(request.url) == "https://cloud.example.com/remote.php/dav/calendars/"

    def test_create_event_puts_ics(self, config_file, dav_server) -> None:
        dav_server["status"], dav_server["body"] = 201, ""

        result = CliRunner().invoke(
            app,
            [
                "create-event", "/calendars/nc_user/personal/", "-s", "home", "-c",
                str(config_file), "--summary", "Standup", "--start", "20240101T090000Z",
                "--end", "20240101T091500Z", "--uid", "ev-1", "--status", "tentative",
            ],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "created": "/calendars/nc_user/personal/ev-1.ics",
            "uid": "ev-1",
        }
        (request,) = dav_server["requests"]
        assert request.method == "PUT"
        assert "STATUS:TENTATIVE" in request.content.decode()

    def test_invalid_status_is_usage_error(self, config_file, dav_server) -> None:
        result = CliRunner().invoke(
            app,
            [
                "create-event", "/cal/", "-s", "home", "-c", str(config_file),
                "--summary", "x", "--start", "s", "--end", "e", "--status", "MAYBE",
            ],
        )
        assert result.exit_code == 2
        assert dav_server["requests"] == []

    def test_protocol_error_exits_1(self, config_file, dav_server) -> None:
        dav_server["status"], dav_server["body"] = 403, "Forbidden"

        result = CliRunner().invoke(app, ["calendars", "-s", "home", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Failed to list calendars: 403" in result.output

    def test_unknown_server_exits_1(self, config_file, dav_server) -> None:
        result = CliRunner().invoke(app, ["contacts", "/ab/", "-s", "nope", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Server 'nope' not configured" in result.output

    def test_invalid_config_exits_1(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        _write_yaml(path, {"servers": {"home": {"base_url": "ftp://x", "auth_type": "basic"}}})

        result = CliRunner().invoke(app, ["calendars", "-s", "home", "-c", str(path)])

        assert result.exit_code == 1
        assert "error:" in result.output

    def test_test_connection_reports_failure(self, config_file, dav_server) -> None:
        dav_server["status"], dav_server["body"] = 401, ""

        result = CliRunner().invoke(app, ["test-connection", "-s", "home", "-c", str(config_file)])

        assert result.exit_code == 1
        assert json.loads(result.stdout) == {"server": "home", "connected": False}

    def test_request_rejects_bad_header(self, config_file) -> None:
        result = CliRunner().invoke(
            app, ["request", "GET", "/", "-s", "home", "-c", str(config_file), "-H", "NoColon"]
        )
        assert result.exit_code == 2

    def test_request_rejects_bad_depth(self, config_file) -> None:
        result = CliRunner().invoke(
            app,
            ["request", "PROPFIND", "/", "-s", "home", "-c", str(config_file), "--depth", "2"],
        )
        assert result.exit_code == 2

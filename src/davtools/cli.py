"""CLI entrypoint for davtools.

Commands
- test-connection: probe a configured server (PROPFIND, or OPTIONS with --raw)
- calendars / events / create-event / delete-event: CalDAV operations
- address-books / contacts / search-contacts / create-contact / delete-contact: CardDAV operations
- request: forward an arbitrary WebDAV request and print the raw response

Notes
- Configuration precedence: CLI > ENV (DAVTOOLS__) > YAML file, see config loader.
- Results are printed to stdout as JSON; logs go to stderr.
- Any DavError is reported on stderr with exit code 1.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any

import typer

from .config import AppConfig, ServerConfig, load_config
from .dav.client import new_webdav_client
from .errors import DavError
from .handlers.caldav import CalDAVHandler, new_caldav_handler
from .handlers.carddav import CardDAVHandler, new_carddav_handler
from .logging import setup_logging
from .models import EVENT_STATUSES, CalendarEvent, Contact, DavRequest

app = typer.Typer(add_completion=False, help="CalDAV / CardDAV / WebDAV command-line client")


@contextmanager
def _dav_errors() -> Iterator[None]:
    try:
        yield
    except DavError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _load(config: Path | None, verbose: bool) -> AppConfig:
    with _dav_errors():
        cfg = load_config(
            file_path=str(config) if config else None,
            cli_overrides={"logging": {"level": "DEBUG"}} if verbose else None,
        )
    setup_logging(level=cfg.logging.level, json=cfg.logging.as_json)
    return cfg


def _client_kwargs(cfg: AppConfig) -> dict[str, Any]:
    return {"timeout": cfg.http.timeout, "verify": cfg.http.verify}


def _caldav(cfg: AppConfig, server: str) -> CalDAVHandler:
    return new_caldav_handler(cfg.server(server), **_client_kwargs(cfg))


def _carddav(cfg: AppConfig, server: str) -> CardDAVHandler:
    return new_carddav_handler(cfg.server(server), **_client_kwargs(cfg))


def _emit(result: Any) -> None:
    if isinstance(result, list):
        payload: Any = [asdict(r) if is_dataclass(r) else r for r in result]
    elif is_dataclass(result) and not isinstance(result, type):
        payload = asdict(result)
    else:
        payload = result
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _parse_headers(values: list[str] | None) -> dict[str, str]:
    """Parse repeated `Name: value` options into a header mapping."""
    headers: dict[str, str] = {}
    for raw in values or []:
        if ":" not in raw:
            raise typer.BadParameter(f"Invalid header '{raw}'. Expected 'Name: value'")
        name, value = raw.split(":", 1)
        name = name.strip()
        if not name:
            raise typer.BadParameter(f"Invalid header '{raw}'. Empty name")
        headers[name] = value.strip()
    return headers


def _server_opt() -> Any:
    return typer.Option(..., "--server", "-s", help="Name of the configured server.")


def _config_opt() -> Any:
    return typer.Option(
        None, "--config", "-c", help="Path to YAML config file.", show_default=False
    )


def _verbose_opt() -> Any:
    return typer.Option(False, "--verbose", "-v", help="Set log level to DEBUG.")


@app.command("test-connection", help="Check that a configured server answers.")
def test_connection(
    server: str = _server_opt(),
    raw: bool = typer.Option(
        False, "--raw", help="Probe with OPTIONS (plain WebDAV) instead of PROPFIND."
    ),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    cfg = _load(config, verbose)
    with _dav_errors():
        server_cfg: ServerConfig = cfg.server(server)
        if raw:
            client = new_webdav_client(server_cfg, **_client_kwargs(cfg))
            try:
                connected = client.test_connection()
            finally:
                client.close()
        else:
            with _caldav(cfg, server) as handler:
                connected = handler.test_connection()
    _emit({"server": server, "connected": connected})
    if not connected:
        raise typer.Exit(code=1)


@app.command(help="List calendars.")
def calendars(
    server: str = _server_opt(),
    path: str = typer.Option("/calendars/", "--path", help="Calendar home collection."),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    cfg = _load(config, verbose)
    with _dav_errors(), _caldav(cfg, server) as handler:
        _emit(handler.list_calendars(path))


@app.command(help="List events of a calendar, optionally within a time range.")
def events(
    calendar_path: str = typer.Argument(..., help="Path to the calendar collection."),
    server: str = _server_opt(),
    start: str | None = typer.Option(None, "--start", help="Range start, e.g. 20240101T000000Z."),
    end: str | None = typer.Option(None, "--end", help="Range end, e.g. 20240201T000000Z."),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    cfg = _load(config, verbose)
    with _dav_errors(), _caldav(cfg, server) as handler:
        _emit(handler.get_calendar_events(calendar_path, start, end))


@app.command("create-event", help="Create an event in a calendar.")
def create_event(
    calendar_path: str = typer.Argument(..., help="Path to the calendar collection."),
    server: str = _server_opt(),
    summary: str = typer.Option(..., "--summary", help="Event title."),
    start: str = typer.Option(..., "--start", help="DTSTART value, e.g. 20240101T100000Z."),
    end: str = typer.Option(..., "--end", help="DTEND value, e.g. 20240101T110000Z."),
    uid: str | None = typer.Option(None, "--uid", help="Event UID (generated when omitted)."),
    description: str | None = typer.Option(None, "--description"),
    location: str | None = typer.Option(None, "--location"),
    status: str | None = typer.Option(
        None, "--status", help="CONFIRMED, TENTATIVE or CANCELLED.", show_default=False
    ),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    if status is not None and status.upper() not in EVENT_STATUSES:
        raise typer.BadParameter(f"Invalid status '{status}'", param_hint="--status")
    event = CalendarEvent(
        uid=uid or uuid.uuid4().hex,
        summary=summary,
        start=start,
        end=end,
        description=description,
        location=location,
        status=status.upper() if status else None,  # type: ignore[arg-type]
    )
    cfg = _load(config, verbose)
    with _dav_errors(), _caldav(cfg, server) as handler:
        href = handler.create_event(calendar_path, event)
    _emit({"created": href, "uid": event.uid})


@app.command("delete-event", help="Delete an event resource.")
def delete_event(
    event_path: str = typer.Argument(..., help="Path to the .ics resource."),
    server: str = _server_opt(),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    cfg = _load(config, verbose)
    with _dav_errors(), _caldav(cfg, server) as handler:
        handler.delete_event(event_path)
    _emit({"deleted": event_path})


@app.command("address-books", help="List address books.")
def address_books(
    server: str = _server_opt(),
    path: str = typer.Option("/addressbooks/", "--path", help="Address book home collection."),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    cfg = _load(config, verbose)
    with _dav_errors(), _carddav(cfg, server) as handler:
        _emit(handler.list_address_books(path))


@app.command(help="List contacts of an address book.")
def contacts(
    address_book_path: str = typer.Argument(..., help="Path to the address book."),
    server: str = _server_opt(),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    cfg = _load(config, verbose)
    with _dav_errors(), _carddav(cfg, server) as handler:
        _emit(handler.get_contacts(address_book_path))


@app.command("search-contacts", help="Search contacts by full name (case-insensitive).")
def search_contacts(
    address_book_path: str = typer.Argument(..., help="Path to the address book."),
    query: str = typer.Argument(..., help="Text matched against FN."),
    server: str = _server_opt(),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    cfg = _load(config, verbose)
    with _dav_errors(), _carddav(cfg, server) as handler:
        _emit(handler.search_contacts(address_book_path, query))


@app.command("create-contact", help="Create a contact in an address book.")
def create_contact(
    address_book_path: str = typer.Argument(..., help="Path to the address book."),
    server: str = _server_opt(),
    fn: str = typer.Option(..., "--fn", help="Full name."),
    uid: str | None = typer.Option(None, "--uid", help="Contact UID (generated when omitted)."),
    email: str | None = typer.Option(None, "--email"),
    phone: str | None = typer.Option(None, "--phone"),
    organization: str | None = typer.Option(None, "--org"),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    contact = Contact(
        uid=uid or uuid.uuid4().hex,
        fn=fn,
        email=email,
        phone=phone,
        organization=organization,
    )
    cfg = _load(config, verbose)
    with _dav_errors(), _carddav(cfg, server) as handler:
        href = handler.create_contact(address_book_path, contact)
    _emit({"created": href, "uid": contact.uid})


@app.command("delete-contact", help="Delete a contact resource.")
def delete_contact(
    contact_path: str = typer.Argument(..., help="Path to the .vcf resource."),
    server: str = _server_opt(),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    cfg = _load(config, verbose)
    with _dav_errors(), _carddav(cfg, server) as handler:
        handler.delete_contact(contact_path)
    _emit({"deleted": contact_path})


@app.command(help="Forward a raw WebDAV request; any status is printed, not treated as failure.")
def request(
    method: str = typer.Argument(..., help="HTTP/WebDAV verb, e.g. GET, PROPFIND, MKCOL."),
    path: str = typer.Argument(..., help="Path relative to the server base URL."),
    server: str = _server_opt(),
    header: list[str] | None = typer.Option(
        None, "--header", "-H", help="Extra header 'Name: value' (repeatable).", show_default=False
    ),
    body: str | None = typer.Option(None, "--body", help="Request body text.", show_default=False),
    body_file: Path | None = typer.Option(
        None, "--body-file", exists=True, readable=True, help="Read the body from a file."
    ),
    depth: str | None = typer.Option(
        None, "--depth", help="Depth for PROPFIND: 0, 1 or infinity.", show_default=False
    ),
    config: Path | None = _config_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    if body is not None and body_file is not None:
        raise typer.BadParameter("Use either --body or --body-file, not both")
    if body_file is not None:
        body = body_file.read_text(encoding="utf-8")
    try:
        dav_request = DavRequest(
            method=method,
            path=path,
            headers=_parse_headers(header),
            body=body,
            depth=depth,  # type: ignore[arg-type]
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    cfg = _load(config, verbose)
    with _dav_errors():
        client = new_webdav_client(cfg.server(server), **_client_kwargs(cfg))
        try:
            response = client.forward_request(dav_request)
        finally:
            client.close()
    _emit(response)


if __name__ == "__main__":  # pragma: no cover
    app()

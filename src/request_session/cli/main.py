"""CLI entry point for request-session.

Invoked as::

    request-session [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m request_session.cli.main

Commands
--------
- version      — Show version information
- id           — Session identifier command group
- session      — Session data command group
- config       — Configuration command group

Id sub-commands
---------------
- id new    — Generate fresh session identifiers
- id check  — Validate a candidate identifier

Session sub-commands
--------------------
- session show     — Display the data stored for a session
- session set      — Store one key in a session (creating it if needed)
- session destroy  — Empty a session
"""
from __future__ import annotations

import asyncio
import json
import sys

import click
import yaml
from rich.console import Console
from rich.table import Table

from request_session.errors import SessionError
from request_session.session.config import RequestContext, SessionConfig, load_config
from request_session.session.handle import SessionHandle
from request_session.session.ids import ID_LENGTH, generate_id, is_valid_id
from request_session.storage.base import Driver

console = Console()

# ---------------------------------------------------------------------------
# Driver factory
# ---------------------------------------------------------------------------


def _make_driver(storage: str, db_path: str | None, redis_url: str | None) -> Driver:
    """Instantiate the requested storage driver.

    Parameters
    ----------
    storage:
        Driver name: ``"memory"``, ``"sqlite"``, or ``"redis"``.
    db_path:
        Path to the SQLite database (used when ``storage="sqlite"``).
    redis_url:
        Redis connection URL (used when ``storage="redis"``).

    Returns
    -------
    Driver
        A configured storage driver.
    """
    if storage == "memory":
        from request_session.storage.memory import InMemoryDriver

        return InMemoryDriver()
    if storage == "sqlite":
        from request_session.storage.sqlite import SQLiteDriver

        return SQLiteDriver(db_path=db_path)
    if storage == "redis":
        from request_session.storage.redis import RedisDriver

        return RedisDriver(url=redis_url or "redis://localhost:6379/0")
    console.print(f"[red]Unknown storage backend: {storage!r}[/red]")
    sys.exit(1)


def _parse_value(raw: str) -> object:
    """Interpret ``raw`` as JSON, falling back to the plain string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _load_config_or_exit(config_path: str) -> SessionConfig:
    """Load a YAML session config, exiting with status 1 when it is invalid."""
    try:
        return load_config(config_path)
    except (ValueError, TypeError, yaml.YAMLError) as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        sys.exit(1)


def _run(
    ctx: click.Context,
    token: str | None,
    action: str,
    key: str = "",
    value: object = None,
) -> SessionHandle:
    """Drive a fresh handle through ``action`` and return it."""
    config: SessionConfig = ctx.obj["config"]
    handle = SessionHandle(token, RequestContext.for_request(config))

    async def _go() -> SessionHandle:
        if action == "show":
            return await handle.read()
        await handle.open()
        if action == "set":
            handle.set(key, value)
            return await handle.save()
        return await handle.destroy()

    try:
        asyncio.run(_go())
    except SessionError as exc:
        console.print(f"[red]Session operation failed:[/red] {exc}")
        sys.exit(1)
    handle.close()
    return handle


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="request-session")
def cli() -> None:
    """Locked, per-request session storage"""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from request_session import __version__

    console.print(f"[bold]request-session[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# id command group
# ---------------------------------------------------------------------------


@cli.group(name="id")
def id_group() -> None:
    """Session identifier commands."""


@id_group.command(name="new")
@click.option(
    "--count",
    default=1,
    show_default=True,
    type=click.IntRange(min=1),
    help="How many ids to generate.",
)
def id_new(count: int) -> None:
    """Print COUNT freshly generated session ids, one per line."""
    for _ in range(count):
        console.print(generate_id(), highlight=False, markup=False)


@id_group.command(name="check")
@click.argument("token")
def id_check(token: str) -> None:
    """Exit non-zero unless TOKEN is a well-formed session id."""
    if is_valid_id(token):
        console.print("[green]valid[/green]")
        return
    console.print(
        f"[red]invalid[/red]: expected {ID_LENGTH} characters from the base64 alphabet"
    )
    sys.exit(1)


# ---------------------------------------------------------------------------
# session command group
# ---------------------------------------------------------------------------


@cli.group(name="session")
@click.option(
    "--storage",
    default="sqlite",
    show_default=True,
    type=click.Choice(["memory", "sqlite", "redis"], case_sensitive=False),
    help="Storage driver to use.",
)
@click.option("--db-path", default=None, help="Path to SQLite database (sqlite driver).")
@click.option("--redis-url", default=None, help="Redis connection URL (redis driver).")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML session config; overrides the storage options.",
)
@click.pass_context
def session_group(
    ctx: click.Context,
    storage: str,
    db_path: str | None,
    redis_url: str | None,
    config_path: str | None,
) -> None:
    """Session data commands."""
    ctx.ensure_object(dict)
    if config_path is not None:
        ctx.obj["config"] = _load_config_or_exit(config_path)
    else:
        ctx.obj["config"] = SessionConfig(driver=_make_driver(storage.lower(), db_path, redis_url))


@session_group.command(name="show")
@click.argument("session_id")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of a table.")
@click.pass_context
def session_show(ctx: click.Context, session_id: str, json_output: bool) -> None:
    """Display the data stored under SESSION_ID."""
    if not is_valid_id(session_id):
        console.print(f"[red]Malformed session id:[/red] {session_id}")
        sys.exit(1)

    handle = _run(ctx, session_id, "show")
    if handle.id is None:
        console.print(f"[yellow]Session not found or expired:[/yellow] {session_id}")
        sys.exit(1)

    if json_output:
        console.print_json(json.dumps(handle.data, default=str))
        return

    table = Table(title=f"Session {session_id[:8]}", show_lines=True)
    table.add_column("Key", style="bold cyan")
    table.add_column("Value")
    for key, value in sorted(handle.data.items()):
        table.add_row(key, json.dumps(value, default=str))
    console.print(table)


@session_group.command(name="set")
@click.argument("key")
@click.argument("value")
@click.option(
    "--id",
    "session_id",
    default=None,
    help="Existing session id; a new one is allocated if omitted.",
)
@click.pass_context
def session_set(ctx: click.Context, key: str, value: str, session_id: str | None) -> None:
    """Store VALUE (parsed as JSON when possible) under KEY.

    Prints the session id the data was saved under.
    """
    handle = _run(ctx, session_id, "set", key, _parse_value(value))
    console.print(f"[green]Session saved:[/green] {handle.id}", highlight=False)


@session_group.command(name="destroy")
@click.argument("session_id")
@click.pass_context
def session_destroy(ctx: click.Context, session_id: str) -> None:
    """Empty the session stored under SESSION_ID."""
    if not is_valid_id(session_id):
        console.print(f"[red]Malformed session id:[/red] {session_id}")
        sys.exit(1)
    _run(ctx, session_id, "destroy")
    console.print(f"[green]Session destroyed:[/green] {session_id}", highlight=False)


# ---------------------------------------------------------------------------
# config command group
# ---------------------------------------------------------------------------


@cli.group(name="config")
def config_group() -> None:
    """Configuration commands."""


@config_group.command(name="show")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML session config to display.",
)
def config_show(config_path: str) -> None:
    """Validate and display a YAML session config."""
    config = _load_config_or_exit(config_path)

    table = Table(title="Session config", show_lines=True)
    table.add_column("Option", style="bold cyan")
    table.add_column("Value")
    table.add_row("name", config.name)
    table.add_row("ttl", str(config.ttl))
    table.add_row("maxlife", str(config.maxlife))
    table.add_row("effective_ttl", str(config.effective_ttl()))
    table.add_row("path", config.path)
    table.add_row("driver", repr(config.driver))
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    cli()

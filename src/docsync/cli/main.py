"""
DocSync CLI Main Entry Point.

Provides a command-line interface for inspecting and driving
synchronization with a remote document database.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from contextlib import AbstractContextManager, nullcontext
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import click
import humanize
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docsync import __version__
from docsync.core.config import DocSyncConfig, RemoteConfig, load_config
from docsync.core.errors import DocSyncError
from docsync.core.events import CHANGE_KIND, ERROR_CHANNEL, STORE_CHANNEL, EventBus, EventKey
from docsync.core.logging import SyncStepLogger, get_logger, setup_logging
from docsync.core.models import Change, Record
from docsync.store import RemoteStore
from docsync.transport.base import Transport
from docsync.transport.http import HttpxTransport

console = Console()
logger = get_logger(__name__)

T = TypeVar("T")

# Swapped out by tests to run commands against an in-memory remote.
transport_factory: Callable[[RemoteConfig], Transport] = HttpxTransport.from_config


def get_config(ctx: click.Context) -> DocSyncConfig:
    """Get configuration from context."""
    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config()
    return ctx.obj["config"]


def run_with_store(
    ctx: click.Context,
    action: Callable[[RemoteStore], Awaitable[T]],
    *,
    continuous: bool = False,
) -> T:
    """Open a store against the configured remote, run ``action`` and close it."""
    config = get_config(ctx)
    remote = config.remote.model_copy(update={"sync": continuous})

    async def runner() -> T:
        transport = transport_factory(remote)
        store = RemoteStore(transport, remote, ctx.obj.setdefault("bus", EventBus()))
        try:
            return await action(store)
        finally:
            await store.aclose()
            await transport.aclose()

    return asyncio.run(runner())


def _status(ctx: click.Context, message: str) -> AbstractContextManager[Any]:
    """Spinner for interactive runs; nothing when output is scripted."""
    if ctx.obj.get("json_output") or ctx.obj.get("quiet"):
        return nullcontext()
    return console.status(message)


def _format_time(value: Any) -> str:
    if isinstance(value, datetime):
        return humanize.naturaltime(datetime.now(value.tzinfo) - value)
    return ""


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _records_table(title: str, records: list[Record]) -> Table:
    table = Table(title=title)
    table.add_column("Type", style="cyan")
    table.add_column("ID", style="white")
    table.add_column("Revision", style="magenta")
    table.add_column("Updated", style="green")
    for record in records:
        table.add_row(
            record.get("type") or "",
            str(record.get("id", "")),
            record.get("_rev") or "",
            _format_time(record.get("updatedAt")),
        )
    return table


@click.group()
@click.version_option(version=__version__, prog_name="DocSync")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    json_output: bool,
    quiet: bool,
) -> None:
    """
    DocSync - Sync typed records with a remote document database.
    """
    ctx.ensure_object(dict)

    if config:
        ctx.obj["config"] = DocSyncConfig.load(config)
    else:
        ctx.obj.setdefault("config", load_config())

    ctx.obj["json_output"] = json_output
    ctx.obj["quiet"] = quiet

    logging_config = ctx.obj["config"].logging
    if quiet:
        logging_config = logging_config.model_copy(update={"console_enabled": False})
    setup_logging(logging_config, remote=ctx.obj["config"].remote.name)


@cli.command("pull")
@click.pass_context
def pull(ctx: click.Context) -> None:
    """Fetch all changes from the remote once."""
    json_output = ctx.obj.get("json_output", False)

    async def action(store: RemoteStore) -> list[Change]:
        with SyncStepLogger("pull", store.name, logger, since=store.since) as step:
            changes = await store.pull()
            step.record(changes=len(changes), since=store.since)
        return changes

    with _status(ctx, "Pulling changes..."):
        changes = run_with_store(ctx, action)

    if json_output:
        _echo_json([change.to_dict() for change in changes])
        return

    table = Table(title=f"Changes ({len(changes)})")
    table.add_column("Kind", style="yellow")
    table.add_column("Type", style="cyan")
    table.add_column("ID", style="white")
    table.add_column("Revision", style="magenta")
    for change in changes:
        table.add_row(
            change.kind.value,
            change.type or "",
            change.id,
            change.record.get("_rev") or "",
        )
    console.print(table)


@cli.command("push")
@click.argument("records_file", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def push(ctx: click.Context, records_file: Path) -> None:
    """Push records from a JSON file (a list of objects) to the remote."""
    json_output = ctx.obj.get("json_output", False)

    with open(records_file) as f:
        records = json.load(f)
    if not isinstance(records, list):
        console.print("[red]Records file must contain a JSON list[/red]")
        sys.exit(1)

    async def action(store: RemoteStore) -> list[dict[str, Any]]:
        with SyncStepLogger("push", store.name, logger, count=len(records)) as step:
            docs = await store.push(records)
            step.record(written=len(docs))
        return docs

    with _status(ctx, "Pushing records..."):
        docs = run_with_store(ctx, action)

    if json_output:
        _echo_json(docs)
        return

    table = Table(title=f"Pushed ({len(docs)})")
    table.add_column("Document", style="cyan")
    table.add_column("Revision", style="magenta")
    for doc in docs:
        table.add_row(doc["_id"], doc["_rev"])
    console.print(table)


@cli.command("list")
@click.option("--type", "record_type", default=None, help="Only list records of this type")
@click.pass_context
def list_records(ctx: click.Context, record_type: str | None) -> None:
    """List records stored on the remote."""
    json_output = ctx.obj.get("json_output", False)

    with _status(ctx, "Fetching records..."):
        records = run_with_store(ctx, lambda store: store.find_all(record_type))

    if json_output:
        _echo_json(records)
        return

    console.print(_records_table(f"Records ({len(records)})", records))


@cli.command("get")
@click.argument("record_type")
@click.argument("record_id")
@click.pass_context
def get_record(ctx: click.Context, record_type: str, record_id: str) -> None:
    """Show one record."""
    json_output = ctx.obj.get("json_output", False)
    record = run_with_store(ctx, lambda store: store.find(record_type, record_id))

    if json_output:
        _echo_json(record)
        return

    body = "\n".join(
        f"[cyan]{key}:[/cyan] {value.isoformat() if isinstance(value, datetime) else value}"
        for key, value in record.items()
    )
    console.print(Panel(body, title=f"{record_type}/{record_id}"))


@cli.command("watch")
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Sync continuously and print every change until interrupted."""
    json_output = ctx.obj.get("json_output", False)
    bus: EventBus = ctx.obj.setdefault("bus", EventBus())
    name = get_config(ctx).remote.name

    def on_change(kind: str, record: Record) -> None:
        if json_output:
            click.echo(json.dumps({"kind": kind, "record": record}, default=str))
        else:
            console.print(f"[yellow]{kind:>6}[/yellow] {record.get('type')}/{record.get('id')}")

    def on_error(kind: str) -> Callable[[DocSyncError], None]:
        def handler(error: DocSyncError) -> None:
            console.print(f"[red]{kind} error: {error}[/red]")

        return handler

    bus.subscribe(EventKey(STORE_CHANNEL, CHANGE_KIND, scope=name), on_change)
    bus.subscribe(EventKey(ERROR_CHANNEL, "unauthenticated", scope=name), on_error("Authentication"))
    bus.subscribe(EventKey(ERROR_CHANNEL, "server", scope=name), on_error("Server"))

    async def action(store: RemoteStore) -> None:
        if not ctx.obj.get("quiet"):
            console.print(f"[green]Watching {store.config.base_url}[/green]")
        while store.is_connected:
            await asyncio.sleep(1)
        console.print("[yellow]Disconnected[/yellow]")

    run_with_store(ctx, action, continuous=True)


@cli.group("config")
def config_group() -> None:
    """Inspect configuration."""


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration."""
    config = get_config(ctx)
    data = config.model_dump(mode="json")
    if data["remote"].get("auth_token"):
        data["remote"]["auth_token"] = "***"

    if ctx.obj.get("json_output", False):
        _echo_json(data)
        return

    remote = config.remote
    console.print(
        Panel(
            f"""[cyan]Base URL:[/cyan] {remote.base_url}
[cyan]Name:[/cyan] {remote.name or "(none)"}
[cyan]Document prefix:[/cyan] {remote.doc_prefix or "(none)"}
[cyan]Sync mode:[/cyan] {remote.mode.value}
[cyan]Log level:[/cyan] {config.logging.level}""",
            title="DocSync Configuration",
        )
    )


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

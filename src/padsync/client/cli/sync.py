"""Sync commands for padsync CLI.

Commands:
- enable: Turn sync on and run a first pass
- disable: Turn sync off and clear the remote collections
- status: Show sync state of each collection
- sync: Run one pass, or keep syncing with --watch
"""

from __future__ import annotations

import sys
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any, cast

import click

if TYPE_CHECKING:
    from padsync.client.cli.runtime import Runtime
    from padsync.client.sync.types import SyncReport
    from padsync.core.config import ServerConfig


def _require_server(runtime: Runtime) -> ServerConfig:
    if runtime.server is None:
        click.echo(
            "Error: No server configured. Run 'padsync config set server_url URL' first.",
            err=True,
        )
        sys.exit(1)
    return runtime.server


def _echo_report(report: SyncReport) -> None:
    parts = [f"{report.pulled} pulled"]
    if report.inserted:
        parts.append(f"{len(report.inserted)} new")
    if report.updated:
        parts.append(f"{len(report.updated)} updated")
    if report.removed:
        parts.append(f"{len(report.removed)} removed")
    if report.pushed:
        parts.append("pushed")
    click.echo(f"  {report.kind.value}: {', '.join(parts)}")


@click.command()
@click.pass_context
def enable(ctx: click.Context) -> None:
    """Turn sync on and run a first pass."""
    from padsync.client.cli.runtime import open_runtime
    from padsync.client.sync.types import TransportError

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        _require_server(runtime)
        runtime.state.set_sync_enabled(True)
        click.echo("Sync enabled.")
        try:
            for report in runtime.engine.sync_all():
                _echo_report(report)
        except TransportError as e:
            click.echo(f"Warning: first pass failed, will retry later: {e}", err=True)


@click.command()
@click.option(
    "--keep-remote",
    is_flag=True,
    help="Leave the remote collections in place.",
)
@click.pass_context
def disable(ctx: click.Context, keep_remote: bool) -> None:
    """Turn sync off.

    Local tabs and clipboard history are kept. Unless --keep-remote is
    given, the remote collections are cleared.
    """
    from padsync.client.cli.runtime import open_runtime
    from padsync.client.sync.types import TransportError

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        runtime.state.set_sync_enabled(False)
        click.echo("Sync disabled.")
        if keep_remote or runtime.server is None:
            return
        try:
            runtime.engine.unsync()
            click.echo("Remote collections cleared.")
        except TransportError as e:
            click.echo(f"Error: Failed to clear remote collections: {e}", err=True)
            sys.exit(1)


@click.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show sync state of each collection."""
    from padsync.client.cli.runtime import open_runtime

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        info = runtime.engine.status()
        server = runtime.server.server_url if runtime.server else "(not configured)"
        click.echo(f"Server:    {server}")
        click.echo(f"Transport: {runtime.engine.settings.transport}")
        click.echo(f"Sync:      {'enabled' if info['enabled'] else 'disabled'}")

        kinds = cast(dict[str, dict[str, Any]], info["kinds"])
        for name, details in kinds.items():
            last = details["last_sync_at"]
            when = datetime.fromtimestamp(last).strftime("%Y-%m-%d %H:%M:%S") if last else "never"
            click.echo(
                f"  {name}: {details['documents']} documents "
                f"({details['syncable']} synced), "
                f"{details['tombstones']} tombstones, last sync {when}"
            )


@click.command()
@click.option("--watch", "-w", is_flag=True, help="Keep syncing until interrupted.")
@click.pass_context
def sync(ctx: click.Context, watch: bool) -> None:
    """Synchronize tabs and clipboard history with the server.

    Runs one pass per collection. With --watch, keeps polling and listens
    for change notifications until Ctrl-C.
    """
    from padsync.client.cli.runtime import open_runtime
    from padsync.client.sync.types import TransportError

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        server = _require_server(runtime)
        if not runtime.engine.is_enabled:
            click.echo("Error: Sync is disabled. Run 'padsync enable' first.", err=True)
            sys.exit(1)

        if watch:
            _watch(runtime, server)
            return

        failed = False
        for kind in runtime.engine.kinds:
            try:
                _echo_report(runtime.engine.sync(kind))
            except TransportError as e:
                click.echo(f"Error: Sync of {kind.value} failed: {e}", err=True)
                failed = True
        if failed:
            sys.exit(1)


def _watch(runtime: Runtime, server: ServerConfig) -> None:
    from padsync.client.sync.remote_listener import RemoteChangeListener
    from padsync.client.sync.scheduler import SyncScheduler
    scheduler = SyncScheduler(runtime.engine)
    listener = RemoteChangeListener(server, scheduler.notify_remote_changed)
    unsubscribe = runtime.engine.subscribe(
        lambda event: click.echo(f"  {event!r}")
    )

    scheduler.start()
    listener.start()
    click.echo("Watching for changes (Ctrl-C to stop)...")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        listener.stop()
        scheduler.shutdown()
        unsubscribe()

"""Clipboard history commands for padsync CLI.

Commands:
- clip add: Capture text into the history
- clip list: Show recent entries
- clip search: Find entries containing a query
- clip delete: Delete one entry
- clip clear: Delete every entry, here and remotely
"""

from __future__ import annotations

import sys
from datetime import datetime
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from padsync.client.documents import ClipboardEntry

ID_DISPLAY_LENGTH = 8
PREVIEW_LENGTH = 60


def _preview(entry: ClipboardEntry) -> str:
    text = " ".join(entry.text.split())
    if len(text) > PREVIEW_LENGTH:
        text = text[: PREVIEW_LENGTH - 3] + "..."
    when = datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M")
    return f"{entry.id[:ID_DISPLAY_LENGTH]}  {when}  {text}"


@click.group()
def clip() -> None:
    """Clipboard history."""


@clip.command("add")
@click.argument("text", required=False)
@click.pass_context
def add_entry(ctx: click.Context, text: str | None) -> None:
    """Capture TEXT (or stdin) into the clipboard history."""
    from padsync.client.cli.runtime import open_runtime

    if text is None or text == "-":
        text = sys.stdin.read()
    with open_runtime(ctx.obj.get("http_client")) as runtime:
        entry = runtime.clipboard.add_entry(text)
        if entry is None:
            click.echo("Nothing captured (blank or same as the last entry).")
            return
        click.echo(_preview(entry))


@clip.command("list")
@click.option("--limit", "-n", type=int, default=20, show_default=True, help="Entries to show.")
@click.pass_context
def list_entries(ctx: click.Context, limit: int) -> None:
    """Show the most recent entries."""
    from padsync.client.cli.runtime import open_runtime

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        entries = runtime.clipboard.entries()
        for entry in entries[:limit]:
            click.echo(_preview(entry))
        if len(entries) > limit:
            click.echo(f"... {len(entries) - limit} more")


@clip.command("search")
@click.argument("query")
@click.pass_context
def search_entries(ctx: click.Context, query: str) -> None:
    """Find entries containing QUERY (case-insensitive)."""
    from padsync.client.cli.runtime import open_runtime

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        matches = runtime.clipboard.search(query)
        if not matches:
            click.echo("No matches.")
        for entry in matches:
            click.echo(_preview(entry))


@clip.command("show")
@click.argument("entry_id")
@click.pass_context
def show_entry(ctx: click.Context, entry_id: str) -> None:
    """Print the full text of an entry."""
    from padsync.client.cli.runtime import open_runtime
    from padsync.client.sync.types import NotFoundError

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        try:
            entry = runtime.clipboard.find_by_prefix(entry_id)
        except NotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        click.echo(entry.text)


@clip.command("delete")
@click.argument("entry_id")
@click.pass_context
def delete_entry(ctx: click.Context, entry_id: str) -> None:
    """Delete one entry on every device."""
    from padsync.client.cli.runtime import open_runtime
    from padsync.client.sync.types import NotFoundError

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        try:
            entry = runtime.clipboard.find_by_prefix(entry_id)
        except NotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        runtime.clipboard.delete_entry(entry.id)
        click.echo(f"Deleted {entry.id[:ID_DISPLAY_LENGTH]}")


@clip.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def clear_entries(ctx: click.Context, yes: bool) -> None:
    """Delete every entry, here and on every device."""
    from padsync.client.cli.runtime import open_runtime

    if not yes:
        click.confirm("Delete the whole clipboard history?", abort=True)
    with open_runtime(ctx.obj.get("http_client")) as runtime:
        count = len(runtime.clipboard.entries())
        future = runtime.clipboard.clear_all()
        if future is not None:
            future.result()
        click.echo(f"Cleared {count} entries.")

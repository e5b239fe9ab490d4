"""Tab commands for padsync CLI.

Commands:
- tabs list: List tabs
- tabs show: Print a tab's content
- tabs new: Open a new scratch tab
- tabs write: Replace a tab's content
- tabs close: Close a tab
- tabs open: Open a file in a tab (never synced)
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from padsync.client.documents import TabDocument
    from padsync.client.tabs import TabCollection

ID_DISPLAY_LENGTH = 8


def _read_content(content: str | None) -> str:
    """Use the argument, or stdin when it is "-" or omitted on a pipe."""
    if content == "-" or (content is None and not sys.stdin.isatty()):
        return sys.stdin.read()
    return content or ""


def _resolve(tabs: TabCollection, prefix: str) -> TabDocument:
    from padsync.client.sync.types import NotFoundError

    try:
        return tabs.find_by_prefix(prefix)
    except NotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
def tabs() -> None:
    """Scratchpad tabs."""


@tabs.command("list")
@click.pass_context
def list_tabs(ctx: click.Context) -> None:
    """List tabs in display order."""
    from padsync.client.cli.runtime import open_runtime

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        runtime.tabs.ensure_tab(first_launch=runtime.first_launch)
        selected = runtime.tabs.selected_id
        for tab in runtime.tabs.tabs():
            marker = "*" if tab.id == selected else " "
            flags = ""
            if tab.file_path:
                flags += f" [{tab.file_path}]"
                if tab.is_dirty:
                    flags += " (modified)"
            click.echo(f"{marker} {tab.id[:ID_DISPLAY_LENGTH]}  {tab.name}{flags}")


@tabs.command("show")
@click.argument("tab_id")
@click.pass_context
def show_tab(ctx: click.Context, tab_id: str) -> None:
    """Print the content of a tab."""
    from padsync.client.cli.runtime import open_runtime

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        click.echo(_resolve(runtime.tabs, tab_id).content)


@tabs.command("new")
@click.argument("content", required=False)
@click.pass_context
def new_tab(ctx: click.Context, content: str | None) -> None:
    """Open a new scratch tab, optionally pre-filled (use - for stdin)."""
    from padsync.client.cli.runtime import open_runtime

    text = _read_content(content)
    with open_runtime(ctx.obj.get("http_client")) as runtime:
        tab = runtime.tabs.add_new_tab(text)
        click.echo(f"{tab.id[:ID_DISPLAY_LENGTH]}  {tab.name}")


@tabs.command("write")
@click.argument("tab_id")
@click.argument("content", required=False)
@click.pass_context
def write_tab(ctx: click.Context, tab_id: str, content: str | None) -> None:
    """Replace the content of a tab (use - for stdin)."""
    from padsync.client.cli.runtime import open_runtime

    text = _read_content(content)
    with open_runtime(ctx.obj.get("http_client")) as runtime:
        tab = _resolve(runtime.tabs, tab_id)
        runtime.tabs.update_content(tab.id, text)
        runtime.tabs.select(tab.id)


@tabs.command("close")
@click.argument("tab_id")
@click.pass_context
def close_tab(ctx: click.Context, tab_id: str) -> None:
    """Close a tab. Closing a synced tab removes it on every device."""
    from padsync.client.cli.runtime import open_runtime

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        tab = _resolve(runtime.tabs, tab_id)
        runtime.tabs.close_tab(tab.id)
        click.echo(f"Closed {tab.name}")


@tabs.command("open")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def open_file(ctx: click.Context, path: str) -> None:
    """Open a text file in a tab. File tabs stay on this device."""
    from padsync.client.cli.runtime import open_runtime
    from padsync.client.tabs import NotTextFileError

    with open_runtime(ctx.obj.get("http_client")) as runtime:
        try:
            tab = runtime.tabs.open_file(path)
        except (OSError, NotTextFileError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        click.echo(f"{tab.id[:ID_DISPLAY_LENGTH]}  {tab.name}")

"""Command-line interface for padsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config show|set: Show or change configuration
- enable: Turn sync on
- disable: Turn sync off (and clear the remote collections)
- status: Show sync state
- sync: Synchronize once, or continuously with --watch
- tabs: Scratchpad tab commands
- clip: Clipboard history commands
- server: Store server commands
"""

from __future__ import annotations

import logging
import sys

import click

from padsync.client.cli.clip import clip
from padsync.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from padsync.client.cli.server import server
from padsync.client.cli.settings import config_group
from padsync.client.cli.sync import disable, enable, status, sync
from padsync.client.cli.tabs import tabs


def setup_logging(verbose: bool) -> None:
    """Send padsync logs to stderr (warnings only unless verbose)."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    padsync_logger = logging.getLogger("padsync")
    for existing in padsync_logger.handlers[:]:
        padsync_logger.removeHandler(existing)
    padsync_logger.addHandler(handler)
    padsync_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@click.group()
@click.version_option(package_name="padsync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """padsync - Scratchpad tabs and clipboard history on every device."""
    ctx.ensure_object(dict)
    setup_logging(verbose)


# Configuration commands
cli.add_command(config_group)

# Sync commands
cli.add_command(enable)
cli.add_command(disable)
cli.add_command(status)
cli.add_command(sync)

# Collection commands
cli.add_command(tabs)
cli.add_command(clip)

# Server commands
cli.add_command(server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]

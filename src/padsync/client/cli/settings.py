"""Configuration commands for padsync CLI.

Commands:
- config show: Print the effective configuration
- config set: Change one setting
"""

from __future__ import annotations

import json
import sys

import click

from padsync.client.cli.config import (
    get_config_file,
    get_sync_settings,
    load_config,
    save_config,
    set_config_value,
)


@click.group("config")
def config_group() -> None:
    """Show or change configuration."""


@config_group.command("show")
def show_config() -> None:
    """Print the effective configuration (tokens are masked)."""
    config = load_config()
    shown = {k: v for k, v in config.items() if k != "sync"}
    if shown.get("token"):
        shown["token"] = "****"
    shown["sync"] = get_sync_settings(config).to_dict()
    click.echo(f"# {get_config_file()}")
    click.echo(json.dumps(shown, indent=2))


@config_group.command("set")
@click.argument("key")
@click.argument("value")
def set_config(key: str, value: str) -> None:
    """Set KEY to VALUE.

    Server keys: server_url, token, timeout, verify_ssl. Any other key is
    a sync setting (e.g. transport, poll_interval, tombstone_ttl_days).
    Values are parsed as JSON when possible.

    Examples:

        padsync config set server_url http://localhost:8000

        padsync config set transport records

        padsync config set remote_caps '{"clipboard": 100, "tab": null}'
    """
    try:
        updated = set_config_value(load_config(), key, value)
    except (ValueError, TypeError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    save_config(updated)
    click.echo(f"Set {key}")

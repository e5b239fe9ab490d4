"""Configuration utilities for padsync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from padsync.core.config import ServerConfig, SyncSettings

# Keys accepted by `padsync config set` at the top level; everything else
# is stored under "sync" and must be a SyncSettings field
SERVER_KEYS = ("server_url", "token", "timeout", "verify_ssl")


def get_config_dir() -> Path:
    """Get the configuration directory for padsync.

    Returns:
        $PADSYNC_HOME if set, otherwise ~/.padsync.
    """
    home = os.environ.get("PADSYNC_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".padsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_server_config(config: dict[str, Any] | None = None) -> ServerConfig | None:
    """Build the server connection settings.

    Returns:
        ServerConfig, or None if no server URL is configured.
    """
    config = load_config() if config is None else config
    if not config.get("server_url"):
        return None
    return ServerConfig(
        server_url=config["server_url"],
        token=config.get("token") or None,
        timeout=float(config.get("timeout", 30.0)),
        verify_ssl=bool(config.get("verify_ssl", True)),
    )


def get_sync_settings(config: dict[str, Any] | None = None) -> SyncSettings:
    """Build the sync tunables from the "sync" section."""
    config = load_config() if config is None else config
    return SyncSettings.from_dict(config.get("sync", {}))


def parse_value(raw: str) -> Any:
    """Parse a command-line value as JSON, falling back to the raw string.

    Examples:
        "30" -> 30, "true" -> True, "[1, 2]" -> [1, 2], "blob" -> "blob"
    """
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def set_config_value(config: dict[str, Any], key: str, raw: str) -> dict[str, Any]:
    """Return a copy of config with key set.

    Server keys live at the top level; sync settings are addressed either
    as "sync.<field>" or by their bare field name.

    Raises:
        ValueError: If the key is unknown or the value is invalid.
    """
    updated = dict(config)
    value = parse_value(raw)
    if key in SERVER_KEYS:
        updated[key] = raw if key in ("server_url", "token") else value
        return updated

    name = key.removeprefix("sync.")
    sync = dict(updated.get("sync", {}))
    sync[name] = value
    defaults = SyncSettings().to_dict()
    if name not in defaults:
        raise ValueError(f"Unknown setting: {key}")
    # Validate the whole section before accepting it
    SyncSettings.from_dict(sync)
    updated["sync"] = sync
    return updated

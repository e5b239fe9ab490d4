"""Wiring of the client components for CLI commands.

This module provides:
- Runtime: Stores, engine and collections of this device
- open_runtime: Context manager that builds a Runtime from the config
  directory and tears it down (flushing pending saves) on exit
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from padsync.client.api import StoreClient
from padsync.client.clipboard import ClipboardHistory
from padsync.client.cli.config import (
    get_config_dir,
    get_server_config,
    get_sync_settings,
    load_config,
)
from padsync.client.state import LocalSyncState
from padsync.client.store import DocumentStore
from padsync.client.sync.engine import SyncEngine
from padsync.client.sync.transports import create_transport
from padsync.client.tabs import TabCollection
from padsync.core.types import DocumentKind

if TYPE_CHECKING:
    import httpx

    from padsync.core.config import ServerConfig

logger = logging.getLogger(__name__)

SNAPSHOT_FILES = {
    DocumentKind.TAB: "tabs.json",
    DocumentKind.CLIPBOARD: "clipboard.json",
}


@dataclass
class Runtime:
    """Everything a device runs, built from the config directory."""

    state: LocalSyncState
    stores: dict[DocumentKind, DocumentStore]
    engine: SyncEngine
    tabs: TabCollection
    clipboard: ClipboardHistory
    server: ServerConfig | None
    client: StoreClient | None
    first_launch: bool

    def close(self) -> None:
        self.engine.close()
        for store in self.stores.values():
            store.save()
        if self.client is not None:
            self.client.close()
        self.state.close()


@contextmanager
def open_runtime(http_client: httpx.Client | None = None) -> Iterator[Runtime]:
    """Build the client components for one CLI invocation.

    Args:
        http_client: Pre-built httpx client for the store server (tests
            mount the ASGI app here).

    Yields:
        A Runtime; closed when the block exits.
    """
    config_dir = get_config_dir()
    config = load_config()
    settings = get_sync_settings(config)
    server = get_server_config(config)

    state = LocalSyncState(config_dir / "state.db")
    stores = {
        kind: DocumentStore(kind, config_dir / filename)
        for kind, filename in SNAPSHOT_FILES.items()
    }
    restored = [store.load() for store in stores.values()]

    client = StoreClient(server, client=http_client) if server else None
    transport = create_transport(settings, state, client)
    engine = SyncEngine(stores, transport, state, settings)

    runtime = Runtime(
        state=state,
        stores=stores,
        engine=engine,
        tabs=TabCollection(stores[DocumentKind.TAB], engine, state),
        clipboard=ClipboardHistory(stores[DocumentKind.CLIPBOARD], engine),
        server=server,
        client=client,
        first_launch=not any(restored),
    )
    logger.debug("Runtime opened from %s", config_dir)
    try:
        yield runtime
    finally:
        runtime.close()

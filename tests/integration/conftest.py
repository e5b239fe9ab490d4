"""Pytest fixtures for integration tests.

Devices talk to a real store server app mounted in-process through the
FastAPI TestClient, using the same HTTP backends as the CLI.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from dataclasses import dataclass
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from padsync.client.api import StoreClient
from padsync.client.clipboard import ClipboardHistory
from padsync.client.state import LocalSyncState
from padsync.client.store import DocumentStore
from padsync.client.sync.engine import SyncEngine
from padsync.client.sync.transports import create_transport
from padsync.client.tabs import TabCollection
from padsync.core.config import ServerConfig, SyncSettings
from padsync.core.types import DocumentKind
from padsync.server.app import create_app
from padsync.server.database import Database

TOKEN = "integration-token"


@dataclass
class SyncTestDevice:
    """Container for a simulated device."""

    name: str
    state: LocalSyncState
    engine: SyncEngine
    tabs: TabCollection
    clipboard: ClipboardHistory

    def sync(self) -> None:
        self.engine.sync_all()

    def tab_contents(self) -> list[str]:
        return sorted(tab.content for tab in self.tabs.tabs())

    def close(self) -> None:
        self.engine.close()
        self.state.close()


DeviceFactory = Callable[[str], SyncTestDevice]


@pytest.fixture
def server_db(tmp_path: Path) -> Generator[Database, None, None]:
    """Database of the in-process store server."""
    db = Database(tmp_path / "server.db")
    yield db
    db.close()


@pytest.fixture
def http_client(server_db: Database) -> Generator[TestClient, None, None]:
    """TestClient for a token-protected server."""
    with TestClient(create_app(server_db, token=TOKEN)) as client:
        yield client


@pytest.fixture
def store_client(http_client: TestClient) -> StoreClient:
    """StoreClient holding the server token."""
    return StoreClient(
        ServerConfig(server_url="http://testserver", token=TOKEN), client=http_client
    )


def _device_factory(
    tmp_path: Path,
    http_client: TestClient,
    transport: str,
) -> tuple[DeviceFactory, list[SyncTestDevice]]:
    devices: list[SyncTestDevice] = []
    config = ServerConfig(server_url="http://testserver", token=TOKEN)

    def make(name: str) -> SyncTestDevice:
        settings = SyncSettings(transport=transport, debounce_delay=60.0)
        state = LocalSyncState(tmp_path / name / "state.db")
        state.set_sync_enabled(True)
        stores = {
            DocumentKind.TAB: DocumentStore(DocumentKind.TAB, tmp_path / name / "tabs.json"),
            DocumentKind.CLIPBOARD: DocumentStore(
                DocumentKind.CLIPBOARD, tmp_path / name / "clipboard.json"
            ),
        }
        client = StoreClient(config, client=http_client)
        engine = SyncEngine(stores, create_transport(settings, state, client), state, settings)
        device = SyncTestDevice(
            name=name,
            state=state,
            engine=engine,
            tabs=TabCollection(stores[DocumentKind.TAB], engine, state),
            clipboard=ClipboardHistory(stores[DocumentKind.CLIPBOARD], engine),
        )
        devices.append(device)
        return device

    return make, devices


@pytest.fixture
def make_blob_device(
    tmp_path: Path, http_client: TestClient
) -> Generator[DeviceFactory, None, None]:
    """Factory for devices using the blob transport."""
    make, devices = _device_factory(tmp_path, http_client, "blob")
    yield make
    for device in devices:
        device.close()


@pytest.fixture
def make_record_device(
    tmp_path: Path, http_client: TestClient
) -> Generator[DeviceFactory, None, None]:
    """Factory for devices using the native-record transport."""
    make, devices = _device_factory(tmp_path, http_client, "records")
    yield make
    for device in devices:
        device.close()

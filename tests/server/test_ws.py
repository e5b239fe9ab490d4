"""Tests for WebSocket change notifications."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Generator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect, WebSocketState

from padsync.core.types import DocumentKind
from padsync.server.app import create_app
from padsync.server.database import Database
from padsync.server.ws import ChangeHub, kind_for_blob_key, kind_for_record_type


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


class TestKindMapping:
    """Tests for mapping storage names to collections."""

    def test_blob_keys(self) -> None:
        assert kind_for_blob_key("tabs") == DocumentKind.TAB
        assert kind_for_blob_key("deletedTabIDs") == DocumentKind.TAB
        assert kind_for_blob_key("clipboard") == DocumentKind.CLIPBOARD
        assert kind_for_blob_key("deletedClipboardIDs") == DocumentKind.CLIPBOARD
        assert kind_for_blob_key("other") is None

    def test_record_types(self) -> None:
        assert kind_for_record_type(DocumentKind.TAB.record_type) == DocumentKind.TAB
        assert kind_for_record_type("Unknown") is None


class TestChangeHub:
    """Tests for ChangeHub."""

    def _websocket(self) -> MagicMock:
        ws = MagicMock()
        ws.accept = AsyncMock()
        ws.send_text = AsyncMock()
        ws.client_state = WebSocketState.CONNECTED
        return ws

    def test_connect_and_disconnect(self) -> None:
        hub = ChangeHub()
        ws = self._websocket()
        counts: list[int] = []

        async def scenario() -> None:
            await hub.connect(ws)
            counts.append(hub.connection_count)
            await hub.disconnect(ws)
            counts.append(hub.connection_count)

        asyncio.run(scenario())
        assert counts == [1, 0]
        ws.accept.assert_awaited_once()

    def test_notify_sends_kind(self) -> None:
        hub = ChangeHub()
        ws = self._websocket()

        async def scenario() -> None:
            await hub.connect(ws)
            await hub.notify_change(DocumentKind.CLIPBOARD)

        asyncio.run(scenario())
        message = json.loads(ws.send_text.await_args.args[0])
        assert message == {"type": "change", "kind": "clipboard"}

    def test_failed_send_drops_connection(self) -> None:
        """Connections that fail to receive are removed."""
        hub = ChangeHub()
        broken = self._websocket()
        broken.send_text.side_effect = RuntimeError("closed")

        async def scenario() -> None:
            await hub.connect(broken)
            await hub.notify_change(None)

        asyncio.run(scenario())
        assert hub.connection_count == 0


class TestChangesEndpoint:
    """Tests for the /ws/changes endpoint."""

    def test_write_notifies_connected_device(self, db: Database) -> None:
        """A blob write is announced to connected devices."""
        with TestClient(create_app(db)) as client:
            with client.websocket_connect("/ws/changes") as ws:
                client.put("/api/blobs/clipboard", content=b"[]")
                assert ws.receive_json() == {"type": "change", "kind": "clipboard"}

    def test_record_write_notifies(self, db: Database) -> None:
        with TestClient(create_app(db)) as client:
            with client.websocket_connect("/ws/changes") as ws:
                client.put(
                    f"/api/records/{DocumentKind.TAB.record_type}/A", json={"fields": {}}
                )
                assert ws.receive_json() == {"type": "change", "kind": "tab"}

    def test_token_required(self, db: Database) -> None:
        """Connections without the right token are closed with 4001."""
        with TestClient(create_app(db, token="secret")) as client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect("/ws/changes?token=wrong") as ws:
                    ws.receive_text()
            assert exc_info.value.code == 4001

    def test_token_accepted(self, db: Database) -> None:
        with TestClient(create_app(db, token="secret")) as client:
            with client.websocket_connect("/ws/changes?token=secret") as ws:
                client.put(
                    "/api/blobs/tabs",
                    content=b"[]",
                    headers={"Authorization": "Bearer secret"},
                )
                assert ws.receive_json()["kind"] == "tab"

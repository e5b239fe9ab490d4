"""WebSocket hub for change notifications.

This module provides:
- ChangeHub: Tracks connected devices and tells them when a collection
  changed

Architecture:
    Device A ──http──► API ──notify──► ChangeHub ──ws──► Device B, C...

Notifications carry no data; devices answer them with a sync pass.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from padsync.core.types import DocumentKind

logger = logging.getLogger(__name__)

_KIND_BY_BLOB_KEY = {kind.blob_key: kind for kind in DocumentKind}
_KIND_BY_BLOB_KEY.update({kind.tombstone_key: kind for kind in DocumentKind})


def kind_for_blob_key(key: str) -> DocumentKind | None:
    """Map a blob key to the collection it belongs to, if any."""
    return _KIND_BY_BLOB_KEY.get(key)


def kind_for_record_type(record_type: str) -> DocumentKind | None:
    """Map a record type to its collection, if known."""
    try:
        return DocumentKind.from_record_type(record_type)
    except ValueError:
        return None


class ChangeHub:
    """Central hub for device WebSocket connections.

    Connections and notifications run on the server event loop.
    """

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        """Accept and register a device connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("Device connected (%d total)", len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("Device disconnected (%d total)", len(self._connections))

    async def notify_change(self, kind: DocumentKind | None) -> None:
        """Tell every connected device that a collection changed.

        Args:
            kind: Changed collection, or None when unknown.
        """
        message = json.dumps({
            "type": "change",
            "kind": kind.value if kind else None,
        })

        async with self._lock:
            disconnected = []
            for ws in self._connections:
                try:
                    if ws.client_state == WebSocketState.CONNECTED:
                        await ws.send_text(message)
                except Exception:
                    disconnected.append(ws)

            # Clean up disconnected
            for ws in disconnected:
                self._connections.discard(ws)

        logger.debug("Sent change notification for %s", kind.value if kind else "all")


# WebSocket router
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/changes")
async def websocket_changes(websocket: WebSocket) -> None:
    """WebSocket endpoint for change notifications.

    Devices connect with ?token=... when the server requires a token.

    Message format (server -> device):
        {"type": "change", "kind": "tab"}
        {"type": "change", "kind": null}
    """
    expected: str | None = websocket.app.state.token
    token = websocket.query_params.get("token")
    if expected and (token is None or not secrets.compare_digest(token, expected)):
        await websocket.close(code=4001, reason="Invalid token")
        return

    hub: ChangeHub = websocket.app.state.hub
    await hub.connect(websocket)

    try:
        while True:
            # Devices don't send messages, just wait for disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception as e:
        logger.exception("Error in change WebSocket: %s", e)
        await hub.disconnect(websocket)

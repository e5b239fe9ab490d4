"""Remote change listener for near-real-time sync triggers.

This module provides:
- RemoteChangeListener: WebSocket client that turns server change
  notifications into sync triggers

Architecture:
    Server ─push─► RemoteChangeListener ─on_change(kind)─► SyncScheduler

Notifications are only hints: the listener never carries data, it just
asks for a pass. After every (re)connect it triggers every kind once,
since changes may have happened while it was disconnected.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import ssl
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

import websockets
from websockets.exceptions import WebSocketException

from padsync.core.types import DocumentKind

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

    from padsync.core.config import ServerConfig

logger = logging.getLogger(__name__)

# Called with the changed kind, or None when every kind may have changed
ChangeCallback = Callable[[DocumentKind | None], None]


def ssl_context_for(config: ServerConfig) -> ssl.SSLContext | None:
    """TLS context for a wss:// URL, or None for plain ws://."""
    if not config.ws_url.startswith("wss://"):
        return None
    context = ssl.create_default_context()
    if not config.verify_ssl:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class RemoteChangeListener:
    """WebSocket listener for remote change notifications.

    Usage:
        listener = RemoteChangeListener(config, scheduler.notify_remote_changed)
        listener.start()
        # ...
        listener.stop()
    """

    def __init__(
        self,
        config: ServerConfig,
        on_change: ChangeCallback,
        reconnect_delay: float = 5.0,
    ) -> None:
        """Initialize the remote change listener.

        Args:
            config: Server configuration with URL and token.
            on_change: Called for each notification and after each connect.
            reconnect_delay: Delay between reconnection attempts.
        """
        self._config = config
        self._on_change = on_change
        self._reconnect_delay = reconnect_delay

        self._ws: ClientConnection | None = None
        self._connects = 0
        self._running = False
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stopped: asyncio.Event | None = None

    @property
    def connected(self) -> bool:
        """Check if a connection is open."""
        return self._ws is not None

    @property
    def ws_url(self) -> str:
        return self._config.ws_url

    def start(self) -> None:
        """Start listening in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning("RemoteChangeListener already running")
            return

        self._running = True
        self._thread = threading.Thread(
            target=self._run, name="RemoteChangeListener", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Close the connection and wait for the thread to finish."""
        self._running = False
        loop = self._loop
        if loop is not None:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(self._wake)
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None
        logger.info("RemoteChangeListener stopped")

    def _wake(self) -> None:
        if self._stopped is not None:
            self._stopped.set()
        if self._ws is not None:
            asyncio.ensure_future(self._ws.close())

    def _run(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._stopped = asyncio.Event()
        try:
            self._loop.run_until_complete(self._serve())
        finally:
            self._loop.close()
            self._loop = None
            self._stopped = None

    async def _serve(self) -> None:
        """Listen until stopped, reconnecting after failures."""
        while self._running:
            try:
                await self._listen_once()
            except (WebSocketException, OSError) as e:
                if self._ws is not None:
                    logger.warning("RemoteChangeListener disconnected: %s", e)
                else:
                    logger.debug("Change notifications unavailable: %s", e)
            except Exception as e:
                logger.warning("RemoteChangeListener error: %s", e)
                logger.debug("Full traceback:", exc_info=True)
            finally:
                self._ws = None

            if not self._running:
                break
            logger.info("RemoteChangeListener reconnecting in %.0fs", self._reconnect_delay)
            if await self._sleep_or_stop(self._reconnect_delay):
                break

    async def _listen_once(self) -> None:
        async with websockets.connect(
            self.ws_url,
            ssl=ssl_context_for(self._config),
            open_timeout=10,
            close_timeout=5,
        ) as ws:
            self._ws = ws
            self._connects += 1
            logger.info(
                "%s to change notifications",
                "Reconnected" if self._connects > 1 else "Connected",
            )
            # Anything may have changed while we were not listening
            self._notify(None)
            async for message in ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8")
                self.handle_message(message)

    async def _sleep_or_stop(self, delay: float) -> bool:
        """Wait for delay seconds. Returns True if stopped meanwhile."""
        stopped = self._stopped
        if stopped is None:
            return True
        try:
            await asyncio.wait_for(stopped.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    def handle_message(self, message: str) -> None:
        """Handle an incoming message from the server.

        Supported message types:
        - change: {"type": "change", "kind": "tab" | "clipboard"}

        Args:
            message: Raw message string.
        """
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("Invalid message received: %s", message[:100])
            return

        if not isinstance(data, dict) or data.get("type") != "change":
            return

        raw_kind = data.get("kind")
        kind: DocumentKind | None = None
        if raw_kind is not None:
            try:
                kind = DocumentKind(raw_kind)
            except ValueError:
                logger.debug("Ignoring change for unknown kind: %s", raw_kind)
                return

        logger.debug("Received change notification for %s", raw_kind or "all")
        self._notify(kind)

    def _notify(self, kind: DocumentKind | None) -> None:
        try:
            self._on_change(kind)
        except Exception:
            logger.exception("Change callback failed")

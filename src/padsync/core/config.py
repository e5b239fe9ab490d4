"""Shared configuration classes for padsync.

This module defines configuration classes used by both client and server components.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

from padsync.core.types import DocumentKind

TRANSPORT_BLOB = "blob"
TRANSPORT_RECORDS = "records"


@dataclass
class ServerConfig:
    """Configuration for connecting to a padsync store server.

    Used by both the HTTP backends and the WebSocket change listener
    to ensure consistent connection settings.

    Attributes:
        server_url: Base URL of the server (e.g., "https://pad.example.com").
        token: Optional bearer token for the store.
        timeout: Request/connection timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str | None = None
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def ws_url(self) -> str:
        """Get WebSocket URL for change notifications.

        Returns:
            WebSocket URL of the change feed endpoint.
        """
        url = self.server_url
        if url.startswith("https://"):
            url = "wss://" + url[8:]
        elif url.startswith("http://"):
            url = "ws://" + url[7:]
        if self.token:
            return f"{url}/ws/changes?token={self.token}"
        return f"{url}/ws/changes"

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS/WSS."""
        return self.server_url.startswith("https://")

    @property
    def headers(self) -> dict[str, str]:
        """HTTP headers to send with every request."""
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}


@dataclass
class SyncSettings:
    """Tunables of the sync engine.

    Local caps are larger than remote caps so a device that lags behind
    never loses entries it has not pushed yet.

    Attributes:
        transport: "blob" for the wholesale key-value shape, "records" for
            the per-document record shape.
        debounce_delay: Seconds of quiet before a save/push fires.
        poll_interval: Seconds between periodic pulls.
        burst_delays: Offsets (seconds) of the retry burst after enabling.
        remote_caps: Maximum number of documents kept remotely per kind
            (None = unbounded).
        local_caps: Maximum number of documents kept locally per kind.
        initial_backoff: First delay after a failed pass.
        max_backoff: Upper bound of the failure backoff.
        backoff_multiplier: Growth factor of the failure backoff.
        tombstone_ttl_days: Expire local tombstones older than this
            (None = keep forever).
    """

    transport: str = TRANSPORT_BLOB
    debounce_delay: float = 1.0
    poll_interval: float = 60.0
    burst_delays: tuple[float, ...] = (2.0, 5.0, 10.0)
    remote_caps: dict[str, int | None] = field(
        default_factory=lambda: {
            DocumentKind.TAB.value: None,
            DocumentKind.CLIPBOARD.value: 200,
        }
    )
    local_caps: dict[str, int | None] = field(
        default_factory=lambda: {
            DocumentKind.TAB.value: None,
            DocumentKind.CLIPBOARD.value: 1000,
        }
    )
    initial_backoff: float = 5.0
    max_backoff: float = 300.0
    backoff_multiplier: float = 2.0
    tombstone_ttl_days: float | None = None

    def __post_init__(self) -> None:
        if self.transport not in (TRANSPORT_BLOB, TRANSPORT_RECORDS):
            raise ValueError(f"Unknown transport: {self.transport}")
        self.burst_delays = tuple(float(d) for d in self.burst_delays)

    def remote_cap(self, kind: DocumentKind) -> int | None:
        """Maximum number of documents of this kind kept remotely."""
        return self.remote_caps.get(kind.value)

    def local_cap(self, kind: DocumentKind) -> int | None:
        """Maximum number of documents of this kind kept locally."""
        return self.local_caps.get(kind.value)

    @property
    def tombstone_ttl(self) -> float | None:
        """Tombstone time-to-live in seconds, or None."""
        if self.tombstone_ttl_days is None:
            return None
        return self.tombstone_ttl_days * 86400.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        data = asdict(self)
        data["burst_delays"] = list(self.burst_delays)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncSettings:
        """Build settings from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

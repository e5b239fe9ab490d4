"""HTTP client for the padsync store server.

This module provides:
- StoreClient: Shared httpx client with error mapping
- HTTPKeyValueStore: KeyValueBackend over /api/blobs
- HTTPRecordStore: RecordBackend over /api/records
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from padsync.client.sync.transports.base import ChangeFeed, RemoteRecord
from padsync.client.sync.types import (
    AuthenticationError,
    ChangeFeedExpiredError,
    RecordConflictError,
    TransportError,
)
from padsync.core.config import ServerConfig

logger = logging.getLogger(__name__)


class StoreClient:
    """HTTP client for the padsync store server."""

    def __init__(
        self,
        config: ServerConfig,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the store client.

        Args:
            config: Server URL, token and timeouts.
            client: Pre-built httpx client (e.g. a FastAPI TestClient);
                built from config when omitted.
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers=config.headers,
        )
        if client is not None:
            client.headers.update(config.headers)

    def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> StoreClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping network failures to TransportError."""
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions.

        404 and 409 are returned to the caller, which knows what they mean
        for its resource.
        """
        if response.status_code == 401:
            raise AuthenticationError("Invalid or missing token", 401)
        if response.status_code == 410:
            raise ChangeFeedExpiredError(_detail(response, "Change feed expired"), 410)
        if response.status_code >= 400 and response.status_code not in (404, 409):
            raise TransportError(
                _detail(response, "Unknown error"), response.status_code
            )
        return response

    def health_check(self) -> bool:
        """Check if the server is healthy."""
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False


def _detail(response: httpx.Response, default: str) -> str:
    try:
        return str(response.json().get("detail", default))
    except ValueError:
        return default


class HTTPKeyValueStore:
    """KeyValueBackend backed by the server's blob endpoints."""

    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def _url(self, key: str) -> str:
        return f"/api/blobs/{quote(key, safe='')}"

    def get(self, key: str) -> bytes | None:
        response = self._client.request("GET", self._url(key))
        if response.status_code == 404:
            return None
        return response.content

    def set(self, key: str, value: bytes) -> None:
        self._client.request(
            "PUT",
            self._url(key),
            content=value,
            headers={"Content-Type": "application/octet-stream"},
        )

    def delete(self, key: str) -> None:
        self._client.request("DELETE", self._url(key))

    def synchronize(self) -> None:
        # Every write is already a completed request
        return None


class HTTPRecordStore:
    """RecordBackend backed by the server's record endpoints."""

    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def fetch_changes(self, record_type: str, cursor: int | None) -> ChangeFeed:
        response = self._client.request(
            "GET",
            f"/api/records/{record_type}/changes",
            params={"cursor": str(cursor or 0)},
        )
        data = response.json()
        return ChangeFeed(
            records=[RemoteRecord.from_dict(r) for r in data["records"]],
            cursor=int(data["cursor"]),
            has_more=bool(data.get("has_more", False)),
        )

    def fetch_all(self, record_type: str) -> tuple[list[RemoteRecord], int]:
        response = self._client.request("GET", f"/api/records/{record_type}")
        data = response.json()
        return [RemoteRecord.from_dict(r) for r in data["records"]], int(data["cursor"])

    def save(
        self,
        record_type: str,
        record_id: str,
        fields: dict[str, Any],
        expected_tag: str | None,
    ) -> RemoteRecord:
        response = self._client.request(
            "PUT",
            f"/api/records/{record_type}/{quote(record_id, safe='')}",
            json={"fields": fields, "expected_tag": expected_tag},
        )
        if response.status_code == 409:
            detail = response.json().get("detail") or {}
            current = detail.get("current") if isinstance(detail, dict) else None
            raise RecordConflictError(
                record_id,
                current.get("change_tag") if current else None,
                current.get("fields") if current else None,
            )
        return RemoteRecord.from_dict(response.json())

    def delete(self, record_type: str, record_id: str) -> None:
        self._client.request(
            "DELETE", f"/api/records/{record_type}/{quote(record_id, safe='')}"
        )

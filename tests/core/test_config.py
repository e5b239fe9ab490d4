"""Tests for core configuration classes."""

from __future__ import annotations

import pytest

from padsync.core.config import TRANSPORT_RECORDS, ServerConfig, SyncSettings
from padsync.core.types import DocumentKind


class TestServerConfig:
    """Tests for ServerConfig class."""

    def test_init_basic(self) -> None:
        """Should initialize with required fields."""
        config = ServerConfig(server_url="https://example.com", token="test-token")
        assert config.server_url == "https://example.com"
        assert config.token == "test-token"
        assert config.timeout == 30.0
        assert config.verify_ssl is True

    def test_url_trailing_slash_removed(self) -> None:
        """Should strip trailing slash from server URL."""
        config = ServerConfig(server_url="https://example.com/")
        assert config.server_url == "https://example.com"

    def test_ws_url_https(self) -> None:
        """Should convert HTTPS to WSS and pass the token as a query parameter."""
        config = ServerConfig(server_url="https://example.com", token="test-token")
        assert config.ws_url == "wss://example.com/ws/changes?token=test-token"

    def test_ws_url_http_without_token(self) -> None:
        """Should convert HTTP to WS and omit the query without a token."""
        config = ServerConfig(server_url="http://localhost:8000")
        assert config.ws_url == "ws://localhost:8000/ws/changes"

    def test_is_secure(self) -> None:
        """HTTPS servers are secure, HTTP servers are not."""
        assert ServerConfig(server_url="https://example.com").is_secure
        assert not ServerConfig(server_url="http://example.com").is_secure

    def test_headers(self) -> None:
        """Bearer header is only sent when a token is configured."""
        assert ServerConfig(server_url="http://x", token="abc").headers == {
            "Authorization": "Bearer abc"
        }
        assert ServerConfig(server_url="http://x").headers == {}


class TestSyncSettings:
    """Tests for SyncSettings class."""

    def test_defaults(self) -> None:
        """Defaults match the documented tunables."""
        settings = SyncSettings()
        assert settings.transport == "blob"
        assert settings.debounce_delay == 1.0
        assert settings.poll_interval == 60.0
        assert settings.burst_delays == (2.0, 5.0, 10.0)
        assert settings.remote_cap(DocumentKind.TAB) is None
        assert settings.remote_cap(DocumentKind.CLIPBOARD) == 200
        assert settings.local_cap(DocumentKind.CLIPBOARD) == 1000
        assert settings.tombstone_ttl is None

    def test_unknown_transport_rejected(self) -> None:
        """Only the two transport shapes are accepted."""
        with pytest.raises(ValueError, match="Unknown transport"):
            SyncSettings(transport="ftp")

    def test_tombstone_ttl_in_seconds(self) -> None:
        """TTL is configured in days and exposed in seconds."""
        settings = SyncSettings(tombstone_ttl_days=2)
        assert settings.tombstone_ttl == 2 * 86400.0

    def test_round_trip_dict(self) -> None:
        """to_dict output builds equal settings."""
        settings = SyncSettings(transport=TRANSPORT_RECORDS, burst_delays=(1.0,))
        restored = SyncSettings.from_dict(settings.to_dict())
        assert restored == settings

    def test_from_dict_ignores_unknown_keys(self) -> None:
        """Unknown keys in a config file are ignored."""
        settings = SyncSettings.from_dict({"poll_interval": 5, "color": "blue"})
        assert settings.poll_interval == 5

    def test_burst_delays_from_list(self) -> None:
        """Burst delays loaded from JSON lists become float tuples."""
        settings = SyncSettings.from_dict({"burst_delays": [1, 2]})
        assert settings.burst_delays == (1.0, 2.0)

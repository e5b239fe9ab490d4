"""Core module - Shared configuration and enums."""

from padsync.core.config import (
    TRANSPORT_BLOB,
    TRANSPORT_RECORDS,
    ServerConfig,
    SyncSettings,
)
from padsync.core.types import DocumentKind, SyncState

__all__ = [
    # Config
    "TRANSPORT_BLOB",
    "TRANSPORT_RECORDS",
    "ServerConfig",
    "SyncSettings",
    # Types
    "DocumentKind",
    "SyncState",
]

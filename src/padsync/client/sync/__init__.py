"""Cross-device sync of document collections.

Architecture:
    mutators → DocumentStore → ChangeTracker → SyncEngine → RemoteTransport
                                                  ▲
                          SyncScheduler ──────────┘ ◄── RemoteChangeListener

Components:
- **SyncEngine** (engine.py): pull, merge, apply and push per collection
- **merge_documents** (merge.py): pure last-write-wins merge with tombstones
- **TombstoneLedger** (tombstones.py): deleted ids that must never come back
- **ChangeTracker** (tracker.py): debounced snapshot saves and pushes
- **SyncScheduler** (scheduler.py): polling, retry burst, triggers, backoff
- **RemoteChangeListener** (remote_listener.py): websocket change hints
- **Transports** (transports/): blob shape and native-record shape

Only leaf modules are re-exported here; import the engine, scheduler and
transports from their modules.
"""

from padsync.client.sync.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF,
    Backoff,
)
from padsync.client.sync.tombstones import TombstoneLedger
from padsync.client.sync.tracker import ChangeTracker, DeferredTask
from padsync.client.sync.types import (
    AuthenticationError,
    ChangeFeedExpiredError,
    DecodeError,
    MergeCallback,
    MergeEvent,
    MergeResult,
    MutationListener,
    MutationOrigin,
    NotFoundError,
    PadSyncError,
    PersistenceError,
    PushResult,
    RecordConflictError,
    RemoteSnapshot,
    StoreMutation,
    SyncReport,
    TransportError,
)

__all__ = [
    # Retry
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_INITIAL_BACKOFF",
    "DEFAULT_MAX_BACKOFF",
    "Backoff",
    # Tombstones
    "TombstoneLedger",
    # Tracker
    "ChangeTracker",
    "DeferredTask",
    # Types
    "AuthenticationError",
    "ChangeFeedExpiredError",
    "DecodeError",
    "MergeCallback",
    "MergeEvent",
    "MergeResult",
    "MutationListener",
    "MutationOrigin",
    "NotFoundError",
    "PadSyncError",
    "PersistenceError",
    "PushResult",
    "RecordConflictError",
    "RemoteSnapshot",
    "StoreMutation",
    "SyncReport",
    "TransportError",
]

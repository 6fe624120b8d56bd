"""
Kernel - Core event sourcing infrastructure

The kernel provides the machinery the tender and bid modules build upon:
an append-only event store with per-stream optimistic locking, id and
clock providers, the error taxonomy, and operational concerns (logging,
metrics, retries, deadlines, policy).

Fun fact: Event sourcing was inspired by accountants - they never erase ledger
entries, they add correcting entries. A rollback here works the same way.
"""

from tender_quorum.kernel.errors import (
    Conflict,
    EventStoreError,
    InvalidInput,
    InvalidStatusTransition,
    NotFound,
    StreamVersionConflict,
    TenderQuorumError,
    Unauthorized,
    Unavailable,
)
from tender_quorum.kernel.event_store import EventStore, SQLiteEventStore, StreamAppend
from tender_quorum.kernel.events import Event
from tender_quorum.kernel.ids import IdFactory, generate_id
from tender_quorum.kernel.policy import MarketplacePolicy
from tender_quorum.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Events & storage
    "Event",
    "EventStore",
    "SQLiteEventStore",
    "StreamAppend",
    # Policy
    "MarketplacePolicy",
    # Errors
    "TenderQuorumError",
    "NotFound",
    "Unauthorized",
    "InvalidStatusTransition",
    "InvalidInput",
    "Conflict",
    "StreamVersionConflict",
    "Unavailable",
    "EventStoreError",
]

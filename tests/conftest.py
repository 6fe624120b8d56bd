"""
Pytest configuration and shared fixtures

Every test gets its own SQLite file, a frozen clock and sequential ids, so
event payloads and ids are deterministic.
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from tender_quorum.auth.directory import SQLiteResponsibilityDirectory
from tender_quorum.kernel.event_store import SQLiteEventStore
from tender_quorum.kernel.ids import SequentialIdFactory
from tender_quorum.kernel.policy import MarketplacePolicy
from tender_quorum.kernel.time import TestTimeProvider
from tender_quorum.ledger.handlers import VersionLedger
from tender_quorum.marketplace import Marketplace
from tender_quorum.tender.handlers import TenderCommandHandlers


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp) / "market.db"


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """Controllable clock, starting 2025-01-15 12:00:00 UTC"""
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def ids() -> SequentialIdFactory:
    return SequentialIdFactory("id")


@pytest.fixture
def policy() -> MarketplacePolicy:
    return MarketplacePolicy()


@pytest.fixture
def tender_ledger(
    event_store: SQLiteEventStore, test_time: TestTimeProvider, ids: SequentialIdFactory
) -> VersionLedger:
    return VersionLedger(event_store, "tender", test_time, ids)


@pytest.fixture
def bid_ledger(
    event_store: SQLiteEventStore, test_time: TestTimeProvider, ids: SequentialIdFactory
) -> VersionLedger:
    return VersionLedger(event_store, "bid", test_time, ids)


@pytest.fixture
def tender_handlers(
    test_time: TestTimeProvider,
    policy: MarketplacePolicy,
    tender_ledger: VersionLedger,
    ids: SequentialIdFactory,
) -> TenderCommandHandlers:
    """Stateless handlers - they take loaded state as parameters"""
    return TenderCommandHandlers(test_time, policy, tender_ledger, ids)


@pytest.fixture
def directory(temp_db: Path) -> SQLiteResponsibilityDirectory:
    return SQLiteResponsibilityDirectory(temp_db)


@pytest.fixture
def market(
    temp_db: Path,
    test_time: TestTimeProvider,
    ids: SequentialIdFactory,
) -> Marketplace:
    """
    Marketplace seeded with two organizations

    - org-a (tender owner): alice
    - org-b (bidder): u1..u5
    """
    marketplace = Marketplace(temp_db, time_provider=test_time, id_factory=ids)
    marketplace.directory.grant("org-a", "alice")
    for n in range(1, 6):
        marketplace.directory.grant("org-b", f"u{n}")
    return marketplace

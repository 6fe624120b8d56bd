"""
Retry logic with exponential backoff for transient failures.

Two kinds of transient failure exist in the core:
- optimistic locking conflicts (another writer appended first) - the
  operation reloads state and runs again
- SQLite lock contention ("database is locked") on the write lock
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tender_quorum.kernel.errors import Conflict
from tender_quorum.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _log_retry(message: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            message,
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    return before_sleep


def retry_on_conflict(
    max_attempts: int = 5,
    min_wait_ms: int = 5,
    max_wait_ms: int = 200,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for optimistic locking conflicts.

    The wrapped function must reload everything it depends on, since each
    attempt has to see the state that beat it. After max_attempts the last
    Conflict is re-raised to the caller.

    Example:
        @retry_on_conflict(max_attempts=5)
        def attempt():
            bid = load_bid(bid_id)
            store.append_streams(build_events(bid))
    """
    return retry(
        retry=retry_if_exception_type(Conflict),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=min_wait_ms / 1000.0 or 0.001,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=_log_retry("Version conflict detected, retrying"),
        reraise=True,
    )


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 100,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention (OperationalError).

    SQLite uses file-based locking and can report "database is locked"
    when the busy timeout elapses under concurrent writers.
    """
    return retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=_log_retry("SQLite lock detected, retrying"),
        reraise=True,
    )

"""
Deadlines for façade operations.

An operation that exceeds its deadline raises OperationTimeout. Writes are
single transactions, so an aborted operation leaves nothing behind: the
open transaction is rolled back by the event store.
"""

import signal
import threading
from contextlib import contextmanager
from typing import Any, Generator

from tender_quorum.kernel.errors import OperationTimeout
from tender_quorum.kernel.logging import get_logger

logger = get_logger(__name__)


def _alarm_supported() -> bool:
    return hasattr(signal, "SIGALRM") and threading.current_thread() is threading.main_thread()


@contextmanager
def timeout_context(
    seconds: int | None, operation_name: str = "operation"
) -> Generator[None, None, None]:
    """
    Raise OperationTimeout if the block runs longer than `seconds`.

    Uses SIGALRM, so the deadline is only enforced on Unix in the main
    thread. Elsewhere (worker threads, Windows) and when seconds is None
    the block runs without a deadline.

    Example:
        with timeout_context(30, "approve_bid"):
            market.approve_bid(bid_id, approver_id)
    """
    if not seconds or not _alarm_supported():
        yield
        return

    def _timeout_handler(signum: int, frame: Any) -> None:
        logger.error(
            "Operation exceeded timeout",
            operation=operation_name,
            timeout_seconds=seconds,
        )
        raise OperationTimeout(operation_name, seconds)

    old_handler = signal.signal(signal.SIGALRM, _timeout_handler)
    signal.alarm(seconds)

    try:
        yield
    finally:
        signal.alarm(0)
        signal.signal(signal.SIGALRM, old_handler)

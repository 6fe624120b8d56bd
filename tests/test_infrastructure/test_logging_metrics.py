"""
Test infrastructure components: logging, metrics, retry, timeout, policy.

These tests verify the operational plumbing around the core works.
"""

import signal
import sqlite3
import threading
import time

import pytest
import structlog

from tender_quorum.kernel.errors import OperationTimeout, StreamVersionConflict
from tender_quorum.kernel.event_store import SQLiteEventStore
from tender_quorum.kernel.logging import (
    REDACTED_VALUE,
    LogOperation,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_context,
    set_correlation_id,
)
from tender_quorum.kernel.metrics import (
    commands_processed_total,
    events_appended_total,
    stream_version_conflicts_total,
    track_command_duration,
)
from tender_quorum.kernel.policy import MarketplacePolicy
from tender_quorum.kernel.retry import retry_on_conflict, retry_on_sqlite_lock
from tender_quorum.kernel.timeout import timeout_context
from tests.helpers import make_event


class TestLoggingFramework:
    """Test structured logging framework."""

    def test_configure_logging_console(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        assert get_logger(__name__) is not None

    def test_configure_logging_json(self) -> None:
        configure_logging(json_output=True, log_level="DEBUG")
        assert get_logger(__name__) is not None

    def test_correlation_id(self) -> None:
        assert get_correlation_id()

        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

    def test_user_ids_are_redacted(self) -> None:
        redacted = redact_context({"approver_id": "u1", "bid_id": "b-1", "actor_id": None})

        assert redacted == {
            "approver_id": REDACTED_VALUE,
            "bid_id": "b-1",
            "actor_id": REDACTED_VALUE,
        }

    def test_log_operation_context_manager(self) -> None:
        logger = get_logger(__name__)

        with LogOperation(logger, "test_operation", bid_id="b-1"):
            pass

    def test_log_operation_binds_context_for_nested_logs(self) -> None:
        logger = get_logger(__name__)

        with LogOperation(logger, "approve_bid", bid_id="b-1", approver_id="u1"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["operation"] == "approve_bid"
            assert bound["bid_id"] == "b-1"
            assert bound["approver_id"] == REDACTED_VALUE

        assert "operation" not in structlog.contextvars.get_contextvars()

    def test_log_operation_reraises(self) -> None:
        logger = get_logger(__name__)

        with pytest.raises(ValueError):
            with LogOperation(logger, "failing_operation"):
                raise ValueError("Test error")


class TestMetrics:
    """Test Prometheus metrics collection."""

    def test_events_appended_metric(self, event_store: SQLiteEventStore) -> None:
        counter = events_appended_total.labels(stream_type="metrics", event_type="Ping")
        before = counter._value.get()

        event_store.append(
            "m-1", 0, [make_event("m-1", 1, "Ping", stream_type="metrics")]
        )

        assert counter._value.get() == before + 1

    def test_conflict_metric(self, event_store: SQLiteEventStore) -> None:
        counter = stream_version_conflicts_total.labels(stream_type="metrics")
        event_store.append("m-2", 0, [make_event("m-2", 1, stream_type="metrics")])
        before = counter._value.get()

        with pytest.raises(StreamVersionConflict):
            event_store.append(
                "m-2", 0, [make_event("m-2", 1, stream_type="metrics", command_id="late")]
            )

        assert counter._value.get() == before + 1

    def test_track_command_duration_counts_outcomes(self) -> None:
        @track_command_duration("metrics_probe")
        def probe(fail: bool) -> str:
            if fail:
                raise RuntimeError("boom")
            return "ok"

        ok = commands_processed_total.labels(command_type="metrics_probe", status="success")
        failed = commands_processed_total.labels(command_type="metrics_probe", status="failure")
        ok_before, failed_before = ok._value.get(), failed._value.get()

        assert probe(False) == "ok"
        with pytest.raises(RuntimeError):
            probe(True)

        assert ok._value.get() == ok_before + 1
        assert failed._value.get() == failed_before + 1


class TestRetry:
    """Test tenacity-based retry decorators."""

    def test_conflict_is_retried_until_success(self) -> None:
        calls = []

        @retry_on_conflict(max_attempts=3, min_wait_ms=0, max_wait_ms=0)
        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise StreamVersionConflict("s", 0, 1)
            return "done"

        assert flaky() == "done"
        assert len(calls) == 3

    def test_conflict_reraised_after_last_attempt(self) -> None:
        calls = []

        @retry_on_conflict(max_attempts=2, min_wait_ms=0, max_wait_ms=0)
        def always_conflicts() -> None:
            calls.append(1)
            raise StreamVersionConflict("s", 0, 1)

        with pytest.raises(StreamVersionConflict):
            always_conflicts()
        assert len(calls) == 2

    def test_other_errors_are_not_retried(self) -> None:
        calls = []

        @retry_on_conflict(max_attempts=5, min_wait_ms=0, max_wait_ms=0)
        def broken() -> None:
            calls.append(1)
            raise ValueError("not transient")

        with pytest.raises(ValueError):
            broken()
        assert len(calls) == 1

    def test_sqlite_lock_is_retried(self) -> None:
        calls = []

        @retry_on_sqlite_lock(max_attempts=2, min_wait_ms=0, max_wait_ms=0)
        def locked_once() -> str:
            calls.append(1)
            if len(calls) == 1:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        assert locked_once() == "ok"
        assert len(calls) == 2


class TestTimeout:
    """Test SIGALRM deadlines."""

    @pytest.mark.skipif(not hasattr(signal, "SIGALRM"), reason="SIGALRM not available")
    def test_slow_block_times_out(self) -> None:
        with pytest.raises(OperationTimeout) as exc_info:
            with timeout_context(1, "slow_operation"):
                time.sleep(3)

        assert exc_info.value.operation == "slow_operation"

    def test_no_deadline_when_seconds_is_none(self) -> None:
        with timeout_context(None, "unbounded"):
            pass

    def test_worker_threads_run_without_deadline(self) -> None:
        errors: list[BaseException] = []

        def worker() -> None:
            try:
                with timeout_context(1, "in_thread"):
                    pass
            except BaseException as e:  # collected for the assertion below
                errors.append(e)

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()
        assert errors == []


class TestPolicy:
    """Test policy defaults and environment overrides."""

    def test_defaults(self) -> None:
        policy = MarketplacePolicy()

        assert policy.quorum_cap == 3
        assert policy.allowed_service_types == ["Construction", "IT", "Consulting"]
        assert policy.operation_timeout_seconds is None

    def test_from_env(self) -> None:
        policy = MarketplacePolicy.from_env(
            {
                "TQ_QUORUM_CAP": "2",
                "TQ_ALLOWED_SERVICE_TYPES": "IT, Legal ,",
                "TQ_MAX_CONFLICT_RETRIES": "9",
                "TQ_OPERATION_TIMEOUT_SECONDS": "30",
                "TQ_SQLITE_BUSY_TIMEOUT_SECONDS": "1.5",
            }
        )

        assert policy.quorum_cap == 2
        assert policy.allowed_service_types == ["IT", "Legal"]
        assert policy.max_conflict_retries == 9
        assert policy.operation_timeout_seconds == 30
        assert policy.sqlite_busy_timeout_seconds == 1.5

    def test_from_env_ignores_unset_variables(self) -> None:
        assert MarketplacePolicy.from_env({}) == MarketplacePolicy()

    def test_empty_service_type_list_rejected(self) -> None:
        with pytest.raises(ValueError):
            MarketplacePolicy(allowed_service_types=[" "])

    def test_policy_is_frozen(self) -> None:
        policy = MarketplacePolicy()
        with pytest.raises(Exception):
            policy.quorum_cap = 5  # type: ignore[misc]


def test_environment_variable_selects_production(monkeypatch: pytest.MonkeyPatch) -> None:
    from tender_quorum.kernel.logging import is_production

    monkeypatch.setenv("ENVIRONMENT", "production")
    assert is_production()

    monkeypatch.setenv("ENVIRONMENT", "development")
    assert not is_production()

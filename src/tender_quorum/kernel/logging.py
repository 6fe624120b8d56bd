"""
Structured logging for Tender Quorum.

Every façade operation runs inside a LogOperation, which binds the
operation name, the entity ids it touches and a correlation id into
structlog's context. Anything logged underneath (conflict retries, event
store appends, directory failures) carries the same fields, so one
approve_bid (bid vote + tender cascade) can be followed across its retries.

User identifiers are personal data and are redacted before they reach a
log record.
"""

import contextvars
import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

REDACTED_FIELDS = frozenset(
    {
        "actor_id",
        "user_id",
        "creator_id",
        "approver_id",
        "rejecter_id",
        "rejected_by",
    }
)
REDACTED_VALUE = "***REDACTED***"


def get_correlation_id() -> str:
    """Current correlation id; a fresh one is minted on first use in a context"""
    cid = correlation_id_var.get()
    if not cid:
        cid = secrets.token_urlsafe(16)
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def _stamp_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict.setdefault("correlation_id", get_correlation_id())
    return event_dict


def _redact_processor(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    return redact_context(event_dict)


def is_production() -> bool:
    """True when ENVIRONMENT=production (defaults to development)."""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def configure_logging(
    *,
    json_output: bool | None = None,
    log_level: str | None = None,
) -> None:
    """
    Configure structlog on top of stdlib logging, writing to stderr.

    stdout is left to CLI output (``--json`` listings must stay parseable).

    Args:
        json_output: JSON lines instead of console rendering. Defaults to
            True in production.
        log_level: Level name. Defaults to $TQ_LOG_LEVEL, then INFO.
    """
    if json_output is None:
        json_output = is_production()
    level_name = (log_level or os.getenv("TQ_LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger().setLevel(level)
    # Flask's request log would otherwise interleave with the probe records
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _stamp_correlation_id,
        _redact_processor,
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Replace user identifiers with a marker.

    Example:
        >>> redact_context({"approver_id": "u1", "bid_id": "b1"})
        {'approver_id': '***REDACTED***', 'bid_id': 'b1'}
    """
    return {k: REDACTED_VALUE if k in REDACTED_FIELDS else v for k, v in context.items()}


class LogOperation:
    """
    Log start, completion or failure of one façade operation with its timing.

    While the block runs, `operation` and the given context are bound into
    structlog's contextvars, so nested log calls inherit them.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: float = 0.0
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self._tokens = structlog.contextvars.bind_contextvars(
            operation=self.operation,
            correlation_id=get_correlation_id(),
            **redact_context(self.context),
        )
        self.logger.info(f"{self.operation} started")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        try:
            if exc_type is None:
                self.logger.info(f"{self.operation} completed", duration_ms=duration_ms)
            else:
                # Stack traces only outside production
                self.logger.error(
                    f"{self.operation} failed",
                    duration_ms=duration_ms,
                    error_type=exc_type.__name__,
                    error=str(exc_val),
                    exc_info=not is_production(),
                )
        finally:
            structlog.contextvars.reset_contextvars(**self._tokens)

"""
Structured logging for the vesting ledger.

structlog on top of stdlib logging, writing to stderr. Every entry carries a
correlation ID; account identities and amounts are masked by a processor in
the chain, so no call site can leak them by accident.
"""

import contextvars
import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

REDACTED = "***REDACTED***"

# Account identities and amounts stay out of shared logs
REDACTED_FIELDS = frozenset(
    {
        "caller",
        "recipient",
        "funder",
        "new_admin",
        "account",
        "amount",
        "total",
    }
)

_correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "vesting_correlation_id", default=""
)


def get_correlation_id() -> str:
    """Current correlation ID; one is minted on first use in a context."""
    cid = _correlation_id.get()
    if not cid:
        cid = secrets.token_urlsafe(16)
        _correlation_id.set(cid)
    return cid


def add_correlation_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict.setdefault("correlation_id", get_correlation_id())
    return event_dict


def redact_sensitive(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    return redact_context(event_dict)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Mask sensitive fields.

    Example:
        >>> redact_context({"recipient": "0xabc", "operation": "claim"})
        {"recipient": "***REDACTED***", "operation": "claim"}
    """
    return {k: REDACTED if k in REDACTED_FIELDS else v for k, v in context.items()}


def _renderer_chain(json_output: bool) -> list[structlog.types.Processor]:
    if json_output:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [
        structlog.processors.ExceptionRenderer(),
        structlog.dev.ConsoleRenderer(colors=False),
    ]


def configure_logging(*, json_output: bool = False, log_level: str = "INFO") -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_output: JSON lines (production) instead of console text
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_correlation_id,
            redact_sensitive,
            *_renderer_chain(json_output),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_env() -> None:
    """
    Configure logging from the environment.

    VESTING_LOG_LEVEL sets the level (default WARNING, so CLI output stays
    quiet); VESTING_LOG_JSON or ENVIRONMENT=production switch to JSON.
    """
    json_flag = os.getenv("VESTING_LOG_JSON", "").lower() in ("1", "true", "yes")
    configure_logging(
        json_output=json_flag or is_production(),
        log_level=os.getenv("VESTING_LOG_LEVEL", "WARNING"),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


class LogOperation:
    """
    Log one ledger operation with timing.

    Start is logged at debug, completion at info. Failures are logged at
    warning; only unexpected errors carry a traceback, and never in
    production.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.context = redact_context(context)
        self._started = 0.0

    def _elapsed_ms(self) -> float:
        return round((time.perf_counter() - self._started) * 1000, 2)

    def __enter__(self) -> "LogOperation":
        self._started = time.perf_counter()
        self.logger.debug(
            f"{self.operation} started", operation=self.operation, **self.context
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if exc_type is None:
            self.logger.info(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=self._elapsed_ms(),
                **self.context,
            )
            return

        self.logger.warning(
            f"{self.operation} failed",
            operation=self.operation,
            duration_ms=self._elapsed_ms(),
            error_type=exc_type.__name__,
            error=str(exc_val),
            exc_info=not is_production() and not _is_rejection(exc_type),
            **self.context,
        )


def _is_rejection(exc_type: type[BaseException]) -> bool:
    """Ledger errors are expected outcomes, except a broken ledger."""
    from linear_vesting.kernel.errors import LedgerInconsistency, VestingError

    return issubclass(exc_type, VestingError) and not issubclass(
        exc_type, LedgerInconsistency
    )

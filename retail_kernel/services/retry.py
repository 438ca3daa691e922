"""
call_with_retry -- bounded re-execution of transient failures.

Responsibility:
    Re-runs an operation that failed for a reason expected to go away on
    its own: a version conflict on a ledger row, a PostgreSQL deadlock or
    serialization failure, or SQLite's busy timeout.  Permanent failures
    (insufficient stock, illegal transition, bad input) are raised at once.

Architecture position:
    Kernel > Services -- utility.  Wraps calls into document workflows, each
    of which rolls back its own transaction before an exception leaves it,
    so every attempt starts from a clean session.

Invariants enforced:
    - At most ``max_attempts`` executions.
    - Only errors classified by ``is_transient`` are retried.

Failure modes:
    - The last transient error is re-raised once attempts are exhausted.
"""

import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError

from retail_kernel.exceptions import RetailKernelError
from retail_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

# PostgreSQL serialization_failure / deadlock_detected
_TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})


def is_transient(exc: BaseException) -> bool:
    """True when ``exc`` is worth another attempt."""
    if isinstance(exc, RetailKernelError):
        return exc.retryable
    if isinstance(exc, OperationalError):
        sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        if sqlstate in _TRANSIENT_SQLSTATES:
            return True
        return "database is locked" in str(exc.orig)
    return False


def call_with_retry(
    operation: Callable[[], T],
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``operation`` until it succeeds or fails permanently.

    Backoff grows linearly: ``backoff_seconds * attempt``.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if not is_transient(exc) or attempt == max_attempts:
                raise
            logger.warning(
                "transient_failure_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "error_type": type(exc).__name__,
                },
            )
            sleep(backoff_seconds * attempt)
    raise AssertionError("unreachable")

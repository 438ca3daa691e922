"""call_with_retry: transient failures are retried, permanent ones are not."""

import pytest
from sqlalchemy.exc import OperationalError

from retail_kernel.exceptions import InsufficientStockError, OptimisticLockError
from retail_kernel.services.retry import call_with_retry, is_transient


class _Flaky:
    def __init__(self, failures):
        self.failures = list(failures)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "done"


def _locked() -> OperationalError:
    return OperationalError("UPDATE stock_items", {}, Exception("database is locked"))


class TestIsTransient:
    def test_optimistic_lock_is_transient(self):
        assert is_transient(OptimisticLockError("StockItem", "x"))

    def test_business_error_is_permanent(self):
        assert not is_transient(InsufficientStockError("p", "l", 0, 1))

    def test_sqlite_busy_is_transient(self):
        assert is_transient(_locked())

    def test_other_operational_error_is_permanent(self):
        assert not is_transient(OperationalError("SELECT", {}, Exception("no such table")))

    def test_plain_exception_is_permanent(self):
        assert not is_transient(ValueError("x"))


class TestCallWithRetry:
    def test_retries_until_success(self):
        op = _Flaky([OptimisticLockError("StockItem", "x"), _locked()])
        sleeps = []
        assert call_with_retry(op, sleep=sleeps.append, backoff_seconds=0.1) == "done"
        assert op.calls == 3
        assert sleeps == [0.1, 0.2]

    def test_gives_up_after_max_attempts(self):
        op = _Flaky([OptimisticLockError("StockItem", "x")] * 5)
        with pytest.raises(OptimisticLockError):
            call_with_retry(op, max_attempts=3, sleep=lambda _: None)
        assert op.calls == 3

    def test_permanent_error_raised_immediately(self):
        op = _Flaky([InsufficientStockError("p", "l", 0, 1)])
        with pytest.raises(InsufficientStockError):
            call_with_retry(op, sleep=lambda _: None)
        assert op.calls == 1

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            call_with_retry(lambda: None, max_attempts=0)

    def test_retry_is_logged(self, captured_logs):
        op = _Flaky([OptimisticLockError("StockItem", "x")])
        call_with_retry(op, sleep=lambda _: None)
        events = [r for r in captured_logs() if r["message"] == "transient_failure_retry"]
        assert events[0]["error_type"] == "OptimisticLockError"

"""Tests for structured logging (retail_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from retail_kernel.exceptions import InsufficientStockError
from retail_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    # Restore the suite-wide configuration from conftest.
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def stream():
    out = StringIO()
    handler = logging.StreamHandler(out)
    configure_logging(handler=handler, level=logging.DEBUG)
    return out


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestStructuredFormatter:
    def test_envelope(self, stream):
        get_logger("test").info("stock_delta_applied")

        record = _records(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "stock_delta_applied"
        assert record["logger"] == "retail_kernel.test"
        assert "ts" in record

    def test_extra_fields_at_top_level(self, stream):
        get_logger("test").info("receipt", extra={"delta": 5, "avg_cost": Decimal("4.500000")})

        record = _records(stream)[0]
        assert record["delta"] == 5
        assert record["avg_cost"] == "4.500000"

    def test_uuid_serialized(self, stream):
        product_id = uuid4()
        get_logger("test").info("x", extra={"product_id": product_id})
        assert _records(stream)[0]["product_id"] == str(product_id)

    def test_kernel_error_fields(self, stream):
        try:
            raise InsufficientStockError("p-1", "loc-1", 2, 5)
        except InsufficientStockError:
            get_logger("test").exception("checkout_failed")

        record = _records(stream)[0]
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_available"] == 2
        assert record["exc_requested"] == 5
        assert "traceback" in record

    def test_every_line_is_json(self, stream):
        logger = get_logger("test")
        for i in range(5):
            logger.info("line", extra={"i": i})
        assert [r["i"] for r in _records(stream)] == list(range(5))


class TestLogContext:
    def test_bound_fields_reach_records(self, stream):
        with LogContext.bind(actor_id="clerk-1", document="sales_invoice:abc"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _records(stream)
        assert inside["actor_id"] == "clerk-1"
        assert inside["document"] == "sales_invoice:abc"
        assert "document" not in outside

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(actor_id="a"):
            with LogContext.bind(actor_id="b", location_id="shop"):
                assert LogContext.current() == {"actor_id": "b", "location_id": "shop"}
            assert LogContext.current() == {"actor_id": "a"}
        assert LogContext.current() == {}

    def test_none_values_skipped(self):
        with LogContext.bind(actor_id=None, document="d"):
            assert LogContext.current() == {"document": "d"}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            with LogContext.bind(customer="x"):
                pass

    def test_service_calls_tag_their_document(
        self, stream, service_orders, test_actor_id,
    ):
        order = service_orders.create_order(actor_id=test_actor_id)
        service_orders.start(order.id, actor_id=test_actor_id)

        changed = [r for r in _records(stream) if r["message"] == "service_order_status_changed"]
        assert changed[0]["document"] == f"service_order:{order.id}"
        assert changed[0]["actor_id"] == str(test_actor_id)


class TestConfigureLogging:
    def test_idempotent(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger("retail_kernel").handlers) == 1

    def test_reset_removes_handlers(self):
        configure_logging()
        reset_logging()
        assert logging.getLogger("retail_kernel").handlers == []

    def test_formatter_installed(self):
        handler = logging.StreamHandler(StringIO())
        configure_logging(handler=handler)
        assert isinstance(handler.formatter, StructuredFormatter)

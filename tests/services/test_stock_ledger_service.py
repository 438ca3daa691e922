"""
StockLedgerService: the read-modify-write of ledger rows.

Validates:
- Absent vs Found reads (an unwritten key is not a zero row)
- apply_delta: quantity, weighted average, one movement per change
- Rejected deltas leave no row and no movement behind
- expected_version conflicts raise OptimisticLockError
- Physical counts, reservations and the allow_negative_stock switch
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from retail_kernel.domain.ledger import Absent, Found, MovementType
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    OptimisticLockError,
)
from retail_kernel.services.stock_ledger_service import StockLedgerService


@pytest.fixture
def receive(ledger, test_actor_id):
    def _receive(key, quantity, unit_cost=None):
        return ledger.apply_delta(
            key,
            quantity,
            unit_cost,
            movement_type=MovementType.RECEIPT,
            reference=DocumentRef.purchase_order(uuid4()),
            actor_id=test_actor_id,
        )
    return _receive


@pytest.fixture
def sell(ledger, test_actor_id):
    def _sell(key, quantity, **kwargs):
        return ledger.apply_delta(
            key,
            -quantity,
            movement_type=MovementType.SALE,
            reference=DocumentRef.sales_invoice(uuid4()),
            actor_id=test_actor_id,
            **kwargs,
        )
    return _sell


class TestRead:
    def test_unwritten_key_is_absent(self, ledger, stock_key):
        result = ledger.read(stock_key)
        assert isinstance(result, Absent)
        assert result.key == stock_key

    def test_get_quantity_reports_absent_as_empty(self, ledger, stock_key):
        state = ledger.get_quantity(stock_key)
        assert state.quantity == 0
        assert state.avg_cost == 0

    def test_written_key_is_found(self, ledger, stock_key, receive):
        receive(stock_key, 5, Decimal("2.00"))
        result = ledger.read(stock_key)
        assert isinstance(result, Found)
        assert result.state.quantity == 5

    def test_variants_are_separate_keys(self, ledger, stock_key, receive):
        from dataclasses import replace

        variant_key = replace(stock_key, variant_id=uuid4())
        receive(stock_key, 5, Decimal("1"))
        receive(variant_key, 2, Decimal("1"))
        assert ledger.get_quantity(stock_key).quantity == 5
        assert ledger.get_quantity(variant_key).quantity == 2


class TestApplyDelta:
    def test_first_receipt_creates_row(self, receive, stock_key):
        state = receive(stock_key, 10, Decimal("5.00"))
        assert state.quantity == 10
        assert state.avg_cost == Decimal("5.00")

    def test_second_receipt_reaverages(self, receive, stock_key):
        receive(stock_key, 10, Decimal("5.00"))
        state = receive(stock_key, 10, Decimal("7.00"))
        assert state.quantity == 20
        assert state.avg_cost == Decimal("6.00")

    def test_sale_keeps_average(self, receive, sell, stock_key):
        receive(stock_key, 10, Decimal("5.00"))
        state = sell(stock_key, 3)
        assert state.quantity == 7
        assert state.avg_cost == Decimal("5.00")

    def test_each_change_appends_one_movement(self, receive, sell, movement_log, stock_key):
        receive(stock_key, 10, Decimal("5.00"))
        sell(stock_key, 3)
        movements = movement_log.list_for(stock_key)
        assert [m.quantity for m in movements] == [10, -3]
        assert [m.movement_type for m in movements] == [MovementType.RECEIPT, MovementType.SALE]
        assert movements[0].seq < movements[1].seq

    def test_sale_movement_valued_at_average(self, receive, sell, movement_log, stock_key):
        receive(stock_key, 10, Decimal("5.00"))
        sell(stock_key, 3)
        assert movement_log.list_for(stock_key)[-1].unit_cost == Decimal("5.00")

    def test_fallback_cost_used_before_any_average(self, ledger, sell, movement_log, stock_key):
        allowing = StockLedgerService(
            ledger.session, movement_log=movement_log, allow_negative_stock=True,
        )
        allowing.apply_delta(
            stock_key,
            -1,
            movement_type=MovementType.SALE,
            reference=DocumentRef.sales_invoice(uuid4()),
            actor_id=uuid4(),
            fallback_cost=Decimal("3.50"),
        )
        assert movement_log.list_for(stock_key)[0].unit_cost == Decimal("3.50")

    def test_oversell_rejected_and_nothing_written(self, ledger, receive, sell, movement_log, stock_key):
        receive(stock_key, 2, Decimal("1"))
        with pytest.raises(InsufficientStockError):
            sell(stock_key, 3)
        assert ledger.get_quantity(stock_key).quantity == 2
        assert len(movement_log.list_for(stock_key)) == 1

    def test_first_sale_on_absent_key_leaves_no_row(self, ledger, sell, stock_key):
        with pytest.raises(InsufficientStockError):
            sell(stock_key, 1)
        assert isinstance(ledger.read(stock_key), Absent)

    def test_zero_delta_rejected(self, ledger, stock_key, test_actor_id):
        with pytest.raises(InvalidQuantityError):
            ledger.apply_delta(
                stock_key,
                0,
                movement_type=MovementType.ADJUSTMENT,
                reference=DocumentRef.adjustment(uuid4()),
                actor_id=test_actor_id,
            )

    def test_version_increments_on_every_write(self, receive, stock_key):
        first = receive(stock_key, 1, Decimal("1"))
        second = receive(stock_key, 1, Decimal("1"))
        assert second.version == first.version + 1

    def test_stale_expected_version_rejected(self, receive, sell, stock_key):
        state = receive(stock_key, 10, Decimal("1"))
        sell(stock_key, 1)
        with pytest.raises(OptimisticLockError) as exc_info:
            sell(stock_key, 1, expected_version=state.version)
        assert exc_info.value.retryable

    def test_matching_expected_version_accepted(self, receive, sell, stock_key):
        state = receive(stock_key, 10, Decimal("1"))
        assert sell(stock_key, 1, expected_version=state.version).quantity == 9

    def test_delta_applied_is_logged(self, receive, stock_key, captured_logs):
        receive(stock_key, 4, Decimal("2"))
        events = [r for r in captured_logs() if r["message"] == "stock_delta_applied"]
        assert len(events) == 1
        assert events[0]["delta"] == 4
        assert events[0]["quantity_after"] == 4


class TestAllowNegativeStock:
    def test_oversell_allowed(self, session, movement_log, stock_key, test_actor_id):
        ledger = StockLedgerService(session, movement_log=movement_log, allow_negative_stock=True)
        state = ledger.apply_delta(
            stock_key,
            -5,
            movement_type=MovementType.SALE,
            reference=DocumentRef.sales_invoice(uuid4()),
            actor_id=test_actor_id,
        )
        assert state.quantity == -5
        assert movement_log.list_for(stock_key)[0].quantity == -5


class TestCount:
    def test_count_writes_difference(self, ledger, receive, movement_log, stock_key, test_actor_id):
        receive(stock_key, 10, Decimal("2"))
        state = ledger.set_counted_quantity(
            stock_key, 7, reference=DocumentRef.count(uuid4()), actor_id=test_actor_id,
        )
        assert state.quantity == 7
        last = movement_log.list_for(stock_key)[-1]
        assert last.movement_type == MovementType.COUNT
        assert last.quantity == -3

    def test_matching_count_writes_no_movement(self, ledger, receive, movement_log, stock_key, test_actor_id):
        receive(stock_key, 10, Decimal("2"))
        ledger.set_counted_quantity(
            stock_key, 10, reference=DocumentRef.count(uuid4()), actor_id=test_actor_id,
        )
        assert len(movement_log.list_for(stock_key)) == 1
        assert ledger.last_count_date(stock_key) is not None

    def test_negative_count_rejected(self, ledger, stock_key, test_actor_id):
        with pytest.raises(InvalidQuantityError):
            ledger.set_counted_quantity(
                stock_key, -1, reference=DocumentRef.count(uuid4()), actor_id=test_actor_id,
            )

    def test_count_on_absent_key_books_opening_stock(self, ledger, stock_key, test_actor_id):
        state = ledger.set_counted_quantity(
            stock_key, 4, reference=DocumentRef.count(uuid4()), actor_id=test_actor_id,
        )
        assert state.quantity == 4


class TestReservations:
    def test_reserve_reduces_available(self, ledger, receive, stock_key, test_actor_id):
        receive(stock_key, 10, Decimal("1"))
        state = ledger.reserve(stock_key, 4, actor_id=test_actor_id)
        assert state.quantity == 10
        assert state.available == 6

    def test_reserve_beyond_available_rejected(self, ledger, receive, stock_key, test_actor_id):
        receive(stock_key, 3, Decimal("1"))
        with pytest.raises(InsufficientStockError):
            ledger.reserve(stock_key, 4, actor_id=test_actor_id)

    def test_reserve_absent_key_rejected(self, ledger, stock_key, test_actor_id):
        with pytest.raises(InsufficientStockError):
            ledger.reserve(stock_key, 1, actor_id=test_actor_id)

    def test_release(self, ledger, receive, stock_key, test_actor_id):
        receive(stock_key, 10, Decimal("1"))
        ledger.reserve(stock_key, 4, actor_id=test_actor_id)
        assert ledger.release(stock_key, 3, actor_id=test_actor_id).reserved_quantity == 1

    def test_release_more_than_reserved_rejected(self, ledger, receive, stock_key, test_actor_id):
        receive(stock_key, 10, Decimal("1"))
        ledger.reserve(stock_key, 2, actor_id=test_actor_id)
        with pytest.raises(InvalidQuantityError):
            ledger.release(stock_key, 3, actor_id=test_actor_id)

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_reservation_rejected(self, ledger, stock_key, test_actor_id, quantity):
        with pytest.raises(InvalidQuantityError):
            ledger.reserve(stock_key, quantity, actor_id=test_actor_id)

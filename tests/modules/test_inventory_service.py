"""
InventoryService: locations, adjustments, transfers and counts.

Validates:
- One default location at a time; NoDefaultLocationError without one
- Adjustments write ``adjustment`` movements
- Transfers are paired movements under one reference, at source cost
- Transfers are all-or-nothing
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from retail_kernel.domain.ledger import MovementType, StockKey
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import (
    DocumentNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
    NoDefaultLocationError,
)

PRODUCT_ID = uuid4()


class TestLocations:
    def test_no_default_location(self, inventory):
        with pytest.raises(NoDefaultLocationError):
            inventory.default_location()

    def test_default_location(self, inventory, default_location):
        assert inventory.default_location() == default_location
        assert default_location.is_default

    def test_new_default_replaces_old(self, inventory, default_location, test_actor_id):
        back = inventory.create_location("BACK", "Back room", actor_id=test_actor_id, is_default=True)
        assert inventory.default_location().id == back.id
        codes = {loc.code: loc.is_default for loc in inventory.list_locations()}
        assert codes == {"BACK": True, "MAIN": False}

    def test_deactivated_default_is_not_default(self, inventory, default_location, test_actor_id):
        inventory.deactivate_location(default_location.id, actor_id=test_actor_id)
        with pytest.raises(NoDefaultLocationError):
            inventory.default_location()
        assert inventory.list_locations() == []
        assert len(inventory.list_locations(active_only=False)) == 1

    def test_deactivate_unknown(self, inventory, test_actor_id):
        with pytest.raises(DocumentNotFoundError):
            inventory.deactivate_location(uuid4(), actor_id=test_actor_id)


class TestAdjust:
    def test_opening_balance(self, inventory, ledger, test_actor_id, stock_key):
        state = inventory.adjust(stock_key, 12, actor_id=test_actor_id, unit_cost=Decimal("4.00"))
        assert state.quantity == 12
        assert ledger.get_quantity(stock_key).avg_cost == Decimal("4.00")

    def test_writes_adjustment_movement_with_reason(self, inventory, movement_log, test_actor_id, stock_key):
        inventory.adjust(stock_key, 3, actor_id=test_actor_id, unit_cost=Decimal("1"), reason="found in back")
        movement = movement_log.list_for(stock_key)[0]
        assert movement.movement_type == MovementType.ADJUSTMENT
        assert movement.notes == "found in back"

    def test_shrinkage_below_zero_rejected(self, inventory, stock_at, test_actor_id, stock_key):
        stock_at(stock_key, 2, Decimal("1"))
        with pytest.raises(InsufficientStockError):
            inventory.adjust(stock_key, -3, actor_id=test_actor_id, reason="breakage")


class TestTransfer:
    def test_moves_units_at_source_cost(self, inventory, stock_at, test_actor_id, location_id):
        destination_id = uuid4()
        stock_at(StockKey(PRODUCT_ID, location_id), 10, Decimal("5.00"))
        stock_at(StockKey(PRODUCT_ID, destination_id), 10, Decimal("7.00"))

        result = inventory.transfer(PRODUCT_ID, location_id, destination_id, 10, actor_id=test_actor_id)

        assert result.source.quantity == 0
        assert result.destination.quantity == 20
        assert result.destination.avg_cost == Decimal("6.00")

    def test_paired_movements_share_reference(self, inventory, stock_at, movement_log, test_actor_id, location_id):
        destination_id = uuid4()
        stock_at(StockKey(PRODUCT_ID, location_id), 4, Decimal("2"))
        result = inventory.transfer(PRODUCT_ID, location_id, destination_id, 3, actor_id=test_actor_id)

        movements = movement_log.list_for_document(DocumentRef.transfer(result.transfer_id))
        assert [(m.movement_type, m.quantity) for m in movements] == [
            (MovementType.TRANSFER_OUT, -3),
            (MovementType.TRANSFER_IN, 3),
        ]
        assert movements[1].key.location_id == destination_id

    def test_shortage_writes_nothing(self, inventory, stock_at, ledger, test_actor_id, location_id):
        destination_id = uuid4()
        stock_at(StockKey(PRODUCT_ID, location_id), 2, Decimal("2"))
        with pytest.raises(InsufficientStockError):
            inventory.transfer(PRODUCT_ID, location_id, destination_id, 3, actor_id=test_actor_id)
        assert ledger.get_quantity(StockKey(PRODUCT_ID, location_id)).quantity == 2
        assert ledger.get_quantity(StockKey(PRODUCT_ID, destination_id)).quantity == 0

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_rejected(self, inventory, test_actor_id, location_id, quantity):
        with pytest.raises(InvalidQuantityError):
            inventory.transfer(PRODUCT_ID, location_id, uuid4(), quantity, actor_id=test_actor_id)

    def test_same_location_rejected(self, inventory, test_actor_id, location_id):
        with pytest.raises(InvalidQuantityError):
            inventory.transfer(PRODUCT_ID, location_id, location_id, 1, actor_id=test_actor_id)

    def test_transfer_is_logged(self, inventory, stock_at, test_actor_id, location_id, captured_logs):
        stock_at(StockKey(PRODUCT_ID, location_id), 4, Decimal("2"))
        inventory.transfer(PRODUCT_ID, location_id, uuid4(), 1, actor_id=test_actor_id)
        assert any(r["message"] == "stock_transferred" for r in captured_logs())


class TestCount:
    def test_count_corrects_quantity(self, inventory, stock_at, movement_log, test_actor_id, stock_key):
        stock_at(stock_key, 10, Decimal("3"))
        state = inventory.count(stock_key, 8, actor_id=test_actor_id, notes="cycle count")
        assert state.quantity == 8
        assert movement_log.list_for(stock_key)[-1].movement_type == MovementType.COUNT

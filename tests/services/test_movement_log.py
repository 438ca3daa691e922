"""
MovementLog: append-only history of stock changes.

Validates:
- Movements are totally ordered by ``seq``
- Reads by stock key and by source document
- Zero-quantity movements are refused
- Flushed movements cannot be updated or deleted through the ORM
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from retail_kernel.domain.ledger import MovementType
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import ImmutabilityViolationError, InvalidQuantityError
from retail_kernel.models.stock import StockMovement


@pytest.fixture
def append(movement_log, test_actor_id):
    def _append(key, quantity, reference=None, movement_type=MovementType.ADJUSTMENT):
        return movement_log.append(
            key=key,
            movement_type=movement_type,
            quantity=quantity,
            unit_cost=Decimal("1.00"),
            reference=reference or DocumentRef.adjustment(uuid4()),
            actor_id=test_actor_id,
        )
    return _append


class TestAppend:
    def test_seq_is_strictly_increasing(self, append, movement_log, stock_key):
        for quantity in (5, -2, 3):
            append(stock_key, quantity)
        seqs = [m.seq for m in movement_log.list_for(stock_key)]
        assert seqs == sorted(seqs)
        assert len(set(seqs)) == 3

    def test_seq_is_global_across_keys(self, append, movement_log, stock_key):
        other = stock_key.at(uuid4())
        append(stock_key, 1)
        append(other, 1)
        append(stock_key, 1)
        mine = [m.seq for m in movement_log.list_for(stock_key)]
        theirs = [m.seq for m in movement_log.list_for(other)]
        assert mine[0] < theirs[0] < mine[1]

    def test_zero_quantity_rejected(self, append, stock_key):
        with pytest.raises(InvalidQuantityError):
            append(stock_key, 0)

    def test_record_carries_reference(self, append, movement_log, stock_key, test_actor_id):
        ref = DocumentRef.service_order(uuid4())
        movement_id = append(stock_key, -1, ref, MovementType.ISSUE)
        record = movement_log.list_for(stock_key)[0]
        assert record.id == movement_id
        assert record.reference == ref
        assert record.movement_type == MovementType.ISSUE
        assert record.created_by_id == test_actor_id

    def test_list_for_document(self, append, movement_log, stock_key):
        ref = DocumentRef.transfer(uuid4())
        append(stock_key, -2, ref, MovementType.TRANSFER_OUT)
        append(stock_key.at(uuid4()), 2, ref, MovementType.TRANSFER_IN)
        append(stock_key, 9)
        movements = movement_log.list_for_document(ref)
        assert [m.quantity for m in movements] == [-2, 2]


class TestOrmImmutability:
    def test_update_rejected(self, session, append, stock_key):
        movement_id = append(stock_key, 3)
        movement = session.get(StockMovement, movement_id)
        movement.quantity = 30
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_delete_rejected(self, session, append, stock_key):
        movement_id = append(stock_key, 3)
        session.delete(session.get(StockMovement, movement_id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

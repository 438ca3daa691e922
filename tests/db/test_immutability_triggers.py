"""
Database-level append-only triggers.

The ORM listeners are bypassed with raw SQL here, so these tests run on an
isolated database file where rows are really committed.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import DatabaseError
from sqlalchemy.orm import Session

from retail_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from retail_kernel.db.triggers import (
    ALL_TRIGGER_NAMES,
    APPEND_ONLY_TABLES,
    get_installed_triggers,
    install_immutability_triggers,
    triggers_installed,
    uninstall_immutability_triggers,
)
from retail_kernel.domain.ledger import StockKey
from retail_kernel.models.stock import StockMovement
from retail_modules.inventory.service import InventoryService


@pytest.fixture
def committed_movement(isolated_engine, test_actor_id, deterministic_clock):
    key = StockKey(uuid4(), uuid4())
    with Session(isolated_engine, expire_on_commit=False) as session:
        InventoryService(session, clock=deterministic_clock).adjust(
            key, 5, actor_id=test_actor_id, unit_cost=Decimal("1.00"), reason="opening",
        )
    return key


class TestTriggerInstallation:
    def test_all_triggers_installed(self, isolated_engine):
        assert triggers_installed(isolated_engine)
        assert sorted(get_installed_triggers(isolated_engine)) == sorted(ALL_TRIGGER_NAMES)

    def test_two_triggers_per_table(self):
        assert len(ALL_TRIGGER_NAMES) == 2 * len(APPEND_ONLY_TABLES)

    def test_install_is_idempotent(self, isolated_engine):
        install_immutability_triggers(isolated_engine)
        assert triggers_installed(isolated_engine)

    def test_uninstall_and_reinstall(self, isolated_engine):
        uninstall_immutability_triggers(isolated_engine)
        assert get_installed_triggers(isolated_engine) == []
        install_immutability_triggers(isolated_engine)
        assert triggers_installed(isolated_engine)


class TestRawSqlBlocked:
    def test_raw_update_of_movement_rejected(self, isolated_engine, committed_movement):
        with isolated_engine.connect() as conn:
            with pytest.raises(DatabaseError, match="append-only"):
                conn.execute(text("UPDATE stock_movements SET quantity = 500"))
            conn.rollback()

    def test_raw_delete_of_movement_rejected(self, isolated_engine, committed_movement):
        with isolated_engine.connect() as conn:
            with pytest.raises(DatabaseError, match="append-only"):
                conn.execute(text("DELETE FROM stock_movements"))
            conn.rollback()

    def test_movement_survives_attempts(self, isolated_engine, committed_movement):
        with isolated_engine.connect() as conn:
            with pytest.raises(DatabaseError):
                conn.execute(text("UPDATE stock_movements SET quantity = 500"))
            conn.rollback()
        with isolated_engine.connect() as conn:
            quantities = conn.execute(text("SELECT quantity FROM stock_movements")).scalars().all()
        assert quantities == [5]

    def test_ledger_rows_remain_writable(self, isolated_engine, committed_movement):
        # stock_items is the mutable side; only history is frozen.
        with isolated_engine.connect() as conn:
            result = conn.execute(text("UPDATE stock_items SET reserved_quantity = 1"))
            conn.rollback()
        assert result.rowcount == 1


class TestOrmWithoutListeners:
    def test_trigger_still_blocks_orm_update(self, isolated_engine, committed_movement):
        unregister_immutability_listeners()
        try:
            with Session(isolated_engine) as session:
                movement = session.execute(select(StockMovement)).scalar_one()
                movement.quantity = 500
                with pytest.raises(DatabaseError, match="append-only"):
                    session.flush()
                session.rollback()
        finally:
            register_immutability_listeners()

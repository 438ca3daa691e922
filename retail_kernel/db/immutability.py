"""
ORM-Level Append-Only Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement log is the history of every unit that entered or left a shelf.
If a movement can be edited after the fact, the ledger quantity can no longer
be explained from its history and reconciliation becomes meaningless.  The
same holds for payments and service-order log entries.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (database triggers)
    - Catches raw SQL, bulk UPDATE statements, direct database access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Every mapped class that mixes in ``AppendOnly`` (db/base.py):

Entity              | Table               | Owner
--------------------|---------------------|--------------------------------
StockMovement       | stock_movements     | retail_kernel.models.stock
GoodsReceiptModel   | goods_receipts      | retail_modules.purchasing.orm
SalesPaymentModel   | sales_payments      | retail_modules.sales.orm
SupplierPaymentModel| supplier_payments   | retail_modules.payables.orm
ServiceOrderLogModel| service_order_logs  | retail_modules.service_orders.orm

===============================================================================
USAGE
===============================================================================

    from retail_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from retail_kernel.db.base import AppendOnly, Base
from retail_kernel.exceptions import ImmutabilityViolationError
from retail_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _reject(operation: str, target) -> None:
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} rows are append-only; {operation} is not allowed",
    )


def _check_append_only_update(mapper, connection, target):
    _reject("UPDATE", target)


def _check_append_only_delete(mapper, connection, target):
    _reject("DELETE", target)


def append_only_classes() -> list[type]:
    """Every mapped class that mixes in AppendOnly."""
    from retail_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    return sorted(
        (m.class_ for m in Base.registry.mappers if issubclass(m.class_, AppendOnly)),
        key=lambda cls: cls.__name__,
    )


def register_immutability_listeners() -> None:
    """
    Register the append-only listeners on every AppendOnly model.

    Idempotent: a listener already present is not added twice.
    """
    classes = append_only_classes()
    for cls in classes:
        if not event.contains(cls, "before_update", _check_append_only_update):
            event.listen(cls, "before_update", _check_append_only_update)
        if not event.contains(cls, "before_delete", _check_append_only_delete):
            event.listen(cls, "before_delete", _check_append_only_delete)
    logger.debug(
        "immutability_listeners_registered",
        extra={"entities": [cls.__name__ for cls in classes]},
    )


def unregister_immutability_listeners() -> None:
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests that must bypass the ORM layer to prove
    the database triggers fire.
    """
    for cls in append_only_classes():
        if event.contains(cls, "before_update", _check_append_only_update):
            event.remove(cls, "before_update", _check_append_only_update)
        if event.contains(cls, "before_delete", _check_append_only_delete):
            event.remove(cls, "before_delete", _check_append_only_delete)

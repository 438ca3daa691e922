"""
Inventory Module Service (``retail_modules.inventory.service``).

Responsibility
--------------
Stock operations that are not driven by a commercial document: managing
locations, manual adjustments, transfers between locations and physical
counts.  Every quantity change is delegated to the kernel
``StockLedgerService``.

Architecture position
---------------------
**Modules layer** -- ``InventoryService`` is the public entry point.  Other
modules use ``default_location`` to resolve where stock is taken from when
the caller does not say.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on any exception).
* A transfer is one transaction: the ``transfer_out`` and ``transfer_in``
  movements commit together or not at all, and the destination receives
  the units at the source's average cost.

Failure modes
-------------
* ``NoDefaultLocationError`` -- no active default location is configured.
* ``InsufficientStockError`` -- adjustment or transfer would go negative.
* ``InvalidQuantityError`` -- zero adjustment, non-positive transfer, or a
  transfer to the same location.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from retail_config import RetailConfig
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.ledger import LedgerState, MovementType, StockKey
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import (
    DocumentNotFoundError,
    InvalidQuantityError,
    NoDefaultLocationError,
)
from retail_kernel.logging_config import get_logger
from retail_modules._document_helpers import build_stock_ledger, resolve_config
from retail_modules.inventory.models import Location, TransferResult
from retail_modules.inventory.orm import LocationModel

logger = get_logger("modules.inventory.service")


class InventoryService:
    """
    Orchestrates location management and non-document stock movements.

    Contract
    --------
    * Reads return frozen DTOs; writes commit before returning.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: RetailConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = resolve_config(config)
        self._ledger = build_stock_ledger(session, self._clock, self._config)

    # =========================================================================
    # Locations
    # =========================================================================

    def create_location(
        self,
        code: str,
        name: str,
        *,
        actor_id: UUID,
        is_default: bool = False,
    ) -> Location:
        """Create a location; a new default replaces the previous one."""
        try:
            if is_default:
                self._session.execute(
                    update(LocationModel)
                    .where(LocationModel.is_default.is_(True))
                    .values(is_default=False, updated_by_id=actor_id)
                )
            location = LocationModel(
                code=code,
                name=name,
                is_default=is_default,
                is_active=True,
                created_by_id=actor_id,
            )
            self._session.add(location)
            self._session.flush()
            logger.info("location_created", extra={
                "location_id": str(location.id),
                "code": code,
                "is_default": is_default,
            })
            self._session.commit()
            return location.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def deactivate_location(self, location_id: UUID, *, actor_id: UUID) -> Location:
        try:
            location = self._session.get(LocationModel, location_id)
            if location is None:
                raise DocumentNotFoundError("location", str(location_id))
            location.is_active = False
            location.is_default = False
            location.updated_by_id = actor_id
            self._session.flush()
            logger.info("location_deactivated", extra={"location_id": str(location_id)})
            self._session.commit()
            return location.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def default_location(self) -> Location:
        """The active default location.

        Raises:
            NoDefaultLocationError: if none is configured.
        """
        location = self._session.execute(
            select(LocationModel).where(
                LocationModel.is_default.is_(True),
                LocationModel.is_active.is_(True),
            )
        ).scalars().first()
        if location is None:
            raise NoDefaultLocationError()
        return location.to_dto()

    def list_locations(self, *, active_only: bool = True) -> list[Location]:
        stmt = select(LocationModel).order_by(LocationModel.code)
        if active_only:
            stmt = stmt.where(LocationModel.is_active.is_(True))
        return [row.to_dto() for row in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Stock operations
    # =========================================================================

    def adjust(
        self,
        key: StockKey,
        delta: int,
        *,
        actor_id: UUID,
        unit_cost: Decimal | None = None,
        reason: str | None = None,
    ) -> LedgerState:
        """Manual correction (breakage, shrinkage, opening balance)."""
        adjustment_id = uuid4()
        try:
            state = self._ledger.apply_delta(
                key,
                delta,
                unit_cost,
                movement_type=MovementType.ADJUSTMENT,
                reference=DocumentRef.adjustment(adjustment_id),
                actor_id=actor_id,
                notes=reason,
            )
            logger.info("stock_adjusted", extra={
                "adjustment_id": str(adjustment_id),
                "stock_key": str(key),
                "delta": delta,
                "reason": reason,
            })
            self._session.commit()
            return state
        except Exception:
            self._session.rollback()
            raise

    def transfer(
        self,
        product_id: UUID,
        from_location_id: UUID,
        to_location_id: UUID,
        quantity: int,
        *,
        actor_id: UUID,
        variant_id: UUID | None = None,
        notes: str | None = None,
    ) -> TransferResult:
        """Move ``quantity`` units between locations at the source average cost."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "transfer quantity must be positive")
        if from_location_id == to_location_id:
            raise InvalidQuantityError(quantity, "source and destination are the same location")

        source_key = StockKey(product_id, from_location_id, variant_id)
        transfer_id = uuid4()
        reference = DocumentRef.transfer(transfer_id)
        try:
            # Outgoing first: it locks the source row and fails on shortage
            # before anything is written at the destination.
            source = self._ledger.apply_delta(
                source_key,
                -quantity,
                movement_type=MovementType.TRANSFER_OUT,
                reference=reference,
                actor_id=actor_id,
                notes=notes,
            )
            destination = self._ledger.apply_delta(
                source_key.at(to_location_id),
                quantity,
                source.avg_cost,
                movement_type=MovementType.TRANSFER_IN,
                reference=reference,
                actor_id=actor_id,
                notes=notes,
            )
            logger.info("stock_transferred", extra={
                "transfer_id": str(transfer_id),
                "product_id": str(product_id),
                "from_location_id": str(from_location_id),
                "to_location_id": str(to_location_id),
                "quantity": quantity,
                "unit_cost": source.avg_cost,
            })
            self._session.commit()
            return TransferResult(transfer_id, source, destination)
        except Exception:
            self._session.rollback()
            raise

    def count(
        self,
        key: StockKey,
        counted_quantity: int,
        *,
        actor_id: UUID,
        notes: str | None = None,
    ) -> LedgerState:
        """Record a physical count for one stock key."""
        try:
            state = self._ledger.set_counted_quantity(
                key,
                counted_quantity,
                reference=DocumentRef.count(uuid4()),
                actor_id=actor_id,
                notes=notes,
            )
            self._session.commit()
            return state
        except Exception:
            self._session.rollback()
            raise

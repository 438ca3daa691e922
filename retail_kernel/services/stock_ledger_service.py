"""
StockLedgerService -- atomic read-modify-write of ledger rows.

Responsibility:
    Owns every write to ``stock_items``.  A quantity change is one call to
    ``apply_delta``, which locks (or creates) the ledger row, computes the
    new quantity and average cost, writes the row, and appends exactly one
    movement to the MovementLog, all inside the caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell.  The arithmetic lives in
    ``retail_kernel.domain.ledger``; this service only loads, locks and
    persists.  Called by every document workflow in ``retail_modules``.

Invariants enforced:
    - No lost updates: the row is read with ``SELECT ... FOR UPDATE`` on
      PostgreSQL; SQLite transactions start with ``BEGIN IMMEDIATE``
      (db/engine.py).  Either way no other writer can change the row
      between our read and our write.
    - Optimistic check as a second line: ``stock_items.version`` guards
      every UPDATE.  A stale write raises OptimisticLockError (retryable).
    - Absent is not zero: ``read`` returns ``Absent`` for a key that was
      never written.  ``apply_delta`` creates the row in a savepoint; a
      concurrent creator's IntegrityError rolls back only the savepoint
      and the row is re-read under lock.
    - Ledger and log move together: one movement per quantity change, in
      the same transaction as the ledger write.
    - On-hand never goes below zero unless ``allow_negative_stock`` is set.

Failure modes:
    - InvalidQuantityError -- zero delta, negative count, bad reservation.
    - InsufficientStockError -- delta or reservation exceeds what is there.
    - OptimisticLockError -- version mismatch (concurrent writer or an
      ``expected_version`` that no longer matches).

Audit relevance:
    Every change emits ``stock_delta_applied`` with the before/after
    quantity and cost, and leaves a movement row behind.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from retail_kernel.db.types import COST_DECIMAL_PLACES
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.ledger import (
    Absent,
    Found,
    LedgerRead,
    LedgerState,
    MovementType,
    StockKey,
    apply_delta_to_state,
)
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    OptimisticLockError,
)
from retail_kernel.logging_config import get_logger
from retail_kernel.models.stock import StockItem
from retail_kernel.services.base import BaseService
from retail_kernel.services.movement_log import MovementLog

logger = get_logger("services.stock_ledger")


class StockLedgerService(BaseService):
    """
    The stock ledger store.

    Contract:
        ``read`` / ``get_quantity`` never write.  ``apply_delta``,
        ``set_counted_quantity``, ``reserve`` and ``release`` flush within
        the caller's transaction and return the resulting LedgerState.

    Guarantees:
        - For any set of serialized or concurrent ``apply_delta`` calls whose
          deltas sum to D, a row starting at Q ends at exactly Q + D.
        - Weighted-average cost on incoming stock; unchanged on outgoing.

    Non-goals:
        - Does NOT commit.  The document workflow owns the transaction.
        - Does NOT know about documents beyond the DocumentRef it records.
    """

    def __init__(
        self,
        session,
        movement_log: MovementLog | None = None,
        clock: Clock | None = None,
        *,
        allow_negative_stock: bool = False,
        cost_decimal_places: int = COST_DECIMAL_PLACES,
    ):
        super().__init__(session)
        self._movements = movement_log or MovementLog(session)
        self._clock = clock or SystemClock()
        self._allow_negative = allow_negative_stock
        self._cost_places = cost_decimal_places

    # =========================================================================
    # Reads
    # =========================================================================

    def _select(self, key: StockKey, *, lock: bool) -> StockItem | None:
        stmt = select(StockItem).where(
            StockItem.product_id == key.product_id,
            StockItem.variant_key == key.variant_key,
            StockItem.location_id == key.location_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def read(self, key: StockKey) -> LedgerRead:
        """``Found(state)`` if the row exists, else ``Absent(key)``."""
        row = self._select(key, lock=False)
        if row is None:
            return Absent(key)
        return Found(row.to_state())

    def get_quantity(self, key: StockKey) -> LedgerState:
        """Current state, with an absent row reported as quantity 0 / cost 0."""
        result = self.read(key)
        if isinstance(result, Found):
            return result.state
        return LedgerState.empty(key)

    # =========================================================================
    # Writes
    # =========================================================================

    def _create_row(self, key: StockKey, actor_id: UUID) -> StockItem:
        savepoint = self.session.begin_nested()
        try:
            row = StockItem(
                product_id=key.product_id,
                variant_id=key.variant_id,
                variant_key=key.variant_key,
                location_id=key.location_id,
                quantity=0,
                reserved_quantity=0,
                avg_cost=Decimal("0"),
                created_by_id=actor_id,
            )
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
            logger.info("stock_item_created", extra={"stock_key": str(key)})
            return row
        except IntegrityError:
            # Another transaction created the row first.
            logger.debug("stock_item_create_race_retry", extra={"stock_key": str(key)})
            savepoint.rollback()
            row = self._select(key, lock=True)
            if row is None:
                raise
            return row

    def _lock_or_create(self, key: StockKey, actor_id: UUID) -> StockItem:
        row = self._select(key, lock=True)
        return row if row is not None else self._create_row(key, actor_id)

    def _flush(self, row: StockItem) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "stock_item_version_conflict",
                extra={"stock_key": str(row.key), "stock_item_id": str(row.id)},
            )
            raise OptimisticLockError("StockItem", str(row.id)) from exc

    @staticmethod
    def _check_version(row: StockItem, expected_version: int | None) -> None:
        if expected_version is not None and row.version != expected_version:
            raise OptimisticLockError("StockItem", str(row.id))

    def _write(
        self,
        row: StockItem,
        delta: int,
        unit_cost: Decimal | None,
        movement_type: MovementType,
        reference: DocumentRef,
        actor_id: UUID,
        notes: str | None,
        fallback_cost: Decimal | None = None,
    ) -> LedgerState:
        before = row.to_state()
        after = apply_delta_to_state(
            before,
            delta,
            unit_cost,
            allow_negative=self._allow_negative,
            decimal_places=self._cost_places,
        )

        row.quantity = after.quantity
        row.avg_cost = after.avg_cost
        row.updated_by_id = actor_id
        self._flush(row)

        movement_cost = unit_cost if unit_cost is not None else before.avg_cost
        if unit_cost is None and before.avg_cost == 0 and fallback_cost is not None:
            movement_cost = fallback_cost
        self._movements.append(
            key=row.key,
            movement_type=movement_type,
            quantity=delta,
            unit_cost=movement_cost,
            reference=reference,
            actor_id=actor_id,
            notes=notes,
        )

        logger.info(
            "stock_delta_applied",
            extra={
                "stock_key": str(row.key),
                "movement_type": movement_type.value,
                "delta": delta,
                "quantity_before": before.quantity,
                "quantity_after": row.quantity,
                "avg_cost_before": before.avg_cost,
                "avg_cost_after": row.avg_cost,
                "reference": str(reference),
            },
        )
        return row.to_state()

    def apply_delta(
        self,
        key: StockKey,
        delta: int,
        unit_cost: Decimal | None = None,
        *,
        movement_type: MovementType,
        reference: DocumentRef,
        actor_id: UUID,
        notes: str | None = None,
        expected_version: int | None = None,
        fallback_cost: Decimal | None = None,
    ) -> LedgerState:
        """
        Apply a signed quantity change and record its movement.

        Preconditions:
            - ``delta`` != 0.
            - ``unit_cost`` >= 0 when given.  For incoming stock it is the
              cost of the new units; for outgoing stock it is only recorded
              on the movement (defaults to the current average, or to
              ``fallback_cost`` while no average has been established).

        Postconditions:
            - Ledger row exists, quantity changed by exactly ``delta``.
            - Exactly one movement appended with quantity ``delta``.

        Raises:
            InvalidQuantityError, InsufficientStockError, OptimisticLockError.
        """
        row = self._select(key, lock=True)
        if row is None:
            # Validate against the empty view before creating anything, so a
            # rejected first sale does not leave an empty row behind.
            apply_delta_to_state(
                LedgerState.empty(key),
                delta,
                unit_cost,
                allow_negative=self._allow_negative,
                decimal_places=self._cost_places,
            )
            row = self._create_row(key, actor_id)
        self._check_version(row, expected_version)
        return self._write(
            row, delta, unit_cost, movement_type, reference, actor_id, notes, fallback_cost,
        )

    def set_counted_quantity(
        self,
        key: StockKey,
        counted_quantity: int,
        *,
        reference: DocumentRef,
        actor_id: UUID,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> LedgerState:
        """
        Record a physical count.

        The difference between counted and recorded quantity becomes one
        ``count`` movement (none when they agree); ``last_count_date`` is
        stamped either way.
        """
        if counted_quantity < 0:
            raise InvalidQuantityError(counted_quantity, "a counted quantity cannot be negative")

        row = self._lock_or_create(key, actor_id)
        self._check_version(row, expected_version)

        difference = counted_quantity - row.quantity
        row.last_count_date = self._clock.now()
        row.updated_by_id = actor_id

        if difference == 0:
            self._flush(row)
            logger.info(
                "stock_counted",
                extra={"stock_key": str(key), "counted": counted_quantity, "difference": 0},
            )
            return row.to_state()

        state = self._write(
            row, difference, None, MovementType.COUNT, reference, actor_id, notes
        )
        logger.info(
            "stock_counted",
            extra={
                "stock_key": str(key),
                "counted": counted_quantity,
                "difference": difference,
            },
        )
        return state

    def reserve(self, key: StockKey, quantity: int, *, actor_id: UUID) -> LedgerState:
        """Set ``quantity`` units aside; fails if fewer are available."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "reservations must be positive")

        row = self._select(key, lock=True)
        available = row.quantity - row.reserved_quantity if row is not None else 0
        if row is None or available < quantity:
            raise InsufficientStockError(
                product_id=str(key.product_id),
                location_id=str(key.location_id),
                available=available,
                requested=quantity,
            )

        row.reserved_quantity += quantity
        row.updated_by_id = actor_id
        self._flush(row)
        logger.info(
            "stock_reserved",
            extra={"stock_key": str(key), "quantity": quantity, "reserved": row.reserved_quantity},
        )
        return row.to_state()

    def release(self, key: StockKey, quantity: int, *, actor_id: UUID) -> LedgerState:
        """Return reserved units to the available pool."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "releases must be positive")

        row = self._select(key, lock=True)
        reserved = row.reserved_quantity if row is not None else 0
        if row is None or reserved < quantity:
            raise InvalidQuantityError(
                quantity, f"only {reserved} units are reserved for {key}"
            )

        row.reserved_quantity -= quantity
        row.updated_by_id = actor_id
        self._flush(row)
        logger.info(
            "stock_released",
            extra={"stock_key": str(key), "quantity": quantity, "reserved": row.reserved_quantity},
        )
        return row.to_state()

    def last_count_date(self, key: StockKey) -> datetime | None:
        row = self._select(key, lock=False)
        return row.last_count_date if row is not None else None

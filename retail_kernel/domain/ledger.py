"""
Stock ledger value objects and the pure ledger arithmetic.

Responsibility:
    Defines the stock key, the ledger state snapshot, the tagged read result
    (``Found`` / ``Absent``), the movement type enum, and the two pure
    functions that decide what a delta does to a ledger row:
    ``weighted_average_cost`` and ``apply_delta_to_state``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The ledger service
    (services/stock_ledger_service.py) loads and locks rows, then delegates
    every computation here.

Invariants enforced:
    - Quantities are integers; costs are Decimal.
    - Incoming stock re-averages cost:
        new_avg = (old_qty * old_avg + delta * unit_cost) / (old_qty + delta)
      when old_qty + delta > 0, else unit_cost.
    - Outgoing stock never changes the average cost.
    - A zero delta is not a movement.
    - On-hand never goes below zero unless explicitly allowed.

Failure modes:
    - InvalidQuantityError for a zero delta or a negative unit cost.
    - InsufficientStockError when the delta would drive on-hand negative.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Union
from uuid import UUID

from retail_kernel.db.types import COST_DECIMAL_PLACES, round_cost
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import InsufficientStockError, InvalidQuantityError

ZERO = Decimal("0")


class MovementType(str, Enum):
    """Reason a stock quantity changed."""

    RECEIPT = "receipt"
    SALE = "sale"
    ISSUE = "issue"
    ADJUSTMENT = "adjustment"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    RETURN = "return"
    COUNT = "count"


@dataclass(frozen=True, slots=True)
class StockKey:
    """Identity of a ledger row: (product, optional variant, location)."""

    product_id: UUID
    location_id: UUID
    variant_id: UUID | None = None

    @property
    def variant_key(self) -> str:
        """Non-null variant discriminator used by the unique constraint."""
        return str(self.variant_id) if self.variant_id is not None else ""

    def at(self, location_id: UUID) -> StockKey:
        """Same product/variant at another location."""
        return replace(self, location_id=location_id)

    def __str__(self) -> str:
        variant = f"/{self.variant_id}" if self.variant_id else ""
        return f"{self.product_id}{variant}@{self.location_id}"


@dataclass(frozen=True, slots=True)
class LedgerState:
    """Snapshot of a ledger row."""

    key: StockKey
    quantity: int
    avg_cost: Decimal
    reserved_quantity: int = 0
    version: int = 0

    @property
    def available(self) -> int:
        return self.quantity - self.reserved_quantity

    @property
    def stock_value(self) -> Decimal:
        return self.avg_cost * self.quantity

    @classmethod
    def empty(cls, key: StockKey) -> LedgerState:
        """The view of an absent row used to compute its first delta."""
        return cls(key=key, quantity=0, avg_cost=ZERO)


@dataclass(frozen=True, slots=True)
class Found:
    """The ledger row exists."""

    state: LedgerState


@dataclass(frozen=True, slots=True)
class Absent:
    """No ledger row has ever been written for ``key``."""

    key: StockKey


LedgerRead = Union[Found, Absent]


@dataclass(frozen=True, slots=True)
class MovementRecord:
    """One entry of the movement log, as read back."""

    id: UUID
    seq: int
    key: StockKey
    movement_type: MovementType
    quantity: int
    unit_cost: Decimal
    reference: DocumentRef
    created_at: datetime
    created_by_id: UUID
    notes: str | None = None


def weighted_average_cost(
    old_quantity: int,
    old_avg_cost: Decimal,
    delta: int,
    unit_cost: Decimal,
    decimal_places: int = COST_DECIMAL_PLACES,
) -> Decimal:
    """
    Average cost after receiving ``delta`` units at ``unit_cost``.

    >>> weighted_average_cost(10, Decimal("5.00"), 10, Decimal("7.00"))
    Decimal('6.000000')
    """
    new_quantity = old_quantity + delta
    if new_quantity <= 0:
        return round_cost(unit_cost, decimal_places)
    total = Decimal(old_quantity) * old_avg_cost + Decimal(delta) * unit_cost
    return round_cost(total / Decimal(new_quantity), decimal_places)


def apply_delta_to_state(
    state: LedgerState,
    delta: int,
    unit_cost: Decimal | None = None,
    *,
    allow_negative: bool = False,
    decimal_places: int = COST_DECIMAL_PLACES,
) -> LedgerState:
    """
    Compute the ledger state after applying ``delta``.

    Incoming deltas without a unit cost are valued at the current average,
    which leaves the average unchanged.
    """
    if delta == 0:
        raise InvalidQuantityError(delta, "a stock movement needs a non-zero quantity")
    if unit_cost is not None and unit_cost < ZERO:
        raise InvalidQuantityError(delta, f"unit cost {unit_cost} is negative")

    new_quantity = state.quantity + delta

    if delta < 0:
        if new_quantity < 0 and not allow_negative:
            raise InsufficientStockError(
                product_id=str(state.key.product_id),
                location_id=str(state.key.location_id),
                available=state.quantity,
                requested=-delta,
            )
        return replace(state, quantity=new_quantity)

    cost = state.avg_cost if unit_cost is None else unit_cost
    new_avg = weighted_average_cost(
        state.quantity, state.avg_cost, delta, cost, decimal_places
    )
    return replace(state, quantity=new_quantity, avg_cost=new_avg)

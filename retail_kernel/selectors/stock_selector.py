"""
Module: retail_kernel.selectors.stock_selector
Responsibility: Read-only stock queries: balances per location, product
    totals across locations, and reconciliation of the ledger against the
    movement log.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - For every ledger row, quantity == sum(movements.quantity) of its key.
      ``reconcile`` reports every key where that does not hold, including
      movements whose ledger row is missing.

Audit relevance:
    ``reconcile`` is the detection path for any drift between the two
    structures (a bypassed service, a manual SQL fix, a restore of only one
    table).  Drift is logged at WARNING with the offending key.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from retail_kernel.domain.ledger import LedgerState, StockKey
from retail_kernel.logging_config import get_logger
from retail_kernel.models.stock import StockItem, StockMovement
from retail_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.stock")


@dataclass(frozen=True)
class ProductStockTotal:
    """Stock of one product (or variant) summed over locations."""

    product_id: UUID
    variant_id: UUID | None
    quantity: int
    reserved_quantity: int
    stock_value: Decimal
    location_count: int

    @property
    def available(self) -> int:
        return self.quantity - self.reserved_quantity


@dataclass(frozen=True)
class LedgerDrift:
    """A stock key whose ledger quantity disagrees with its movement history."""

    key: StockKey
    ledger_quantity: int | None
    movement_quantity: int

    @property
    def difference(self) -> int:
        return (self.ledger_quantity or 0) - self.movement_quantity


@dataclass(frozen=True)
class ReconciliationReport:
    keys_checked: int
    drifts: tuple[LedgerDrift, ...]

    @property
    def is_consistent(self) -> bool:
        return not self.drifts


class StockSelector(BaseSelector):
    """Queries over ``stock_items`` and ``stock_movements``."""

    def balances_at(self, location_id: UUID) -> list[LedgerState]:
        rows = self.session.execute(
            select(StockItem)
            .where(StockItem.location_id == location_id)
            .order_by(StockItem.product_id, StockItem.variant_key)
        ).scalars()
        return [row.to_state() for row in rows]

    def product_total(self, product_id: UUID, variant_id: UUID | None = None) -> ProductStockTotal:
        variant_key = str(variant_id) if variant_id is not None else ""
        rows = list(
            self.session.execute(
                select(StockItem).where(
                    StockItem.product_id == product_id,
                    StockItem.variant_key == variant_key,
                )
            ).scalars()
        )
        return ProductStockTotal(
            product_id=product_id,
            variant_id=variant_id,
            quantity=sum(r.quantity for r in rows),
            reserved_quantity=sum(r.reserved_quantity for r in rows),
            stock_value=sum((r.avg_cost * r.quantity for r in rows), Decimal("0")),
            location_count=len(rows),
        )

    def below_quantity(self, location_id: UUID, threshold: int) -> list[LedgerState]:
        """Ledger rows at ``location_id`` with on-hand below ``threshold``."""
        rows = self.session.execute(
            select(StockItem)
            .where(StockItem.location_id == location_id, StockItem.quantity < threshold)
            .order_by(StockItem.quantity)
        ).scalars()
        return [row.to_state() for row in rows]

    def reconcile(self, key: StockKey | None = None) -> ReconciliationReport:
        """Compare every ledger quantity (or just ``key``'s) with its movement sum."""
        movement_sums = select(
            StockMovement.product_id,
            StockMovement.variant_key,
            StockMovement.location_id,
            func.min(StockMovement.variant_id).label("variant_id"),
            func.sum(StockMovement.quantity).label("total"),
        ).group_by(
            StockMovement.product_id,
            StockMovement.variant_key,
            StockMovement.location_id,
        )
        ledger_rows = select(StockItem)
        if key is not None:
            movement_sums = movement_sums.where(
                StockMovement.product_id == key.product_id,
                StockMovement.variant_key == key.variant_key,
                StockMovement.location_id == key.location_id,
            )
            ledger_rows = ledger_rows.where(
                StockItem.product_id == key.product_id,
                StockItem.variant_key == key.variant_key,
                StockItem.location_id == key.location_id,
            )

        totals: dict[tuple, tuple[UUID | None, int]] = {
            (row.product_id, row.variant_key, row.location_id): (row.variant_id, int(row.total))
            for row in self.session.execute(movement_sums)
        }
        ledger = {
            (item.product_id, item.variant_key, item.location_id): item
            for item in self.session.execute(ledger_rows).scalars()
        }

        drifts: list[LedgerDrift] = []
        for ident in sorted(set(totals) | set(ledger), key=lambda k: (str(k[0]), k[1], str(k[2]))):
            item = ledger.get(ident)
            variant_id, movement_total = totals.get(ident, (None, 0))
            ledger_quantity = item.quantity if item is not None else None
            if ledger_quantity == movement_total:
                continue
            drift = LedgerDrift(
                key=item.key if item is not None else StockKey(ident[0], ident[2], variant_id),
                ledger_quantity=ledger_quantity,
                movement_quantity=movement_total,
            )
            logger.warning(
                "stock_ledger_drift_detected",
                extra={
                    "stock_key": str(drift.key),
                    "ledger_quantity": drift.ledger_quantity,
                    "movement_quantity": drift.movement_quantity,
                },
            )
            drifts.append(drift)

        report = ReconciliationReport(
            keys_checked=len(set(totals) | set(ledger)),
            drifts=tuple(drifts),
        )
        logger.info(
            "stock_reconciliation_completed",
            extra={"keys_checked": report.keys_checked, "drift_count": len(drifts)},
        )
        return report

"""
Service Order Module Service (``retail_modules.service_orders.service``).

Responsibility
--------------
Repair jobs from intake to invoicing: status changes, parts and services
on the order, totals, and consumption of parts from stock.

Architecture position
---------------------
**Modules layer** -- ``ServiceOrderService`` is the public entry point.
Uses ``retail_modules.inventory`` to resolve the default location and the
kernel ``StockLedgerService`` for every quantity change.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary.
* Parts consumption is all-or-nothing: every requested quantity is checked
  against stock first, and if any is short nothing is issued.
* Every status change, note and consumption leaves an entry in the
  append-only activity log.
* parts_cost = sum of item totals; total = labor_cost + parts_cost.

Failure modes
-------------
* ``InvalidTransitionError``   -- action not allowed in the current status.
* ``DocumentNotEditableError`` -- adding items to an invoiced or cancelled order.
* ``ConsumptionShortageError`` -- one or more parts short on stock.
* ``NoDefaultLocationError``   -- no location given and none is default.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retail_config import RetailConfig
from retail_kernel.db.types import round_money, to_decimal
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.ledger import MovementType, StockKey
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import (
    ConsumptionShortageError,
    DocumentNotEditableError,
    DocumentNotFoundError,
    InvalidQuantityError,
)
from retail_kernel.logging_config import get_logger
from retail_kernel.services.sequence_service import SequenceService
from retail_modules._document_helpers import (
    build_stock_ledger,
    logs_document,
    next_status,
    number_format,
    resolve_config,
)
from retail_modules.inventory.service import InventoryService
from retail_modules.service_orders.models import (
    Equipment,
    LogEntryType,
    ServiceOrder,
    ServiceOrderLogEntry,
    ServiceOrderPriority,
    ServiceOrderStatus,
)
from retail_modules.service_orders.orm import (
    ServiceOrderItemModel,
    ServiceOrderLogModel,
    ServiceOrderModel,
)
from retail_modules.service_orders.workflows import SERVICE_ORDER_WORKFLOW

logger = get_logger("modules.service_orders.service")

_DOCUMENT = "service_order"
ZERO = Decimal("0")

_CLOSED_STATUSES = (
    ServiceOrderStatus.INVOICED.value,
    ServiceOrderStatus.CANCELLED.value,
)


class ServiceOrderService:
    """
    Orchestrates service orders.

    Contract
    --------
    * Writes commit before returning and return the updated DTO.
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
        self._sequences = SequenceService(session, clock=self._clock)
        self._ledger = build_stock_ledger(session, self._clock, self._config)
        self._inventory = InventoryService(session, clock=self._clock, config=self._config)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, order_id: UUID, *, lock: bool = False) -> ServiceOrderModel:
        stmt = select(ServiceOrderModel).where(ServiceOrderModel.id == order_id)
        if lock:
            stmt = stmt.with_for_update()
        order = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise DocumentNotFoundError(_DOCUMENT, str(order_id))
        return order

    def _log(
        self,
        order: ServiceOrderModel,
        entry_type: LogEntryType,
        message: str,
        actor_id: UUID,
    ) -> None:
        # The order row is locked by the caller, so max + 1 is safe.
        last = self._session.execute(
            select(func.max(ServiceOrderLogModel.entry_number))
            .where(ServiceOrderLogModel.service_order_id == order.id)
        ).scalar_one_or_none()
        self._session.add(
            ServiceOrderLogModel(
                service_order_id=order.id,
                entry_number=(last or 0) + 1,
                entry_type=entry_type.value,
                message=message,
                created_by_id=actor_id,
            )
        )
        self._session.flush()

    @staticmethod
    def _apply_totals(order: ServiceOrderModel) -> None:
        order.parts_cost = round_money(sum((item.total for item in order.items), ZERO))
        order.total = order.labor_cost + order.parts_cost

    def _change_status(self, order_id: UUID, action: str, actor_id: UUID) -> ServiceOrder:
        try:
            order = self._load(order_id, lock=True)
            previous = order.status
            order.status = next_status(
                SERVICE_ORDER_WORKFLOW, _DOCUMENT, order.id, order.status, action,
            )
            if order.status == ServiceOrderStatus.COMPLETED.value:
                order.actual_completion = self._clock.now()
            elif previous == ServiceOrderStatus.COMPLETED.value and action == "reopen":
                order.actual_completion = None
            order.updated_by_id = actor_id
            self._log(
                order,
                LogEntryType.STATUS_CHANGE,
                f"Status changed from {previous} to {order.status}",
                actor_id,
            )
            logger.info("service_order_status_changed", extra={
                "service_order_id": str(order.id),
                "number": order.number,
                "action": action,
                "from_status": previous,
                "to_status": order.status,
            })
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order(self, order_id: UUID) -> ServiceOrder:
        return self._load(order_id).to_dto()

    def get_log(self, order_id: UUID) -> list[ServiceOrderLogEntry]:
        rows = self._session.execute(
            select(ServiceOrderLogModel)
            .where(ServiceOrderLogModel.service_order_id == order_id)
            .order_by(ServiceOrderLogModel.entry_number)
        ).scalars()
        return [row.to_dto() for row in rows]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_order(
        self,
        *,
        actor_id: UUID,
        customer_id: UUID | None = None,
        technician_id: UUID | None = None,
        equipment: Equipment | None = None,
        reported_problem: str | None = None,
        priority: ServiceOrderPriority = ServiceOrderPriority.NORMAL,
        labor_cost: Decimal = ZERO,
        estimated_completion: date | None = None,
        notes: str | None = None,
    ) -> ServiceOrder:
        """Open a new order numbered ``OS-{seq:04d}``."""
        equipment = equipment or Equipment()
        try:
            labor = round_money(to_decimal(labor_cost))
            order = ServiceOrderModel(
                number=self._sequences.next_number(number_format(self._config, "service_order")),
                customer_id=customer_id,
                technician_id=technician_id,
                status=SERVICE_ORDER_WORKFLOW.initial_state,
                priority=priority.value,
                equipment_type=equipment.equipment_type,
                equipment_brand=equipment.brand,
                equipment_model=equipment.model,
                equipment_serial=equipment.serial_number,
                reported_problem=reported_problem,
                labor_cost=labor,
                parts_cost=ZERO,
                total=labor,
                estimated_completion=estimated_completion,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(order)
            self._session.flush()
            self._log(order, LogEntryType.SYSTEM, f"Service order {order.number} opened", actor_id)

            logger.info("service_order_created", extra={
                "service_order_id": str(order.id),
                "number": order.number,
                "priority": order.priority,
            })
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    @logs_document("service_order")
    def start(self, order_id: UUID, *, actor_id: UUID) -> ServiceOrder:
        return self._change_status(order_id, "start", actor_id)

    @logs_document("service_order")
    def complete(self, order_id: UUID, *, actor_id: UUID) -> ServiceOrder:
        """Finish the work and stamp ``actual_completion``."""
        return self._change_status(order_id, "complete", actor_id)

    @logs_document("service_order")
    def invoice(self, order_id: UUID, *, actor_id: UUID) -> ServiceOrder:
        return self._change_status(order_id, "invoice", actor_id)

    @logs_document("service_order")
    def cancel(self, order_id: UUID, *, actor_id: UUID) -> ServiceOrder:
        return self._change_status(order_id, "cancel", actor_id)

    @logs_document("service_order")
    def reopen(self, order_id: UUID, *, actor_id: UUID) -> ServiceOrder:
        return self._change_status(order_id, "reopen", actor_id)

    @logs_document("service_order")
    def add_note(self, order_id: UUID, message: str, *, actor_id: UUID) -> None:
        try:
            order = self._load(order_id, lock=True)
            self._log(order, LogEntryType.NOTE, message, actor_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    @logs_document("service_order")
    def record_diagnosis(
        self,
        order_id: UUID,
        diagnosis: str,
        *,
        actor_id: UUID,
        labor_cost: Decimal | None = None,
    ) -> ServiceOrder:
        """Store the technician's diagnosis, optionally with a labour quote."""
        try:
            order = self._load(order_id, lock=True)
            if order.status in _CLOSED_STATUSES:
                raise DocumentNotEditableError(_DOCUMENT, str(order_id), order.status)
            order.diagnosis = diagnosis
            if labor_cost is not None:
                order.labor_cost = round_money(to_decimal(labor_cost))
                self._apply_totals(order)
            order.updated_by_id = actor_id
            self._log(order, LogEntryType.NOTE, f"Diagnosis: {diagnosis}", actor_id)
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Items and totals
    # =========================================================================

    @logs_document("service_order")
    def add_item(
        self,
        order_id: UUID,
        description: str,
        quantity: int,
        unit_price: Decimal,
        *,
        actor_id: UUID,
        product_id: UUID | None = None,
        variant_id: UUID | None = None,
        cost_price: Decimal = ZERO,
    ) -> ServiceOrder:
        """Add a part (with ``product_id``) or a service line; totals follow."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "item quantity must be positive")
        try:
            order = self._load(order_id, lock=True)
            if order.status in _CLOSED_STATUSES:
                raise DocumentNotEditableError(_DOCUMENT, str(order_id), order.status)

            price = to_decimal(unit_price)
            order.items.append(
                ServiceOrderItemModel(
                    line_number=len(order.items) + 1,
                    product_id=product_id,
                    variant_id=variant_id,
                    description=description,
                    quantity=quantity,
                    unit_price=price,
                    cost_price=to_decimal(cost_price),
                    total=round_money(price * quantity),
                    consumed_quantity=0,
                    consumed=False,
                    created_by_id=actor_id,
                )
            )
            self._apply_totals(order)
            order.updated_by_id = actor_id
            self._session.flush()

            logger.info("service_order_item_added", extra={
                "service_order_id": str(order.id),
                "number": order.number,
                "product_id": str(product_id) if product_id else None,
                "quantity": quantity,
                "parts_cost": order.parts_cost,
            })
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def recalculate_totals(self, order_id: UUID, *, actor_id: UUID) -> ServiceOrder:
        """parts_cost = sum of item totals; total = labor_cost + parts_cost."""
        try:
            order = self._load(order_id, lock=True)
            self._apply_totals(order)
            order.updated_by_id = actor_id
            self._session.flush()
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Parts consumption
    # =========================================================================

    @logs_document("service_order")
    def consume_parts(
        self,
        order_id: UUID,
        item_ids: Sequence[UUID],
        *,
        actor_id: UUID,
        location_id: UUID | None = None,
        notes: str | None = None,
        quantities: Mapping[UUID, int] | None = None,
    ) -> ServiceOrder:
        """
        Take the parts on the order out of stock.

        Items that are services (no product), fully consumed, or not on
        the order are skipped.  ``quantities`` may give a per-item amount;
        it is clamped to between 1 and what is still left to issue on the
        item, and an item without one issues everything left.  An item is
        marked consumed once its whole quantity has been issued.  Stock is
        taken from ``location_id`` or the default location.

        Raises:
            ConsumptionShortageError: naming every short part; nothing is
                issued in that case, even where negative stock is allowed.
        """
        try:
            order = self._load(order_id, lock=True)
            if order.status in _CLOSED_STATUSES:
                raise DocumentNotEditableError(_DOCUMENT, str(order_id), order.status)
            if location_id is None:
                location_id = self._inventory.default_location().id

            wanted = set(item_ids)
            quantities = quantities or {}
            issues: list[tuple[ServiceOrderItemModel, int]] = []
            for item in order.items:
                if item.id not in wanted or item.product_id is None or item.consumed:
                    continue
                remaining = item.quantity - item.consumed_quantity
                requested = quantities.get(item.id, remaining)
                issues.append((item, min(max(requested, 1), remaining)))

            required: dict[StockKey, int] = {}
            names: dict[StockKey, str] = {}
            for item, quantity in issues:
                key = StockKey(item.product_id, location_id, item.variant_id)
                required[key] = required.get(key, 0) + quantity
                names.setdefault(key, item.description)
            shortages = []
            for key, quantity in required.items():
                available = self._ledger.get_quantity(key).quantity
                if available < quantity:
                    shortages.append((names[key], available, quantity))
            if shortages:
                logger.warning("service_order_consumption_short", extra={
                    "service_order_id": str(order.id),
                    "number": order.number,
                    "shortage_count": len(shortages),
                })
                raise ConsumptionShortageError(str(order.id), shortages)

            reference = DocumentRef.service_order(order.id)
            for item, quantity in issues:
                self._ledger.apply_delta(
                    StockKey(item.product_id, location_id, item.variant_id),
                    -quantity,
                    movement_type=MovementType.ISSUE,
                    reference=reference,
                    actor_id=actor_id,
                    notes=notes or f"Consumed on {order.number}",
                    fallback_cost=item.cost_price if item.cost_price > ZERO else item.unit_price,
                )
                item.consumed_quantity += quantity
                item.consumed = item.consumed_quantity >= item.quantity
                item.updated_by_id = actor_id

            if issues:
                self._log(
                    order,
                    LogEntryType.INVENTORY,
                    "Parts consumed: " + ", ".join(
                        f"{item.description} x{quantity}" for item, quantity in issues
                    ),
                    actor_id,
                )
            logger.info("service_order_parts_consumed", extra={
                "service_order_id": str(order.id),
                "number": order.number,
                "location_id": str(location_id),
                "item_count": len(issues),
                "quantity": sum(quantity for _, quantity in issues),
            })
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

"""
Purchasing Module Service (``retail_modules.purchasing.service``).

Responsibility
--------------
Purchase order lifecycle and goods receiving: create and edit draft
orders, approve, cancel, and receive goods into stock.  Receiving is the
only step that moves stock; it delegates every quantity change to the
kernel ``StockLedgerService``.

Architecture position
---------------------
**Modules layer** -- ``PurchasingService`` is the sole public entry point
for purchase orders.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on any exception), so a receipt
  either updates every line, ledger row and movement or none of them.
* ``received_quantity`` never exceeds the ordered quantity: requested
  quantities are clamped to what is outstanding.
* Order numbers come from a locked counter (``OC-{year}-{seq:04d}``).
* A receive carrying an idempotency key that was already used on the same
  order returns the earlier receipt and applies nothing.

Failure modes
-------------
* ``DocumentNotFoundError``  -- unknown order id.
* ``InvalidTransitionError`` -- action not allowed in the current status.
* ``DocumentNotEditableError`` -- editing a non-draft order.
* ``PurchaseOrderHasReceiptsError`` -- cancelling after goods arrived.
* ``EmptyDocumentError`` -- order without lines.

Audit relevance
---------------
Structured log events for every state change and receipt, carrying the
order number, quantities and the resulting status.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from retail_config import RetailConfig
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.ledger import MovementType, StockKey
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import (
    DocumentNotEditableError,
    DocumentNotFoundError,
    EmptyDocumentError,
    PurchaseOrderHasReceiptsError,
)
from retail_kernel.logging_config import get_logger
from retail_kernel.services.sequence_service import SequenceService
from retail_modules._document_helpers import (
    build_stock_ledger,
    line_amounts,
    logs_document,
    next_status,
    number_format,
    resolve_config,
    sum_amounts,
)
from retail_modules.purchasing.models import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    ReceiptResult,
    ReceiveLine,
)
from retail_modules.purchasing.orm import (
    GoodsReceiptLineModel,
    GoodsReceiptModel,
    PurchaseOrderItemModel,
    PurchaseOrderModel,
)
from retail_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

logger = get_logger("modules.purchasing.service")

_DOCUMENT = "purchase_order"


class PurchasingService:
    """
    Orchestrates purchase orders and goods receiving.

    Contract
    --------
    * Reads return frozen ``PurchaseOrder`` DTOs.
    * Writes commit before returning and return the updated DTO.

    Non-goals
    ---------
    * Does NOT create supplier invoices (see ``retail_modules.payables``).
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

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, order_id: UUID, *, lock: bool = False) -> PurchaseOrderModel:
        stmt = select(PurchaseOrderModel).where(PurchaseOrderModel.id == order_id)
        if lock:
            stmt = stmt.with_for_update()
        order = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise DocumentNotFoundError(_DOCUMENT, str(order_id))
        return order

    def _receipt_for_key(
        self, order_id: UUID, idempotency_key: str,
    ) -> GoodsReceiptModel | None:
        return self._session.execute(
            select(GoodsReceiptModel).where(
                GoodsReceiptModel.purchase_order_id == order_id,
                GoodsReceiptModel.idempotency_key == idempotency_key,
            )
        ).scalar_one_or_none()

    @staticmethod
    def _replayed(order: PurchaseOrderModel, receipt: GoodsReceiptModel) -> ReceiptResult:
        logger.info("purchase_order_receipt_replayed", extra={
            "purchase_order_id": str(order.id),
            "goods_receipt_id": str(receipt.id),
            "idempotency_key": receipt.idempotency_key,
        })
        return ReceiptResult(order.to_dto(), receipt.to_dto(), replayed=True)

    @staticmethod
    def _build_items(
        lines: Sequence[PurchaseOrderLine], actor_id: UUID,
    ) -> list[PurchaseOrderItemModel]:
        if not lines:
            raise EmptyDocumentError(_DOCUMENT)
        return [
            PurchaseOrderItemModel(
                line_number=idx + 1,
                product_id=line.product_id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                received_quantity=0,
                unit_cost=line.unit_cost,
                discount_percent=line.discount_percent,
                tax_rate=line.tax_rate,
                total=line_amounts(
                    line.quantity, line.unit_cost, line.discount_percent, line.tax_rate,
                ).total,
                created_by_id=actor_id,
            )
            for idx, line in enumerate(lines)
        ]

    @staticmethod
    def _apply_totals(order: PurchaseOrderModel, lines: Sequence[PurchaseOrderLine]) -> None:
        amounts = sum_amounts(
            line_amounts(line.quantity, line.unit_cost, line.discount_percent, line.tax_rate)
            for line in lines
        )
        order.subtotal = amounts.subtotal
        order.discount_amount = amounts.discount_amount
        order.tax_amount = amounts.tax_amount
        order.total = amounts.total

    def _transition(self, order: PurchaseOrderModel, action: str, actor_id: UUID) -> None:
        previous = order.status
        order.status = next_status(
            PURCHASE_ORDER_WORKFLOW, _DOCUMENT, order.id, order.status, action,
        )
        order.updated_by_id = actor_id
        self._session.flush()
        logger.info("purchase_order_status_changed", extra={
            "purchase_order_id": str(order.id),
            "number": order.number,
            "action": action,
            "from_status": previous,
            "to_status": order.status,
        })

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order(self, order_id: UUID) -> PurchaseOrder:
        return self._load(order_id).to_dto()

    def list_orders(
        self,
        *,
        status: PurchaseOrderStatus | None = None,
        supplier_id: UUID | None = None,
    ) -> list[PurchaseOrder]:
        stmt = select(PurchaseOrderModel).order_by(PurchaseOrderModel.number)
        if status is not None:
            stmt = stmt.where(PurchaseOrderModel.status == status.value)
        if supplier_id is not None:
            stmt = stmt.where(PurchaseOrderModel.supplier_id == supplier_id)
        return [row.to_dto() for row in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_order(
        self,
        supplier_id: UUID,
        location_id: UUID,
        lines: Sequence[PurchaseOrderLine],
        *,
        actor_id: UUID,
        order_date: date | None = None,
        expected_date: date | None = None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        """Create a draft order numbered ``OC-{year}-{seq:04d}``."""
        try:
            items = self._build_items(lines, actor_id)
            order = PurchaseOrderModel(
                number=self._sequences.next_number(
                    number_format(self._config, "purchase_order")
                ),
                supplier_id=supplier_id,
                location_id=location_id,
                order_date=order_date or self._clock.today(),
                expected_date=expected_date,
                notes=notes,
                status=PurchaseOrderStatus.DRAFT.value,
                created_by_id=actor_id,
            )
            order.items = items
            self._apply_totals(order, lines)
            self._session.add(order)
            self._session.flush()

            logger.info("purchase_order_created", extra={
                "purchase_order_id": str(order.id),
                "number": order.number,
                "supplier_id": str(supplier_id),
                "line_count": len(items),
                "total": order.total,
            })
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    @logs_document("purchase_order")
    def update_order(
        self,
        order_id: UUID,
        lines: Sequence[PurchaseOrderLine],
        *,
        actor_id: UUID,
        expected_date: date | None = None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        """Replace the lines of a draft order and recompute its totals."""
        try:
            order = self._load(order_id, lock=True)
            if order.status != PurchaseOrderStatus.DRAFT.value:
                raise DocumentNotEditableError(_DOCUMENT, str(order_id), order.status)

            order.items = self._build_items(lines, actor_id)
            self._apply_totals(order, lines)
            if expected_date is not None:
                order.expected_date = expected_date
            if notes is not None:
                order.notes = notes
            order.updated_by_id = actor_id
            self._session.flush()

            logger.info("purchase_order_updated", extra={
                "purchase_order_id": str(order.id),
                "number": order.number,
                "line_count": len(order.items),
                "total": order.total,
            })
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    @logs_document("purchase_order")
    def approve(self, order_id: UUID, *, actor_id: UUID) -> PurchaseOrder:
        try:
            order = self._load(order_id, lock=True)
            self._transition(order, "approve", actor_id)
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    @logs_document("purchase_order")
    def cancel(self, order_id: UUID, *, actor_id: UUID) -> PurchaseOrder:
        """Cancel a draft or approved order that has received nothing."""
        try:
            order = self._load(order_id, lock=True)
            received = sum(item.received_quantity for item in order.items)
            if received > 0:
                raise PurchaseOrderHasReceiptsError(str(order_id), received)
            self._transition(order, "cancel", actor_id)
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Receiving
    # =========================================================================

    @logs_document("purchase_order")
    def receive(
        self,
        order_id: UUID,
        lines: Sequence[ReceiveLine],
        *,
        actor_id: UUID,
        idempotency_key: str | None = None,
    ) -> ReceiptResult:
        """
        Receive goods against an approved or partially received order.

        Lines with a non-positive quantity or an item id not on the order
        are skipped; quantities are clamped to what is outstanding.  Each
        received line adds stock at the order location with a ``receipt``
        movement referencing the order.

        Postconditions:
            - status is ``received`` when every item is fully received,
              ``partial`` when anything has been received.
        """
        try:
            order = self._load(order_id, lock=True)

            if idempotency_key is not None:
                previous = self._receipt_for_key(order.id, idempotency_key)
                if previous is not None:
                    result = self._replayed(order, previous)
                    self._session.commit()
                    return result

            if order.status not in (
                PurchaseOrderStatus.APPROVED.value,
                PurchaseOrderStatus.PARTIAL.value,
            ):
                # Raises InvalidTransitionError for draft/received/cancelled.
                next_status(PURCHASE_ORDER_WORKFLOW, _DOCUMENT, order.id, order.status, "receive")

            items = {item.id: item for item in order.items}
            reference = DocumentRef.purchase_order(order.id)
            receipt_lines: list[GoodsReceiptLineModel] = []

            for line in lines:
                item = items.get(line.item_id)
                if item is None or line.quantity <= 0:
                    continue
                quantity = min(line.quantity, item.quantity - item.received_quantity)
                if quantity <= 0:
                    continue

                unit_cost = line.unit_cost if line.unit_cost is not None else item.unit_cost
                item.received_quantity += quantity
                item.updated_by_id = actor_id
                self._ledger.apply_delta(
                    StockKey(item.product_id, order.location_id, item.variant_id),
                    quantity,
                    unit_cost,
                    movement_type=MovementType.RECEIPT,
                    reference=reference,
                    actor_id=actor_id,
                    notes=f"Receipt {order.number}",
                )
                receipt_lines.append(
                    GoodsReceiptLineModel(
                        line_number=len(receipt_lines) + 1,
                        purchase_order_item_id=item.id,
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        quantity=quantity,
                        unit_cost=unit_cost,
                        created_by_id=actor_id,
                    )
                )

            receipt = None
            if receipt_lines:
                receipt = GoodsReceiptModel(
                    purchase_order_id=order.id,
                    received_at=self._clock.now(),
                    idempotency_key=idempotency_key,
                    created_by_id=actor_id,
                    lines=receipt_lines,
                )
                self._session.add(receipt)
                self._session.flush()

                if all(i.received_quantity >= i.quantity for i in order.items):
                    target = PurchaseOrderStatus.RECEIVED.value
                else:
                    target = PurchaseOrderStatus.PARTIAL.value
                previous_status = order.status
                order.status = next_status(
                    PURCHASE_ORDER_WORKFLOW, _DOCUMENT, order.id, order.status, "receive", target,
                )
                order.updated_by_id = actor_id
                self._session.flush()

                logger.info("purchase_order_received", extra={
                    "purchase_order_id": str(order.id),
                    "number": order.number,
                    "goods_receipt_id": str(receipt.id),
                    "line_count": len(receipt_lines),
                    "quantity": sum(rl.quantity for rl in receipt_lines),
                    "from_status": previous_status,
                    "to_status": order.status,
                })
            else:
                logger.info("purchase_order_receipt_empty", extra={
                    "purchase_order_id": str(order.id),
                    "number": order.number,
                })

            self._session.commit()
            return ReceiptResult(
                order.to_dto(),
                receipt.to_dto() if receipt is not None else None,
            )
        except IntegrityError:
            self._session.rollback()
            if idempotency_key is None:
                raise
            # A concurrent receive with the same key committed first.
            previous = self._receipt_for_key(order_id, idempotency_key)
            if previous is None:
                raise
            return self._replayed(self._load(order_id), previous)
        except Exception:
            self._session.rollback()
            raise
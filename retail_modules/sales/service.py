"""
Sales Module Service (``retail_modules.sales.service``).

Responsibility
--------------
Point-of-sale checkout, later customer payments, and returns.  Checkout
creates the invoice, takes every cart line out of stock and records the
payments taken at the till, all in one transaction.

Architecture position
---------------------
**Modules layer** -- ``SalesService`` is the public entry point for the
till.  Quantity changes go through the kernel ``StockLedgerService``.

Invariants enforced
-------------------
* One transaction per checkout: if any line is short the whole sale is
  rolled back; no invoice, no movements, no payments remain.
* Each sold line writes one ``sale`` movement (negative quantity) valued
  at the location's average cost, or at the line's ``cost_price`` while
  the location has no average yet.
* Status from payments: ``paid`` when paid >= total, ``partial`` when
  paid > 0, otherwise ``confirmed``.
* A checkout carrying an idempotency key that was already used returns the
  earlier invoice and moves no stock.
* Returns never exceed what was sold minus what was already returned.

Failure modes
-------------
* ``EmptyDocumentError``      -- empty cart.
* ``InsufficientStockError``  -- a line exceeds on-hand stock.
* ``InvalidDiscountError``    -- negative invoice discount.
* ``InvalidPaymentError``     -- payment amount zero or negative.
* ``InvoiceAlreadyPaidError`` -- payment on a paid invoice.
* ``ReturnExceedsSaleError``  -- returning more than is returnable.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from retail_config import RetailConfig
from retail_kernel.db.types import round_money, to_decimal
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.ledger import MovementType, StockKey
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import (
    DocumentNotFoundError,
    EmptyDocumentError,
    InvalidDiscountError,
    InvalidPaymentError,
    InvalidQuantityError,
    InvoiceAlreadyPaidError,
    ReturnExceedsSaleError,
)
from retail_kernel.logging_config import get_logger
from retail_kernel.services.sequence_service import SequenceService
from retail_modules._document_helpers import (
    build_stock_ledger,
    line_amounts,
    logs_document,
    next_status,
    number_format,
    payment_status,
    resolve_config,
    sum_amounts,
)
from retail_modules.sales.models import (
    CartLine,
    PaymentInput,
    PaymentMethod,
    ReturnLine,
    SalesInvoice,
    SalesInvoiceStatus,
)
from retail_modules.sales.orm import (
    SalesInvoiceItemModel,
    SalesInvoiceModel,
    SalesPaymentModel,
)
from retail_modules.sales.workflows import SALES_INVOICE_WORKFLOW

logger = get_logger("modules.sales.service")

_DOCUMENT = "sales_invoice"
ZERO = Decimal("0")


class SalesService:
    """
    Orchestrates POS sales.

    Contract
    --------
    * Writes commit before returning and return the updated DTO.

    Non-goals
    ---------
    * Does NOT refund money on returns; refunds are settled outside.
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

    def _load(self, invoice_id: UUID, *, lock: bool = False) -> SalesInvoiceModel:
        stmt = select(SalesInvoiceModel).where(SalesInvoiceModel.id == invoice_id)
        if lock:
            stmt = stmt.with_for_update()
        invoice = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise DocumentNotFoundError(_DOCUMENT, str(invoice_id))
        return invoice

    def _by_idempotency_key(self, key: str) -> SalesInvoiceModel | None:
        return self._session.execute(
            select(SalesInvoiceModel).where(SalesInvoiceModel.idempotency_key == key)
        ).scalar_one_or_none()

    def _add_payment(
        self,
        invoice: SalesInvoiceModel,
        method: PaymentMethod,
        amount: Decimal,
        reference: str | None,
        actor_id: UUID,
    ) -> SalesPaymentModel:
        payment = SalesPaymentModel(
            invoice_id=invoice.id,
            method=method.value,
            amount=round_money(amount),
            paid_at=self._clock.now(),
            reference=reference,
            created_by_id=actor_id,
        )
        self._session.add(payment)
        self._session.flush()
        return payment

    def _recompute_paid(self, invoice: SalesInvoiceModel) -> Decimal:
        amounts = self._session.execute(
            select(SalesPaymentModel.amount).where(SalesPaymentModel.invoice_id == invoice.id)
        ).scalars()
        invoice.paid_amount = round_money(sum(amounts, ZERO))
        self._session.expire(invoice, ["payments"])
        return invoice.paid_amount

    @staticmethod
    def _status_for(invoice: SalesInvoiceModel) -> str:
        return payment_status(
            invoice.paid_amount,
            invoice.total,
            paid_state=SalesInvoiceStatus.PAID.value,
            partial_state=SalesInvoiceStatus.PARTIAL.value,
            unpaid_state=SalesInvoiceStatus.CONFIRMED.value,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_invoice(self, invoice_id: UUID) -> SalesInvoice:
        return self._load(invoice_id).to_dto()

    # =========================================================================
    # Checkout
    # =========================================================================

    def checkout(
        self,
        location_id: UUID,
        cart: Sequence[CartLine],
        payments: Sequence[PaymentInput] = (),
        *,
        actor_id: UUID,
        customer_id: UUID | None = None,
        invoice_discount: Decimal = ZERO,
        idempotency_key: str | None = None,
    ) -> SalesInvoice:
        """
        Sell the cart from ``location_id``.

        ``invoice_discount`` is a fixed amount taken off the whole sale on
        top of the per-line discounts.  Payments with a non-positive amount
        are ignored.
        """
        invoice_discount = round_money(to_decimal(invoice_discount))
        try:
            if idempotency_key is not None:
                previous = self._by_idempotency_key(idempotency_key)
                if previous is not None:
                    logger.info("sales_checkout_replayed", extra={
                        "invoice_id": str(previous.id),
                        "number": previous.number,
                        "idempotency_key": idempotency_key,
                    })
                    self._session.commit()
                    return previous.to_dto()

            if not cart:
                raise EmptyDocumentError(_DOCUMENT)
            if invoice_discount < ZERO:
                raise InvalidDiscountError(invoice_discount)

            amounts = [
                line_amounts(line.quantity, line.unit_price, line.discount_percent, line.tax_rate)
                for line in cart
            ]
            totals = sum_amounts(amounts)

            invoice = SalesInvoiceModel(
                number=self._sequences.next_number(number_format(self._config, "sales_invoice")),
                customer_id=customer_id,
                location_id=location_id,
                subtotal=totals.subtotal,
                discount_amount=totals.discount_amount + invoice_discount,
                tax_amount=totals.tax_amount,
                total=max(totals.total - invoice_discount, ZERO),
                paid_amount=ZERO,
                status=SalesInvoiceStatus.DRAFT.value,
                idempotency_key=idempotency_key,
                created_by_id=actor_id,
            )
            self._session.add(invoice)
            # The unique idempotency key is claimed before any stock moves.
            self._session.flush()

            reference = DocumentRef.sales_invoice(invoice.id)
            for idx, (line, amount) in enumerate(zip(cart, amounts)):
                state = self._ledger.apply_delta(
                    StockKey(line.product_id, location_id, line.variant_id),
                    -line.quantity,
                    movement_type=MovementType.SALE,
                    reference=reference,
                    actor_id=actor_id,
                    notes=f"Sale {invoice.number}",
                    fallback_cost=line.cost_price,
                )
                invoice.items.append(
                    SalesInvoiceItemModel(
                        line_number=idx + 1,
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        quantity=line.quantity,
                        returned_quantity=0,
                        unit_price=line.unit_price,
                        cost_price=state.avg_cost if state.avg_cost > ZERO else line.cost_price,
                        discount_percent=line.discount_percent,
                        tax_rate=line.tax_rate,
                        total=amount.total,
                        created_by_id=actor_id,
                    )
                )
            self._session.flush()

            for payment in payments:
                amount = to_decimal(payment.amount)
                if amount > ZERO:
                    self._add_payment(invoice, payment.method, amount, payment.reference, actor_id)
            self._recompute_paid(invoice)

            invoice.status = next_status(
                SALES_INVOICE_WORKFLOW, _DOCUMENT, invoice.id, invoice.status,
                "confirm", self._status_for(invoice),
            )
            self._session.flush()

            logger.info("sales_checkout_completed", extra={
                "invoice_id": str(invoice.id),
                "number": invoice.number,
                "location_id": str(location_id),
                "line_count": len(cart),
                "total": invoice.total,
                "paid_amount": invoice.paid_amount,
                "status": invoice.status,
            })
            self._session.commit()
            return invoice.to_dto()
        except IntegrityError:
            self._session.rollback()
            if idempotency_key is None:
                raise
            # A concurrent checkout with the same key committed first.
            previous = self._by_idempotency_key(idempotency_key)
            if previous is None:
                raise
            logger.info("sales_checkout_replayed", extra={
                "invoice_id": str(previous.id),
                "number": previous.number,
                "idempotency_key": idempotency_key,
            })
            return previous.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Payments
    # =========================================================================

    @logs_document("sales_invoice")
    def register_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        *,
        actor_id: UUID,
        method: PaymentMethod = PaymentMethod.CASH,
        reference: str | None = None,
    ) -> SalesInvoice:
        """Take a further payment on a confirmed or partially paid invoice."""
        amount = to_decimal(amount)
        try:
            if amount <= ZERO:
                raise InvalidPaymentError(amount)
            invoice = self._load(invoice_id, lock=True)
            if invoice.status == SalesInvoiceStatus.PAID.value:
                raise InvoiceAlreadyPaidError(str(invoice_id))

            payment = self._add_payment(invoice, method, amount, reference, actor_id)
            self._recompute_paid(invoice)
            invoice.status = next_status(
                SALES_INVOICE_WORKFLOW, _DOCUMENT, invoice.id, invoice.status,
                "payment", self._status_for(invoice),
            )
            invoice.updated_by_id = actor_id
            self._session.flush()

            logger.info("sales_payment_registered", extra={
                "invoice_id": str(invoice.id),
                "number": invoice.number,
                "payment_id": str(payment.id),
                "amount": payment.amount,
                "paid_amount": invoice.paid_amount,
                "status": invoice.status,
            })
            self._session.commit()
            return invoice.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Returns
    # =========================================================================

    @logs_document("sales_invoice")
    def return_items(
        self,
        invoice_id: UUID,
        lines: Sequence[ReturnLine],
        *,
        actor_id: UUID,
        location_id: UUID | None = None,
        reason: str | None = None,
    ) -> SalesInvoice:
        """
        Put sold units back into stock.

        Each line writes one ``return`` movement at the cost the units
        left stock with.  Stock goes back to the selling location unless
        ``location_id`` says otherwise.
        """
        try:
            invoice = self._load(invoice_id, lock=True)
            items = {item.id: item for item in invoice.items}
            if not lines:
                raise EmptyDocumentError("sales_return")

            target_location = location_id or invoice.location_id
            reference = DocumentRef.sales_invoice(invoice.id)
            for line in lines:
                item = items.get(line.item_id)
                if item is None:
                    raise DocumentNotFoundError("sales_invoice_item", str(line.item_id))
                if line.quantity <= 0:
                    raise InvalidQuantityError(line.quantity, "return quantity must be positive")
                returnable = item.quantity - item.returned_quantity
                if line.quantity > returnable:
                    raise ReturnExceedsSaleError(
                        str(invoice.id), str(item.id), returnable, line.quantity,
                    )

                self._ledger.apply_delta(
                    StockKey(item.product_id, target_location, item.variant_id),
                    line.quantity,
                    item.cost_price,
                    movement_type=MovementType.RETURN,
                    reference=reference,
                    actor_id=actor_id,
                    notes=reason or f"Return {invoice.number}",
                )
                item.returned_quantity += line.quantity
                item.updated_by_id = actor_id
            self._session.flush()

            logger.info("sales_items_returned", extra={
                "invoice_id": str(invoice.id),
                "number": invoice.number,
                "line_count": len(lines),
                "quantity": sum(line.quantity for line in lines),
                "location_id": str(target_location),
            })
            self._session.commit()
            return invoice.to_dto()
        except Exception:
            self._session.rollback()
            raise

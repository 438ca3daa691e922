"""
Payables Module Service (``retail_modules.payables.service``).

Responsibility
--------------
Suppliers, supplier invoices and payments to suppliers: invoice creation
(directly or from a purchase order), payment registration with status
derivation, and cancellation.  No stock moves here.

Architecture position
---------------------
**Modules layer** -- ``PayablesService`` is the public entry point.  Reads
purchase orders from ``retail_modules.purchasing`` to copy their totals.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary.
* ``paid_amount`` is always the sum of the recorded payments, recomputed
  under a lock on the invoice row.
* Status after a payment: ``paid`` when paid >= total, ``partial`` when
  paid > 0, otherwise ``unpaid``.
* Invoice numbers come from a locked yearly counter
  (``NF-FOR-{year}-{seq:04d}``) unless the supplier's own number is given.

Failure modes
-------------
* ``InvalidPaymentError``     -- amount is zero or negative.
* ``InvoiceCancelledError``   -- payment on a cancelled invoice.
* ``InvoiceAlreadyPaidError`` -- payment on a fully paid invoice.
* ``InvalidTransitionError``  -- cancelling a paid or cancelled invoice.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from retail_config import RetailConfig
from retail_kernel.db.types import round_money, to_decimal
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.exceptions import (
    DocumentNotFoundError,
    InvalidPaymentError,
    InvoiceAlreadyPaidError,
    InvoiceCancelledError,
)
from retail_kernel.logging_config import get_logger
from retail_kernel.services.sequence_service import SequenceService
from retail_modules._document_helpers import (
    logs_document,
    next_status,
    number_format,
    payment_status,
    resolve_config,
)
from retail_modules.payables.models import (
    Supplier,
    SupplierInvoice,
    SupplierInvoiceStatus,
)
from retail_modules.payables.orm import (
    SupplierInvoiceModel,
    SupplierModel,
    SupplierPaymentModel,
)
from retail_modules.payables.workflows import SUPPLIER_INVOICE_WORKFLOW
from retail_modules.purchasing.orm import PurchaseOrderModel

logger = get_logger("modules.payables.service")

_DOCUMENT = "supplier_invoice"


class PayablesService:
    """
    Orchestrates supplier invoices and payments.

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

    def _load(self, invoice_id: UUID, *, lock: bool = False) -> SupplierInvoiceModel:
        stmt = select(SupplierInvoiceModel).where(SupplierInvoiceModel.id == invoice_id)
        if lock:
            stmt = stmt.with_for_update()
        invoice = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise DocumentNotFoundError(_DOCUMENT, str(invoice_id))
        return invoice

    def _supplier(self, supplier_id: UUID) -> SupplierModel:
        supplier = self._session.get(SupplierModel, supplier_id)
        if supplier is None:
            raise DocumentNotFoundError("supplier", str(supplier_id))
        return supplier

    def _new_number(self) -> str:
        return self._sequences.next_number(number_format(self._config, "supplier_invoice"))

    # =========================================================================
    # Suppliers
    # =========================================================================

    def create_supplier(
        self,
        name: str,
        *,
        actor_id: UUID,
        payment_terms_days: int = 0,
        tax_id: str | None = None,
    ) -> Supplier:
        if payment_terms_days < 0:
            raise ValueError("payment_terms_days cannot be negative")
        try:
            supplier = SupplierModel(
                name=name,
                tax_id=tax_id,
                payment_terms_days=payment_terms_days,
                is_active=True,
                created_by_id=actor_id,
            )
            self._session.add(supplier)
            self._session.flush()
            logger.info("supplier_created", extra={
                "supplier_id": str(supplier.id),
                "payment_terms_days": payment_terms_days,
            })
            self._session.commit()
            return supplier.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def get_supplier(self, supplier_id: UUID) -> Supplier:
        return self._supplier(supplier_id).to_dto()

    # =========================================================================
    # Invoices
    # =========================================================================

    def get_invoice(self, invoice_id: UUID) -> SupplierInvoice:
        return self._load(invoice_id).to_dto()

    def list_open_invoices(self, supplier_id: UUID | None = None) -> list[SupplierInvoice]:
        """Unpaid and partially paid invoices, earliest due first."""
        stmt = (
            select(SupplierInvoiceModel)
            .where(SupplierInvoiceModel.status.in_((
                SupplierInvoiceStatus.UNPAID.value,
                SupplierInvoiceStatus.PARTIAL.value,
            )))
            .order_by(SupplierInvoiceModel.due_date, SupplierInvoiceModel.number)
        )
        if supplier_id is not None:
            stmt = stmt.where(SupplierInvoiceModel.supplier_id == supplier_id)
        return [row.to_dto() for row in self._session.execute(stmt).scalars()]

    def create_invoice(
        self,
        supplier_id: UUID,
        total: Decimal,
        *,
        actor_id: UUID,
        subtotal: Decimal | None = None,
        tax_amount: Decimal = Decimal("0"),
        invoice_date: date | None = None,
        due_date: date | None = None,
        number: str | None = None,
        purchase_order_id: UUID | None = None,
        notes: str | None = None,
    ) -> SupplierInvoice:
        """
        Record a supplier invoice with nothing paid.

        ``subtotal`` defaults to ``total - tax_amount``; ``due_date`` to the
        invoice date plus the supplier's payment terms.
        """
        try:
            supplier = self._supplier(supplier_id)
            total = round_money(to_decimal(total))
            tax_amount = round_money(to_decimal(tax_amount))
            invoice_date = invoice_date or self._clock.today()
            if due_date is None:
                due_date = invoice_date + timedelta(days=supplier.payment_terms_days)

            invoice = SupplierInvoiceModel(
                number=number or self._new_number(),
                supplier_id=supplier_id,
                purchase_order_id=purchase_order_id,
                invoice_date=invoice_date,
                due_date=due_date,
                subtotal=round_money(to_decimal(subtotal)) if subtotal is not None else total - tax_amount,
                tax_amount=tax_amount,
                total=total,
                paid_amount=Decimal("0"),
                status=SupplierInvoiceStatus.UNPAID.value,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(invoice)
            self._session.flush()

            logger.info("supplier_invoice_created", extra={
                "invoice_id": str(invoice.id),
                "number": invoice.number,
                "supplier_id": str(supplier_id),
                "purchase_order_id": str(purchase_order_id) if purchase_order_id else None,
                "total": total,
                "due_date": due_date,
            })
            self._session.commit()
            return invoice.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def create_from_order(
        self,
        order_id: UUID,
        *,
        actor_id: UUID,
        invoice_date: date | None = None,
        due_date: date | None = None,
        number: str | None = None,
    ) -> SupplierInvoice:
        """Invoice the totals of a purchase order."""
        order = self._session.get(PurchaseOrderModel, order_id)
        if order is None:
            raise DocumentNotFoundError("purchase_order", str(order_id))
        return self.create_invoice(
            order.supplier_id,
            order.total,
            actor_id=actor_id,
            subtotal=order.subtotal,
            tax_amount=order.tax_amount,
            invoice_date=invoice_date,
            due_date=due_date,
            number=number,
            purchase_order_id=order.id,
        )

    @logs_document("supplier_invoice")
    def register_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        *,
        actor_id: UUID,
        payment_method: str = "bank_transfer",
        payment_date: date | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> SupplierInvoice:
        """Record a payment and re-derive ``paid_amount`` and status."""
        amount = to_decimal(amount)
        try:
            if amount <= 0:
                raise InvalidPaymentError(amount)
            invoice = self._load(invoice_id, lock=True)
            if invoice.status == SupplierInvoiceStatus.CANCELLED.value:
                raise InvoiceCancelledError(str(invoice_id))
            if invoice.status == SupplierInvoiceStatus.PAID.value:
                raise InvoiceAlreadyPaidError(str(invoice_id))

            payment = SupplierPaymentModel(
                invoice_id=invoice.id,
                amount=round_money(amount),
                payment_date=payment_date or self._clock.today(),
                payment_method=payment_method,
                reference=reference,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(payment)
            self._session.flush()

            amounts = self._session.execute(
                select(SupplierPaymentModel.amount)
                .where(SupplierPaymentModel.invoice_id == invoice.id)
            ).scalars()
            invoice.paid_amount = round_money(sum(amounts, Decimal("0")))
            target = payment_status(
                invoice.paid_amount,
                invoice.total,
                paid_state=SupplierInvoiceStatus.PAID.value,
                partial_state=SupplierInvoiceStatus.PARTIAL.value,
                unpaid_state=SupplierInvoiceStatus.UNPAID.value,
            )
            invoice.status = next_status(
                SUPPLIER_INVOICE_WORKFLOW, _DOCUMENT, invoice.id, invoice.status, "payment", target,
            )
            invoice.updated_by_id = actor_id
            self._session.flush()
            self._session.expire(invoice, ["payments"])

            logger.info("supplier_payment_registered", extra={
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

    @logs_document("supplier_invoice")
    def cancel(self, invoice_id: UUID, *, actor_id: UUID) -> SupplierInvoice:
        try:
            invoice = self._load(invoice_id, lock=True)
            previous = invoice.status
            invoice.status = next_status(
                SUPPLIER_INVOICE_WORKFLOW, _DOCUMENT, invoice.id, invoice.status, "cancel",
            )
            invoice.updated_by_id = actor_id
            self._session.flush()
            logger.info("supplier_invoice_cancelled", extra={
                "invoice_id": str(invoice.id),
                "number": invoice.number,
                "from_status": previous,
            })
            self._session.commit()
            return invoice.to_dto()
        except Exception:
            self._session.rollback()
            raise

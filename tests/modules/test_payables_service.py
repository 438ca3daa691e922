"""
PayablesService: suppliers, supplier invoices and payments.

Validates:
- Invoice numbering, due date from payment terms, subtotal derivation
- Invoices created from purchase orders copy the order totals
- Payment status derivation and the rejections around it
- Cancellation rules
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from retail_kernel.exceptions import (
    DocumentNotFoundError,
    ImmutabilityViolationError,
    InvalidPaymentError,
    InvalidTransitionError,
    InvoiceAlreadyPaidError,
    InvoiceCancelledError,
)
from retail_modules.payables import SupplierInvoiceStatus
from retail_modules.payables.orm import SupplierPaymentModel
from retail_modules.purchasing import PurchaseOrderLine


@pytest.fixture
def supplier(payables, test_actor_id):
    return payables.create_supplier("Acme Parts", actor_id=test_actor_id, payment_terms_days=30)


@pytest.fixture
def invoice(payables, supplier, test_actor_id):
    return payables.create_invoice(supplier.id, Decimal("100.00"), actor_id=test_actor_id)


class TestSuppliers:
    def test_create_and_get(self, payables, supplier):
        assert payables.get_supplier(supplier.id) == supplier
        assert supplier.payment_terms_days == 30

    def test_negative_terms_rejected(self, payables, test_actor_id):
        with pytest.raises(ValueError):
            payables.create_supplier("Bad", actor_id=test_actor_id, payment_terms_days=-1)

    def test_unknown_supplier(self, payables, test_actor_id):
        with pytest.raises(DocumentNotFoundError):
            payables.create_invoice(uuid4(), Decimal("1"), actor_id=test_actor_id)


class TestCreateInvoice:
    def test_defaults(self, invoice):
        assert invoice.number == "NF-FOR-2024-0001"
        assert invoice.status == SupplierInvoiceStatus.UNPAID
        assert invoice.invoice_date == date(2024, 1, 1)
        assert invoice.due_date == date(2024, 1, 31)
        assert invoice.paid_amount == 0
        assert invoice.balance_due == Decimal("100.00")

    def test_subtotal_is_total_less_tax(self, payables, supplier, test_actor_id):
        invoice = payables.create_invoice(
            supplier.id, Decimal("110.00"), tax_amount=Decimal("10.00"), actor_id=test_actor_id,
        )
        assert invoice.subtotal == Decimal("100.00")

    def test_supplier_number_kept(self, payables, supplier, test_actor_id):
        invoice = payables.create_invoice(
            supplier.id, Decimal("5"), number="SUP-778", actor_id=test_actor_id,
        )
        assert invoice.number == "SUP-778"

    def test_explicit_due_date(self, payables, supplier, test_actor_id):
        invoice = payables.create_invoice(
            supplier.id, Decimal("5"), due_date=date(2024, 3, 1), actor_id=test_actor_id,
        )
        assert invoice.due_date == date(2024, 3, 1)

    def test_from_purchase_order(self, payables, purchasing, supplier, location_id, test_actor_id):
        order = purchasing.create_order(
            supplier.id,
            location_id,
            [PurchaseOrderLine(uuid4(), 2, Decimal("10.00"), tax_rate=Decimal("10"))],
            actor_id=test_actor_id,
        )
        invoice = payables.create_from_order(order.id, actor_id=test_actor_id)
        assert invoice.purchase_order_id == order.id
        assert invoice.supplier_id == supplier.id
        assert invoice.subtotal == Decimal("20.00")
        assert invoice.tax_amount == Decimal("2.00")
        assert invoice.total == Decimal("22.00")

    def test_from_unknown_order(self, payables, test_actor_id):
        with pytest.raises(DocumentNotFoundError):
            payables.create_from_order(uuid4(), actor_id=test_actor_id)


class TestPayments:
    def test_partial_then_paid(self, payables, invoice, test_actor_id):
        partial = payables.register_payment(invoice.id, Decimal("40.00"), actor_id=test_actor_id)
        assert partial.status == SupplierInvoiceStatus.PARTIAL
        assert partial.paid_amount == Decimal("40.00")
        assert len(partial.payments) == 1

        paid = payables.register_payment(invoice.id, Decimal("60.00"), actor_id=test_actor_id)
        assert paid.status == SupplierInvoiceStatus.PAID
        assert paid.balance_due == 0
        assert len(paid.payments) == 2

    def test_overpayment_marks_paid(self, payables, invoice, test_actor_id):
        paid = payables.register_payment(invoice.id, Decimal("120.00"), actor_id=test_actor_id)
        assert paid.status == SupplierInvoiceStatus.PAID

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_rejected(self, payables, invoice, test_actor_id, amount):
        with pytest.raises(InvalidPaymentError):
            payables.register_payment(invoice.id, Decimal(amount), actor_id=test_actor_id)

    def test_payment_on_paid_rejected(self, payables, invoice, test_actor_id):
        payables.register_payment(invoice.id, Decimal("100.00"), actor_id=test_actor_id)
        with pytest.raises(InvoiceAlreadyPaidError):
            payables.register_payment(invoice.id, Decimal("1.00"), actor_id=test_actor_id)

    def test_payment_on_cancelled_rejected(self, payables, invoice, test_actor_id):
        payables.cancel(invoice.id, actor_id=test_actor_id)
        with pytest.raises(InvoiceCancelledError):
            payables.register_payment(invoice.id, Decimal("1.00"), actor_id=test_actor_id)

    def test_payments_are_append_only(self, session, payables, invoice, test_actor_id):
        paid = payables.register_payment(invoice.id, Decimal("10.00"), actor_id=test_actor_id)
        payment = session.get(SupplierPaymentModel, paid.payments[0].id)
        payment.amount = Decimal("99")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestOpenInvoicesAndCancel:
    def test_open_invoices_by_due_date(self, payables, supplier, invoice, test_actor_id):
        early = payables.create_invoice(
            supplier.id, Decimal("5"), due_date=date(2024, 1, 5), actor_id=test_actor_id,
        )
        paid = payables.create_invoice(supplier.id, Decimal("5"), actor_id=test_actor_id)
        payables.register_payment(paid.id, Decimal("5"), actor_id=test_actor_id)

        open_ids = [i.id for i in payables.list_open_invoices(supplier.id)]
        assert open_ids == [early.id, invoice.id]

    def test_cancel_partially_paid(self, payables, invoice, test_actor_id):
        payables.register_payment(invoice.id, Decimal("10"), actor_id=test_actor_id)
        cancelled = payables.cancel(invoice.id, actor_id=test_actor_id)
        assert cancelled.status == SupplierInvoiceStatus.CANCELLED

    def test_cancel_paid_rejected(self, payables, invoice, test_actor_id):
        payables.register_payment(invoice.id, Decimal("100"), actor_id=test_actor_id)
        with pytest.raises(InvalidTransitionError):
            payables.cancel(invoice.id, actor_id=test_actor_id)

"""
Payables Domain Models (``retail_modules.payables.models``).

Frozen value objects for suppliers, supplier invoices and the payments
made against them.  All monetary fields use ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class SupplierInvoiceStatus(Enum):
    """Supplier invoice lifecycle states."""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Supplier:
    id: UUID
    name: str
    payment_terms_days: int = 0
    tax_id: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class SupplierPayment:
    """A payment made to a supplier.  Never modified once recorded."""
    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: str
    reference: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SupplierInvoice:
    id: UUID
    number: str
    supplier_id: UUID
    purchase_order_id: UUID | None
    invoice_date: date
    due_date: date | None
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    paid_amount: Decimal
    status: SupplierInvoiceStatus
    notes: str | None = None
    payments: tuple[SupplierPayment, ...] = field(default_factory=tuple)

    @property
    def balance_due(self) -> Decimal:
        return self.total - self.paid_amount

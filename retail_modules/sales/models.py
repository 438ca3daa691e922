"""
Sales Domain Models (``retail_modules.sales.models``).

Responsibility
--------------
Frozen value objects for point-of-sale invoices, their items and customer
payments, plus the cart, payment and return inputs taken by
``SalesService``.

Invariants
----------
- ``0 <= returned_quantity <= quantity`` on every invoice item.
- All monetary fields use ``Decimal`` -- never ``float``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class SalesInvoiceStatus(Enum):
    """Sales invoice lifecycle states."""
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PIX = "pix"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


@dataclass(frozen=True)
class CartLine:
    """Input: one product line at the till.

    ``cost_price`` is the catalogue cost, used as the movement cost only
    while the location has no average cost for the product.
    """
    product_id: UUID
    quantity: int
    unit_price: Decimal
    cost_price: Decimal = Decimal("0")
    variant_id: UUID | None = None
    discount_percent: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError("quantity must be positive")
        if self.unit_price < 0:
            raise ValueError("unit_price cannot be negative")


@dataclass(frozen=True)
class PaymentInput:
    method: PaymentMethod
    amount: Decimal
    reference: str | None = None


@dataclass(frozen=True)
class ReturnLine:
    item_id: UUID
    quantity: int


@dataclass(frozen=True)
class SalesInvoiceItem:
    id: UUID
    line_number: int
    product_id: UUID
    variant_id: UUID | None
    quantity: int
    returned_quantity: int
    unit_price: Decimal
    cost_price: Decimal
    discount_percent: Decimal
    tax_rate: Decimal
    total: Decimal

    @property
    def returnable(self) -> int:
        return self.quantity - self.returned_quantity


@dataclass(frozen=True)
class SalesPayment:
    """A customer payment.  Never modified once recorded."""
    id: UUID
    invoice_id: UUID
    method: PaymentMethod
    amount: Decimal
    paid_at: datetime
    reference: str | None = None


@dataclass(frozen=True)
class SalesInvoice:
    id: UUID
    number: str
    customer_id: UUID | None
    location_id: UUID
    status: SalesInvoiceStatus
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    paid_amount: Decimal
    idempotency_key: str | None = None
    items: tuple[SalesInvoiceItem, ...] = field(default_factory=tuple)
    payments: tuple[SalesPayment, ...] = field(default_factory=tuple)

    @property
    def balance_due(self) -> Decimal:
        return max(self.total - self.paid_amount, Decimal("0"))

    @property
    def change_due(self) -> Decimal:
        return max(self.paid_amount - self.total, Decimal("0"))

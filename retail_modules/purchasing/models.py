"""
Purchasing Domain Models (``retail_modules.purchasing.models``).

Responsibility
--------------
Frozen value objects for purchase orders, their lines, and goods receipts,
plus the inputs callers pass to ``PurchasingService``.

Invariants
----------
- ``0 <= received_quantity <= quantity`` on every order item.
- All monetary fields use ``Decimal`` -- never ``float``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PurchaseOrderStatus(Enum):
    """Purchase order lifecycle states."""
    DRAFT = "draft"
    APPROVED = "approved"
    PARTIAL = "partial"
    RECEIVED = "received"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PurchaseOrderLine:
    """Input for one order line."""
    product_id: UUID
    quantity: int
    unit_cost: Decimal
    variant_id: UUID | None = None
    discount_percent: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError("quantity must be positive")
        if self.unit_cost < 0:
            raise ValueError("unit_cost cannot be negative")


@dataclass(frozen=True)
class PurchaseOrderItem:
    id: UUID
    line_number: int
    product_id: UUID
    variant_id: UUID | None
    quantity: int
    received_quantity: int
    unit_cost: Decimal
    discount_percent: Decimal
    tax_rate: Decimal
    total: Decimal

    @property
    def outstanding(self) -> int:
        return self.quantity - self.received_quantity


@dataclass(frozen=True)
class PurchaseOrder:
    id: UUID
    number: str
    supplier_id: UUID
    location_id: UUID
    status: PurchaseOrderStatus
    order_date: date
    expected_date: date | None
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    notes: str | None = None
    items: tuple[PurchaseOrderItem, ...] = field(default_factory=tuple)

    @property
    def received_quantity(self) -> int:
        return sum(item.received_quantity for item in self.items)


@dataclass(frozen=True)
class ReceiveLine:
    """Input: units of one order item arriving now.

    ``unit_cost`` defaults to the ordered unit cost.
    """
    item_id: UUID
    quantity: int
    unit_cost: Decimal | None = None


@dataclass(frozen=True)
class GoodsReceiptLine:
    item_id: UUID
    product_id: UUID
    variant_id: UUID | None
    quantity: int
    unit_cost: Decimal


@dataclass(frozen=True)
class GoodsReceipt:
    """One receiving event against a purchase order."""
    id: UUID
    purchase_order_id: UUID
    received_at: datetime
    idempotency_key: str | None
    lines: tuple[GoodsReceiptLine, ...]

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


@dataclass(frozen=True)
class ReceiptResult:
    """Outcome of ``PurchasingService.receive``.

    ``receipt`` is None when no line had anything left to receive.
    ``replayed`` is True when the idempotency key had already been used and
    nothing was applied.
    """
    order: PurchaseOrder
    receipt: GoodsReceipt | None
    replayed: bool = False

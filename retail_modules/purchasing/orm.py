"""
Module: retail_modules.purchasing.orm
Responsibility: SQLAlchemy ORM persistence for purchase orders, their items,
    and goods receipts.

Architecture position: Modules > Purchasing > ORM.  Inherits from TrackedBase
    (retail_kernel.db.base).  Suppliers, products, variants and locations are
    referenced by UUID with NO foreign key constraints; order items and
    receipts point at their order by foreign key.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9)) -- NEVER float.
    - Enum fields stored as String(50) for portability and readability.
    - ``purchase_orders.number`` is unique.
    - ``goods_receipts`` and ``goods_receipt_lines`` are append-only, and
      ``goods_receipts.idempotency_key`` is unique, so a retried receive
      cannot be applied twice.

Failure modes:
    - IntegrityError on a duplicate order number or idempotency key.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_kernel.db.base import AppendOnly, TrackedBase


class PurchaseOrderModel(TrackedBase):
    """
    ORM model for purchase orders.

    Maps to: retail_modules.purchasing.models.PurchaseOrder (frozen dataclass).
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        Index("idx_po_supplier", "supplier_id"),
        Index("idx_po_status", "status"),
    )

    number: Mapped[str] = mapped_column(String(50), unique=True)
    supplier_id: Mapped[UUID] = mapped_column()
    location_id: Mapped[UUID] = mapped_column()

    order_date: Mapped[date] = mapped_column(Date)
    expected_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(50), default="draft")

    items: Mapped[list["PurchaseOrderItemModel"]] = relationship(
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItemModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen PurchaseOrder DTO."""
        from retail_modules.purchasing.models import PurchaseOrder, PurchaseOrderStatus
        return PurchaseOrder(
            id=self.id,
            number=self.number,
            supplier_id=self.supplier_id,
            location_id=self.location_id,
            status=PurchaseOrderStatus(self.status),
            order_date=self.order_date,
            expected_date=self.expected_date,
            subtotal=self.subtotal,
            discount_amount=self.discount_amount,
            tax_amount=self.tax_amount,
            total=self.total,
            notes=self.notes,
            items=tuple(item.to_dto() for item in self.items),
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.number} {self.status} total={self.total}>"


class PurchaseOrderItemModel(TrackedBase):
    """
    ORM model for purchase order items.

    ``received_quantity`` is cumulative over all receipts.
    """

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        Index("idx_po_item_order", "purchase_order_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(BigInteger)
    product_id: Mapped[UUID] = mapped_column()
    variant_id: Mapped[UUID | None] = mapped_column(nullable=True)

    quantity: Mapped[int] = mapped_column(BigInteger)
    received_quantity: Mapped[int] = mapped_column(BigInteger, default=0)
    unit_cost: Mapped[Decimal] = mapped_column()
    discount_percent: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column()

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(back_populates="items")

    def to_dto(self):
        from retail_modules.purchasing.models import PurchaseOrderItem
        return PurchaseOrderItem(
            id=self.id,
            line_number=self.line_number,
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            received_quantity=self.received_quantity,
            unit_cost=self.unit_cost,
            discount_percent=self.discount_percent,
            tax_rate=self.tax_rate,
            total=self.total,
        )


class GoodsReceiptModel(AppendOnly, TrackedBase):
    """
    ORM model for goods receipts.  Append-only.

    One row per ``PurchasingService.receive`` call that received anything.
    An idempotency key is unique per purchase order.
    """

    __tablename__ = "goods_receipts"

    __table_args__ = (
        Index("idx_goods_receipt_order", "purchase_order_id"),
        UniqueConstraint(
            "purchase_order_id", "idempotency_key", name="uq_goods_receipt_order_key",
        ),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    received_at: Mapped[datetime] = mapped_column()
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), nullable=True,
    )

    lines: Mapped[list["GoodsReceiptLineModel"]] = relationship(
        order_by="GoodsReceiptLineModel.line_number",
    )

    def to_dto(self):
        from retail_modules.purchasing.models import GoodsReceipt
        return GoodsReceipt(
            id=self.id,
            purchase_order_id=self.purchase_order_id,
            received_at=self.received_at,
            idempotency_key=self.idempotency_key,
            lines=tuple(line.to_dto() for line in self.lines),
        )


class GoodsReceiptLineModel(AppendOnly, TrackedBase):
    """ORM model for the items of a goods receipt.  Append-only."""

    __tablename__ = "goods_receipt_lines"

    goods_receipt_id: Mapped[UUID] = mapped_column(
        ForeignKey("goods_receipts.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(BigInteger)
    purchase_order_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_order_items.id"), nullable=False,
    )
    product_id: Mapped[UUID] = mapped_column()
    variant_id: Mapped[UUID | None] = mapped_column(nullable=True)
    quantity: Mapped[int] = mapped_column(BigInteger)
    unit_cost: Mapped[Decimal] = mapped_column()

    def to_dto(self):
        from retail_modules.purchasing.models import GoodsReceiptLine
        return GoodsReceiptLine(
            item_id=self.purchase_order_item_id,
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
        )

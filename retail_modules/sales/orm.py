"""
Module: retail_modules.sales.orm
Responsibility: SQLAlchemy ORM persistence for sales invoices, their items
    and customer payments.

Architecture position: Modules > Sales > ORM.  Inherits from TrackedBase
    (retail_kernel.db.base).  Customers, products, variants and locations are
    referenced by UUID with NO foreign key constraints.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9)) -- NEVER float.
    - ``sales_invoices.number`` and ``sales_invoices.idempotency_key`` are
      unique; a retried checkout cannot create a second invoice.
    - ``sales_payments`` is append-only.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_kernel.db.base import AppendOnly, TrackedBase


class SalesInvoiceModel(TrackedBase):
    """
    ORM model for sales invoices.

    Maps to: retail_modules.sales.models.SalesInvoice (frozen dataclass).
    """

    __tablename__ = "sales_invoices"

    __table_args__ = (
        Index("idx_sales_invoice_customer", "customer_id"),
        Index("idx_sales_invoice_status", "status"),
    )

    number: Mapped[str] = mapped_column(String(50), unique=True)
    customer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    location_id: Mapped[UUID] = mapped_column()

    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(50), default="draft")
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True,
    )

    items: Mapped[list["SalesInvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="SalesInvoiceItemModel.line_number",
    )
    payments: Mapped[list["SalesPaymentModel"]] = relationship(
        order_by="SalesPaymentModel.paid_at",
    )

    def to_dto(self):
        """Convert ORM model to frozen SalesInvoice DTO."""
        from retail_modules.sales.models import SalesInvoice, SalesInvoiceStatus
        return SalesInvoice(
            id=self.id,
            number=self.number,
            customer_id=self.customer_id,
            location_id=self.location_id,
            status=SalesInvoiceStatus(self.status),
            subtotal=self.subtotal,
            discount_amount=self.discount_amount,
            tax_amount=self.tax_amount,
            total=self.total,
            paid_amount=self.paid_amount,
            idempotency_key=self.idempotency_key,
            items=tuple(item.to_dto() for item in self.items),
            payments=tuple(p.to_dto() for p in self.payments),
        )

    def __repr__(self) -> str:
        return f"<SalesInvoiceModel {self.number} {self.status} total={self.total}>"


class SalesInvoiceItemModel(TrackedBase):
    """ORM model for sales invoice items."""

    __tablename__ = "sales_invoice_items"

    __table_args__ = (
        Index("idx_sales_item_invoice", "invoice_id"),
        Index("idx_sales_item_product", "product_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("sales_invoices.id"))
    line_number: Mapped[int] = mapped_column(BigInteger)
    product_id: Mapped[UUID] = mapped_column()
    variant_id: Mapped[UUID | None] = mapped_column(nullable=True)

    quantity: Mapped[int] = mapped_column(BigInteger)
    returned_quantity: Mapped[int] = mapped_column(BigInteger, default=0)
    unit_price: Mapped[Decimal] = mapped_column()
    cost_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_percent: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column()

    invoice: Mapped["SalesInvoiceModel"] = relationship(back_populates="items")

    def to_dto(self):
        from retail_modules.sales.models import SalesInvoiceItem
        return SalesInvoiceItem(
            id=self.id,
            line_number=self.line_number,
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            returned_quantity=self.returned_quantity,
            unit_price=self.unit_price,
            cost_price=self.cost_price,
            discount_percent=self.discount_percent,
            tax_rate=self.tax_rate,
            total=self.total,
        )


class SalesPaymentModel(AppendOnly, TrackedBase):
    """ORM model for customer payments.  Append-only."""

    __tablename__ = "sales_payments"

    __table_args__ = (
        Index("idx_sales_payment_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("sales_invoices.id"))
    method: Mapped[str] = mapped_column(String(50))
    amount: Mapped[Decimal] = mapped_column()
    paid_at: Mapped[datetime] = mapped_column()
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self):
        from retail_modules.sales.models import PaymentMethod, SalesPayment
        return SalesPayment(
            id=self.id,
            invoice_id=self.invoice_id,
            method=PaymentMethod(self.method),
            amount=self.amount,
            paid_at=self.paid_at,
            reference=self.reference,
        )

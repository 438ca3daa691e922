"""
Module: retail_modules.payables.orm
Responsibility: SQLAlchemy ORM persistence for suppliers, supplier invoices
    and supplier payments.

Architecture position: Modules > Payables > ORM.  Inherits from TrackedBase
    (retail_kernel.db.base).  Invoices reference purchase orders by UUID with
    NO foreign key so payables can be used without purchasing.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9)) -- NEVER float.
    - ``supplier_invoices.number`` is unique.
    - ``supplier_payments`` is append-only; ``paid_amount`` on the invoice is
      always recomputed as the sum of its payments.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_kernel.db.base import AppendOnly, TrackedBase


class SupplierModel(TrackedBase):
    """ORM model for suppliers."""

    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(String(200))
    tax_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_terms_days: Mapped[int] = mapped_column(BigInteger, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        from retail_modules.payables.models import Supplier
        return Supplier(
            id=self.id,
            name=self.name,
            payment_terms_days=self.payment_terms_days,
            tax_id=self.tax_id,
            is_active=self.is_active,
        )


class SupplierInvoiceModel(TrackedBase):
    """
    ORM model for supplier invoices.

    Maps to: retail_modules.payables.models.SupplierInvoice (frozen dataclass).
    """

    __tablename__ = "supplier_invoices"

    __table_args__ = (
        Index("idx_supplier_invoice_supplier", "supplier_id"),
        Index("idx_supplier_invoice_status", "status"),
        Index("idx_supplier_invoice_due", "due_date"),
    )

    number: Mapped[str] = mapped_column(String(50), unique=True)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"))
    purchase_order_id: Mapped[UUID | None] = mapped_column(nullable=True)

    invoice_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(50), default="unpaid")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    payments: Mapped[list["SupplierPaymentModel"]] = relationship(
        order_by="SupplierPaymentModel.payment_date",
    )

    def to_dto(self):
        """Convert ORM model to frozen SupplierInvoice DTO."""
        from retail_modules.payables.models import SupplierInvoice, SupplierInvoiceStatus
        return SupplierInvoice(
            id=self.id,
            number=self.number,
            supplier_id=self.supplier_id,
            purchase_order_id=self.purchase_order_id,
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total=self.total,
            paid_amount=self.paid_amount,
            status=SupplierInvoiceStatus(self.status),
            notes=self.notes,
            payments=tuple(p.to_dto() for p in self.payments),
        )

    def __repr__(self) -> str:
        return (
            f"<SupplierInvoiceModel {self.number} {self.status} "
            f"paid={self.paid_amount}/{self.total}>"
        )


class SupplierPaymentModel(AppendOnly, TrackedBase):
    """ORM model for payments to suppliers.  Append-only."""

    __tablename__ = "supplier_payments"

    __table_args__ = (
        Index("idx_supplier_payment_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("supplier_invoices.id"))
    amount: Mapped[Decimal] = mapped_column()
    payment_date: Mapped[date] = mapped_column(Date)
    payment_method: Mapped[str] = mapped_column(String(50))
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from retail_modules.payables.models import SupplierPayment
        return SupplierPayment(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=self.amount,
            payment_date=self.payment_date,
            payment_method=self.payment_method,
            reference=self.reference,
            notes=self.notes,
        )

"""
Module: retail_modules.service_orders.orm
Responsibility: SQLAlchemy ORM persistence for service orders, their items
    and their activity log.

Architecture position: Modules > Service orders > ORM.  Inherits from
    TrackedBase (retail_kernel.db.base).  Customers, technicians and products
    are referenced by UUID with NO foreign key constraints.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9)) -- NEVER float.
    - ``service_orders.number`` is unique.
    - ``service_order_logs`` is append-only and numbered per order.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_kernel.db.base import AppendOnly, TrackedBase


class ServiceOrderModel(TrackedBase):
    """
    ORM model for service orders.

    Maps to: retail_modules.service_orders.models.ServiceOrder (frozen dataclass).
    """

    __tablename__ = "service_orders"

    __table_args__ = (
        Index("idx_service_order_status", "status"),
        Index("idx_service_order_customer", "customer_id"),
    )

    number: Mapped[str] = mapped_column(String(50), unique=True)
    customer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    technician_id: Mapped[UUID | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(String(50), default="open")
    priority: Mapped[str] = mapped_column(String(50), default="normal")

    equipment_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    equipment_brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    equipment_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    equipment_serial: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reported_problem: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnosis: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    labor_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    parts_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    estimated_completion: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_completion: Mapped[datetime | None] = mapped_column(nullable=True)

    items: Mapped[list["ServiceOrderItemModel"]] = relationship(
        back_populates="service_order",
        cascade="all, delete-orphan",
        order_by="ServiceOrderItemModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen ServiceOrder DTO."""
        from retail_modules.service_orders.models import (
            Equipment,
            ServiceOrder,
            ServiceOrderPriority,
            ServiceOrderStatus,
        )
        return ServiceOrder(
            id=self.id,
            number=self.number,
            customer_id=self.customer_id,
            technician_id=self.technician_id,
            status=ServiceOrderStatus(self.status),
            priority=ServiceOrderPriority(self.priority),
            equipment=Equipment(
                equipment_type=self.equipment_type,
                brand=self.equipment_brand,
                model=self.equipment_model,
                serial_number=self.equipment_serial,
            ),
            reported_problem=self.reported_problem,
            diagnosis=self.diagnosis,
            labor_cost=self.labor_cost,
            parts_cost=self.parts_cost,
            total=self.total,
            estimated_completion=self.estimated_completion,
            actual_completion=self.actual_completion,
            notes=self.notes,
            items=tuple(item.to_dto() for item in self.items),
        )

    def __repr__(self) -> str:
        return f"<ServiceOrderModel {self.number} {self.status} total={self.total}>"


class ServiceOrderItemModel(TrackedBase):
    """ORM model for the parts and services on a service order."""

    __tablename__ = "service_order_items"

    __table_args__ = (
        Index("idx_service_item_order", "service_order_id"),
    )

    service_order_id: Mapped[UUID] = mapped_column(ForeignKey("service_orders.id"))
    line_number: Mapped[int] = mapped_column(BigInteger)
    product_id: Mapped[UUID | None] = mapped_column(nullable=True)
    variant_id: Mapped[UUID | None] = mapped_column(nullable=True)
    description: Mapped[str] = mapped_column(String(500))
    quantity: Mapped[int] = mapped_column(BigInteger)
    unit_price: Mapped[Decimal] = mapped_column()
    cost_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column()
    consumed_quantity: Mapped[int] = mapped_column(BigInteger, default=0)
    consumed: Mapped[bool] = mapped_column(Boolean, default=False)

    service_order: Mapped["ServiceOrderModel"] = relationship(back_populates="items")

    def to_dto(self):
        from retail_modules.service_orders.models import ServiceOrderItem
        return ServiceOrderItem(
            id=self.id,
            product_id=self.product_id,
            variant_id=self.variant_id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            cost_price=self.cost_price,
            total=self.total,
            consumed_quantity=self.consumed_quantity,
            consumed=self.consumed,
        )


class ServiceOrderLogModel(AppendOnly, TrackedBase):
    """ORM model for the service order activity log.  Append-only."""

    __tablename__ = "service_order_logs"

    __table_args__ = (
        UniqueConstraint("service_order_id", "entry_number", name="uq_service_order_log_entry"),
    )

    service_order_id: Mapped[UUID] = mapped_column(ForeignKey("service_orders.id"))
    entry_number: Mapped[int] = mapped_column(BigInteger)
    entry_type: Mapped[str] = mapped_column(String(50))
    message: Mapped[str] = mapped_column(Text)

    def to_dto(self):
        from retail_modules.service_orders.models import LogEntryType, ServiceOrderLogEntry
        return ServiceOrderLogEntry(
            id=self.id,
            entry_number=self.entry_number,
            entry_type=LogEntryType(self.entry_type),
            message=self.message,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
        )

"""
Service Order Domain Models (``retail_modules.service_orders.models``).

Frozen value objects for repair jobs: the order, the parts and services
on it, and its activity log.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ServiceOrderStatus(Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"


class ServiceOrderPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class LogEntryType(Enum):
    STATUS_CHANGE = "status_change"
    NOTE = "note"
    INVENTORY = "inventory"
    SYSTEM = "system"


@dataclass(frozen=True)
class Equipment:
    """The customer's device under repair."""
    equipment_type: str | None = None
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None


@dataclass(frozen=True)
class ServiceOrderItem:
    """A part or a billable service on the order.

    Items without ``product_id`` are services and never touch stock.
    """
    id: UUID
    product_id: UUID | None
    variant_id: UUID | None
    description: str
    quantity: int
    unit_price: Decimal
    cost_price: Decimal
    total: Decimal
    consumed_quantity: int = 0
    consumed: bool = False


@dataclass(frozen=True)
class ServiceOrderLogEntry:
    id: UUID
    entry_number: int
    entry_type: LogEntryType
    message: str
    created_at: datetime
    created_by_id: UUID


@dataclass(frozen=True)
class ServiceOrder:
    id: UUID
    number: str
    customer_id: UUID | None
    technician_id: UUID | None
    status: ServiceOrderStatus
    priority: ServiceOrderPriority
    equipment: Equipment
    reported_problem: str | None
    diagnosis: str | None
    labor_cost: Decimal
    parts_cost: Decimal
    total: Decimal
    estimated_completion: date | None
    actual_completion: datetime | None
    notes: str | None = None
    items: tuple[ServiceOrderItem, ...] = field(default_factory=tuple)

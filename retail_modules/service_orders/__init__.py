"""
Service Orders Module (``retail_modules.service_orders``).

Repair jobs: intake, diagnosis, parts consumed from stock, completion and
invoicing, with an append-only activity log per order.
"""

from retail_modules.service_orders.models import (
    Equipment,
    LogEntryType,
    ServiceOrder,
    ServiceOrderItem,
    ServiceOrderLogEntry,
    ServiceOrderPriority,
    ServiceOrderStatus,
)
from retail_modules.service_orders.service import ServiceOrderService
from retail_modules.service_orders.workflows import SERVICE_ORDER_WORKFLOW

__all__ = [
    "Equipment",
    "LogEntryType",
    "ServiceOrder",
    "ServiceOrderItem",
    "ServiceOrderLogEntry",
    "ServiceOrderPriority",
    "ServiceOrderService",
    "ServiceOrderStatus",
    "SERVICE_ORDER_WORKFLOW",
]

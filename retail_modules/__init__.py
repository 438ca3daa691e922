"""
Retail Modules.

Document workflows over the retail kernel.  Each module contains:
- Domain models (frozen DTOs and status enums)
- ORM models (document headers, lines, append-only history)
- Workflows (state machines declared as data)
- A service facade that owns the transaction boundary

Modules:
- Inventory: Locations, adjustments, transfers, physical counts
- Purchasing: Purchase orders and goods receiving
- Payables: Suppliers, supplier invoices and payments
- Sales: Point-of-sale checkout, customer payments, returns
- Service orders: Repair jobs and the parts they consume

Every quantity change goes through ``retail_kernel.services.StockLedgerService``;
no module writes ``stock_items`` or ``stock_movements`` itself.
"""

from retail_modules import (
    inventory,
    payables,
    purchasing,
    sales,
    service_orders,
)

__all__ = [
    "inventory",
    "payables",
    "purchasing",
    "sales",
    "service_orders",
]

"""
Purchasing Module (``retail_modules.purchasing``).

Responsibility
--------------
Purchase orders from draft to received: creation with numbered documents,
approval, cancellation, and goods receiving into stock at the order's
location.

Invariants enforced
-------------------
* Transaction boundary owned by ``PurchasingService``.
* Receiving adds stock only through the kernel ledger, one ``receipt``
  movement per received line.
"""

from retail_modules.purchasing.models import (
    GoodsReceipt,
    GoodsReceiptLine,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    ReceiptResult,
    ReceiveLine,
)
from retail_modules.purchasing.service import PurchasingService
from retail_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

__all__ = [
    "GoodsReceipt",
    "GoodsReceiptLine",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderLine",
    "PurchaseOrderStatus",
    "PurchasingService",
    "ReceiptResult",
    "ReceiveLine",
    "PURCHASE_ORDER_WORKFLOW",
]

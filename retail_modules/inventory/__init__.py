"""
Inventory Module (``retail_modules.inventory``).

Locations and the stock operations that are not tied to a commercial
document: adjustments, transfers between locations, physical counts.
"""

from retail_modules.inventory.models import Location, TransferResult
from retail_modules.inventory.service import InventoryService

__all__ = [
    "InventoryService",
    "Location",
    "TransferResult",
]

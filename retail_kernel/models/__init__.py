"""ORM models owned by the kernel: stock ledger, movement log, sequence counters."""

from retail_kernel.models.sequence import SequenceCounter
from retail_kernel.models.stock import StockItem, StockMovement

__all__ = [
    "SequenceCounter",
    "StockItem",
    "StockMovement",
]

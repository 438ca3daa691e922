"""Services for the retail kernel (write side)."""

from retail_kernel.services.movement_log import MovementLog
from retail_kernel.services.retry import call_with_retry, is_transient
from retail_kernel.services.sequence_service import SequenceService
from retail_kernel.services.stock_ledger_service import StockLedgerService

__all__ = [
    "MovementLog",
    "SequenceService",
    "StockLedgerService",
    "call_with_retry",
    "is_transient",
]

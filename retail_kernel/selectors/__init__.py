"""Read-only query selectors for the retail kernel."""

from retail_kernel.selectors.stock_selector import (
    LedgerDrift,
    ProductStockTotal,
    ReconciliationReport,
    StockSelector,
)

__all__ = [
    "LedgerDrift",
    "ProductStockTotal",
    "ReconciliationReport",
    "StockSelector",
]

"""
Retail Kernel

Stock bookkeeping core for a retail / service shop:
- Stock ledger with weighted-average cost
- Append-only movement log
- Atomic document numbering
- One transaction per document workflow
"""

__version__ = "0.1.0"

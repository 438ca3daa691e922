"""
Inventory Domain Models (``retail_modules.inventory.models``).

Frozen value objects for stock locations and the results of inventory
operations.  No database identity and no I/O.
"""

from dataclasses import dataclass
from uuid import UUID

from retail_kernel.domain.ledger import LedgerState


@dataclass(frozen=True)
class Location:
    """A place stock is kept: a shop floor, a back room, a van."""
    id: UUID
    code: str
    name: str
    is_default: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class TransferResult:
    """Both sides of a stock transfer."""
    transfer_id: UUID
    source: LedgerState
    destination: LedgerState

"""Pure domain values for the retail kernel. No I/O."""

from retail_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from retail_kernel.domain.ledger import (
    Absent,
    Found,
    LedgerRead,
    LedgerState,
    MovementRecord,
    MovementType,
    StockKey,
    apply_delta_to_state,
    weighted_average_cost,
)
from retail_kernel.domain.numbering import DocumentNumberFormat, build_formats
from retail_kernel.domain.references import DocumentRef, DocumentType
from retail_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Absent",
    "Clock",
    "DeterministicClock",
    "DocumentNumberFormat",
    "DocumentRef",
    "DocumentType",
    "Found",
    "Guard",
    "LedgerRead",
    "LedgerState",
    "MovementRecord",
    "MovementType",
    "StockKey",
    "SystemClock",
    "Transition",
    "Workflow",
    "apply_delta_to_state",
    "build_formats",
    "weighted_average_cost",
]

"""
Module: retail_kernel.models.sequence
Responsibility: The ``sequence_counters`` table behind document numbering.
Architecture position: Kernel > Models.  Written only by SequenceService.

Invariants enforced:
    - One row per counter name (unique constraint).
    - current_value only ever increases (SequenceService.next_value).
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from retail_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value, e.g.
    ``purchase_order:2026`` or ``sales_invoice``.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"

"""
Module: retail_kernel.models.stock
Responsibility: ORM persistence for the stock ledger (``stock_items``) and the
    movement log (``stock_movements``).
Architecture position: Kernel > Models.  Inherits from TrackedBase.  Products,
    variants and locations are referenced by UUID without foreign keys; the
    catalogue is owned elsewhere.

Invariants enforced:
    - One ledger row per (product_id, variant_key, location_id), enforced by a
      unique constraint.  ``variant_key`` is the non-null form of
      ``variant_id`` (empty string for "no variant") because SQL unique
      constraints treat NULLs as distinct.
    - ``stock_items.version`` is the optimistic-lock column: every UPDATE is
      conditioned on the version read, and a mismatch raises StaleDataError
      (translated to OptimisticLockError by the ledger service).
    - ``stock_movements`` is append-only (db/immutability.py, db/triggers.py)
      and totally ordered by ``seq``.
    - Costs are Decimal (Numeric(38, 9)); quantities are integers.

Failure modes:
    - IntegrityError on a second ledger row for the same stock key.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from retail_kernel.db.base import AppendOnly, TrackedBase
from retail_kernel.domain.ledger import (
    LedgerState,
    MovementRecord,
    MovementType,
    StockKey,
)
from retail_kernel.domain.references import DocumentRef, DocumentType


class StockItem(TrackedBase):
    """
    Ledger row: on-hand quantity and running average cost of one stock key.

    Created on the first movement at a location; never deleted.
    """

    __tablename__ = "stock_items"

    __table_args__ = (
        UniqueConstraint(
            "product_id", "variant_key", "location_id", name="uq_stock_items_key"
        ),
        Index("idx_stock_items_location", "location_id"),
    )

    product_id: Mapped[UUID] = mapped_column(nullable=False)
    variant_id: Mapped[UUID | None] = mapped_column(nullable=True)
    variant_key: Mapped[str] = mapped_column(String(36), nullable=False, default="")
    location_id: Mapped[UUID] = mapped_column(nullable=False)

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    avg_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    last_count_date: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def key(self) -> StockKey:
        return StockKey(
            product_id=self.product_id,
            location_id=self.location_id,
            variant_id=self.variant_id,
        )

    def to_state(self) -> LedgerState:
        return LedgerState(
            key=self.key,
            quantity=self.quantity,
            avg_cost=self.avg_cost,
            reserved_quantity=self.reserved_quantity,
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<StockItem {self.key} qty={self.quantity} "
            f"avg={self.avg_cost} v{self.version}>"
        )


class StockMovement(AppendOnly, TrackedBase):
    """
    Movement log entry: one signed quantity change and its cause.

    Append-only.  ``reference_type`` / ``reference_id`` hold a DocumentRef;
    use the ``reference`` property rather than the raw columns.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_stock_movements_seq"),
        Index("idx_stock_movements_key", "product_id", "variant_key", "location_id"),
        Index("idx_stock_movements_reference", "reference_type", "reference_id"),
    )

    product_id: Mapped[UUID] = mapped_column(nullable=False)
    variant_id: Mapped[UUID | None] = mapped_column(nullable=True)
    variant_key: Mapped[str] = mapped_column(String(36), nullable=False, default="")
    location_id: Mapped[UUID] = mapped_column(nullable=False)

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_id: Mapped[UUID] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Global, gap-safe log position allocated by SequenceService
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    @property
    def reference(self) -> DocumentRef:
        return DocumentRef(DocumentType(self.reference_type), self.reference_id)

    @property
    def key(self) -> StockKey:
        return StockKey(
            product_id=self.product_id,
            location_id=self.location_id,
            variant_id=self.variant_id,
        )

    @classmethod
    def create(
        cls,
        key: StockKey,
        movement_type: MovementType,
        quantity: int,
        unit_cost: Decimal,
        reference: DocumentRef,
        created_by_id: UUID,
        seq: int,
        notes: str | None = None,
    ) -> "StockMovement":
        return cls(
            seq=seq,
            product_id=key.product_id,
            variant_id=key.variant_id,
            variant_key=key.variant_key,
            location_id=key.location_id,
            movement_type=movement_type.value,
            quantity=quantity,
            unit_cost=unit_cost,
            reference_type=reference.document_type.value,
            reference_id=reference.document_id,
            notes=notes,
            created_by_id=created_by_id,
        )

    def to_dto(self) -> MovementRecord:
        return MovementRecord(
            id=self.id,
            seq=self.seq,
            key=self.key,
            movement_type=MovementType(self.movement_type),
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            reference=self.reference,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement #{self.seq} {self.movement_type} {self.quantity:+d} "
            f"{self.product_id}@{self.location_id} ref={self.reference_type}>"
        )

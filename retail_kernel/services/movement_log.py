"""
MovementLog -- the append-only record of every stock quantity change.

Responsibility:
    Appends movement rows and reads them back.  There is deliberately no
    update or delete method: a wrong movement is corrected by appending a
    compensating one (an adjustment or a return), never by rewriting the
    history.

Architecture position:
    Kernel > Services.  Called by StockLedgerService, which appends exactly
    one movement for every ledger change inside the same transaction.

Invariants enforced:
    - Append-only (ORM listeners in db/immutability.py, triggers in
      db/triggers.py).
    - Movements are totally ordered by a ``seq`` drawn from SequenceService.
    - Every movement carries a typed DocumentRef to the document that
      caused it.
    - Zero-quantity movements are rejected.

Failure modes:
    - InvalidQuantityError for a zero quantity.
    - ImmutabilityViolationError if a caller mutates a flushed movement.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from retail_kernel.domain.ledger import MovementRecord, MovementType, StockKey
from retail_kernel.domain.references import DocumentRef
from retail_kernel.exceptions import InvalidQuantityError
from retail_kernel.logging_config import get_logger
from retail_kernel.models.stock import StockMovement
from retail_kernel.services.base import BaseService
from retail_kernel.services.sequence_service import SequenceService

logger = get_logger("services.movement_log")


class MovementLog(BaseService):
    """
    Append-only movement log.

    Contract:
        ``append`` flushes one row and returns its id.  Reads return
        frozen ``MovementRecord`` DTOs in log order (``seq``).
    """

    SEQUENCE_NAME = "stock_movement"

    def __init__(self, session, sequences: SequenceService | None = None):
        super().__init__(session)
        self._sequences = sequences or SequenceService(session)

    def append(
        self,
        key: StockKey,
        movement_type: MovementType,
        quantity: int,
        unit_cost: Decimal,
        reference: DocumentRef,
        actor_id: UUID,
        notes: str | None = None,
    ) -> UUID:
        if quantity == 0:
            raise InvalidQuantityError(quantity, "movements record non-zero changes only")

        movement = StockMovement.create(
            key=key,
            movement_type=movement_type,
            quantity=quantity,
            unit_cost=unit_cost,
            reference=reference,
            created_by_id=actor_id,
            seq=self._sequences.next_value(self.SEQUENCE_NAME),
            notes=notes,
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "stock_movement_appended",
            extra={
                "movement_id": str(movement.id),
                "seq": movement.seq,
                "movement_type": movement_type.value,
                "stock_key": str(key),
                "quantity": quantity,
                "unit_cost": unit_cost,
                "reference": str(reference),
            },
        )
        return movement.id

    def list_for(self, key: StockKey) -> list[MovementRecord]:
        """All movements of one stock key, oldest first."""
        rows = self.session.execute(
            select(StockMovement)
            .where(
                StockMovement.product_id == key.product_id,
                StockMovement.variant_key == key.variant_key,
                StockMovement.location_id == key.location_id,
            )
            .order_by(StockMovement.seq)
        ).scalars()
        return [row.to_dto() for row in rows]

    def list_for_document(self, reference: DocumentRef) -> list[MovementRecord]:
        """All movements caused by one document, oldest first."""
        rows = self.session.execute(
            select(StockMovement)
            .where(
                StockMovement.reference_type == reference.document_type.value,
                StockMovement.reference_id == reference.document_id,
            )
            .order_by(StockMovement.seq)
        ).scalars()
        return [row.to_dto() for row in rows]

"""
SequenceService -- monotonic counter allocation and document numbering.

Responsibility:
    Provides strictly increasing values for named counters and renders
    them into document numbers (``OC-2026-0007``, ``FAT-000123``).  Uses a
    dedicated counter table with row-level locking so that two terminals
    creating documents at the same moment can never receive the same
    number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by every document workflow when a new document is created.

Invariants enforced:
    - The "read the latest number and add one" pattern is FORBIDDEN.  The
      locked counter row is the sole source of truth for the next value.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and re-select).

Audit relevance:
    Allocation is logged at DEBUG level with counter name and value.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.numbering import DocumentNumberFormat
from retail_kernel.logging_config import get_logger
from retail_kernel.models.sequence import SequenceCounter
from retail_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceService(BaseService):
    """
    Service for transactional counters and document numbers.

    Guarantees:
        - Strictly monotonic values per counter via a locked row.
        - ``SELECT ... FOR UPDATE`` serializes allocations on PostgreSQL;
          ``BEGIN IMMEDIATE`` does so on SQLite (db/engine.py).

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self.session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Allocate the next value of a named counter.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously committed for this counter.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create it at the same time,
            # so insert inside a savepoint and fall back to the locked read.
            savepoint = self.session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self.session.add(counter)
                self.session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_number(self, number_format: DocumentNumberFormat) -> str:
        """Allocate and render the next document number for ``number_format``."""
        year = self._clock.today().year
        seq = self.next_value(number_format.counter_name(year))
        return number_format.render(seq=seq, year=year)

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a counter without incrementing, or None if unused."""
        counter = self.session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a counter to a specific value.

        WARNING: Only for tests and data migration (e.g. continuing the
        numbering of an imported legacy register).
        """
        counter = self._locked_counter(sequence_name)
        if counter is None:
            self.session.add(SequenceCounter(name=sequence_name, current_value=value))
        else:
            counter.current_value = value
        self.session.flush()

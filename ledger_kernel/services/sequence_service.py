"""
SequenceService -- gap-free counters held in locked rows.

Responsibility:
    Numbers audit log rows and the per-financial-year journal references
    (JV-2024-00001, JV-2024-00002, ...).  Each named sequence is one
    SequenceCounter row, read ``FOR UPDATE`` for every allocation, so two
    transactions asking for the same sequence queue behind each other.

Invariants enforced:
    - Values come only from the counter row, never from ``MAX(...) + 1``.
    - The increment belongs to the caller's transaction; a rollback hands
      the number back.

Failure modes:
    - Two transactions creating the same counter at once: the loser's
      INSERT fails inside a savepoint and it re-reads the winner's row.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def journal_reference_name(financial_year_id: UUID) -> str:
    return f"journal_reference:{financial_year_id}"


class SequenceService:
    AUDIT_LOG = "audit_log"

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """Increment the named counter and return the new value; the first is 1."""
        counter = self._lock(sequence_name) or self._create(sequence_name)
        counter.current_value += 1
        self._session.flush()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Last value handed out, or None for an unused sequence."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

    def _lock(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create(self, sequence_name: str) -> SequenceCounter:
        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": sequence_name})
            counter = self._lock(sequence_name)
            if counter is None:
                raise
            return counter
        savepoint.commit()
        # The new row is ours until the outer transaction ends
        return counter

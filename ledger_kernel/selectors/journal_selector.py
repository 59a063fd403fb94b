"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only query access to journal entries and their items.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Results are JournalEntryInfo DTOs with items ordered by line_no.
    - list() orders by entry_date descending, then reference_number
      descending (newest first).

Failure modes:
    - get() raises JournalEntryNotFoundError; list() returns an empty list
      when nothing matches.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select

from ledger_kernel.domain.dtos import JournalEntryInfo
from ledger_kernel.exceptions import JournalEntryNotFoundError, ValidationError
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.selectors.base import LIKE_ESCAPE, BaseSelector, contains_pattern


class JournalSelector(BaseSelector):
    """Selector for journal entry listing and lookup."""

    def get(self, entry_id: UUID) -> JournalEntryInfo:
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.id == entry_id)
        ).unique().scalar_one_or_none()
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return JournalEntryInfo.from_model(entry)

    def get_by_reference(self, reference_number: str) -> JournalEntryInfo:
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.reference_number == reference_number)
        ).unique().scalar_one_or_none()
        if entry is None:
            raise JournalEntryNotFoundError(reference_number)
        return JournalEntryInfo.from_model(entry)

    def list(
        self,
        status: str | JournalEntryStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        search: str | None = None,
        financial_year_id: UUID | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[JournalEntryInfo]:
        """
        List journal entries, newest first.

        Args:
            status: draft, posted or cancelled.
            start_date: Earliest entry_date (inclusive).
            end_date: Latest entry_date (inclusive).
            search: Case-insensitive substring of reference or narration.
            financial_year_id: Only entries of this year.
            limit: Maximum number of results.
            offset: Number of results to skip.
        """
        query = select(JournalEntry)

        if status is not None:
            try:
                status_value = JournalEntryStatus(status).value
            except ValueError:
                raise ValidationError("status", f"unknown status {status!r}") from None
            query = query.where(JournalEntry.status == status_value)

        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)
        if financial_year_id is not None:
            query = query.where(JournalEntry.financial_year_id == financial_year_id)

        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    func.lower(JournalEntry.reference_number).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(JournalEntry.narration).like(pattern, escape=LIKE_ESCAPE),
                )
            )

        query = query.order_by(
            JournalEntry.entry_date.desc(), JournalEntry.reference_number.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        if offset is not None:
            query = query.offset(offset)

        entries = self.session.execute(query).unique().scalars().all()
        return [JournalEntryInfo.from_model(e) for e in entries]

"""
Module: ledger_kernel.models.financial_year
Responsibility: ORM persistence for financial years and for the ledger state
    row that records which year is active.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Date ranges are half-open: a year covers start_date <= d < end_date.
    - At most one year has is_active = true (partial unique index
      uq_financial_year_single_active).
    - LedgerState.active_year_id is the explicit record of the active year.
      It carries a version_id_col, so two transactions that both activate a
      year from the same starting state cannot both commit.

Failure modes:
    - StaleDataError at flush when LedgerState was changed concurrently
      (translated to ConcurrencyConflict by FinancialYearService).
    - IntegrityError on the single-active index (also ConcurrencyConflict).

Audit relevance:
    Activation decides which dates accept postings.  Every activation is
    recorded as a year_activated audit action.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, TrackedBase, UUIDString


class FinancialYear(TrackedBase):
    """
    Accounting period boundary within which entry dates must fall.

    Contract:
        Years never overlap (checked by FinancialYearService).  Exactly one
        year may be active.  A non-active year accepts postings only as the
        configured backdated posting policy allows; is_unlocked is the
        per-year switch that policy consults.

    Non-goals:
        - This model does NOT enforce non-overlap; that is a service check.
    """

    __tablename__ = "financial_years"

    __table_args__ = (
        UniqueConstraint("name", name="uq_financial_year_name"),
        Index("idx_financial_year_dates", "start_date", "end_date"),
        Index(
            "uq_financial_year_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # First day of the year (inclusive)
    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # First day after the year (exclusive)
    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Opt-in for backdated postings while not active
    is_unlocked: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<FinancialYear {self.name} [{self.start_date}, {self.end_date})>"

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this year (half-open range)."""
        return self.start_date <= check_date < self.end_date

    def has_ended(self, today: date) -> bool:
        """True once ``today`` is on or after the exclusive end date."""
        return today >= self.end_date


class LedgerState(Base):
    """
    Single-row repository of ledger-wide state.

    Contract:
        Exactly one row exists, keyed by STATE_KEY.  Its version column is
        bumped by SQLAlchemy on every UPDATE and checked in the WHERE clause
        (optimistic locking).
    """

    __tablename__ = "ledger_state"

    STATE_KEY = "ledger"

    key: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )

    active_year_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("financial_years.id"),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<LedgerState active_year_id={self.active_year_id} v{self.version}>"

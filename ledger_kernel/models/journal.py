"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal items -- the
    single source of financial truth in the ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - reference_number is globally unique; (financial_year_id,
      sequence_number) is unique, so numbering is sequential per year.
    - Balance (debits == credits) is checked by JournalService at the
      draft -> posted transition; is_balanced is a read-side convenience.
    - Immutability after posting (ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate reference or per-year sequence number.
    - ImmutableEntryError on UPDATE/DELETE of a posted or cancelled entry
      or of its items.

Audit relevance:
    Cancelled entries keep every item.  They are excluded from balances by
    status, never removed, so the full history stays reconstructible.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.financial_year import FinancialYear


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: draft -> posted -> cancelled.  Drafts may also be deleted.
    Guarantees: No backward transitions are permitted.
    """

    DRAFT = "draft"
    POSTED = "posted"
    CANCELLED = "cancelled"


class ItemType(str, Enum):
    """Which side of the entry an item is on."""

    DEBIT = "debit"
    CREDIT = "credit"


class JournalEntry(TrackedBase):
    """
    Journal entry header -- a dated, narrated group of debit/credit items.

    Contract:
        Created as a draft.  Posting freezes every field and every item;
        the only change a posted entry accepts afterwards is the move to
        cancelled.

    Guarantees:
        - Debits == credits for every entry in status posted (checked by
          JournalService when posting).
        - reference_number is assigned at creation and unique.

    Non-goals:
        - This model does NOT enforce balance at the ORM level.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_journal_reference"),
        UniqueConstraint(
            "financial_year_id", "sequence_number", name="uq_journal_year_sequence"
        ),
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_status", "status"),
    )

    reference_number: Mapped[str] = mapped_column(
        String(80),
        nullable=False,
    )

    financial_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("financial_years.id"),
        nullable=False,
    )

    # Position within the financial year's numbering
    sequence_number: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    narration: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    posted_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancelled_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    items: Mapped[list["JournalItem"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalItem.line_no",
    )

    financial_year: Mapped["FinancialYear"] = relationship(
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.reference_number} status={self.status_value}>"

    @property
    def status_value(self) -> str:
        return JournalEntryStatus(self.status).value

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_cancelled(self) -> bool:
        return self.status == JournalEntryStatus.CANCELLED

    @property
    def total_debits(self) -> Decimal:
        """Sum of all debit item amounts."""
        return sum(
            (item.amount for item in self.items if item.item_type == ItemType.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        """Sum of all credit item amounts."""
        return sum(
            (item.amount for item in self.items if item.item_type == ItemType.CREDIT),
            Decimal("0"),
        )

    @property
    def is_balanced(self) -> bool:
        """Exact fixed-point equality of debits and credits."""
        return self.total_debits == self.total_credits


class JournalItem(TrackedBase):
    """
    Individual debit or credit line within a journal entry.

    Contract:
        Each item belongs to exactly one JournalEntry, references exactly one
        Account, and records a strictly positive amount on one side.  Items
        are owned by their entry: they are deleted only with a draft entry.
    """

    __tablename__ = "journal_items"

    __table_args__ = (
        Index("idx_item_entry", "journal_entry_id"),
        Index("idx_item_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    item_type: Mapped[ItemType] = mapped_column(
        String(10),
        nullable=False,
    )

    # Always positive; item_type determines debit/credit
    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # 1-based position within the entry
    line_no: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    entry: Mapped[JournalEntry] = relationship(
        back_populates="items",
    )

    account: Mapped["Account"] = relationship(
        back_populates="journal_items",
    )

    def __repr__(self) -> str:
        return f"<JournalItem {ItemType(self.item_type).value} {self.amount}>"

    @property
    def signed_amount(self) -> Decimal:
        """Debit-positive signed amount."""
        if self.item_type == ItemType.DEBIT:
            return self.amount
        return -self.amount

"""
Module: ledger_kernel.models.sequence
Responsibility: Named counter rows backing SequenceService.

Each row represents a named sequence with its current value.  Row-level
locking (SELECT ... FOR UPDATE) serializes allocations, so values are
strictly increasing and never handed out twice.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SequenceCounter(Base):
    """Sequence counter table."""

    __tablename__ = "sequence_counters"

    # e.g. "audit_log", "journal_reference:<year id>"
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

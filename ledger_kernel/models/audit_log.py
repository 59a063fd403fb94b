"""
Module: ledger_kernel.models.audit_log
Responsibility: ORM persistence for the append-only, hash-chained audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are never updated or deleted (ORM listeners in db/immutability.py).
    - seq is unique and strictly increasing (allocated by SequenceService).
    - hash = H(seq | entity_type | entity_id | action | payload_hash | prev_hash);
      prev_hash is None only for the first row.

Audit relevance:
    Every state change of categories, accounts, financial years and journal
    entries produces one row here.  AuditService.validate_chain() detects
    any tampering with recorded rows.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable actions."""

    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_ACTIVATED = "account_activated"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ACCOUNT_DELETED = "account_deleted"

    YEAR_CREATED = "year_created"
    YEAR_UPDATED = "year_updated"
    YEAR_DELETED = "year_deleted"
    YEAR_ACTIVATED = "year_activated"
    YEAR_UNLOCKED = "year_unlocked"
    YEAR_LOCKED = "year_locked"

    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_POSTED = "entry_posted"
    ENTRY_CANCELLED = "entry_cancelled"
    ENTRY_DELETED = "entry_deleted"


class AuditLog(Base):
    """
    One audited action on one entity.

    Contract:
        Append-only.  Each row's hash covers the previous row's hash, so the
        log forms a tamper-evident chain.

    Non-goals:
        - This model does NOT compute hashes; AuditService does.
    """

    __tablename__ = "audit_log"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    # "JournalEntry", "FinancialYear", "Account", "AccountCategory"
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    action: Mapped[AuditAction] = mapped_column(
        String(50),
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    payload_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    prev_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditLog #{self.seq} {AuditAction(self.action).value} on {self.entity_type}:{self.entity_id}>"

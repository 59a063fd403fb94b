"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import (
    Account,
    AccountCategory,
    AccountType,
    NormalBalance,
)
from ledger_kernel.models.audit_log import AuditAction, AuditLog
from ledger_kernel.models.financial_year import FinancialYear, LedgerState
from ledger_kernel.models.journal import (
    ItemType,
    JournalEntry,
    JournalEntryStatus,
    JournalItem,
)
from ledger_kernel.models.sequence import SequenceCounter

__all__ = [
    "Account",
    "AccountCategory",
    "AccountType",
    "AuditAction",
    "AuditLog",
    "FinancialYear",
    "ItemType",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalItem",
    "LedgerState",
    "NormalBalance",
    "SequenceCounter",
]

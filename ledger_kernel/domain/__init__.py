"""Pure domain types: clocks and the DTOs that cross the service boundary."""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountInfo,
    Actor,
    CategoryInfo,
    FinancialYearInfo,
    ItemSpec,
    JournalEntryInfo,
    JournalItemInfo,
)

__all__ = [
    "AccountInfo",
    "Actor",
    "CategoryInfo",
    "Clock",
    "DeterministicClock",
    "FinancialYearInfo",
    "ItemSpec",
    "JournalEntryInfo",
    "JournalItemInfo",
    "SystemClock",
]

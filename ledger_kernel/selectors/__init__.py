"""Read-only query selectors for the ledger kernel."""

from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import (
    GeneralLedger,
    GeneralLedgerLine,
    LedgerSelector,
    TrialBalance,
    TrialBalanceRow,
)
from ledger_kernel.selectors.statement_selector import (
    BalanceSheet,
    IncomeStatement,
    StatementLine,
    StatementSelector,
)

__all__ = [
    "AccountSelector",
    "BalanceSheet",
    "BaseSelector",
    "GeneralLedger",
    "GeneralLedgerLine",
    "IncomeStatement",
    "JournalSelector",
    "LedgerSelector",
    "StatementLine",
    "StatementSelector",
    "TrialBalance",
    "TrialBalanceRow",
]

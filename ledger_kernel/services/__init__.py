"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.audit_service import AuditService, AuditTrace
from ledger_kernel.services.authorization import AuthorizationPolicy, Operation, Role
from ledger_kernel.services.financial_year_service import FinancialYearService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.ledger_facade import LedgerFacade
from ledger_kernel.services.seed_service import SeedResult, SeedService
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccountService",
    "AuditService",
    "AuditTrace",
    "AuthorizationPolicy",
    "FinancialYearService",
    "JournalService",
    "LedgerFacade",
    "Operation",
    "Role",
    "SeedResult",
    "SeedService",
    "SequenceService",
]

"""
LedgerFacade -- authorized operation surface for transports.

Responsibility:
    One object exposing every ledger operation.  Each call authorizes the
    Actor's role for the operation, binds actor and operation into the log
    context, and delegates to the matching service or selector.

Architecture position:
    Kernel > Services -- the outermost kernel layer.  An HTTP handler, CLI
    or script builds one per session and maps exceptions to responses.

Invariants enforced:
    - No operation reaches a service or selector without passing
      AuthorizationPolicy.authorize().
    - The facade never commits; the caller owns the transaction.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import Actor
from ledger_kernel.logging_config import LogContext
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.statement_selector import StatementSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.authorization import AuthorizationPolicy, Operation
from ledger_kernel.services.financial_year_service import FinancialYearService
from ledger_kernel.services.journal_service import JournalService


class LedgerFacade:
    """
    Authorized entry point to the ledger.

    Usage:
        with session_scope() as session:
            ledger = LedgerFacade(session, config=config)
            entry = ledger.create_entry(actor, date(2024, 3, 1), "Rent", items)
            ledger.post_entry(actor, entry.id)
    """

    def __init__(
        self,
        session: Session,
        policy: AuthorizationPolicy | None = None,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        self._config = config or LedgerConfig()
        self._policy = policy or AuthorizationPolicy.from_config(self._config)
        clock = clock or SystemClock()

        self.accounts = AccountService(session, self._config, clock)
        self.years = FinancialYearService(session, self._config, clock)
        self.journal = JournalService(session, self._config, clock)
        self._account_selector = AccountSelector(session)
        self._journal_selector = JournalSelector(session)
        self._ledger_selector = LedgerSelector(session, self._config)
        self._statement_selector = StatementSelector(session, self._config)

    @property
    def policy(self) -> AuthorizationPolicy:
        return self._policy

    @contextmanager
    def _authorized(self, actor: Actor, operation: Operation) -> Iterator[None]:
        with LogContext.bind(
            actor_id=actor.actor_id, role=actor.role, operation=operation.value
        ):
            self._policy.authorize(actor.role, operation)
            yield

    # Categories

    def create_category(self, actor: Actor, name: str, account_type):
        with self._authorized(actor, Operation.CATEGORY_MANAGE):
            return self.accounts.create_category(name, account_type, actor.actor_id)

    def update_category(self, actor: Actor, category_id: UUID, **changes):
        with self._authorized(actor, Operation.CATEGORY_MANAGE):
            return self.accounts.update_category(category_id, actor.actor_id, **changes)

    def delete_category(self, actor: Actor, category_id: UUID) -> None:
        with self._authorized(actor, Operation.CATEGORY_MANAGE):
            self.accounts.delete_category(category_id, actor.actor_id)

    def list_categories(self, actor: Actor):
        with self._authorized(actor, Operation.ACCOUNT_VIEW):
            return self.accounts.list_categories()

    # Accounts

    def create_account(
        self,
        actor: Actor,
        code: str,
        name: str,
        category_id: UUID,
        description: str | None = None,
    ):
        with self._authorized(actor, Operation.ACCOUNT_CREATE):
            return self.accounts.create(
                code, name, category_id, actor.actor_id, description=description
            )

    def update_account(self, actor: Actor, account_id: UUID, **changes):
        with self._authorized(actor, Operation.ACCOUNT_UPDATE):
            return self.accounts.update(account_id, actor.actor_id, **changes)

    def deactivate_account(self, actor: Actor, account_id: UUID):
        with self._authorized(actor, Operation.ACCOUNT_DEACTIVATE):
            return self.accounts.deactivate(account_id, actor.actor_id)

    def activate_account(self, actor: Actor, account_id: UUID):
        with self._authorized(actor, Operation.ACCOUNT_ACTIVATE):
            return self.accounts.activate(account_id, actor.actor_id)

    def delete_account(self, actor: Actor, account_id: UUID) -> None:
        with self._authorized(actor, Operation.ACCOUNT_DELETE):
            self.accounts.delete(account_id, actor.actor_id)

    def list_accounts(self, actor: Actor, **filters):
        with self._authorized(actor, Operation.ACCOUNT_VIEW):
            return self._account_selector.list(**filters)

    def get_account(self, actor: Actor, account_id: UUID):
        with self._authorized(actor, Operation.ACCOUNT_VIEW):
            return self._account_selector.get(account_id)

    def get_account_by_code(self, actor: Actor, code: str):
        with self._authorized(actor, Operation.ACCOUNT_VIEW):
            return self._account_selector.get_by_code(code)

    # Financial years

    def create_year(self, actor: Actor, name: str | None, start_date: date, end_date: date):
        with self._authorized(actor, Operation.YEAR_CREATE):
            return self.years.create(name, start_date, end_date, actor.actor_id)

    def update_year(self, actor: Actor, year_id: UUID, **changes):
        with self._authorized(actor, Operation.YEAR_UPDATE):
            return self.years.update(year_id, actor.actor_id, **changes)

    def delete_year(self, actor: Actor, year_id: UUID) -> None:
        with self._authorized(actor, Operation.YEAR_DELETE):
            self.years.delete(year_id, actor.actor_id)

    def activate_year(self, actor: Actor, year_id: UUID):
        with self._authorized(actor, Operation.YEAR_ACTIVATE):
            return self.years.activate(year_id, actor.actor_id)

    def unlock_year(self, actor: Actor, year_id: UUID):
        with self._authorized(actor, Operation.YEAR_LOCK):
            return self.years.unlock(year_id, actor.actor_id)

    def lock_year(self, actor: Actor, year_id: UUID):
        with self._authorized(actor, Operation.YEAR_LOCK):
            return self.years.lock(year_id, actor.actor_id)

    def list_years(self, actor: Actor):
        with self._authorized(actor, Operation.YEAR_VIEW):
            return self.years.list()

    def active_year(self, actor: Actor):
        with self._authorized(actor, Operation.YEAR_VIEW):
            return self.years.active_year()

    def is_open_for(self, actor: Actor, check_date: date) -> bool:
        with self._authorized(actor, Operation.YEAR_VIEW):
            return self.years.is_open_for(check_date)

    # Journal

    def create_entry(self, actor: Actor, entry_date: date, narration: str, items):
        with self._authorized(actor, Operation.ENTRY_CREATE):
            return self.journal.create(entry_date, narration, items, actor.actor_id)

    def update_entry(self, actor: Actor, entry_id: UUID, **changes):
        with self._authorized(actor, Operation.ENTRY_UPDATE):
            return self.journal.update(entry_id, actor.actor_id, **changes)

    def post_entry(self, actor: Actor, entry_id: UUID):
        with self._authorized(actor, Operation.ENTRY_POST):
            return self.journal.post(entry_id, actor.actor_id)

    def cancel_entry(self, actor: Actor, entry_id: UUID):
        with self._authorized(actor, Operation.ENTRY_CANCEL):
            return self.journal.cancel(entry_id, actor.actor_id)

    def delete_entry(self, actor: Actor, entry_id: UUID) -> None:
        with self._authorized(actor, Operation.ENTRY_DELETE):
            self.journal.delete(entry_id, actor.actor_id)

    def get_entry(self, actor: Actor, entry_id: UUID):
        with self._authorized(actor, Operation.ENTRY_VIEW):
            return self._journal_selector.get(entry_id)

    def list_entries(self, actor: Actor, **filters):
        with self._authorized(actor, Operation.ENTRY_VIEW):
            return self._journal_selector.list(**filters)

    # Reports

    def balance_of(self, actor: Actor, account_id: UUID, as_of: date | None = None):
        with self._authorized(actor, Operation.REPORT_VIEW):
            return self._ledger_selector.balance_of(account_id, as_of)

    def trial_balance(self, actor: Actor, as_of: date | None = None):
        with self._authorized(actor, Operation.REPORT_VIEW):
            return self._ledger_selector.trial_balance(as_of)

    def general_ledger(self, actor: Actor, account_id: UUID, start_date: date, end_date: date):
        with self._authorized(actor, Operation.REPORT_VIEW):
            return self._ledger_selector.general_ledger(account_id, start_date, end_date)

    def income_statement(self, actor: Actor, start_date: date, end_date: date):
        with self._authorized(actor, Operation.REPORT_VIEW):
            return self._statement_selector.income_statement(start_date, end_date)

    def balance_sheet(self, actor: Actor, as_of: date):
        with self._authorized(actor, Operation.REPORT_VIEW):
            return self._statement_selector.balance_sheet(as_of)

    def cash_flow(self, actor: Actor, start_date: date, end_date: date):
        with self._authorized(actor, Operation.REPORT_VIEW):
            return self._statement_selector.cash_flow(start_date, end_date)

"""
LedgerFacade tests.

Verifies:
- Every operation is authorized before it reaches a service
- A denied call leaves no trace in the database or the audit log
- Actor and operation are bound into the log context
- A full bookkeeping round trip through the facade
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import Actor, ItemSpec
from ledger_kernel.exceptions import PermissionDeniedError
from ledger_kernel.models.account import AccountCategory
from ledger_kernel.models.audit_log import AuditLog
from ledger_kernel.services.authorization import AuthorizationPolicy
from ledger_kernel.services.ledger_facade import LedgerFacade


@pytest.fixture
def ledger(session, config, deterministic_clock) -> LedgerFacade:
    return LedgerFacade(session, config=config, clock=deterministic_clock)


@pytest.fixture
def manager(test_actor_id) -> Actor:
    return Actor(actor_id=test_actor_id, role="manager")


class TestAuthorization:
    def test_manager_cannot_create_category(self, session, ledger, manager):
        with pytest.raises(PermissionDeniedError):
            ledger.create_category(manager, "Assets", "asset")

        assert session.execute(select(func.count(AccountCategory.id))).scalar_one() == 0
        assert session.execute(select(func.count(AuditLog.id))).scalar_one() == 0

    @pytest.mark.parametrize("call", [
        lambda l, a: l.list_accounts(a),
        lambda l, a: l.list_years(a),
        lambda l, a: l.list_entries(a),
        lambda l, a: l.trial_balance(a),
        lambda l, a: l.is_open_for(a, date(2024, 1, 1)),
    ])
    def test_manager_cannot_read(self, ledger, manager, call):
        with pytest.raises(PermissionDeniedError):
            call(ledger, manager)

    def test_custom_policy(self, session, config, deterministic_clock, manager):
        policy = AuthorizationPolicy.from_mapping({"manager": ["year.view", "report.view"]})
        ledger = LedgerFacade(session, policy=policy, config=config, clock=deterministic_clock)

        assert ledger.list_years(manager) == []
        assert ledger.trial_balance(manager).rows == ()
        with pytest.raises(PermissionDeniedError):
            ledger.create_year(manager, None, date(2024, 1, 1), date(2025, 1, 1))

    def test_context_bound_during_call(self, ledger, accountant, captured_logs):
        ledger.create_category(accountant, "Assets", "asset")

        created = [r for r in captured_logs() if r["message"] == "account_category_created"]
        assert created[0]["operation"] == "category.manage"
        assert created[0]["role"] == "accountant"
        assert created[0]["actor_id"] == str(accountant.actor_id)

    def test_denial_carries_context(self, ledger, manager, captured_logs):
        with pytest.raises(PermissionDeniedError):
            ledger.post_entry(manager, None)

        denied = [r for r in captured_logs() if r["message"] == "permission_denied"]
        assert denied[0]["role"] == "manager"
        assert denied[0]["operation"] == "entry.post"


class TestRoundTrip:
    def test_bookkeeping_cycle(self, ledger, accountant):
        assets = ledger.create_category(accountant, "Assets", "asset")
        equity = ledger.create_category(accountant, "Equity", "equity")
        expense = ledger.create_category(accountant, "Expense", "expense")
        cash = ledger.create_account(accountant, "1001", "Cash", assets.id)
        capital = ledger.create_account(accountant, "3001", "Capital", equity.id)
        rent = ledger.create_account(accountant, "5003", "Rent", expense.id)

        year = ledger.create_year(accountant, None, date(2024, 1, 1), date(2025, 1, 1))
        ledger.activate_year(accountant, year.id)
        assert ledger.active_year(accountant).name == "2024"

        funding = ledger.create_entry(accountant, date(2024, 1, 2), "Owner funding", [
            ItemSpec.debit(cash.id, "1000.00"),
            ItemSpec.credit(capital.id, "1000.00"),
        ])
        ledger.post_entry(accountant, funding.id)
        payment = ledger.create_entry(accountant, date(2024, 2, 1), "February rent", [
            ItemSpec.debit(rent.id, "300.00"),
            ItemSpec.credit(cash.id, "300.00"),
        ])
        ledger.post_entry(accountant, payment.id)

        assert ledger.balance_of(accountant, cash.id) == Decimal("700.00")
        assert ledger.balance_of(accountant, capital.id) == Decimal("1000.00")
        assert ledger.trial_balance(accountant).is_balanced

        ledger.cancel_entry(accountant, payment.id)
        assert ledger.balance_of(accountant, cash.id) == Decimal("1000.00")
        assert ledger.get_entry(accountant, payment.id).status == "cancelled"

        statement = ledger.income_statement(accountant, date(2024, 1, 1), date(2024, 12, 31))
        assert statement.net_income == Decimal("0.00")
        assert ledger.balance_sheet(accountant, date(2024, 12, 31)).is_balanced
        flow = ledger.cash_flow(accountant, date(2024, 1, 1), date(2024, 12, 31))
        assert flow.closing_cash == Decimal("1000.00")

    def test_account_management(self, ledger, accountant):
        assets = ledger.create_category(accountant, "Assets", "asset")
        account = ledger.create_account(accountant, "1001", "Cash", assets.id)

        ledger.update_account(accountant, account.id, name="Petty cash")
        ledger.deactivate_account(accountant, account.id)

        assert ledger.get_account_by_code(accountant, "1001").name == "Petty cash"
        assert ledger.list_accounts(accountant) == []
        assert len(ledger.list_accounts(accountant, status="inactive")) == 1

        ledger.activate_account(accountant, account.id)
        ledger.delete_account(accountant, account.id)
        ledger.delete_category(accountant, assets.id)
        assert ledger.list_categories(accountant) == []

"""
Module: ledger_kernel.selectors.statement_selector
Responsibility: Income statement, balance sheet and cash flow statement
    built from posted journal items.
Architecture position: Kernel > Selectors.  Builds on LedgerSelector.

Invariants enforced:
    - net_income = total_revenue - total_expense.
    - retained_earnings is the all-time net income up to as_of, so
      assets == liabilities + equity + retained_earnings whenever the trial
      balance balances.
    - closing_cash = opening_cash + total_inflow - total_outflow, over the
      asset accounts named like cash or bank.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from ledger_kernel.config import LedgerConfig
from ledger_kernel.db.types import ZERO
from ledger_kernel.models.account import Account, AccountCategory, AccountType
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector, TrialBalanceRow


@dataclass(frozen=True)
class StatementLine:
    account_id: UUID
    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class IncomeStatement:
    start_date: date
    end_date: date
    revenue: tuple[StatementLine, ...]
    expenses: tuple[StatementLine, ...]
    total_revenue: Decimal
    total_expense: Decimal

    @property
    def net_income(self) -> Decimal:
        return self.total_revenue - self.total_expense


@dataclass(frozen=True)
class BalanceSheet:
    as_of: date
    assets: tuple[StatementLine, ...]
    liabilities: tuple[StatementLine, ...]
    equity: tuple[StatementLine, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    retained_earnings: Decimal

    @property
    def total_liabilities_and_equity(self) -> Decimal:
        return self.total_liabilities + self.total_equity + self.retained_earnings

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities_and_equity


CASH_ACCOUNT_KEYWORDS = ("cash", "bank")

# Checked in this order; anything unmatched is an operating activity
ACTIVITY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("investing", ("purchase of asset", "sale of asset", "investment")),
    ("financing", ("loan", "capital", "dividend", "share")),
)


@dataclass(frozen=True)
class CashFlowLine:
    entry_id: UUID
    reference_number: str
    entry_date: date
    narration: str
    account_code: str
    activity: str
    # Positive for cash received, negative for cash paid out
    amount: Decimal


@dataclass(frozen=True)
class CashFlowStatement:
    start_date: date
    end_date: date
    opening_cash: Decimal
    lines: tuple[CashFlowLine, ...]

    @property
    def total_inflow(self) -> Decimal:
        return sum((line.amount for line in self.lines if line.amount > 0), ZERO)

    @property
    def total_outflow(self) -> Decimal:
        return -sum((line.amount for line in self.lines if line.amount < 0), ZERO)

    @property
    def net_change(self) -> Decimal:
        return self.total_inflow - self.total_outflow

    @property
    def closing_cash(self) -> Decimal:
        return self.opening_cash + self.net_change

    def net_by_activity(self) -> dict[str, Decimal]:
        totals = {"operating": ZERO, "investing": ZERO, "financing": ZERO}
        for line in self.lines:
            totals[line.activity] += line.amount
        return totals


def classify_activity(narration: str) -> str:
    text = narration.lower()
    for activity, keywords in ACTIVITY_KEYWORDS:
        if any(k in text for k in keywords):
            return activity
    return "operating"


def _section(rows: list[TrialBalanceRow], account_type: AccountType) -> tuple[StatementLine, ...]:
    return tuple(
        StatementLine(
            account_id=r.account_id,
            account_code=r.account_code,
            account_name=r.account_name,
            amount=r.balance,
        )
        for r in rows
        if r.account_type == account_type.value
    )


def _total(lines: tuple[StatementLine, ...]) -> Decimal:
    return sum((line.amount for line in lines), ZERO)


class StatementSelector(BaseSelector):
    """Selector for financial statements."""

    def __init__(self, session, config: LedgerConfig | None = None):
        super().__init__(session)
        self._ledger = LedgerSelector(session, config)

    def income_statement(self, start_date: date, end_date: date) -> IncomeStatement:
        """Revenue and expense activity between two dates (inclusive)."""
        rows = self._ledger.account_totals(start_date=start_date, end_date=end_date)
        revenue = _section(rows, AccountType.REVENUE)
        expenses = _section(rows, AccountType.EXPENSE)
        return IncomeStatement(
            start_date=start_date,
            end_date=end_date,
            revenue=revenue,
            expenses=expenses,
            total_revenue=_total(revenue),
            total_expense=_total(expenses),
        )

    def balance_sheet(self, as_of: date) -> BalanceSheet:
        """Asset, liability and equity balances on ``as_of`` (inclusive)."""
        rows = self._ledger.account_totals(end_date=as_of)
        assets = _section(rows, AccountType.ASSET)
        liabilities = _section(rows, AccountType.LIABILITY)
        equity = _section(rows, AccountType.EQUITY)
        retained = _total(_section(rows, AccountType.REVENUE)) - _total(
            _section(rows, AccountType.EXPENSE)
        )
        return BalanceSheet(
            as_of=as_of,
            assets=assets,
            liabilities=liabilities,
            equity=equity,
            total_assets=_total(assets),
            total_liabilities=_total(liabilities),
            total_equity=_total(equity),
            retained_earnings=retained,
        )

    def cash_flow(self, start_date: date, end_date: date) -> CashFlowStatement:
        """
        Movement on cash and bank accounts between two dates (inclusive).

        Cash accounts are asset accounts whose name contains "cash" or
        "bank", deactivated ones included.  Each posted item on one of them
        is a line: debits are inflows, credits outflows.  Lines are grouped
        into operating, investing and financing activity by the entry's
        narration.
        """
        name = func.lower(Account.name)
        cash_ids = self.session.execute(
            select(Account.id)
            .join(AccountCategory, Account.category_id == AccountCategory.id)
            .where(AccountCategory.account_type == AccountType.ASSET.value)
            .where(or_(*(name.like(f"%{k}%") for k in CASH_ACCOUNT_KEYWORDS)))
            .order_by(Account.code)
        ).scalars().all()

        opening = ZERO
        lines = []
        for account_id in cash_ids:
            ledger = self._ledger.general_ledger(account_id, start_date, end_date)
            opening += ledger.opening_balance
            lines.extend(
                CashFlowLine(
                    entry_id=line.entry_id,
                    reference_number=line.reference_number,
                    entry_date=line.entry_date,
                    narration=line.narration,
                    account_code=ledger.account.code,
                    activity=classify_activity(line.narration),
                    amount=line.debit - line.credit,
                )
                for line in ledger.lines
            )

        lines.sort(key=lambda line: (line.entry_date, line.reference_number, line.account_code))
        return CashFlowStatement(
            start_date=start_date,
            end_date=end_date,
            opening_cash=opening,
            lines=tuple(lines),
        )

"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Derived balances -- account balances, the trial balance and
    the general ledger.  The ledger is a view over posted journal items;
    nothing is stored.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only entries in status posted contribute.  Drafts and cancelled
      entries are ignored.
    - The trial balance's debit total equals its credit total for every
      as_of date, because every posted entry balances.
    - Balances are Decimal, sign-normalized by the account's normal
      balance: debit-normal accounts report debits minus credits,
      credit-normal accounts report credits minus debits.

Failure modes:
    - AccountNotFoundError from balance_of() and general_ledger() for an
      unknown account.  An account without postings has balance zero.

Audit relevance:
    Deactivated accounts with history still appear in the trial balance,
    so the report always reconciles with the journal.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from ledger_kernel.config import LedgerConfig
from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account, AccountCategory, AccountType, NormalBalance
from ledger_kernel.models.journal import ItemType, JournalEntry, JournalEntryStatus, JournalItem
from ledger_kernel.selectors.base import BaseSelector

_ONE_DAY = timedelta(days=1)


def normalize(debit_total: Decimal, credit_total: Decimal, normal_balance: str) -> Decimal:
    """Signed balance, positive on the account's normal side."""
    if NormalBalance(normal_balance) == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total


@dataclass(frozen=True)
class TrialBalanceRow:
    """Posted debit and credit totals for one account."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    normal_balance: str
    is_active: bool
    debit_total: Decimal
    credit_total: Decimal

    @property
    def net(self) -> Decimal:
        """Debits minus credits."""
        return self.debit_total - self.credit_total

    @property
    def balance(self) -> Decimal:
        return normalize(self.debit_total, self.credit_total, self.normal_balance)


@dataclass(frozen=True)
class TrialBalance:
    as_of: date | None
    rows: tuple[TrialBalanceRow, ...]

    @property
    def total_debit(self) -> Decimal:
        return sum((r.debit_total for r in self.rows), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((r.credit_total for r in self.rows), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


@dataclass(frozen=True)
class GeneralLedgerLine:
    entry_id: UUID
    reference_number: str
    entry_date: date
    narration: str
    line_no: int
    item_type: str
    amount: Decimal
    description: str | None
    running_balance: Decimal

    @property
    def debit(self) -> Decimal:
        return self.amount if self.item_type == ItemType.DEBIT.value else ZERO

    @property
    def credit(self) -> Decimal:
        return self.amount if self.item_type == ItemType.CREDIT.value else ZERO


@dataclass(frozen=True)
class GeneralLedger:
    account: AccountInfo
    start_date: date
    end_date: date
    opening_balance: Decimal
    lines: tuple[GeneralLedgerLine, ...]
    closing_balance: Decimal


class LedgerSelector(BaseSelector):
    """
    Selector for ledger balances -- the authoritative balance computation.

    Contract:
        Totals are rounded to ``money_decimal_places``.  Every stored amount
        already has at most that many places, so the rounding is exact on
        backends with fixed-point sums and only removes float drift on
        SQLite.
    """

    def __init__(self, session, config: LedgerConfig | None = None):
        super().__init__(session)
        self._places = (config or LedgerConfig()).money_decimal_places

    def _money(self, value) -> Decimal:
        if value is None:
            return round_money(ZERO, self._places)
        return round_money(Decimal(value), self._places)

    def account_totals(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        account_id: UUID | None = None,
    ) -> list[TrialBalanceRow]:
        """
        Posted debit/credit totals per account with activity in the range.

        Both bounds are inclusive.  Ordered by account code.
        """
        debit_sum = func.sum(
            case(
                (JournalItem.item_type == ItemType.DEBIT.value, JournalItem.amount),
                else_=Decimal("0"),
            )
        ).label("debit_total")
        credit_sum = func.sum(
            case(
                (JournalItem.item_type == ItemType.CREDIT.value, JournalItem.amount),
                else_=Decimal("0"),
            )
        ).label("credit_total")

        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.is_active,
                AccountCategory.account_type,
                debit_sum,
                credit_sum,
            )
            .select_from(JournalItem)
            .join(JournalEntry, JournalItem.journal_entry_id == JournalEntry.id)
            .join(Account, JournalItem.account_id == Account.id)
            .join(AccountCategory, Account.category_id == AccountCategory.id)
            .where(JournalEntry.status == JournalEntryStatus.POSTED.value)
            .group_by(
                Account.id,
                Account.code,
                Account.name,
                Account.is_active,
                AccountCategory.account_type,
            )
            .order_by(Account.code)
        )
        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)
        if account_id is not None:
            query = query.where(JournalItem.account_id == account_id)

        rows = []
        for row in self.session.execute(query).all():
            type_enum = AccountType(row.account_type)
            rows.append(
                TrialBalanceRow(
                    account_id=row.id,
                    account_code=row.code,
                    account_name=row.name,
                    account_type=type_enum.value,
                    normal_balance=type_enum.normal_balance.value,
                    is_active=row.is_active,
                    debit_total=self._money(row.debit_total),
                    credit_total=self._money(row.credit_total),
                )
            )
        return rows

    def balance_of(self, account_id: UUID, as_of: date | None = None) -> Decimal:
        """
        Normalized balance of one account over posted items dated on or
        before ``as_of`` (all time when None).
        """
        account = self._get_account(account_id)
        totals = self.account_totals(end_date=as_of, account_id=account.id)
        if not totals:
            return self._money(ZERO)
        return totals[0].balance

    def trial_balance(self, as_of: date | None = None) -> TrialBalance:
        """Per-account posted totals up to ``as_of`` (inclusive)."""
        return TrialBalance(as_of=as_of, rows=tuple(self.account_totals(end_date=as_of)))

    def general_ledger(
        self,
        account_id: UUID,
        start_date: date,
        end_date: date,
    ) -> GeneralLedger:
        """
        Posted activity of one account between two dates (inclusive).

        Lines are ordered by entry_date, reference_number, line_no and carry
        a running normalized balance starting from the opening balance.
        """
        account = self._get_account(account_id)
        normal_balance = account.normal_balance.value

        before = self.account_totals(
            end_date=start_date - _ONE_DAY, account_id=account.id
        )
        opening = before[0].balance if before else self._money(ZERO)

        results = self.session.execute(
            select(JournalItem, JournalEntry)
            .join(JournalEntry, JournalItem.journal_entry_id == JournalEntry.id)
            .where(JournalItem.account_id == account.id)
            .where(JournalEntry.status == JournalEntryStatus.POSTED.value)
            .where(JournalEntry.entry_date >= start_date)
            .where(JournalEntry.entry_date <= end_date)
            .order_by(
                JournalEntry.entry_date,
                JournalEntry.reference_number,
                JournalItem.line_no,
            )
        ).unique().all()

        running = opening
        lines = []
        for item, entry in results:
            amount = self._money(item.amount)
            item_type = ItemType(item.item_type)
            if item_type == ItemType.DEBIT:
                running += normalize(amount, ZERO, normal_balance)
            else:
                running += normalize(ZERO, amount, normal_balance)
            lines.append(
                GeneralLedgerLine(
                    entry_id=entry.id,
                    reference_number=entry.reference_number,
                    entry_date=entry.entry_date,
                    narration=entry.narration,
                    line_no=item.line_no,
                    item_type=item_type.value,
                    amount=amount,
                    description=item.description,
                    running_balance=running,
                )
            )

        return GeneralLedger(
            account=AccountInfo.from_model(account),
            start_date=start_date,
            end_date=end_date,
            opening_balance=opening,
            lines=tuple(lines),
            closing_balance=running,
        )

    def _get_account(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

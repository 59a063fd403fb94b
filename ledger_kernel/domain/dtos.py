"""
DTOs -- immutable data transfer objects crossing the service boundary.

Responsibility:
    Defines the frozen dataclasses that services and selectors return
    (CategoryInfo, AccountInfo, FinancialYearInfo, JournalEntryInfo,
    JournalItemInfo) and the input shapes they accept (ItemSpec, Actor).

Architecture position:
    Kernel > Domain -- free of ORM dependencies at import time.
    from_model() class methods are boundary converters invoked only from
    the service and selector layers.

Invariants enforced:
    Callers never receive ORM entities, so nothing outside a service can
    mutate ledger rows through a returned object.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account, AccountCategory
    from ledger_kernel.models.financial_year import FinancialYear
    from ledger_kernel.models.journal import JournalEntry, JournalItem


@dataclass(frozen=True)
class Actor:
    """Who is calling, and under which role."""

    actor_id: UUID
    role: str


@dataclass(frozen=True)
class ItemSpec:
    """
    One requested journal item.

    ``item_type`` is "debit" or "credit" (ItemType members compare equal).
    ``amount`` must be a Decimal, int or numeric string; floats are
    rejected by JournalService.
    """

    account_id: UUID
    item_type: str
    amount: Decimal | int | str
    description: str | None = None

    @classmethod
    def debit(cls, account_id: UUID, amount, description: str | None = None) -> ItemSpec:
        return cls(account_id, "debit", amount, description)

    @classmethod
    def credit(cls, account_id: UUID, amount, description: str | None = None) -> ItemSpec:
        return cls(account_id, "credit", amount, description)


@dataclass(frozen=True)
class CategoryInfo:
    id: UUID
    name: str
    account_type: str
    normal_balance: str

    @classmethod
    def from_model(cls, category: AccountCategory) -> CategoryInfo:
        from ledger_kernel.models.account import AccountType

        return cls(
            id=category.id,
            name=category.name,
            account_type=AccountType(category.account_type).value,
            normal_balance=category.normal_balance.value,
        )


@dataclass(frozen=True)
class AccountInfo:
    """
    Pure representation of a chart of accounts entry.

    account_type and normal_balance are resolved through the category at
    conversion time.
    """

    id: UUID
    code: str
    name: str
    category_id: UUID
    category_name: str
    account_type: str
    normal_balance: str
    is_active: bool
    description: str | None = None

    @classmethod
    def from_model(cls, account: Account) -> AccountInfo:
        return cls(
            id=account.id,
            code=account.code,
            name=account.name,
            category_id=account.category_id,
            category_name=account.category.name,
            account_type=account.account_type.value,
            normal_balance=account.normal_balance.value,
            is_active=account.is_active,
            description=account.description,
        )


@dataclass(frozen=True)
class FinancialYearInfo:
    """Immutable snapshot of a financial year.  end_date is exclusive."""

    id: UUID
    name: str
    start_date: date
    end_date: date
    is_active: bool
    is_unlocked: bool

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date < self.end_date

    @classmethod
    def from_model(cls, year: FinancialYear) -> FinancialYearInfo:
        return cls(
            id=year.id,
            name=year.name,
            start_date=year.start_date,
            end_date=year.end_date,
            is_active=year.is_active,
            is_unlocked=year.is_unlocked,
        )


@dataclass(frozen=True)
class JournalItemInfo:
    id: UUID
    line_no: int
    account_id: UUID
    account_code: str
    account_name: str
    item_type: str
    amount: Decimal
    description: str | None = None

    @classmethod
    def from_model(cls, item: JournalItem) -> JournalItemInfo:
        return cls(
            id=item.id,
            line_no=item.line_no,
            account_id=item.account_id,
            account_code=item.account.code,
            account_name=item.account.name,
            item_type=str(getattr(item.item_type, "value", item.item_type)),
            amount=item.amount,
            description=item.description,
        )


@dataclass(frozen=True)
class JournalEntryInfo:
    """
    Immutable snapshot of a journal entry and its items.

    Guarantees:
        - items are ordered by line_no.
        - totals are exact Decimal sums.
    """

    id: UUID
    reference_number: str
    financial_year_id: UUID
    sequence_number: int
    entry_date: date
    narration: str
    status: str
    items: tuple[JournalItemInfo, ...]
    created_by_id: UUID
    posted_at: datetime | None = None
    posted_by_id: UUID | None = None
    cancelled_at: datetime | None = None
    cancelled_by_id: UUID | None = None

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (i.amount for i in self.items if i.item_type == "debit"), Decimal("0")
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (i.amount for i in self.items if i.item_type == "credit"), Decimal("0")
        )

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @classmethod
    def from_model(cls, entry: JournalEntry) -> JournalEntryInfo:
        return cls(
            id=entry.id,
            reference_number=entry.reference_number,
            financial_year_id=entry.financial_year_id,
            sequence_number=entry.sequence_number,
            entry_date=entry.entry_date,
            narration=entry.narration,
            status=entry.status_value,
            items=tuple(
                JournalItemInfo.from_model(item)
                for item in sorted(entry.items, key=lambda i: i.line_no)
            ),
            created_by_id=entry.created_by_id,
            posted_at=entry.posted_at,
            posted_by_id=entry.posted_by_id,
            cancelled_at=entry.cancelled_at,
            cancelled_by_id=entry.cancelled_by_id,
        )

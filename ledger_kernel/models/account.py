"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- account categories
    and the accounts that every journal item targets.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Account.code is unique; AccountCategory.name is unique.
    - An account's code and category, and its category's account_type, are
      frozen once any posted or cancelled journal item references the account
      (AccountService checks first; db/immutability.py is the backstop).

Failure modes:
    - AccountNotFoundError / AccountInactiveError when an item targets a
      missing or deactivated account.
    - ReferencedAccountError when a structural change or deletion is
      attempted on an account with history.

Audit relevance:
    Category type determines the normal balance side used by every derived
    balance.  Changing it after postings would silently flip the sign of
    historical balances, so it is locked once referenced.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalItem


class AccountType(str, Enum):
    """The five fixed accounting types."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> "NormalBalance":
        """Side on which accounts of this type conventionally increase."""
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountCategory(TrackedBase):
    """
    Named grouping of accounts carrying one AccountType.

    Contract:
        Every Account belongs to exactly one category; the category's
        account_type decides the account's statement placement and normal
        balance.
    """

    __tablename__ = "account_categories"

    __table_args__ = (
        UniqueConstraint("name", name="uq_account_category_name"),
        Index("idx_account_category_type", "account_type"),
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    accounts: Mapped[list["Account"]] = relationship(
        back_populates="category",
    )

    def __repr__(self) -> str:
        return f"<AccountCategory {self.name} ({AccountType(self.account_type).value})>"

    @property
    def normal_balance(self) -> NormalBalance:
        return AccountType(self.account_type).normal_balance


class Account(TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        Account.code is globally unique (uq_account_code).  Accounts are
        soft-deactivated via is_active; they are hard-deleted only while no
        journal item references them.

    Guarantees:
        - code is unique and non-null.
        - account_type and normal_balance are derived from the category.

    Non-goals:
        - This model does NOT check references before deletion; that is
          AccountService's job.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_category", "category_id"),
        Index("idx_account_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    category_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_categories.id"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    # Whether the account accepts new journal items
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    category: Mapped[AccountCategory] = relationship(
        back_populates="accounts",
        lazy="joined",
    )

    journal_items: Mapped[list["JournalItem"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def account_type(self) -> AccountType:
        return AccountType(self.category.account_type)

    @property
    def normal_balance(self) -> NormalBalance:
        return self.account_type.normal_balance

    @property
    def is_debit_normal(self) -> bool:
        """Check if account has debit normal balance."""
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        """Check if account has credit normal balance."""
        return self.normal_balance == NormalBalance.CREDIT

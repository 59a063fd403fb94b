"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read-only listing and lookup of chart of accounts entries.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - list() is ordered by account code ascending.
    - Deactivated accounts are excluded unless asked for.
"""

from uuid import UUID

from sqlalchemy import func, or_, select

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import AccountNotFoundError, ValidationError
from ledger_kernel.models.account import Account, AccountCategory, AccountType
from ledger_kernel.selectors.base import LIKE_ESCAPE, BaseSelector, contains_pattern

ACCOUNT_STATUSES = ("active", "inactive", "all")


class AccountSelector(BaseSelector):
    """Selector for chart of accounts queries."""

    def list(
        self,
        status: str = "active",
        account_type: str | AccountType | None = None,
        category_id: UUID | None = None,
        search: str | None = None,
    ) -> list[AccountInfo]:
        """
        List accounts ordered by code.

        Args:
            status: "active", "inactive" or "all".
            account_type: Only accounts whose category has this type.
            category_id: Only accounts in this category.
            search: Case-insensitive substring of the code or name.
        """
        if status not in ACCOUNT_STATUSES:
            raise ValidationError("status", f"must be one of {', '.join(ACCOUNT_STATUSES)}")

        query = select(Account).join(Account.category)
        if status == "active":
            query = query.where(Account.is_active.is_(True))
        elif status == "inactive":
            query = query.where(Account.is_active.is_(False))

        if account_type is not None:
            try:
                type_value = AccountType(account_type).value
            except ValueError:
                raise ValidationError("account_type", f"unknown type {account_type!r}") from None
            query = query.where(AccountCategory.account_type == type_value)

        if category_id is not None:
            query = query.where(Account.category_id == category_id)

        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    func.lower(Account.code).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Account.name).like(pattern, escape=LIKE_ESCAPE),
                )
            )

        accounts = self.session.execute(query.order_by(Account.code)).unique().scalars().all()
        return [AccountInfo.from_model(a) for a in accounts]

    def get(self, account_id: UUID) -> AccountInfo:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return AccountInfo.from_model(account)

    def get_by_code(self, code: str) -> AccountInfo:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).unique().scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(code)
        return AccountInfo.from_model(account)

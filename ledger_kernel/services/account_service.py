"""
AccountService -- write side of the Chart of Accounts registry.

Responsibility:
    Creates, updates, deactivates, re-activates and deletes accounts and
    their categories.  Every change is written to the audit log.

Architecture position:
    Kernel > Services.  Reads for listing live in AccountSelector.

Invariants enforced:
    - Account codes and category names are unique.
    - An account's code and category, and its category's account type, are
      frozen once a posted or cancelled journal item references the account.
    - Accounts are hard-deleted only while no journal item references them;
      otherwise they can only be deactivated.
    - Deactivation is idempotent.  With ``deactivation_requires_unreferenced``
      set it is refused for referenced accounts.

Failure modes:
    - DuplicateCodeError, DuplicateNameError, CategoryNotFoundError,
      AccountNotFoundError, ReferencedAccountError, CategoryInUseError,
      ValidationError.

Audit relevance:
    category_* and account_* audit actions.
"""

from uuid import UUID

from sqlalchemy import exists, func, select

from ledger_kernel.config import LedgerConfig
from ledger_kernel.db.immutability import account_has_history, category_has_history
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import AccountInfo, CategoryInfo
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    CategoryInUseError,
    CategoryNotFoundError,
    DuplicateCodeError,
    DuplicateNameError,
    ReferencedAccountError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountCategory, AccountType
from ledger_kernel.models.audit_log import AuditAction
from ledger_kernel.models.journal import JournalItem
from ledger_kernel.services.audit_service import AuditService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")

_UNSET = object()


def _required_text(field: str, value: str | None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(field, "must not be blank")
    return str(value).strip()


def _parse_account_type(value) -> AccountType:
    try:
        return AccountType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in AccountType)
        raise ValidationError("account_type", f"{value!r} is not one of {allowed}") from None


class AccountService(BaseService):
    """
    Service for the chart of accounts.

    Contract:
        Returns AccountInfo / CategoryInfo DTOs; flushes but never commits.
    """

    def __init__(
        self,
        session,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._config = config or LedgerConfig()
        self._clock = clock or SystemClock()
        self._audit = AuditService(session, self._clock)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, name: str, account_type, actor_id: UUID) -> CategoryInfo:
        name = _required_text("name", name)
        account_type = _parse_account_type(account_type)
        self._check_category_name_free(name)

        category = AccountCategory(
            name=name,
            account_type=account_type.value,
            created_by_id=actor_id,
        )
        self.session.add(category)
        self.session.flush()

        self._audit.record(
            "AccountCategory", category.id, AuditAction.CATEGORY_CREATED, actor_id,
            {"name": name, "account_type": account_type.value},
        )
        logger.info(
            "account_category_created",
            extra={"category_id": str(category.id), "category_name": name,
                   "account_type": account_type.value},
        )
        return CategoryInfo.from_model(category)

    def update_category(
        self,
        category_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        account_type=None,
    ) -> CategoryInfo:
        """
        Rename a category or change its account type.

        The type cannot change once any of its accounts has posted or
        cancelled items, since that would flip historical balances.
        """
        category = self._get_category_orm(category_id)
        changes = {}

        if name is not None:
            name = _required_text("name", name)
            if name != category.name:
                self._check_category_name_free(name, exclude_id=category.id)
                changes["name"] = name

        if account_type is not None:
            new_type = _parse_account_type(account_type)
            if new_type != AccountType(category.account_type):
                if category_has_history(self.session.connection(), category.id):
                    logger.warning(
                        "category_type_change_rejected",
                        extra={"category_id": str(category.id)},
                    )
                    raise ReferencedAccountError(
                        account_id=str(category.id),
                        operation="change the account type of category",
                    )
                changes["account_type"] = new_type.value

        if changes:
            for field, value in changes.items():
                setattr(category, field, value)
            category.updated_by_id = actor_id
            self.session.flush()
            self._audit.record(
                "AccountCategory", category.id, AuditAction.CATEGORY_UPDATED,
                actor_id, changes,
            )
            logger.info(
                "account_category_updated",
                extra={"category_id": str(category.id), "fields": sorted(changes)},
            )

        return CategoryInfo.from_model(category)

    def delete_category(self, category_id: UUID, actor_id: UUID) -> None:
        category = self._get_category_orm(category_id)
        account_count = self.session.execute(
            select(func.count(Account.id)).where(Account.category_id == category.id)
        ).scalar_one()
        if account_count:
            logger.warning(
                "category_delete_rejected",
                extra={"category_id": str(category.id), "account_count": account_count},
            )
            raise CategoryInUseError(str(category.id), account_count)

        self._audit.record(
            "AccountCategory", category.id, AuditAction.CATEGORY_DELETED, actor_id,
            {"name": category.name},
        )
        self.session.delete(category)
        self.session.flush()
        logger.info("account_category_deleted", extra={"category_id": str(category_id)})

    def list_categories(self) -> list[CategoryInfo]:
        categories = self.session.execute(
            select(AccountCategory).order_by(AccountCategory.name)
        ).scalars().all()
        return [CategoryInfo.from_model(c) for c in categories]

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create(
        self,
        code: str,
        name: str,
        category_id: UUID,
        actor_id: UUID,
        description: str | None = None,
    ) -> AccountInfo:
        """
        Create an active account.

        Raises:
            ValidationError: Blank code or name.
            CategoryNotFoundError: Unknown category.
            DuplicateCodeError: Code already in use.
        """
        code = _required_text("code", code)
        name = _required_text("name", name)
        category = self._get_category_orm(category_id)
        self._check_code_free(code)

        account = Account(
            code=code,
            name=name,
            category_id=category.id,
            description=description,
            is_active=True,
            created_by_id=actor_id,
        )
        account.category = category
        self.session.add(account)
        self.session.flush()

        self._audit.record(
            "Account", account.id, AuditAction.ACCOUNT_CREATED, actor_id,
            {"code": code, "name": name, "category_id": str(category.id)},
        )
        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "account_code": code,
                "account_type": account.account_type.value,
            },
        )
        return AccountInfo.from_model(account)

    def update(
        self,
        account_id: UUID,
        actor_id: UUID,
        code: str | None = None,
        name: str | None = None,
        category_id: UUID | None = None,
        description=_UNSET,
    ) -> AccountInfo:
        """
        Update account fields.

        Name and description can always change.  Code and category are
        locked once the account has posted or cancelled items.
        """
        account = self._get_account_orm(account_id)
        changes = {}

        if code is not None:
            code = _required_text("code", code)
            if code != account.code:
                self._check_code_free(code)
                changes["code"] = code

        if name is not None:
            name = _required_text("name", name)
            if name != account.name:
                changes["name"] = name

        new_category = None
        if category_id is not None and category_id != account.category_id:
            new_category = self._get_category_orm(category_id)
            changes["category_id"] = category_id

        if description is not _UNSET and description != account.description:
            changes["description"] = description

        structural = sorted({"code", "category_id"} & set(changes))
        if structural and account_has_history(self.session.connection(), account.id):
            logger.warning(
                "account_structural_change_rejected",
                extra={"account_id": str(account.id), "fields": structural},
            )
            raise ReferencedAccountError(
                account_id=str(account.id),
                operation=f"modify {', '.join(structural)} of account",
            )

        if changes:
            for field, value in changes.items():
                if field != "category_id":
                    setattr(account, field, value)
            if new_category is not None:
                account.category = new_category
            account.updated_by_id = actor_id
            self.session.flush()
            self._audit.record(
                "Account", account.id, AuditAction.ACCOUNT_UPDATED, actor_id, changes,
            )
            logger.info(
                "account_updated",
                extra={"account_id": str(account.id), "fields": sorted(changes)},
            )

        return AccountInfo.from_model(account)

    def deactivate(self, account_id: UUID, actor_id: UUID) -> AccountInfo:
        """Soft-deactivate.  Existing items and balances are untouched."""
        account = self._get_account_orm(account_id)
        if not account.is_active:
            return AccountInfo.from_model(account)

        if self._config.deactivation_requires_unreferenced and self._is_referenced(account.id):
            logger.warning(
                "account_deactivation_rejected",
                extra={"account_id": str(account.id)},
            )
            raise ReferencedAccountError(str(account.id), "deactivate account")

        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(
            "Account", account.id, AuditAction.ACCOUNT_DEACTIVATED, actor_id,
            {"code": account.code},
        )
        logger.info("account_deactivated", extra={"account_id": str(account.id)})
        return AccountInfo.from_model(account)

    def activate(self, account_id: UUID, actor_id: UUID) -> AccountInfo:
        account = self._get_account_orm(account_id)
        if account.is_active:
            return AccountInfo.from_model(account)

        account.is_active = True
        account.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(
            "Account", account.id, AuditAction.ACCOUNT_ACTIVATED, actor_id,
            {"code": account.code},
        )
        logger.info("account_activated", extra={"account_id": str(account.id)})
        return AccountInfo.from_model(account)

    def delete(self, account_id: UUID, actor_id: UUID) -> None:
        """
        Hard-delete an account that no journal item references.

        Raises:
            ReferencedAccountError: Any item (draft included) uses the account.
        """
        account = self._get_account_orm(account_id)
        if self._is_referenced(account.id):
            logger.warning(
                "account_delete_rejected",
                extra={"account_id": str(account.id), "account_code": account.code},
            )
            raise ReferencedAccountError(str(account.id), "delete account")

        self._audit.record(
            "Account", account.id, AuditAction.ACCOUNT_DELETED, actor_id,
            {"code": account.code, "name": account.name},
        )
        self.session.delete(account)
        self.session.flush()
        logger.info("account_deleted", extra={"account_id": str(account_id)})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_account_orm(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _get_category_orm(self, category_id: UUID) -> AccountCategory:
        category = self.session.get(AccountCategory, category_id)
        if category is None:
            raise CategoryNotFoundError(str(category_id))
        return category

    def _is_referenced(self, account_id: UUID) -> bool:
        return self.session.execute(
            select(exists().where(JournalItem.account_id == account_id))
        ).scalar()

    def _check_code_free(self, code: str) -> None:
        taken = self.session.execute(
            select(exists().where(Account.code == code))
        ).scalar()
        if taken:
            logger.warning("duplicate_account_code_rejected", extra={"account_code": code})
            raise DuplicateCodeError(code)

    def _check_category_name_free(self, name: str, exclude_id: UUID | None = None) -> None:
        query = select(AccountCategory.id).where(AccountCategory.name == name)
        if exclude_id is not None:
            query = query.where(AccountCategory.id != exclude_id)
        if self.session.execute(query).first() is not None:
            raise DuplicateNameError("AccountCategory", name)

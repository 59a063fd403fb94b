"""
SeedService -- bulk load of a chart of accounts from YAML.

Responsibility:
    Inserts categories and accounts listed in a YAML file (by default the
    packaged ``data/chart_of_accounts.yaml``).  Rows whose category name or
    account code already exists are skipped, so loading twice is harmless.

Failure modes:
    - DuplicateCodeError when the file itself lists an account code twice.
    - CategoryNotFoundError when an account names a category that is
      neither in the file nor in the database.
    - ValidationError for an unknown account type or a missing field.
"""

from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.config import load_yaml_file
from ledger_kernel.exceptions import (
    CategoryNotFoundError,
    DuplicateCodeError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountCategory, AccountType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.seed")

DEFAULT_CHART_PATH = Path(__file__).resolve().parent.parent / "data" / "chart_of_accounts.yaml"


@dataclass(frozen=True)
class SeedResult:
    categories_created: int
    categories_skipped: int
    accounts_created: int
    accounts_skipped: int


def _field(row: dict, name: str, where: str) -> str:
    value = row.get(name)
    if value is None or not str(value).strip():
        raise ValidationError(name, f"missing in {where} entry {row!r}")
    return str(value).strip()


class SeedService(BaseService):
    def load_chart(self, actor_id: UUID, path: Path | str | None = None) -> SeedResult:
        """Load categories then accounts.  Flushes, never commits."""
        chart_path = Path(path) if path is not None else DEFAULT_CHART_PATH
        data = load_yaml_file(chart_path)
        category_rows = data.get("categories") or []
        account_rows = data.get("accounts") or []

        seen_codes: set[str] = set()
        for row in account_rows:
            code = _field(row, "code", "accounts")
            if code in seen_codes:
                raise DuplicateCodeError(code)
            seen_codes.add(code)

        categories = {
            c.name: c for c in self.session.execute(select(AccountCategory)).scalars()
        }
        categories_created = categories_skipped = 0
        for row in category_rows:
            name = _field(row, "name", "categories")
            if name in categories:
                categories_skipped += 1
                continue
            raw_type = _field(row, "account_type", "categories")
            try:
                account_type = AccountType(raw_type)
            except ValueError:
                raise ValidationError("account_type", f"unknown type {raw_type!r}") from None
            category = AccountCategory(
                name=name,
                account_type=account_type.value,
                created_by_id=actor_id,
            )
            self.session.add(category)
            categories[name] = category
            categories_created += 1
        self.session.flush()

        existing_codes = set(self.session.execute(select(Account.code)).scalars())
        accounts_created = accounts_skipped = 0
        for row in account_rows:
            code = _field(row, "code", "accounts")
            if code in existing_codes:
                accounts_skipped += 1
                continue
            category_name = _field(row, "category", "accounts")
            category = categories.get(category_name)
            if category is None:
                raise CategoryNotFoundError(category_name)
            account = Account(
                code=code,
                name=_field(row, "name", "accounts"),
                description=row.get("description"),
                is_active=True,
                created_by_id=actor_id,
            )
            account.category = category
            self.session.add(account)
            accounts_created += 1
        self.session.flush()

        result = SeedResult(
            categories_created=categories_created,
            categories_skipped=categories_skipped,
            accounts_created=accounts_created,
            accounts_skipped=accounts_skipped,
        )
        logger.info(
            "chart_of_accounts_loaded",
            extra={"path": str(chart_path), **vars(result)},
        )
        return result

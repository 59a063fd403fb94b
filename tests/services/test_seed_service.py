"""
Chart of accounts seeding tests.

Verifies:
- The packaged chart loads with the documented categories and accounts
- Loading twice skips existing rows
- Duplicate codes and unknown categories in the file are rejected
"""

import pytest

from ledger_kernel.exceptions import CategoryNotFoundError, DuplicateCodeError, ValidationError
from ledger_kernel.services.seed_service import SeedService


class TestPackagedChart:
    def test_load(self, session, test_actor_id, account_selector):
        result = SeedService(session).load_chart(test_actor_id)

        assert result.categories_created == 5
        assert result.accounts_created == 22
        assert account_selector.get_by_code("1001").name == "Cash"
        assert account_selector.get_by_code("2004").normal_balance == "credit"
        assert account_selector.get_by_code("5007").account_type == "expense"

    def test_second_load_skips(self, session, test_actor_id):
        SeedService(session).load_chart(test_actor_id)
        again = SeedService(session).load_chart(test_actor_id)

        assert again.categories_created == 0
        assert again.accounts_created == 0
        assert again.categories_skipped == 5
        assert again.accounts_skipped == 22

    def test_load_logged(self, session, test_actor_id, captured_logs):
        SeedService(session).load_chart(test_actor_id)

        loaded = [r for r in captured_logs() if r["message"] == "chart_of_accounts_loaded"]
        assert loaded[0]["accounts_created"] == 22


class TestCustomChart:
    def _write(self, tmp_path, text):
        path = tmp_path / "chart.yaml"
        path.write_text(text)
        return path

    def test_duplicate_code_in_file(self, session, test_actor_id, tmp_path):
        path = self._write(tmp_path, """
categories:
  - {name: Assets, account_type: asset}
accounts:
  - {code: "1", name: Cash, category: Assets}
  - {code: "1", name: Bank, category: Assets}
""")
        with pytest.raises(DuplicateCodeError):
            SeedService(session).load_chart(test_actor_id, path)

    def test_unknown_category(self, session, test_actor_id, tmp_path):
        path = self._write(tmp_path, """
accounts:
  - {code: "1", name: Cash, category: Nowhere}
""")
        with pytest.raises(CategoryNotFoundError):
            SeedService(session).load_chart(test_actor_id, path)

    def test_unknown_account_type(self, session, test_actor_id, tmp_path):
        path = self._write(tmp_path, """
categories:
  - {name: Odd, account_type: contra}
""")
        with pytest.raises(ValidationError):
            SeedService(session).load_chart(test_actor_id, path)

    def test_missing_field(self, session, test_actor_id, tmp_path):
        path = self._write(tmp_path, """
categories:
  - {name: Assets, account_type: asset}
accounts:
  - {code: "1", category: Assets}
""")
        with pytest.raises(ValidationError):
            SeedService(session).load_chart(test_actor_id, path)

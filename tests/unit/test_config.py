"""
Configuration loading tests.

Verifies:
- The packaged ledger.yaml parses into the documented defaults
- Environment variables override YAML values
- Unknown keys and unknown policy names fail at load time
"""

from pathlib import Path

import pytest

from ledger_kernel.config import (
    BackdatedPostingPolicy,
    LedgerConfig,
    load_config,
    parse_bool,
    parse_config,
)


class TestPackagedDefaults:
    def test_packaged_file_matches_dataclass_defaults(self):
        config = load_config(env={})
        defaults = LedgerConfig()

        assert config.reference_prefix == defaults.reference_prefix
        assert config.reference_padding == defaults.reference_padding
        assert config.money_decimal_places == 2
        assert config.backdated_posting_policy == BackdatedPostingPolicy.UNLOCKED_ONLY
        assert config.allow_reactivating_closed_years is False
        assert config.deactivation_requires_unreferenced is False

    def test_packaged_authorization_denies_manager(self):
        config = load_config(env={})

        assert config.authorization["manager"] == ()
        assert "entry.post" in config.authorization["accountant"]


class TestEnvironmentOverrides:
    def test_database_url_from_ledger_variable(self):
        config = load_config(env={"LEDGER_DATABASE_URL": "sqlite:///other.db"})
        assert config.database_url == "sqlite:///other.db"

    def test_generic_database_url_is_fallback(self):
        config = load_config(env={"DATABASE_URL": "postgresql://u@h/db"})
        assert config.database_url == "postgresql://u@h/db"

    def test_policy_override(self):
        config = load_config(env={"LEDGER_BACKDATED_POSTING_POLICY": "FORBID"})
        assert config.backdated_posting_policy == BackdatedPostingPolicy.FORBID

    def test_reactivation_override(self):
        config = load_config(env={"LEDGER_ALLOW_REACTIVATING_CLOSED_YEARS": "yes"})
        assert config.allow_reactivating_closed_years is True


class TestParsing:
    def test_missing_keys_keep_defaults(self):
        config = parse_config({"reference_prefix": "GJ"})
        assert config.reference_prefix == "GJ"
        assert config.reference_padding == LedgerConfig().reference_padding

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            parse_config({"currency": "EUR"})

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError, match="backdated_posting_policy"):
            parse_config({"backdated_posting_policy": "sometimes"})

    @pytest.mark.parametrize("raw,expected", [
        (True, True), ("on", True), ("1", True), ("No", False), ("false", False),
    ])
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw) is expected

    def test_parse_bool_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")

    def test_custom_file(self, tmp_path: Path):
        path = tmp_path / "ledger.yaml"
        path.write_text("reference_padding: 3\nbackdated_posting_policy: allow\n")

        config = load_config(path, env={})

        assert config.reference_padding == 3
        assert config.backdated_posting_policy == BackdatedPostingPolicy.ALLOW
        assert config.authorization is None

    def test_missing_file_propagates(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", env={})

"""
Ledger configuration (``ledger_kernel.config``).

Responsibility
--------------
Loads the ledger's YAML configuration file and parses it into a frozen
``LedgerConfig`` dataclass, applying environment-variable overrides on top.

Architecture position
---------------------
Infrastructure tooling.  Services receive a ``LedgerConfig`` through their
constructor; nothing below the scripts and the facade calls ``load_config``
directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown policy value or unknown top-level key  -> ``ValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "data" / "ledger.yaml"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class BackdatedPostingPolicy(str, Enum):
    """Whether financial years other than the active one accept postings.

    FORBID:        only the active year is open.
    UNLOCKED_ONLY: non-active years are open while explicitly unlocked.
    ALLOW:         every year is open.
    """

    FORBID = "forbid"
    UNLOCKED_ONLY = "unlocked_only"
    ALLOW = "allow"


@dataclass(frozen=True)
class LedgerConfig:
    """Runtime configuration for the ledger kernel."""

    database_url: str = "sqlite:///ledger.db"
    echo_sql: bool = False
    log_level: str = "INFO"
    reference_prefix: str = "JV"
    reference_padding: int = 5
    money_decimal_places: int = 2
    backdated_posting_policy: BackdatedPostingPolicy = BackdatedPostingPolicy.UNLOCKED_ONLY
    allow_reactivating_closed_years: bool = False
    deactivation_requires_unreferenced: bool = False
    # role -> granted operations; None means the built-in policy
    authorization: Mapping[str, tuple[str, ...]] | None = field(default=None)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_bool(value: Any) -> bool:
    """Parse a boolean from YAML or an environment string."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot parse boolean from {value!r}")


def parse_policy(value: Any) -> BackdatedPostingPolicy:
    """Parse a backdated posting policy name."""
    try:
        return BackdatedPostingPolicy(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(p.value for p in BackdatedPostingPolicy)
        raise ValueError(
            f"Unknown backdated_posting_policy {value!r} (expected one of: {allowed})"
        ) from None


def parse_authorization(data: Any) -> dict[str, tuple[str, ...]] | None:
    """Parse the ``authorization`` section: a mapping of role to operations."""
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError("authorization must map role names to operation lists")
    return {
        str(role): tuple(str(op) for op in (ops or ()))
        for role, ops in data.items()
    }


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a ``LedgerConfig`` from a dict.

    Keys missing from ``data`` keep their dataclass defaults.
    """
    known = {f.name for f in fields(LedgerConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key == "backdated_posting_policy":
            kwargs[key] = parse_policy(value)
        elif key in ("echo_sql", "allow_reactivating_closed_years",
                     "deactivation_requires_unreferenced"):
            kwargs[key] = parse_bool(value)
        elif key in ("reference_padding", "money_decimal_places"):
            kwargs[key] = int(value)
        elif key == "authorization":
            kwargs[key] = parse_authorization(value)
        else:
            kwargs[key] = str(value)
    return LedgerConfig(**kwargs)


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    url = env.get("LEDGER_DATABASE_URL") or env.get("DATABASE_URL")
    if url:
        overrides["database_url"] = url
    if env.get("LEDGER_LOG_LEVEL"):
        overrides["log_level"] = env["LEDGER_LOG_LEVEL"]
    if env.get("LEDGER_BACKDATED_POSTING_POLICY"):
        overrides["backdated_posting_policy"] = env["LEDGER_BACKDATED_POSTING_POLICY"]
    if env.get("LEDGER_ALLOW_REACTIVATING_CLOSED_YEARS"):
        overrides["allow_reactivating_closed_years"] = env[
            "LEDGER_ALLOW_REACTIVATING_CLOSED_YEARS"
        ]
    return overrides


def load_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """
    Load configuration from YAML and apply environment overrides.

    Args:
        path: YAML file to read.  Defaults to the packaged ``data/ledger.yaml``.
        env: Environment mapping.  Defaults to ``os.environ``.

    Returns:
        Frozen LedgerConfig.
    """
    data = load_yaml_file(Path(path) if path is not None else DEFAULT_CONFIG_PATH)
    data.update(_env_overrides(os.environ if env is None else env))
    return parse_config(data)

#!/usr/bin/env python3
"""
Print the trial balance.

Usage:
    python3 scripts/trial_balance.py
    python3 scripts/trial_balance.py --as-of 2025-06-30 --database-url sqlite:///ledger.db
"""

import argparse
import sys
from datetime import date

from ledger_kernel.config import load_config
from ledger_kernel.db.engine import init_engine_from_url, session_scope
from ledger_kernel.logging_config import configure_logging
from ledger_kernel.selectors.ledger_selector import LedgerSelector


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print the trial balance.")
    parser.add_argument("--config", help="YAML config file (default: packaged ledger.yaml)")
    parser.add_argument("--database-url", help="Overrides the configured database URL")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Include entries dated on or before this day (YYYY-MM-DD)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)
    configure_logging(level=config.log_level)
    init_engine_from_url(args.database_url or config.database_url)

    with session_scope() as session:
        tb = LedgerSelector(session, config).trial_balance(args.as_of)

    title = f"TRIAL BALANCE as of {tb.as_of}" if tb.as_of else "TRIAL BALANCE"
    print(title)
    print("=" * 72)
    print(f"{'Code':<10} {'Account':<34} {'Debit':>12} {'Credit':>12}")
    print("-" * 72)
    for row in tb.rows:
        name = row.account_name if row.is_active else f"{row.account_name} (inactive)"
        print(
            f"{row.account_code:<10} {name[:34]:<34} "
            f"{row.debit_total:>12,.{config.money_decimal_places}f} "
            f"{row.credit_total:>12,.{config.money_decimal_places}f}"
        )
    print("-" * 72)
    print(
        f"{'TOTAL':<45} {tb.total_debit:>12,.{config.money_decimal_places}f} "
        f"{tb.total_credit:>12,.{config.money_decimal_places}f}"
    )
    if not tb.is_balanced:
        print("WARNING: trial balance does not balance", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

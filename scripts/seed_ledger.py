#!/usr/bin/env python3
"""
Create the ledger schema, load the default chart of accounts and open a
financial year.

Safe to run twice: existing categories, accounts and years are left alone.

Usage:
    python3 scripts/seed_ledger.py
    python3 scripts/seed_ledger.py --database-url postgresql://... --year-start 2025-04-01
"""

import argparse
import sys
from datetime import date
from uuid import UUID

from ledger_kernel.config import load_config
from ledger_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.exceptions import DuplicateNameError, OverlappingPeriodError
from ledger_kernel.logging_config import configure_logging, get_logger
from ledger_kernel.services.financial_year_service import FinancialYearService
from ledger_kernel.services.seed_service import SeedService

logger = get_logger("scripts.seed_ledger")

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


def _one_year_after(start: date) -> date:
    try:
        return start.replace(year=start.year + 1)
    except ValueError:
        # 29 February
        return date(start.year + 1, 3, 1)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0])
    parser.add_argument("--config", help="YAML config file (default: packaged ledger.yaml)")
    parser.add_argument("--database-url", help="Overrides the configured database URL")
    parser.add_argument(
        "--year-start",
        type=date.fromisoformat,
        default=date(date.today().year, 1, 1),
        help="First day of the financial year to open (YYYY-MM-DD)",
    )
    parser.add_argument("--chart", help="Chart of accounts YAML (default: packaged chart)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)
    configure_logging(level=config.log_level)

    init_engine_from_url(args.database_url or config.database_url, echo=config.echo_sql)
    create_tables()
    register_immutability_listeners()

    with session_scope() as session:
        result = SeedService(session).load_chart(SYSTEM_ACTOR_ID, args.chart)

    year_end = _one_year_after(args.year_start)
    with session_scope() as session:
        years = FinancialYearService(session, config)
        try:
            year = years.create(None, args.year_start, year_end, SYSTEM_ACTOR_ID)
        except (DuplicateNameError, OverlappingPeriodError) as exc:
            logger.info("financial_year_exists", extra={"detail": str(exc)})
            year = None
        if year is not None and years.active_year() is None:
            years.activate(year.id, SYSTEM_ACTOR_ID)

    print(
        f"Categories: {result.categories_created} created, {result.categories_skipped} skipped"
    )
    print(f"Accounts:   {result.accounts_created} created, {result.accounts_skipped} skipped")
    if year is not None:
        print(f"Financial year {year.name}: {year.start_date} .. {year.end_date} (exclusive)")
    return 0


if __name__ == "__main__":
    sys.exit(main())

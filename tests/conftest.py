"""
Pytest fixtures for the ledger kernel test suite.

Provides:
- A database engine created once per test session
- Per-test sessions isolated by rollback
- Services wired to a deterministic clock
- A loaded chart of accounts and an active 2024 financial year

Environment Variables:
- DATABASE_URL: SQLAlchemy URL of a PostgreSQL test database.
  If not set, a SQLite file in the pytest temp directory is used.
"""

import json
import logging
import os
from collections.abc import Generator
from datetime import date
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerConfig
from ledger_kernel.db.base import Base
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import Actor, ItemSpec
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.statement_selector import StatementSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.audit_service import AuditService
from ledger_kernel.services.financial_year_service import FinancialYearService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.seed_service import SeedService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

TODAY = date(2024, 6, 15)
YEAR_2024_START = date(2024, 1, 1)
YEAR_2024_END = date(2025, 1, 1)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


def get_database_url(tmp_path_factory) -> str:
    """DATABASE_URL from the environment, or a fresh SQLite file."""
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{tmp_path_factory.mktemp('db') / 'ledger_test.db'}"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, journal_service):
            journal_service.post(entry_id, actor_id)
            assert any(r["message"] == "journal_entry_posted" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine(tmp_path_factory):
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(tmp_path_factory))
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables(db_engine)
    create_tables(db_engine)
    register_immutability_listeners()
    yield
    drop_tables(db_engine)


def truncate_all_tables(engine) -> None:
    """Delete all rows, for tests that really commit."""
    with engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
        conn.commit()


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """
    Database session rolled back after the test.

    The session joins an outer transaction on a dedicated connection; any
    ``session.commit()`` inside the test only releases a savepoint.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def accountant(test_actor_id) -> Actor:
    return Actor(actor_id=test_actor_id, role="accountant")


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    clock = DeterministicClock()
    clock.set_date(TODAY)
    return clock


@pytest.fixture
def config() -> LedgerConfig:
    return LedgerConfig()


@pytest.fixture
def account_service(session, config, deterministic_clock) -> AccountService:
    return AccountService(session, config, deterministic_clock)


@pytest.fixture
def year_service(session, config, deterministic_clock) -> FinancialYearService:
    return FinancialYearService(session, config, deterministic_clock)


@pytest.fixture
def journal_service(session, config, deterministic_clock) -> JournalService:
    return JournalService(session, config, deterministic_clock)


@pytest.fixture
def audit_service(session, deterministic_clock) -> AuditService:
    return AuditService(session, deterministic_clock)


@pytest.fixture
def account_selector(session) -> AccountSelector:
    return AccountSelector(session)


@pytest.fixture
def journal_selector(session) -> JournalSelector:
    return JournalSelector(session)


@pytest.fixture
def ledger_selector(session, config) -> LedgerSelector:
    return LedgerSelector(session, config)


@pytest.fixture
def statement_selector(session, config) -> StatementSelector:
    return StatementSelector(session, config)


@pytest.fixture
def standard_chart(session, test_actor_id, account_selector) -> dict:
    """Load the packaged chart of accounts; returns {code: AccountInfo}."""
    SeedService(session).load_chart(test_actor_id)
    return {a.code: a for a in account_selector.list(status="all")}


@pytest.fixture
def active_year(year_service, test_actor_id):
    """Calendar year 2024, created and activated."""
    year = year_service.create(None, YEAR_2024_START, YEAR_2024_END, test_actor_id)
    return year_service.activate(year.id, test_actor_id)


@pytest.fixture
def make_entry(journal_service, test_actor_id):
    """
    Create (and by default post) a two-line entry.

    Usage::

        entry = make_entry(cash, revenue, "100.00")
    """

    def _make(debit_account, credit_account, amount, entry_date=TODAY,
              narration="Test entry", post=True):
        entry = journal_service.create(
            entry_date,
            narration,
            [
                ItemSpec.debit(debit_account.id, amount),
                ItemSpec.credit(credit_account.id, amount),
            ],
            test_actor_id,
        )
        if post:
            entry = journal_service.post(entry.id, test_actor_id)
        return entry

    return _make


@pytest.fixture
def committed_db(db_engine, db_tables):
    """
    Engine for tests that really commit from several sessions.

    Rows are removed at teardown.
    """
    truncate_all_tables(db_engine)
    yield db_engine
    truncate_all_tables(db_engine)

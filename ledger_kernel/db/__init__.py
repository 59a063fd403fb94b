"""Database layer - engine, base classes, types, and immutability."""

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    create_ledger_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from ledger_kernel.db.types import Money, round_money

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "Money",
    "round_money",
    "create_ledger_engine",
    "create_tables",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
]

"""
Module: ledger_kernel.db.base
Responsibility: Declarative base for every ledger table: uuid primary keys,
    the shared column type map, and the created/updated bookkeeping columns.
Architecture position: Kernel > DB.  Imported by every model; imports
    nothing from the rest of the package.

Invariants enforced:
    - Money is Numeric(38, 9) and maps to Decimal; floats never reach a column.
    - Ids are uuid4 values stored as 36-character strings, so SQLite and
      PostgreSQL hold the same text.
    - Timestamps are timezone-aware.

Audit relevance:
    updated_at and updated_by_id still change when a posted entry is
    cancelled; db/immutability.py leaves them writable.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """uuid.UUID in Python, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value if isinstance(value, UUID) else UUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds who/when columns to a table.

    created_at and updated_at come from the database clock; created_by_id
    is required, updated_by_id stays NULL until the first change.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[UUID]
    updated_by_id: Mapped[UUID | None]

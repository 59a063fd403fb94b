"""
BaseService -- common constructor for every write-side service.

Responsibility:
    Holds the caller's SQLAlchemy ``Session``.  Services persist changes with
    ``session.flush()`` and never commit or roll back; the caller (normally
    ``session_scope()`` or LedgerFacade's caller) owns the transaction.

Failure modes:
    - A subclass that commits on its own breaks the atomicity of multi-step
      operations such as year activation.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for ledger services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read models; those live in ``selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

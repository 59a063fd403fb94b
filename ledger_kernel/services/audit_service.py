"""
AuditService -- tamper-evident audit log and hash chain maintenance.

Responsibility:
    Appends one hash-chained AuditLog row for every state change made by
    the account, financial year and journal services.  Provides chain
    validation for tamper detection and per-entity trace queries.

Invariants enforced:
    - seq comes from SequenceService (locked counter row).
    - hash = H(seq | entity_type | entity_id | action | payload_hash | prev_hash);
      every row links to its predecessor.
    - Rows are append-only (ORM listeners in db/immutability.py).

Failure modes:
    - AuditChainBrokenError from validate_chain() when a stored hash or
      link does not match its recomputed value.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import AuditChainBrokenError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit_log import AuditAction, AuditLog
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.utils.hashing import chain_hash, hash_payload, json_safe

logger = get_logger("services.audit")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single row in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit rows for one entity, oldest first."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(e.action for e in self.entries)

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None


class AuditService:
    """
    Service for creating and validating tamper-evident audit rows.

    Non-goals:
        - Does NOT call ``session.commit()``; an audit row shares the fate
          of the change it records.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last = self._session.execute(
            select(AuditLog).order_by(AuditLog.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last.hash if last else None

    def record(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditLog:
        """
        Append an audit row linked to the previous one.

        Postconditions:
            - The row is flushed with the next audit seq and
              ``row.hash == H(seq, entity_type, entity_id, action,
              payload_hash, prev_hash)``.
        """
        # Allocating seq locks the counter row, which also serializes the
        # read of the previous hash below.
        seq = self._sequence_service.next_value(SequenceService.AUDIT_LOG)
        prev_hash = self._get_last_hash()

        payload_data = json_safe(payload or {})
        payload_hash = hash_payload(payload_data)
        row_hash = chain_hash(
            seq=seq,
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        row = AuditLog(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=row_hash,
        )
        self._session.add(row)
        self._session.flush()

        logger.info(
            "audit_log_recorded",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return row

    def validate_chain(self) -> bool:
        """
        Recompute every hash and check every link.

        Raises:
            AuditChainBrokenError: At the first row that does not match.
        """
        rows = self._session.execute(
            select(AuditLog).order_by(AuditLog.seq)
        ).scalars().all()

        expected_prev = None
        for row in rows:
            if row.prev_hash != expected_prev:
                logger.critical("audit_chain_broken", extra={"seq": row.seq})
                raise AuditChainBrokenError(
                    str(row.id), expected_prev or "None", row.prev_hash or "None"
                )

            payload_hash = hash_payload(row.payload or {})
            expected_hash = chain_hash(
                seq=row.seq,
                entity_type=row.entity_type,
                entity_id=str(row.entity_id),
                action=AuditAction(row.action).value,
                payload_hash=payload_hash,
                prev_hash=row.prev_hash,
            )
            if row.hash != expected_hash or row.payload_hash != payload_hash:
                logger.critical("audit_chain_broken", extra={"seq": row.seq})
                raise AuditChainBrokenError(str(row.id), expected_hash, row.hash)

            expected_prev = row.hash

        logger.info("audit_chain_valid", extra={"row_count": len(rows)})
        return True

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        """All audit rows for one entity in seq order."""
        rows = self._session.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type)
            .where(AuditLog.entity_id == entity_id)
            .order_by(AuditLog.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=row.seq,
                    action=AuditAction(row.action),
                    occurred_at=row.occurred_at,
                    actor_id=row.actor_id,
                    payload=row.payload or {},
                    hash=row.hash,
                )
                for row in rows
            ),
        )

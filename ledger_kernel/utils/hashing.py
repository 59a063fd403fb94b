"""
Hashes for the audit log chain.

A row's hash covers its position (seq), what happened (entity, action),
the payload digest and the previous row's hash.  Payloads are digested
from a canonical JSON form so the hash can be recomputed from the stored
row alone.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

# Stands in for prev_hash on the first row of the chain
CHAIN_ROOT = "ledger-audit-root"


def _canonical_value(value: Any) -> str:
    if isinstance(value, Decimal):
        # 10.5 and 10.50 hash alike
        return format(value.normalize(), "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"cannot canonicalize {type(value).__name__}")


def canonical_json(data: Any) -> str:
    """Sorted keys, no whitespace; Decimal, date and UUID values as strings."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_canonical_value)


def json_safe(payload: dict[str, Any]) -> dict[str, Any]:
    """The payload exactly as it will read back from a JSON column."""
    return json.loads(canonical_json(payload))


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict[str, Any]) -> str:
    return sha256_hex(canonical_json(payload))


def chain_hash(
    seq: int,
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """Hash of one audit row, linked to the row before it."""
    return sha256_hex(
        "\x1f".join(
            (str(seq), entity_type, entity_id, action, payload_hash, prev_hash or CHAIN_ROOT)
        )
    )

"""
Structured logging tests.

Verifies:
- Every record is one JSON line with ts, level, logger and message
- LogContext fields are merged into records and restored after bind()
- Ledger exceptions logged with exc_info expose their code and attributes
"""

import json
import logging
import sys
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import UnbalancedEntryError
from ledger_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _record(msg="event", exc_info=None, **extra):
    record = logging.LogRecord(
        "ledger_kernel.test", logging.INFO, __file__, 1, msg, (), exc_info
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_basic_fields(self):
        payload = json.loads(StructuredFormatter().format(_record("journal_entry_posted")))

        assert payload["message"] == "journal_entry_posted"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "ledger_kernel.test"
        assert "ts" in payload

    def test_extra_values_serialized(self):
        entry_id = uuid4()
        payload = json.loads(
            StructuredFormatter().format(_record(entry_id=entry_id, total=Decimal("10.50")))
        )

        assert payload["entry_id"] == str(entry_id)
        # Decimals keep their exact text
        assert payload["total"] == "10.50"

    def test_context_fields_included(self):
        with LogContext.bind(actor_id="a-1", operation="entry.post"):
            payload = json.loads(StructuredFormatter().format(_record()))

        assert payload["actor_id"] == "a-1"
        assert payload["operation"] == "entry.post"

    def test_exception_fields(self):
        try:
            raise UnbalancedEntryError("e-1", "100.00", "99.99")
        except UnbalancedEntryError:
            payload = json.loads(StructuredFormatter().format(_record(exc_info=sys.exc_info())))

        assert payload["exc_type"] == "UnbalancedEntryError"
        assert payload["exc_code"] == "UNBALANCED_ENTRY"
        assert payload["exc_entry_id"] == "e-1"
        assert "traceback" in payload


class TestLogContext:
    def test_bind_restores_previous_values(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner", year_id="y-1"):
            assert LogContext.get_all() == {"actor_id": "inner", "year_id": "y-1"}
        assert LogContext.get_all() == {"actor_id": "outer"}

    def test_bind_skips_none(self):
        with LogContext.bind(entry_id=None, role="admin"):
            assert LogContext.get_all() == {"role": "admin"}

    def test_set_rejects_unknown_field(self):
        with pytest.raises(TypeError):
            LogContext.set(tenant="x")


class TestLoggerNamespace:
    def test_loggers_live_under_ledger_kernel(self):
        assert get_logger("services.journal").name == "ledger_kernel.services.journal"

    def test_captured_logs_fixture(self, captured_logs):
        get_logger("test").info("hello", extra={"year_name": "2024"})

        records = captured_logs()
        assert records[-1]["message"] == "hello"
        assert records[-1]["year_name"] == "2024"

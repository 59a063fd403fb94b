"""
Sequence allocation tests.

Verifies:
- Sequences start at 1 and increase by one
- Named sequences are independent
- A rolled back savepoint returns its value
"""

from uuid import uuid4

from ledger_kernel.services.sequence_service import SequenceService, journal_reference_name


class TestSequenceService:
    def test_starts_at_one(self, session):
        sequences = SequenceService(session)
        name = f"test:{uuid4()}"

        assert sequences.current_value(name) is None
        assert sequences.next_value(name) == 1
        assert sequences.next_value(name) == 2
        assert sequences.current_value(name) == 2

    def test_names_independent(self, session):
        sequences = SequenceService(session)
        first, second = journal_reference_name(uuid4()), journal_reference_name(uuid4())

        sequences.next_value(first)
        sequences.next_value(first)

        assert sequences.next_value(second) == 1

    def test_rollback_returns_value(self, session):
        sequences = SequenceService(session)
        name = f"test:{uuid4()}"
        sequences.next_value(name)

        savepoint = session.begin_nested()
        sequences.next_value(name)
        savepoint.rollback()

        assert sequences.next_value(name) == 2

    def test_journal_reference_name(self):
        year_id = uuid4()
        assert journal_reference_name(year_id) == f"journal_reference:{year_id}"

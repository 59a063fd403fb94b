"""
Journal entry lifecycle tests.

Verifies:
- draft -> posted -> cancelled and draft -> deleted, nothing else
- Posting requires a debit line, a credit line and exact balance
- Posting requires an open financial year for the entry date
- Amount validation: positive, finite, no floats, limited decimal places
- Reference numbers are per-year sequences
"""

import warnings
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import SAWarning

from ledger_kernel.config import LedgerConfig
from ledger_kernel.domain.dtos import ItemSpec
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyCancelledError,
    ClosedPeriodError,
    EmptyEntryError,
    ImmutableEntryError,
    InvalidAmountError,
    InvalidTransitionError,
    JournalEntryNotFoundError,
    NoFinancialYearError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.models.audit_log import AuditAction
from ledger_kernel.services.journal_service import JournalService

pytestmark = pytest.mark.usefixtures("active_year")


@pytest.fixture
def cash(standard_chart):
    return standard_chart["1001"]


@pytest.fixture
def sales(standard_chart):
    return standard_chart["4001"]


def _draft(journal_service, actor_id, items, entry_date=date(2024, 3, 1), narration="Entry"):
    return journal_service.create(entry_date, narration, items, actor_id)


class TestCreateDraft:
    def test_draft_fields(self, journal_service, cash, sales, test_actor_id):
        entry = _draft(journal_service, test_actor_id, [
            ItemSpec.debit(cash.id, "150.00", "Till"),
            ItemSpec.credit(sales.id, Decimal("150")),
        ])

        assert entry.status == "draft"
        assert entry.reference_number == "JV-2024-00001"
        assert entry.sequence_number == 1
        assert [i.line_no for i in entry.items] == [1, 2]
        assert entry.items[0].account_code == "1001"
        assert entry.items[0].description == "Till"
        assert entry.is_balanced

    def test_drafts_may_be_unbalanced_or_empty(self, journal_service, cash, test_actor_id):
        lopsided = _draft(journal_service, test_actor_id, [ItemSpec.debit(cash.id, "5")])
        empty = _draft(journal_service, test_actor_id, [])

        assert not lopsided.is_balanced
        assert empty.items == ()

    def test_mapping_items_accepted(self, journal_service, cash, sales, test_actor_id):
        entry = _draft(journal_service, test_actor_id, [
            {"account_id": cash.id, "item_type": "debit", "amount": "1.00"},
            {"account_id": sales.id, "item_type": "credit", "amount": 1},
        ])
        assert entry.total_debits == Decimal("1.00")

    @pytest.mark.parametrize("missing, extra", [
        ("amount", {}),
        ("account_id", {}),
        ("account_id", {"account": "1001"}),
    ], ids=["no_amount", "no_account", "unknown_key"])
    def test_malformed_mapping_items_rejected(self, journal_service, cash, test_actor_id,
                                              missing, extra):
        item = {"account_id": cash.id, "item_type": "debit", "amount": "1", **extra}
        del item[missing]

        with pytest.raises(ValidationError) as exc_info:
            _draft(journal_service, test_actor_id, [item])

        assert exc_info.value.field == "items"

    def test_items_attach_without_orm_warnings(self, journal_service, cash, sales,
                                               test_actor_id):
        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            entry = _draft(journal_service, test_actor_id, [
                ItemSpec.debit(cash.id, "3.00"),
                ItemSpec.credit(sales.id, "3.00"),
            ])
            journal_service.update(entry.id, test_actor_id, items=[
                ItemSpec.debit(cash.id, "4.00"),
                ItemSpec.credit(sales.id, "4.00"),
            ])

    def test_date_outside_any_year_rejected(self, journal_service, cash, sales, test_actor_id):
        with pytest.raises(NoFinancialYearError):
            _draft(journal_service, test_actor_id,
                   [ItemSpec.debit(cash.id, "1"), ItemSpec.credit(sales.id, "1")],
                   entry_date=date(2031, 1, 1))

    def test_blank_narration_rejected(self, journal_service, test_actor_id):
        with pytest.raises(ValidationError):
            _draft(journal_service, test_actor_id, [], narration="   ")

    def test_unknown_account_rejected(self, journal_service, test_actor_id):
        with pytest.raises(AccountNotFoundError):
            _draft(journal_service, test_actor_id, [ItemSpec.debit(uuid4(), "1")])

    def test_bad_item_type_rejected(self, journal_service, cash, test_actor_id):
        with pytest.raises(ValidationError):
            _draft(journal_service, test_actor_id, [ItemSpec(cash.id, "both", "1")])

    @pytest.mark.parametrize("amount", [
        0, "0.00", -5, "-0.01", "NaN", "Infinity", "abc", 1.5, True, "1.005",
    ])
    def test_invalid_amounts_rejected(self, journal_service, cash, test_actor_id, amount):
        with pytest.raises(InvalidAmountError):
            _draft(journal_service, test_actor_id, [ItemSpec.debit(cash.id, amount)])

    def test_decimal_places_follow_config(self, session, deterministic_clock, cash,
                                          test_actor_id):
        journal = JournalService(session, LedgerConfig(money_decimal_places=3),
                                 deterministic_clock)
        entry = _draft(journal, test_actor_id, [ItemSpec.debit(cash.id, "1.005")])
        assert entry.items[0].amount == Decimal("1.005")


class TestReferenceNumbers:
    def test_sequence_increments_per_year(self, journal_service, year_service, cash,
                                          test_actor_id):
        year_service.create(None, date(2025, 1, 1), date(2026, 1, 1), test_actor_id)

        first = _draft(journal_service, test_actor_id, [])
        second = _draft(journal_service, test_actor_id, [])
        other_year = _draft(journal_service, test_actor_id, [], entry_date=date(2025, 5, 1))

        assert first.reference_number == "JV-2024-00001"
        assert second.reference_number == "JV-2024-00002"
        assert other_year.reference_number == "JV-2025-00001"

    def test_prefix_and_padding_configurable(self, session, deterministic_clock,
                                             test_actor_id):
        journal = JournalService(
            session, LedgerConfig(reference_prefix="GJ", reference_padding=3),
            deterministic_clock,
        )
        assert _draft(journal, test_actor_id, []).reference_number == "GJ-2024-001"


class TestUpdateDraft:
    def test_replace_items_and_narration(self, journal_service, cash, sales, test_actor_id):
        entry = _draft(journal_service, test_actor_id, [ItemSpec.debit(cash.id, "1")])

        updated = journal_service.update(
            entry.id, test_actor_id, narration="Fixed",
            items=[ItemSpec.debit(cash.id, "2"), ItemSpec.credit(sales.id, "2")],
        )

        assert updated.narration == "Fixed"
        assert updated.total_credits == Decimal("2")
        assert len(updated.items) == 2

    def test_move_to_other_year_renumbers(self, journal_service, year_service,
                                          test_actor_id):
        year_service.create(None, date(2025, 1, 1), date(2026, 1, 1), test_actor_id)
        entry = _draft(journal_service, test_actor_id, [])

        moved = journal_service.update(entry.id, test_actor_id, entry_date=date(2025, 2, 1))

        assert moved.reference_number == "JV-2025-00001"
        assert moved.financial_year_id != entry.financial_year_id

    def test_posted_entry_not_editable(self, journal_service, make_entry, cash, sales,
                                       test_actor_id):
        entry = make_entry(cash, sales, "10.00")

        with pytest.raises(ImmutableEntryError):
            journal_service.update(entry.id, test_actor_id, narration="Changed")


class TestPost:
    def test_post_balanced(self, journal_service, cash, sales, test_actor_id,
                           deterministic_clock):
        entry = _draft(journal_service, test_actor_id, [
            ItemSpec.debit(cash.id, "100.00"),
            ItemSpec.credit(sales.id, "60.00"),
            ItemSpec.credit(sales.id, "40.00"),
        ])

        posted = journal_service.post(entry.id, test_actor_id)

        assert posted.status == "posted"
        assert posted.posted_by_id == test_actor_id
        assert posted.posted_at == deterministic_clock.now()

    def test_unbalanced_rejected(self, journal_service, cash, sales, test_actor_id):
        entry = _draft(journal_service, test_actor_id, [
            ItemSpec.debit(cash.id, "100.00"),
            ItemSpec.credit(sales.id, "99.99"),
        ])

        with pytest.raises(UnbalancedEntryError):
            journal_service.post(entry.id, test_actor_id)
        assert journal_service.get(entry.id).status == "draft"

    def test_one_sided_rejected(self, journal_service, cash, test_actor_id):
        entry = _draft(journal_service, test_actor_id, [ItemSpec.debit(cash.id, "1")])

        with pytest.raises(EmptyEntryError):
            journal_service.post(entry.id, test_actor_id)

    def test_empty_rejected(self, journal_service, test_actor_id):
        entry = _draft(journal_service, test_actor_id, [])

        with pytest.raises(EmptyEntryError):
            journal_service.post(entry.id, test_actor_id)

    def test_double_post_rejected(self, journal_service, make_entry, cash, sales,
                                  test_actor_id):
        entry = make_entry(cash, sales, "10.00")

        with pytest.raises(InvalidTransitionError):
            journal_service.post(entry.id, test_actor_id)

    def test_closed_year_rejected(self, journal_service, year_service, cash, sales,
                                  test_actor_id):
        year_service.create(None, date(2023, 1, 1), date(2024, 1, 1), test_actor_id)
        entry = _draft(journal_service, test_actor_id,
                       [ItemSpec.debit(cash.id, "1"), ItemSpec.credit(sales.id, "1")],
                       entry_date=date(2023, 12, 31))

        with pytest.raises(ClosedPeriodError):
            journal_service.post(entry.id, test_actor_id)

    def test_unlocked_year_accepts_backdated(self, journal_service, year_service, cash,
                                             sales, test_actor_id):
        previous = year_service.create(None, date(2023, 1, 1), date(2024, 1, 1), test_actor_id)
        year_service.unlock(previous.id, test_actor_id)
        entry = _draft(journal_service, test_actor_id,
                       [ItemSpec.debit(cash.id, "1"), ItemSpec.credit(sales.id, "1")],
                       entry_date=date(2023, 12, 31))

        assert journal_service.post(entry.id, test_actor_id).status == "posted"

    def test_deactivated_account_does_not_block_post(
        self, journal_service, account_service, cash, sales, test_actor_id
    ):
        entry = _draft(journal_service, test_actor_id,
                       [ItemSpec.debit(cash.id, "1"), ItemSpec.credit(sales.id, "1")])
        account_service.deactivate(cash.id, test_actor_id)

        assert journal_service.post(entry.id, test_actor_id).status == "posted"

    def test_rejection_logged(self, journal_service, cash, test_actor_id, captured_logs):
        entry = _draft(journal_service, test_actor_id, [ItemSpec.debit(cash.id, "1")])

        with pytest.raises(EmptyEntryError):
            journal_service.post(entry.id, test_actor_id)

        rejected = [r for r in captured_logs() if r["message"] == "empty_entry_rejected"]
        assert rejected and rejected[0]["entry_id"] == str(entry.id)


class TestCancelAndDelete:
    def test_cancel_posted(self, journal_service, make_entry, cash, sales, test_actor_id):
        entry = make_entry(cash, sales, "10.00")

        cancelled = journal_service.cancel(entry.id, test_actor_id)

        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_by_id == test_actor_id
        assert len(cancelled.items) == 2

    def test_cancel_twice_rejected(self, journal_service, make_entry, cash, sales,
                                   test_actor_id):
        entry = make_entry(cash, sales, "10.00")
        journal_service.cancel(entry.id, test_actor_id)

        with pytest.raises(AlreadyCancelledError):
            journal_service.cancel(entry.id, test_actor_id)

    def test_cancel_draft_rejected(self, journal_service, test_actor_id):
        entry = _draft(journal_service, test_actor_id, [])

        with pytest.raises(AlreadyCancelledError):
            journal_service.cancel(entry.id, test_actor_id)

    def test_post_cancelled_rejected(self, journal_service, make_entry, cash, sales,
                                     test_actor_id):
        entry = make_entry(cash, sales, "10.00")
        journal_service.cancel(entry.id, test_actor_id)

        with pytest.raises(InvalidTransitionError):
            journal_service.post(entry.id, test_actor_id)

    def test_delete_draft(self, journal_service, test_actor_id):
        entry = _draft(journal_service, test_actor_id, [])
        journal_service.delete(entry.id, test_actor_id)

        with pytest.raises(JournalEntryNotFoundError):
            journal_service.get(entry.id)

    @pytest.mark.parametrize("cancel", [False, True])
    def test_delete_non_draft_rejected(self, journal_service, make_entry, cash, sales,
                                       test_actor_id, cancel):
        entry = make_entry(cash, sales, "10.00")
        if cancel:
            journal_service.cancel(entry.id, test_actor_id)

        with pytest.raises(ImmutableEntryError):
            journal_service.delete(entry.id, test_actor_id)

    def test_lifecycle_audited(self, journal_service, audit_service, make_entry, cash,
                               sales, test_actor_id):
        entry = make_entry(cash, sales, "10.00")
        journal_service.cancel(entry.id, test_actor_id)

        assert audit_service.get_trace("JournalEntry", entry.id).actions == (
            AuditAction.ENTRY_CREATED,
            AuditAction.ENTRY_POSTED,
            AuditAction.ENTRY_CANCELLED,
        )

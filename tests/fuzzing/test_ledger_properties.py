"""
Property-based tests for posting and derived balances.

Verifies:
- Any sequence of balanced postings and cancellations keeps the trial
  balance balanced
- balance_of moves by exactly the normalized debit/credit delta
- Entries whose debits and credits differ never post

Examples accumulate in one rolled-back session per test, so properties are
stated as deltas against the state before each example.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.dtos import ItemSpec
from ledger_kernel.exceptions import UnbalancedEntryError
from ledger_kernel.selectors.ledger_selector import normalize

pytestmark = pytest.mark.usefixtures("active_year")

FUZZ_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)

CODES = ["1001", "1002", "2001", "3001", "4001", "5003"]

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

# (debit code, credit code, amount)
legs = st.tuples(st.sampled_from(CODES), st.sampled_from(CODES), amounts)

entry_dates = st.dates(min_value=date(2024, 1, 1), max_value=date(2024, 12, 31))


class TestBalancedEntries:
    @FUZZ_SETTINGS
    @given(batch=st.lists(st.tuples(legs, entry_dates, st.booleans()), min_size=1, max_size=5))
    def test_trial_balance_stays_balanced(self, batch, standard_chart, journal_service,
                                          ledger_selector, test_actor_id):
        for (debit_code, credit_code, amount), entry_date, cancel in batch:
            entry = journal_service.create(
                entry_date,
                "Fuzzed entry",
                [
                    ItemSpec.debit(standard_chart[debit_code].id, amount),
                    ItemSpec.credit(standard_chart[credit_code].id, amount),
                ],
                test_actor_id,
            )
            journal_service.post(entry.id, test_actor_id)
            if cancel:
                journal_service.cancel(entry.id, test_actor_id)

        tb = ledger_selector.trial_balance()
        assert tb.is_balanced
        assert tb.total_debit == tb.total_credit

    @FUZZ_SETTINGS
    @given(items=st.lists(legs, min_size=1, max_size=6))
    def test_balance_moves_by_normalized_delta(self, items, standard_chart, journal_service,
                                               ledger_selector, test_actor_id):
        before = {code: ledger_selector.balance_of(standard_chart[code].id) for code in CODES}

        specs = []
        debits = defaultdict(Decimal)
        credits = defaultdict(Decimal)
        for debit_code, credit_code, amount in items:
            specs.append(ItemSpec.debit(standard_chart[debit_code].id, amount))
            specs.append(ItemSpec.credit(standard_chart[credit_code].id, amount))
            debits[debit_code] += amount
            credits[credit_code] += amount

        entry = journal_service.create(date(2024, 6, 1), "Fuzzed entry", specs, test_actor_id)
        journal_service.post(entry.id, test_actor_id)

        for code in CODES:
            expected = before[code] + normalize(
                debits[code], credits[code], standard_chart[code].normal_balance
            )
            assert ledger_selector.balance_of(standard_chart[code].id) == expected


class TestUnbalancedEntries:
    @FUZZ_SETTINGS
    @given(debit=amounts, credit=amounts)
    def test_unbalanced_never_posts(self, debit, credit, standard_chart, journal_service,
                                    ledger_selector, test_actor_id):
        assume(debit != credit)
        cash = standard_chart["1001"]
        sales = standard_chart["4001"]
        before = ledger_selector.balance_of(cash.id)

        entry = journal_service.create(
            date(2024, 6, 1),
            "Lopsided",
            [ItemSpec.debit(cash.id, debit), ItemSpec.credit(sales.id, credit)],
            test_actor_id,
        )

        with pytest.raises(UnbalancedEntryError):
            journal_service.post(entry.id, test_actor_id)
        assert journal_service.get(entry.id).status == "draft"
        assert ledger_selector.balance_of(cash.id) == before

"""Tests for folding ledger entries into a payout summary."""

import itertools
import random

import pytest

from payout_reconciler.reconciliation import ReconciliationResult, SummaryAggregator


@pytest.fixture
def aggregator():
    return SummaryAggregator()


@pytest.fixture
def mixed_entries(entry_factory):
    return [
        entry_factory("txn_a", "charge", 10000, 320),
        entry_factory("txn_b", "payment", 2500, 80),
        entry_factory("txn_c", "refund", -2000, -65),
        entry_factory("txn_d", "adjustment", -1500, 1500, reporting_category="dispute"),
        entry_factory("txn_e", "adjustment", 25, reporting_category="other_adjustment"),
        entry_factory("txn_f", "payout", -8900, reporting_category="payout"),
    ]


def _random_entries(rng: random.Random, count: int, entry_factory):
    kinds = [
        ("charge", None),
        ("payment", None),
        ("refund", None),
        ("adjustment", "dispute"),
        ("adjustment", "other_adjustment"),
        ("transfer", None),
    ]
    entries = []
    for i in range(count):
        entry_type, category = rng.choice(kinds)
        amount = rng.randint(1, 500000)
        fee = rng.randint(0, 20000)
        if entry_type == "refund":
            amount, fee = -amount, -fee
        entries.append(entry_factory(f"txn_{i}", entry_type, amount, fee, reporting_category=category))
    return entries


class TestSummaryAggregator:

    def test_charge_and_refund_example(self, aggregator, sample_entries):
        result = aggregator.aggregate(sample_entries)

        assert result == ReconciliationResult(
            transaction_count=2,
            gross_volume=10000,
            total_fees=255,
            total_refunds=2000,
            total_disputes=0,
            net_amount=7745,
        )

    def test_every_entry_is_counted(self, aggregator, mixed_entries):
        result = aggregator.aggregate(mixed_entries)

        assert result.transaction_count == 6
        assert result.unclassified_count == 2
        assert result.gross_volume == 12500
        assert result.total_fees == 320 + 80 - 65
        assert result.total_refunds == 2000
        assert result.total_disputes == 1500
        assert result.net_amount == 12500 - 335 - 2000 - 1500

    def test_empty_input(self, aggregator):
        result = aggregator.aggregate([])

        assert result.transaction_count == 0
        assert result.net_amount == 0

    def test_order_independent(self, aggregator, mixed_entries):
        expected = aggregator.aggregate(mixed_entries)

        for permutation in itertools.permutations(mixed_entries):
            assert aggregator.aggregate(permutation) == expected

    def test_same_input_same_result(self, aggregator, mixed_entries):
        assert aggregator.aggregate(mixed_entries) == aggregator.aggregate(list(mixed_entries))

    @pytest.mark.parametrize("seed", range(20))
    def test_net_amount_identity(self, aggregator, entry_factory, seed):
        rng = random.Random(seed)
        entries = _random_entries(rng, rng.randint(1, 60), entry_factory)

        result = aggregator.aggregate(entries)

        assert isinstance(result.net_amount, int)
        assert result.net_amount == (
            result.gross_volume - result.total_fees - result.total_refunds - result.total_disputes
        )
        assert result.transaction_count == len(entries)

    @pytest.mark.parametrize("seed", range(5))
    def test_shuffled_random_sets_match(self, aggregator, entry_factory, seed):
        rng = random.Random(seed)
        entries = _random_entries(rng, 40, entry_factory)
        shuffled = list(entries)
        rng.shuffle(shuffled)

        assert aggregator.aggregate(shuffled) == aggregator.aggregate(entries)

    def test_to_totals_matches_columns(self, aggregator, sample_entries):
        totals = aggregator.aggregate(sample_entries).to_totals()

        assert totals == {
            "transaction_count": 2,
            "gross_volume": 10000,
            "total_fees": 255,
            "total_refunds": 2000,
            "total_disputes": 0,
            "net_amount": 7745,
        }

"""
Tests for PriceHistoryAnalyzer
"""

from datetime import datetime

import numpy as np
import pytest

from listing_dedup.features import PriceHistoryAnalyzer
from listing_dedup.models import PriceHistoryEntry

from helpers import make_listing


def with_history(listing_id, prices):
    history = [PriceHistoryEntry(date=datetime(2024, 1, day + 1), price=price)
               for day, price in enumerate(prices)]
    return make_listing(listing_id, price_history=history)


@pytest.fixture
def analyzer():
    return PriceHistoryAnalyzer()


class TestPriceHistory:

    def test_same_dynamics(self, analyzer):
        a = with_history("A", [10_000_000, 9_500_000, 9_000_000])
        b = with_history("B", [10_000_000, 9_500_000, 9_000_000])
        relation = analyzer.analyze(a, b)
        assert relation.related is True
        assert relation.reason == 'same_price_dynamics'
        assert relation.confidence == pytest.approx(1.0)
        assert relation.details['common_prices'] == 3

    def test_proportional_dynamics_on_other_level(self, analyzer):
        a = with_history("A", [10_000_000, 9_000_000, 8_000_000])
        b = with_history("B", [9_000_000, 8_100_000, 7_200_000])
        relation = analyzer.analyze(a, b)
        assert relation.confidence == pytest.approx(1.0)

    def test_opposite_dynamics_clamped(self, analyzer):
        a = with_history("A", [10_000_000, 9_000_000, 8_000_000])
        b = with_history("B", [8_000_000, 9_000_000, 10_000_000])
        relation = analyzer.analyze(a, b)
        assert relation.related is False
        assert relation.confidence == 0.0
        assert relation.details['similarity'] == pytest.approx(-1.0)

    def test_no_history(self, analyzer):
        relation = analyzer.analyze(make_listing("A"), with_history("B", [1_000_000]))
        assert relation.reason == 'no_history'
        assert relation.confidence == 0.0

    def test_no_common_prices(self, analyzer):
        relation = analyzer.analyze(with_history("A", [1_000_000, 900_000]),
                                    with_history("B", [2_000_000, 1_900_000]))
        assert relation.reason == 'no_common_prices'
        assert relation.related is False

    def test_single_price_has_no_dynamics(self, analyzer):
        relation = analyzer.analyze(with_history("A", [5_000_000]), with_history("B", [5_000_000]))
        assert relation.confidence == 0.0
        assert relation.related is False

    def test_history_sorted_by_date(self, analyzer):
        history = [PriceHistoryEntry(date=datetime(2024, 2, 1), price=8.0),
                   PriceHistoryEntry(date=datetime(2024, 1, 1), price=10.0)]
        assert analyzer._price_sequence(make_listing("A", price_history=history)) == [10.0, 8.0]

    def test_correlation_undefined_for_flat_series(self):
        assert PriceHistoryAnalyzer.correlation(np.ones(3), np.array([1.0, 0.9, 0.8])) == 0.0

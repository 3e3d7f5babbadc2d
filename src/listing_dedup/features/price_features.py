"""
Price history analysis.

Two listings of the same flat usually move price together: the same owner
lowers the price on every marketplace at once.

Correlation is signed: histories moving in opposite directions (r < 0)
count as unrelated and score 0, not |r|.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

import numpy as np

from ..models import Listing

logger = logging.getLogger(__name__)

RELATED_THRESHOLD = 0.6
SAME_DYNAMICS_THRESHOLD = 0.8


@dataclass
class PriceRelation:
    related: bool = False
    confidence: float = 0.0
    reason: str = 'no_history'
    details: Dict[str, float] = field(default_factory=dict)


class PriceHistoryAnalyzer:
    """Pearson correlation of two price sequences normalized to their first price."""

    def analyze(self, listing_a: Listing, listing_b: Listing) -> PriceRelation:
        prices_a = self._price_sequence(listing_a)
        prices_b = self._price_sequence(listing_b)

        if not prices_a or not prices_b:
            return PriceRelation(reason='no_history')

        common_prices = set(prices_a) & set(prices_b)
        if not common_prices:
            return PriceRelation(reason='no_common_prices')

        similarity = self.correlation(self.normalize(prices_a), self.normalize(prices_b))
        confidence = max(similarity, 0.0)
        return PriceRelation(
            related=confidence > RELATED_THRESHOLD,
            confidence=confidence,
            reason='same_price_dynamics' if confidence > SAME_DYNAMICS_THRESHOLD else 'similar_price_dynamics',
            details={'common_prices': float(len(common_prices)), 'similarity': similarity},
        )

    @staticmethod
    def _price_sequence(listing: Listing) -> List[float]:
        entries = sorted(
            (e for e in listing.price_history if e.price and e.price > 0),
            key=lambda e: e.date or datetime.min,
        )
        return [e.price for e in entries]

    @staticmethod
    def normalize(prices: List[float]) -> np.ndarray:
        """Prices relative to the first one."""
        values = np.asarray(prices, dtype=float)
        return values / values[0]

    @staticmethod
    def correlation(series_a: np.ndarray, series_b: np.ndarray) -> float:
        """Pearson correlation over the common prefix; 0 when undefined."""
        n = min(len(series_a), len(series_b))
        if n < 2:
            return 0.0
        x, y = series_a[:n], series_b[:n]
        if np.std(x) == 0 or np.std(y) == 0:
            return 0.0
        value = float(np.corrcoef(x, y)[0, 1])
        return 0.0 if np.isnan(value) else value

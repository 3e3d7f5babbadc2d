"""
Weighted final score and confidence tiers for a listing pair.
"""

import logging
from typing import Optional

from ..config import ScoringConfig
from ..models import CandidateScore

logger = logging.getLogger(__name__)

SIGNALS = ('unique_features', 'specification', 'text', 'seller_relation', 'price_history', 'location')


class ScoreCalculator:
    """
    Combines six sub-signals into one score in [0, 1].

    Ambiguous evidence defaults to "not a duplicate": only scores at or
    above the low threshold count as duplicates.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()
        self.config.validate()

    def calculate(self, unique_features: float = 0.0, specification: float = 0.0, text: float = 0.0,
                  seller_relation: float = 0.0, price_history: float = 0.0, location: float = 0.0,
                  exact_specification: bool = False, same_seller: bool = False) -> CandidateScore:
        """
        Calculate the final score of a pair.

        Args:
            unique_features: Unique-feature similarity
            specification: Specification similarity
            text: Combined text similarity
            seller_relation: Seller relation confidence
            price_history: Price history confidence
            location: Location similarity
            exact_specification: Whether every specification field matched exactly
            same_seller: Whether both listings have the same seller

        Returns:
            CandidateScore with breakdown, tier and decisions
        """
        signals = {
            'unique_features': unique_features,
            'specification': specification,
            'text': text,
            'seller_relation': seller_relation,
            'price_history': price_history,
            'location': location,
        }
        signals = {name: min(max(float(value or 0.0), 0.0), 1.0) for name, value in signals.items()}

        weights = self.config.weights
        breakdown = {name: signals[name] * weights[name] for name in SIGNALS}
        weighted = sum(breakdown.values())

        bonus = 0.0
        if signals['unique_features'] >= self.config.unique_features_bonus_min:
            bonus += self.config.unique_features_bonus
        if exact_specification:
            bonus += self.config.exact_specification_bonus
        if same_seller:
            bonus += self.config.same_seller_bonus
        breakdown['bonus'] = bonus

        # Float sums are rounded before tiering
        final = round(min(max(weighted + bonus, 0.0), 1.0), 9)
        tier = self.classify(final)

        logger.debug(f"Score {final:.3f} ({tier}), breakdown: {breakdown}")
        return CandidateScore(
            final=final,
            confidence=tier,
            is_duplicate=final >= self.config.low_threshold,
            should_auto_merge=final >= self.config.auto_merge_threshold,
            bonus=bonus,
            breakdown=breakdown,
            **signals,
        )

    def classify(self, score: float) -> str:
        """Confidence tier of a final score."""
        for tier, threshold in self.config.thresholds.items():
            if score >= threshold:
                return tier
        return 'very_low'

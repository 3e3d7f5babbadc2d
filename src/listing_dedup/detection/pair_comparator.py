"""
Full multi-signal comparison of two listings.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..config import ScoringConfig
from ..features import (
    ContactRelationAnalyzer,
    FeatureExtractor,
    PriceHistoryAnalyzer,
    SpecificationComparator,
    TextSimilarityAnalyzer,
    location_similarity,
)
from ..models import CandidateScore, Listing
from .score_calculator import ScoreCalculator

logger = logging.getLogger(__name__)


@dataclass
class PairComparison:
    score: CandidateScore
    details: Dict[str, Any]


class ListingComparator:
    """
    Runs every analyzer over a listing pair and feeds the ScoreCalculator.
    """

    def __init__(self, scoring: Optional[ScoringConfig] = None, language: str = "ru"):
        self.feature_extractor = FeatureExtractor(language=language)
        self.spec_comparator = SpecificationComparator()
        self.text_analyzer = TextSimilarityAnalyzer()
        self.contact_analyzer = ContactRelationAnalyzer()
        self.price_analyzer = PriceHistoryAnalyzer()
        self.score_calculator = ScoreCalculator(scoring)

    def compare(self, listing_a: Listing, listing_b: Listing) -> PairComparison:
        """
        Compare two listings across all signals.

        Args:
            listing_a: First listing
            listing_b: Second listing

        Returns:
            PairComparison with the CandidateScore and per-analyzer details
        """
        unique = self.feature_extractor.compare_descriptions(listing_a.description, listing_b.description)
        spec = self.spec_comparator.compare(listing_a, listing_b)
        text = self.text_analyzer.analyze(listing_a.description, listing_b.description)
        seller = self.contact_analyzer.analyze(listing_a, listing_b)
        price = self.price_analyzer.analyze(listing_a, listing_b)
        location = location_similarity(listing_a.coordinates, listing_b.coordinates)

        score = self.score_calculator.calculate(
            unique_features=unique.similarity,
            specification=spec.similarity,
            text=text.combined,
            seller_relation=seller.confidence,
            price_history=price.confidence,
            location=location,
            exact_specification=spec.exact_match,
            same_seller=seller.reason == 'same_seller',
        )

        logger.debug(
            f"{listing_a.id} vs {listing_b.id}: unique={unique.similarity:.3f} ({unique.confidence}), "
            f"spec={spec.similarity:.3f}, text={text.combined:.3f}, seller={seller.reason}, "
            f"price={price.reason}, location={location:.3f} -> {score.final:.3f} ({score.confidence})"
        )

        details = {
            'unique_features': {'similarity': unique.similarity, 'confidence': unique.confidence,
                                'common_features': unique.common_features},
            'specification': {'similarity': spec.similarity, 'exact_match': spec.exact_match,
                              'explanation': self.spec_comparator.get_feature_explanation(spec)},
            'text': {'cosine': text.cosine, 'jaccard': text.jaccard,
                     'combined': text.combined, 'confidence': text.confidence},
            'seller_relation': {'related': seller.related, 'confidence': seller.confidence,
                                'reason': seller.reason},
            'price_history': {'related': price.related, 'confidence': price.confidence,
                              'reason': price.reason},
            'location': {'similarity': location},
        }
        return PairComparison(score=score, details=details)

    def score(self, listing_a: Listing, listing_b: Listing) -> CandidateScore:
        return self.compare(listing_a, listing_b).score

"""
Distinctive Feature Extractor for Real Estate Duplicate Detection

Rare amenities, unusual layouts and legal/financial conditions are strong
identity signals: two descriptions mentioning a sauna *and* a hamam are far
more likely to describe the same flat than two mentioning a balcony.

Features extracted per description:
1. amenity - rare amenities (weight 0.8)
2. layout - layout peculiarities (weight 0.6)
3. legal - legal/financial conditions (weight 0.4)
4. combo - rare amenity combinations (weight 1.2)
5. quantity - 3+ bathrooms or balconies (weight 0.7 / 0.6)

The aggregate score is capped at 5.0.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models import Feature, FeatureSet
from .keywords import (
    CATEGORY_WEIGHTS,
    COMBINATION_BONUSES,
    KEYWORD_TABLES,
    MAX_FEATURE_SCORE,
    QUANTITY_PATTERNS,
    QUANTITY_RULES,
    QUANTITY_THRESHOLD,
)

logger = logging.getLogger(__name__)


@dataclass
class FeatureComparison:
    """Result of comparing the feature sets of two descriptions."""

    similarity: float
    confidence: str  # high | medium | low | no_features
    common_features: List[Dict] = field(default_factory=list)
    total_weight: float = 0.0


class FeatureExtractor:
    """
    Extracts weighted distinctive features from a listing description.
    """

    def __init__(self, language: str = "ru", keyword_tables: Optional[Dict] = None):
        """
        Initialize the feature extractor.

        Args:
            language: Key into the keyword tables ('ru' or 'en')
            keyword_tables: Override for KEYWORD_TABLES (language -> category -> keyword -> feature)
        """
        tables = keyword_tables or KEYWORD_TABLES
        if language not in tables:
            raise ValueError(f"No keyword table for language '{language}'")
        self.language = language
        self.keywords = tables[language]
        self.quantity_patterns = {
            name: re.compile(pattern, re.IGNORECASE)
            for name, pattern in QUANTITY_PATTERNS.get(language, {}).items()
        }

    def extract(self, description: Optional[str]) -> FeatureSet:
        """
        Extract the feature set of one description.

        Args:
            description: Free text (may be None or empty)

        Returns:
            FeatureSet with matched features and the capped aggregate score
        """
        if not description:
            return FeatureSet()

        text = description.lower()
        features: List[Feature] = []

        for category, table in self.keywords.items():
            weight = CATEGORY_WEIGHTS.get(category, 0.0)
            for keyword, feature_name in table.items():
                if keyword in text:
                    features.append(Feature(type=category, feature=feature_name,
                                            keyword=keyword, weight=weight))

        found = {f.feature for f in features}
        for required, combo_name, weight in COMBINATION_BONUSES:
            if all(name in found for name in required):
                keyword = '+'.join(f.keyword for f in features if f.feature in required)
                features.append(Feature(type='combo', feature=combo_name, keyword=keyword, weight=weight))

        counts = self.extract_counts(description)
        for count_name, (feature_name, template, weight) in QUANTITY_RULES.items():
            count = counts.get(count_name, 0)
            if count >= QUANTITY_THRESHOLD:
                features.append(Feature(type='quantity', feature=feature_name,
                                        keyword=template.format(count=count), weight=weight))

        score = min(sum(f.weight for f in features), MAX_FEATURE_SCORE)
        return FeatureSet(features=features, score=score, counts=counts)

    def extract_counts(self, description: Optional[str]) -> Dict[str, int]:
        """Largest bathroom/balcony/bedroom count mentioned in the text."""
        counts = {name: 0 for name in self.quantity_patterns}
        if not description:
            return counts
        for name, pattern in self.quantity_patterns.items():
            values = [int(m.group(1)) for m in pattern.finditer(description)]
            if values:
                counts[name] = max(values)
        return counts

    def compare(self, features_a: FeatureSet, features_b: FeatureSet) -> FeatureComparison:
        """
        Compare two feature sets.

        Shared features (same name or keyword) contribute the larger of their
        two weights; the sum is normalised by the larger aggregate score.
        """
        if not features_a.features and not features_b.features:
            return FeatureComparison(similarity=0.0, confidence='no_features')

        common = []
        total_weight = 0.0
        for fa in features_a.features:
            match = next((fb for fb in features_b.features
                          if fa.feature == fb.feature or fa.keyword == fb.keyword), None)
            if match is not None:
                weight = max(fa.weight, match.weight)
                common.append({'feature': fa.feature, 'weight': weight})
                total_weight += weight

        max_possible = max(features_a.score, features_b.score)
        similarity = min(total_weight / max_possible, 1.0) if max_possible > 0 else 0.0

        if similarity >= 0.8:
            confidence = 'high'
        elif similarity >= 0.5:
            confidence = 'medium'
        else:
            confidence = 'low'

        return FeatureComparison(similarity=similarity, confidence=confidence,
                                 common_features=common, total_weight=total_weight)

    def compare_descriptions(self, description_a: Optional[str],
                             description_b: Optional[str]) -> FeatureComparison:
        """Convenience wrapper: extract both sets and compare."""
        return self.compare(self.extract(description_a), self.extract(description_b))

"""
Specification Comparator for Real Estate Duplicate Detection

This module compares the structured properties of two listings with
tolerance rules and produces a weighted similarity.

Fields compared (weight of total):
1. area - total area, match within +/-5 m2, linear decay (0.30)
2. floor - exact floor match (0.20)
3. rooms - room count, +/-1 tolerated (0.20)
4. property_type - exact match (0.15)
5. material - building wall material, case-insensitive (0.10)
6. floors_total - building height, exact match (0.05)

A field missing on either side never matches and clears ``exact_match``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..models import Listing

logger = logging.getLogger(__name__)

AREA_TOLERANCE = 5.0
ROOMS_TOLERANCE = 1


@dataclass
class FieldComparison:
    match: bool
    exact_match: bool
    similarity: float = 0.0
    difference: Optional[float] = None


@dataclass
class SpecificationComparison:
    similarity: float
    exact_match: bool
    details: Dict[str, FieldComparison] = field(default_factory=dict)


class SpecificationComparator:
    """
    Compares six structured properties of two listings.
    """

    field_weights = {
        'area': 0.30,
        'floor': 0.20,
        'rooms': 0.20,
        'property_type': 0.15,
        'material': 0.10,
        'floors_total': 0.05,
    }

    def __init__(self, area_tolerance: float = AREA_TOLERANCE, rooms_tolerance: int = ROOMS_TOLERANCE):
        """
        Initialize the specification comparator.

        Args:
            area_tolerance: Maximum area difference still counted as a match
            rooms_tolerance: Maximum room count difference still counted as a match
        """
        self.area_tolerance = area_tolerance
        self.rooms_tolerance = rooms_tolerance
        self.feature_names = list(self.field_weights)

    def compare(self, listing_a: Listing, listing_b: Listing) -> SpecificationComparison:
        """
        Compare the specifications of two listings.

        Args:
            listing_a: First listing
            listing_b: Second listing

        Returns:
            SpecificationComparison with per-field details, weighted similarity
            in [0, 1] and the all-fields exact match flag
        """
        details = {
            'area': self.compare_area(listing_a.area_total, listing_b.area_total),
            'floor': self._compare_exact(listing_a.floor, listing_b.floor),
            'rooms': self.compare_rooms(listing_a.rooms, listing_b.rooms),
            'property_type': self._compare_exact(listing_a.property_type, listing_b.property_type),
            'material': self.compare_material(listing_a.house_type, listing_b.house_type),
            'floors_total': self._compare_exact(listing_a.floors_total, listing_b.floors_total),
        }

        total_weight = sum(self.field_weights.values())
        matched_weight = sum(
            self.field_weights[name] * result.similarity
            for name, result in details.items() if result.match
        )
        similarity = matched_weight / total_weight if total_weight > 0 else 0.0
        exact_match = all(result.exact_match for result in details.values())

        logger.debug(f"Specification similarity {similarity:.3f}, exact match: {exact_match}")
        return SpecificationComparison(similarity=similarity, exact_match=exact_match, details=details)

    def compare_area(self, area_a: Optional[float], area_b: Optional[float]) -> FieldComparison:
        """Area comparison with +/- tolerance and linear similarity decay."""
        area_a = self._get_numeric_value(area_a)
        area_b = self._get_numeric_value(area_b)
        if not area_a or not area_b:
            return FieldComparison(match=False, exact_match=False)

        difference = abs(area_a - area_b)
        match = difference <= self.area_tolerance
        similarity = max(0.0, 1.0 - difference / self.area_tolerance) if match else 0.0
        return FieldComparison(match=match, exact_match=difference == 0,
                               similarity=similarity, difference=difference)

    def compare_rooms(self, rooms_a: Optional[int], rooms_b: Optional[int]) -> FieldComparison:
        """Room count comparison, +/-1 tolerated."""
        rooms_a = self._get_numeric_value(rooms_a)
        rooms_b = self._get_numeric_value(rooms_b)
        if rooms_a is None or rooms_b is None:
            return FieldComparison(match=False, exact_match=False)

        difference = abs(rooms_a - rooms_b)
        match = difference <= self.rooms_tolerance
        return FieldComparison(match=match, exact_match=difference == 0,
                               similarity=1.0 if match else 0.0, difference=difference)

    def compare_material(self, material_a: Optional[str], material_b: Optional[str]) -> FieldComparison:
        """Wall material, compared case-insensitively."""
        if not material_a or not material_b:
            return FieldComparison(match=False, exact_match=False)
        return self._compare_exact(material_a.lower().strip(), material_b.lower().strip())

    @staticmethod
    def _compare_exact(value_a, value_b) -> FieldComparison:
        if value_a is None or value_b is None:
            return FieldComparison(match=False, exact_match=False)
        match = value_a == value_b
        return FieldComparison(match=match, exact_match=match, similarity=1.0 if match else 0.0)

    def _get_numeric_value(self, value) -> Union[float, None]:
        """
        Safely convert a value to float.

        Args:
            value: Raw value

        Returns:
            Numeric value or None
        """
        if value is None:
            return None
        try:
            return float(value)
        except (ValueError, TypeError):
            logger.warning(f"Invalid numeric value: {value}")
            return None

    def get_feature_names(self) -> List[str]:
        """Get list of compared field names in order."""
        return self.feature_names.copy()

    def get_feature_explanation(self, comparison: SpecificationComparison) -> Dict[str, str]:
        """
        Get human-readable explanation of a comparison.

        Args:
            comparison: Result of compare()

        Returns:
            Dictionary mapping field names to explanations
        """
        explanations = {
            name: f"match={result.match}, exact={result.exact_match}, similarity={result.similarity:.3f}"
            for name, result in comparison.details.items()
        }
        explanations['overall'] = f"Specification similarity: {comparison.similarity:.3f}"
        return explanations


# Convenience function for a quick comparison
def compare_specifications(listing_a: Listing, listing_b: Listing) -> SpecificationComparison:
    """
    Convenience function to compare the specifications of two listings.

    Args:
        listing_a: First listing
        listing_b: Second listing

    Returns:
        SpecificationComparison
    """
    return SpecificationComparator().compare(listing_a, listing_b)

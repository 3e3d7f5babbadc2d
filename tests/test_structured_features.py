"""
Unit tests for SpecificationComparator

Tests the structured comparison of two listings including:
- Area tolerance and linear similarity decay
- Room count tolerance
- Exact floor, property type and building height matching
- Case-insensitive wall material
- Missing values and the all-fields exact match flag

Run with: python -m pytest tests/test_structured_features.py -v
"""

import pytest

from listing_dedup.features import SpecificationComparator, compare_specifications
from listing_dedup.models import Listing


def spec_listing(listing_id="1", **overrides):
    values = dict(area_total=50.0, floor=3, rooms=2, property_type="2-room",
                  house_type="Панель", floors_total=9)
    values.update(overrides)
    return Listing(id=listing_id, **values)


@pytest.fixture
def comparator():
    return SpecificationComparator()


class TestArea:

    def test_within_tolerance(self, comparator):
        result = comparator.compare_area(50, 54)
        assert result.match is True
        assert result.exact_match is False
        assert result.similarity == pytest.approx(0.2)
        assert result.difference == pytest.approx(4.0)

    def test_outside_tolerance(self, comparator):
        result = comparator.compare_area(50, 56)
        assert result.match is False
        assert result.similarity == 0.0

    def test_tolerance_boundary(self, comparator):
        result = comparator.compare_area(50, 55)
        assert result.match is True
        assert result.similarity == 0.0

    def test_identical(self, comparator):
        result = comparator.compare_area(42.5, 42.5)
        assert result.exact_match is True
        assert result.similarity == 1.0

    def test_missing_or_zero(self, comparator):
        assert comparator.compare_area(None, 50).match is False
        assert comparator.compare_area(0, 50).match is False

    def test_invalid_value(self, comparator):
        assert comparator.compare_area("n/a", 50).match is False


class TestRooms:

    def test_one_room_difference_tolerated(self, comparator):
        result = comparator.compare_rooms(2, 3)
        assert result.match is True
        assert result.exact_match is False
        assert result.similarity == 1.0

    def test_two_rooms_difference(self, comparator):
        assert comparator.compare_rooms(1, 3).match is False

    def test_zero_rooms_is_a_value(self, comparator):
        assert comparator.compare_rooms(0, 0).exact_match is True


class TestMaterial:

    def test_case_insensitive(self, comparator):
        assert comparator.compare_material("Кирпич", "кирпич ").exact_match is True

    def test_missing(self, comparator):
        assert comparator.compare_material("", "кирпич").match is False


class TestCompare:

    def test_identical_specifications(self, comparator):
        result = comparator.compare(spec_listing("1"), spec_listing("2"))
        assert result.similarity == pytest.approx(1.0)
        assert result.exact_match is True

    def test_weighted_similarity(self, comparator):
        # area 0.2 * 0.30, floor 0, rooms 0.20, type 0, material 0.10, height 0.05
        result = comparator.compare(
            spec_listing("1"),
            spec_listing("2", area_total=54.0, floor=4, rooms=3, property_type="3-room"),
        )
        assert result.similarity == pytest.approx(0.06 + 0.20 + 0.10 + 0.05)
        assert result.exact_match is False

    def test_missing_field_clears_exact_match(self, comparator):
        result = comparator.compare(spec_listing("1"), spec_listing("2", floors_total=None))
        assert result.exact_match is False
        assert result.similarity == pytest.approx(0.95)
        assert result.details['floors_total'].match is False

    def test_empty_listings(self, comparator):
        result = comparator.compare(Listing(id="1"), Listing(id="2"))
        assert result.similarity == 0.0
        assert result.exact_match is False

    def test_explanation(self, comparator):
        result = comparator.compare(spec_listing("1"), spec_listing("2"))
        explanation = comparator.get_feature_explanation(result)
        assert set(explanation) == set(comparator.get_feature_names()) | {'overall'}
        assert "1.000" in explanation['overall']

    def test_convenience_function(self):
        assert compare_specifications(spec_listing("1"), spec_listing("2")).exact_match is True

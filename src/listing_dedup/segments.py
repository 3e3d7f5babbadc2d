"""
Market segment filtering by structural address attributes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from .interfaces import SegmentFilter
from .models import Address, Listing

logger = logging.getLogger(__name__)

SEGMENT_FILTER_FIELDS = ('type', 'house_class_id', 'house_series_id', 'wall_material_id')


@dataclass
class Segment:
    """A market segment; ``filters`` maps an address attribute to allowed values."""

    id: str
    name: str = ""
    filters: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        raw_filters = data.get('filters') or {}
        filters = {
            name: [str(v) for v in raw_filters[name]]
            for name in SEGMENT_FILTER_FIELDS if raw_filters.get(name)
        }
        return cls(id=str(data['id']), name=data.get('name', ''), filters=filters)

    def matches(self, address: Address) -> bool:
        """Every non-empty filter must contain the address' value; no filters match all."""
        for name, allowed in self.filters.items():
            if allowed and getattr(address, name) not in allowed:
                return False
        return True


@dataclass
class Subsegment:
    id: str
    segment_id: str
    name: str = ""


class AddressSegmentFilterProvider:
    """
    SegmentFilterProvider over in-memory addresses, segments and subsegments.

    Subsegment ids select their parent segments.
    """

    def __init__(self, addresses: Iterable[Address], segments: Iterable[Segment],
                 subsegments: Optional[Iterable[Subsegment]] = None):
        self.addresses = {a.id: a for a in addresses}
        self.segments = {s.id: s for s in segments}
        self.subsegments = {s.id: s for s in subsegments or ()}

    def resolve_segments(self, segment_filter: SegmentFilter) -> List[Segment]:
        segment_ids = list(segment_filter.segment_ids)
        if not segment_ids:
            segment_ids = [self.subsegments[s].segment_id
                           for s in segment_filter.subsegment_ids if s in self.subsegments]
        unknown = [s for s in segment_ids if s not in self.segments]
        if unknown:
            logger.warning(f"Unknown segments ignored: {unknown}")
        return [self.segments[s] for s in dict.fromkeys(segment_ids) if s in self.segments]

    def allowed_address_ids(self, segment_filter: SegmentFilter) -> Set[str]:
        allowed: Set[str] = set()
        for segment in self.resolve_segments(segment_filter):
            matching = {a.id for a in self.addresses.values() if segment.matches(a)}
            logger.debug(f"Segment {segment.name or segment.id}: {len(matching)} addresses")
            allowed |= matching
        return allowed

    def filter_listings(self, listings: List[Listing], segment_filter: SegmentFilter) -> List[Listing]:
        if segment_filter.is_empty:
            return list(listings)
        allowed = self.allowed_address_ids(segment_filter)
        logger.info(f"Segment filter allows {len(allowed)} addresses")
        return [l for l in listings if l.address_id and l.address_id in allowed]

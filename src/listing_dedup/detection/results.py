"""
Counters returned by a processing run.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

COUNTERS = (
    'processed',
    'merged',
    'analyzed',
    'errors',
    'relevance_filtered',
    'embedding_filtered',
    'ai_verified',
    'objects_created',
    'skipped',
    'manual_review',
)


@dataclass
class GroupResult:
    """Outcome of one address group."""

    address_id: str
    processed: int = 0
    merged: int = 0
    analyzed: int = 0
    errors: int = 0
    relevance_filtered: int = 0
    embedding_filtered: int = 0
    ai_verified: int = 0
    objects_created: int = 0
    skipped: int = 0
    manual_review: int = 0
    embedding_time: float = 0.0
    ai_time: float = 0.0
    object_ids: List[str] = field(default_factory=list)

    def touch(self, object_id: str):
        if object_id not in self.object_ids:
            self.object_ids.append(object_id)


@dataclass
class DetectionResults:
    """Aggregate counters of a run plus a human-readable summary."""

    total_found: int = 0
    groups: int = 0
    processed: int = 0
    merged: int = 0
    analyzed: int = 0
    errors: int = 0
    relevance_filtered: int = 0
    embedding_filtered: int = 0
    ai_verified: int = 0
    objects_created: int = 0
    skipped: int = 0
    manual_review: int = 0
    cache_hits: int = 0
    embedding_time: float = 0.0
    ai_time: float = 0.0
    total_time: float = 0.0
    mode: str = "hybrid"
    message: Optional[str] = None
    object_ids: List[str] = field(default_factory=list)

    @property
    def filtered(self) -> int:
        """Candidate pairs discarded before AI verification or clustering."""
        return self.relevance_filtered + self.embedding_filtered

    def add_group(self, group: GroupResult):
        for name in COUNTERS:
            setattr(self, name, getattr(self, name) + getattr(group, name))
        self.embedding_time += group.embedding_time
        self.ai_time += group.ai_time
        self.groups += 1
        for object_id in group.object_ids:
            if object_id not in self.object_ids:
                self.object_ids.append(object_id)

    def summary(self) -> str:
        if self.message and not self.total_found:
            return self.message
        lines = [
            f"Duplicate detection ({self.mode}) finished in {self.total_time:.2f}s",
            f"  Listings found: {self.total_found} in {self.groups} address groups",
            f"  Processed: {self.processed}, merged: {self.merged}, new objects: {self.objects_created}",
            f"  Pairs analyzed: {self.analyzed}, filtered: {self.filtered} "
            f"(relevance {self.relevance_filtered}, embedding {self.embedding_filtered})",
        ]
        if self.manual_review:
            lines.append(f"  Left for manual review: {self.manual_review}")
        if self.skipped:
            lines.append(f"  Skipped: {self.skipped}")
        lines.append(f"  Errors: {self.errors}")
        return '\n'.join(lines)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['filtered'] = self.filtered
        data['summary'] = self.summary()
        return data

"""
Collaborator contracts consumed by the detection engines.

Implementations live outside the core (storage, LLM providers, embedding
backends). Reference implementations ship in ``repository``, ``segments``,
``embeddings`` and ``detection.ai_verifier.ProviderChain``.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .models import Listing, ProcessingStatus, ProgressEvent, RealEstateObject


@runtime_checkable
class Vectorizer(Protocol):
    """Cache-aware text embedding backend."""

    def embed(self, text: str, model_id: str) -> Sequence[float]:
        ...

    def embed_batch(self, texts: List[str], model_id: str) -> List[Sequence[float]]:
        ...

    def cosine_similarity(self, vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
        ...


@dataclass
class CompletionOptions:
    task_type: str = "duplicates"
    language: str = "ru"
    max_tokens: int = 10


@dataclass
class CompletionResponse:
    content: str
    provider: Optional[str] = None


@runtime_checkable
class TextCompletionService(Protocol):
    """Black-box LLM text completion."""

    def complete(self, prompt: str, options: CompletionOptions) -> CompletionResponse:
        ...


@runtime_checkable
class ObjectRepository(Protocol):
    """Storage capability for canonical objects and listing status."""

    def create_object(self, address_id: str, listing_ids: List[str]) -> RealEstateObject:
        ...

    def add_listings_to_object(self, object_id: str, listing_ids: List[str]) -> RealEstateObject:
        ...

    def get_listings_by_address(self, address_id: str) -> List[Listing]:
        ...

    def update_listing_status(self, listing_id: str, status: ProcessingStatus) -> None:
        ...


@dataclass
class SegmentFilter:
    """Market segment selection for the collect stage."""

    segment_ids: Sequence[str] = ()
    subsegment_ids: Sequence[str] = ()

    @property
    def is_empty(self) -> bool:
        return not self.segment_ids and not self.subsegment_ids

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SegmentFilter":
        data = data or {}
        return cls(
            segment_ids=tuple(str(s) for s in data.get('segments') or ()),
            subsegment_ids=tuple(str(s) for s in data.get('subsegments') or ()),
        )


@runtime_checkable
class SegmentFilterProvider(Protocol):
    """Narrows a listing set to the addresses matching a market segment."""

    def filter_listings(self, listings: List[Listing], segment_filter: SegmentFilter) -> List[Listing]:
        ...


ProgressCallback = Callable[[ProgressEvent], None]

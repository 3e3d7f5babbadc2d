"""
Shared builders and fake collaborators for the test suite.
"""
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from listing_dedup.exceptions import RepositoryError
from listing_dedup.interfaces import CompletionOptions, CompletionResponse
from listing_dedup.models import Listing, ProcessingStatus, Seller
from listing_dedup.repository import InMemoryObjectRepository

BASE_DATE = datetime(2024, 3, 1, 12, 0)

# Unit vectors with known cosine similarity to ALPHA
ALPHA = [1.0, 0.0, 0.0]
SIMILAR_090 = [0.9, float(np.sqrt(1 - 0.81)), 0.0]
SIMILAR_060 = [0.6, 0.8, 0.0]
ORTHOGONAL = [0.0, 0.0, 1.0]


def make_listing(listing_id: str, day: Optional[int] = 1, address_id: Optional[str] = "addr_1",
                 description: Optional[str] = "Квартира в хорошем состоянии",
                 property_type: Optional[str] = "1-room", floor: Optional[int] = 5,
                 area_total: Optional[float] = 40.0, **kwargs) -> Listing:
    """Listing awaiting the duplicate check, created ``day`` days after BASE_DATE."""
    created = BASE_DATE + timedelta(days=day) if day is not None else None
    return Listing(
        id=listing_id,
        address_id=address_id,
        description=description,
        property_type=property_type,
        floor=floor,
        area_total=area_total,
        created=created,
        **kwargs,
    )


def make_seller(name: Optional[str] = None, seller_type: Optional[str] = None,
                phone: Optional[str] = None, email: Optional[str] = None) -> Seller:
    return Seller(name=name, type=seller_type, phone=phone, email=email)


class FakeVectorizer:
    """
    Returns the vector of the first marker contained in the text.

    Texts without a marker get ORTHOGONAL.
    """

    def __init__(self, vectors: Optional[Dict[str, Sequence[float]]] = None, fail: bool = False,
                 delay: float = 0.0):
        self.vectors = vectors or {}
        self.fail = fail
        self.delay = delay
        self.embed_calls: List[str] = []
        self.batch_calls: List[List[str]] = []

    def _vector(self, text: str) -> np.ndarray:
        for marker, vector in self.vectors.items():
            if marker in text:
                return np.asarray(vector, dtype=float)
        return np.asarray(ORTHOGONAL, dtype=float)

    def embed(self, text: str, model_id: str):
        self.embed_calls.append(text)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("vectorizer unavailable")
        return self._vector(text)

    def embed_batch(self, texts: List[str], model_id: str):
        self.batch_calls.append(list(texts))
        if self.fail:
            raise RuntimeError("vectorizer unavailable")
        return [self._vector(t) for t in texts]

    def cosine_similarity(self, vector_a, vector_b) -> float:
        a, b = np.asarray(vector_a, dtype=float), np.asarray(vector_b, dtype=float)
        return float(a @ b / (np.linalg.norm(a) * np.linalg.norm(b)))


class FakeCompletionService:
    """Answers every prompt with ``answer`` (a string or a callable of the prompt)."""

    def __init__(self, answer: Union[str, Callable[[str], str]] = "ДА", fail: bool = False,
                 delay: float = 0.0, provider: Optional[str] = None):
        self.answer = answer
        self.fail = fail
        self.delay = delay
        self.provider = provider
        self.prompts: List[str] = []
        self.options: List[CompletionOptions] = []

    def complete(self, prompt: str, options: CompletionOptions) -> CompletionResponse:
        self.prompts.append(prompt)
        self.options.append(options)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("completion service unavailable")
        content = self.answer(prompt) if callable(self.answer) else self.answer
        return CompletionResponse(content=content, provider=self.provider)


class FlakyRepository(InMemoryObjectRepository):
    """In-memory repository that fails writes for selected listings."""

    def __init__(self, listings=None, fail_create_for=(), fail_status_for=(), fail_address_reads=False):
        super().__init__(listings)
        self.fail_create_for = set(fail_create_for)
        self.fail_status_for = set(fail_status_for)
        self.fail_address_reads = fail_address_reads
        self.snapshots: Dict[str, List[List[str]]] = {}

    def create_object(self, address_id, listing_ids):
        if self.fail_create_for & set(listing_ids):
            raise RepositoryError("storage unavailable")
        obj = super().create_object(address_id, listing_ids)
        self.snapshots.setdefault(obj.id, []).append(list(obj.listing_ids))
        return obj

    def add_listings_to_object(self, object_id, listing_ids):
        obj = super().add_listings_to_object(object_id, listing_ids)
        self.snapshots.setdefault(obj.id, []).append(list(obj.listing_ids))
        return obj

    def get_listings_by_address(self, address_id):
        if self.fail_address_reads:
            raise RepositoryError("storage unavailable")
        return super().get_listings_by_address(address_id)

    def update_listing_status(self, listing_id, status):
        if listing_id in self.fail_status_for:
            self.fail_status_for.discard(listing_id)
            raise RepositoryError("status write lost")
        super().update_listing_status(listing_id, status)


def members(repository: InMemoryObjectRepository) -> Dict[str, List[str]]:
    """Object id -> member listing ids."""
    return {obj.id: list(obj.listing_ids) for obj in repository.objects}


def statuses(listings: Sequence[Listing]) -> Dict[str, ProcessingStatus]:
    return {l.id: l.processing_status for l in listings}

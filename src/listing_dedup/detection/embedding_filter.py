"""
Embedding Similarity Filter

Coarse, cheap pre-screen before AI verification: candidates whose
description embedding is not close enough to the new listing are dropped.

The comparison text holds only properties of the flat itself. Seller
contacts, renovation state, building descriptors and the source URL are
left out: they either differ between marketplaces for the same flat or are
identical for every flat at one address.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..exceptions import CollaboratorError, call_with_timeout
from ..interfaces import Vectorizer
from ..models import Listing

logger = logging.getLogger(__name__)

FAIL_OPEN_SIMILARITY = 1.0


@dataclass
class ScoredCandidate:
    listing: Listing
    similarity: float


@dataclass
class EmbeddingFilterResult:
    candidates: List[ScoredCandidate] = field(default_factory=list)
    filtered_out: int = 0  # below threshold
    truncated: int = 0  # above threshold but over the candidate cap
    failed: bool = False
    error: Optional[str] = None


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_comparison_text(listing: Listing, max_length: int = 1500) -> str:
    """
    Canonical text embedded for a listing: description, then the structured
    fields on one line. Rooms and floor are written whenever known (0 is a
    studio or ground floor); empty areas and prices are left out.

    Args:
        listing: Listing to describe
        max_length: Longer texts are cut and suffixed with '...'

    Returns:
        Comparison text (may be empty)
    """
    parts = []
    if listing.description and listing.description.strip():
        parts.append(listing.description.strip())

    structured = []
    if listing.property_type:
        structured.append(f"Тип: {listing.property_type}")
    if listing.rooms is not None:
        structured.append(f"Комнаты: {listing.rooms}")
    if listing.area_total:
        structured.append(f"Площадь: {_format_number(listing.area_total)} м²")
    if listing.area_living:
        structured.append(f"Жилая: {_format_number(listing.area_living)} м²")
    if listing.area_kitchen:
        structured.append(f"Кухня: {_format_number(listing.area_kitchen)} м²")
    if listing.floor is not None:
        structured.append(f"Этаж: {listing.floor}")
    if listing.price:
        structured.append(f"Цена: {_format_number(listing.price)} руб")
    if structured:
        parts.append(', '.join(structured))

    text = '\n\n'.join(parts).strip()
    if len(text) > max_length:
        return text[:max_length] + '...'
    return text


class EmbeddingSimilarityFilter:
    """
    Narrows candidates to those whose embedding cosine similarity with the
    new listing reaches the threshold.
    """

    def __init__(self, vectorizer: Vectorizer, model_id: str, threshold: float = 0.82,
                 max_candidates: int = 15, batch_size: int = 10, timeout: Optional[float] = None,
                 text_max_length: int = 1500):
        """
        Initialize the filter.

        Args:
            vectorizer: Cache-aware embedding backend
            model_id: Embedding model identifier passed to the vectorizer
            threshold: Minimum cosine similarity to survive
            max_candidates: Maximum survivors forwarded to AI verification
            batch_size: Texts per embed_batch request
            timeout: Seconds allowed per vectorizer call
            text_max_length: Comparison text length cap
        """
        self.vectorizer = vectorizer
        self.model_id = model_id
        self.threshold = threshold
        self.max_candidates = max_candidates
        self.batch_size = batch_size
        self.timeout = timeout
        self.text_max_length = text_max_length

    def comparison_text(self, listing: Listing) -> str:
        return build_comparison_text(listing, self.text_max_length)

    def embed_texts(self, texts: Sequence[str]) -> List[Sequence[float]]:
        """Embed texts in batches; every call is time-bounded."""
        vectors: List[Sequence[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start:start + self.batch_size])
            batch_vectors = call_with_timeout(self.vectorizer.embed_batch, self.timeout, batch, self.model_id)
            if batch_vectors is None or len(batch_vectors) != len(batch):
                raise CollaboratorError(
                    f"Vectorizer returned {0 if batch_vectors is None else len(batch_vectors)} "
                    f"vectors for {len(batch)} texts")
            vectors.extend(batch_vectors)
        return vectors

    def warm_up(self, listings: Sequence[Listing]) -> int:
        """
        Pre-generate embeddings for a listing set so later per-candidate
        requests are cache hits.

        Returns:
            Number of texts sent to the vectorizer
        """
        texts = [self.comparison_text(listing) for listing in listings]
        self.embed_texts(texts)
        logger.info(f"Pre-generated embeddings for {len(texts)} listings")
        return len(texts)

    def filter(self, new_listing: Listing, candidates: Sequence[Listing]) -> EmbeddingFilterResult:
        """
        Keep candidates similar enough to the new listing.

        Fails open: when the vectorizer fails, every candidate survives with
        similarity 1.0 so AI verification still runs.

        Args:
            new_listing: Listing being placed
            candidates: Older, relevance-filtered listings

        Returns:
            EmbeddingFilterResult with survivors sorted by similarity, best first
        """
        if not candidates:
            return EmbeddingFilterResult()

        try:
            scored = self._score(new_listing, candidates)
        except Exception as e:
            logger.warning(f"Embedding filter failed for listing {new_listing.id}, "
                           f"forwarding all {len(candidates)} candidates: {e}")
            survivors = [ScoredCandidate(listing, FAIL_OPEN_SIMILARITY) for listing in candidates]
            return EmbeddingFilterResult(
                candidates=survivors[:self.max_candidates],
                truncated=max(0, len(survivors) - self.max_candidates),
                failed=True,
                error=str(e),
            )

        survivors = [c for c in scored if c.similarity >= self.threshold]
        survivors.sort(key=lambda c: c.similarity, reverse=True)
        result = EmbeddingFilterResult(
            candidates=survivors[:self.max_candidates],
            filtered_out=len(scored) - len(survivors),
            truncated=max(0, len(survivors) - self.max_candidates),
        )
        logger.debug(f"Embedding filter for {new_listing.id}: {len(result.candidates)} of "
                     f"{len(candidates)} candidates kept (threshold {self.threshold})")
        return result

    def _score(self, new_listing: Listing, candidates: Sequence[Listing]) -> List[ScoredCandidate]:
        new_vector = call_with_timeout(self.vectorizer.embed, self.timeout,
                                       self.comparison_text(new_listing), self.model_id)
        vectors = self.embed_texts([self.comparison_text(c) for c in candidates])
        return [
            ScoredCandidate(candidate, float(self.vectorizer.cosine_similarity(new_vector, vector)))
            for candidate, vector in zip(candidates, vectors)
        ]

"""
Hybrid Duplicate Detection Engine

Places listings into canonical objects, one address group at a time:

1. Listings of a group are sorted oldest first
2. Each new listing is compared only with strictly older ones
   (plus listings already assigned to objects in earlier runs)
3. Relevance pre-filter: property type must match, floors must be compatible
4. Embedding filter narrows the survivors (fails open)
5. AI verification of the best candidates, first "yes" wins
6. Confirmed duplicate joins the matched listing's object, otherwise a new
   object is created

The group is a single-threaded fold carrying a listing id -> object id map,
so later listings always see the assignments made for earlier ones.
"""

import time
import logging
from typing import Dict, List, Optional, Sequence

from ..config import ProjectConfig
from ..exceptions import ConfigurationError, RepositoryError
from ..interfaces import (
    ObjectRepository,
    ProgressCallback,
    SegmentFilterProvider,
    TextCompletionService,
    Vectorizer,
)
from ..models import Listing
from .advanced import AdvancedDuplicateDetector
from .ai_verifier import AIDuplicateVerifier
from .base import BaseDetector, chronological_key
from .embedding_filter import EmbeddingSimilarityFilter
from .results import DetectionResults, GroupResult

logger = logging.getLogger(__name__)


def is_compatible_floor(floor_a: Optional[int], floor_b: Optional[int]) -> bool:
    """Unknown floor on either side is compatible; otherwise floors must be equal."""
    if floor_a is None or floor_b is None:
        return True
    return floor_a == floor_b


def filter_relevant_listings(new_listing: Listing, older_listings: Sequence[Listing]) -> List[Listing]:
    """Older listings with the same property type and a compatible floor."""
    return [
        old for old in older_listings
        if old.property_type == new_listing.property_type
        and is_compatible_floor(new_listing.floor, old.floor)
    ]


class DuplicateDetectionEngine(BaseDetector):
    """
    Embedding pre-screen plus AI confirmation, merged chronologically.
    """

    mode = "hybrid"

    def __init__(self, config: Optional[ProjectConfig] = None,
                 repository: Optional[ObjectRepository] = None,
                 vectorizer: Optional[Vectorizer] = None,
                 completion_service: Optional[TextCompletionService] = None,
                 segment_provider: Optional[SegmentFilterProvider] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        """
        Initialize the engine.

        Args:
            config: Project configuration
            repository: Object storage capability
            vectorizer: Embedding backend for the similarity filter
            completion_service: LLM used for pairwise verification
            segment_provider: Optional market segment filter
            progress_callback: Optional progress event sink

        Raises:
            ConfigurationError: If a required collaborator is missing
        """
        super().__init__(config, repository, segment_provider, progress_callback)
        if vectorizer is None:
            raise ConfigurationError("Hybrid engine requires a vectorizer")
        if completion_service is None:
            raise ConfigurationError("Hybrid engine requires a text completion service")

        self.vectorizer = vectorizer
        self.embedding_filter = EmbeddingSimilarityFilter(
            vectorizer,
            model_id=self.config.embedding_model_id,
            threshold=self.config.embedding_threshold,
            max_candidates=self.config.max_candidates_for_ai,
            batch_size=self.config.embedding_batch_size,
            timeout=self.config.embedding_timeout,
            text_max_length=self.config.embedding_text_max_length,
        )
        self.verifier = AIDuplicateVerifier(
            completion_service,
            language=self.config.ai_language,
            max_tokens=self.config.ai_max_tokens,
            description_max_length=self.config.ai_description_max_length,
            timeout=self.config.ai_timeout,
        )
        self._cache_hits_at_start = 0

    def prepare(self, listings: List[Listing], results: DetectionResults):
        """Warm the vectorizer cache with one bulk request."""
        self._cache_hits_at_start = self._cache_hits()
        self.emit('embedding_preparation', f"Preparing embeddings for {len(listings)} listings", 5)
        start = time.perf_counter()
        try:
            self.embedding_filter.warm_up(listings)
        except Exception as e:
            logger.warning(f"Embedding pre-generation failed, continuing without warm cache: {e}")
            results.errors += 1
        results.embedding_time += time.perf_counter() - start
        self.emit('embedding_generation', "Embeddings prepared", 20)

    def finalize(self, results: DetectionResults):
        results.cache_hits = max(0, self._cache_hits() - self._cache_hits_at_start)

    def _cache_hits(self) -> int:
        cache = getattr(self.vectorizer, 'cache', None)
        return getattr(cache, 'hits', 0) if cache is not None else 0

    def process_group(self, address_id: str, listings: List[Listing], result: GroupResult):
        """
        Fold the chronologically sorted listings of one address into objects.

        Raises:
            RepositoryError: If the address' existing listings cannot be read;
                the whole group then stays pending for the next run
        """
        known = {l.id: l for l in self._repository_call(self.repository.get_listings_by_address, address_id)}
        pending_ids = {l.id for l in listings}

        assignments: Dict[str, str] = {}
        older: List[Listing] = []
        for existing in sorted(known.values(), key=chronological_key):
            if existing.object_id and existing.id not in pending_ids:
                assignments[existing.id] = existing.object_id
                older.append(existing)

        logger.info(f"Address {address_id}: {len(listings)} new listings, {len(older)} already in objects")

        for listing in listings:
            stored = known.get(listing.id)
            object_id = listing.object_id or (stored.object_id if stored is not None else None)
            if object_id:
                assignments[listing.id] = object_id
                older.append(listing)
                self.retry_status_update(listing, object_id, result)
                continue

            match = self.find_duplicate(listing, older, result) if older else None
            if self._place(address_id, listing, match, assignments, result):
                older.append(listing)

    def find_duplicate(self, new_listing: Listing, older: Sequence[Listing],
                       result: GroupResult) -> Optional[Listing]:
        """
        Relevance filter, embedding filter and AI verification for one listing.

        Returns:
            The first older listing confirmed as a duplicate, or None
        """
        candidates = filter_relevant_listings(new_listing, older)
        result.relevance_filtered += len(older) - len(candidates)
        if not candidates:
            logger.debug(f"No relevant older listings for {new_listing.id}")
            return None

        start = time.perf_counter()
        filtered = self.embedding_filter.filter(new_listing, candidates)
        result.embedding_time += time.perf_counter() - start
        result.embedding_filtered += filtered.filtered_out
        if filtered.failed:
            result.errors += 1

        start = time.perf_counter()
        try:
            for scored in filtered.candidates:
                self.emit('ai_verification',
                          f"AI check {new_listing.id} vs {scored.listing.id} "
                          f"(embedding {scored.similarity:.3f})")
                verdict = self.verifier.verify(new_listing, scored.listing)
                result.ai_verified += 1
                result.analyzed += 1
                if verdict.error:
                    result.errors += 1
                if verdict.is_duplicate:
                    logger.info(f"Duplicate confirmed: {new_listing.id} = {scored.listing.id}")
                    return scored.listing
        finally:
            result.ai_time += time.perf_counter() - start
        return None

    def _place(self, address_id: str, listing: Listing, match: Optional[Listing],
               assignments: Dict[str, str], result: GroupResult) -> bool:
        """
        Commit one listing; True when the repository write succeeded.

        A failed write leaves the listing pending and out of later comparisons.
        """
        target = assignments.get(match.id) if match is not None else None
        if match is not None and target is None:
            logger.warning(f"Matched listing {match.id} has no object, creating a new one for {listing.id}")

        try:
            if target is not None:
                self.add_to_object(target, [listing.id])
                result.merged += 1
            else:
                target = self.create_object(address_id, [listing.id]).id
                result.objects_created += 1
        except RepositoryError as e:
            logger.error(f"Could not place listing {listing.id}, leaving it for retry: {e}")
            result.errors += 1
            return False

        assignments[listing.id] = target
        result.touch(target)
        if self.mark_processed(listing.id, result):
            result.processed += 1
        return True


def create_detector(config: Optional[ProjectConfig] = None,
                    repository: Optional[ObjectRepository] = None,
                    vectorizer: Optional[Vectorizer] = None,
                    completion_service: Optional[TextCompletionService] = None,
                    segment_provider: Optional[SegmentFilterProvider] = None,
                    progress_callback: Optional[ProgressCallback] = None) -> BaseDetector:
    """
    Build the engine selected by ``config.engine_mode``.

    Raises:
        ConfigurationError: On an unknown mode or missing collaborators
    """
    config = config or ProjectConfig()
    if config.engine_mode == "hybrid":
        return DuplicateDetectionEngine(config, repository, vectorizer, completion_service,
                                        segment_provider, progress_callback)
    if config.engine_mode == "clustering":
        return AdvancedDuplicateDetector(config, repository, segment_provider=segment_provider,
                                         progress_callback=progress_callback)
    raise ConfigurationError(f"Unknown engine mode '{config.engine_mode}'")

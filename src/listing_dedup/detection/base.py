"""
Shared run loop for the duplicate detection engines.

Collect -> group by address -> process each group -> aggregate counters.
Address groups share no mutable state, so they may be processed by a
joblib thread pool; inside a group everything is sequential.
"""

import time
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from joblib import Parallel, delayed

from ..config import ProjectConfig
from ..exceptions import ConfigurationError, RepositoryError, call_with_timeout
from ..interfaces import ObjectRepository, ProgressCallback, SegmentFilter, SegmentFilterProvider
from ..models import Listing, ProcessingStatus, ProgressEvent, RealEstateObject
from .results import DetectionResults, GroupResult

logger = logging.getLogger(__name__)

ListingPredicate = Callable[[Listing], bool]


def chronological_key(listing: Listing) -> Tuple[bool, datetime, str]:
    """Oldest first; listings without a timestamp go last, ties broken by id."""
    return (listing.created is None, listing.created or datetime.min, str(listing.id))


def group_by_address(listings: Iterable[Listing]) -> Dict[str, List[Listing]]:
    """Partition listings by address id, keeping first-seen address order."""
    groups: Dict[str, List[Listing]] = {}
    for listing in listings:
        if listing.address_id:
            groups.setdefault(listing.address_id, []).append(listing)
    return groups


def processing_stats(listings: Sequence[Listing]) -> Dict[str, int]:
    """Status distribution of address-matched listings."""
    with_address = [l for l in listings if l.address_id]
    total = len(with_address)
    processed = sum(1 for l in with_address if l.processing_status == ProcessingStatus.PROCESSED)
    return {
        'total': total,
        'need_processing': sum(1 for l in with_address
                               if l.processing_status == ProcessingStatus.DUPLICATE_CHECK_NEEDED),
        'processed': processed,
        'has_objects': sum(1 for l in with_address if l.object_id),
        'efficiency': round(processed / total * 100) if total else 0,
    }


class BaseDetector(ABC):
    """
    Template for a processing run; subclasses implement ``process_group``.
    """

    mode = "base"

    def __init__(self, config: Optional[ProjectConfig] = None,
                 repository: Optional[ObjectRepository] = None,
                 segment_provider: Optional[SegmentFilterProvider] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        if repository is None:
            raise ConfigurationError("An object repository is required")
        if not isinstance(repository, ObjectRepository):
            raise ConfigurationError(
                f"{type(repository).__name__} does not implement the ObjectRepository contract")
        self.config = config or ProjectConfig()
        self.repository = repository
        self.segment_provider = segment_provider
        self.progress_callback = progress_callback
        self._progress = 0

    # -- collect -----------------------------------------------------------

    def collect(self, listings: Sequence[Listing], predicate: Optional[ListingPredicate] = None,
                listing_ids: Optional[Iterable[str]] = None,
                segment_filter: Optional[SegmentFilter] = None) -> Tuple[List[Listing], int]:
        """
        Select listings awaiting the duplicate check.

        Args:
            listings: Candidate pool
            predicate: Optional caller filter
            listing_ids: Restrict to these ids
            segment_filter: Restrict to addresses of these market segments

        Returns:
            Eligible listings and the number of malformed listings skipped

        Raises:
            ConfigurationError: Segment filter given without a segment provider
        """
        selected = [l for l in listings if l.processing_status == ProcessingStatus.DUPLICATE_CHECK_NEEDED]

        if listing_ids is not None:
            wanted = {str(i) for i in listing_ids}
            selected = [l for l in selected if l.id in wanted]
            logger.info(f"Listing id filter applied: {len(selected)} listings")
        elif segment_filter is not None and not segment_filter.is_empty:
            if self.segment_provider is None:
                raise ConfigurationError("Segment filter requested but no segment provider configured")
            selected = self.segment_provider.filter_listings(selected, segment_filter)
            logger.info(f"Segment filter applied: {len(selected)} listings")

        if predicate is not None:
            selected = [l for l in selected if predicate(l)]

        eligible, malformed = [], 0
        for listing in selected:
            problem = self.validate_listing(listing)
            if problem:
                logger.warning(f"Skipping listing {listing.id}: {problem}")
                malformed += 1
            else:
                eligible.append(listing)
        return eligible, malformed

    def validate_listing(self, listing: Listing) -> Optional[str]:
        if not listing.address_id:
            return "no address"
        if self.config.require_description and not (listing.description and listing.description.strip()):
            return "no description"
        return None

    def get_processing_stats(self, listings: Sequence[Listing],
                             segment_filter: Optional[SegmentFilter] = None) -> Dict[str, int]:
        if segment_filter is not None and not segment_filter.is_empty and self.segment_provider is not None:
            listings = self.segment_provider.filter_listings(list(listings), segment_filter)
        return processing_stats(listings)

    # -- run ---------------------------------------------------------------

    def run(self, listings: Sequence[Listing], predicate: Optional[ListingPredicate] = None,
            listing_ids: Optional[Iterable[str]] = None,
            segment_filter: Optional[SegmentFilter] = None) -> DetectionResults:
        """
        Process every eligible listing.

        Only configuration errors escape; everything else is contained to a
        listing, pair or group and counted in ``errors``.
        """
        start_time = time.perf_counter()
        results = DetectionResults(mode=self.mode)

        eligible, malformed = self.collect(listings, predicate, listing_ids, segment_filter)
        results.errors += malformed
        results.skipped += malformed
        results.total_found = len(eligible)
        logger.info(f"Found {len(eligible)} listings for duplicate detection ({malformed} skipped)")

        if not eligible:
            results.message = "No listings need duplicate processing"
            results.total_time = time.perf_counter() - start_time
            self.emit('completed', results.message, 100)
            return results

        self.prepare(eligible, results)

        groups = group_by_address(eligible)
        self.emit('grouped', f"Grouped into {len(groups)} addresses", 25)

        parallel = Parallel(n_jobs=self.config.n_jobs, backend="threading", return_as="generator")
        tasks = (delayed(self._process_group_safely)(address_id, sorted(group, key=chronological_key))
                 for address_id, group in groups.items())
        for done, group_result in enumerate(parallel(tasks), start=1):
            results.add_group(group_result)
            self.emit(f'{self.mode}_processing', f"Processed groups: {done}/{len(groups)}",
                      round(25 + done / len(groups) * 70))

        self.finalize(results)
        results.total_time = time.perf_counter() - start_time
        self.emit('completed', 'Duplicate processing finished', 100, statistics={
            'embedding_time': results.embedding_time,
            'ai_time': results.ai_time,
            'total_time': results.total_time,
        })
        logger.info(results.summary())
        return results

    def _process_group_safely(self, address_id: str, listings: List[Listing]) -> GroupResult:
        result = GroupResult(address_id=address_id)
        try:
            self.process_group(address_id, listings, result)
        except Exception as e:
            logger.error(f"Processing of address group {address_id} aborted: {e}", exc_info=True)
            result.errors += 1
        return result

    def prepare(self, listings: List[Listing], results: DetectionResults):
        """Hook run once before grouping."""

    def finalize(self, results: DetectionResults):
        """Hook run once after all groups."""

    @abstractmethod
    def process_group(self, address_id: str, listings: List[Listing], result: GroupResult):
        """Place the chronologically sorted listings of one address into objects."""

    # -- repository writes -----------------------------------------------

    def _repository_call(self, func, *args):
        try:
            return call_with_timeout(func, self.config.repository_timeout, *args)
        except RepositoryError:
            raise
        except Exception as e:
            raise RepositoryError(f"{getattr(func, '__name__', func)} failed: {e}") from e

    def create_object(self, address_id: str, listing_ids: List[str]) -> RealEstateObject:
        obj = self._repository_call(self.repository.create_object, address_id, listing_ids)
        logger.info(f"Created object {obj.id} at address {address_id} from {listing_ids}")
        return obj

    def add_to_object(self, object_id: str, listing_ids: List[str]) -> RealEstateObject:
        obj = self._repository_call(self.repository.add_listings_to_object, object_id, listing_ids)
        logger.info(f"Added {listing_ids} to object {object_id}")
        return obj

    def mark_processed(self, listing_id: str, result: GroupResult) -> bool:
        """Status update after a confirmed write; failures are counted, not raised."""
        try:
            self._repository_call(self.repository.update_listing_status, listing_id, ProcessingStatus.PROCESSED)
            return True
        except RepositoryError as e:
            logger.error(f"Status update failed for listing {listing_id}: {e}")
            result.errors += 1
            return False

    def retry_status_update(self, listing: Listing, object_id: str, result: GroupResult):
        """Finish a listing written to an object in an earlier run whose status update was lost."""
        logger.info(f"Listing {listing.id} already belongs to object {object_id}, retrying status update")
        if self.mark_processed(listing.id, result):
            result.processed += 1
        result.touch(object_id)

    # -- progress ----------------------------------------------------------

    def emit(self, stage: str, message: str, progress_percent: Optional[int] = None, statistics=None):
        if progress_percent is not None:
            self._progress = progress_percent
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(ProgressEvent(stage=stage, message=message,
                                                 progress_percent=self._progress, statistics=statistics))
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

"""
Clustering Duplicate Detector

Alternative merge policy without AI: every pair of an address group is
scored by the ListingComparator, and connected components of the
"score >= cluster threshold" graph become objects. Clusters are transitive:
A~B and B~C put A, B and C together even when A and C score low.
"""

import logging
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..config import ProjectConfig
from ..exceptions import RepositoryError
from ..interfaces import ObjectRepository, ProgressCallback, SegmentFilterProvider
from ..models import Listing
from .base import BaseDetector
from .pair_comparator import ListingComparator
from .results import GroupResult

logger = logging.getLogger(__name__)


def connected_components(matrix: Union[pd.DataFrame, np.ndarray], threshold: float) -> List[List[int]]:
    """
    Connected components of the graph linking i and j when matrix[i, j] >= threshold.

    Args:
        matrix: Square symmetric similarity matrix
        threshold: Minimum score of an edge

    Returns:
        Components as ascending positional indices, ordered by their first member
    """
    values = matrix.to_numpy() if isinstance(matrix, pd.DataFrame) else np.asarray(matrix)
    n = values.shape[0]
    adjacency = values >= threshold

    visited = set()
    components = []
    for start in range(n):
        if start in visited:
            continue
        component = []
        stack = [start]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            component.append(current)
            stack.extend(j for j in np.flatnonzero(adjacency[current]) if j not in visited)
        components.append(sorted(int(i) for i in component))
    return components


class AdvancedDuplicateDetector(BaseDetector):
    """
    Pairwise scoring plus connected-components clustering.
    """

    mode = "clustering"

    def __init__(self, config: Optional[ProjectConfig] = None,
                 repository: Optional[ObjectRepository] = None,
                 comparator: Optional[ListingComparator] = None,
                 segment_provider: Optional[SegmentFilterProvider] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        super().__init__(config, repository, segment_provider, progress_callback)
        self.comparator = comparator or ListingComparator(self.config.scoring, self.config.feature_language)

    def similarity_matrix(self, listings: Sequence[Listing], result: Optional[GroupResult] = None) -> pd.DataFrame:
        """
        Pairwise final scores indexed by listing id.

        A pair whose comparison raises scores 0.0 and is counted as an error.
        """
        ids = [l.id for l in listings]
        values = np.eye(len(listings))
        for i in range(len(listings)):
            for j in range(i + 1, len(listings)):
                try:
                    score = self.comparator.score(listings[i], listings[j]).final
                except Exception as e:
                    logger.error(f"Comparison {listings[i].id} vs {listings[j].id} failed: {e}")
                    score = 0.0
                    if result is not None:
                        result.errors += 1
                if result is not None:
                    result.analyzed += 1
                values[i, j] = values[j, i] = score
        return pd.DataFrame(values, index=ids, columns=ids)

    def process_group(self, address_id: str, listings: List[Listing], result: GroupResult):
        unplaced = []
        for listing in listings:
            if listing.object_id:
                self.retry_status_update(listing, listing.object_id, result)
            else:
                unplaced.append(listing)
        listings = unplaced

        if not listings:
            return
        if len(listings) == 1:
            self._commit_cluster(address_id, listings, result)
            return

        matrix = self.similarity_matrix(listings, result)
        components = connected_components(matrix, self.config.cluster_threshold)
        logger.info(f"Address {address_id}: {len(listings)} listings in {len(components)} clusters")

        for component in components:
            cluster = [listings[i] for i in component]
            if len(component) == 1 and self._needs_review(matrix, component[0]):
                logger.info(f"Listing {cluster[0].id} left for manual review")
                result.manual_review += 1
                continue
            self._commit_cluster(address_id, cluster, result)

    def _needs_review(self, matrix: pd.DataFrame, index: int) -> bool:
        """A lone listing whose best pair score fell in the review band."""
        if not self.config.leave_ambiguous_for_review:
            return False
        row = matrix.iloc[index].drop(matrix.index[index])
        best = float(row.max()) if len(row) else 0.0
        return self.config.review_threshold <= best < self.config.cluster_threshold

    def _commit_cluster(self, address_id: str, cluster: List[Listing], result: GroupResult):
        listing_ids = [l.id for l in cluster]
        try:
            obj = self.create_object(address_id, listing_ids)
        except RepositoryError as e:
            logger.error(f"Could not create object for {listing_ids}, leaving them for retry: {e}")
            result.errors += 1
            return

        result.objects_created += 1
        result.merged += len(cluster) - 1
        result.touch(obj.id)
        for listing_id in listing_ids:
            if self.mark_processed(listing_id, result):
                result.processed += 1

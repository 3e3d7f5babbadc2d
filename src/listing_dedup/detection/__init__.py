from .score_calculator import ScoreCalculator
from .pair_comparator import ListingComparator, PairComparison
from .embedding_filter import EmbeddingSimilarityFilter, EmbeddingFilterResult, build_comparison_text
from .ai_verifier import AIDuplicateVerifier, ProviderChain, Verdict, parse_response
from .results import DetectionResults, GroupResult
from .base import BaseDetector, chronological_key, group_by_address, processing_stats
from .advanced import AdvancedDuplicateDetector, connected_components
from .engine import DuplicateDetectionEngine, create_detector, filter_relevant_listings, is_compatible_floor

__all__ = [
    'ScoreCalculator',
    'ListingComparator',
    'PairComparison',
    'EmbeddingSimilarityFilter',
    'EmbeddingFilterResult',
    'AIDuplicateVerifier',
    'ProviderChain',
    'Verdict',
    'DetectionResults',
    'GroupResult',
    'BaseDetector',
    'AdvancedDuplicateDetector',
    'DuplicateDetectionEngine',
    'build_comparison_text',
    'parse_response',
    'chronological_key',
    'group_by_address',
    'processing_stats',
    'connected_components',
    'create_detector',
    'filter_relevant_listings',
    'is_compatible_floor',
]

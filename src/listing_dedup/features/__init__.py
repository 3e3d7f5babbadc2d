from .feature_extractor import FeatureExtractor, FeatureComparison
from .structured_features import SpecificationComparator, SpecificationComparison, compare_specifications
from .text_features import TextSimilarityAnalyzer, TextSimilarity, analyze_text_similarity
from .contact_features import ContactRelationAnalyzer, SellerRelation, normalize_phone
from .price_features import PriceHistoryAnalyzer, PriceRelation
from .location_features import haversine_distance, location_similarity

__all__ = [
    'FeatureExtractor',
    'FeatureComparison',
    'SpecificationComparator',
    'SpecificationComparison',
    'TextSimilarityAnalyzer',
    'TextSimilarity',
    'ContactRelationAnalyzer',
    'SellerRelation',
    'PriceHistoryAnalyzer',
    'PriceRelation',
    'compare_specifications',
    'analyze_text_similarity',
    'normalize_phone',
    'haversine_distance',
    'location_similarity',
]

"""
Listing duplicate detection: merges scraped real-estate listings that
describe the same flat into canonical objects.
"""
from .config import ProjectConfig, ScoringConfig
from .exceptions import (
    CollaboratorError,
    CollaboratorTimeoutError,
    ConfigurationError,
    DeduplicationError,
    RepositoryError,
)
from .models import Listing, ProcessingStatus, RealEstateObject
from .detection import (
    AdvancedDuplicateDetector,
    DuplicateDetectionEngine,
    ScoreCalculator,
    create_detector,
)
from .repository import InMemoryObjectRepository, load_listings_csv
from .segments import AddressSegmentFilterProvider, Segment, Subsegment

__version__ = "0.1.0"

__all__ = [
    'ProjectConfig',
    'ScoringConfig',
    'DeduplicationError',
    'ConfigurationError',
    'CollaboratorError',
    'CollaboratorTimeoutError',
    'RepositoryError',
    'Listing',
    'ProcessingStatus',
    'RealEstateObject',
    'AdvancedDuplicateDetector',
    'DuplicateDetectionEngine',
    'ScoreCalculator',
    'create_detector',
    'InMemoryObjectRepository',
    'load_listings_csv',
    'AddressSegmentFilterProvider',
    'Segment',
    'Subsegment',
]

"""
Configuration management
"""
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict

from .exceptions import ConfigurationError

ENGINE_MODES = ("hybrid", "clustering")
AI_LANGUAGES = ("ru", "en")


@dataclass
class ScoringConfig:
    """Signal weights, bonuses and confidence thresholds"""

    # Signal weights (sum to 1.0)
    unique_features_weight: float = 0.35
    specification_weight: float = 0.25
    text_weight: float = 0.20
    seller_relation_weight: float = 0.10
    price_history_weight: float = 0.05
    location_weight: float = 0.05

    # Bonuses
    unique_features_bonus: float = 0.10
    unique_features_bonus_min: float = 0.8
    exact_specification_bonus: float = 0.05
    same_seller_bonus: float = 0.05

    # Confidence tiers
    auto_merge_threshold: float = 0.80
    high_threshold: float = 0.70
    medium_threshold: float = 0.55
    low_threshold: float = 0.35

    @property
    def weights(self) -> Dict[str, float]:
        """Signal weights keyed by signal name"""
        return {
            'unique_features': self.unique_features_weight,
            'specification': self.specification_weight,
            'text': self.text_weight,
            'seller_relation': self.seller_relation_weight,
            'price_history': self.price_history_weight,
            'location': self.location_weight,
        }

    @property
    def thresholds(self) -> Dict[str, float]:
        """Tier thresholds, highest first"""
        return {
            'auto_merge': self.auto_merge_threshold,
            'high': self.high_threshold,
            'medium': self.medium_threshold,
            'low': self.low_threshold,
        }

    def validate(self):
        for name, value in {**self.weights, **self.thresholds}.items():
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"Scoring value '{name}' must be within [0, 1], got {value}")
        ordered = [self.auto_merge_threshold, self.high_threshold,
                   self.medium_threshold, self.low_threshold]
        if ordered != sorted(ordered, reverse=True):
            raise ConfigurationError(f"Confidence thresholds must be descending, got {ordered}")


@dataclass
class ProjectConfig:
    """Main project configuration"""

    # Project paths
    project_root: Path = Path(__file__).resolve().parent.parent.parent
    data_dir: Path = project_root / "data"
    models_dir: Path = project_root / "models"
    logs_dir: Path = project_root / "logs"

    # Data files
    listings_file: str = "listings.csv"
    embedding_cache_file: str = "embedding_cache.joblib"

    # Embedding stage
    embedding_model_id: str = "paraphrase-multilingual-MiniLM-L12-v2"
    embedding_threshold: float = 0.82
    max_candidates_for_ai: int = 15
    embedding_batch_size: int = 10
    cache_embeddings: bool = True
    embedding_text_max_length: int = 1500

    # AI verification stage
    ai_language: str = "ru"
    ai_max_tokens: int = 10
    ai_description_max_length: int = 500

    # Timeouts for external calls, seconds (0 disables)
    embedding_timeout: float = 60.0
    ai_timeout: float = 60.0
    repository_timeout: float = 30.0

    # Merge policy
    engine_mode: str = "hybrid"
    cluster_threshold: float = 0.70
    review_threshold: float = 0.55
    leave_ambiguous_for_review: bool = True
    require_description: bool = True

    # Scoring model
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    # Processing settings
    n_jobs: int = 1  # Independent address groups processed in parallel
    feature_language: str = "ru"

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    api_debug: bool = False

    # Logging
    log_level: str = "INFO"
    verbose: bool = True

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise ConfigurationError on invalid settings"""
        if self.engine_mode not in ENGINE_MODES:
            raise ConfigurationError(
                f"Unknown engine mode '{self.engine_mode}', expected one of {ENGINE_MODES}")
        if self.ai_language not in AI_LANGUAGES:
            raise ConfigurationError(
                f"Unsupported AI language '{self.ai_language}', expected one of {AI_LANGUAGES}")
        for name in ('embedding_threshold', 'cluster_threshold', 'review_threshold'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"'{name}' must be within [0, 1], got {value}")
        if self.max_candidates_for_ai < 1:
            raise ConfigurationError("'max_candidates_for_ai' must be positive")
        if self.embedding_batch_size < 1:
            raise ConfigurationError("'embedding_batch_size' must be positive")
        if self.n_jobs == 0:
            raise ConfigurationError("'n_jobs' must be non-zero")
        self.scoring.validate()

    def ensure_directories(self):
        """Create directories if they don't exist"""
        for directory in [self.data_dir, self.models_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def listings_path(self) -> Path:
        """Full path to listings CSV file"""
        return self.data_dir / self.listings_file

    @property
    def embedding_cache_path(self) -> Path:
        """Full path to the persisted embedding cache"""
        return self.models_dir / self.embedding_cache_file

    def to_dict(self) -> Dict:
        """JSON-friendly view of the configuration"""
        data = asdict(self)
        for key in ('project_root', 'data_dir', 'models_dir', 'logs_dir'):
            data[key] = str(data[key])
        return data

    @classmethod
    def from_env(cls) -> "ProjectConfig":
        """Create configuration from environment variables"""
        defaults = cls()

        def env_float(name: str, default: float) -> float:
            return float(os.getenv(name, default))

        def env_bool(name: str, default: bool) -> bool:
            return os.getenv(name, str(default)).lower() == "true"

        config = cls(
            embedding_model_id=os.getenv("DEDUP_EMBEDDING_MODEL", defaults.embedding_model_id),
            embedding_threshold=env_float("DEDUP_EMBEDDING_THRESHOLD", defaults.embedding_threshold),
            max_candidates_for_ai=int(os.getenv("DEDUP_MAX_CANDIDATES_FOR_AI", defaults.max_candidates_for_ai)),
            cache_embeddings=env_bool("DEDUP_CACHE_EMBEDDINGS", defaults.cache_embeddings),
            ai_language=os.getenv("DEDUP_AI_LANGUAGE", defaults.ai_language),
            embedding_timeout=env_float("DEDUP_EMBEDDING_TIMEOUT", defaults.embedding_timeout),
            ai_timeout=env_float("DEDUP_AI_TIMEOUT", defaults.ai_timeout),
            repository_timeout=env_float("DEDUP_REPOSITORY_TIMEOUT", defaults.repository_timeout),
            engine_mode=os.getenv("DEDUP_ENGINE_MODE", defaults.engine_mode),
            cluster_threshold=env_float("DEDUP_CLUSTER_THRESHOLD", defaults.cluster_threshold),
            n_jobs=int(os.getenv("DEDUP_N_JOBS", defaults.n_jobs)),
            api_host=os.getenv("API_HOST", defaults.api_host),
            api_port=int(os.getenv("API_PORT", defaults.api_port)),
            api_debug=env_bool("API_DEBUG", False),
            log_level=os.getenv("DEDUP_LOG_LEVEL", defaults.log_level).upper(),
            verbose=env_bool("VERBOSE", True),
        )
        return config

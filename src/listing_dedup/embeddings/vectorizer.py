"""
Sentence-Transformer Vectorizer for Listing Comparison Texts

Reference implementation of the Vectorizer contract used by the embedding
similarity filter. Vectors are cached in an explicitly constructed
EmbeddingCache that the caller owns and may persist between runs.
"""

import hashlib
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import joblib
import numpy as np
import torch
from sentence_transformers import SentenceTransformer
from sklearn.metrics.pairwise import cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "paraphrase-multilingual-MiniLM-L12-v2"


def select_device(use_mps: bool = True) -> torch.device:
    """Pick the fastest available torch device: MPS, then CUDA, then CPU."""
    if use_mps and torch.backends.mps.is_available():
        logger.info("Using MPS acceleration")
        return torch.device("mps")
    if torch.cuda.is_available():
        logger.info("Using CUDA acceleration")
        return torch.device("cuda")
    logger.info("Using CPU (no GPU acceleration available)")
    return torch.device("cpu")


class EmbeddingCache:
    """
    In-memory embedding store keyed by model id and text hash.

    Thread-safe; lifetime is whatever the owner gives it.
    """

    def __init__(self):
        self._vectors: Dict[str, np.ndarray] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(text: str, model_id: str) -> str:
        digest = hashlib.sha256(text.encode('utf-8')).hexdigest()
        return f"{model_id}:{digest}"

    def get(self, text: str, model_id: str) -> Optional[np.ndarray]:
        key = self.make_key(text, model_id)
        with self._lock:
            vector = self._vectors.get(key)
            if vector is None:
                self.misses += 1
            else:
                self.hits += 1
            return vector

    def put(self, text: str, model_id: str, vector: Sequence[float]):
        with self._lock:
            self._vectors[self.make_key(text, model_id)] = np.asarray(vector, dtype=np.float32)

    def clear(self, model_id: Optional[str] = None) -> int:
        """Drop all vectors, or only those of one model; returns the number removed."""
        with self._lock:
            if model_id is None:
                removed = len(self._vectors)
                self._vectors.clear()
            else:
                prefix = f"{model_id}:"
                keys = [k for k in self._vectors if k.startswith(prefix)]
                for key in keys:
                    del self._vectors[key]
                removed = len(keys)
            return removed

    def stats(self) -> Dict[str, Union[int, float]]:
        with self._lock:
            lookups = self.hits + self.misses
            return {
                'size': len(self._vectors),
                'hits': self.hits,
                'misses': self.misses,
                'hit_rate': self.hits / lookups if lookups else 0.0,
            }

    def save(self, path: Union[str, Path]):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            joblib.dump(dict(self._vectors), path)
        logger.info(f"Saved {len(self)} embeddings to {path}")

    def load(self, path: Union[str, Path]) -> int:
        """Merge vectors from a saved cache file; a missing file loads nothing."""
        path = Path(path)
        try:
            vectors = joblib.load(path)
        except FileNotFoundError:
            logger.warning(f"Embedding cache not found at {path}, starting empty")
            return 0
        with self._lock:
            self._vectors.update(vectors)
        logger.info(f"Loaded {len(vectors)} embeddings from {path}")
        return len(vectors)

    def __len__(self) -> int:
        return len(self._vectors)


class SentenceTransformerVectorizer:
    """
    Cache-aware Vectorizer backed by sentence-transformers models.
    """

    def __init__(self, model_id: str = DEFAULT_MODEL_ID, cache: Optional[EmbeddingCache] = None,
                 use_cache: bool = True, batch_size: int = 10, use_mps: bool = True,
                 model: Optional[SentenceTransformer] = None):
        """
        Initialize the vectorizer.

        Args:
            model_id: Default model identifier
            cache: Embedding cache to use; a private one is created if None
            use_cache: Whether to read and write the cache
            batch_size: Encoding batch size
            use_mps: Whether to use MPS acceleration on Apple Silicon
            model: Preloaded model for ``model_id`` (skips loading)
        """
        self.model_id = model_id
        self.cache = cache if cache is not None else EmbeddingCache()
        self.use_cache = use_cache
        self.batch_size = batch_size
        self.device = select_device(use_mps)
        self._models: Dict[str, SentenceTransformer] = {}
        if model is not None:
            self._models[model_id] = model
        self._load_lock = threading.Lock()

    def get_model(self, model_id: Optional[str] = None) -> SentenceTransformer:
        model_id = model_id or self.model_id
        with self._load_lock:
            if model_id not in self._models:
                logger.info(f"Loading Sentence-BERT model: {model_id}")
                self._models[model_id] = SentenceTransformer(model_id, device=str(self.device))
            return self._models[model_id]

    def embed(self, text: str, model_id: Optional[str] = None) -> np.ndarray:
        return self.embed_batch([text], model_id)[0]

    def embed_batch(self, texts: List[str], model_id: Optional[str] = None) -> List[np.ndarray]:
        """
        Embed texts, encoding only the ones missing from the cache.

        Args:
            texts: Texts to embed
            model_id: Model identifier (defaults to the vectorizer's model)

        Returns:
            One vector per input text, in input order
        """
        model_id = model_id or self.model_id
        vectors: List[Optional[np.ndarray]] = [None] * len(texts)
        missing: Dict[str, List[int]] = {}

        for index, text in enumerate(texts):
            cached = self.cache.get(text, model_id) if self.use_cache else None
            if cached is not None:
                vectors[index] = cached
            else:
                missing.setdefault(text, []).append(index)

        if missing:
            unique_texts = list(missing)
            encoded = self.get_model(model_id).encode(
                unique_texts,
                batch_size=self.batch_size,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
            for text, vector in zip(unique_texts, encoded):
                vector = np.asarray(vector, dtype=np.float32)
                if self.use_cache:
                    self.cache.put(text, model_id, vector)
                for index in missing[text]:
                    vectors[index] = vector
            logger.debug(f"Encoded {len(unique_texts)} texts with {model_id}, "
                         f"{len(texts) - sum(len(v) for v in missing.values())} from cache")

        return vectors

    @staticmethod
    def cosine_similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
        a = np.asarray(vector_a, dtype=float).reshape(1, -1)
        b = np.asarray(vector_b, dtype=float).reshape(1, -1)
        return float(cosine_similarity(a, b)[0][0])

    def get_model_info(self) -> Dict:
        return {
            'model_id': self.model_id,
            'device': str(self.device),
            'loaded_models': list(self._models),
            'cache': self.cache.stats(),
        }

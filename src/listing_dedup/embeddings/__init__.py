from .vectorizer import EmbeddingCache, SentenceTransformerVectorizer, select_device

__all__ = ['EmbeddingCache', 'SentenceTransformerVectorizer', 'select_device']

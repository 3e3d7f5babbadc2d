"""
Text Similarity Analyzer for Real Estate Duplicate Detection

This module compares two listing descriptions lexically.

Scores produced:
1. cosine - cosine similarity of TF-IDF vectors fitted on the two-document corpus
2. jaccard - Jaccard similarity of the normalized token sets
3. combined - 0.7 * cosine + 0.3 * jaccard

Normalization: lowercase, strip punctuation (Cyrillic letters are kept),
replace digit runs with a placeholder token, drop stop-words and tokens
shorter than 3 characters.
"""

import re
import logging
from dataclasses import dataclass
from typing import List, Optional, Set, Union

import pandas as pd
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

logger = logging.getLogger(__name__)

NUMBER_TOKEN = "NUM"
MIN_TOKEN_LENGTH = 3

STOP_WORDS = frozenset([
    'в', 'на', 'с', 'по', 'из', 'от', 'до', 'для', 'при', 'без', 'под', 'над', 'через',
    'о', 'об', 'про', 'за', 'к', 'у', 'и', 'или', 'но', 'да', 'не', 'ни', 'же', 'ли',
    'квартира', 'комната', 'дом', 'продам', 'продается', 'продаю', 'срочно', 'недорого',
    'цена', 'стоимость', 'рублей', 'руб', 'тысяч', 'млн', 'миллион', 'тыс',
])

_NON_WORD = re.compile(r'[^\w\s]')
_DIGITS = re.compile(r'\d+')


@dataclass
class TextSimilarity:
    cosine: float
    jaccard: float
    combined: float
    confidence: str  # high | medium | low


class TextSimilarityAnalyzer:
    """
    Lexical similarity of two free-text descriptions (TF-IDF cosine + Jaccard).
    """

    def __init__(self, cosine_weight: float = 0.7, jaccard_weight: float = 0.3,
                 stop_words: Optional[Set[str]] = None):
        """
        Initialize the text analyzer.

        Args:
            cosine_weight: Weight of the TF-IDF cosine score in the combined score
            jaccard_weight: Weight of the Jaccard score in the combined score
            stop_words: Override for the default stop-word list
        """
        self.cosine_weight = cosine_weight
        self.jaccard_weight = jaccard_weight
        self.stop_words = frozenset(stop_words) if stop_words is not None else STOP_WORDS

    def analyze(self, description_A: Union[str, None], description_B: Union[str, None]) -> TextSimilarity:
        """
        Compare two descriptions.

        Args:
            description_A: First listing description (can be None)
            description_B: Second listing description (can be None)

        Returns:
            TextSimilarity with cosine, jaccard, combined score and confidence tier
        """
        tokens_A = self.tokenize(description_A)
        tokens_B = self.tokenize(description_B)

        cosine = self._tfidf_similarity(tokens_A, tokens_B)
        jaccard = self._jaccard_similarity(tokens_A, tokens_B)
        combined = cosine * self.cosine_weight + jaccard * self.jaccard_weight

        if combined > 0.8:
            confidence = 'high'
        elif combined > 0.6:
            confidence = 'medium'
        else:
            confidence = 'low'

        return TextSimilarity(cosine=cosine, jaccard=jaccard, combined=combined, confidence=confidence)

    def normalize(self, description: Union[str, None]) -> str:
        """Clean and normalize description text."""
        return ' '.join(self.tokenize(description))

    def tokenize(self, description: Union[str, None]) -> List[str]:
        """Normalized token list of a description."""
        if description is None or pd.isna(description):
            return []

        text = str(description).lower()
        text = _NON_WORD.sub(' ', text)
        text = _DIGITS.sub(NUMBER_TOKEN, text)
        return [
            token for token in text.split()
            if len(token) >= MIN_TOKEN_LENGTH and token not in self.stop_words
        ]

    def _tfidf_similarity(self, tokens_A: List[str], tokens_B: List[str]) -> float:
        """Cosine similarity of TF-IDF vectors fitted on the pair."""
        if not tokens_A or not tokens_B:
            return 0.0

        vectorizer = TfidfVectorizer(
            tokenizer=str.split,
            preprocessor=None,
            token_pattern=None,
            lowercase=False,
        )
        vectors = vectorizer.fit_transform([' '.join(tokens_A), ' '.join(tokens_B)])
        similarity = cosine_similarity(vectors[0:1], vectors[1:2])[0][0]
        return min(float(similarity), 1.0)

    @staticmethod
    def _jaccard_similarity(tokens_A: List[str], tokens_B: List[str]) -> float:
        set_A, set_B = set(tokens_A), set(tokens_B)
        union = set_A | set_B
        if not union:
            return 0.0
        return len(set_A & set_B) / len(union)


# Convenience function for quick comparison
def analyze_text_similarity(description_A: Union[str, None],
                            description_B: Union[str, None]) -> TextSimilarity:
    """
    Convenience function to compare two descriptions.

    Args:
        description_A: First description
        description_B: Second description

    Returns:
        TextSimilarity
    """
    return TextSimilarityAnalyzer().analyze(description_A, description_B)

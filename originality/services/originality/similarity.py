"""Multi-signal similarity between a text unit and a candidate.

Signals, all in [0, 1]:

* lexical: bigram Dice coefficient over normalized text
* semantic: cosine of sentence embeddings (raw text)
* structural: character n-gram Jaccard
* jaccard: word-set Jaccard
* rerank: cross-encoder relevance (raw text)

A near-verbatim lexical match short-circuits the ensemble.
"""

import asyncio
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Optional, Sequence

import numpy as np

from originality.core.exceptions import DimensionMismatchError
from originality.services.originality.contracts import EmbeddingProvider, RerankProvider
from originality.services.originality.normalizer import ContentNormalizer
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)


def dice_coefficient(a: str, b: str) -> float:
    """Bigram Dice coefficient with whitespace removed.

    Bigrams are counted as a multiset. Equal non-empty strings score 1.0;
    strings shorter than two characters otherwise score 0.
    """
    first = "".join(a.split())
    second = "".join(b.split())
    if not first or not second:
        return 0.0
    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    first_bigrams = Counter(first[i:i + 2] for i in range(len(first) - 1))
    intersection = 0
    for i in range(len(second) - 1):
        bigram = second[i:i + 2]
        if first_bigrams[bigram] > 0:
            first_bigrams[bigram] -= 1
            intersection += 1

    return 2.0 * intersection / (len(first) + len(second) - 2)


def ngram_similarity(a: str, b: str, n: int = 3) -> float:
    """Jaccard overlap of character n-gram sets."""
    def grams(text: str) -> set[str]:
        return {text[i:i + n] for i in range(len(text) - n + 1)}

    first, second = grams(a), grams(b)
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard overlap of word sets, order ignored."""
    first, second = set(a.split()), set(b.split())
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two vectors; 0.0 when either has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    va = np.asarray(a, dtype=float).ravel()
    vb = np.asarray(b, dtype=float).ravel()
    if va.shape != vb.shape:
        raise DimensionMismatchError(
            f"Cannot compare embeddings of dimension {va.shape[0]} and {vb.shape[0]}"
        )
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class SimilarityWeights:
    """Ensemble weights; need not sum to 1, renormalized at scoring time."""

    lexical: float = 0.15
    semantic: float = 0.35
    structural: float = 0.10
    jaccard: float = 0.10
    rerank: float = 0.30

    @classmethod
    def from_settings(cls, scan_settings) -> "SimilarityWeights":
        return cls(
            lexical=scan_settings.weight_lexical,
            semantic=scan_settings.weight_semantic,
            structural=scan_settings.weight_structural,
            jaccard=scan_settings.weight_jaccard,
            rerank=scan_settings.weight_rerank,
        )


@dataclass(frozen=True)
class SimilarityBreakdown:
    """Sub-scores of one comparison. ``None`` marks an unconfigured signal."""

    lexical: float
    combined: float
    semantic: Optional[float] = None
    structural: Optional[float] = None
    jaccard: Optional[float] = None
    rerank: Optional[float] = None
    short_circuited: bool = False

    @property
    def percentage(self) -> float:
        return round(self.combined * 100, 2)

    def to_dict(self) -> dict:
        return asdict(self)


class SimilarityScorer:
    """Scores a text unit against a candidate with a weighted ensemble."""

    def __init__(
        self,
        normalizer: ContentNormalizer,
        embedding_provider: Optional[EmbeddingProvider] = None,
        rerank_provider: Optional[RerankProvider] = None,
        weights: Optional[SimilarityWeights] = None,
        short_circuit_threshold: float = 0.85,
        ngram_size: int = 3,
        embedding_timeout: float = 10.0,
    ):
        self.normalizer = normalizer
        self.embedding_provider = embedding_provider
        self.rerank_provider = rerank_provider
        self.weights = weights or SimilarityWeights()
        self.short_circuit_threshold = short_circuit_threshold
        self.ngram_size = ngram_size
        self.embedding_timeout = embedding_timeout

    async def score(self, unit: str, candidate: str) -> float:
        breakdown = await self.breakdown(unit, candidate)
        return breakdown.combined

    async def breakdown(self, unit: str, candidate: str) -> SimilarityBreakdown:
        """Compute every signal and the combined score for one pair.

        Args:
            unit: Sentence from the scanned document
            candidate: Candidate snippet returned by a provider

        Returns:
            SimilarityBreakdown with the combined score clamped to [0, 1]
        """
        norm_unit = self.normalizer.normalize(unit)
        norm_candidate = self.normalizer.normalize(candidate)

        lexical = _clamp(dice_coefficient(norm_unit, norm_candidate))
        if lexical >= self.short_circuit_threshold:
            return SimilarityBreakdown(lexical=lexical, combined=lexical, short_circuited=True)

        structural = _clamp(ngram_similarity(norm_unit, norm_candidate, self.ngram_size))
        jaccard = _clamp(jaccard_similarity(norm_unit, norm_candidate))

        semantic = None
        if self.embedding_provider is not None:
            semantic = await self._semantic(unit, candidate)

        rerank = None
        if self.rerank_provider is not None:
            rerank = await self._rerank(unit, candidate)

        signals = [
            (lexical, self.weights.lexical),
            (semantic, self.weights.semantic),
            (structural, self.weights.structural),
            (jaccard, self.weights.jaccard),
            (rerank, self.weights.rerank),
        ]
        available = [(value, weight) for value, weight in signals if value is not None]
        total_weight = sum(weight for _, weight in available)
        combined = 0.0
        if total_weight > 0:
            combined = sum(value * weight for value, weight in available) / total_weight

        return SimilarityBreakdown(
            lexical=lexical,
            semantic=semantic,
            structural=structural,
            jaccard=jaccard,
            rerank=rerank,
            combined=_clamp(combined),
        )

    async def _semantic(self, unit: str, candidate: str) -> float:
        """Embedding cosine; any provider failure contributes 0."""
        try:
            first, second = await asyncio.wait_for(
                asyncio.gather(
                    self.embedding_provider.embed(unit),
                    self.embedding_provider.embed(candidate),
                ),
                timeout=self.embedding_timeout,
            )
            return _clamp(cosine_similarity(first, second))
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Embedding call timed out, semantic signal set to 0",
                extra={"timeout": self.embedding_timeout},
            )
        except DimensionMismatchError as e:
            LOGGER.warning(f"Embedding dimension mismatch, semantic signal set to 0: {e}")
        except Exception as e:
            LOGGER.warning(
                f"Embedding provider failed, semantic signal set to 0: {e}",
                extra={"error_type": type(e).__name__},
            )
        return 0.0

    async def _rerank(self, unit: str, candidate: str) -> float:
        """Cross-encoder relevance; any provider failure contributes 0."""
        try:
            value = await asyncio.wait_for(
                self.rerank_provider.score(unit, candidate),
                timeout=self.embedding_timeout,
            )
            return _clamp(float(value))
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Rerank call timed out, rerank signal set to 0",
                extra={"timeout": self.embedding_timeout},
            )
        except Exception as e:
            LOGGER.warning(
                f"Rerank provider failed, rerank signal set to 0: {e}",
                extra={"error_type": type(e).__name__},
            )
        return 0.0

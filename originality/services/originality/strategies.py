"""Scoring strategies: how a sentence is scored against its candidates.

``EnsembleStrategy`` blends every similarity signal. ``SingleProviderStrategy``
trusts the similarity a commercial scanner reports and only falls back to the
lexical signal when a candidate carries none.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from originality.core.exceptions import ConfigurationError
from originality.schemas.scan import Candidate
from originality.services.originality.similarity import (
    SimilarityBreakdown,
    SimilarityScorer,
    dice_coefficient,
)
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: float
    breakdown: Optional[SimilarityBreakdown] = None

    @property
    def percentage(self) -> float:
        return round(self.score * 100, 2)


class ScoringStrategy(ABC):
    """Picks the best-scoring candidate for one sentence."""

    name: str = "base"

    def __init__(self, max_candidates: int = 3):
        self.max_candidates = max_candidates

    @abstractmethod
    async def score_candidate(self, sentence: str, candidate: Candidate) -> ScoredCandidate:
        """Score one candidate against the sentence, in [0, 1]."""
        pass

    async def select(self, sentence: str, candidates: list[Candidate]) -> Optional[ScoredCandidate]:
        """Score the first ``max_candidates`` candidates and keep the best.

        Ties keep the earliest candidate. Returns None when no candidate has
        a snippet to compare.
        """
        best: Optional[ScoredCandidate] = None
        for candidate in candidates[:self.max_candidates]:
            if not candidate.snippet or not candidate.snippet.strip():
                continue
            scored = await self.score_candidate(sentence, candidate)
            if best is None or scored.score > best.score:
                best = scored
        return best


class EnsembleStrategy(ScoringStrategy):
    """Weighted multi-signal scoring through ``SimilarityScorer``."""

    name = "ensemble"

    def __init__(self, scorer: SimilarityScorer, max_candidates: int = 3):
        super().__init__(max_candidates=max_candidates)
        self.scorer = scorer

    async def score_candidate(self, sentence: str, candidate: Candidate) -> ScoredCandidate:
        breakdown = await self.scorer.breakdown(sentence, candidate.snippet)
        return ScoredCandidate(candidate=candidate, score=breakdown.combined, breakdown=breakdown)


class SingleProviderStrategy(ScoringStrategy):
    """Uses the provider's own similarity figure as the score."""

    name = "single_provider"

    def __init__(self, scorer: SimilarityScorer, max_candidates: int = 3):
        super().__init__(max_candidates=max_candidates)
        self.scorer = scorer

    async def score_candidate(self, sentence: str, candidate: Candidate) -> ScoredCandidate:
        if candidate.reported_similarity is not None:
            score = max(0.0, min(1.0, candidate.reported_similarity / 100))
            return ScoredCandidate(candidate=candidate, score=score)

        normalizer = self.scorer.normalizer
        lexical = dice_coefficient(normalizer.normalize(sentence), normalizer.normalize(candidate.snippet))
        return ScoredCandidate(candidate=candidate, score=max(0.0, min(1.0, lexical)))


STRATEGIES = {
    EnsembleStrategy.name: EnsembleStrategy,
    SingleProviderStrategy.name: SingleProviderStrategy,
}


def build_strategy(name: str, scorer: SimilarityScorer, max_candidates: int = 3) -> ScoringStrategy:
    """Instantiate a strategy by its configured name.

    Raises:
        ConfigurationError: If the name is unknown
    """
    key = (name or "").strip().lower()
    strategy_cls = STRATEGIES.get(key)
    if strategy_cls is None:
        raise ConfigurationError(
            f"Unknown scoring strategy '{name}'. Expected one of: {', '.join(sorted(STRATEGIES))}"
        )
    LOGGER.info("Using scoring strategy", extra={"strategy": key, "max_candidates": max_candidates})
    return strategy_cls(scorer, max_candidates=max_candidates)

"""Turns a similarity score into a per-match risk label."""

from dataclasses import dataclass

from originality.schemas.scan import MatchClassification, SourceKind
from originality.services.originality.constants import (
    ACADEMIC_LANGUAGE_BOOST,
    ACADEMIC_LANGUAGE_PATTERNS,
    ACADEMIC_PHRASE_BOOST,
    ACADEMIC_PHRASE_PATTERN,
    CITATION_PATTERN,
    FORMAL_CONNECTOR_BOOST,
    FORMAL_CONNECTOR_PATTERN,
    PASSIVE_VOICE_BOOST,
    PASSIVE_VOICE_PATTERN,
)
from originality.services.originality.normalizer import is_properly_quoted, word_count

QUOTED_CONFIDENCE = 95.0
SHORT_SENTENCE_CONFIDENCE = 40.0
AUTHORITATIVE_BASE_CONFIDENCE = 70.0
WEB_BASE_CONFIDENCE = 60.0
CITATION_CONFIDENCE_BONUS = 10.0


@dataclass(frozen=True)
class ClassificationResult:
    classification: MatchClassification
    confidence: float
    confidence_adjustment: float = 0.0
    adjusted_score: float = 0.0


def _clamp_pct(value: float) -> float:
    return max(0.0, min(100.0, value))


def has_citation(sentence: str) -> bool:
    return CITATION_PATTERN.search(sentence) is not None


def register_adjustment(sentence: str) -> float:
    """Score boost from scholarly register markers in the sentence."""
    adjustment = 0.0
    if any(p.search(sentence) for p in ACADEMIC_LANGUAGE_PATTERNS):
        adjustment += ACADEMIC_LANGUAGE_BOOST
    if PASSIVE_VOICE_PATTERN.search(sentence):
        adjustment += PASSIVE_VOICE_BOOST
    if FORMAL_CONNECTOR_PATTERN.search(sentence):
        adjustment += FORMAL_CONNECTOR_BOOST
    if ACADEMIC_PHRASE_PATTERN.search(sentence):
        adjustment += ACADEMIC_PHRASE_BOOST
    return adjustment


class MatchClassifier:
    """Labels one match from its score, its text and its source authority.

    Precedence: quotation, then short sentence, then the threshold table of
    the source tier applied to the register-adjusted score. A citation marker
    turns a high-similarity flag into ``safe``.
    """

    def __init__(
        self,
        short_sentence_words: int = 10,
        authoritative_high: float = 75.0,
        authoritative_low: float = 40.0,
        web_high: float = 65.0,
        web_low: float = 28.0,
    ):
        self.short_sentence_words = short_sentence_words
        self.authoritative_high = authoritative_high
        self.authoritative_low = authoritative_low
        self.web_high = web_high
        self.web_low = web_low

    @classmethod
    def from_settings(cls, scan_settings) -> "MatchClassifier":
        return cls(
            short_sentence_words=scan_settings.short_sentence_words,
            authoritative_high=scan_settings.authoritative_high,
            authoritative_low=scan_settings.authoritative_low,
            web_high=scan_settings.web_high,
            web_low=scan_settings.web_low,
        )

    def thresholds(self, source_kind: SourceKind) -> tuple[float, float]:
        if source_kind.is_authoritative:
            return self.authoritative_high, self.authoritative_low
        return self.web_high, self.web_low

    def classify(
        self,
        similarity_pct: float,
        sentence_text: str,
        source_kind: SourceKind,
    ) -> ClassificationResult:
        """Classify a match.

        Args:
            similarity_pct: Ensemble similarity, 0-100
            sentence_text: The flagged sentence as written
            source_kind: Authority of the matched source

        Returns:
            ClassificationResult with label and confidence
        """
        score = _clamp_pct(similarity_pct)

        if is_properly_quoted(sentence_text):
            return ClassificationResult(
                classification=MatchClassification.QUOTED_CORRECTLY,
                confidence=QUOTED_CONFIDENCE,
                adjusted_score=score,
            )

        if word_count(sentence_text) < self.short_sentence_words:
            return ClassificationResult(
                classification=MatchClassification.COMMON_PHRASE,
                confidence=SHORT_SENTENCE_CONFIDENCE,
                adjusted_score=score,
            )

        adjustment = register_adjustment(sentence_text)
        adjusted = _clamp_pct(score + adjustment)
        high, low = self.thresholds(source_kind)
        base = AUTHORITATIVE_BASE_CONFIDENCE if source_kind.is_authoritative else WEB_BASE_CONFIDENCE
        confidence = base + adjustment

        if adjusted > high:
            if has_citation(sentence_text):
                label = MatchClassification.SAFE
                confidence += CITATION_CONFIDENCE_BONUS
            else:
                label = MatchClassification.NEEDS_CITATION
        elif adjusted > low:
            label = MatchClassification.CLOSE_PARAPHRASE
        else:
            label = MatchClassification.SAFE

        return ClassificationResult(
            classification=label,
            confidence=_clamp_pct(confidence),
            confidence_adjustment=adjustment,
            adjusted_score=adjusted,
        )

"""Compares two drafts of the same author to detect self-reuse."""

from originality.core.exceptions import ValidationError
from originality.schemas.scan import DraftComparisonResult, MatchedSegment
from originality.services.base_service import BaseService
from originality.services.originality.fingerprint import FingerprintIndexer
from originality.services.originality.normalizer import ContentNormalizer, Sentence
from originality.services.originality.similarity import dice_coefficient

SELF_REUSE_THRESHOLD = 0.85
SIGNIFICANT_OVERLAP_THRESHOLD = 0.6
REUSE_THRESHOLD = 0.4
SEGMENT_MATCH_THRESHOLD = 0.8
MIN_SEGMENT_CHARS = 20


class DraftComparisonService(BaseService):
    """Measures how much of the current draft is carried over from the previous one."""

    def __init__(self, normalizer: ContentNormalizer, indexer: FingerprintIndexer):
        super().__init__()
        self.normalizer = normalizer
        self.indexer = indexer

    async def compare(self, current_draft: str, previous_draft: str) -> DraftComparisonResult:
        return await self.execute(current_draft, previous_draft)

    def validate(self, current_draft: str, previous_draft: str):
        if not current_draft or not current_draft.strip() or not previous_draft or not previous_draft.strip():
            raise ValidationError("Both drafts are required for comparison")

    async def run(self, current_draft: str, previous_draft: str) -> DraftComparisonResult:
        current = self.normalizer.canonicalize(current_draft)
        previous = self.normalizer.canonicalize(previous_draft)

        similarity = dice_coefficient(
            self.normalizer.normalize(current, strip_stop_words=False),
            self.normalizer.normalize(previous, strip_stop_words=False),
        )
        segments = self._matching_segments(current, previous)
        matched_chars = sum(s.target_end - s.target_start for s in segments)
        overlap = matched_chars / len(current) if current else 0.0

        result = DraftComparisonResult(
            similarity_score=round(similarity * 100, 2),
            fingerprint_similarity=round(self.indexer.similarity(current, previous), 2),
            overlap_percentage=round(min(1.0, overlap) * 100, 2),
            coverage_percentage=round(self.indexer.coverage(current, previous), 2),
            matched_segments=segments,
            analysis=self._analysis(similarity, overlap),
            is_self_reuse=similarity > SELF_REUSE_THRESHOLD,
        )
        self.logger.info(
            "Drafts compared",
            extra={
                "similarity": result.similarity_score,
                "coverage": result.coverage_percentage,
                "segments": len(segments),
            },
        )
        return result

    def _matching_segments(self, current: str, previous: str) -> list[MatchedSegment]:
        """Sentences of the current draft that closely match a previous sentence.

        ``target_*`` offsets point into the current draft and ``source_*``
        offsets into the previous one.
        """
        previous_sentences: list[tuple[Sentence, str]] = [
            (s, self.normalizer.normalize(s.text, strip_stop_words=False))
            for s in self.normalizer.segment_sentences(previous)
        ]

        segments = []
        for sentence in self.normalizer.segment_sentences(current):
            normalized = self.normalizer.normalize(sentence.text, strip_stop_words=False)
            if len(normalized) < MIN_SEGMENT_CHARS:
                continue

            best_score, best = 0.0, None
            for candidate, candidate_norm in previous_sentences:
                score = dice_coefficient(normalized, candidate_norm)
                if score > best_score:
                    best_score, best = score, candidate

            if best is not None and best_score > SEGMENT_MATCH_THRESHOLD:
                segments.append(
                    MatchedSegment(
                        segment=sentence.text,
                        similarity=round(best_score, 4),
                        source_start=best.start,
                        source_end=best.end,
                        target_start=sentence.start,
                        target_end=sentence.end,
                    )
                )
        return segments

    @staticmethod
    def _analysis(similarity: float, overlap: float) -> str:
        if similarity > SELF_REUSE_THRESHOLD:
            return "High risk of self-plagiarism. The documents are nearly identical."
        if similarity > SIGNIFICANT_OVERLAP_THRESHOLD:
            return "Significant overlap detected. Ensure you are not reusing major sections without approval."
        if overlap > REUSE_THRESHOLD:
            return "Moderate reuse detected. Some sections appear to be copied or slightly reworded."
        return "Low overlap. The new draft appears significantly different from the previous version."

"""Document-level scoring and the summaries shown next to a scan."""

from originality.schemas.scan import (
    DetailedAnalysis,
    MatchClassification,
    MatchRecord,
    RealityCheck,
    ScanClassification,
)

AGGREGATION_LENGTH_WEIGHTED = "length_weighted"
AGGREGATION_MEAN = "mean"

HIGH_SIMILARITY_PCT = 70.0


def classify_overall(score: float, safe_threshold: float = 24.0, action_threshold: float = 50.0) -> ScanClassification:
    """Bucket an overall score: ``<= safe`` is safe, ``< action`` is review."""
    if score <= safe_threshold:
        return ScanClassification.SAFE
    if score < action_threshold:
        return ScanClassification.REVIEW
    return ScanClassification.ACTION_REQUIRED


def aggregate_score(
    matches: list[MatchRecord],
    total_scanned_length: int,
    method: str = AGGREGATION_LENGTH_WEIGHTED,
) -> float:
    """Overall 0-100 score of a scan from its matches.

    Quoted matches carry no penalty. The length-weighted form divides by the
    length of every scanned sentence, so one short flag in a long document
    stays small.
    """
    penalized = [m for m in matches if m.classification != MatchClassification.QUOTED_CORRECTLY]
    if not penalized:
        return 0.0

    if method == AGGREGATION_MEAN:
        score = sum(m.similarity_score for m in penalized) / len(penalized)
    elif method == AGGREGATION_LENGTH_WEIGHTED:
        if total_scanned_length <= 0:
            return 0.0
        score = sum(m.similarity_score * m.span_length for m in penalized) / total_scanned_length
    else:
        raise ValueError(f"Unknown score aggregation '{method}'")

    return round(max(0.0, min(100.0, score)), 2)


def _pct(count: int, total: int) -> int:
    return round(count / total * 100)


def detailed_analysis(matches: list[MatchRecord]) -> DetailedAnalysis:
    """Where the matches come from and what kind of similarity they show.

    The semantic and syntactic figures are estimates from the score
    distribution, not separately measured signals.
    """
    if not matches:
        return DetailedAnalysis()

    total = len(matches)
    authoritative = sum(1 for m in matches if m.source_database.is_authoritative)
    common = sum(1 for m in matches if m.classification == MatchClassification.COMMON_PHRASE)
    cited = sum(
        1
        for m in matches
        if m.classification in (MatchClassification.NEEDS_CITATION, MatchClassification.QUOTED_CORRECTLY)
    )
    high = sum(1 for m in matches if m.similarity_score > HIGH_SIMILARITY_PCT)
    average = sum(m.similarity_score for m in matches) / total

    return DetailedAnalysis(
        academic_sources_match=_pct(authoritative, total),
        web_sources_match=_pct(total - authoritative, total),
        common_phrases_match=_pct(common, total),
        citation_pattern_match=_pct(cited, total),
        semantic_similarity=round(min(100.0, average * 0.8 + high / total * 20)),
        syntactic_similarity=round(min(100.0, average * 0.6 + common / total * 40)),
    )


def reality_check(matches: list[MatchRecord], overall_score: float) -> RealityCheck:
    """Plain-language context so a raw percentage is not read as a verdict."""
    if not matches:
        return RealityCheck(message="No similarity detected. Your work appears original.")

    total = len(matches)
    references = sum(
        1 for m in matches if m.classification in (MatchClassification.QUOTED_CORRECTLY, MatchClassification.SAFE)
    )
    common = sum(1 for m in matches if m.classification == MatchClassification.COMMON_PHRASE)
    risky = sum(
        1
        for m in matches
        if m.classification in (MatchClassification.NEEDS_CITATION, MatchClassification.CLOSE_PARAPHRASE)
    )

    reference_percent = _pct(references, total)
    common_percent = _pct(common, total)

    if reference_percent > 50:
        message = "High similarity from references is often acceptable."
    elif common_percent > 30:
        message = "Common phrases are expected in academic writing."
    elif overall_score < 20:
        message = "A similarity flag is not a plagiarism finding."
    else:
        message = "Intent and citation matter more than the percentage."

    return RealityCheck(
        reference_percent=reference_percent,
        common_phrase_percent=common_percent,
        trust_score=round(max(0.0, 100 - risky / total * 100)),
        message=message,
    )

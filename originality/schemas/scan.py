"""Scan and match schemas for originality detection.

These models are the shapes exchanged between the scan pipeline, the result
store and the HTTP layer. Offsets on matches always refer to the canonical
scan content (see ``normalizer.canonicalize``).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


FAILED_SCORE = -1.0


class ScanStatus(str, Enum):
    """Lifecycle states of a scan."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED)


class ScanClassification(str, Enum):
    """Document-level risk bucket."""

    SAFE = "safe"
    REVIEW = "review"
    ACTION_REQUIRED = "action_required"


class MatchClassification(str, Enum):
    """Fine-grained label for a single flagged span."""

    QUOTED_CORRECTLY = "quoted_correctly"
    COMMON_PHRASE = "common_phrase"
    NEEDS_CITATION = "needs_citation"
    CLOSE_PARAPHRASE = "close_paraphrase"
    SAFE = "safe"


class SourceKind(str, Enum):
    """Kind of reference source a candidate came from."""

    WEB = "web"
    ACADEMIC = "academic"
    JOURNAL = "journal"
    REPOSITORY = "repository"
    BOOK = "book"

    @property
    def is_authoritative(self) -> bool:
        return self is not SourceKind.WEB


ALLOWED_TRANSITIONS = {
    ScanStatus.PENDING: {ScanStatus.PROCESSING, ScanStatus.FAILED},
    ScanStatus.PROCESSING: {ScanStatus.COMPLETED, ScanStatus.FAILED},
    ScanStatus.COMPLETED: set(),
    ScanStatus.FAILED: set(),
}


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Candidate(BaseModel):
    """A candidate correspondence returned by a reference provider."""

    snippet: str = Field(..., description="Candidate text to compare against")
    source_url: Optional[str] = Field(None, description="Where the candidate was found")
    source_kind: SourceKind = Field(SourceKind.WEB, description="Authority of the source")
    title: Optional[str] = Field(None, description="Title of the source document")
    provider: Optional[str] = Field(None, description="Provider that returned the candidate")
    reported_similarity: Optional[float] = Field(
        None, ge=0, le=100, description="Similarity reported by the provider itself (0-100)"
    )

    @property
    def display_source(self) -> str:
        return self.title or self.source_url or self.snippet[:120]


class MatchRecord(BaseModel):
    """One flagged correspondence between a span and an external source."""

    id: str = Field(default_factory=_new_id)
    scan_id: str
    sentence_text: str
    position_start: int = Field(..., ge=0)
    position_end: int
    matched_source: str
    source_url: Optional[str] = None
    source_database: SourceKind = SourceKind.WEB
    similarity_score: float = Field(..., ge=0, le=100)
    classification: MatchClassification
    confidence: float = Field(..., ge=0, le=100)
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_span(self) -> "MatchRecord":
        if self.position_start >= self.position_end:
            raise ValueError("position_start must be lower than position_end")
        return self

    @property
    def span_length(self) -> int:
        return self.position_end - self.position_start


class ScanRecord(BaseModel):
    """One invocation of the pipeline over one document version."""

    id: str = Field(default_factory=_new_id)
    subject_id: str
    owner_id: str
    content_hash: str
    status: ScanStatus = ScanStatus.PENDING
    overall_score: float = 0.0
    classification: ScanClassification = ScanClassification.SAFE
    scanned_content: Optional[str] = Field(None, description="Canonical text the match offsets index into")
    words_scanned: int = Field(0, ge=0)
    match_count: int = Field(0, ge=0)
    error_message: Optional[str] = None
    scanned_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    matches: List[MatchRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_failed_sentinel(self) -> "ScanRecord":
        failed = self.status == ScanStatus.FAILED
        if failed != (self.overall_score == FAILED_SCORE):
            raise ValueError("overall_score is -1 if and only if the scan failed")
        if failed and self.matches:
            raise ValueError("failed scans carry no matches")
        return self


class DetailedAnalysis(BaseModel):
    """Breakdown of where the matches of a scan come from."""

    academic_sources_match: int = 0
    web_sources_match: int = 0
    common_phrases_match: int = 0
    citation_pattern_match: int = 0
    semantic_similarity: int = 0
    syntactic_similarity: int = 0


class RealityCheck(BaseModel):
    """Plain-language context for the overall score."""

    reference_percent: int = 0
    common_phrase_percent: int = 0
    trust_score: int = 100
    message: str = ""


class ScanResult(BaseModel):
    """Scan record enriched with analysis, as returned to callers."""

    scan: ScanRecord
    detailed_analysis: Optional[DetailedAnalysis] = None
    reality_check: Optional[RealityCheck] = None
    cached: bool = False


class MatchedSegment(BaseModel):
    """A sentence of the current draft that reappears in the previous one."""

    segment: str
    similarity: float
    source_start: int
    source_end: int
    target_start: int
    target_end: int


class DraftComparisonResult(BaseModel):
    """Result of comparing two drafts of the same author."""

    similarity_score: float
    fingerprint_similarity: float
    overlap_percentage: float
    coverage_percentage: float
    matched_segments: List[MatchedSegment] = Field(default_factory=list)
    analysis: str
    is_self_reuse: bool = False


class StartScanRequest(BaseModel):
    """Request body to start a scan."""

    subject_id: str = Field(..., min_length=1, description="Document being scanned")
    owner_id: str = Field(..., min_length=1, description="Requesting user")
    content: str = Field(..., description="Raw document text")


class CompareDraftsRequest(BaseModel):
    """Request body for draft-vs-draft comparison."""

    current_draft: str = Field(..., min_length=1)
    previous_draft: str = Field(..., min_length=1)

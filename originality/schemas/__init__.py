from .scan import (
    Candidate,
    DraftComparisonResult,
    MatchClassification,
    MatchRecord,
    ScanClassification,
    ScanRecord,
    ScanResult,
    ScanStatus,
    SourceKind,
)

__all__ = [
    "Candidate",
    "DraftComparisonResult",
    "MatchClassification",
    "MatchRecord",
    "ScanClassification",
    "ScanRecord",
    "ScanResult",
    "ScanStatus",
    "SourceKind",
]

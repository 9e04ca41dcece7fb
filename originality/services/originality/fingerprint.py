"""Rolling-window fingerprints for draft-vs-draft comparison.

Every run of ``window_size`` consecutive words is hashed; two documents are
compared by the overlap of their hash sets. Exact-match biased: tolerant of
reordering and partial reuse, blind to paraphrase.
"""

import hashlib
from dataclasses import dataclass
from typing import Dict, List

from originality.services.originality.normalizer import normalize
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_WINDOW_SIZE = 8
HASH_LENGTH = 16

Fingerprint = Dict[str, List[int]]


@dataclass(frozen=True)
class MatchingSegment:
    """A window shared by two documents, positions in words."""

    text: str
    position_a: int
    position_b: int
    length: int


def _words(text: str) -> List[str]:
    normalized = normalize(text)
    return normalized.split() if normalized else []


def _hash_window(words: List[str]) -> str:
    return hashlib.md5(" ".join(words).encode("utf-8")).hexdigest()[:HASH_LENGTH]


def fingerprint(text: str, window_size: int = DEFAULT_WINDOW_SIZE) -> Fingerprint:
    """Map each window hash to the word positions where the window starts.

    Args:
        text: Text to fingerprint, normalized internally (stop words kept)
        window_size: Number of words per window

    Returns:
        Dict of hash to starting word positions, in ascending order
    """
    if window_size < 1:
        raise ValueError("window_size must be positive")

    words = _words(text)
    fingerprints: Fingerprint = {}
    for i in range(len(words) - window_size + 1):
        fingerprints.setdefault(_hash_window(words[i:i + window_size]), []).append(i)

    LOGGER.debug(
        "Generated fingerprints",
        extra={"total_words": len(words), "unique_fingerprints": len(fingerprints), "window_size": window_size},
    )
    return fingerprints


def compare(fp_a: Fingerprint, fp_b: Fingerprint) -> float:
    """Share of A's distinct fingerprints also present in B, as 0-100."""
    if not fp_a or not fp_b:
        return 0.0
    shared = sum(1 for h in fp_a if h in fp_b)
    return shared / len(fp_a) * 100


def find_matching_segments(
    text_a: str,
    text_b: str,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> List[MatchingSegment]:
    """List every window of A that also occurs in B, with both positions."""
    words_a = _words(text_a)
    fp_a = fingerprint(text_a, window_size)
    fp_b = fingerprint(text_b, window_size)

    segments = []
    for h, positions_a in fp_a.items():
        positions_b = fp_b.get(h)
        if not positions_b:
            continue
        for pos_a in positions_a:
            for pos_b in positions_b:
                segments.append(
                    MatchingSegment(
                        text=" ".join(words_a[pos_a:pos_a + window_size]),
                        position_a=pos_a,
                        position_b=pos_b,
                        length=window_size,
                    )
                )
    segments.sort(key=lambda s: (s.position_a, s.position_b))
    return segments


def coverage(text_a: str, text_b: str, window_size: int = DEFAULT_WINDOW_SIZE) -> float:
    """Share of A's words covered by at least one window shared with B, as 0-100."""
    words_a = _words(text_a)
    if not words_a:
        return 0.0

    fp_b = fingerprint(text_b, window_size)
    covered = [False] * len(words_a)
    for i in range(len(words_a) - window_size + 1):
        if _hash_window(words_a[i:i + window_size]) in fp_b:
            for j in range(i, i + window_size):
                covered[j] = True
    return sum(covered) / len(words_a) * 100


def serialize(fp: Fingerprint) -> Dict[str, List[int]]:
    return {h: list(positions) for h, positions in fp.items()}


def deserialize(data: Dict[str, List[int]]) -> Fingerprint:
    return {str(h): [int(p) for p in positions] for h, positions in data.items()}


class FingerprintIndexer:
    """Fingerprinting bound to a window size."""

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE):
        if window_size < 1:
            raise ValueError("window_size must be positive")
        self.window_size = window_size

    def fingerprint(self, text: str) -> Fingerprint:
        return fingerprint(text, self.window_size)

    compare = staticmethod(compare)
    serialize = staticmethod(serialize)
    deserialize = staticmethod(deserialize)

    def find_matching_segments(self, text_a: str, text_b: str) -> List[MatchingSegment]:
        return find_matching_segments(text_a, text_b, self.window_size)

    def coverage(self, text_a: str, text_b: str) -> float:
        return coverage(text_a, text_b, self.window_size)

    def similarity(self, text_a: str, text_b: str) -> float:
        return compare(self.fingerprint(text_a), self.fingerprint(text_b))

"""Tests for rolling-window fingerprints."""

import pytest

from originality.services.originality.fingerprint import (
    HASH_LENGTH,
    FingerprintIndexer,
    compare,
    coverage,
    deserialize,
    find_matching_segments,
    fingerprint,
    serialize,
)

TEN_WORDS = "alpha beta gamma delta epsilon zeta eta theta iota kappa"


class TestFingerprint:
    """Window hashing."""

    def test_one_hash_per_window(self):
        fp = fingerprint(TEN_WORDS, window_size=8)

        assert len(fp) == 3
        assert sorted(p for positions in fp.values() for p in positions) == [0, 1, 2]
        assert all(len(h) == HASH_LENGTH for h in fp)

    def test_repeated_window_collects_positions(self):
        fp = fingerprint("a b c a b c", window_size=3)

        assert sorted(fp.values()) == [[0, 3], [1], [2]]

    def test_text_shorter_than_window(self):
        assert fingerprint("only four words here", window_size=8) == {}

    def test_case_and_punctuation_ignored(self):
        assert fingerprint(TEN_WORDS.upper().replace(" ", ", "), 8) == fingerprint(TEN_WORDS, 8)

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            fingerprint(TEN_WORDS, window_size=0)

    def test_serialized_form_restores(self):
        fp = fingerprint(TEN_WORDS, 8)

        assert deserialize(serialize(fp)) == fp


class TestCompare:
    """Fingerprint overlap."""

    def test_identical(self):
        fp = fingerprint(TEN_WORDS, 8)

        assert compare(fp, fp) == 100.0

    def test_disjoint(self):
        other = "one two three four five six seven eight nine ten"

        assert compare(fingerprint(TEN_WORDS, 8), fingerprint(other, 8)) == 0.0

    def test_empty(self):
        assert compare({}, fingerprint(TEN_WORDS, 8)) == 0.0

    def test_partial_overlap_relative_to_first(self):
        extended = TEN_WORDS + " lambda mu nu"
        first = fingerprint(TEN_WORDS, 8)
        second = fingerprint(extended, 8)

        assert compare(first, second) == 100.0
        assert compare(second, first) == pytest.approx(50.0)


class TestSegmentsAndCoverage:
    """Shared windows and word coverage."""

    def test_matching_segments_report_both_positions(self):
        segments = find_matching_segments(TEN_WORDS, "prefix " + TEN_WORDS, window_size=8)

        assert [(s.position_a, s.position_b) for s in segments] == [(0, 1), (1, 2), (2, 3)]
        assert segments[0].text == "alpha beta gamma delta epsilon zeta eta theta"
        assert segments[0].length == 8

    def test_no_segments(self):
        assert find_matching_segments(TEN_WORDS, "nothing in common at all", 8) == []

    def test_full_coverage(self):
        assert coverage(TEN_WORDS, TEN_WORDS, 8) == 100.0

    def test_half_coverage(self):
        first_half = "alpha beta gamma delta epsilon zeta eta theta"
        text = first_half + " one two three four five six seven eight"

        assert coverage(text, first_half, 8) == pytest.approx(50.0)

    def test_empty_coverage(self):
        assert coverage("", TEN_WORDS, 8) == 0.0


class TestFingerprintIndexer:
    """Window-bound wrapper."""

    def test_similarity(self):
        indexer = FingerprintIndexer(window_size=8)

        assert indexer.similarity(TEN_WORDS, TEN_WORDS) == 100.0
        assert indexer.coverage(TEN_WORDS, TEN_WORDS) == 100.0

    def test_small_window(self):
        indexer = FingerprintIndexer(window_size=2)

        assert len(indexer.fingerprint("a b c")) == 2

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            FingerprintIndexer(window_size=0)

"""Tests for the scan orchestrator over in-memory collaborators."""

import asyncio

import httpx
import pytest

from originality.core.exceptions import (
    APIClientError,
    ContentTooLargeError,
    DatabaseError,
    ProviderFatalError,
    ScanFailedError,
    ScanNotFoundError,
)
from originality.schemas.scan import (
    FAILED_SCORE,
    MatchClassification,
    ScanClassification,
    ScanStatus,
    SourceKind,
)
from originality.services.gateway.composite import CompositeSourceGateway
from originality.services.gateway.providers import CrossRefProvider
from originality.services.originality.normalizer import canonicalize
from originality.services.originality.orchestrator import content_hash
from originality.services.originality.store import InMemoryResultStore

COPIED = "Photosynthesis converts light energy into chemical energy stored in glucose molecules within plant cells."
ORIGINAL = "The village market opens every Saturday morning beside the old stone bridge."
QUOTED = '"Energy cannot be created or destroyed, only changed from one form to another."'
BOILERPLATE = "In conclusion, the results hold up."
CITATION = "Smith, J. (2020). Plant energetics and the glucose economy of crops."
SHORT = "Mitochondria power every living cell."


class ErrorGateway:
    """Gateway that raises a fixed error for sentences containing a key."""

    def __init__(self, error: Exception, key: str = ""):
        self.error = error
        self.key = key
        self.calls: list[str] = []

    async def search(self, text: str):
        self.calls.append(text)
        if self.key in text:
            raise self.error
        return []


class ProcessingFailureStore(InMemoryResultStore):
    """Store that loses its connection when a scan moves to processing."""

    async def update_scan(self, scan_id: str, **fields):
        if fields.get("status") == ScanStatus.PROCESSING:
            raise DatabaseError("connection reset")
        return await super().update_scan(scan_id, **fields)


class CreateFailureStore(InMemoryResultStore):
    async def create_scan(self, scan):
        raise DatabaseError("connection reset")

class TestScanPipeline:
    """End-to-end scans."""

    async def test_copied_sentence_flagged(self, make_orchestrator, make_gateway, make_candidate):
        gateway = make_gateway({"Photosynthesis": [make_candidate(COPIED, title="Biology 101")]})
        orchestrator = make_orchestrator(gateway)
        content = f"{COPIED} {ORIGINAL}"

        result = await orchestrator.scan_with_analysis("doc-1", "owner-1", content)
        scan = result.scan

        assert result.cached is False
        assert scan.status == ScanStatus.COMPLETED
        assert scan.completed_at is not None
        assert len(scan.matches) == 1
        match = scan.matches[0]
        assert match.similarity_score == 100.0
        assert match.classification == MatchClassification.NEEDS_CITATION
        assert match.confidence == 60.0
        assert match.matched_source == "Biology 101"
        assert content[match.position_start:match.position_end] == COPIED
        expected = round(100.0 * len(COPIED) / (len(COPIED) + len(ORIGINAL)), 2)
        assert scan.overall_score == pytest.approx(expected)
        assert scan.classification == ScanClassification.ACTION_REQUIRED
        assert result.detailed_analysis.web_sources_match == 100
        assert result.reality_check is not None

    async def test_original_document(self, make_orchestrator, make_gateway):
        gateway = make_gateway()
        orchestrator = make_orchestrator(gateway)

        result = await orchestrator.scan_with_analysis("doc-1", "owner-1", f"{ORIGINAL} {COPIED}")

        assert result.scan.status == ScanStatus.COMPLETED
        assert result.scan.overall_score == 0.0
        assert result.scan.classification == ScanClassification.SAFE
        assert result.scan.matches == []
        assert "original" in result.reality_check.message
        assert len(gateway.calls) == 2

    async def test_short_identical_sentence_is_common_phrase(self, make_orchestrator, make_gateway, make_candidate):
        gateway = make_gateway({"Mitochondria": [make_candidate(SHORT)]})
        orchestrator = make_orchestrator(gateway)

        scan = await orchestrator.start_scan("doc-1", "owner-1", f"{SHORT} {ORIGINAL}")

        assert gateway.calls[0] == SHORT
        assert len(scan.matches) == 1
        match = scan.matches[0]
        assert match.similarity_score == 100.0
        assert match.classification == MatchClassification.COMMON_PHRASE
        assert match.confidence == 40.0

    async def test_scanned_content_and_counts_recorded(self, make_orchestrator, make_gateway, make_candidate, store):
        gateway = make_gateway({"Photosynthesis": [make_candidate(COPIED)]})
        orchestrator = make_orchestrator(gateway)
        raw = f"  {ORIGINAL}\r\n{COPIED}  "

        scan = await orchestrator.start_scan("doc-1", "owner-1", raw)

        canonical = canonicalize(raw)
        assert scan.scanned_content == canonical
        assert scan.words_scanned == len(canonical.split())
        assert scan.match_count == 1
        match = scan.matches[0]
        assert scan.scanned_content[match.position_start:match.position_end] == COPIED
        stored = await store.get_scan(scan.id)
        assert (stored.scanned_content, stored.match_count) == (canonical, 1)

    async def test_quoted_match_carries_no_penalty(self, make_orchestrator, make_gateway, make_candidate):
        gateway = make_gateway({"Energy cannot": [make_candidate(QUOTED.strip('"'), SourceKind.BOOK)]})
        orchestrator = make_orchestrator(gateway)

        scan = await orchestrator.start_scan("doc-1", "owner-1", f"{QUOTED} {ORIGINAL}")

        assert len(scan.matches) == 1
        assert scan.matches[0].classification == MatchClassification.QUOTED_CORRECTLY
        assert scan.matches[0].confidence == 95.0
        assert scan.overall_score == 0.0
        assert scan.classification == ScanClassification.SAFE

    async def test_quoted_sentences_not_searched_when_disabled(self, make_orchestrator, make_gateway):
        gateway = make_gateway()
        orchestrator = make_orchestrator(gateway, search_quoted_sentences=False)

        await orchestrator.start_scan("doc-1", "owner-1", f"{QUOTED} {ORIGINAL}")

        assert gateway.calls == [ORIGINAL]

    async def test_bibliography_and_boilerplate_skipped(self, make_orchestrator, make_gateway):
        gateway = make_gateway()
        orchestrator = make_orchestrator(gateway)
        content = f"{ORIGINAL} {BOILERPLATE}\n\nReferences\n{CITATION}"

        await orchestrator.start_scan("doc-1", "owner-1", content)

        assert gateway.calls == [ORIGINAL]

    async def test_weak_match_below_retention_floor_dropped(self, make_orchestrator, make_gateway, make_candidate):
        gateway = make_gateway({"Photosynthesis": [make_candidate("zzzz qqqq xxxx")]})
        orchestrator = make_orchestrator(gateway)

        scan = await orchestrator.start_scan("doc-1", "owner-1", COPIED)

        assert scan.matches == []
        assert scan.overall_score == 0.0

    async def test_match_offsets_refer_to_canonical_content(self, make_orchestrator, make_gateway, make_candidate):
        gateway = make_gateway({"Photosynthesis": [make_candidate(COPIED)]})
        orchestrator = make_orchestrator(gateway)
        raw = f"  {ORIGINAL}   \r\n{COPIED}\r\n"

        scan = await orchestrator.start_scan("doc-1", "owner-1", raw)

        canonical = canonicalize(raw)
        match = scan.matches[0]
        assert canonical[match.position_start:match.position_end] == COPIED
        assert scan.content_hash == content_hash(canonical)

    async def test_positions_stable_under_concurrency(self, make_orchestrator, make_gateway, make_candidate):
        sentences = [
            f"Sentence number {word} describes a distinct observation about coastal erosion."
            for word in ("one", "two", "three", "four", "five", "six")
        ]
        gateway = make_gateway({s: [make_candidate(s)] for s in sentences}, delay=0.01)
        orchestrator = make_orchestrator(gateway, max_concurrency=4)
        content = " ".join(sentences)

        scan = await orchestrator.start_scan("doc-1", "owner-1", content)

        assert len(scan.matches) == len(sentences)
        starts = [m.position_start for m in scan.matches]
        assert starts == sorted(starts)
        for match in scan.matches:
            assert content[match.position_start:match.position_end] == match.sentence_text


class TestScanReuse:
    """Identical content for the same owner is scanned once."""

    async def test_completed_scan_reused(self, make_orchestrator, make_gateway):
        gateway = make_gateway()
        orchestrator = make_orchestrator(gateway)

        first = await orchestrator.scan_with_analysis("doc-1", "owner-1", ORIGINAL)
        second = await orchestrator.scan_with_analysis("doc-1", "owner-1", ORIGINAL + "  \n")

        assert second.cached is True
        assert second.scan.id == first.scan.id
        assert len(gateway.calls) == 1

    async def test_other_owner_scans_again(self, make_orchestrator, make_gateway):
        gateway = make_gateway()
        orchestrator = make_orchestrator(gateway)

        first = await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)
        second = await orchestrator.start_scan("doc-1", "owner-2", ORIGINAL)

        assert second.id != first.id
        assert len(gateway.calls) == 2

    async def test_concurrent_identical_requests_complete_once(self, make_orchestrator, make_gateway, store):
        gateway = make_gateway(delay=0.02)
        orchestrator = make_orchestrator(gateway)

        results = await asyncio.gather(
            orchestrator.scan_with_analysis("doc-1", "owner-1", ORIGINAL),
            orchestrator.scan_with_analysis("doc-1", "owner-1", ORIGINAL),
        )

        assert results[0].scan.id == results[1].scan.id
        assert sorted(r.cached for r in results) == [False, True]
        assert len(gateway.calls) == 1
        assert len(await store.list_scans_by_subject("doc-1", "owner-1")) == 1

    async def test_waits_for_lease_held_elsewhere(self, make_orchestrator, make_gateway, cache):
        gateway = make_gateway()
        orchestrator = make_orchestrator(gateway)
        key = f"scan-lease:owner-1:{content_hash(ORIGINAL)}"
        await cache.add(key, "other-worker", ttl=0.05)

        scan = await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        assert scan.status == ScanStatus.COMPLETED
        assert await cache.get(key) is None

    async def test_lease_outlives_scan_budget(self, make_orchestrator, make_gateway, cache, monkeypatch):
        orchestrator = make_orchestrator(make_gateway(), scan_timeout=900)
        ttls = []
        original_add = cache.add

        async def recording_add(key, value, ttl=None):
            ttls.append(ttl)
            return await original_add(key, value, ttl=ttl)

        monkeypatch.setattr(cache, "add", recording_add)

        await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        assert ttls == [930.0]
        assert make_orchestrator(make_gateway()).lease_ttl == 330.0

    async def test_failed_scan_not_reused(self, make_orchestrator, make_gateway):
        orchestrator = make_orchestrator(ErrorGateway(ProviderFatalError("out of credits")))
        with pytest.raises(ScanFailedError):
            await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        gateway = make_gateway()
        retry = make_orchestrator(gateway)
        scan = await retry.start_scan("doc-1", "owner-1", ORIGINAL)

        assert scan.status == ScanStatus.COMPLETED
        assert len(gateway.calls) == 1


class TestScanFailures:
    """Failure handling and size limits."""

    async def test_fatal_provider_error_fails_scan(self, make_orchestrator, store, make_candidate):
        class PartialGateway:
            async def search(self, text):
                if "Photosynthesis" in text:
                    return [make_candidate(COPIED)]
                raise ProviderFatalError("copyscape: insufficient credit")

        orchestrator = make_orchestrator(PartialGateway())

        with pytest.raises(ScanFailedError) as exc_info:
            await orchestrator.start_scan("doc-1", "owner-1", f"{COPIED} {ORIGINAL}")

        failed = exc_info.value.scan
        assert failed.status == ScanStatus.FAILED
        assert failed.overall_score == FAILED_SCORE
        assert failed.matches == []
        assert "insufficient credit" in failed.error_message
        assert await store.list_matches(failed.id) == []
        stored = await store.get_scan(failed.id)
        assert stored.status == ScanStatus.FAILED
        assert stored.completed_at is not None

    async def test_scan_timeout(self, make_orchestrator, make_gateway):
        orchestrator = make_orchestrator(make_gateway(delay=0.5), scan_timeout=0.05)

        with pytest.raises(ScanFailedError, match="budget") as exc_info:
            await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        assert exc_info.value.scan.status == ScanStatus.FAILED
        assert exc_info.value.scan.overall_score == FAILED_SCORE

    async def test_gateway_timeout_means_no_candidates(self, make_orchestrator, make_gateway, make_candidate):
        gateway = make_gateway({"Photosynthesis": [make_candidate(COPIED)]}, delay=0.2)
        orchestrator = make_orchestrator(gateway, gateway_timeout=0.01)

        scan = await orchestrator.start_scan("doc-1", "owner-1", COPIED)

        assert scan.status == ScanStatus.COMPLETED
        assert scan.matches == []
        assert scan.overall_score == 0.0

    async def test_transient_gateway_error_means_no_candidates(self, make_orchestrator):
        gateway = ErrorGateway(APIClientError("502 from provider"), key="village")
        orchestrator = make_orchestrator(gateway)

        scan = await orchestrator.start_scan("doc-1", "owner-1", f"{ORIGINAL} {COPIED}")

        assert scan.status == ScanStatus.COMPLETED
        assert len(gateway.calls) == 2

    async def test_malformed_provider_response_isolated_to_sentence(self, make_orchestrator):
        def handler(request: httpx.Request) -> httpx.Response:
            if "village" in request.url.params["query.bibliographic"]:
                return httpx.Response(200, text="<html>proxy error</html>")
            return httpx.Response(
                200, json={"message": {"items": [{"title": ["Plant Biology"], "abstract": COPIED}]}}
            )

        provider = CrossRefProvider(
            "https://api.test/works",
            max_retries=1,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        orchestrator = make_orchestrator(CompositeSourceGateway([provider]))

        scan = await orchestrator.start_scan("doc-1", "owner-1", f"{ORIGINAL} {COPIED}")

        assert scan.status == ScanStatus.COMPLETED
        assert len(scan.matches) == 1
        assert scan.matches[0].sentence_text == COPIED
        assert scan.matches[0].source_database == SourceKind.JOURNAL

    async def test_store_failure_before_processing_fails_scan(self, make_orchestrator, make_gateway):
        failing_store = ProcessingFailureStore()
        gateway = make_gateway()
        orchestrator = make_orchestrator(gateway, result_store=failing_store)

        with pytest.raises(ScanFailedError, match="connection reset") as exc_info:
            await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        stored = await failing_store.get_scan(exc_info.value.scan.id)
        assert stored.status == ScanStatus.FAILED
        assert stored.overall_score == FAILED_SCORE
        assert gateway.calls == []

    async def test_store_failure_on_create_fails_scan(self, make_orchestrator, make_gateway):
        orchestrator = make_orchestrator(make_gateway(), result_store=CreateFailureStore())

        with pytest.raises(ScanFailedError) as exc_info:
            await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        assert exc_info.value.scan.status == ScanStatus.FAILED
        assert exc_info.value.scan.overall_score == FAILED_SCORE

    async def test_content_too_large(self, make_orchestrator, make_gateway, store):
        gateway = make_gateway()
        orchestrator = make_orchestrator(gateway, max_scan_characters=50)

        with pytest.raises(ContentTooLargeError):
            await orchestrator.start_scan("doc-1", "owner-1", COPIED)

        assert gateway.calls == []
        assert await store.list_scans_by_subject("doc-1", "owner-1") == []

    async def test_lease_released_after_failure(self, make_orchestrator, cache):
        orchestrator = make_orchestrator(ErrorGateway(ProviderFatalError("account suspended")))

        with pytest.raises(ScanFailedError):
            await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        assert await cache.get(f"scan-lease:owner-1:{content_hash(ORIGINAL)}") is None


class TestScanQueries:
    """Reads scoped to the owner."""

    async def test_get_scan(self, make_orchestrator, make_gateway):
        orchestrator = make_orchestrator(make_gateway())
        scan = await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        assert (await orchestrator.get_scan(scan.id, "owner-1")).id == scan.id

    async def test_get_scan_of_other_owner(self, make_orchestrator, make_gateway):
        orchestrator = make_orchestrator(make_gateway())
        scan = await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)

        with pytest.raises(ScanNotFoundError):
            await orchestrator.get_scan(scan.id, "owner-2")

    async def test_get_missing_scan(self, make_orchestrator, make_gateway):
        with pytest.raises(ScanNotFoundError):
            await make_orchestrator(make_gateway()).get_scan("missing", "owner-1")

    async def test_list_subject_scans_newest_first(self, make_orchestrator, make_gateway):
        orchestrator = make_orchestrator(make_gateway())
        first = await orchestrator.start_scan("doc-1", "owner-1", ORIGINAL)
        second = await orchestrator.start_scan("doc-1", "owner-1", COPIED)

        scans = await orchestrator.list_subject_scans("doc-1", "owner-1")

        assert [s.id for s in scans] == [second.id, first.id]

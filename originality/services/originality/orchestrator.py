"""Runs an originality scan over a whole document.

Flow: canonicalize, hash, reuse a completed scan for the same owner and
content, otherwise take the per-(owner, hash) lease, create the scan, drop
the bibliography, segment, apply skip rules, search and score each retained
sentence, persist matches above the retention floor, aggregate and classify.
"""

import asyncio
import hashlib
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from originality.core.config import CacheSettings, ScanSettings
from originality.core.exceptions import (
    APIClientError,
    ConfigurationError,
    ContentTooLargeError,
    NormalizationError,
    ProviderFatalError,
    ScanFailedError,
    ScanNotFoundError,
)
from originality.schemas.scan import (
    FAILED_SCORE,
    MatchRecord,
    ScanRecord,
    ScanResult,
    ScanStatus,
)
from originality.services.originality.analysis import (
    aggregate_score,
    classify_overall,
    detailed_analysis,
    reality_check,
)
from originality.services.originality.classifier import MatchClassifier
from originality.services.originality.contracts import CacheBackend, ExternalSourceGateway, ResultStore
from originality.services.originality.normalizer import ContentNormalizer, Sentence
from originality.services.originality.strategies import ScoringStrategy
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Lease headroom over the scan budget for store writes around processing
LEASE_MARGIN_SECONDS = 30


def content_hash(canonical: str) -> str:
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ScanOrchestrator:
    """Coordinates normalizer, gateway, scoring strategy, classifier and store."""

    def __init__(
        self,
        store: ResultStore,
        gateway: ExternalSourceGateway,
        strategy: ScoringStrategy,
        classifier: MatchClassifier,
        normalizer: ContentNormalizer,
        cache: CacheBackend,
        scan_settings: Optional[ScanSettings] = None,
        cache_settings: Optional[CacheSettings] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.strategy = strategy
        self.classifier = classifier
        self.normalizer = normalizer
        self.cache = cache
        self.config = scan_settings or ScanSettings()
        self.cache_config = cache_settings or CacheSettings()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = defaultdict(int)

    @property
    def lease_ttl(self) -> float:
        """Lease lifetime; never shorter than the scan budget plus a margin."""
        return max(float(self.cache_config.scan_lease_ttl), self.config.scan_timeout + LEASE_MARGIN_SECONDS)

    async def start_scan(self, subject_id: str, owner_id: str, content: str) -> ScanRecord:
        """Scan a document, or return the completed scan of identical content.

        Args:
            subject_id: Document being scanned
            owner_id: Requesting user
            content: Raw document text

        Returns:
            The completed ScanRecord with its matches

        Raises:
            ContentTooLargeError: If the content exceeds the size limit
            ScanFailedError: If the scan ended in the failed state
        """
        scan, _ = await self._start(subject_id, owner_id, content)
        return scan

    async def scan_with_analysis(self, subject_id: str, owner_id: str, content: str) -> ScanResult:
        scan, cached = await self._start(subject_id, owner_id, content)
        return self.build_result(scan, cached=cached)

    @staticmethod
    def build_result(scan: ScanRecord, cached: bool = False) -> ScanResult:
        if scan.status != ScanStatus.COMPLETED:
            return ScanResult(scan=scan, cached=cached)
        return ScanResult(
            scan=scan,
            detailed_analysis=detailed_analysis(scan.matches),
            reality_check=reality_check(scan.matches, scan.overall_score),
            cached=cached,
        )

    async def get_scan(self, scan_id: str, owner_id: str) -> ScanRecord:
        scan = await self.store.get_scan(scan_id)
        if scan is None or scan.owner_id != owner_id:
            raise ScanNotFoundError(f"Scan {scan_id} not found")
        return scan

    async def list_subject_scans(self, subject_id: str, owner_id: str) -> list[ScanRecord]:
        """Scans of a document for one owner, newest first."""
        scans = await self.store.list_scans_by_subject(subject_id, owner_id)
        return sorted(scans, key=lambda s: s.scanned_at, reverse=True)

    async def _start(self, subject_id: str, owner_id: str, content: str) -> tuple[ScanRecord, bool]:
        try:
            canonical = self.normalizer.canonicalize(content)
        except Exception as e:
            raise NormalizationError(f"Could not normalize content: {e}", original_error=e) from e

        if len(canonical) > self.config.max_scan_characters:
            raise ContentTooLargeError(
                f"Content has {len(canonical)} characters, the limit is {self.config.max_scan_characters}"
            )

        digest = content_hash(canonical)
        cached = await self.store.find_completed_by_owner_hash(owner_id, digest)
        if cached is not None:
            LOGGER.info("Returning cached scan", extra={"scan_id": cached.id, "owner_id": owner_id})
            return cached, True

        lease_key = f"scan-lease:{owner_id}:{digest}"
        async with self._local_lock(lease_key):
            async with self._lease(lease_key):
                # Another worker may have finished while we waited
                cached = await self.store.find_completed_by_owner_hash(owner_id, digest)
                if cached is not None:
                    LOGGER.info("Returning scan completed while waiting", extra={"scan_id": cached.id})
                    return cached, True
                scan = await self._run(subject_id, owner_id, digest, canonical)
                return scan, False

    @asynccontextmanager
    async def _local_lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                self._locks.pop(key, None)
                self._lock_users.pop(key, None)

    @asynccontextmanager
    async def _lease(self, key: str) -> AsyncIterator[None]:
        """Cross-process lease on the cache; waiters poll until it is free."""
        token = uuid.uuid4().hex
        ttl = self.lease_ttl
        waited = False
        while not await self.cache.add(key, token, ttl=ttl):
            if not waited:
                LOGGER.info("Waiting for an identical scan to finish", extra={"lease": key})
                waited = True
            await asyncio.sleep(self.cache_config.lease_poll_interval)
        try:
            yield
        finally:
            if await self.cache.get(key) == token:
                await self.cache.delete(key)

    async def _run(self, subject_id: str, owner_id: str, digest: str, canonical: str) -> ScanRecord:
        scan = ScanRecord(
            subject_id=subject_id,
            owner_id=owner_id,
            content_hash=digest,
            scanned_content=canonical,
            words_scanned=len(canonical.split()),
        )

        try:
            scan = await self.store.create_scan(scan)
            scan = await self.store.update_scan(scan.id, status=ScanStatus.PROCESSING)
            LOGGER.info(
                "Scan started",
                extra={"scan_id": scan.id, "subject_id": subject_id, "characters": len(canonical)},
            )
            overall, match_count = await asyncio.wait_for(
                self._process(scan, canonical), timeout=self.config.scan_timeout
            )
        except asyncio.TimeoutError as e:
            await self._fail(scan, f"Scan exceeded its {self.config.scan_timeout}s budget", e)
        except Exception as e:
            await self._fail(scan, f"Scan failed: {e}", e)

        completed = await self.store.update_scan(
            scan.id,
            status=ScanStatus.COMPLETED,
            overall_score=overall,
            match_count=match_count,
            classification=classify_overall(
                overall, self.config.safe_threshold, self.config.action_threshold
            ),
            completed_at=datetime.now(timezone.utc),
        )
        LOGGER.info(
            "Scan completed",
            extra={
                "scan_id": completed.id,
                "overall_score": completed.overall_score,
                "classification": completed.classification.value,
                "matches": len(completed.matches),
            },
        )
        return completed

    def _retained_sentences(self, canonical: str) -> list[Sentence]:
        try:
            body, excluded = self.normalizer.exclude_bibliography(canonical)
            sentences = self.normalizer.segment_sentences(body)
        except Exception as e:
            raise NormalizationError(f"Could not segment content: {e}", original_error=e) from e

        retained = []
        for sentence in sentences:
            if self.normalizer.is_common_academic_phrase(sentence.text):
                continue
            if not self.config.search_quoted_sentences and self.normalizer.is_properly_quoted(sentence.text):
                continue
            retained.append(sentence)

        LOGGER.debug(
            "Sentences selected for search",
            extra={"segmented": len(sentences), "retained": len(retained), "bibliography_span": excluded},
        )
        return retained

    async def _process(self, scan: ScanRecord, canonical: str) -> tuple[float, int]:
        sentences = self._retained_sentences(canonical)
        total_length = sum(s.length for s in sentences)

        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        abort = asyncio.Event()

        async def guarded(sentence: Sentence) -> Optional[MatchRecord]:
            async with semaphore:
                if abort.is_set():
                    return None
                try:
                    return await self._process_sentence(scan.id, sentence)
                except Exception:
                    abort.set()
                    raise

        results = await asyncio.gather(*(guarded(s) for s in sentences), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

        matches = await self.store.list_matches(scan.id)
        return aggregate_score(matches, total_length, self.config.score_aggregation), len(matches)

    async def _search(self, scan_id: str, sentence: Sentence):
        try:
            return await asyncio.wait_for(self.gateway.search(sentence.text), timeout=self.config.gateway_timeout)
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Gateway search timed out, no candidates for sentence",
                extra={"scan_id": scan_id, "position_start": sentence.start, "timeout": self.config.gateway_timeout},
            )
        except ProviderFatalError:
            raise
        except (APIClientError, ConfigurationError) as e:
            LOGGER.warning(
                f"Gateway search failed, no candidates for sentence: {e}",
                extra={"scan_id": scan_id, "position_start": sentence.start, "error_type": type(e).__name__},
            )
        return []

    async def _process_sentence(self, scan_id: str, sentence: Sentence) -> Optional[MatchRecord]:
        candidates = await self._search(scan_id, sentence)
        if not candidates:
            return None

        best = await self.strategy.select(sentence.text, candidates)
        if best is None:
            return None

        similarity = best.percentage
        if similarity <= self.config.retention_floor:
            return None

        verdict = self.classifier.classify(similarity, sentence.text, best.candidate.source_kind)
        match = MatchRecord(
            scan_id=scan_id,
            sentence_text=sentence.text,
            position_start=sentence.start,
            position_end=sentence.end,
            matched_source=best.candidate.display_source,
            source_url=best.candidate.source_url,
            source_database=best.candidate.source_kind,
            similarity_score=similarity,
            classification=verdict.classification,
            confidence=verdict.confidence,
        )
        return await self.store.create_match(match)

    async def _fail(self, scan: ScanRecord, message: str, error: Exception) -> None:
        """Move the scan to failed with no matches, then raise ScanFailedError."""
        LOGGER.error(
            message,
            exc_info=error,
            extra={"scan_id": scan.id, "error_type": type(error).__name__},
        )
        failed = scan.model_copy(
            update={
                "status": ScanStatus.FAILED,
                "overall_score": FAILED_SCORE,
                "error_message": message,
                "matches": [],
            }
        )
        try:
            # Only a processing scan can hold matches
            if scan.status == ScanStatus.PROCESSING:
                await self.store.delete_matches(scan.id)
            failed = await self.store.update_scan(
                scan.id,
                status=ScanStatus.FAILED,
                overall_score=FAILED_SCORE,
                error_message=message,
                completed_at=datetime.now(timezone.utc),
            )
        except Exception as store_error:
            LOGGER.error(
                f"Could not record scan failure: {store_error}",
                exc_info=True,
                extra={"scan_id": scan.id},
            )
        raise ScanFailedError(message, scan=failed, original_error=error) from error

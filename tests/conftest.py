"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Callable, Optional

import pytest

from originality.core.cache import InMemoryCache
from originality.core.config import CacheSettings, ScanSettings
from originality.schemas.scan import Candidate, SourceKind
from originality.services.originality.classifier import MatchClassifier
from originality.services.originality.normalizer import ContentNormalizer
from originality.services.originality.orchestrator import ScanOrchestrator
from originality.services.originality.similarity import SimilarityScorer
from originality.services.originality.store import InMemoryResultStore
from originality.services.originality.strategies import EnsembleStrategy


class FakeGateway:
    """Gateway returning canned candidates for sentences containing a key."""

    def __init__(self, responses: Optional[dict[str, list[Candidate]]] = None, delay: float = 0.0):
        self.responses = responses or {}
        self.delay = delay
        self.calls: list[str] = []

    async def search(self, text: str) -> list[Candidate]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        for key, candidates in self.responses.items():
            if key in text:
                return list(candidates)
        return []


def _make_candidate(
    snippet: str,
    source_kind: SourceKind = SourceKind.WEB,
    url: str = "https://example.org/source",
    **kwargs,
) -> Candidate:
    return Candidate(snippet=snippet, source_url=url, source_kind=source_kind, provider="fake", **kwargs)


@pytest.fixture
def normalizer() -> ContentNormalizer:
    return ContentNormalizer()


@pytest.fixture
def store() -> InMemoryResultStore:
    return InMemoryResultStore()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def make_orchestrator(normalizer, store, cache) -> Callable[..., ScanOrchestrator]:
    """Factory for orchestrators over the in-memory store, without embeddings.

    Keyword arguments override ScanSettings fields; ``result_store`` replaces
    the shared in-memory store.
    """

    def factory(gateway, result_store=None, **scan_overrides) -> ScanOrchestrator:
        scan_settings = ScanSettings(**scan_overrides)
        scorer = SimilarityScorer(normalizer, short_circuit_threshold=scan_settings.lexical_short_circuit)
        return ScanOrchestrator(
            store=result_store if result_store is not None else store,
            gateway=gateway,
            strategy=EnsembleStrategy(scorer, max_candidates=scan_settings.max_candidates),
            classifier=MatchClassifier.from_settings(scan_settings),
            normalizer=normalizer,
            cache=cache,
            scan_settings=scan_settings,
            cache_settings=CacheSettings(lease_poll_interval=0.01),
        )

    return factory


@pytest.fixture
def make_candidate() -> Callable[..., Candidate]:
    return _make_candidate


@pytest.fixture
def make_gateway() -> Callable[..., FakeGateway]:
    return FakeGateway

"""Dependency wiring for the FastAPI application."""

from functools import lru_cache

from originality.core.cache import build_cache
from originality.core.config import settings
from originality.core.database import async_session_maker
from originality.repositories.scan_repository import SqlResultStore
from originality.services.embeddings import build_embedding_provider, build_rerank_provider
from originality.services.gateway import build_gateway
from originality.services.originality.classifier import MatchClassifier
from originality.services.originality.draft_comparison import DraftComparisonService
from originality.services.originality.fingerprint import FingerprintIndexer
from originality.services.originality.normalizer import ContentNormalizer
from originality.services.originality.orchestrator import ScanOrchestrator
from originality.services.originality.similarity import SimilarityScorer, SimilarityWeights
from originality.services.originality.strategies import build_strategy


def build_normalizer() -> ContentNormalizer:
    return ContentNormalizer(
        stop_words=settings.scan.stop_words or None,
        min_sentence_length=settings.scan.min_sentence_length,
        short_sentence_words=settings.scan.short_sentence_words,
    )


@lru_cache
def get_scan_orchestrator() -> ScanOrchestrator:
    """Build the process-wide orchestrator from settings.

    Returns:
        ScanOrchestrator: Orchestrator over the SQL store and configured providers
    """
    scan = settings.scan
    normalizer = build_normalizer()
    scorer = SimilarityScorer(
        normalizer,
        embedding_provider=build_embedding_provider(settings.embeddings),
        rerank_provider=build_rerank_provider(settings.embeddings),
        weights=SimilarityWeights.from_settings(scan),
        short_circuit_threshold=scan.lexical_short_circuit,
        ngram_size=scan.ngram_size,
        embedding_timeout=scan.embedding_timeout,
    )
    return ScanOrchestrator(
        store=SqlResultStore(async_session_maker),
        gateway=build_gateway(settings.providers, scan),
        strategy=build_strategy(scan.scoring_strategy, scorer, max_candidates=scan.max_candidates),
        classifier=MatchClassifier.from_settings(scan),
        normalizer=normalizer,
        cache=build_cache(settings.cache),
        scan_settings=scan,
        cache_settings=settings.cache,
    )


def get_draft_comparison_service() -> DraftComparisonService:
    return DraftComparisonService(build_normalizer(), FingerprintIndexer(settings.scan.fingerprint_window))

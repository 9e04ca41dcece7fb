"""Reference provider gateway: adapters, fan-out and pacing."""

from typing import Optional

import httpx

from originality.core.config import ProviderSettings, ScanSettings
from originality.services.gateway.base import ReferenceProvider
from originality.services.gateway.composite import CompositeSourceGateway
from originality.services.gateway.providers import (
    ArxivProvider,
    CopyscapeProvider,
    CrossRefProvider,
    GoogleSearchProvider,
    SemanticScholarProvider,
)
from originality.services.gateway.rate_limiter import RateLimitedGateway, TokenBucketRateLimiter
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)


def get_provider(
    provider_name: str,
    config: ProviderSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[ReferenceProvider]:
    """Factory to get a provider instance by name.

    Args:
        provider_name: 'crossref', 'semantic_scholar', 'arxiv', 'google' or 'copyscape'
        config: Provider settings
        client: Optional shared HTTP client

    Returns:
        ReferenceProvider instance or None if not recognized
    """
    common = {
        "timeout": config.http_timeout,
        "max_retries": config.max_retries,
        "retry_delay": config.retry_delay,
        "results_per_query": config.results_per_query,
        "max_query_chars": config.max_query_chars,
        "client": client,
    }
    factories = {
        "crossref": lambda: CrossRefProvider(
            config.crossref_api_url, mailto=config.crossref_mailto, api_key=config.crossref_api_key, **common
        ),
        "semantic_scholar": lambda: SemanticScholarProvider(
            config.semantic_scholar_api_url, api_key=config.semantic_scholar_api_key, **common
        ),
        "arxiv": lambda: ArxivProvider(config.arxiv_api_url, **common),
        "google": lambda: GoogleSearchProvider(
            config.google_api_url,
            api_key=config.google_api_key,
            search_engine_id=config.google_search_engine_id,
            **common,
        ),
        "copyscape": lambda: CopyscapeProvider(
            config.copyscape_api_url, username=config.copyscape_username, api_key=config.copyscape_api_key, **common
        ),
    }

    factory = factories.get(provider_name.strip().lower())
    if factory is None:
        LOGGER.error(f"Unknown reference provider: {provider_name}")
        return None
    return factory()


def build_gateway(
    provider_settings: ProviderSettings,
    scan_settings: ScanSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> RateLimitedGateway:
    """Build the paced composite gateway for the enabled providers."""
    providers = [
        provider
        for provider in (get_provider(name, provider_settings, client) for name in provider_settings.enabled)
        if provider is not None
    ]
    composite = CompositeSourceGateway(providers)
    LOGGER.info(
        "Reference gateway ready",
        extra={"providers": composite.provider_names, "call_interval": scan_settings.gateway_call_interval},
    )
    limiter = TokenBucketRateLimiter(
        interval=scan_settings.gateway_call_interval,
        burst=scan_settings.gateway_burst,
    )
    return RateLimitedGateway(composite, limiter)


__all__ = [
    "CompositeSourceGateway",
    "RateLimitedGateway",
    "ReferenceProvider",
    "TokenBucketRateLimiter",
    "build_gateway",
    "get_provider",
]

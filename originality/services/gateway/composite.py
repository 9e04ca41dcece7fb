"""Fan-out gateway over the configured reference providers."""

from typing import Sequence

from originality.core.exceptions import (
    APIClientError,
    ProviderFatalError,
    ProviderNotConfiguredError,
    RateLimitExceededError,
)
from originality.schemas.scan import Candidate
from originality.services.gateway.base import ReferenceProvider
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CompositeSourceGateway:
    """Queries each provider in turn and concatenates their candidates.

    Providers without credentials are dropped up front. Rate limits and
    any other failure empty that provider's share of the result for this
    call only; ``ProviderFatalError`` propagates.
    """

    def __init__(self, providers: Sequence[ReferenceProvider]):
        self.providers = []
        for provider in providers:
            if provider.is_configured:
                self.providers.append(provider)
            else:
                LOGGER.warning(
                    f"Reference provider '{provider.name}' is not configured, skipping it",
                    extra={"provider": provider.name},
                )

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self.providers]

    async def search(self, text: str) -> list[Candidate]:
        candidates: list[Candidate] = []
        for provider in self.providers:
            try:
                candidates.extend(await provider.search(text))
            except ProviderFatalError:
                raise
            except ProviderNotConfiguredError as e:
                LOGGER.warning(str(e), extra={"provider": provider.name})
            except RateLimitExceededError as e:
                LOGGER.warning(
                    f"Provider rate limited, no candidates from it: {e}",
                    extra={"provider": provider.name},
                )
            except APIClientError as e:
                LOGGER.warning(
                    f"Provider call failed, no candidates from it: {e}",
                    extra={"provider": provider.name, "error_type": type(e).__name__},
                )
            except Exception as e:
                LOGGER.error(
                    f"Provider raised an unexpected error, no candidates from it: {e}",
                    extra={"provider": provider.name, "error_type": type(e).__name__},
                    exc_info=True,
                )
        return candidates

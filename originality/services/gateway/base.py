"""Base class for reference providers called over HTTP."""

import asyncio
import re
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException

from originality.core.exceptions import (
    APIClientError,
    APITimeoutError,
    ProviderNotConfiguredError,
    RateLimitExceededError,
)
from originality.schemas.scan import Candidate, SourceKind
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)

_TAG = re.compile(r"<[^>]+>")
_SPACES = re.compile(r"\s+")


def clean_markup(text: Optional[str]) -> str:
    """Strip XML/HTML tags (JATS abstracts, search snippets) and collapse spaces."""
    if not text:
        return ""
    return _SPACES.sub(" ", _TAG.sub(" ", text)).strip()


class ReferenceProvider(ABC):
    """One external catalog searched for candidate correspondences.

    Handles HTTP requests, retries with exponential backoff and error
    mapping. Subclasses build the request and parse the response.
    """

    name: str = "provider"
    source_kind: SourceKind = SourceKind.WEB

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        results_per_query: int = 5,
        max_query_chars: int = 200,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the provider.

        Args:
            base_url: Search endpoint of the provider
            timeout: Request timeout in seconds
            max_retries: Total attempts per request
            retry_delay: Base delay for exponential backoff
            results_per_query: Maximum candidates requested per search
            max_query_chars: Query text is truncated to this length
            client: Shared client; a short-lived one is opened per call otherwise
        """
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.results_per_query = results_per_query
        self.max_query_chars = max_query_chars
        self.client = client
        self.logger = LOGGER

    @property
    def is_configured(self) -> bool:
        return True

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise ProviderNotConfiguredError(f"Provider '{self.name}' is missing credentials")

    def build_query(self, text: str) -> str:
        query = _SPACES.sub(" ", text).strip()
        if len(query) <= self.max_query_chars:
            return query
        truncated = query[:self.max_query_chars]
        return truncated.rsplit(" ", 1)[0] if " " in truncated else truncated

    async def search(self, text: str) -> list[Candidate]:
        """Search the provider for candidates matching ``text``.

        Raises:
            ProviderNotConfiguredError: If credentials are missing
            RateLimitExceededError: If the provider keeps answering 429
            APIClientError: If the request fails after retries
        """
        self.ensure_configured()
        query = self.build_query(text)
        if not query:
            return []
        try:
            data = await self._search(query)
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            # JSON decode errors are ValueErrors
            raise APIClientError(
                f"{self.name} returned an unexpected payload: {e}", original_error=e
            ) from e
        candidates = [c for c in data if c.snippet][:self.results_per_query]
        self.logger.debug(
            f"{self.name} returned {len(candidates)} candidates",
            extra={"provider": self.name, "query_chars": len(query)},
        )
        return candidates

    def parse_json(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a JSON object body.

        Raises:
            APIClientError: If the body is not JSON or not an object
        """
        try:
            payload = response.json()
        except ValueError as e:
            raise APIClientError(f"{self.name} returned a non-JSON body", original_error=e) from e
        if not isinstance(payload, dict):
            raise APIClientError(f"{self.name} returned {type(payload).__name__} instead of an object")
        return payload

    @abstractmethod
    async def _search(self, query: str) -> list[Candidate]:
        pass

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def call_api(
        self,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Call the provider with retry logic.

        Returns:
            The successful response

        Raises:
            APIClientError: If the call fails after retries
            APITimeoutError: If the call times out after retries
            RateLimitExceededError: If the provider rate-limits every attempt
        """
        url = self.base_url
        async with self._client() as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.request(
                        method, url, params=params, data=data, headers=headers, timeout=self.timeout
                    )
                    response.raise_for_status()
                    return response

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)

                except httpx.HTTPError as e:
                    await self._handle_transport_error(e, attempt, url)

        raise APIClientError(f"Failed to call {self.name} after {self.max_retries} attempts")

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str):
        status_code = error.response.status_code
        error_body = error.response.text

        self.logger.warning(
            f"{self.name} HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "status_code": status_code, "error_body": error_body[:500]},
        )

        # Client errors are final, except rate limiting
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"{self.name} client error {status_code}: {error_body[:200]}") from error

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        elif status_code == 429:
            raise RateLimitExceededError(f"{self.name} rate limit exceeded") from error
        else:
            raise APIClientError(f"{self.name} HTTP error {status_code} after retries") from error

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str):
        self.logger.warning(
            f"{self.name} timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url},
        )
        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(f"{self.name} timeout after {self.max_retries} attempts") from error

    async def _handle_transport_error(self, error: httpx.HTTPError, attempt: int, url: str):
        self.logger.warning(
            f"{self.name} transport error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)},
        )
        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"{self.name} error: {error}") from error

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        await asyncio.sleep(self.retry_delay * (2 ** attempt))

"""Interfaces the scan pipeline consumes from its collaborators."""

from typing import Optional, Protocol, Sequence, runtime_checkable

from originality.schemas.scan import Candidate, MatchRecord, ScanRecord


@runtime_checkable
class ExternalSourceGateway(Protocol):
    """Returns candidate correspondences for one text unit.

    Provider rate limits and missing configuration yield an empty list.
    ``ProviderFatalError`` is the only error a scan must not swallow.
    """

    async def search(self, text: str) -> list[Candidate]:
        ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Produces fixed-dimension sentence embeddings."""

    async def embed(self, text: str) -> Sequence[float]:
        ...


@runtime_checkable
class RerankProvider(Protocol):
    """Scores the relevance of a text pair in [0, 1]."""

    async def score(self, first: str, second: str) -> float:
        ...


@runtime_checkable
class ResultStore(Protocol):
    """Persistence of scans and their matches.

    Implementations enforce the scan lifecycle: status changes must follow
    ``ALLOWED_TRANSITIONS`` and matches are only written while the owning
    scan is processing.
    """

    async def create_scan(self, scan: ScanRecord) -> ScanRecord:
        ...

    async def get_scan(self, scan_id: str) -> Optional[ScanRecord]:
        ...

    async def update_scan(self, scan_id: str, **fields) -> ScanRecord:
        ...

    async def find_completed_by_owner_hash(self, owner_id: str, content_hash: str) -> Optional[ScanRecord]:
        ...

    async def list_scans_by_subject(self, subject_id: str, owner_id: str) -> list[ScanRecord]:
        ...

    async def create_match(self, match: MatchRecord) -> MatchRecord:
        ...

    async def list_matches(self, scan_id: str) -> list[MatchRecord]:
        ...

    async def delete_matches(self, scan_id: str) -> int:
        ...


@runtime_checkable
class CacheBackend(Protocol):
    """Ephemeral key/value store with expiry."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        ...

    async def expire(self, key: str, ttl: float) -> bool:
        ...

    async def add(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        """Set only if absent; True when the key was written."""
        ...

    async def delete(self, key: str) -> None:
        ...

"""Copyscape Premium text search (commercial web scanner)."""

from originality.core.exceptions import APIClientError, ProviderFatalError
from originality.schemas.scan import Candidate, SourceKind
from originality.services.gateway.base import ReferenceProvider, clean_markup

# Copyscape answers account problems with a 200 and an ``error`` field
_FATAL_ERROR_MARKERS = ("credit", "balance", "suspended", "username", "api key")


class CopyscapeProvider(ReferenceProvider):
    """Checks text against the web and reports the share of each page matched."""

    name = "copyscape"
    source_kind = SourceKind.WEB

    def __init__(self, base_url: str, username: str = "", api_key: str = "", **kwargs):
        super().__init__(base_url, **kwargs)
        self.username = username
        self.api_key = api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.username and self.api_key)

    def build_query(self, text: str) -> str:
        # Copyscape compares the whole unit, no truncation
        return " ".join(text.split())

    async def _search(self, query: str) -> list[Candidate]:
        params = {
            "u": self.username,
            "k": self.api_key,
            "o": "csearch",
            "e": "UTF-8",
            "f": "json",
            "c": "3",
        }
        response = await self.call_api("POST", params=params, data={"t": query})
        payload = self.parse_json(response)

        error = payload.get("error")
        if error:
            message = str(error)
            if any(marker in message.lower() for marker in _FATAL_ERROR_MARKERS):
                raise ProviderFatalError(f"copyscape: {message}")
            raise APIClientError(f"copyscape: {message}")

        results = payload.get("result") or []
        if isinstance(results, dict):
            results = [results]

        candidates = []
        for result in results:
            snippet = clean_markup(result.get("textsnippet") or result.get("htmlsnippet") or result.get("text"))
            if not snippet:
                continue
            candidates.append(
                Candidate(
                    snippet=snippet,
                    source_url=result.get("url"),
                    source_kind=self.source_kind,
                    title=clean_markup(result.get("title")) or None,
                    provider=self.name,
                    reported_similarity=self._reported_similarity(result),
                )
            )
        return candidates

    @staticmethod
    def _reported_similarity(result: dict):
        percent = result.get("percentmatched")
        if percent is None:
            words_matched = result.get("wordsmatched")
            query_words = result.get("querywords")
            if not words_matched or not query_words:
                return None
            percent = float(words_matched) / float(query_words) * 100
        return max(0.0, min(100.0, float(percent)))

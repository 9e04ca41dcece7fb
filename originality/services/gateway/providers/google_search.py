"""Google Custom Search (general web)."""

from originality.schemas.scan import Candidate, SourceKind
from originality.services.gateway.base import ReferenceProvider, clean_markup


class GoogleSearchProvider(ReferenceProvider):
    """Exact-phrase web search through a Programmable Search Engine."""

    name = "google"
    source_kind = SourceKind.WEB

    def __init__(self, base_url: str, api_key: str = "", search_engine_id: str = "", **kwargs):
        super().__init__(base_url, **kwargs)
        self.api_key = api_key
        self.search_engine_id = search_engine_id

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.search_engine_id)

    async def _search(self, query: str) -> list[Candidate]:
        params = {
            "key": self.api_key,
            "cx": self.search_engine_id,
            "q": f'"{query}"',
            # The API caps num at 10
            "num": min(self.results_per_query, 10),
        }
        response = await self.call_api("GET", params=params)

        candidates = []
        for item in self.parse_json(response).get("items") or []:
            snippet = clean_markup(item.get("snippet"))
            if not snippet:
                continue
            candidates.append(
                Candidate(
                    snippet=snippet,
                    source_url=item.get("link"),
                    source_kind=self.source_kind,
                    title=clean_markup(item.get("title")) or None,
                    provider=self.name,
                )
            )
        return candidates

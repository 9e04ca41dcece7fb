"""CrossRef works search (journal articles)."""

from typing import Optional

from originality.schemas.scan import Candidate, SourceKind
from originality.services.gateway.base import ReferenceProvider, clean_markup


class CrossRefProvider(ReferenceProvider):
    """Searches CrossRef bibliographic metadata. No key required."""

    name = "crossref"
    source_kind = SourceKind.JOURNAL

    def __init__(self, base_url: str, mailto: str = "", api_key: str = "", **kwargs):
        super().__init__(base_url, **kwargs)
        self.mailto = mailto
        self.api_key = api_key

    async def _search(self, query: str) -> list[Candidate]:
        params = {
            "query.bibliographic": query,
            "rows": self.results_per_query,
            "select": "title,abstract,URL,DOI",
        }
        if self.mailto:
            params["mailto"] = self.mailto
        headers = {"Crossref-Plus-API-Token": f"Bearer {self.api_key}"} if self.api_key else None

        response = await self.call_api("GET", params=params, headers=headers)
        items = (self.parse_json(response).get("message") or {}).get("items") or []
        return [c for c in (self._to_candidate(item) for item in items) if c is not None]

    def _to_candidate(self, item: dict) -> Optional[Candidate]:
        titles = item.get("title") or []
        title = clean_markup(titles[0]) if titles else None
        snippet = clean_markup(item.get("abstract")) or title
        if not snippet:
            return None
        url = item.get("URL") or (f"https://doi.org/{item['DOI']}" if item.get("DOI") else None)
        return Candidate(
            snippet=snippet,
            source_url=url,
            source_kind=self.source_kind,
            title=title,
            provider=self.name,
        )

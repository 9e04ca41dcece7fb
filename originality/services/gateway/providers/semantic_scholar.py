"""Semantic Scholar paper search (academic)."""

from originality.schemas.scan import Candidate, SourceKind
from originality.services.gateway.base import ReferenceProvider, clean_markup


class SemanticScholarProvider(ReferenceProvider):
    """Searches the Semantic Scholar Graph API. The key only raises rate limits."""

    name = "semantic_scholar"
    source_kind = SourceKind.ACADEMIC

    def __init__(self, base_url: str, api_key: str = "", **kwargs):
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    async def _search(self, query: str) -> list[Candidate]:
        params = {
            "query": query,
            "limit": self.results_per_query,
            "fields": "title,abstract,url,externalIds",
        }
        headers = {"x-api-key": self.api_key} if self.api_key else None

        response = await self.call_api("GET", params=params, headers=headers)
        candidates = []
        for paper in self.parse_json(response).get("data") or []:
            title = clean_markup(paper.get("title")) or None
            snippet = clean_markup(paper.get("abstract")) or title
            if not snippet:
                continue
            url = paper.get("url")
            doi = (paper.get("externalIds") or {}).get("DOI")
            if not url and doi:
                url = f"https://doi.org/{doi}"
            candidates.append(
                Candidate(
                    snippet=snippet,
                    source_url=url,
                    source_kind=self.source_kind,
                    title=title,
                    provider=self.name,
                )
            )
        return candidates

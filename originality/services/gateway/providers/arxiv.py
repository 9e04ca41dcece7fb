"""arXiv Atom search (preprint repository)."""

import xml.etree.ElementTree as ET

from originality.core.exceptions import APIClientError
from originality.schemas.scan import Candidate, SourceKind
from originality.services.gateway.base import ReferenceProvider, clean_markup

ATOM_NS = {"atom": "http://www.w3.org/2005/Atom"}


class ArxivProvider(ReferenceProvider):
    """Searches arXiv abstracts through the export API."""

    name = "arxiv"
    source_kind = SourceKind.REPOSITORY

    async def _search(self, query: str) -> list[Candidate]:
        # The export API treats quotes as phrase delimiters
        phrase = query.replace('"', " ")
        params = {
            "search_query": f"all:{phrase}",
            "start": 0,
            "max_results": self.results_per_query,
        }
        response = await self.call_api("GET", params=params)

        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as e:
            raise APIClientError(f"arxiv returned malformed XML: {e}", original_error=e) from e

        candidates = []
        for entry in root.findall("atom:entry", ATOM_NS):
            title = clean_markup(entry.findtext("atom:title", default="", namespaces=ATOM_NS)) or None
            snippet = clean_markup(entry.findtext("atom:summary", default="", namespaces=ATOM_NS)) or title
            if not snippet:
                continue
            url = (entry.findtext("atom:id", default="", namespaces=ATOM_NS) or "").strip() or None
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

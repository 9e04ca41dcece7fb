from .arxiv import ArxivProvider
from .copyscape import CopyscapeProvider
from .crossref import CrossRefProvider
from .google_search import GoogleSearchProvider
from .semantic_scholar import SemanticScholarProvider

__all__ = [
    "ArxivProvider",
    "CopyscapeProvider",
    "CrossRefProvider",
    "GoogleSearchProvider",
    "SemanticScholarProvider",
]

"""
Scoped search: query extension points, the search engine seam and the API models.

Provides:
- scope_main_query / scope_product_tax_query / scope_query_args: apply filters to queries
- SearchEngine / InMemoryCatalog: search execution
- Request/response models for the filter and search endpoints
"""

from search.engine import InMemoryCatalog, SearchEngine, SearchPage, get_search_engine
from search.hooks import scope_main_query, scope_product_tax_query, scope_query_args
from search.models import FilterPayload, SearchRequest, SearchResponse

__all__ = [
    "InMemoryCatalog",
    "SearchEngine",
    "SearchPage",
    "get_search_engine",
    "scope_main_query",
    "scope_product_tax_query",
    "scope_query_args",
    "FilterPayload",
    "SearchRequest",
    "SearchResponse",
]

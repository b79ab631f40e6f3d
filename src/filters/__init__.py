"""
Filter detection, resolution and query compilation.

One implementation shared by the page-side detector and the server-side
resolver:

    from filters import FilterConfig, FilterDetector, PageSnapshot, compile_filters

    config = FilterConfig.from_settings(get_settings())
    state = FilterDetector(config).detect(PageSnapshot(url=url, html=html))
    fragment = compile_filters(state, QueryContext(post_type="product"), config)
"""

from filters.config import FilterConfig
from filters.models import ArchiveTerm, FilterState, QueryFragment, TaxonomyClause, merge_states
from filters.detector import FilterDetector, PageSnapshot
from filters.forms import enhance_search_forms
from filters.resolver import RequestContext, identity_key, resolve_filters
from filters.compiler import QueryContext, compile_filters, merge_tax_query

__all__ = [
    "FilterConfig",
    "ArchiveTerm",
    "FilterState",
    "QueryFragment",
    "TaxonomyClause",
    "merge_states",
    "FilterDetector",
    "PageSnapshot",
    "enhance_search_forms",
    "RequestContext",
    "identity_key",
    "resolve_filters",
    "QueryContext",
    "compile_filters",
    "merge_tax_query",
]

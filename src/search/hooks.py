"""
Extension points that apply the compiled filters to outgoing queries.

Each adapter takes the query (or its tax query) as the search backend
builds it and returns a scoped copy. They return the input unchanged when
scoping is disabled, the effective filters are empty, the integration is
switched off, or (where it matters) the query is not a search.
"""

from typing import Any, Dict, List, Mapping, Optional

from config.constants import PRODUCT_POST_TYPE
from core.logging import get_logger
from filters.compiler import QueryContext, compile_filters, merge_tax_query
from filters.config import FilterConfig
from filters.models import FilterState


logger = get_logger(__name__)


def _active(state: FilterState, config: FilterConfig, integration: Optional[str]) -> bool:
    if not config.enabled or state.is_empty():
        return False
    return integration is None or config.integration_enabled(integration)


def scope_main_query(
    query_vars: Mapping[str, Any],
    state: FilterState,
    context: QueryContext,
    config: FilterConfig,
    integration: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Scope a main search query (also used for Elementor and JetSearch
    results pages, named by `integration`).

    `query_vars["is_search"]` marks a search; anything else is left alone.
    """
    scoped = dict(query_vars)
    if not query_vars.get("is_search") or not _active(state, config, integration):
        return scoped

    fragment = compile_filters(state, context, config)
    if fragment.is_empty():
        return scoped

    scoped["tax_query"] = merge_tax_query(query_vars.get("tax_query"), fragment)
    if config.debug:
        logger.debug("Scoped main query", integration=integration, tax_query=scoped["tax_query"])
    return scoped


def scope_product_tax_query(
    tax_query: Optional[Mapping[str, Any]],
    state: FilterState,
    context: QueryContext,
    config: FilterConfig,
    is_search: bool,
) -> Dict[str, Any]:
    """WooCommerce product query: add the filters to its tax query."""
    existing = dict(tax_query or {})
    if not is_search or not _active(state, config, "woocommerce"):
        return existing

    product_context = QueryContext(
        post_type=context.post_type or PRODUCT_POST_TYPE,
        commerce_scope=True,
        woocommerce_active=True,
    )
    fragment = compile_filters(state, product_context, config)
    return merge_tax_query(existing, fragment)


def scope_query_args(
    args: Mapping[str, Any],
    state: FilterState,
    config: FilterConfig,
) -> Dict[str, Any]:
    """
    JetSearch AJAX/REST query args.

    These requests are always searches; product context comes from
    args["post_type"].
    """
    scoped = dict(args)
    if not _active(state, config, "jetsearch"):
        return scoped

    post_type = args.get("post_type")
    post_types: List[str] = [post_type] if isinstance(post_type, str) else list(post_type or [])
    context = QueryContext(
        post_type=post_types,
        commerce_scope=PRODUCT_POST_TYPE in post_types,
        woocommerce_active=config.woocommerce_active,
    )
    fragment = compile_filters(state, context, config)
    if not fragment.is_empty():
        scoped["tax_query"] = merge_tax_query(args.get("tax_query"), fragment)
    return scoped

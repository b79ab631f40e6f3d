"""
Compiles a FilterState into a taxonomy query.

OR within a taxonomy (one clause per taxonomy, operator IN), AND across
taxonomies (relation AND once there is more than one clause).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from config.constants import (
    POST_CATEGORY_TAXONOMY,
    POST_TAG_TAXONOMY,
    PRODUCT_CATEGORY_TAXONOMY,
    PRODUCT_POST_TYPE,
    PRODUCT_TAG_TAXONOMY,
)
from core.logging import get_logger
from filters.classify import is_numeric_array, taxonomy_from_key
from filters.config import FilterConfig
from filters.models import FilterState, QueryFragment, TaxonomyClause, Terms


logger = get_logger(__name__)


@dataclass(frozen=True)
class QueryContext:
    """
    Where the query runs.

    Attributes:
        post_type: Post type(s) the query is restricted to, if any
        commerce_scope: Shop page, product archive or product search
        woocommerce_active: Whether WooCommerce is available at all
    """

    post_type: Union[str, Sequence[str], None] = None
    commerce_scope: bool = False
    woocommerce_active: bool = False

    def is_product_context(self) -> bool:
        post_types = [self.post_type] if isinstance(self.post_type, str) else list(self.post_type or [])
        if PRODUCT_POST_TYPE in post_types:
            return True
        return self.woocommerce_active and self.commerce_scope


def lookup_field(terms: Terms) -> str:
    return "term_id" if is_numeric_array(terms) else "slug"


def _clause(taxonomy: str, terms: Terms) -> TaxonomyClause:
    return TaxonomyClause(taxonomy=taxonomy, field=lookup_field(terms), terms=terms)


def compile_filters(
    state: FilterState,
    context: QueryContext,
    config: FilterConfig,
) -> QueryFragment:
    """
    Build the query fragment for `state`.

    Categories and tags become one clause each, on the product or the post
    taxonomy depending on the context. Custom taxonomy entries become one
    clause each when the taxonomy exists; unknown ones are dropped.
    """
    if state.is_empty():
        return QueryFragment()

    product = context.is_product_context()
    clauses: List[TaxonomyClause] = []

    if state.categories:
        taxonomy = PRODUCT_CATEGORY_TAXONOMY if product else POST_CATEGORY_TAXONOMY
        if config.taxonomy_enabled(taxonomy):
            clauses.append(_clause(taxonomy, state.categories))

    if state.tags:
        taxonomy = PRODUCT_TAG_TAXONOMY if product else POST_TAG_TAXONOMY
        if config.taxonomy_enabled(taxonomy):
            clauses.append(_clause(taxonomy, state.tags))

    for key, terms in state.taxonomies.items():
        taxonomy = taxonomy_from_key(key, config.prefix)
        if not taxonomy or not config.taxonomy_exists(taxonomy):
            if config.debug:
                logger.debug("Dropping unknown taxonomy", key=key, taxonomy=taxonomy)
            continue
        clauses.append(_clause(taxonomy, terms))

    return QueryFragment(clauses=tuple(clauses))


# =============================================================================
# Merging into an existing query
# =============================================================================

def _is_group(node: Any) -> bool:
    return isinstance(node, Mapping) and "clauses" in node


def merge_tax_query(
    existing: Optional[Mapping[str, Any]],
    fragment: QueryFragment,
) -> Dict[str, Any]:
    """
    Combine an existing tax query with a fragment without losing either.

    No existing constraint: the fragment as is. Otherwise one AND group
    holding both: an existing AND group is flattened into it, any other
    group (OR, or a bare clause) is nested as a single member.
    """
    compiled = fragment.to_tax_query()
    if not existing:
        return compiled
    if not compiled:
        return dict(existing)

    members: List[Any] = []
    if _is_group(existing) and existing.get("relation", "AND").upper() == "AND":
        members.extend(existing["clauses"])
    else:
        members.append(dict(existing))
    members.extend(compiled["clauses"])

    return {"relation": "AND", "clauses": members}

"""
Taxonomy name classification.

Every source of filter values (URL, form controls, pills, archive context,
plugin globals, request bodies) routes taxonomy names through here so they
all agree on what is a category, what is a tag and what is a custom
taxonomy.

The rule is substring based: a name containing "cat" is a category, else a
name containing "tag" is a tag. Names like "concatenation" therefore count
as categories; callers rely on that behavior, so it stays.
"""

from typing import Any, Iterable, Optional

from config.constants import FILTER_PARAM_PREFIX, TAX_PARAM_PREFIX, TAX_QUERY_MARKER
from core.utils import is_number
from filters.models import FilterState, normalize_terms


CATEGORY = "category"
TAG = "tag"
TAXONOMY = "taxonomy"


def classify_taxonomy(name: str) -> str:
    """Return CATEGORY, TAG or TAXONOMY for a taxonomy name."""
    if "cat" in name or name == "category":
        return CATEGORY
    if "tag" in name:
        return TAG
    return TAXONOMY


def taxonomy_key(name: str, prefix: str) -> str:
    """Key under which a custom taxonomy is stored in FilterState.taxonomies."""
    return f"{prefix}_{name}"


def partial_for(taxonomy: Optional[str], values: Any, prefix: str) -> FilterState:
    """
    One-source partial state holding `values` for `taxonomy`.

    Empty when the taxonomy name is missing or no usable value remains.
    """
    if not taxonomy:
        return FilterState.empty()
    terms = normalize_terms(values)
    if not terms:
        return FilterState.empty()

    kind = classify_taxonomy(taxonomy)
    if kind == CATEGORY:
        return FilterState.build(categories=terms)
    if kind == TAG:
        return FilterState.build(tags=terms)
    return FilterState.build(taxonomies={taxonomy_key(taxonomy, prefix): terms})


def strip_control_name(name: str) -> str:
    """
    Derive a taxonomy name from a form control name.

    "tax-product_tag[]" -> "product_tag", "filter_color" -> "color".
    """
    name = name.replace("[]", "").strip()
    if "[" in name:
        name = name.split("[", 1)[0]
    for marker in (TAX_PARAM_PREFIX, FILTER_PARAM_PREFIX):
        if name.startswith(marker):
            return name[len(marker):]
    return name


def taxonomy_from_key(key: str, prefix: str) -> str:
    """
    Recover the taxonomy name from a FilterState.taxonomies key.

    Removes a "_tax_query" marker, then one leading "<prefix>_", "tax-" or
    "filter_".
    """
    name = key.replace(TAX_QUERY_MARKER, "")
    for marker in (f"{prefix}_", TAX_PARAM_PREFIX, FILTER_PARAM_PREFIX):
        if marker and name.startswith(marker):
            return name[len(marker):]
    return name


def is_numeric_array(values: Iterable[Any]) -> bool:
    """True when non-empty and every value parses as a number."""
    values = list(values)
    return bool(values) and all(is_number(value) for value in values)

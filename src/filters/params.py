"""
Parameter-name rules shared by URL detection and request resolution.
"""

from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union
from urllib.parse import parse_qsl, urlsplit

from config.constants import (
    CATEGORY_PARAMS,
    FILTER_PARAM_PREFIX,
    TAG_PARAMS,
    TAX_PARAM_PREFIX,
    TAX_QUERY_MARKER,
)
from core.utils import split_csv
from filters.models import FilterState


Params = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def is_taxonomy_param(key: str, prefix: str) -> bool:
    """True for parameters that carry a custom taxonomy filter."""
    return (
        key.startswith(f"{prefix}_")
        or TAX_QUERY_MARKER in key
        or key.startswith(TAX_PARAM_PREFIX)
        or key.startswith(FILTER_PARAM_PREFIX)
    )


def _group(params: Params) -> Dict[str, List[Any]]:
    """Collect repeated keys (multidict pairs or a plain mapping) into lists."""
    pairs = params.items() if isinstance(params, Mapping) else params
    grouped: Dict[str, List[Any]] = {}
    for key, value in pairs:
        if not isinstance(key, str):
            continue
        grouped.setdefault(key, []).append(value)
    return grouped


def detect_from_params(params: Params, prefix: str) -> FilterState:
    """
    Partial state from query/body parameters.

    Accepts a mapping of name -> value (or list of values), or an iterable
    of (name, value) pairs such as Starlette's QueryParams.multi_items().
    """
    grouped = _group(params)

    categories: List[str] = []
    for name in CATEGORY_PARAMS:
        categories.extend(split_csv(grouped.get(name)))

    tags: List[str] = []
    for name in TAG_PARAMS:
        tags.extend(split_csv(grouped.get(name)))

    taxonomies: Dict[str, List[str]] = {}
    for key, values in grouped.items():
        if is_taxonomy_param(key, prefix):
            taxonomies.setdefault(key, []).extend(split_csv(values))

    return FilterState.build(categories=categories, tags=tags, taxonomies=taxonomies)


def detect_from_url(url: str, prefix: str) -> FilterState:
    """Partial state from the query string of a URL."""
    query = urlsplit(url or "").query
    return detect_from_params(parse_qsl(query, keep_blank_values=False), prefix)

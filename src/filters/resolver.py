"""
Server-side filter resolution.

Rebuilds the shopper's FilterState for one request from everything the
request can carry: the state stored for the shopper, query parameters,
the request body, the archive the page is scoped to and WooCommerce's
layered-nav selections. All sources are unioned; none overrides another.

The resolver does no I/O of its own. The request, the store and the
settings are passed in by the caller.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Tuple

from config.constants import (
    ANONYMOUS_IDENTITY,
    CATEGORIES_FIELD,
    FILTER_STATE_KEY_PREFIX,
    FILTERS_FIELD,
    PRODUCT_CATEGORY_TAXONOMY,
    PRODUCT_TAG_TAXONOMY,
    TAGS_FIELD,
)
from core.logging import get_logger
from core.utils import split_csv
from filters.classify import partial_for, taxonomy_key
from filters.config import FilterConfig
from filters.models import ArchiveTerm, FilterState, merge_states
from filters.params import Params, detect_from_params


logger = get_logger(__name__)


class StateReader(Protocol):
    """The part of the filter store the resolver needs."""

    def load(self, key: str) -> FilterState:
        ...


@dataclass(frozen=True)
class RequestContext:
    """
    What the resolver knows about the current request.

    Attributes:
        query_params: Query string as a mapping or (name, value) pairs
        body: Decoded form/JSON body
        identity_key: Storage key of the shopper (see identity_key())
        archive: Term the requested page is an archive of, if any
        layered_nav: WooCommerce chosen attributes, {taxonomy: {"terms": [...]}}
        token_valid: None when no anti-forgery token came with the body,
                     else whether it verified
    """

    query_params: Params = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)
    identity_key: str = FILTER_STATE_KEY_PREFIX + ANONYMOUS_IDENTITY
    archive: Optional[ArchiveTerm] = None
    layered_nav: Mapping[str, Any] = field(default_factory=dict)
    token_valid: Optional[bool] = None


# =============================================================================
# Identity
# =============================================================================

def client_ip(headers: Mapping[str, str], remote_addr: Optional[str] = None) -> str:
    """
    Client IP: X-Client-IP, then the first X-Forwarded-For hop, then the
    socket address. Empty string when none is known.
    """
    lowered = {str(k).lower(): v for k, v in headers.items()}

    ip = (lowered.get("x-client-ip") or "").strip()
    if ip:
        return ip

    forwarded = lowered.get("x-forwarded-for") or ""
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop

    return (remote_addr or "").strip()


def identity_key(
    user_id: Optional[str],
    headers: Mapping[str, str],
    remote_addr: Optional[str] = None,
) -> str:
    """Storage key for a shopper's filter state."""
    if user_id:
        return f"{FILTER_STATE_KEY_PREFIX}{user_id}"
    ip = client_ip(headers, remote_addr)
    if not ip:
        return f"{FILTER_STATE_KEY_PREFIX}{ANONYMOUS_IDENTITY}"
    return FILTER_STATE_KEY_PREFIX + hashlib.md5(ip.encode("utf-8")).hexdigest()


# =============================================================================
# Sources
# =============================================================================

def from_body(body: Mapping[str, Any], token_valid: Optional[bool]) -> FilterState:
    """
    Partial state from a request body.

    The serialized blob is skipped when its anti-forgery token failed;
    the individual fields are always read.
    """
    if not isinstance(body, Mapping):
        return FilterState.empty()

    blob_state = FilterState.empty()
    blob = body.get(FILTERS_FIELD)
    if blob:
        if token_valid is False:
            logger.info("Ignoring filter payload with invalid token")
        else:
            blob_state = FilterState.parse_blob(blob)

    categories: List[str] = split_csv(body.get("categories")) + split_csv(body.get(CATEGORIES_FIELD))
    tags: List[str] = split_csv(body.get("tags")) + split_csv(body.get(TAGS_FIELD))

    taxonomies = body.get("taxonomies")
    fields_state = FilterState.build(
        categories=categories,
        tags=tags,
        taxonomies={
            key: split_csv(terms) for key, terms in taxonomies.items()
        } if isinstance(taxonomies, Mapping) else None,
    )
    return blob_state.merge(fields_state)


def from_archive(archive: Optional[ArchiveTerm], prefix: str) -> FilterState:
    if archive is None:
        return FilterState.empty()
    return partial_for(archive.taxonomy, archive.identifier, prefix)


def from_layered_nav(chosen: Mapping[str, Any], prefix: str) -> FilterState:
    """WooCommerce layered-nav chosen attributes."""
    if not isinstance(chosen, Mapping):
        return FilterState.empty()

    categories: List[str] = []
    tags: List[str] = []
    taxonomies = {}
    for taxonomy, data in chosen.items():
        terms = data.get("terms") if isinstance(data, Mapping) else data
        values = split_csv(terms)
        if taxonomy == PRODUCT_CATEGORY_TAXONOMY:
            categories.extend(values)
        elif taxonomy == PRODUCT_TAG_TAXONOMY:
            tags.extend(values)
        elif isinstance(taxonomy, str) and taxonomy:
            taxonomies[taxonomy_key(taxonomy, prefix)] = values
    return FilterState.build(categories=categories, tags=tags, taxonomies=taxonomies)


# =============================================================================
# Resolution
# =============================================================================

def _load_stored(store: Optional[StateReader], key: str) -> FilterState:
    """Stored state for `key`; a failing store contributes nothing."""
    if store is None:
        return FilterState.empty()
    try:
        return store.load(key)
    except Exception as e:
        logger.warning("Stored filters unavailable", identity=key, error=str(e))
        return FilterState.empty()


def resolve_sources(
    request: RequestContext,
    store: Optional[StateReader],
    config: FilterConfig,
) -> Iterable[Tuple[str, FilterState]]:
    """Each source's partial state, labelled, in merge order."""
    yield "stored", _load_stored(store, request.identity_key)
    yield "params", detect_from_params(request.query_params, config.prefix)
    yield "body", from_body(request.body, request.token_valid)
    yield "archive", from_archive(request.archive, config.prefix)
    if config.integration_enabled("woocommerce"):
        yield "layered_nav", from_layered_nav(request.layered_nav, config.prefix)


def resolve_filters(
    request: RequestContext,
    store: Optional[StateReader],
    config: FilterConfig,
) -> FilterState:
    """Effective FilterState for a request; empty when scoping is disabled."""
    if not config.enabled:
        return FilterState.empty()

    partials = dict(resolve_sources(request, store, config))
    state = merge_states(*partials.values())

    if config.debug:
        logger.debug(
            "Resolved filters",
            identity=request.identity_key,
            sources=[name for name, partial in partials.items() if not partial.is_empty()],
            filters=state.to_dict(),
        )
    return state

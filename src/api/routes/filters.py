"""
Filter State and Scoped Search API Routes.

Pages push the filters they detect to POST /api/filters; later requests
from the same shopper (keyed by user id or client IP) recover them, so an
AJAX search or a paginated listing stays scoped even when it carries no
filter parameters itself.

Writes are protected by an anti-forgery token issued by GET /api/filters/token.

NOTE: Routes use `def` (not `async def`) because the storage backends
(Redis client, in-memory store) are synchronous.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from config.constants import TOKEN_HEADER
from config.settings import Settings, get_settings
from core.auth import AuthUser, get_current_user
from core.logging import get_logger
from core.tokens import check_token, issue_token
from filters.compiler import QueryContext, compile_filters
from filters.config import FilterConfig
from filters.models import ArchiveTerm, FilterState
from filters.resolver import RequestContext, identity_key, resolve_filters
from search.engine import SearchEngine, get_search_engine
from search.models import (
    FilterPayload,
    FilterStateModel,
    FilterStateResponse,
    ResolveResponse,
    SearchRequest,
    SearchResponse,
    TokenResponse,
)
from services.filter_store import FilterStateService, get_filter_state_service


logger = get_logger(__name__)

router = APIRouter(prefix="/api/filters", tags=["Filters"])

SECURITY_CHECK_FAILED = "Security check failed."

# Query parameters describing the page, not filters
PAGE_PARAMS = ("archive_taxonomy", "archive_term", "post_type")


# =============================================================================
# Dependencies
# =============================================================================

def get_filter_config() -> FilterConfig:
    return FilterConfig.from_settings(get_settings())


def get_identity(
    request: Request,
    user: Optional[AuthUser] = Depends(get_current_user),
) -> str:
    """Storage key of the shopper making the request."""
    remote_addr = request.client.host if request.client else None
    return identity_key(user.id if user else None, request.headers, remote_addr)


def _security_check_failed() -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={"success": False, "message": SECURITY_CHECK_FAILED},
    )


def _token_ok(token: Optional[str], identity: str, settings: Settings) -> bool:
    return bool(check_token(token, identity, settings.token_secret, settings.token_ttl_seconds))


# =============================================================================
# Token
# =============================================================================

@router.get(
    "/token",
    response_model=TokenResponse,
    summary="Issue an anti-forgery token",
)
def get_token(identity: str = Depends(get_identity)) -> TokenResponse:
    """Token bound to the caller's identity; required for writes."""
    settings = get_settings()
    return TokenResponse(
        token=issue_token(identity, settings.token_secret),
        expires_in=settings.token_ttl_seconds,
    )


# =============================================================================
# Filter State
# =============================================================================

@router.post(
    "",
    response_model=FilterStateResponse,
    summary="Store the shopper's active filters",
    responses={403: {"description": SECURITY_CHECK_FAILED}},
)
def set_filters(
    payload: FilterPayload,
    identity: str = Depends(get_identity),
    store: FilterStateService = Depends(get_filter_state_service),
    x_scope_token: Optional[str] = Header(None, alias=TOKEN_HEADER),
):
    """
    Replace the stored filters (or union with them when `merge` is set).

    The token goes in the `token` field or the X-Scope-Token header.
    """
    settings = get_settings()
    if not _token_ok(payload.token or x_scope_token, identity, settings):
        logger.info("Rejected filter write", reason="invalid_token")
        return _security_check_failed()

    state = FilterState.parse_blob(payload.filters).merge(
        FilterState.build(
            categories=payload.categories,
            tags=payload.tags,
            taxonomies=payload.taxonomies,
        )
    )
    stored = store.save(identity, state, merge=payload.merge)

    return FilterStateResponse(
        filters=FilterStateModel.from_state(stored),
        message="Filters updated.",
    )


@router.get(
    "",
    response_model=FilterStateResponse,
    summary="Read the stored filters",
)
def get_filters(
    identity: str = Depends(get_identity),
    store: FilterStateService = Depends(get_filter_state_service),
) -> FilterStateResponse:
    return FilterStateResponse(filters=FilterStateModel.from_state(store.load(identity)))


@router.delete(
    "",
    response_model=FilterStateResponse,
    summary="Clear the stored filters",
    responses={403: {"description": SECURITY_CHECK_FAILED}},
)
def clear_filters(
    identity: str = Depends(get_identity),
    store: FilterStateService = Depends(get_filter_state_service),
    token: Optional[str] = Query(None),
    x_scope_token: Optional[str] = Header(None, alias=TOKEN_HEADER),
):
    if not _token_ok(token or x_scope_token, identity, get_settings()):
        return _security_check_failed()

    store.clear(identity)
    return FilterStateResponse(
        filters=FilterStateModel.from_state(FilterState.empty()),
        message="Filters cleared.",
    )


# =============================================================================
# Resolution / Search
# =============================================================================

def archive_term(taxonomy: Optional[str], term: Optional[str]) -> Optional[ArchiveTerm]:
    """Archive the request was made from; numeric terms are term IDs."""
    taxonomy = (taxonomy or "").strip()
    term = (term or "").strip()
    if not taxonomy or not term:
        return None
    if term.isdigit():
        return ArchiveTerm(taxonomy=taxonomy, term_id=int(term))
    return ArchiveTerm(taxonomy=taxonomy, slug=term)


def _request_context(
    request: Request,
    identity: str,
    body: Optional[dict] = None,
    token: Optional[str] = None,
    archive: Optional[ArchiveTerm] = None,
    layered_nav: Optional[dict] = None,
) -> RequestContext:
    settings = get_settings()
    return RequestContext(
        query_params=[
            (key, value) for key, value in request.query_params.multi_items()
            if key not in PAGE_PARAMS
        ],
        body=body or {},
        identity_key=identity,
        archive=archive,
        layered_nav=layered_nav or {},
        token_valid=check_token(token, identity, settings.token_secret, settings.token_ttl_seconds),
    )


@router.get(
    "/resolve",
    response_model=ResolveResponse,
    summary="Effective filters and compiled tax query for this request",
)
def resolve(
    request: Request,
    post_type: Optional[str] = Query(None, description="Post type the query targets"),
    archive_taxonomy: Optional[str] = Query(None, description="Taxonomy of the archive page"),
    archive_slug: Optional[str] = Query(None, alias="archive_term", description="Archive term slug or ID"),
    identity: str = Depends(get_identity),
    store: FilterStateService = Depends(get_filter_state_service),
    config: FilterConfig = Depends(get_filter_config),
) -> ResolveResponse:
    """
    Stored filters unioned with the filters in the query string, compiled
    for `post_type` (or the shop context when WooCommerce is active).
    """
    archive = archive_term(archive_taxonomy, archive_slug)
    state = resolve_filters(_request_context(request, identity, archive=archive), store, config)
    context = QueryContext(
        post_type=post_type,
        commerce_scope=post_type in (None, "product"),
        woocommerce_active=config.woocommerce_active,
    )
    fragment = compile_filters(state, context, config)
    return ResolveResponse(
        filters=FilterStateModel.from_state(state),
        tax_query=fragment.to_tax_query(),
        product_context=context.is_product_context(),
    )


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Search scoped to the shopper's filters",
)
def search(
    payload: SearchRequest,
    request: Request,
    identity: str = Depends(get_identity),
    store: FilterStateService = Depends(get_filter_state_service),
    config: FilterConfig = Depends(get_filter_config),
    engine: SearchEngine = Depends(get_search_engine),
    x_scope_token: Optional[str] = Header(None, alias=TOKEN_HEADER),
) -> SearchResponse:
    """
    Run a text search restricted to the effective filters: stored state,
    query string and the filters in the body, unioned.

    A serialized `filters` blob is ignored when a token accompanies it and
    fails verification.
    """
    settings = get_settings()
    ctx = _request_context(
        request,
        identity,
        payload.to_body(),
        payload.token or x_scope_token,
        archive=archive_term(payload.archive_taxonomy, payload.archive_term),
        layered_nav=payload.layered_nav,
    )
    state = resolve_filters(ctx, store, config)

    context = QueryContext(
        post_type=payload.post_type,
        commerce_scope=True,
        woocommerce_active=config.woocommerce_active,
    )
    tax_query = compile_filters(state, context, config).to_tax_query()

    page = engine.search(
        query=payload.query,
        tax_query=tax_query,
        post_type=payload.post_type,
        page=payload.page,
        per_page=payload.per_page or settings.default_per_page,
    )

    logger.info(
        "Scoped search",
        query=payload.query,
        post_type=payload.post_type,
        total=page.total,
        clauses=len(tax_query.get("clauses", [])),
    )

    return SearchResponse(
        results=page.items,
        total=page.total,
        total_pages=page.total_pages,
        page=page.page,
        query=payload.query,
        filters=FilterStateModel.from_state(state),
        tax_query=tax_query,
    )

"""
Application constants and detection configuration.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Tuple


# =============================================================================
# Parameter Names
# =============================================================================

# Query/body parameters that always carry category terms
CATEGORY_PARAMS: Tuple[str, ...] = ("product_cat", "category", "category_name", "cat")

# Query/body parameters that always carry tag terms
TAG_PARAMS: Tuple[str, ...] = ("product_tag", "tag", "post_tag")

# Markers that make any parameter a custom taxonomy filter
TAX_QUERY_MARKER = "_tax_query"
TAX_PARAM_PREFIX = "tax-"
FILTER_PARAM_PREFIX = "filter_"

# Control values that mean "all" / "no selection"
SENTINEL_VALUES: FrozenSet[str] = frozenset({"", "0", "-1"})

# Hidden form / request body fields
FILTERS_FIELD = "scope_filters"
TOKEN_FIELD = "scope_token"
TOKEN_HEADER = "X-Scope-Token"
CATEGORIES_FIELD = "scope_categories"
TAGS_FIELD = "scope_tags"

# Storage key prefix (identity key is appended)
FILTER_STATE_KEY_PREFIX = "search_scope_filters_"
ANONYMOUS_IDENTITY = "anonymous"


# =============================================================================
# Taxonomies
# =============================================================================

PRODUCT_CATEGORY_TAXONOMY = "product_cat"
PRODUCT_TAG_TAXONOMY = "product_tag"
POST_CATEGORY_TAXONOMY = "category"
POST_TAG_TAXONOMY = "post_tag"
PRODUCT_POST_TYPE = "product"


# =============================================================================
# Detection Sources
# =============================================================================

SOURCE_URL = "url"
SOURCE_CHECKBOX = "checkbox"
SOURCE_ARCHIVE = "archive"
SOURCE_JETFILTERS = "jetfilters"

ALL_SOURCES: Tuple[str, ...] = (SOURCE_URL, SOURCE_CHECKBOX, SOURCE_ARCHIVE, SOURCE_JETFILTERS)


# =============================================================================
# Page Selectors
# =============================================================================

@dataclass(frozen=True)
class PageSelectors:
    """CSS selectors the page detector and form enhancer work with."""

    # Wrappers that carry the taxonomy of the controls inside them
    wrappers: str = "[data-content-id], [data-taxonomy], .jet-filter"

    # Already-applied filter chips
    active_items: Tuple[str, ...] = (
        ".jet-active-tag:not(.jet-active-tag--all)",
        ".woocommerce-widget-layered-nav-list__item--chosen",
    )

    archive_marker: str = "[data-jezweb-current-term]"

    search_forms: Tuple[str, ...] = (
        'form[role="search"]',
        ".search-form",
        ".woocommerce-product-search",
        ".jet-ajax-search__form",
        ".jet-ajax-search form",
        ".elementor-search-form form",
        ".elementor-widget-search-form form",
    )

    # Controls whose change event triggers re-detection
    change_triggers: Tuple[str, ...] = field(default_factory=lambda: (
        '.woocommerce-widget-layered-nav-list input[type="checkbox"]',
        ".jet-checkboxes-list__input",
        '.yith-wcan-filter input[type="checkbox"]',
        ".facetwp-checkbox input",
        ".elementor-filter-checkbox",
        ".jet-radio-list__input",
        '.yith-wcan-filter input[type="radio"]',
        ".dropdown_product_cat",
        ".jet-select__control",
        'input[name*="product_cat"]',
        'input[name*="product_tag"]',
        'select[name*="product_cat"]',
        'select[name*="product_tag"]',
    ))


DEFAULT_SELECTORS = PageSelectors()

# Marker written on enhanced forms
ENHANCED_ATTR = "data-scope-enhanced"
ENHANCED_CLASS = "scope-enhanced-search"


# =============================================================================
# Timing
# =============================================================================

DETECT_DEBOUNCE_SECONDS = 0.150
SYNC_DEBOUNCE_SECONDS = 0.300
PUSH_TIMEOUT_SECONDS = 5.0

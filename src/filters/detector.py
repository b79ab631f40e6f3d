"""
Page-side filter detection.

Scans a page snapshot (URL, rendered markup and third-party JS globals) for
active filters and normalizes them into one FilterState. Sources:

    url         query string parameters
    checkbox    checked inputs, selected options and active-filter pills
    archive     body classes and the current-term marker element
    jetfilters  the JetSmartFilters global object

Each source is isolated: one that fails contributes nothing and detection
carries on with the rest.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from bs4 import BeautifulSoup, Tag

from config.constants import (
    DEFAULT_SELECTORS,
    PRODUCT_CATEGORY_TAXONOMY,
    PRODUCT_TAG_TAXONOMY,
    SENTINEL_VALUES,
    SOURCE_ARCHIVE,
    SOURCE_CHECKBOX,
    SOURCE_JETFILTERS,
    SOURCE_URL,
    PageSelectors,
)
from core.logging import LoggerMixin
from core.utils import safe_get, split_csv
from filters.classify import partial_for, strip_control_name
from filters.config import FilterConfig
from filters.models import FilterState, merge_states
from filters.params import detect_from_url


JETFILTERS_GLOBAL = "JetSmartFilters"


@dataclass(frozen=True)
class PageSnapshot:
    """
    Page state the detector works on.

    Attributes:
        url: Current page URL including the query string
        html: Rendered markup
        globals: Third-party JS globals, e.g. {"JetSmartFilters": {...}}
    """

    url: str = ""
    html: str = ""
    globals: Mapping[str, Any] = field(default_factory=dict)

    def parse(self) -> BeautifulSoup:
        return BeautifulSoup(self.html or "", "lxml")


def _usable(values: Any) -> List[str]:
    """Split values and drop the 'no selection' sentinels."""
    return [value for value in split_csv(values) if value not in SENTINEL_VALUES]


def _attr(element: Optional[Tag], *names: str) -> Optional[str]:
    """First non-empty attribute among `names`."""
    if element is None:
        return None
    for name in names:
        value = element.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        if value and value.strip():
            return value.strip()
    return None


def _iter_entries(container: Any) -> List[Any]:
    """Values of a JS object-or-array."""
    if isinstance(container, Mapping):
        return list(container.values())
    if isinstance(container, (list, tuple)):
        return list(container)
    return []


class FilterDetector(LoggerMixin):
    """
    Detects active filters on a page.

    Usage:
        detector = FilterDetector(FilterConfig.from_settings(get_settings()))
        state = detector.detect(PageSnapshot(url=url, html=html))
    """

    def __init__(self, config: FilterConfig, selectors: PageSelectors = DEFAULT_SELECTORS):
        self.config = config
        self.selectors = selectors

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def detect(self, snapshot: PageSnapshot) -> FilterState:
        """Union of every enabled source's partial state."""
        if not self.config.enabled:
            return FilterState.empty()

        soup = snapshot.parse()
        sources: Dict[str, Callable[[], FilterState]] = {
            SOURCE_URL: lambda: self.from_url(snapshot.url),
            SOURCE_CHECKBOX: lambda: self.from_controls(soup).merge(self.from_pills(soup)),
            SOURCE_ARCHIVE: lambda: self.from_archive(soup),
            SOURCE_JETFILTERS: lambda: self.from_jetfilters(snapshot.globals),
        }

        partials = []
        for name, detect_source in sources.items():
            if not self.config.source_enabled(name):
                continue
            if name == SOURCE_JETFILTERS and not self.config.integration_enabled("jetfilters"):
                continue
            partials.append(self._run_source(name, detect_source))

        return merge_states(*partials)

    def _run_source(self, name: str, detect_source: Callable[[], FilterState]) -> FilterState:
        try:
            return detect_source()
        except Exception as e:
            if self.config.debug:
                self.logger.debug("Filter source failed", source=name, error=str(e))
            return FilterState.empty()

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def from_url(self, url: str) -> FilterState:
        return detect_from_url(url, self.config.prefix)

    def from_controls(self, soup: BeautifulSoup) -> FilterState:
        """Checked checkboxes and radios, and selected options."""
        prefix = self.config.prefix
        partials = []

        for control in soup.find_all("input"):
            if control.get("type", "").lower() not in ("checkbox", "radio"):
                continue
            if not control.has_attr("checked"):
                continue
            values = _usable(control.get("value", "on"))
            if values:
                partials.append(partial_for(self.taxonomy_for(control), values, prefix))

        for select in soup.find_all("select"):
            values = _usable(self._selected_values(select))
            if values:
                partials.append(partial_for(self.taxonomy_for(select), values, prefix))

        return merge_states(*partials)

    def from_pills(self, soup: BeautifulSoup) -> FilterState:
        """Active-filter chips, e.g. JetSmartFilters active tags."""
        partials = []
        for selector in self.selectors.active_items:
            for item in soup.select(selector):
                link = item.select_one("a[data-jezweb-term-slug]") or item.find("a")
                value = (
                    _attr(item, "data-value", "data-term-id", "data-term-slug", "data-jezweb-term-slug")
                    or _attr(link, "data-jezweb-term-slug")
                )
                taxonomy = (
                    _attr(item, "data-query-var", "data-taxonomy", "data-jezweb-taxonomy")
                    or _attr(link, "data-jezweb-taxonomy")
                )
                if value and taxonomy and value not in SENTINEL_VALUES:
                    partials.append(partial_for(taxonomy, value, self.config.prefix))
        return merge_states(*partials)

    def from_archive(self, soup: BeautifulSoup) -> FilterState:
        """Term the page itself is scoped to."""
        categories: List[str] = []
        tags: List[str] = []

        body = soup.body
        classes = body.get("class", []) if body is not None else []
        for cls in classes:
            if cls.startswith(f"{PRODUCT_CATEGORY_TAXONOMY}-"):
                categories.append(cls[len(PRODUCT_CATEGORY_TAXONOMY) + 1:])
            elif cls.startswith(f"{PRODUCT_TAG_TAXONOMY}-"):
                tags.append(cls[len(PRODUCT_TAG_TAXONOMY) + 1:])
            elif cls.startswith("term-") and cls[5:].isdigit():
                if f"tax-{PRODUCT_CATEGORY_TAXONOMY}" in classes:
                    categories.append(cls[5:])
                elif f"tax-{PRODUCT_TAG_TAXONOMY}" in classes:
                    tags.append(cls[5:])

        state = FilterState.build(categories=categories, tags=tags)

        marker = soup.select_one(self.selectors.archive_marker)
        if marker is not None:
            value = _attr(marker, "data-jezweb-term-slug", "data-jezweb-term-id")
            taxonomy = _attr(marker, "data-jezweb-taxonomy")
            state = state.merge(partial_for(taxonomy, value, self.config.prefix))

        return state

    def from_jetfilters(self, page_globals: Mapping[str, Any]) -> FilterState:
        """Active values held by the JetSmartFilters global."""
        jsf = page_globals.get(JETFILTERS_GLOBAL) if page_globals else None
        if not isinstance(jsf, Mapping):
            return FilterState.empty()

        prefix = self.config.prefix
        partials = []

        for entry in _iter_entries(jsf.get("filters")):
            for tax_query in _iter_entries(safe_get(entry, "queryArgs", "tax_query")):
                if not isinstance(tax_query, Mapping):
                    continue
                taxonomy = tax_query.get("taxonomy")
                if isinstance(taxonomy, str):
                    partials.append(partial_for(taxonomy, _usable(tax_query.get("terms")), prefix))

        for group in _iter_entries(jsf.get("filterGroups")):
            for active in _iter_entries(safe_get(group, "activeFilters")):
                if not isinstance(active, Mapping):
                    continue
                taxonomy = active.get("queryVar") or active.get("query_var")
                value = active.get("value")
                if value is None:
                    value = active.get("current_value")
                if isinstance(taxonomy, str):
                    partials.append(partial_for(taxonomy, _usable(value), prefix))

        return merge_states(*partials)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def taxonomy_for(self, control: Tag) -> str:
        """
        Taxonomy name for a form control.

        Order: the control's own data-taxonomy/data-query-var, then the
        nearest filter wrapper's, then the control name with array brackets
        and tax-/filter_ markers removed.
        """
        taxonomy = _attr(control, "data-taxonomy", "data-query-var")
        if taxonomy:
            return taxonomy

        wrapper = control.css.closest(self.selectors.wrappers)
        taxonomy = _attr(wrapper, "data-query-var", "data-taxonomy")
        if taxonomy:
            return taxonomy

        return strip_control_name(control.get("name", ""))

    @staticmethod
    def _selected_values(select: Tag) -> List[str]:
        options = select.find_all("option")
        chosen = [option for option in options if option.has_attr("selected")]
        if not select.has_attr("multiple"):
            # A single select shows its last selected option, or the first one
            chosen = chosen[-1:] or options[:1]
        return [option.get("value", option.get_text(strip=True)) for option in chosen]

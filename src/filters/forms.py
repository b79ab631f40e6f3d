"""
Search form enhancement.

Writes the detected filters into every recognized search form as hidden
fields, so a plain form submission carries them to the search request
without any script running on the receiving page.
"""

from typing import Dict, List

from bs4 import BeautifulSoup, Tag

from config.constants import (
    DEFAULT_SELECTORS,
    ENHANCED_ATTR,
    ENHANCED_CLASS,
    FILTERS_FIELD,
    PRODUCT_CATEGORY_TAXONOMY,
    PRODUCT_TAG_TAXONOMY,
    PageSelectors,
)
from filters.models import FilterState


# Marks hidden inputs this module owns, so stale ones can be dropped
OWNED_ATTR = "data-scope-field"


def find_search_forms(soup: BeautifulSoup, selectors: PageSelectors = DEFAULT_SELECTORS) -> List[Tag]:
    """Recognized search forms, each once, in document order."""
    found: List[Tag] = []
    seen = set()
    for element in soup.select(", ".join(selectors.search_forms)):
        if id(element) not in seen:
            seen.add(id(element))
            found.append(element)
    return found


def hidden_fields(state: FilterState) -> Dict[str, str]:
    """Hidden field name -> value for a state."""
    fields = {FILTERS_FIELD: state.to_json()}
    if state.categories:
        fields[PRODUCT_CATEGORY_TAXONOMY] = ",".join(state.categories)
    if state.tags:
        fields[PRODUCT_TAG_TAXONOMY] = ",".join(state.tags)
    for key, terms in state.taxonomies.items():
        fields[key] = ",".join(terms)
    return fields


def _mark(form: Tag) -> None:
    if form.get(ENHANCED_ATTR) != "1":
        form[ENHANCED_ATTR] = "1"
    classes = form.get("class", [])
    if ENHANCED_CLASS not in classes:
        form["class"] = list(classes) + [ENHANCED_CLASS]


def _write_fields(soup: BeautifulSoup, form: Tag, fields: Dict[str, str]) -> None:
    for owned in form.find_all("input", attrs={OWNED_ATTR: "1"}):
        if owned.get("name") not in fields:
            owned.decompose()

    for name, value in fields.items():
        existing = form.find("input", attrs={"name": name})
        if existing is not None:
            existing["value"] = value
            continue
        form.append(soup.new_tag(
            "input",
            attrs={"type": "hidden", "name": name, "value": value, OWNED_ATTR: "1"},
        ))


def enhance_search_forms(
    html: str,
    state: FilterState,
    selectors: PageSelectors = DEFAULT_SELECTORS,
) -> str:
    """
    Return `html` with every search form carrying `state`.

    Idempotent: running it again on its own output updates the values but
    adds no duplicate fields or marker classes.
    """
    soup = BeautifulSoup(html or "", "lxml")
    fields = hidden_fields(state)
    for form in find_search_forms(soup, selectors):
        _mark(form)
        _write_fields(soup, form, fields)
    return str(soup)

"""
Search execution.

SearchEngine is the seam between the scoping logic and whatever executes
queries. InMemoryCatalog is the bundled implementation: it holds posts and
products in memory (loaded from a JSON file or passed in) and evaluates
text queries plus tax queries in the shape produced by filters.compiler.

Catalog item shape:
    {
        "id": 101,
        "title": "Trail Runner",
        "post_type": "product",
        "permalink": "https://shop.example/p/trail-runner",
        "excerpt": "...", "content": "...", "thumbnail": "...",
        "price": "89.00", "regular_price": "99.00", "sale_price": "89.00",
        "in_stock": true,
        "terms": {"product_cat": [{"id": 12, "slug": "shoes"}]}
    }
"""

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from config.settings import get_settings
from core.logging import LoggerMixin
from search.models import SearchResultItem


PostTypes = Union[str, Sequence[str], None]


@dataclass
class SearchPage:
    items: List[SearchResultItem] = field(default_factory=list)
    total: int = 0
    total_pages: int = 0
    page: int = 1


class SearchEngine(Protocol):
    def search(
        self,
        query: str,
        tax_query: Mapping[str, Any],
        post_type: PostTypes = None,
        page: int = 1,
        per_page: int = 10,
    ) -> SearchPage:
        ...


# =============================================================================
# Tax query evaluation
# =============================================================================

def _item_terms(item: Mapping[str, Any], taxonomy: str, lookup: str) -> set:
    values = set()
    for term in item.get("terms", {}).get(taxonomy, []) or []:
        if isinstance(term, Mapping):
            value = term.get("id") if lookup == "term_id" else term.get("slug")
        else:
            value = term
        if value is not None:
            values.add(str(value))
    return values


def matches_clause(item: Mapping[str, Any], clause: Mapping[str, Any]) -> bool:
    wanted = {str(term) for term in clause.get("terms", [])}
    have = _item_terms(item, clause.get("taxonomy", ""), clause.get("field", "slug"))
    operator = str(clause.get("operator", "IN")).upper()
    if operator == "NOT IN":
        return not (wanted & have)
    if operator == "AND":
        return wanted <= have
    return bool(wanted & have)


def matches_tax_query(item: Mapping[str, Any], node: Optional[Mapping[str, Any]]) -> bool:
    """
    Evaluate a tax query node against an item.

    A node is a group {"relation": "AND"|"OR", "clauses": [...]} (relation
    defaults to AND) or a single clause. An empty node matches everything.
    """
    if not node:
        return True
    if "clauses" not in node:
        return matches_clause(item, node)

    results = (matches_tax_query(item, child) for child in node["clauses"])
    if str(node.get("relation", "AND")).upper() == "OR":
        return any(results)
    return all(results)


# =============================================================================
# In-memory catalog
# =============================================================================

class InMemoryCatalog(LoggerMixin):
    """Catalog search over a list of item dicts."""

    def __init__(self, items: Optional[List[Dict[str, Any]]] = None):
        self.items: List[Dict[str, Any]] = list(items or [])

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryCatalog":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        items = data.get("items", []) if isinstance(data, dict) else data
        catalog = cls(items)
        catalog.logger.info("Catalog loaded", path=str(path), items=len(catalog.items))
        return catalog

    @staticmethod
    def _matches_text(item: Mapping[str, Any], query: str) -> bool:
        haystack = " ".join(
            str(item.get(name) or "") for name in ("title", "excerpt", "content")
        ).lower()
        return all(word in haystack for word in query.lower().split())

    @staticmethod
    def _matches_post_type(item: Mapping[str, Any], post_type: PostTypes) -> bool:
        if not post_type or post_type == "any":
            return True
        allowed = [post_type] if isinstance(post_type, str) else list(post_type)
        return item.get("post_type", "post") in allowed

    @staticmethod
    def summarize(item: Mapping[str, Any]) -> SearchResultItem:
        summary = SearchResultItem(
            id=int(item["id"]),
            title=str(item.get("title", "")),
            permalink=str(item.get("permalink", "")),
            excerpt=str(item.get("excerpt", "")),
            thumbnail=item.get("thumbnail"),
            post_type=str(item.get("post_type", "post")),
        )
        if summary.post_type == "product":
            regular = item.get("regular_price")
            sale = item.get("sale_price")
            summary.price = str(item.get("price") or sale or regular or "")
            summary.regular_price = str(regular) if regular is not None else None
            summary.sale_price = str(sale) if sale else None
            summary.on_sale = bool(sale) and str(sale) != str(regular)
            summary.in_stock = bool(item.get("in_stock", True))
        return summary

    def search(
        self,
        query: str,
        tax_query: Mapping[str, Any],
        post_type: PostTypes = None,
        page: int = 1,
        per_page: int = 10,
    ) -> SearchPage:
        hits = [
            item for item in self.items
            if self._matches_post_type(item, post_type)
            and self._matches_text(item, query or "")
            and matches_tax_query(item, tax_query)
        ]

        per_page = max(per_page, 1)
        total = len(hits)
        start = (max(page, 1) - 1) * per_page
        return SearchPage(
            items=[self.summarize(item) for item in hits[start:start + per_page]],
            total=total,
            total_pages=math.ceil(total / per_page),
            page=page,
        )


# =============================================================================
# Singleton
# =============================================================================

_search_engine: Optional[SearchEngine] = None


def get_search_engine() -> SearchEngine:
    """Engine for the API: the configured catalog file, else an empty catalog."""
    global _search_engine
    if _search_engine is None:
        path = get_settings().catalog_path
        _search_engine = InMemoryCatalog.from_file(path) if path else InMemoryCatalog()
    return _search_engine


def set_search_engine(engine: Optional[SearchEngine]) -> None:
    """Replace the shared engine (None resets to the configured default)."""
    global _search_engine
    _search_engine = engine

"""
Value objects shared by the page detector, the request resolver and the
query compiler.

FilterState is the normalized set of active filters. It is immutable:
merges always return a new state. Identifiers are kept in first-seen order
so serialized output is stable, but equality is set equality per field.
"""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from core.logging import get_logger


logger = get_logger(__name__)

Terms = Tuple[str, ...]


# =============================================================================
# Normalization
# =============================================================================

def _clean_value(value: Any) -> Optional[str]:
    """Turn a raw identifier into a normalized string, or None to drop it."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        text = str(value)
    elif isinstance(value, str):
        text = value.strip()
    else:
        return None
    if text in ("", "0"):
        return None
    return text


def normalize_terms(values: Any) -> Terms:
    """
    Normalize identifiers into a de-duplicated tuple.

    Accepts a single value or any iterable of values. Empty strings, the
    literal zero and values of unsupported types are dropped.
    """
    if values is None:
        return ()
    if isinstance(values, (str, int, float)):
        values = [values]
    elif isinstance(values, Mapping) or not isinstance(values, Iterable):
        return ()

    seen = set()
    result: List[str] = []
    for raw in values:
        value = _clean_value(raw)
        if value is not None and value not in seen:
            seen.add(value)
            result.append(value)
    return tuple(result)


def _union(first: Terms, second: Terms) -> Terms:
    return normalize_terms(list(first) + list(second))


# =============================================================================
# FilterState
# =============================================================================

@dataclass(frozen=True, eq=False)
class FilterState:
    """
    Active category, tag and custom taxonomy filters.

    Attributes:
        categories: Category identifiers (slugs or numeric term IDs)
        tags: Tag identifiers (slugs or numeric term IDs)
        taxonomies: Read-only mapping of taxonomy key -> identifiers,
                    keyed like "<prefix>_<taxonomy>"
    """

    categories: Terms = ()
    tags: Terms = ()
    taxonomies: Mapping[str, Terms] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def empty(cls) -> "FilterState":
        return cls()

    @classmethod
    def build(
        cls,
        categories: Any = None,
        tags: Any = None,
        taxonomies: Optional[Mapping[str, Any]] = None,
    ) -> "FilterState":
        """Build a normalized state from loosely typed inputs."""
        tax: Dict[str, Terms] = {}
        for key, terms in (taxonomies or {}).items():
            if not isinstance(key, str) or not key.strip():
                continue
            key = key.strip()
            normalized = _union(tax.get(key, ()), normalize_terms(terms))
            if normalized:
                tax[key] = normalized
        return cls(
            categories=normalize_terms(categories),
            tags=normalize_terms(tags),
            taxonomies=MappingProxyType(tax),
        )

    @classmethod
    def from_payload(cls, payload: Any) -> "FilterState":
        """
        Build a state from a decoded payload of unknown shape.

        Anything that is not a mapping, and any field with the wrong shape,
        contributes nothing. Never raises.
        """
        if not isinstance(payload, Mapping):
            return cls.empty()
        taxonomies = payload.get("taxonomies")
        if not isinstance(taxonomies, Mapping):
            taxonomies = None
        return cls.build(
            categories=payload.get("categories"),
            tags=payload.get("tags"),
            taxonomies=taxonomies,
        )

    @classmethod
    def parse_blob(cls, blob: Any) -> "FilterState":
        """Decode a serialized state; malformed input yields the empty state."""
        if isinstance(blob, Mapping):
            return cls.from_payload(blob)
        if not isinstance(blob, (str, bytes)) or not blob:
            return cls.empty()
        try:
            decoded = json.loads(blob)
        except ValueError:
            logger.debug("Ignoring malformed filter payload", size=len(blob))
            return cls.empty()
        return cls.from_payload(decoded)

    # -------------------------------------------------------------------------
    # Merge / inspection
    # -------------------------------------------------------------------------

    def merge(self, other: "FilterState") -> "FilterState":
        """Set-union of both states. Neither operand is modified."""
        tax: Dict[str, Terms] = dict(self.taxonomies)
        for key, terms in other.taxonomies.items():
            tax[key] = _union(tax.get(key, ()), terms)
        return FilterState(
            categories=_union(self.categories, other.categories),
            tags=_union(self.tags, other.tags),
            taxonomies=MappingProxyType(tax),
        )

    def is_empty(self) -> bool:
        return not (self.categories or self.tags or self.taxonomies)

    def as_sets(self) -> Tuple[frozenset, frozenset, Dict[str, frozenset]]:
        return (
            frozenset(self.categories),
            frozenset(self.tags),
            {key: frozenset(terms) for key, terms in self.taxonomies.items()},
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FilterState):
            return NotImplemented
        return self.as_sets() == other.as_sets()

    __hash__ = None  # type: ignore[assignment]

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": list(self.categories),
            "tags": list(self.tags),
            "taxonomies": {key: list(terms) for key, terms in self.taxonomies.items()},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


def merge_states(*states: FilterState) -> FilterState:
    """Fold any number of states into one by set-union."""
    result = FilterState.empty()
    for state in states:
        result = result.merge(state)
    return result


# =============================================================================
# Compiled query
# =============================================================================

@dataclass(frozen=True)
class TaxonomyClause:
    """One taxonomy constraint: any of `terms` in `taxonomy`."""

    taxonomy: str
    field: str
    terms: Terms
    operator: str = "IN"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taxonomy": self.taxonomy,
            "field": self.field,
            "terms": list(self.terms),
            "operator": self.operator,
        }


@dataclass(frozen=True)
class QueryFragment:
    """Ordered taxonomy clauses, all of which must match."""

    clauses: Tuple[TaxonomyClause, ...] = ()

    @property
    def relation(self) -> Optional[str]:
        return "AND" if len(self.clauses) > 1 else None

    def is_empty(self) -> bool:
        return not self.clauses

    def to_tax_query(self) -> Dict[str, Any]:
        """
        Render as a tax query group.

        Returns {} for no clauses, {"clauses": [...]} for one clause and
        {"relation": "AND", "clauses": [...]} for several.
        """
        if not self.clauses:
            return {}
        group: Dict[str, Any] = {}
        if self.relation:
            group["relation"] = self.relation
        group["clauses"] = [clause.to_dict() for clause in self.clauses]
        return group


@dataclass(frozen=True)
class ArchiveTerm:
    """The term a taxonomy archive page is scoped to."""

    taxonomy: str
    slug: str = ""
    term_id: Optional[int] = None

    @property
    def identifier(self) -> str:
        if self.slug:
            return self.slug
        return str(self.term_id) if self.term_id else ""

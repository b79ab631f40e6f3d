"""
Pydantic models for the filter and search API.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from core.utils import split_csv
from filters.models import FilterState


# ============================================================================
# Request Models
# ============================================================================

class FilterPayload(BaseModel):
    """
    Filters pushed by a page, or sent along with a search.

    List fields also accept comma-separated strings ("shoes,boots").
    """
    categories: List[str] = Field(default_factory=list, description="Category slugs or term IDs")
    tags: List[str] = Field(default_factory=list, description="Tag slugs or term IDs")
    taxonomies: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Custom taxonomy filters keyed like 'jsf_pa_color'"
    )
    filters: Optional[Any] = Field(None, description="Serialized filter state (JSON string or object)")
    merge: bool = Field(False, description="Union with the stored state instead of replacing it")
    token: Optional[str] = Field(None, description="Anti-forgery token from GET /api/filters/token")

    @field_validator("categories", "tags", mode="before")
    @classmethod
    def split_terms(cls, v):
        return split_csv(v)

    @field_validator("taxonomies", mode="before")
    @classmethod
    def split_taxonomy_terms(cls, v):
        if not isinstance(v, dict):
            return {}
        return {str(key): split_csv(terms) for key, terms in v.items()}

    @field_validator("filters", mode="before")
    @classmethod
    def keep_decodable_blob(cls, v):
        # Anything parse_blob cannot read is dropped instead of failing the request
        if isinstance(v, (str, Mapping)):
            return v
        return None

    def to_body(self) -> Dict[str, Any]:
        """Shape understood by the resolver's body source."""
        body: Dict[str, Any] = {
            "categories": self.categories,
            "tags": self.tags,
            "taxonomies": self.taxonomies,
        }
        if self.filters:
            body["scope_filters"] = self.filters
        return body


class SearchRequest(FilterPayload):
    """Request body for a scoped search."""
    query: str = Field("", max_length=500, description="Search text")
    post_type: Optional[str] = Field(None, description="Restrict to a post type, e.g. 'product'")
    page: int = Field(1, ge=1, description="Page number (1-indexed)")
    per_page: Optional[int] = Field(None, ge=1, le=100, description="Results per page")
    archive_taxonomy: Optional[str] = Field(None, description="Taxonomy of the archive page the search runs on")
    archive_term: Optional[str] = Field(None, description="Archive term slug or ID")
    layered_nav: Dict[str, Any] = Field(
        default_factory=dict,
        description="WooCommerce chosen attributes, e.g. {'pa_size': {'terms': ['xl']}}"
    )

    @field_validator("layered_nav", mode="before")
    @classmethod
    def mapping_or_empty(cls, v):
        return v if isinstance(v, dict) else {}


# ============================================================================
# Response Models
# ============================================================================

class FilterStateModel(BaseModel):
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    taxonomies: Dict[str, List[str]] = Field(default_factory=dict)

    @classmethod
    def from_state(cls, state: FilterState) -> "FilterStateModel":
        return cls(**state.to_dict())


class FilterStateResponse(BaseModel):
    success: bool = True
    filters: FilterStateModel
    message: Optional[str] = None


class TokenResponse(BaseModel):
    token: str
    expires_in: int = Field(..., description="Token lifetime in seconds")


class ResolveResponse(BaseModel):
    """Effective filters for the current request and their compiled query."""
    filters: FilterStateModel
    tax_query: Dict[str, Any] = Field(default_factory=dict)
    product_context: bool = False


class SearchResultItem(BaseModel):
    """One search hit. Price fields are only set for products."""
    id: int
    title: str
    permalink: str = ""
    excerpt: str = ""
    thumbnail: Optional[str] = None
    post_type: str = "post"

    price: Optional[str] = None
    regular_price: Optional[str] = None
    sale_price: Optional[str] = None
    on_sale: Optional[bool] = None
    in_stock: Optional[bool] = None


class SearchResponse(BaseModel):
    success: bool = True
    results: List[SearchResultItem]
    total: int
    total_pages: int
    page: int
    query: str
    filters: FilterStateModel
    tax_query: Dict[str, Any] = Field(default_factory=dict)

"""
Tests for FilterState and the compiled query value objects.
"""

import json

import pytest


class TestNormalizeTerms:
    """Tests for normalize_terms."""

    def test_single_value(self):
        from filters.models import normalize_terms

        assert normalize_terms("shoes") == ("shoes",)
        assert normalize_terms(15) == ("15",)

    def test_drops_empty_zero_and_duplicates(self):
        from filters.models import normalize_terms

        assert normalize_terms(["shoes", "", "0", 0, " shoes ", None, "boots"]) == ("shoes", "boots")

    def test_rejects_odd_shapes(self):
        from filters.models import normalize_terms

        assert normalize_terms(None) == ()
        assert normalize_terms({"a": 1}) == ()
        assert normalize_terms(object()) == ()
        assert normalize_terms([True, {"x": 1}]) == ()


class TestFilterStateBuild:
    """Construction from loosely typed input."""

    def test_empty(self):
        from filters.models import FilterState

        state = FilterState.empty()

        assert state.is_empty()
        assert state.to_dict() == {"categories": [], "tags": [], "taxonomies": {}}

    def test_build_drops_empty_taxonomies(self):
        from filters.models import FilterState

        state = FilterState.build(
            categories=["shoes"],
            taxonomies={"jsf_pa_color": ["red"], "jsf_size": [], "": ["x"]},
        )

        assert dict(state.taxonomies) == {"jsf_pa_color": ("red",)}
        assert not state.is_empty()

    def test_taxonomies_are_read_only(self):
        from filters.models import FilterState

        state = FilterState.build(taxonomies={"jsf_pa_color": ["red"]})

        with pytest.raises(TypeError):
            state.taxonomies["jsf_size"] = ("xl",)

    def test_from_payload_ignores_wrong_shapes(self):
        from filters.models import FilterState

        state = FilterState.from_payload({
            "categories": "shoes",
            "tags": {"not": "a list"},
            "taxonomies": ["not", "a", "mapping"],
        })

        assert state.categories == ("shoes",)
        assert state.tags == ()
        assert dict(state.taxonomies) == {}

    def test_from_payload_non_mapping(self):
        from filters.models import FilterState

        assert FilterState.from_payload(["shoes"]).is_empty()
        assert FilterState.from_payload(None).is_empty()


class TestParseBlob:
    """Decoding serialized states."""

    def test_valid_json(self):
        from filters.models import FilterState

        state = FilterState.parse_blob('{"categories":["shoes"],"taxonomies":{"jsf_pa_color":["red"]}}')

        assert state.categories == ("shoes",)
        assert dict(state.taxonomies) == {"jsf_pa_color": ("red",)}

    def test_malformed_json_is_empty(self):
        from filters.models import FilterState

        assert FilterState.parse_blob("{not json").is_empty()
        assert FilterState.parse_blob("").is_empty()
        assert FilterState.parse_blob(None).is_empty()
        assert FilterState.parse_blob("[1, 2]").is_empty()

    def test_mapping_accepted(self):
        from filters.models import FilterState

        assert FilterState.parse_blob({"tags": ["sale"]}).tags == ("sale",)

    def test_to_json_round_trip(self):
        from filters.models import FilterState

        state = FilterState.build(categories=["shoes", 15], tags=["sale"], taxonomies={"jsf_pa_color": ["red"]})

        assert FilterState.parse_blob(state.to_json()) == state
        assert " " not in state.to_json()
        assert json.loads(state.to_json())["categories"] == ["shoes", "15"]


class TestMerge:
    """Set-union semantics."""

    def test_merge_unions_every_field(self):
        from filters.models import FilterState

        a = FilterState.build(categories=["shoes"], taxonomies={"jsf_pa_color": ["red"]})
        b = FilterState.build(categories=["shoes", "boots"], tags=["sale"], taxonomies={"jsf_pa_color": ["blue"]})

        merged = a.merge(b)

        assert merged.categories == ("shoes", "boots")
        assert merged.tags == ("sale",)
        assert merged.taxonomies["jsf_pa_color"] == ("red", "blue")

    def test_merge_does_not_modify_operands(self):
        from filters.models import FilterState

        a = FilterState.build(categories=["shoes"])
        b = FilterState.build(categories=["boots"])

        a.merge(b)

        assert a.categories == ("shoes",)
        assert b.categories == ("boots",)

    def test_merge_is_commutative_and_idempotent(self):
        from filters.models import FilterState

        a = FilterState.build(categories=["shoes"], tags=["sale"])
        b = FilterState.build(categories=["boots"], taxonomies={"jsf_size": ["xl"]})

        assert a.merge(b) == b.merge(a)
        assert a.merge(a) == a
        assert a.merge(FilterState.empty()) == a

    def test_merge_states(self):
        from filters.models import FilterState, merge_states

        merged = merge_states(
            FilterState.build(categories=["a"]),
            FilterState.build(categories=["b"]),
            FilterState.build(tags=["c"]),
        )

        assert merged == FilterState.build(categories=["a", "b"], tags=["c"])
        assert merge_states().is_empty()

    def test_equality_ignores_order(self):
        from filters.models import FilterState

        assert FilterState.build(categories=["a", "b"]) == FilterState.build(categories=["b", "a"])
        assert FilterState.build(categories=["a"]) != FilterState.build(tags=["a"])

    def test_unhashable(self):
        from filters.models import FilterState

        with pytest.raises(TypeError):
            hash(FilterState.empty())


class TestQueryFragment:
    """Rendering compiled clauses."""

    def test_empty_fragment(self):
        from filters.models import QueryFragment

        fragment = QueryFragment()

        assert fragment.is_empty()
        assert fragment.relation is None
        assert fragment.to_tax_query() == {}

    def test_single_clause_has_no_relation(self):
        from filters.models import QueryFragment, TaxonomyClause

        fragment = QueryFragment(clauses=(TaxonomyClause("product_cat", "slug", ("shoes",)),))

        assert fragment.to_tax_query() == {
            "clauses": [{"taxonomy": "product_cat", "field": "slug", "terms": ["shoes"], "operator": "IN"}],
        }

    def test_several_clauses_use_and(self):
        from filters.models import QueryFragment, TaxonomyClause

        fragment = QueryFragment(clauses=(
            TaxonomyClause("product_cat", "slug", ("shoes",)),
            TaxonomyClause("pa_color", "slug", ("red",)),
        ))

        assert fragment.relation == "AND"
        assert fragment.to_tax_query()["relation"] == "AND"
        assert len(fragment.to_tax_query()["clauses"]) == 2


class TestArchiveTerm:
    def test_identifier_prefers_slug(self):
        from filters.models import ArchiveTerm

        assert ArchiveTerm("product_cat", slug="shoes", term_id=15).identifier == "shoes"
        assert ArchiveTerm("product_cat", term_id=15).identifier == "15"
        assert ArchiveTerm("product_cat").identifier == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

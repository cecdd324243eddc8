import pytest

from storeindex.core.exceptions import UserInputError
from storeindex.core.managers.collection_filters import (
    FACET_VALUE_FILTER,
    VARIANT_NAME_FILTER,
    filter_variant_ids,
)
from storeindex.core.models.catalog import CollectionFilterDefinition, Product, ProductVariant

PRODUCTS = {
    "p1": Product(id="p1", name="Shirt", facet_value_ids=["cotton"]),
    "p2": Product(id="p2", name="Mug", facet_value_ids=["ceramic"]),
}

VARIANTS = [
    ProductVariant(id="v1", product_id="p1", name="Blue Shirt", sku="S-B", price=1000, facet_value_ids=["blue"]),
    ProductVariant(id="v2", product_id="p1", name="Red Shirt", sku="S-R", price=1000, facet_value_ids=["red"]),
    ProductVariant(id="v3", product_id="p2", name="Blue Mug", sku="M-B", price=500, facet_value_ids=["blue"]),
]


def facet(*ids, contains_any=False):
    return CollectionFilterDefinition(
        code=FACET_VALUE_FILTER, args={"facet_value_ids": list(ids), "contains_any": contains_any}
    )


def name(operator, term):
    return CollectionFilterDefinition(code=VARIANT_NAME_FILTER, args={"operator": operator, "term": term})


class TestFacetValueFilter:
    def test_all_ids_required_across_product_and_variant(self):
        assert filter_variant_ids(VARIANTS, PRODUCTS, [facet("cotton", "blue")]) == ["v1"]

    def test_contains_any(self):
        assert filter_variant_ids(VARIANTS, PRODUCTS, [facet("red", "ceramic", contains_any=True)]) == ["v2", "v3"]

    def test_empty_ids_match_nothing(self):
        assert filter_variant_ids(VARIANTS, PRODUCTS, [facet()]) == []


class TestVariantNameFilter:
    @pytest.mark.parametrize(
        "operator,term,expected",
        [
            ("contains", "shirt", ["v1", "v2"]),
            ("doesNotContain", "shirt", ["v3"]),
            ("startsWith", "BLUE", ["v1", "v3"]),
            ("endsWith", "mug", ["v3"]),
        ],
    )
    def test_operators(self, operator, term, expected):
        assert filter_variant_ids(VARIANTS, PRODUCTS, [name(operator, term)]) == expected

    def test_invalid_operator(self):
        with pytest.raises(UserInputError, match="matches is not a valid operator"):
            filter_variant_ids(VARIANTS, PRODUCTS, [name("matches", "x")])


class TestCombination:
    def test_filters_are_combined_with_and(self):
        assert filter_variant_ids(VARIANTS, PRODUCTS, [facet("blue"), name("contains", "mug")]) == ["v3"]

    def test_no_filters_no_members(self):
        assert filter_variant_ids(VARIANTS, PRODUCTS, []) == []

    def test_unknown_filter_code(self):
        with pytest.raises(UserInputError):
            filter_variant_ids(VARIANTS, PRODUCTS, [CollectionFilterDefinition(code="price-filter")])

"""Collection filters: decide which variants belong to a collection.

Two filters are built in:

* ``facet-value-filter`` with args ``facet_value_ids`` (list) and
  ``contains_any`` (bool). A variant matches when the facet values of the
  variant and its product together contain all of the ids, or at least one
  of them with ``contains_any``. An empty id list matches nothing.
* ``variant-name-filter`` with args ``operator`` (``contains``,
  ``doesNotContain``, ``startsWith``, ``endsWith``) and ``term``. Matching is
  case-insensitive on the variant name.

A collection with no filters has no members.
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from storeindex.core.exceptions import UserInputError
from storeindex.core.models.catalog import CollectionFilterDefinition, Product, ProductVariant

VariantPredicate = Callable[[ProductVariant, Optional[Product]], bool]

FACET_VALUE_FILTER = "facet-value-filter"
VARIANT_NAME_FILTER = "variant-name-filter"


def facet_value_filter(args: Mapping[str, Any]) -> VariantPredicate:
    ids = set(args.get("facet_value_ids") or [])
    contains_any = bool(args.get("contains_any", False))
    required = 1 if contains_any else len(ids)

    def predicate(variant: ProductVariant, product: Optional[Product]) -> bool:
        if not ids:
            return False
        own = set(variant.facet_value_ids)
        if product is not None:
            own.update(product.facet_value_ids)
        return len(ids & own) >= required

    return predicate


_NAME_OPERATORS: Dict[str, Callable[[str, str], bool]] = {
    "contains": lambda name, term: term in name,
    "doesNotContain": lambda name, term: term not in name,
    "startsWith": lambda name, term: name.startswith(term),
    "endsWith": lambda name, term: name.endswith(term),
}


def variant_name_filter(args: Mapping[str, Any]) -> VariantPredicate:
    operator = args.get("operator")
    compare = _NAME_OPERATORS.get(operator)
    if compare is None:
        raise UserInputError(f"{operator} is not a valid operator")
    term = str(args.get("term", "")).lower()

    def predicate(variant: ProductVariant, product: Optional[Product]) -> bool:
        return compare(variant.name.lower(), term)

    return predicate


COLLECTION_FILTERS: Dict[str, Callable[[Mapping[str, Any]], VariantPredicate]] = {
    FACET_VALUE_FILTER: facet_value_filter,
    VARIANT_NAME_FILTER: variant_name_filter,
}


def build_predicate(filters: Sequence[CollectionFilterDefinition]) -> Optional[VariantPredicate]:
    """Combine filters with AND. Returns None when there is nothing to filter by."""
    predicates: List[VariantPredicate] = []
    for definition in filters:
        factory = COLLECTION_FILTERS.get(definition.code)
        if factory is None:
            raise UserInputError(f"Unknown collection filter '{definition.code}'")
        predicates.append(factory(definition.args))
    if not predicates:
        return None
    return lambda variant, product: all(p(variant, product) for p in predicates)


def filter_variant_ids(
    variants: Iterable[ProductVariant],
    products: Mapping[str, Product],
    filters: Sequence[CollectionFilterDefinition],
) -> List[str]:
    predicate = build_predicate(filters)
    if predicate is None:
        return []
    return [v.id for v in variants if predicate(v, products.get(v.product_id))]

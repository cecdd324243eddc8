from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Product(BaseModel):
    id: str
    name: str
    translations: Dict[str, str] = Field(default_factory=dict)  # language code -> name
    enabled: bool = True
    facet_value_ids: List[str] = Field(default_factory=list)

    def localized_name(self, language_code: str) -> str:
        return self.translations.get(language_code, self.name)


class ProductVariant(BaseModel):
    id: str
    product_id: str
    name: str
    sku: str
    price: int  # minor units, tax exclusive
    translations: Dict[str, str] = Field(default_factory=dict)
    tax_category_id: Optional[str] = None
    enabled: bool = True
    facet_value_ids: List[str] = Field(default_factory=list)

    def localized_name(self, language_code: str) -> str:
        return self.translations.get(language_code, self.name)


class CollectionFilterDefinition(BaseModel):
    """Configured filter of a collection, e.g. code='facet-value-filter'."""

    code: str
    args: Dict[str, Any] = Field(default_factory=dict)


class Collection(BaseModel):
    id: str
    name: str
    parent_id: Optional[str] = None
    filters: List[CollectionFilterDefinition] = Field(default_factory=list)
    # Apply the parent's filters as well when computing membership
    inherit_filters: bool = True


class TaxRate(BaseModel):
    id: str
    name: str
    zone_id: str
    category_id: str
    value: float  # percent
    enabled: bool = True

    def apply(self, price: int) -> int:
        if not self.enabled:
            return price
        return round(price * (1 + self.value / 100))


class SearchDocument(BaseModel):
    """One indexed entry per channel, language and variant."""

    id: str
    channel_id: str
    language_code: str
    product_id: str
    variant_id: str
    product_name: str
    variant_name: str
    sku: str
    price: int
    price_with_tax: int
    enabled: bool
    facet_value_ids: List[str] = Field(default_factory=list)
    collection_ids: List[str] = Field(default_factory=list)

    @staticmethod
    def make_id(channel_id: str, language_code: str, variant_id: str) -> str:
        return f"{channel_id}_{language_code}_{variant_id}"

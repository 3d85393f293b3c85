"""Product catalogue entity."""
from api.builder import EntityDefinition
from core.validation import (
    ArrayField,
    BooleanField,
    EnumField,
    NumberField,
    StringField,
)

PRODUCT_SCHEMA = {
    "name": StringField(min_length=3, max_length=100, doc="Display name, unique across products"),
    "description": StringField(min_length=10, required=False),
    "price": NumberField(minimum=0),
    "category": EnumField(values=("electronics", "clothing", "books", "food")),
    "inStock": BooleanField(default=True),
    "sku": StringField(min_length=5, max_length=20, pattern=r"^[A-Z0-9-]+$", example="LAP-001", required=False),
    "tags": ArrayField(items=StringField(min_length=1), required=False),
    "rating": NumberField(minimum=0, maximum=5, required=False),
}

PRODUCTS = EntityDefinition(
    collection="products",
    schema=PRODUCT_SCHEMA,
    unique_fields=("name",),
    entity_name="Product",
    title="Products API",
    description="Product management with inventory tracking, categories and ratings.",
)

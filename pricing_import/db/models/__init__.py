"""Catalog ORM models."""
from pricing_import.db.models.attribute import AttributeGroup, AttributeValue
from pricing_import.db.models.price import GenericProductPrice
from pricing_import.db.models.product import Product

__all__ = [
    "AttributeGroup",
    "AttributeValue",
    "GenericProductPrice",
    "Product",
]

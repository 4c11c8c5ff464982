"""Database layer: declarative base, engine helpers and catalog models."""
from pricing_import.db.base import Base, build_session_maker, create_engine_for
from pricing_import.db.models import AttributeGroup, AttributeValue, GenericProductPrice, Product

__all__ = [
    "Base",
    "build_session_maker",
    "create_engine_for",
    "AttributeGroup",
    "AttributeValue",
    "GenericProductPrice",
    "Product",
]

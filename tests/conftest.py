"""Pytest configuration and shared fixtures.

Provides:
- Basic environment variable defaults
- Descriptor documents for both import types
"""
import os
from copy import deepcopy
from typing import Any, Dict

import pytest

# Set environment variables BEFORE importing modules that use settings
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("ENVIRONMENT", "development")

from pricing_import.config import get_settings  # noqa: E402
from pricing_import.models.blueprint import Blueprint, parse_blueprint  # noqa: E402

TENANT_ID = "5c1f5d0e-1b8e-4a4b-9f57-0f4b8f8a2b11"

UL_PRICES_DOCUMENT: Dict[str, Any] = {
    "version": 1,
    "tenant_id": TENANT_ID,
    "product": {
        "name": "Flyers A5",
        "slug": "flyers-a5",
        "category": "tryksager",
        "description": "Flyers printed on both sides",
    },
    "matrix": {
        "vertical_axis": "materials",
        "format": {"value_name": "A5", "width_mm": 148, "height_mm": 210},
        "material": {"value_name": "170g silk"},
    },
    "pricing_import": {
        "type": "ul_prices",
        "source_url": "https://supplier.example.com/flyers",
        "item_selector": "ul.prices",
        "default_quantity_start": 100,
        "default_quantity_step": 100,
    },
}

DROPDOWN_MATRIX_DOCUMENT: Dict[str, Any] = {
    "version": 1,
    "tenant_id": TENANT_ID,
    "product": {
        "name": "Poster",
        "slug": "poster",
        "category": "storformat",
    },
    "matrix": {
        "vertical_axis": "materials",
        "format": {"value_name": "A2"},
        "modifiers": [
            {
                "key": "finish",
                "group_name": "Laminering",
                "kind": "finish",
                "section_type": "finishes",
                "values": ["Ingen", "Mat", "Blank"],
            }
        ],
    },
    "pricing_import": {
        "type": "dropdown_matrix",
        "sources": [
            {"url": "https://supplier.example.com/poster", "modifiers": {"finish": "Ingen"}},
        ],
        "target_quantities": [100, 250, 500],
        "materials": [
            {"source_label": "135g Bilderdruck matt", "material": "135g mat"},
            {"source_label": "Recycling", "material": "Recycled", "match": "contains"},
        ],
    },
}


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make every test read settings from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ul_prices_document() -> Dict[str, Any]:
    return deepcopy(UL_PRICES_DOCUMENT)


@pytest.fixture
def dropdown_matrix_document() -> Dict[str, Any]:
    return deepcopy(DROPDOWN_MATRIX_DOCUMENT)


@pytest.fixture
def ul_prices_blueprint(ul_prices_document) -> Blueprint:
    return parse_blueprint(ul_prices_document)


@pytest.fixture
def dropdown_matrix_blueprint(dropdown_matrix_document) -> Blueprint:
    return parse_blueprint(dropdown_matrix_document)

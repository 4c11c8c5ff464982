"""Pydantic models for descriptors, rows and results."""
from pricing_import.models.blueprint import (
    Blueprint,
    DropdownMatrixImport,
    DropdownSource,
    FormatAxisConfig,
    LoadedBlueprint,
    MaterialAxisConfig,
    MaterialMapping,
    MatrixConfig,
    ModifierAxisConfig,
    PricingSettings,
    ProductConfig,
    TechnicalSpecs,
    UlPricesImport,
    DEFAULT_TECHNICAL_SPECS,
    load_blueprint_file,
    parse_blueprint,
)
from pricing_import.models.pricing import DEFAULT_TIERS, PriceTier, validate_tier_table
from pricing_import.models.pricing_structure import (
    LayoutRow,
    PricingStructure,
    SelectorColumn,
    VerticalAxisSection,
)
from pricing_import.models.results import ExtractionResult, ImportReport
from pricing_import.models.rows import (
    INFERRED_SOURCE_TEXT,
    InferenceResult,
    MappedRow,
    SkippedRow,
    SourceRow,
    TransformResult,
    TransformedRow,
)

__all__ = [
    "Blueprint",
    "DropdownMatrixImport",
    "DropdownSource",
    "FormatAxisConfig",
    "LoadedBlueprint",
    "MaterialAxisConfig",
    "MaterialMapping",
    "MatrixConfig",
    "ModifierAxisConfig",
    "PricingSettings",
    "ProductConfig",
    "TechnicalSpecs",
    "UlPricesImport",
    "DEFAULT_TECHNICAL_SPECS",
    "load_blueprint_file",
    "parse_blueprint",
    "DEFAULT_TIERS",
    "PriceTier",
    "validate_tier_table",
    "LayoutRow",
    "PricingStructure",
    "SelectorColumn",
    "VerticalAxisSection",
    "ExtractionResult",
    "ImportReport",
    "INFERRED_SOURCE_TEXT",
    "InferenceResult",
    "MappedRow",
    "SkippedRow",
    "SourceRow",
    "TransformResult",
    "TransformedRow",
]

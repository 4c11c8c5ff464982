"""Number parsing, tiered pricing, quantity inference and matrix mapping."""
from pricing_import.services.pricing.inference import fill_missing_quantities
from pricing_import.services.pricing.mapping import (
    build_mapped_rows,
    expand_modifiers,
    find_material_mapping,
)
from pricing_import.services.pricing.number_parser import (
    QuantityPrice,
    extract_currency_amount,
    extract_quantity,
    normalize_label,
    parse_localized_number,
    parse_quantity_price_text,
)
from pricing_import.services.pricing.transformer import (
    PriceTransform,
    price_source_row,
    resolve_tier_multiplier,
    round_to_step,
    transform_items_to_rows,
    transform_price,
    transform_source_rows,
)

__all__ = [
    "fill_missing_quantities",
    "build_mapped_rows",
    "expand_modifiers",
    "find_material_mapping",
    "QuantityPrice",
    "extract_currency_amount",
    "extract_quantity",
    "normalize_label",
    "parse_localized_number",
    "parse_quantity_price_text",
    "PriceTransform",
    "price_source_row",
    "resolve_tier_multiplier",
    "round_to_step",
    "transform_items_to_rows",
    "transform_price",
    "transform_source_rows",
]

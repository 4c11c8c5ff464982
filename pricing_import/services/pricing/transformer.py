"""Tiered price transformation from source-currency unit prices to final prices."""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from pricing_import.errors.exceptions import InvalidConfiguration, ParsingError
from pricing_import.models.blueprint import PricingSettings, UlPricesImport
from pricing_import.models.pricing import DEFAULT_TIERS, PriceTier
from pricing_import.models.rows import (
    SeriesKey,
    SkippedRow,
    SourceRow,
    TransformResult,
    TransformedRow,
)
from pricing_import.services.pricing.number_parser import (
    extract_currency_amount,
    extract_quantity,
)

logger = structlog.get_logger(__name__)

Number = Union[Decimal, int, float, str]

BASE_PRECISION = Decimal("0.0001")
_ONE = Decimal("1")


@dataclass(frozen=True)
class PriceTransform:
    """Result of pricing one unit price.

    Attributes:
        base: Unit price times currency multiplier, rounded to 4 decimals
        multiplier: Tier multiplier applied to the base
        final: Integer price in the target currency
    """

    base: Decimal
    multiplier: Decimal
    final: int


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 15.2 from turning into 15.199999...
    return Decimal(str(value))


def resolve_tier_multiplier(base: Number, tiers: Sequence[PriceTier] = DEFAULT_TIERS) -> Decimal:
    """Pick the multiplier of the first tier whose ``max_base`` covers ``base``.

    Args:
        base: Converted base amount, must be positive
        tiers: Ascending tier table; an entry without ``max_base`` is the catch-all

    Returns:
        Tier multiplier
    """
    amount = _to_decimal(base)
    if amount <= 0:
        raise ValueError(f"base amount must be positive, got {amount}")
    if not tiers:
        raise InvalidConfiguration("tier table must contain at least one tier")

    for tier in tiers:
        if tier.max_base is None or amount <= tier.max_base:
            return tier.multiplier
    return tiers[-1].multiplier


def round_to_step(value: Number, step: Number = 1) -> Decimal:
    """Round ``value`` to the nearest multiple of ``step``, halves away from zero.

    Raises:
        InvalidConfiguration: If ``step`` is not positive
    """
    step_value = _to_decimal(step)
    if step_value <= 0:
        raise InvalidConfiguration(f"rounding step must be > 0, got {step_value}")
    steps = (_to_decimal(value) / step_value).quantize(_ONE, rounding=ROUND_HALF_UP)
    return steps * step_value


def transform_price(
    unit_price: Number,
    currency_multiplier: Number,
    tiers: Sequence[PriceTier] = DEFAULT_TIERS,
    rounding_step: Number = 1,
) -> PriceTransform:
    """Convert a source-currency unit price into the final integer price.

    Raises:
        InvalidConfiguration: If the currency multiplier or rounding step is not positive
    """
    multiplier = _to_decimal(currency_multiplier)
    if multiplier <= 0:
        raise InvalidConfiguration(f"currency multiplier must be > 0, got {multiplier}")

    base = _to_decimal(unit_price) * multiplier
    tier_multiplier = resolve_tier_multiplier(base, tiers)
    stepped = round_to_step(base * tier_multiplier, rounding_step)

    return PriceTransform(
        base=base.quantize(BASE_PRECISION, rounding=ROUND_HALF_UP),
        multiplier=tier_multiplier,
        final=int(stepped.quantize(_ONE, rounding=ROUND_HALF_UP)),
    )


def price_source_row(row: SourceRow, pricing: PricingSettings) -> TransformedRow:
    """Attach base, tier multiplier and final price to a source row."""
    transform = transform_price(
        row.unit_price,
        pricing.currency_multiplier,
        pricing.tiers,
        pricing.rounding_step,
    )
    return TransformedRow(
        **row.model_dump(),
        base_amount=transform.base,
        tier_multiplier=transform.multiplier,
        final_amount=transform.final,
    )


def transform_items_to_rows(
    items: Iterable[Optional[str]],
    config: UlPricesImport,
    material_label: str,
    source_url: Optional[str] = None,
) -> TransformResult:
    """Turn extracted text items into priced rows keyed by quantity.

    Items without text are skipped as ``empty_text`` and items without a
    positive amount as ``amount_not_found``. Items without an explicit
    quantity get ``start + index * step``, bumped by ``step`` until the
    quantity is unused. Explicit quantities that are already taken are
    bumped the same way.

    Args:
        items: Extracted text fragments in page order
        config: Item-list import settings
        material_label: Material every row belongs to
        source_url: Page the items came from

    Returns:
        TransformResult with rows sorted by quantity

    Raises:
        ParsingError: If no item produced a row
    """
    skipped: List[SkippedRow] = []
    by_quantity: Dict[int, TransformedRow] = {}
    used_quantities: set[int] = set()
    start = config.default_quantity_start
    step = config.default_quantity_step
    index = -1

    for index, item in enumerate(items):
        text = (item or "").strip()
        if not text:
            skipped.append(SkippedRow(index=index, reason="empty_text"))
            continue

        amount = extract_currency_amount(text)
        if amount is None or amount <= 0:
            skipped.append(SkippedRow(index=index, reason="amount_not_found", source_text=text))
            continue

        quantity = extract_quantity(text) or start + index * step
        while quantity in used_quantities:
            quantity += step
        used_quantities.add(quantity)

        source_row = SourceRow(
            source_material_label=material_label,
            quantity=quantity,
            unit_price=amount,
            source_text=text,
            source_index=index,
            source_url=source_url,
        )
        by_quantity[quantity] = price_source_row(source_row, config)

    rows = [by_quantity[quantity] for quantity in sorted(by_quantity)]
    logger.info(
        "items_transformed",
        items=index + 1,
        rows=len(rows),
        skipped=len(skipped),
    )

    if not rows:
        raise ParsingError(
            "no price rows could be parsed from the extracted items",
            details={
                "items": index + 1,
                "skipped": [row.reason for row in skipped],
            },
        )
    return TransformResult(rows=rows, skipped=skipped)


def transform_source_rows(
    rows: Iterable[SourceRow],
    pricing: PricingSettings,
) -> List[TransformedRow]:
    """Price source rows and collapse duplicates.

    Rows sharing material, modifier labels and quantity collapse into one;
    the last one wins.

    Returns:
        Rows ordered by modifier labels, material label, then quantity
    """
    deduped: Dict[Tuple[SeriesKey, int], TransformedRow] = {}
    for row in rows:
        deduped[(row.series_key(), row.quantity)] = price_source_row(row, pricing)

    def sort_key(row: TransformedRow) -> Tuple:
        material, modifiers = row.series_key()
        return modifiers, material, row.quantity

    return sorted(deduped.values(), key=sort_key)

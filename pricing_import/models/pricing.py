"""Discount-tier table model and its load-time validation."""
from decimal import Decimal
from typing import Final, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from pricing_import.errors.exceptions import InvalidConfiguration


class PriceTier(BaseModel):
    """One row of the discount-tier table.

    Attributes:
        max_base: Inclusive upper bound on the converted base amount;
            ``None`` marks the unbounded catch-all tier
        multiplier: Markup factor applied to the base amount
    """

    max_base: Optional[Decimal] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("max_base", "max_dkk_base"),
        description="Inclusive upper bound on the base amount (None = unbounded)",
    )
    multiplier: Decimal = Field(..., gt=0, description="Markup factor for this tier")

    model_config = ConfigDict(extra="forbid", frozen=True)


DEFAULT_TIERS: Final[tuple[PriceTier, ...]] = (
    PriceTier(max_base=Decimal("3000"), multiplier=Decimal("1.5")),
    PriceTier(max_base=Decimal("10000"), multiplier=Decimal("1.4")),
    PriceTier(multiplier=Decimal("1.3")),
)


def validate_tier_table(tiers: Sequence[PriceTier]) -> None:
    """Reject malformed tier tables.

    The table must be non-empty, sorted ascending by ``max_base``, and may
    contain a single unbounded tier which has to be the last entry.

    Raises:
        InvalidConfiguration: If any of the rules above is violated
    """
    if not tiers:
        raise InvalidConfiguration("tier table must contain at least one tier")

    last_max: Optional[Decimal] = None
    for index, tier in enumerate(tiers):
        if tier.max_base is None:
            if index != len(tiers) - 1:
                raise InvalidConfiguration(
                    f"tier {index} has no max_base; only the last tier may be unbounded",
                    details={"tier_index": index},
                )
            continue

        if last_max is not None and tier.max_base < last_max:
            raise InvalidConfiguration(
                f"tier {index} max_base {tier.max_base} is below {last_max}; "
                "tiers must be sorted ascending by max_base",
                details={"tier_index": index},
            )
        last_max = tier.max_base

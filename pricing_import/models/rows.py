"""Row models flowing through parsing, pricing, inference and mapping."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

INFERRED_SOURCE_TEXT = "[inferred-missing-quantity]"

SeriesKey = Tuple[str, Tuple[Tuple[str, str], ...]]


class SourceRow(BaseModel):
    """One observed or inferred (material, quantity) price point."""

    source_material_label: str = Field(..., min_length=1, description="Material label as scraped")
    quantity: int = Field(..., gt=0, description="Ordered quantity")
    unit_price: Decimal = Field(..., gt=0, description="Price in the source currency")
    source_text: str = Field(default="", description="Raw text the row was parsed from")
    source_index: Optional[int] = Field(default=None, ge=0)
    source_url: Optional[str] = None
    modifier_labels: Dict[str, str] = Field(default_factory=dict)
    inferred_from_quantity: Optional[int] = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True)

    @property
    def is_inferred(self) -> bool:
        return self.inferred_from_quantity is not None

    def series_key(self) -> SeriesKey:
        """Material plus modifier labels; rows of one series differ only by quantity."""
        return self.source_material_label, tuple(sorted(self.modifier_labels.items()))


class TransformedRow(SourceRow):
    """SourceRow priced in the target currency."""

    base_amount: Decimal = Field(..., description="unit_price x currency multiplier, 4 decimals")
    tier_multiplier: Decimal = Field(..., gt=0)
    final_amount: int = Field(..., ge=0, description="Integer target-currency price")


class MappedRow(TransformedRow):
    """TransformedRow with its full selector axis attached."""

    row_type: str = Field(default="base")
    selections: Dict[str, str] = Field(..., description="axis key -> value label")

    @property
    def format_label(self) -> str:
        return self.selections["format"]

    @property
    def material_label(self) -> str:
        return self.selections["material"]

    def modifier_selections(self) -> Dict[str, str]:
        return {k: v for k, v in self.selections.items() if k not in ("format", "material")}

    def selection_key(self) -> Tuple[Tuple[str, str], ...]:
        return tuple(sorted(self.selections.items()))


class SkippedRow(BaseModel):
    """An extracted item that did not produce a row."""

    index: int = Field(..., ge=0)
    reason: str = Field(..., min_length=1)
    source_text: str = ""

    model_config = ConfigDict(frozen=True)


@dataclass
class TransformResult:
    """Rows built from extracted items plus the items that were skipped."""

    rows: List[TransformedRow] = field(default_factory=list)
    skipped: List[SkippedRow] = field(default_factory=list)


@dataclass
class InferenceResult:
    """Source rows after missing target quantities were filled in."""

    rows: List[SourceRow] = field(default_factory=list)
    inferred_count: int = 0

"""Pricing structure document stored on the product (``matrix_layout_v1``)."""
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

_STRUCTURE_CONFIG = ConfigDict(populate_by_name=True, extra="forbid")


class VerticalAxisSection(BaseModel):
    """Section whose values form the rows of the price matrix."""

    section_id: str = Field(default="vertical-axis", alias="sectionId")
    section_type: str = Field(..., alias="sectionType")
    group_id: str = Field(..., alias="groupId")
    value_ids: List[str] = Field(..., alias="valueIds")
    ui_mode: str = "buttons"
    value_settings: Dict[str, Any] = Field(default_factory=dict, alias="valueSettings")
    title: str
    description: str = ""

    model_config = _STRUCTURE_CONFIG


class SelectorColumn(BaseModel):
    """One selector shown above the matrix."""

    id: str
    section_type: str = Field(..., alias="sectionType")
    group_id: str = Field(..., alias="groupId")
    value_ids: List[str] = Field(..., alias="valueIds")
    ui_mode: str = "buttons"
    selection_mode: Literal["required", "optional"] = "required"
    value_settings: Dict[str, Any] = Field(default_factory=dict, alias="valueSettings")
    title: str
    description: str = ""

    model_config = _STRUCTURE_CONFIG


class LayoutRow(BaseModel):
    id: str
    title: str = ""
    description: str = ""
    columns: List[SelectorColumn] = Field(default_factory=list)

    model_config = _STRUCTURE_CONFIG


class PricingStructure(BaseModel):
    """Matrix layout assembled purely from attribute group and value ids."""

    mode: Literal["matrix_layout_v1"] = "matrix_layout_v1"
    version: Literal[1] = 1
    vertical_axis: VerticalAxisSection
    layout_rows: List[LayoutRow] = Field(default_factory=list)
    quantities: List[int] = Field(default_factory=list)

    model_config = _STRUCTURE_CONFIG

    def to_document(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys the storefront reads."""
        return self.model_dump(mode="json", by_alias=True)

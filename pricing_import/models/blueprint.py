"""Pydantic schema for the declarative product descriptor (blueprint)."""
import re
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Dict, Final, List, Literal, Optional, Union
from uuid import UUID

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from pricing_import.errors.exceptions import InvalidConfiguration
from pricing_import.models.pricing import DEFAULT_TIERS, PriceTier, validate_tier_table

RESERVED_AXIS_KEYS: Final[frozenset[str]] = frozenset({"format", "material"})

_URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)


def _optional_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not _URL_PATTERN.match(value):
        raise ValueError(f"must be an http(s) URL, got {value!r}")
    return value


class TechnicalSpecs(BaseModel):
    """Print-production specs stored on a newly created product."""

    width_mm: float = Field(..., gt=0, description="Trim width in millimetres")
    height_mm: float = Field(..., gt=0, description="Trim height in millimetres")
    bleed_mm: float = Field(default=3, ge=0, description="Bleed in millimetres")
    min_dpi: int = Field(default=300, gt=0, description="Minimum artwork resolution")
    is_free_form: bool = Field(default=False, description="Free-form sizing allowed")
    standard_format: str = Field(default="A4", min_length=1, description="Named standard format")

    model_config = ConfigDict(extra="forbid")


DEFAULT_TECHNICAL_SPECS: Final[TechnicalSpecs] = TechnicalSpecs(width_mm=210, height_mm=297)


class ProductConfig(BaseModel):
    """Product identity and presentation fields."""

    name: str = Field(..., min_length=1, description="Display name")
    slug: str = Field(
        ...,
        pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$",
        description="Kebab-case slug, unique per tenant",
    )
    description: str = Field(default="", description="Product description")
    category: Literal["tryksager", "storformat"] = Field(..., description="Catalog category")
    preset_key: str = Field(default="custom", min_length=1)
    icon_text: Optional[str] = Field(default=None, description="Icon text (defaults to name)")
    image_url: Optional[str] = Field(default=None)
    technical_specs: TechnicalSpecs = Field(
        default_factory=lambda: DEFAULT_TECHNICAL_SPECS.model_copy(),
        description="Technical specs used when the product is created",
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v: Optional[str]) -> Optional[str]:
        return _optional_url(v)

    @model_validator(mode="after")
    def default_icon_text(self) -> "ProductConfig":
        if not self.icon_text:
            self.icon_text = self.name
        return self


class FormatAxisConfig(BaseModel):
    """The single format value every imported row is attached to."""

    group_name: str = Field(default="Format", min_length=1)
    value_name: str = Field(..., min_length=1, description="Format label, e.g. 'A4'")
    width_mm: Optional[float] = Field(default=None, gt=0)
    height_mm: Optional[float] = Field(default=None, gt=0)
    image_url: Optional[str] = None
    ui_mode: Literal["buttons", "dropdown", "hidden"] = "buttons"

    model_config = ConfigDict(extra="forbid")

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v: Optional[str]) -> Optional[str]:
        return _optional_url(v)


class MaterialAxisConfig(BaseModel):
    """Material group; ``value_name`` is the fixed material for item-list imports."""

    group_name: str = Field(default="Materiale", min_length=1)
    value_name: Optional[str] = Field(default=None, min_length=1)
    image_url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v: Optional[str]) -> Optional[str]:
        return _optional_url(v)


class ModifierAxisConfig(BaseModel):
    """An extra selector axis such as finish, housing or lamination."""

    key: str = Field(..., pattern=r"^[a-z][a-z0-9_]*$", description="Axis key used in mappings")
    group_name: str = Field(..., min_length=1)
    kind: Literal["finish", "other"] = "other"
    section_type: str = Field(default="other", min_length=1)
    title: Optional[str] = None
    selection_mode: Literal["required", "optional"] = "required"
    ui_mode: Literal["buttons", "dropdown", "hidden"] = "buttons"
    values: List[str] = Field(..., min_length=1, description="Declared value labels in display order")

    model_config = ConfigDict(extra="forbid")

    @field_validator("key")
    @classmethod
    def reject_reserved_key(cls, v: str) -> str:
        if v in RESERVED_AXIS_KEYS:
            raise ValueError(f"'{v}' is reserved for the built-in axes")
        return v

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: List[str]) -> List[str]:
        cleaned = [label.strip() for label in v]
        if any(not label for label in cleaned):
            raise ValueError("value labels cannot be blank")
        seen: set[str] = set()
        for label in cleaned:
            folded = label.casefold()
            if folded in seen:
                raise ValueError(f"duplicate value label '{label}'")
            seen.add(folded)
        return cleaned

    def declares(self, label: str) -> bool:
        folded = label.strip().casefold()
        return any(value.casefold() == folded for value in self.values)

    def canonical(self, label: str) -> str:
        """Return the declared spelling of ``label``."""
        folded = label.strip().casefold()
        for value in self.values:
            if value.casefold() == folded:
                return value
        return label.strip()


class MatrixConfig(BaseModel):
    """Selector axes of the imported product."""

    vertical_axis: Literal["materials", "formats"] = "materials"
    format: FormatAxisConfig
    material: MaterialAxisConfig = Field(default_factory=MaterialAxisConfig)
    modifiers: List[ModifierAxisConfig] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("modifiers")
    @classmethod
    def unique_modifier_keys(cls, v: List[ModifierAxisConfig]) -> List[ModifierAxisConfig]:
        keys = [modifier.key for modifier in v]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ValueError(f"duplicate modifier keys: {', '.join(duplicates)}")
        return v

    def modifier(self, key: str) -> Optional[ModifierAxisConfig]:
        for modifier in self.modifiers:
            if modifier.key == key:
                return modifier
        return None

    @property
    def modifier_keys(self) -> List[str]:
        return [modifier.key for modifier in self.modifiers]


class PricingSettings(BaseModel):
    """Currency conversion, rounding and tiers shared by all import types."""

    currency_multiplier: Decimal = Field(
        default=Decimal("7.5"),
        gt=0,
        validation_alias=AliasChoices("currency_multiplier", "eur_to_dkk"),
        description="Source-to-target currency factor",
    )
    rounding_step: Decimal = Field(default=Decimal("1"), gt=0, description="Final price step")
    tiers: List[PriceTier] = Field(
        default_factory=lambda: list(DEFAULT_TIERS),
        description="Discount-tier table, ascending by max_base",
    )
    replace_scope: Literal["product", "format"] = Field(
        default="product",
        description="Delete all product prices, or only those of the imported format",
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("tiers")
    @classmethod
    def validate_tiers(cls, v: List[PriceTier]) -> List[PriceTier]:
        try:
            validate_tier_table(v)
        except InvalidConfiguration as e:
            raise ValueError(e.message) from e
        return v


class UlPricesImport(PricingSettings):
    """Import one list of price items from a single page."""

    type: Literal["ul_prices"]
    source_url: str = Field(..., validation_alias=AliasChoices("source_url", "url"))
    item_selector: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("item_selector", "ul_selector"),
        description="Selector of the container holding the price items",
    )
    default_quantity_start: int = Field(default=1, gt=0)
    default_quantity_step: int = Field(default=1, gt=0)

    @field_validator("source_url")
    @classmethod
    def validate_source_url(cls, v: str) -> str:
        url = _optional_url(v)
        if url is None:
            raise ValueError("source_url cannot be empty")
        return url


class DropdownSource(BaseModel):
    """One dropdown-driven page; ``modifiers`` labels every row scraped from it."""

    url: str
    modifiers: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        url = _optional_url(v)
        if url is None:
            raise ValueError("url cannot be empty")
        return url


class MaterialMapping(BaseModel):
    """Maps a scraped material option label to a catalog material."""

    source_label: str = Field(..., min_length=1, description="Option label on the source page")
    material: str = Field(..., min_length=1, description="Catalog material value name")
    match: Literal["exact", "contains"] = "exact"
    row_type: Optional[str] = None
    modifiers: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    def modifier_labels(self, key: str) -> List[str]:
        value = self.modifiers.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return list(value)


class DropdownMatrixImport(PricingSettings):
    """Import a material x quantity matrix by driving page dropdowns."""

    type: Literal["dropdown_matrix"]
    sources: List[DropdownSource] = Field(..., min_length=1)
    material_select_selector: str = Field(default="#sorten", min_length=1)
    quantity_option_selector: str = Field(
        default="#wmd_shirt_auflage option, select[name*='auflage'] option",
        min_length=1,
    )
    quantity_mode_selector: Optional[str] = None
    settle_delay_ms: int = Field(default=1300, ge=0, le=60_000)
    target_quantities: List[int] = Field(..., min_length=1)
    infer_missing_quantities: bool = True
    materials: List[MaterialMapping] = Field(..., min_length=1)

    @field_validator("target_quantities")
    @classmethod
    def normalize_target_quantities(cls, v: List[int]) -> List[int]:
        if any(quantity <= 0 for quantity in v):
            raise ValueError("target quantities must be positive")
        return sorted(set(v))


PricingImportConfig = Annotated[
    Union[UlPricesImport, DropdownMatrixImport],
    Field(discriminator="type"),
]


class Blueprint(BaseModel):
    """Root of a product descriptor file."""

    version: Literal[1]
    tenant_id: UUID
    product: ProductConfig
    matrix: MatrixConfig
    pricing_import: PricingImportConfig

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "version": 1,
                "tenant_id": "5c1f5d0e-1b8e-4a4b-9f57-0f4b8f8a2b11",
                "product": {"name": "Flyers", "slug": "flyers", "category": "tryksager"},
                "matrix": {
                    "format": {"value_name": "A4"},
                    "material": {"value_name": "170g silk"},
                },
                "pricing_import": {
                    "type": "ul_prices",
                    "source_url": "https://example.com/flyers",
                    "item_selector": "ul.prices",
                },
            }
        },
    )

    @model_validator(mode="after")
    def check_cross_references(self) -> "Blueprint":
        pricing = self.pricing_import

        if isinstance(pricing, UlPricesImport):
            if not self.matrix.material.value_name:
                raise ValueError("matrix.material.value_name is required for ul_prices imports")
            return self

        for index, source in enumerate(pricing.sources):
            for key, label in source.modifiers.items():
                self._check_modifier_label(f"pricing_import.sources.{index}.modifiers", key, label)

        for index, mapping in enumerate(pricing.materials):
            for key in mapping.modifiers:
                for label in mapping.modifier_labels(key):
                    self._check_modifier_label(
                        f"pricing_import.materials.{index}.modifiers", key, label
                    )
        return self

    def _check_modifier_label(self, path: str, key: str, label: str) -> None:
        modifier = self.matrix.modifier(key)
        if modifier is None:
            raise ValueError(f"{path}.{key}: modifier axis '{key}' is not declared in matrix.modifiers")
        if not modifier.declares(label):
            raise ValueError(
                f"{path}.{key}: label '{label}' is not one of the declared values of '{key}'"
            )

    @property
    def is_matrix_import(self) -> bool:
        return isinstance(self.pricing_import, DropdownMatrixImport)


class LoadedBlueprint(BaseModel):
    """A validated blueprint together with the file it came from."""

    blueprint: Blueprint
    file_path: str


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        path = ".".join(str(part) for part in item["loc"])
        message = item["msg"]
        messages.append(f"{path}: {message}" if path else message)
    return "; ".join(messages)


def parse_blueprint(data: object) -> Blueprint:
    """Validate an already-parsed descriptor document.

    Args:
        data: Parsed YAML/JSON document

    Returns:
        Validated Blueprint

    Raises:
        InvalidConfiguration: If the document violates the schema
    """
    if not isinstance(data, dict):
        raise InvalidConfiguration("descriptor root must be a mapping")
    try:
        return Blueprint.model_validate(data)
    except ValidationError as e:
        raise InvalidConfiguration(
            f"invalid descriptor: {_format_validation_error(e)}",
            details={"errors": e.error_count()},
        ) from e


def load_blueprint_file(path: Union[str, Path]) -> LoadedBlueprint:
    """Read and validate a YAML descriptor file.

    Raises:
        InvalidConfiguration: If the file cannot be read, is not valid YAML,
            or fails schema validation
    """
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidConfiguration(
            f"cannot read descriptor {file_path}: {e}", details={"file": str(file_path)}
        ) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidConfiguration(
            f"descriptor {file_path} is not valid YAML: {e}", details={"file": str(file_path)}
        ) from e

    blueprint = parse_blueprint(data)
    return LoadedBlueprint(blueprint=blueprint, file_path=str(file_path))

"""Plan of the attribute groups and values an import needs in the catalog."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from pricing_import.models.blueprint import Blueprint
from pricing_import.models.rows import MappedRow

FORMAT_SORT_ORDER = 0
MATERIAL_SORT_ORDER = 1
FIRST_MODIFIER_SORT_ORDER = 2


@dataclass(frozen=True)
class ValueSpec:
    """A value to ensure, with the optional fields to patch."""

    name: str
    width_mm: Optional[float] = None
    height_mm: Optional[float] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class AxisSpec:
    """A group to ensure plus how it is presented in the pricing structure."""

    key: str
    kind: str
    group_name: str
    sort_order: int
    section_type: str
    title: str
    ui_mode: str = "buttons"
    selection_mode: str = "required"
    values: List[ValueSpec] = field(default_factory=list)


def _used_labels(rows: Sequence[MappedRow], key: str) -> List[str]:
    seen: Dict[str, str] = {}
    for row in rows:
        label = row.selections.get(key)
        if label is not None:
            seen.setdefault(label.casefold(), label)
    return list(seen.values())


def build_axis_plan(blueprint: Blueprint, rows: Sequence[MappedRow]) -> List[AxisSpec]:
    """List the axes in display order: format, material, then used modifiers.

    Values are restricted to labels the mapped rows actually use, in the
    order the blueprint declares them. A modifier axis no row uses is left
    out.
    """
    matrix = blueprint.matrix
    format_config = matrix.format
    material_config = matrix.material

    axes = [
        AxisSpec(
            key="format",
            kind="format",
            group_name=format_config.group_name,
            sort_order=FORMAT_SORT_ORDER,
            section_type="formats",
            title=format_config.group_name,
            ui_mode=format_config.ui_mode,
            values=[
                ValueSpec(
                    name=format_config.value_name,
                    width_mm=format_config.width_mm,
                    height_mm=format_config.height_mm,
                    image_url=format_config.image_url,
                )
            ],
        )
    ]

    material_labels = _used_labels(rows, "material")
    if blueprint.is_matrix_import:
        declared = [mapping.material for mapping in blueprint.pricing_import.materials]
        used = {label.casefold() for label in material_labels}
        ordered: Dict[str, str] = {}
        for name in declared:
            if name.casefold() in used:
                ordered.setdefault(name.casefold(), name)
        material_values = [ValueSpec(name=name) for name in ordered.values()]
    else:
        material_values = [
            ValueSpec(
                name=label,
                image_url=material_config.image_url,
            )
            for label in material_labels
        ]

    axes.append(
        AxisSpec(
            key="material",
            kind="material",
            group_name=material_config.group_name,
            sort_order=MATERIAL_SORT_ORDER,
            section_type="materials",
            title=material_config.group_name,
            values=material_values,
        )
    )

    for offset, modifier in enumerate(matrix.modifiers):
        used = {label.casefold() for label in _used_labels(rows, modifier.key)}
        values = [ValueSpec(name=label) for label in modifier.values if label.casefold() in used]
        if not values:
            continue
        axes.append(
            AxisSpec(
                key=modifier.key,
                kind=modifier.kind,
                group_name=modifier.group_name,
                sort_order=FIRST_MODIFIER_SORT_ORDER + offset,
                section_type=modifier.section_type,
                title=modifier.title or modifier.group_name,
                ui_mode=modifier.ui_mode,
                selection_mode=modifier.selection_mode,
                values=values,
            )
        )

    return axes


def vertical_axis_key(blueprint: Blueprint) -> str:
    return "material" if blueprint.matrix.vertical_axis == "materials" else "format"

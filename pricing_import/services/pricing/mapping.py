"""Attach format, material and modifier selections to transformed rows."""
from itertools import product
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from pricing_import.models.blueprint import Blueprint, MaterialMapping, MatrixConfig
from pricing_import.models.rows import MappedRow, TransformedRow
from pricing_import.services.pricing.number_parser import normalize_label

logger = structlog.get_logger(__name__)

DEFAULT_ROW_TYPE = "base"


def find_material_mapping(
    label: str,
    mappings: Sequence[MaterialMapping],
) -> Optional[MaterialMapping]:
    """Find the first mapping whose ``source_label`` matches a scraped label.

    ``exact`` mappings compare whole labels, ``contains`` mappings look for
    the source label inside the scraped one. Both ignore case and repeated
    whitespace.
    """
    folded = normalize_label(label).casefold()
    for mapping in mappings:
        source = normalize_label(mapping.source_label).casefold()
        if mapping.match == "exact" and folded == source:
            return mapping
        if mapping.match == "contains" and source in folded:
            return mapping
    return None


def expand_modifiers(
    fixed: Mapping[str, str],
    fan_out: Mapping[str, Sequence[str]],
) -> List[Dict[str, str]]:
    """Build every modifier combination.

    Args:
        fixed: axis key -> single label
        fan_out: axis key -> labels; one combination per label

    Returns:
        List of axis key -> label dicts, one per combination
    """
    keys = list(fan_out)
    if not keys:
        return [dict(fixed)]

    combinations = []
    for labels in product(*(fan_out[key] for key in keys)):
        combination = dict(fixed)
        combination.update(zip(keys, labels))
        combinations.append(combination)
    return combinations


def _ordered_modifiers(matrix: MatrixConfig, labels: Mapping[str, str]) -> Dict[str, str]:
    ordered: Dict[str, str] = {}
    for modifier in matrix.modifiers:
        if modifier.key in labels:
            ordered[modifier.key] = modifier.canonical(labels[modifier.key])
    return ordered


def _selections_for_row(
    row: TransformedRow,
    blueprint: Blueprint,
) -> Tuple[str, List[Dict[str, str]]]:
    matrix = blueprint.matrix
    pricing = blueprint.pricing_import

    if not blueprint.is_matrix_import:
        material = matrix.material.value_name or row.source_material_label
        modifiers = _ordered_modifiers(matrix, row.modifier_labels)
        return DEFAULT_ROW_TYPE, [
            {"format": matrix.format.value_name, "material": material, **modifiers}
        ]

    mapping = find_material_mapping(row.source_material_label, pricing.materials)
    if mapping is None:
        return DEFAULT_ROW_TYPE, []

    fixed = dict(row.modifier_labels)
    fan_out: Dict[str, List[str]] = {}
    for key in mapping.modifiers:
        labels = mapping.modifier_labels(key)
        if len(labels) == 1:
            fixed[key] = labels[0]
        elif labels:
            fan_out[key] = labels
            fixed.pop(key, None)

    selections = []
    for modifiers in expand_modifiers(fixed, fan_out):
        selections.append(
            {
                "format": matrix.format.value_name,
                "material": mapping.material,
                **_ordered_modifiers(matrix, modifiers),
            }
        )
    return mapping.row_type or DEFAULT_ROW_TYPE, selections


def build_mapped_rows(rows: Iterable[TransformedRow], blueprint: Blueprint) -> List[MappedRow]:
    """Map transformed rows onto the product's selector axes.

    Item-list imports attach the fixed format and material. Matrix imports
    resolve each scraped material label through ``pricing_import.materials``
    and fan out list-valued modifier labels into one row per combination.
    Rows that end up on the same selections and quantity collapse, the last
    one wins.

    Returns:
        Mapped rows sorted by material, modifier labels and quantity
    """
    mapped: Dict[Tuple[Tuple[Tuple[str, str], ...], int], MappedRow] = {}
    unmapped: set[str] = set()

    for row in rows:
        row_type, selection_sets = _selections_for_row(row, blueprint)
        if not selection_sets:
            unmapped.add(row.source_material_label)
            continue
        for selections in selection_sets:
            mapped_row = MappedRow(**row.model_dump(), row_type=row_type, selections=selections)
            mapped[(mapped_row.selection_key(), mapped_row.quantity)] = mapped_row

    if unmapped:
        logger.warning("rows_without_material_mapping", labels=sorted(unmapped))

    modifier_keys = blueprint.matrix.modifier_keys

    def sort_key(row: MappedRow) -> Tuple:
        modifiers = tuple(row.selections.get(key, "") for key in modifier_keys)
        return row.material_label, modifiers, row.quantity

    return sorted(mapped.values(), key=sort_key)

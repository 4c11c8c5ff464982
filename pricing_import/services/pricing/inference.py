"""Fill missing target quantities from the nearest observed quantity."""
from typing import Dict, Iterable, List, Sequence

import structlog

from pricing_import.models.rows import (
    INFERRED_SOURCE_TEXT,
    InferenceResult,
    SeriesKey,
    SourceRow,
)

logger = structlog.get_logger(__name__)


def _nearest_observed(observed: List[SourceRow], quantity: int) -> SourceRow:
    # observed is ascending, so strict < keeps the lower quantity on ties
    best = observed[0]
    best_distance = abs(best.quantity - quantity)
    for row in observed[1:]:
        distance = abs(row.quantity - quantity)
        if distance < best_distance:
            best, best_distance = row, distance
    return best


def fill_missing_quantities(
    rows: Iterable[SourceRow],
    target_quantities: Sequence[int],
) -> InferenceResult:
    """Copy prices into target quantities a series did not observe.

    A series is one material with one set of modifier labels. For each
    target quantity missing from a series, the observed row with the closest
    quantity is copied (ties go to the lower quantity) and tagged with
    ``inferred_from_quantity``. Inferred rows are never used as templates and
    series without any observed row are left untouched.

    Args:
        rows: Observed source rows
        target_quantities: Quantities every series should cover

    Returns:
        InferenceResult with observed and inferred rows, grouped per series
        in first-seen order and sorted by quantity within a series
    """
    series: Dict[SeriesKey, List[SourceRow]] = {}
    for row in rows:
        series.setdefault(row.series_key(), []).append(row)

    targets = sorted(set(target_quantities))
    output: List[SourceRow] = []
    inferred_count = 0

    for key, series_rows in series.items():
        observed = sorted(
            (row for row in series_rows if not row.is_inferred),
            key=lambda row: row.quantity,
        )
        present = {row.quantity for row in series_rows}
        filled = list(series_rows)

        if observed:
            for quantity in targets:
                if quantity in present:
                    continue
                template = _nearest_observed(observed, quantity)
                filled.append(
                    template.model_copy(
                        update={
                            "quantity": quantity,
                            "inferred_from_quantity": template.quantity,
                            "source_text": INFERRED_SOURCE_TEXT,
                        }
                    )
                )
                present.add(quantity)
                inferred_count += 1
                logger.debug(
                    "quantity_inferred",
                    material=key[0],
                    quantity=quantity,
                    inferred_from=template.quantity,
                )

        output.extend(sorted(filled, key=lambda row: row.quantity))

    if inferred_count:
        logger.info("missing_quantities_inferred", inferred=inferred_count, series=len(series))
    return InferenceResult(rows=output, inferred_count=inferred_count)

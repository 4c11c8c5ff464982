"""Per-run audit artifacts: raw JSON snapshot and flattened CSV of the priced rows."""
import csv
import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import structlog

from pricing_import.models.rows import MappedRow, TransformedRow

logger = structlog.get_logger(__name__)

RAW_DIR = "pricing_raw"
CLEAN_DIR = "pricing_clean"

ITEM_LIST_COLUMNS = [
    "source_index",
    "quantity",
    "eur",
    "dkk_base",
    "tier_multiplier",
    "dkk_final",
    "li_text",
]


def timestamp_for_file(moment: Optional[datetime] = None) -> str:
    """Local time as ``YYYYMMDD-HHMMSS``."""
    return (moment or datetime.now()).strftime("%Y%m%d-%H%M%S")


def _plain(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return format(value.normalize(), "f")


def matrix_columns(modifier_keys: Sequence[str]) -> List[str]:
    return [
        "row_type",
        "format",
        "material",
        *modifier_keys,
        "quantity",
        "eur",
        "dkk_base",
        "tier_multiplier",
        "dkk_final",
        "source_material",
        "inferred_from_quantity",
        "detail_url",
    ]


def item_list_record(row: TransformedRow) -> Dict[str, Any]:
    return {
        "source_index": row.source_index if row.source_index is not None else "",
        "quantity": row.quantity,
        "eur": _plain(row.unit_price),
        "dkk_base": _plain(row.base_amount),
        "tier_multiplier": _plain(row.tier_multiplier),
        "dkk_final": row.final_amount,
        "li_text": row.source_text,
    }


def matrix_record(row: MappedRow, modifier_keys: Sequence[str]) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "row_type": row.row_type,
        "format": row.format_label,
        "material": row.material_label,
    }
    for key in modifier_keys:
        record[key] = row.selections.get(key, "")
    record.update(
        {
            "quantity": row.quantity,
            "eur": _plain(row.unit_price),
            "dkk_base": _plain(row.base_amount),
            "tier_multiplier": _plain(row.tier_multiplier),
            "dkk_final": row.final_amount,
            "source_material": row.source_material_label,
            "inferred_from_quantity": row.inferred_from_quantity or "",
            "detail_url": row.source_url or "",
        }
    )
    return record


class SnapshotWriter:
    """Writes the snapshot files of one run under a common root.

    Files land in ``<root>/pricing_raw/<slug>/<timestamp>.json`` and
    ``<root>/pricing_clean/<slug>/<timestamp>.csv``.
    """

    def __init__(self, root: Union[str, Path], slug: str, timestamp: Optional[str] = None):
        self.root = Path(root)
        self.slug = slug
        self.timestamp = timestamp or timestamp_for_file()

    @property
    def raw_path(self) -> Path:
        return self.root / RAW_DIR / self.slug / f"{self.timestamp}.json"

    @property
    def clean_path(self) -> Path:
        return self.root / CLEAN_DIR / self.slug / f"{self.timestamp}.csv"

    def write_raw(self, payload: Dict[str, Any]) -> Path:
        path = self.raw_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
        logger.info("raw_snapshot_written", path=str(path))
        return path

    def write_csv(self, columns: Sequence[str], records: Iterable[Dict[str, Any]]) -> Path:
        path = self.clean_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=list(columns), lineterminator="\n")
            writer.writeheader()
            count = 0
            for record in records:
                writer.writerow(record)
                count += 1
        logger.info("clean_snapshot_written", path=str(path), rows=count)
        return path

    def write_item_list_csv(self, rows: Sequence[TransformedRow]) -> Path:
        return self.write_csv(ITEM_LIST_COLUMNS, (item_list_record(row) for row in rows))

    def write_matrix_csv(self, rows: Sequence[MappedRow], modifier_keys: Sequence[str]) -> Path:
        return self.write_csv(
            matrix_columns(modifier_keys),
            (matrix_record(row, modifier_keys) for row in rows),
        )

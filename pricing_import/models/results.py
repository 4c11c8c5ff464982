"""Result models returned by extraction and by a whole import run."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ExtractionResult(BaseModel):
    """Text items pulled from a page, with provenance.

    Attributes:
        provider: Name of the provider that produced the items
        items: Ordered, trimmed, non-empty text fragments
        payload: Provider-specific raw data kept for snapshots
        fallback_errors: provider -> error message of providers tried before
    """

    provider: str
    items: List[str] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)
    fallback_errors: Dict[str, str] = Field(default_factory=dict)


class ImportReport(BaseModel):
    """Summary of an import run, printed by the CLI."""

    dry_run: bool
    tenant_id: str
    product_slug: str
    import_type: str
    provider: Optional[str] = None
    fallback_errors: Dict[str, str] = Field(default_factory=dict)
    items_extracted: int = 0
    rows_prepared: int = 0
    rows_skipped: int = 0
    rows_inferred: int = 0
    quantities: List[int] = Field(default_factory=list)
    missing_quantities: Dict[str, List[int]] = Field(default_factory=dict)
    product_id: Optional[str] = None
    product_created: Optional[bool] = None
    rows_inserted: Optional[int] = None
    raw_snapshot_path: Optional[str] = None
    clean_snapshot_path: Optional[str] = None

    def summary_lines(self) -> List[str]:
        mode = "dry-run" if self.dry_run else "import"
        lines = [
            f"{mode}: {self.product_slug} ({self.import_type})",
            f"rows prepared: {self.rows_prepared}, skipped: {self.rows_skipped}, "
            f"inferred: {self.rows_inferred}",
            f"quantities: {', '.join(str(q) for q in self.quantities) or '-'}",
        ]
        if self.provider:
            lines.append(f"provider: {self.provider} ({self.items_extracted} items)")
        for provider, message in self.fallback_errors.items():
            lines.append(f"fallback {provider}: {message}")
        for material, missing in self.missing_quantities.items():
            lines.append(f"missing quantities for {material}: {', '.join(map(str, missing))}")
        if self.product_id is not None:
            state = "created" if self.product_created else "existing"
            lines.append(f"product: {self.product_id} ({state})")
        if self.rows_inserted is not None:
            lines.append(f"price rows inserted: {self.rows_inserted}")
        if self.raw_snapshot_path:
            lines.append(f"raw snapshot: {self.raw_snapshot_path}")
        if self.clean_snapshot_path:
            lines.append(f"clean snapshot: {self.clean_snapshot_path}")
        return lines

"""End-to-end import: extract or scrape, price, map, snapshot, reconcile."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pricing_import.config import Settings, get_settings
from pricing_import.db.base import build_session_maker
from pricing_import.errors.exceptions import (
    InvalidConfiguration,
    ParsingError,
    ReconciliationError,
)
from pricing_import.models.blueprint import (
    DropdownMatrixImport,
    LoadedBlueprint,
    UlPricesImport,
    load_blueprint_file,
)
from pricing_import.models.results import ExtractionResult, ImportReport
from pricing_import.models.rows import MappedRow, SkippedRow, TransformedRow
from pricing_import.services.catalog.reconciler import CatalogReconciler
from pricing_import.services.extraction.chain import ExtractionChain
from pricing_import.services.pricing.inference import fill_missing_quantities
from pricing_import.services.pricing.mapping import build_mapped_rows
from pricing_import.services.pricing.transformer import (
    transform_items_to_rows,
    transform_source_rows,
)
from pricing_import.services.scraping.matrix_scraper import (
    MatrixScrapeResult,
    scrape_dropdown_matrix,
)
from pricing_import.services.snapshots import SnapshotWriter

logger = structlog.get_logger(__name__)

MatrixScrapeFn = Callable[[DropdownMatrixImport], Awaitable[MatrixScrapeResult]]


@dataclass
class PreparedImport:
    """Everything computed before the database is touched."""

    loaded: LoadedBlueprint
    transformed_rows: List[TransformedRow]
    mapped_rows: List[MappedRow]
    extraction: Optional[ExtractionResult] = None
    scrape: Optional[MatrixScrapeResult] = None
    skipped: List[SkippedRow] = field(default_factory=list)
    inferred_count: int = 0

    @property
    def missing_quantities(self) -> Dict[str, List[int]]:
        return self.scrape.missing_quantities if self.scrape else {}

    @property
    def quantities(self) -> List[int]:
        return sorted({row.quantity for row in self.mapped_rows})


class ImportPipeline:
    """Runs one descriptor through the whole import.

    Collaborators are injectable so tests can replace the network and the
    database.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        extraction_chain: Optional[ExtractionChain] = None,
        matrix_scraper: Optional[MatrixScrapeFn] = None,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        snapshot_root: Optional[Union[str, Path]] = None,
    ):
        self.settings = settings or get_settings()
        self._extraction_chain = extraction_chain
        self._matrix_scraper = matrix_scraper
        self._session_maker = session_maker
        self.snapshot_root = Path(snapshot_root or self.settings.snapshot_dir)

    @property
    def extraction_chain(self) -> ExtractionChain:
        if self._extraction_chain is None:
            self._extraction_chain = ExtractionChain.default(self.settings)
        return self._extraction_chain

    async def _scrape(self, config: DropdownMatrixImport) -> MatrixScrapeResult:
        if self._matrix_scraper is not None:
            return await self._matrix_scraper(config)
        return await scrape_dropdown_matrix(config, self.settings)

    def _require_session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            if not self.settings.database_url:
                raise InvalidConfiguration(
                    "DATABASE_URL is required for imports that are not dry runs"
                )
            self._session_maker = build_session_maker(self.settings.database_url)
        return self._session_maker

    async def prepare(self, loaded: LoadedBlueprint) -> PreparedImport:
        """Extract or scrape the source and turn it into mapped rows.

        Raises:
            ExtractionError: If no text could be obtained from the source
            ParsingError: If no price row survives parsing
        """
        blueprint = loaded.blueprint
        config = blueprint.pricing_import

        if isinstance(config, UlPricesImport):
            extraction = await self.extraction_chain.extract(config.source_url, config.item_selector)
            transform = transform_items_to_rows(
                extraction.items,
                config,
                material_label=blueprint.matrix.material.value_name or "",
                source_url=config.source_url,
            )
            return PreparedImport(
                loaded=loaded,
                transformed_rows=transform.rows,
                mapped_rows=build_mapped_rows(transform.rows, blueprint),
                extraction=extraction,
                skipped=transform.skipped,
            )

        scrape = await self._scrape(config)
        source_rows = scrape.rows
        if not source_rows:
            raise ParsingError(
                "no target quantities could be parsed from the dropdown options",
                details={"missing": scrape.missing_quantities},
            )

        inferred_count = 0
        if config.infer_missing_quantities:
            inference = fill_missing_quantities(source_rows, config.target_quantities)
            source_rows = inference.rows
            inferred_count = inference.inferred_count

        transformed = transform_source_rows(source_rows, config)
        mapped = build_mapped_rows(transformed, blueprint)
        if not mapped:
            raise ParsingError("no scraped row could be mapped to a catalog material")

        return PreparedImport(
            loaded=loaded,
            transformed_rows=transformed,
            mapped_rows=mapped,
            scrape=scrape,
            inferred_count=inferred_count,
        )

    def write_snapshots(self, prepared: PreparedImport, writer: SnapshotWriter) -> tuple[Path, Path]:
        blueprint = prepared.loaded.blueprint
        config = blueprint.pricing_import
        payload: Dict[str, Any] = {
            "timestamp": writer.timestamp,
            "blueprint_file": prepared.loaded.file_path,
            "blueprint": blueprint.model_dump(mode="json"),
            "source": {"type": config.type},
            "skipped_rows": [row.model_dump(mode="json") for row in prepared.skipped],
            "transformed_rows": [row.model_dump(mode="json") for row in prepared.transformed_rows],
            "mapped_rows": [row.model_dump(mode="json") for row in prepared.mapped_rows],
            "missing_quantities": prepared.missing_quantities,
            "inferred_rows": prepared.inferred_count,
        }

        if isinstance(config, UlPricesImport):
            payload["source"].update(url=config.source_url, item_selector=config.item_selector)
        else:
            payload["source"]["urls"] = [source.url for source in config.sources]

        if prepared.extraction is not None:
            payload["extractor"] = {
                "provider": prepared.extraction.provider,
                "fallback_errors": prepared.extraction.fallback_errors,
            }
            payload["items"] = prepared.extraction.items
            payload["extracted_payload"] = prepared.extraction.payload

        raw_path = writer.write_raw(payload)
        if blueprint.is_matrix_import:
            clean_path = writer.write_matrix_csv(prepared.mapped_rows, blueprint.matrix.modifier_keys)
        else:
            clean_path = writer.write_item_list_csv(prepared.transformed_rows)
        return raw_path, clean_path

    async def run(self, loaded: LoadedBlueprint, dry_run: bool = False) -> ImportReport:
        """Run the import; a dry run never touches the database.

        Raises:
            InvalidConfiguration: If a real import has no database configured
            ExtractionError: If the source could not be read
            ParsingError: If no price row survives parsing
            ReconciliationError: If writing to the catalog fails
        """
        blueprint = loaded.blueprint
        log = logger.bind(slug=blueprint.product.slug, import_type=blueprint.pricing_import.type)

        session_maker = None if dry_run else self._require_session_maker()

        log.info("import_started", dry_run=dry_run)
        prepared = await self.prepare(loaded)

        writer = SnapshotWriter(self.snapshot_root, blueprint.product.slug)
        raw_path, clean_path = self.write_snapshots(prepared, writer)

        report = ImportReport(
            dry_run=dry_run,
            tenant_id=str(blueprint.tenant_id),
            product_slug=blueprint.product.slug,
            import_type=blueprint.pricing_import.type,
            provider=prepared.extraction.provider if prepared.extraction else None,
            fallback_errors=prepared.extraction.fallback_errors if prepared.extraction else {},
            items_extracted=len(prepared.extraction.items) if prepared.extraction else 0,
            rows_prepared=len(prepared.mapped_rows),
            rows_skipped=len(prepared.skipped),
            rows_inferred=prepared.inferred_count,
            quantities=prepared.quantities,
            missing_quantities=prepared.missing_quantities,
            raw_snapshot_path=str(raw_path),
            clean_snapshot_path=str(clean_path),
        )

        if session_maker is None:
            log.info("dry_run_completed", rows_prepared=report.rows_prepared)
            return report

        try:
            async with session_maker() as session:
                reconciler = CatalogReconciler(session, batch_size=self.settings.price_insert_batch_size)
                result = await reconciler.reconcile(blueprint, prepared.mapped_rows)
        except (SQLAlchemyError, OSError) as e:
            log.error("catalog_session_failed", error=str(e), error_type=type(e).__name__)
            raise ReconciliationError(f"catalog database unavailable: {e}") from e

        log.info("import_completed", rows_inserted=result.rows_inserted)
        return report.model_copy(
            update={
                "product_id": str(result.product_id),
                "product_created": result.product_created,
                "rows_inserted": result.rows_inserted,
            }
        )


async def run_import(
    path: Union[str, Path],
    dry_run: bool = False,
    snapshot_dir: Optional[Union[str, Path]] = None,
    settings: Optional[Settings] = None,
) -> ImportReport:
    """Load a descriptor file and run it with the default collaborators."""
    loaded = load_blueprint_file(path)
    pipeline = ImportPipeline(settings=settings, snapshot_root=snapshot_dir)
    return await pipeline.run(loaded, dry_run=dry_run)

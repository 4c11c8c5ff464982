"""Unit tests for the import pipeline with fake extraction and scraping."""
import csv
import json
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pricing_import.config import Settings
from pricing_import.db.base import Base, build_session_maker
from pricing_import.db.models import GenericProductPrice
from pricing_import.errors.exceptions import InvalidConfiguration, ParsingError, ReconciliationError
from pricing_import.models.blueprint import LoadedBlueprint, parse_blueprint
from pricing_import.models.results import ExtractionResult
from pricing_import.models.rows import SourceRow
from pricing_import.services.extraction.base import ExtractionProvider
from pricing_import.services.extraction.chain import ExtractionChain
from pricing_import.services.import_pipeline import ImportPipeline
from pricing_import.services.scraping.matrix_scraper import MatrixScrapeResult, SourceScrapeResult

ITEMS = [
    "100 stk - 10,00 €",
    "Ring for pris",
    "200 stk - 100,00 €",
]


class FakeProvider(ExtractionProvider):
    name = "static-html"

    def __init__(self, items):
        self.items = items
        self.calls = 0

    async def extract(self, url, selector):
        self.calls += 1
        return ExtractionResult(provider=self.name, items=self.items, payload={"itemCount": len(self.items)})


def _scrape_result(rows, missing=None) -> MatrixScrapeResult:
    return MatrixScrapeResult(
        sources=[
            SourceScrapeResult(
                source_url="https://supplier.example.com/poster",
                modifier_labels={"finish": "Ingen"},
                rows=rows,
                missing_quantities=missing or {},
            )
        ]
    )


def _source_row(material: str, quantity: int, price: str) -> SourceRow:
    return SourceRow(
        source_material_label=material,
        quantity=quantity,
        unit_price=Decimal(price),
        source_text=f"{quantity} Stück ({price} €)",
        source_url="https://supplier.example.com/poster",
        modifier_labels={"finish": "Ingen"},
    )


@pytest_asyncio.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_maker(engine=engine)
    await engine.dispose()


class TestItemListImport:
    """Tests for ul_prices imports."""

    def _pipeline(self, tmp_path, provider, session_maker=None) -> ImportPipeline:
        return ImportPipeline(
            settings=Settings(database_url=None),
            extraction_chain=ExtractionChain([provider]),
            session_maker=session_maker,
            snapshot_root=tmp_path,
        )

    @pytest.mark.asyncio
    async def test_dry_run_writes_snapshots(self, tmp_path, ul_prices_blueprint):
        provider = FakeProvider(ITEMS)
        loaded = LoadedBlueprint(blueprint=ul_prices_blueprint, file_path="flyers.yaml")

        report = await self._pipeline(tmp_path, provider).run(loaded, dry_run=True)

        assert report.dry_run is True
        assert report.provider == "static-html"
        assert report.items_extracted == 3
        assert report.rows_prepared == 2
        assert report.rows_skipped == 1
        assert report.quantities == [100, 200]
        assert report.rows_inserted is None

        raw = json.loads(Path(report.raw_snapshot_path).read_text(encoding="utf-8"))
        assert raw["blueprint_file"] == "flyers.yaml"
        assert raw["source"]["url"] == "https://supplier.example.com/flyers"
        assert raw["extractor"]["provider"] == "static-html"
        assert raw["skipped_rows"][0]["reason"] == "amount_not_found"
        assert [row["final_amount"] for row in raw["transformed_rows"]] == [113, 1125]

        with open(report.clean_snapshot_path, encoding="utf-8", newline="") as f:
            records = list(csv.DictReader(f))
        assert [record["dkk_final"] for record in records] == ["113", "1125"]

    @pytest.mark.asyncio
    async def test_real_run_needs_database_before_extraction(self, tmp_path, ul_prices_blueprint):
        provider = FakeProvider(ITEMS)
        loaded = LoadedBlueprint(blueprint=ul_prices_blueprint, file_path="flyers.yaml")

        with pytest.raises(InvalidConfiguration):
            await self._pipeline(tmp_path, provider).run(loaded, dry_run=False)

        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_real_run_reconciles(self, tmp_path, ul_prices_blueprint, session_maker):
        loaded = LoadedBlueprint(blueprint=ul_prices_blueprint, file_path="flyers.yaml")
        pipeline = self._pipeline(tmp_path, FakeProvider(ITEMS), session_maker=session_maker)

        report = await pipeline.run(loaded, dry_run=False)

        assert report.dry_run is False
        assert report.product_created is True
        assert report.rows_inserted == 2
        async with session_maker() as session:
            prices = (await session.execute(select(GenericProductPrice))).scalars().all()
        assert sorted(price.price for price in prices) == [113, 1125]

    @pytest.mark.asyncio
    async def test_unreachable_database(self, tmp_path, ul_prices_blueprint):
        class UnreachableSession:
            async def __aenter__(self):
                raise OSError(111, "Connect call failed")

            async def __aexit__(self, *exc_info):
                return False

        loaded = LoadedBlueprint(blueprint=ul_prices_blueprint, file_path="flyers.yaml")
        pipeline = self._pipeline(tmp_path, FakeProvider(ITEMS), session_maker=UnreachableSession)

        with pytest.raises(ReconciliationError) as exc_info:
            await pipeline.run(loaded, dry_run=False)

        assert "catalog database unavailable" in exc_info.value.message
        assert list((tmp_path / "pricing_raw" / "flyers-a5").glob("*.json"))

    @pytest.mark.asyncio
    async def test_nothing_parseable(self, tmp_path, ul_prices_blueprint):
        loaded = LoadedBlueprint(blueprint=ul_prices_blueprint, file_path="flyers.yaml")

        with pytest.raises(ParsingError):
            await self._pipeline(tmp_path, FakeProvider(["Ring for pris"])).run(loaded, dry_run=True)


class TestDropdownMatrixImport:
    """Tests for dropdown_matrix imports."""

    @pytest.mark.asyncio
    async def test_dry_run_infers_missing_quantities(self, tmp_path, dropdown_matrix_blueprint):
        scraped = _scrape_result(
            [
                _source_row("135g Bilderdruck matt", 100, "10.00"),
                _source_row("135g Bilderdruck matt", 500, "40.00"),
                _source_row("Recycling Papier", 100, "12.00"),
            ],
            missing={"135g Bilderdruck matt": [250], "Recycling Papier": [250, 500]},
        )
        configs = []

        async def fake_scraper(config):
            configs.append(config)
            return scraped

        pipeline = ImportPipeline(
            settings=Settings(database_url=None),
            matrix_scraper=fake_scraper,
            snapshot_root=tmp_path,
        )
        loaded = LoadedBlueprint(blueprint=dropdown_matrix_blueprint, file_path="poster.yaml")

        report = await pipeline.run(loaded, dry_run=True)

        assert configs == [dropdown_matrix_blueprint.pricing_import]
        assert report.provider is None
        assert report.rows_inferred == 3
        assert report.rows_prepared == 6
        assert report.quantities == [100, 250, 500]
        assert report.missing_quantities == {
            "135g Bilderdruck matt [finish=Ingen]": [250],
            "Recycling Papier [finish=Ingen]": [250, 500],
        }

        with open(report.clean_snapshot_path, encoding="utf-8", newline="") as f:
            records = list(csv.DictReader(f))
        assert [(r["material"], r["quantity"], r["inferred_from_quantity"]) for r in records] == [
            ("135g mat", "100", ""),
            ("135g mat", "250", "100"),
            ("135g mat", "500", ""),
            ("Recycled", "100", ""),
            ("Recycled", "250", "100"),
            ("Recycled", "500", "100"),
        ]
        assert {r["finish"] for r in records} == {"Ingen"}

    @pytest.mark.asyncio
    async def test_inference_can_be_disabled(self, tmp_path, dropdown_matrix_document):
        dropdown_matrix_document["pricing_import"]["infer_missing_quantities"] = False
        blueprint = parse_blueprint(dropdown_matrix_document)

        async def fake_scraper(config):
            return _scrape_result([_source_row("Recycling", 100, "12.00")])

        pipeline = ImportPipeline(
            settings=Settings(database_url=None),
            matrix_scraper=fake_scraper,
            snapshot_root=tmp_path,
        )
        report = await pipeline.run(LoadedBlueprint(blueprint=blueprint, file_path="p.yaml"), dry_run=True)

        assert report.rows_inferred == 0
        assert report.quantities == [100]

    @pytest.mark.asyncio
    async def test_empty_scrape(self, tmp_path, dropdown_matrix_blueprint):
        async def fake_scraper(config):
            return _scrape_result([], missing={"Recycling": [100, 250, 500]})

        pipeline = ImportPipeline(
            settings=Settings(database_url=None),
            matrix_scraper=fake_scraper,
            snapshot_root=tmp_path,
        )

        with pytest.raises(ParsingError):
            await pipeline.run(
                LoadedBlueprint(blueprint=dropdown_matrix_blueprint, file_path="p.yaml"),
                dry_run=True,
            )

"""Unit tests for missing-quantity inference."""
from decimal import Decimal

from pricing_import.models.rows import INFERRED_SOURCE_TEXT, SourceRow
from pricing_import.services.pricing.inference import fill_missing_quantities


def _row(material: str, quantity: int, price: str, **kwargs) -> SourceRow:
    return SourceRow(
        source_material_label=material,
        quantity=quantity,
        unit_price=Decimal(price),
        source_text=f"{quantity} Stück ({price} €)",
        **kwargs,
    )


class TestFillMissingQuantities:
    """Tests for fill_missing_quantities()."""

    def test_fills_from_nearest_observed_quantity(self):
        rows = [_row("Mat", 100, "10"), _row("Mat", 500, "40")]

        result = fill_missing_quantities(rows, [100, 250, 500])

        assert result.inferred_count == 1
        assert [row.quantity for row in result.rows] == [100, 250, 500]
        inferred = result.rows[1]
        assert inferred.inferred_from_quantity == 100
        assert inferred.unit_price == Decimal("10")
        assert inferred.source_text == INFERRED_SOURCE_TEXT
        assert inferred.is_inferred

    def test_ties_resolve_to_lower_quantity(self):
        rows = [_row("Mat", 100, "10"), _row("Mat", 300, "25")]

        result = fill_missing_quantities(rows, [200])

        inferred = [row for row in result.rows if row.is_inferred]
        assert len(inferred) == 1
        assert inferred[0].inferred_from_quantity == 100

    def test_observed_rows_are_untouched(self):
        rows = [_row("Mat", 100, "10")]

        result = fill_missing_quantities(rows, [100])

        assert result.inferred_count == 0
        assert result.rows == rows

    def test_series_are_filled_independently(self):
        rows = [
            _row("Mat", 100, "10"),
            _row("Mat", 1000, "60", modifier_labels={"finish": "Blank"}),
            _row("Blank papir", 500, "30"),
        ]

        result = fill_missing_quantities(rows, [100, 500])

        by_series = {}
        for row in result.rows:
            by_series.setdefault(row.series_key(), []).append(row.quantity)
        assert list(by_series.values()) == [[100, 500], [100, 500, 1000], [100, 500]]
        assert result.inferred_count == 4

    def test_inferred_rows_never_serve_as_templates(self):
        rows = [
            _row("Mat", 100, "10"),
            _row("Mat", 900, "70", inferred_from_quantity=1000),
        ]

        result = fill_missing_quantities(rows, [800])

        filled = [row for row in result.rows if row.quantity == 800]
        assert filled[0].inferred_from_quantity == 100

    def test_series_without_observed_rows_is_left_alone(self):
        rows = [_row("Mat", 900, "70", inferred_from_quantity=1000)]

        result = fill_missing_quantities(rows, [100, 500])

        assert result.inferred_count == 0
        assert result.rows == rows

    def test_keeps_provenance_fields(self):
        rows = [_row("Mat", 100, "10", source_url="https://supplier.example.com/a", source_index=3)]

        result = fill_missing_quantities(rows, [50])

        inferred = result.rows[0]
        assert inferred.quantity == 50
        assert inferred.source_url == "https://supplier.example.com/a"
        assert inferred.source_material_label == "Mat"

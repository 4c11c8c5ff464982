"""Unit tests for descriptor parsing and validation."""
from decimal import Decimal
from uuid import UUID

import pytest
import yaml

from pricing_import.errors.exceptions import InvalidConfiguration
from pricing_import.models.blueprint import (
    DropdownMatrixImport,
    UlPricesImport,
    load_blueprint_file,
    parse_blueprint,
)
from pricing_import.models.pricing import DEFAULT_TIERS


class TestParseBlueprint:
    """Tests for parse_blueprint()."""

    def test_parses_item_list_descriptor(self, ul_prices_document):
        blueprint = parse_blueprint(ul_prices_document)

        assert isinstance(blueprint.pricing_import, UlPricesImport)
        assert blueprint.tenant_id == UUID(ul_prices_document["tenant_id"])
        assert blueprint.product.icon_text == "Flyers A5"
        assert blueprint.product.technical_specs.standard_format == "A4"
        assert blueprint.pricing_import.currency_multiplier == Decimal("7.5")
        assert blueprint.pricing_import.tiers == list(DEFAULT_TIERS)
        assert blueprint.pricing_import.replace_scope == "product"
        assert not blueprint.is_matrix_import

    def test_parses_matrix_descriptor(self, dropdown_matrix_document):
        dropdown_matrix_document["pricing_import"]["target_quantities"] = [500, 100, 250, 100]

        blueprint = parse_blueprint(dropdown_matrix_document)

        assert isinstance(blueprint.pricing_import, DropdownMatrixImport)
        assert blueprint.pricing_import.target_quantities == [100, 250, 500]
        assert blueprint.pricing_import.material_select_selector == "#sorten"
        assert blueprint.matrix.modifier_keys == ["finish"]
        assert blueprint.is_matrix_import

    def test_accepts_legacy_field_names(self, ul_prices_document):
        pricing = ul_prices_document["pricing_import"]
        pricing["url"] = pricing.pop("source_url")
        pricing["ul_selector"] = pricing.pop("item_selector")
        pricing["eur_to_dkk"] = "7.46"
        pricing["tiers"] = [
            {"max_dkk_base": 5000, "multiplier": 1.6},
            {"multiplier": 1.2},
        ]

        blueprint = parse_blueprint(ul_prices_document)

        assert blueprint.pricing_import.source_url == "https://supplier.example.com/flyers"
        assert blueprint.pricing_import.item_selector == "ul.prices"
        assert blueprint.pricing_import.currency_multiplier == Decimal("7.46")
        assert blueprint.pricing_import.tiers[0].max_base == Decimal("5000")

    def test_rejects_non_mapping_root(self):
        with pytest.raises(InvalidConfiguration):
            parse_blueprint(["not", "a", "mapping"])

    def test_error_message_names_field_path(self, ul_prices_document):
        ul_prices_document["product"]["slug"] = "Not A Slug"

        with pytest.raises(InvalidConfiguration) as exc_info:
            parse_blueprint(ul_prices_document)

        assert "product.slug" in exc_info.value.message

    def test_rejects_unknown_fields(self, ul_prices_document):
        ul_prices_document["product"]["colour"] = "red"

        with pytest.raises(InvalidConfiguration) as exc_info:
            parse_blueprint(ul_prices_document)

        assert "product.colour" in exc_info.value.message

    def test_rejects_unknown_import_type(self, ul_prices_document):
        ul_prices_document["pricing_import"]["type"] = "spreadsheet"

        with pytest.raises(InvalidConfiguration):
            parse_blueprint(ul_prices_document)

    def test_rejects_non_http_url(self, ul_prices_document):
        ul_prices_document["pricing_import"]["source_url"] = "ftp://supplier.example.com/list"

        with pytest.raises(InvalidConfiguration):
            parse_blueprint(ul_prices_document)

    def test_item_list_requires_material_value(self, ul_prices_document):
        del ul_prices_document["matrix"]["material"]

        with pytest.raises(InvalidConfiguration) as exc_info:
            parse_blueprint(ul_prices_document)

        assert "matrix.material.value_name" in exc_info.value.message

    def test_rejects_unbounded_tier_before_last(self, ul_prices_document):
        ul_prices_document["pricing_import"]["tiers"] = [
            {"multiplier": 1.3},
            {"max_base": 3000, "multiplier": 1.5},
        ]

        with pytest.raises(InvalidConfiguration) as exc_info:
            parse_blueprint(ul_prices_document)

        assert "pricing_import.ul_prices.tiers" in exc_info.value.message

    def test_rejects_undeclared_modifier_axis(self, dropdown_matrix_document):
        dropdown_matrix_document["pricing_import"]["sources"][0]["modifiers"] = {"housing": "Uden"}

        with pytest.raises(InvalidConfiguration) as exc_info:
            parse_blueprint(dropdown_matrix_document)

        assert "housing" in exc_info.value.message

    def test_rejects_undeclared_modifier_label(self, dropdown_matrix_document):
        dropdown_matrix_document["pricing_import"]["materials"][0]["modifiers"] = {
            "finish": ["Mat", "Soft touch"],
        }

        with pytest.raises(InvalidConfiguration) as exc_info:
            parse_blueprint(dropdown_matrix_document)

        assert "Soft touch" in exc_info.value.message

    def test_rejects_reserved_modifier_key(self, dropdown_matrix_document):
        dropdown_matrix_document["matrix"]["modifiers"][0]["key"] = "material"

        with pytest.raises(InvalidConfiguration):
            parse_blueprint(dropdown_matrix_document)

    def test_rejects_duplicate_modifier_values(self, dropdown_matrix_document):
        dropdown_matrix_document["matrix"]["modifiers"][0]["values"] = ["Mat", "mat "]

        with pytest.raises(InvalidConfiguration):
            parse_blueprint(dropdown_matrix_document)

    def test_rejects_non_positive_target_quantity(self, dropdown_matrix_document):
        dropdown_matrix_document["pricing_import"]["target_quantities"] = [100, 0]

        with pytest.raises(InvalidConfiguration):
            parse_blueprint(dropdown_matrix_document)


class TestLoadBlueprintFile:
    """Tests for load_blueprint_file()."""

    def test_loads_yaml_file(self, tmp_path, ul_prices_document):
        path = tmp_path / "flyers.yaml"
        path.write_text(yaml.safe_dump(ul_prices_document), encoding="utf-8")

        loaded = load_blueprint_file(path)

        assert loaded.file_path == str(path)
        assert loaded.blueprint.product.slug == "flyers-a5"

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidConfiguration) as exc_info:
            load_blueprint_file(tmp_path / "missing.yaml")

        assert "cannot read descriptor" in exc_info.value.message

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("product: [unclosed\n", encoding="utf-8")

        with pytest.raises(InvalidConfiguration):
            load_blueprint_file(path)

    def test_file_that_is_not_utf8(self, tmp_path):
        path = tmp_path / "latin1.yaml"
        path.write_bytes(b"version: 1\nname: \xff\xfe\n")

        with pytest.raises(InvalidConfiguration) as exc_info:
            load_blueprint_file(path)

        assert "cannot read descriptor" in exc_info.value.message

"""
Tests for supplier row normalization
"""

import pytest

from data_normalizer import RowNormalizer, get_normalization_summary
from models import ColumnMapping, LogicalField

MAPPING = ColumnMapping(
    supplier_reference="Ref",
    supplier_price="Prix",
    product_name="Nom",
    stock_quantity="Stock",
)


class TestParsePrice:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("12,50", 12.5),
            ("19.99", 19.99),
            ("€ 1.234,56", 1234.56),
            ("1 234,56 €", 1234.56),
            ("0,85 EUR", 0.85),
            ("  7 ", 7.0),
        ],
    )
    def test_valid(self, raw, expected):
        assert RowNormalizer.parse_price(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["abc", "", None, "inf", "nan", "1,2,3"])
    def test_unusable(self, raw):
        assert RowNormalizer.parse_price(raw) is None


class TestParseInteger:
    def test_values(self):
        assert RowNormalizer.parse_integer("5") == 5
        assert RowNormalizer.parse_integer("2,6") == 3
        assert RowNormalizer.parse_integer("1 000") == 1000

    def test_defaults(self):
        assert RowNormalizer.parse_integer("abc") == 0
        assert RowNormalizer.parse_integer(None) == 0
        assert RowNormalizer.parse_integer(None, default=7) == 7


class TestNormalizeRows:
    def test_scenario_row(self):
        mapping = ColumnMapping(
            supplier_reference="Ref fournisseur",
            supplier_price="Prix HT",
            stock_quantity="Stock",
        )
        report = RowNormalizer.normalize_rows(
            [{"Ref fournisseur": "SKU1", "Prix HT": "19,99", "Stock": "5"}], mapping
        )

        assert report.rows[0].to_dict() == {
            "supplier_reference": "SKU1",
            "supplier_price": 19.99,
            "stock_quantity": 5,
        }

    def test_invalid_rows_excluded_in_order(self):
        rows = [
            {"Ref": "A", "Prix": "1,50"},
            {"Ref": "B", "Prix": "abc"},
            {"Ref": "C", "Prix": "0"},
            {"Ref": "  ", "Prix": "3"},
            {"Ref": "D", "Prix": "-2"},
            {"Ref": "E", "Prix": "2"},
        ]

        report = RowNormalizer.normalize_rows(rows, MAPPING)

        assert [r.supplier_reference for r in report.rows] == ["A", "E"]
        assert report.excluded_rows == [1, 2, 3, 4]
        assert report.total == 6

    def test_optional_fields(self):
        report = RowNormalizer.normalize_rows(
            [{"Ref": " A ", "Prix": "2", "Nom": "   ", "Stock": "n/a"}], MAPPING
        )
        row = report.rows[0]

        assert row.supplier_reference == "A"
        assert row.product_name is None
        assert row.stock_quantity == 0

    def test_per_field_defaults(self):
        mapping = ColumnMapping(
            supplier_reference="Ref", supplier_price="Prix", lead_time_days="Délai"
        )
        report = RowNormalizer.normalize_rows(
            [{"Ref": "A", "Prix": "2", "Délai": None}],
            mapping,
            integer_defaults={LogicalField.LEAD_TIME_DAYS: 7},
        )

        assert report.rows[0].lead_time_days == 7

    def test_unmapped_fields_omitted(self):
        report = RowNormalizer.normalize_rows(
            [{"Ref": "A", "Prix": "2", "Autre": "x"}],
            ColumnMapping(supplier_reference="Ref", supplier_price="Prix"),
        )
        assert report.rows[0].to_dict() == {"supplier_reference": "A", "supplier_price": 2.0}

    def test_missing_columns_never_raise(self):
        report = RowNormalizer.normalize_rows([{}, {"x": None}], MAPPING)
        assert report.rows == []
        assert report.excluded_rows == [0, 1]


class TestSummary:
    def test_summary(self):
        report = RowNormalizer.normalize_rows(
            [{"Ref": "A", "Prix": "1"}, {"Ref": "B", "Prix": "3", "Nom": "Stylo"}, {"Ref": "C"}],
            MAPPING,
        )
        summary = get_normalization_summary(report)

        assert summary["valid_rows"] == 2
        assert summary["excluded_rows"] == 1
        assert summary["with_name"] == 1
        assert summary["price_range"] == {"min": 1.0, "max": 3.0, "avg": 2.0}

    def test_empty(self):
        assert get_normalization_summary(RowNormalizer.normalize_rows([], MAPPING)) == {}

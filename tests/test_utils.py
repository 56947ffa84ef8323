"""
Tests for formatting helpers, the import report and model conversions
"""

import logging

import pytest

from data_normalizer import RowNormalizer
from models import (
    CartTier,
    ColumnMapping,
    ImportResult,
    LogicalField,
    ProductCandidate,
    SchoolListCart,
    SchoolListUpload,
    UploadStatus,
    to_float,
)
from utils import (
    create_import_report,
    format_eur,
    format_file_size,
    mapping_rows,
    setup_logging,
    validate_groq_api_key,
)


class TestFormatting:
    def test_format_eur(self):
        assert format_eur(1234.5) == "1 234,50 €"
        assert format_eur(0.85) == "0,85 €"
        assert format_eur(None) == "—"

    def test_format_file_size(self):
        assert format_file_size(512) == "512 B"
        assert format_file_size(2048) == "2.0 KB"
        assert format_file_size(5 * 1024 * 1024) == "5.0 MB"

    def test_validate_groq_api_key(self):
        assert validate_groq_api_key("gsk_" + "x" * 52)
        assert not validate_groq_api_key("sk-123")
        assert not validate_groq_api_key("")

    def test_setup_logging(self):
        setup_logging("debug")
        setup_logging("not-a-level")
        logging.getLogger("utils").info("logging configured")


class TestImportReport:
    def test_report_sections(self):
        mapping = ColumnMapping(supplier_reference="Ref", supplier_price="Prix")
        normalization = RowNormalizer.normalize_rows(
            [{"Ref": "A", "Prix": "1,5"}, {"Ref": "B", "Prix": "abc"}], mapping
        )
        result = ImportResult(success=1, errors=0, unmatched=0, total=1, skipped=1)

        report = create_import_report(
            result, normalization, mapping, supplier_name="Acme", filename="tarifs.csv"
        )

        assert "Supplier: Acme" in report
        assert "Importés: 1" in report
        assert "Ignorées avant import: 1" in report
        assert "Référence fournisseur: Ref" in report
        assert "1. A - No name - 1.5€" in report
        assert "EXCLUDED ROWS" in report

    def test_mapping_rows(self):
        rows = mapping_rows(ColumnMapping(ean="EAN13"))
        assert {"Champ": "Code EAN", "Colonne": "EAN13"} in rows
        assert len(rows) == len(LogicalField)


class TestModels:
    def test_mapping_override_is_a_copy(self):
        mapping = ColumnMapping(supplier_reference="Ref")
        updated = mapping.with_field(LogicalField.SUPPLIER_PRICE, "Prix")

        assert mapping.supplier_price is None
        assert updated.is_valid
        assert updated.with_field(LogicalField.SUPPLIER_PRICE, "").supplier_price is None

    def test_mapping_from_dict_ignores_unknown(self):
        mapping = ColumnMapping.from_dict({"ean": "EAN", "colour": "x", "stock_quantity": None})
        assert mapping.to_dict() == {"ean": "EAN"}

    def test_to_float(self):
        assert to_float("2.5") == 2.5
        assert to_float("abc") is None
        assert to_float(float("nan")) is None

    def test_unknown_candidate_tier(self):
        candidate = ProductCandidate.from_dict({"product_id": "p", "name": "P", "tier": "luxe"})
        assert candidate.tier is None

    def test_cart_requires_known_tier(self):
        with pytest.raises(ValueError):
            SchoolListCart.from_dict({"upload_id": "u", "tier": "luxe"})
        cart = SchoolListCart.from_dict({"upload_id": "u", "tier": "premium", "total_ttc": "12.5"})
        assert cart.tier == CartTier.PREMIUM
        assert cart.total_ttc == 12.5

    def test_upload_unknown_status(self):
        upload = SchoolListUpload.from_dict({"id": 7, "file_name": "a.pdf", "status": "weird"})
        assert upload.status == UploadStatus.PENDING
        assert upload.id == "7"

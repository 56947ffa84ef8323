"""
Supplier pricing import pipeline: detection, mapping, normalization and
handoff to the remote importer
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from backend_client import BackendClient
from data_normalizer import NormalizationReport, RowNormalizer
from field_detector import AIColumnDetector, ColumnMapper
from file_processor import FileProcessor
from models import (
    ColumnMapping,
    FileFormat,
    ImportResult,
    LogicalField,
    ParsedFile,
)

logger = logging.getLogger(__name__)

IMPORT_FUNCTION = "import-supplier-pricing"


class NoExploitableDataError(Exception):
    """The file holds no row that can be imported"""


class InvalidMappingError(Exception):
    """The column mapping lacks a required field"""

    def __init__(self, missing: List[LogicalField]):
        self.missing = missing
        names = ", ".join(f.value for f in missing)
        super().__init__(f"Missing required mapping: {names}")


@dataclass
class PreparedImport:
    """A parsed supplier file with its suggested column mapping"""

    parsed: ParsedFile
    mapping: ColumnMapping
    filename: Optional[str] = None
    suggestions: Dict[LogicalField, List[str]] = field(default_factory=dict)

    @property
    def format(self) -> FileFormat:
        return self.parsed.format

    @property
    def has_data(self) -> bool:
        return not self.parsed.is_empty


@dataclass
class SupplierContext:
    """Supplier row and its existing catalog links"""

    supplier: Optional[Dict[str, Any]]
    products: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def name(self) -> str:
        return (self.supplier or {}).get("name") or ""


class SupplierPricingImporter:
    """Orchestrates one supplier pricing import"""

    def __init__(
        self,
        backend: BackendClient,
        detector: Optional[AIColumnDetector] = None,
    ):
        self.backend = backend
        self.detector = detector

        if detector is not None and detector.enabled:
            logger.info("✅ Importer initialized with AI column detection")
        else:
            logger.info("ℹ️ Importer initialized with synonym column detection")

    def load_supplier_context(self, supplier_id: str) -> SupplierContext:
        """Fetch the supplier and its products concurrently; any failure fails the load"""
        with ThreadPoolExecutor(max_workers=2) as executor:
            supplier_future = executor.submit(
                self.backend.select_one, "suppliers", eq={"id": supplier_id}
            )
            products_future = executor.submit(
                self.backend.select,
                "supplier_products",
                eq={"supplier_id": supplier_id},
            )
            supplier = supplier_future.result()
            products = products_future.result()

        logger.info(
            f"📦 Supplier {supplier_id}: {len(products)} existing supplier products"
        )
        return SupplierContext(supplier=supplier, products=products)

    def prepare(
        self,
        content: str,
        filename: Optional[str] = None,
        selected_format: Optional[FileFormat] = None,
    ) -> PreparedImport:
        """Detect the format, parse, and suggest a mapping"""
        file_format = FileProcessor.resolve_format(content, filename, selected_format)
        logger.info(f"📁 Preparing {filename or 'pasted content'} as {file_format.value}")

        parsed = FileProcessor.parse_content(content, file_format)
        logger.info(f"📋 File structure - Headers: {parsed.headers}")
        logger.info(f"📊 Sample row: {parsed.sample_row()}")

        if self.detector is not None:
            mapping = self.detector.detect(parsed.headers, parsed.sample_row())
        else:
            mapping = ColumnMapper.suggest_column_mapping(parsed.headers)

        return PreparedImport(
            parsed=parsed,
            mapping=mapping,
            filename=filename,
            suggestions=ColumnMapper.get_field_suggestions(parsed.headers),
        )

    @staticmethod
    def normalize(
        prepared: PreparedImport,
        mapping: Optional[ColumnMapping] = None,
        integer_defaults: Optional[Dict[LogicalField, int]] = None,
    ) -> NormalizationReport:
        return RowNormalizer.normalize_parsed(
            prepared.parsed, mapping or prepared.mapping, integer_defaults
        )

    def run_import(
        self,
        supplier_id: str,
        prepared: PreparedImport,
        mapping: Optional[ColumnMapping] = None,
        integer_defaults: Optional[Dict[LogicalField, int]] = None,
    ) -> ImportResult:
        """Normalize and hand the rows to the remote importer"""
        start_time = time.time()
        mapping = mapping or prepared.mapping

        if not prepared.has_data:
            raise NoExploitableDataError("Aucune donnée exploitable dans le fichier")

        missing = mapping.missing_required()
        if missing:
            logger.error(f"❌ Mapping validation errors: {[f.value for f in missing]}")
            raise InvalidMappingError(missing)

        report = self.normalize(prepared, mapping, integer_defaults)
        if not report.rows:
            raise NoExploitableDataError(
                f"Aucune ligne valide sur {report.total} (référence ou prix manquant)"
            )

        response = self.backend.invoke(
            IMPORT_FUNCTION,
            {
                "supplierId": supplier_id,
                "format": prepared.format.value,
                "data": report.to_records(),
                "filename": prepared.filename,
            },
        )

        result = ImportResult(
            success=int(response.get("success") or 0),
            errors=int(response.get("errors") or 0),
            unmatched=int(response.get("unmatched") or 0),
            total=int(response.get("total") or len(report.rows)),
            skipped=report.excluded_count,
        )

        processing_time = time.time() - start_time
        logger.info(f"🎉 Import completed in {processing_time:.2f} seconds:")
        logger.info(f"   Imported: {result.success}/{result.total}")
        logger.info(f"   Unmatched: {result.unmatched}")
        logger.info(f"   Errors: {result.errors} (+{result.skipped} skipped locally)")
        return result

    def import_history(self, supplier_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent import runs logged for a supplier"""
        return self.backend.select(
            "supplier_import_logs",
            eq={"supplier_id": supplier_id},
            order="imported_at",
            desc=True,
            limit=limit,
        )

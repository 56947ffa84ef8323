"""
Row normalization for supplier pricing imports
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from models import (
    ColumnMapping,
    INTEGER_FIELDS,
    LogicalField,
    NormalizedRow,
    ParsedFile,
)

logger = logging.getLogger(__name__)

CURRENCY_PATTERN = re.compile(r"[€$£]|EUR|\s", re.IGNORECASE)


@dataclass
class NormalizationReport:
    """Normalized rows plus the indexes of rows that were excluded"""

    rows: List[NormalizedRow] = field(default_factory=list)
    excluded_rows: List[int] = field(default_factory=list)
    total: int = 0

    @property
    def valid_count(self) -> int:
        return len(self.rows)

    @property
    def excluded_count(self) -> int:
        return len(self.excluded_rows)

    def to_records(self) -> List[Dict]:
        return [row.to_dict() for row in self.rows]


class RowNormalizer:
    """Re-keys raw supplier rows by logical field and coerces their values"""

    @staticmethod
    def normalize_rows(
        rows: List[Dict[str, Optional[str]]],
        mapping: ColumnMapping,
        integer_defaults: Optional[Dict[LogicalField, int]] = None,
    ) -> NormalizationReport:
        """Normalize every row, keeping input order; never raises on bad data"""
        integer_defaults = integer_defaults or {}
        report = NormalizationReport(total=len(rows))

        logger.info(f"🎯 Starting normalization with mapping: {mapping.to_dict()}")

        for idx, row in enumerate(rows):
            normalized = RowNormalizer.normalize_row(row, mapping, integer_defaults)
            if normalized is None:
                report.excluded_rows.append(idx)
                if idx < 5:  # Log first few for debugging
                    logger.debug(f"Row {idx}: excluded - {row}")
                continue
            report.rows.append(normalized)

        logger.info(
            f"✅ Normalized {report.valid_count}/{report.total} rows "
            f"({report.excluded_count} excluded)"
        )
        return report

    @staticmethod
    def normalize_parsed(
        parsed: ParsedFile,
        mapping: ColumnMapping,
        integer_defaults: Optional[Dict[LogicalField, int]] = None,
    ) -> NormalizationReport:
        return RowNormalizer.normalize_rows(parsed.rows, mapping, integer_defaults)

    @staticmethod
    def normalize_row(
        row: Dict[str, Optional[str]],
        mapping: ColumnMapping,
        integer_defaults: Optional[Dict[LogicalField, int]] = None,
    ) -> Optional[NormalizedRow]:
        """One row, or None when it has no reference or no positive price"""
        integer_defaults = integer_defaults or {}

        reference = RowNormalizer._extract_text(
            row, mapping.get(LogicalField.SUPPLIER_REFERENCE)
        )
        price = RowNormalizer.parse_price(
            RowNormalizer._raw(row, mapping.get(LogicalField.SUPPLIER_PRICE))
        )
        if not reference or price is None or price <= 0:
            return None

        integers = {}
        for logical_field in INTEGER_FIELDS:
            header = mapping.get(logical_field)
            if not header:
                continue
            integers[logical_field.value] = RowNormalizer.parse_integer(
                RowNormalizer._raw(row, header), integer_defaults.get(logical_field, 0)
            )

        return NormalizedRow(
            supplier_reference=reference,
            supplier_price=price,
            product_name=RowNormalizer._extract_text(
                row, mapping.get(LogicalField.PRODUCT_NAME)
            ),
            ean=RowNormalizer._extract_text(row, mapping.get(LogicalField.EAN)),
            **integers,
        )

    @staticmethod
    def parse_price(value: Optional[str]) -> Optional[float]:
        """Parse a price such as "12,50", "€ 1.234,56" or "19.99"; None if unusable"""
        if value is None:
            return None

        cleaned = CURRENCY_PATTERN.sub("", str(value))
        if not cleaned:
            return None

        # Handle European formats: with both separators the dot groups thousands
        if "," in cleaned and "." in cleaned:
            cleaned = cleaned.replace(".", "").replace(",", ".")
        elif "," in cleaned:
            cleaned = cleaned.replace(",", ".")

        try:
            price = float(cleaned)
        except ValueError:
            logger.debug(f"Could not parse price: '{value}' → '{cleaned}'")
            return None

        return price if math.isfinite(price) else None

    @staticmethod
    def parse_integer(value: Optional[str], default: int = 0) -> int:
        """Parse a quantity or a number of days, rounding decimals"""
        if value is None:
            return default

        cleaned = re.sub(r"\s", "", str(value)).replace(",", ".")
        try:
            number = float(cleaned)
        except ValueError:
            return default

        if not math.isfinite(number):
            return default
        return int(round(number))

    @staticmethod
    def _raw(row: Dict[str, Optional[str]], header: Optional[str]) -> Optional[str]:
        if not header:
            return None
        return row.get(header)

    @staticmethod
    def _extract_text(
        row: Dict[str, Optional[str]], header: Optional[str]
    ) -> Optional[str]:
        value = RowNormalizer._raw(row, header)
        if value is None:
            return None
        text = str(value).strip()
        return text or None


def get_normalization_summary(report: NormalizationReport) -> Dict:
    """Summary statistics for a normalization run"""
    if not report.total:
        return {}

    rows = report.rows
    prices = [row.supplier_price for row in rows]

    return {
        "total_rows": report.total,
        "valid_rows": report.valid_count,
        "excluded_rows": report.excluded_count,
        "with_ean": sum(1 for row in rows if row.ean),
        "with_name": sum(1 for row in rows if row.product_name),
        "with_stock": sum(1 for row in rows if row.stock_quantity),
        "price_range": {
            "min": min(prices) if prices else 0,
            "max": max(prices) if prices else 0,
            "avg": round(sum(prices) / len(prices), 2) if prices else 0,
        },
    }

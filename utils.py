"""
Utility functions for the papeterie back-office tools
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from data_normalizer import NormalizationReport
from models import ColumnMapping, FIELD_LABELS, ImportResult

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration"""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
        ],
    )


def format_eur(amount: Optional[float]) -> str:
    """French-style euro amount: 1 234,50 €"""
    if amount is None:
        return "—"
    text = f"{amount:,.2f}".replace(",", " ").replace(".", ",")
    return f"{text} €"


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.1f} MB"


def validate_groq_api_key(api_key: str) -> bool:
    """Validate Groq API key format"""
    if not api_key:
        return False
    return api_key.startswith("gsk_") and len(api_key) >= 50


def mapping_rows(mapping: ColumnMapping) -> List[Dict[str, str]]:
    """Mapping as display rows, one per logical field"""
    return [
        {"Champ": label, "Colonne": mapping.get(field) or "—"}
        for field, label in FIELD_LABELS.items()
    ]


def create_import_report(
    result: ImportResult,
    report: Optional[NormalizationReport] = None,
    mapping: Optional[ColumnMapping] = None,
    supplier_name: Optional[str] = None,
    filename: Optional[str] = None,
) -> str:
    """Create a plain-text report of a supplier pricing import"""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    lines = []
    lines.append("SUPPLIER PRICING IMPORT REPORT")
    lines.append("=" * 50)
    lines.append(f"Generated: {timestamp}")
    if supplier_name:
        lines.append(f"Supplier: {supplier_name}")
    if filename:
        lines.append(f"File: {filename}")
    lines.append("")

    lines.append("RESULT")
    lines.append("-" * 6)
    lines.append(f"Total lignes: {result.total}")
    lines.append(f"Importés: {result.success}")
    lines.append(f"Non matchés: {result.unmatched}")
    lines.append(f"Erreurs: {result.errors}")
    if result.skipped:
        lines.append(f"Ignorées avant import: {result.skipped}")
    lines.append("")

    if mapping is not None:
        lines.append("COLUMN MAPPING")
        lines.append("-" * 14)
        for row in mapping_rows(mapping):
            lines.append(f"{row['Champ']}: {row['Colonne']}")
        lines.append("")

    if report is not None and report.rows:
        prices = [row.supplier_price for row in report.rows]
        lines.append("PRICE ANALYSIS")
        lines.append("-" * 15)
        lines.append(f"Min price: {min(prices):.2f}€")
        lines.append(f"Max price: {max(prices):.2f}€")
        lines.append(f"Average price: {sum(prices) / len(prices):.2f}€")
        lines.append("")

        lines.append("SAMPLE ROWS")
        lines.append("-" * 11)
        for i, row in enumerate(report.rows[:5]):
            name_info = row.product_name or "No name"
            if len(name_info) > 50:
                name_info = name_info[:50] + "..."
            lines.append(f"{i+1}. {row.supplier_reference} - {name_info} - {row.supplier_price}€")

        if len(report.rows) > 5:
            lines.append(f"... and {len(report.rows) - 5} more rows")
        lines.append("")

    if report is not None and report.excluded_rows:
        shown = ", ".join(str(i + 1) for i in report.excluded_rows[:20])
        more = "..." if len(report.excluded_rows) > 20 else ""
        lines.append("EXCLUDED ROWS (missing reference or price)")
        lines.append("-" * 42)
        lines.append(f"{shown}{more}")
        lines.append("")

    return "\n".join(lines)

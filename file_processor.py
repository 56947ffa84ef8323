"""
File processing utilities for supplier pricing files (CSV, XML, JSON)
"""

import io
import json
import logging
import math
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from config import PRICING_EXTENSIONS
from models import FileFormat, ParsedFile

logger = logging.getLogger(__name__)

# Element names that usually wrap one product in supplier XML feeds
XML_RECORD_TAGS = ["product", "produit", "article", "item", "ligne", "row", "entry"]

# Properties that usually hold the product array in supplier JSON feeds
JSON_RECORD_KEYS = [
    "products",
    "produits",
    "items",
    "articles",
    "data",
    "rows",
    "results",
    "catalogue",
]

CSV_DELIMITERS = [";", ",", "\t", "|"]


class FileProcessor:
    """Detects and parses supplier pricing files into ParsedFile objects"""

    @staticmethod
    def detect_format(
        content: Union[str, bytes, None], filename: Optional[str] = None
    ) -> FileFormat:
        """Sniff the content first, fall back on the extension for empty files"""
        text = FileProcessor._as_text(content).lstrip("\ufeff").strip()

        if text:
            if text[0] in "{[":
                return FileFormat.JSON
            if text[0] == "<" or "<?xml" in text[:1024]:
                return FileFormat.XML
            return FileFormat.CSV

        ext = Path(filename or "").suffix.lower()
        for file_format, extensions in PRICING_EXTENSIONS.items():
            if ext in extensions:
                return FileFormat(file_format)
        return FileFormat.CSV

    @staticmethod
    def resolve_format(
        content: Union[str, bytes, None],
        filename: Optional[str] = None,
        selected: Optional[FileFormat] = None,
    ) -> FileFormat:
        """Confirm or correct the format chosen by the operator"""
        text = FileProcessor._as_text(content).lstrip("\ufeff").strip()
        if not text and selected is not None:
            return selected

        detected = FileProcessor.detect_format(content, filename)
        if selected is not None and detected != selected:
            logger.info(
                f"🔧 Format corrected by content sniffing: {selected.value} → {detected.value}"
            )
        return detected

    @staticmethod
    def parse_content(content: str, file_format: FileFormat) -> ParsedFile:
        """Parse text according to its format"""
        if file_format == FileFormat.XML:
            return FileProcessor.parse_xml(content)
        if file_format == FileFormat.JSON:
            return FileProcessor.parse_json(content)
        return FileProcessor.parse_csv(content)

    @staticmethod
    def detect_delimiter(file_content: str, sample_lines: int = 1) -> str:
        """Detect the most likely delimiter in CSV content"""
        delimiter_counts = {}

        # Only the header line by default: decimal commas in data rows skew the count
        lines = [line for line in file_content.splitlines() if line.strip()]
        lines = lines[:sample_lines]
        for delimiter in CSV_DELIMITERS:
            delimiter_counts[delimiter] = sum(line.count(delimiter) for line in lines)

        best_delimiter = max(delimiter_counts, key=delimiter_counts.get)
        return best_delimiter if delimiter_counts[best_delimiter] > 0 else ","

    @staticmethod
    def parse_csv(content: str) -> ParsedFile:
        """Parse CSV text, keeping every value as a raw string"""
        text = FileProcessor._as_text(content).lstrip("\ufeff")
        if not text.strip():
            return ParsedFile(format=FileFormat.CSV)

        separator = FileProcessor.detect_delimiter(text)

        try:
            df = pd.read_csv(
                io.StringIO(text),
                sep=separator,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                engine="python",
                on_bad_lines="skip",
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
            logger.warning(f"Could not parse CSV content: {e}")
            return ParsedFile(format=FileFormat.CSV)

        headers = [str(col).strip().strip("\"'") for col in df.columns]
        df.columns = headers

        rows = []
        for record in df.to_dict(orient="records"):
            row = {h: FileProcessor._clean_cell(record.get(h)) for h in headers}
            if any(value is not None for value in row.values()):
                rows.append(row)

        logger.info(
            f"Successfully read CSV with sep='{separator}': {len(headers)} columns, {len(rows)} rows"
        )
        return ParsedFile(format=FileFormat.CSV, headers=headers, rows=rows)

    @staticmethod
    def parse_xml(content: str) -> ParsedFile:
        """Parse an XML product feed into flat rows"""
        text = FileProcessor._as_text(content).lstrip("\ufeff").strip()
        if not text:
            return ParsedFile(format=FileFormat.XML)

        try:
            root = ET.fromstring(text)
        except (ET.ParseError, ValueError) as e:
            logger.warning(f"Could not parse XML content: {e}")
            return ParsedFile(format=FileFormat.XML)

        records = []
        for tag_name in XML_RECORD_TAGS:
            # A known tag used as a leaf field (<produit>Stylo</produit>) is not a record
            records = [
                elem
                for elem in root.iter()
                if FileProcessor._local_tag(elem) == tag_name and len(elem) > 0
            ]
            if records:
                break

        if not records:
            # Generic feed: each child of the root that has children is a record
            records = [child for child in root if len(child) > 0]

        extracted = [FileProcessor._xml_fields(record) for record in records]

        headers: List[str] = []
        for fields in extracted:
            for key in fields:
                if key not in headers:
                    headers.append(key)

        rows = [{h: fields.get(h) for h in headers} for fields in extracted if fields]

        logger.info(f"Successfully read XML: {len(headers)} fields, {len(rows)} records")
        return ParsedFile(format=FileFormat.XML, headers=headers, rows=rows)

    @staticmethod
    def parse_json(content: str) -> ParsedFile:
        """Parse a JSON product feed, flattening nested objects with dotted keys"""
        text = FileProcessor._as_text(content).lstrip("\ufeff").strip()

        try:
            parsed = json.loads(text)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Could not parse JSON content: {e}")
            return ParsedFile(format=FileFormat.JSON)

        items = FileProcessor._json_items(parsed)
        if not items:
            return ParsedFile(format=FileFormat.JSON)

        df = pd.json_normalize(items, sep=".")
        headers = [str(col) for col in df.columns]

        rows = []
        for record in df.to_dict(orient="records"):
            rows.append({h: FileProcessor._json_cell(record.get(h)) for h in headers})

        logger.info(f"Successfully read JSON: {len(headers)} fields, {len(rows)} items")
        return ParsedFile(format=FileFormat.JSON, headers=headers, rows=rows)

    @staticmethod
    def decode_bytes(raw: bytes) -> str:
        """Decode uploaded bytes, trying common encodings of French supplier files"""
        for encoding in ["utf-8-sig", "cp1252", "latin-1"]:
            try:
                text = raw.decode(encoding)
                logger.debug(f"Decoded upload with encoding={encoding}")
                return text
            except UnicodeDecodeError:
                continue
        return raw.decode("utf-8", errors="replace")

    @staticmethod
    def read_uploaded_file(uploaded_file) -> Tuple[str, str]:
        """Read a Streamlit upload and return (text, filename)"""
        raw = uploaded_file.getvalue()
        return FileProcessor.decode_bytes(raw), uploaded_file.name

    @staticmethod
    def analyze_file_structure(parsed: ParsedFile) -> Dict:
        """Analyze a parsed file and return summary"""
        analysis = {
            "format": parsed.format.value,
            "total_rows": parsed.row_count,
            "total_columns": len(parsed.headers),
            "column_names": list(parsed.headers),
            "sample_data": {},
            "missing_values": {},
        }

        for header in parsed.headers:
            values = [row.get(header) for row in parsed.rows]
            analysis["sample_data"][header] = next(
                (v for v in values if v is not None), None
            )
            analysis["missing_values"][header] = sum(1 for v in values if v is None)

        return analysis

    @staticmethod
    def get_column_preview(parsed: ParsedFile, max_rows: int = 5) -> pd.DataFrame:
        """Get a preview of the parsed rows for display"""
        return pd.DataFrame(parsed.rows[:max_rows], columns=parsed.headers)

    @staticmethod
    def validate_file_size(size_bytes: int, max_size_mb: float) -> bool:
        """Check an upload against a size limit"""
        return size_bytes <= max_size_mb * 1024 * 1024

    @staticmethod
    def get_supported_formats(file_format: FileFormat) -> List[str]:
        """Extensions accepted for a pricing file format"""
        return PRICING_EXTENSIONS[file_format.value]

    @staticmethod
    def _as_text(content: Union[str, bytes, None]) -> str:
        if content is None:
            return ""
        if isinstance(content, bytes):
            return content.decode("utf-8", errors="replace")
        return str(content)

    @staticmethod
    def _clean_cell(value: Any) -> Optional[str]:
        # Short CSV lines come back from pandas padded with NaN
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def _local_tag(elem: ET.Element) -> str:
        if not isinstance(elem.tag, str):
            return ""
        return elem.tag.split("}")[-1].lower()

    @staticmethod
    def _xml_fields(record: ET.Element) -> Dict[str, str]:
        """Text of every leaf element below a record, keyed by lower-cased tag"""
        fields: Dict[str, str] = {}
        for elem in record.iter():
            if elem is record or len(elem) > 0:
                continue
            tag = FileProcessor._local_tag(elem)
            value = (elem.text or "").strip()
            if tag and value:
                fields.setdefault(tag, value)
        return fields

    @staticmethod
    def _json_items(parsed: Any) -> List[Dict[str, Any]]:
        if isinstance(parsed, list):
            return [item for item in parsed if isinstance(item, dict)]

        if isinstance(parsed, dict):
            for key in JSON_RECORD_KEYS:
                if isinstance(parsed.get(key), list):
                    return [item for item in parsed[key] if isinstance(item, dict)]

            # No known key: first array property
            for value in parsed.values():
                if isinstance(value, list):
                    return [item for item in value if isinstance(item, dict)]

        return []

    @staticmethod
    def _json_cell(value: Any) -> Optional[str]:
        if isinstance(value, (list, dict)):
            return json.dumps(value, ensure_ascii=False)
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            if math.isnan(value):
                return None
            # json_normalize turns integer columns with gaps into floats
            if value.is_integer():
                return str(int(value))
        return FileProcessor._clean_cell(value)

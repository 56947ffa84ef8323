"""
Column mapping for supplier pricing files: synonym-based suggestion,
optional AI detection with Groq and fuzzy suggestions for manual mapping
"""

import json
import logging
import re
import unicodedata
from typing import Dict, Iterable, List, Optional

from fuzzywuzzy import fuzz
from groq import Groq, GroqError

from config import GROQ_API_KEY, GROQ_MODEL
from models import ColumnMapping, FIELD_LABELS, LogicalField

logger = logging.getLogger(__name__)

# Required fields first so they claim ambiguous headers before optional ones
FIELD_PRIORITY = [
    LogicalField.SUPPLIER_REFERENCE,
    LogicalField.SUPPLIER_PRICE,
    LogicalField.EAN,
    LogicalField.PRODUCT_NAME,
    LogicalField.MIN_ORDER_QUANTITY,
    LogicalField.LEAD_TIME_DAYS,
    LogicalField.STOCK_QUANTITY,
]

# Most specific synonym first; compared on accent-free lower-case headers
FIELD_SYNONYMS: Dict[LogicalField, List[str]] = {
    LogicalField.SUPPLIER_REFERENCE: [
        "reference fournisseur",
        "ref fournisseur",
        "ref fourn",
        "supplier reference",
        "supplier ref",
        "code article",
        "code produit",
        "product code",
        "item code",
        "sku",
        "reference",
        "ref",
        "article",
    ],
    LogicalField.SUPPLIER_PRICE: [
        "prix d achat",
        "prix achat",
        "prix ht",
        "prix unitaire",
        "supplier price",
        "unit price",
        "prix",
        "price",
        "tarif",
        "cout",
        "cost",
        "achat",
        "pu",
        "ht",
        "pa",
    ],
    LogicalField.EAN: [
        "code ean",
        "ean13",
        "ean 13",
        "ean",
        "gtin",
        "gencod",
        "code barre",
        "codebarre",
        "barcode",
        "upc",
    ],
    LogicalField.PRODUCT_NAME: [
        "nom du produit",
        "nom produit",
        "product name",
        "designation",
        "libelle",
        "description",
        "nom",
        "name",
        "titre",
        "title",
        "produit",
        "product",
    ],
    LogicalField.MIN_ORDER_QUANTITY: [
        "minimum de commande",
        "quantite minimum",
        "quantite minimale",
        "min order",
        "minimum",
        "moq",
        "min",
    ],
    LogicalField.LEAD_TIME_DAYS: [
        "delai de livraison",
        "lead time",
        "delai",
        "lead",
        "livraison",
        "delivery",
        "jour",
        "days",
    ],
    LogicalField.STOCK_QUANTITY: [
        "quantite disponible",
        "stock",
        "quantite",
        "quantity",
        "disponible",
        "dispo",
        "available",
        "qty",
        "qte",
    ],
}

# Synonyms this short only match a whole word ("ht" must not match "weight")
SHORT_SYNONYM_LENGTH = 3


def normalize_header(header: str) -> str:
    """Lower-case, accent-free, punctuation collapsed to single spaces"""
    text = unicodedata.normalize("NFKD", str(header or ""))
    text = "".join(c for c in text if not unicodedata.combining(c))
    return " ".join(re.findall(r"[a-z0-9]+", text.lower()))


def header_matches(header: str, synonym: str) -> bool:
    """Case-insensitive containment, whole-word for short synonyms"""
    normalized = normalize_header(header)
    if len(synonym) <= SHORT_SYNONYM_LENGTH:
        return synonym in normalized.split()
    return synonym in normalized


class ColumnMapper:
    """Deterministic synonym-based column mapping"""

    @staticmethod
    def suggest_column_mapping(
        headers: List[str], exclude: Iterable[str] = ()
    ) -> ColumnMapping:
        """
        Propose a mapping for the given headers.

        Fields are resolved in FIELD_PRIORITY order; for each field the
        synonyms are tried most specific first against the headers in
        display order, and a header claimed by one field is not reused.
        """
        used_columns = set(exclude)
        assignments: Dict[str, str] = {}

        for logical_field in FIELD_PRIORITY:
            match = ColumnMapper._first_match(
                headers, FIELD_SYNONYMS[logical_field], used_columns
            )
            if match is not None:
                assignments[logical_field.value] = match
                used_columns.add(match)
                logger.debug(f"🔧 {logical_field.value} → '{match}'")

        mapping = ColumnMapping.from_dict(assignments)
        logger.info(f"🎯 Suggested column mapping: {mapping.to_dict()}")
        return mapping

    @staticmethod
    def _first_match(
        headers: List[str], synonyms: List[str], used_columns: set
    ) -> Optional[str]:
        for synonym in synonyms:
            for header in headers:
                if header in used_columns or not str(header).strip():
                    continue
                if header_matches(header, synonym):
                    return header
        return None

    @staticmethod
    def get_field_suggestions(
        headers: List[str], limit: int = 3, threshold: int = 70
    ) -> Dict[LogicalField, List[str]]:
        """Ranked header candidates per field for the manual mapping selects"""
        suggestions: Dict[LogicalField, List[str]] = {}

        for logical_field, synonyms in FIELD_SYNONYMS.items():
            scored = []
            for position, header in enumerate(headers):
                normalized = normalize_header(header)
                if not normalized:
                    continue
                score = max(fuzz.partial_ratio(normalized, syn) for syn in synonyms)
                if score >= threshold:
                    scored.append((-score, position, header))

            suggestions[logical_field] = [h for _, _, h in sorted(scored)[:limit]]

        return suggestions


class AIColumnDetector:
    """Groq-assisted column detection with synonym fallback"""

    def __init__(self, api_key: Optional[str] = None, model: str = GROQ_MODEL):
        self.api_key = api_key or GROQ_API_KEY
        self.client = Groq(api_key=self.api_key) if self.api_key else None
        self.model = model

        if self.api_key:
            logger.info("✅ Groq API key loaded - AI column detection enabled")
        else:
            logger.info("ℹ️ No Groq API key found - using synonym detection")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def detect(
        self, headers: List[str], sample_row: Optional[Dict[str, Optional[str]]] = None
    ) -> ColumnMapping:
        """Detect the mapping with the model, completing gaps from synonyms"""
        if not self.enabled or not headers:
            return ColumnMapper.suggest_column_mapping(headers)

        sample_row = sample_row or {}
        columns = "\n".join(
            f"- '{header}' → sample: '{sample_row.get(header) or ''}'" for header in headers
        )
        fields = "\n".join(
            f"- {field.value}: {label}" for field, label in FIELD_LABELS.items()
        )

        prompt = f"""
        You map the columns of a French stationery supplier price list to logical fields.

        COLUMNS:
        {columns}

        LOGICAL FIELDS:
        {fields}

        RULES:
        - supplier_reference and supplier_price are mandatory whenever a plausible column exists
        - supplier_price is the purchase price excluding tax (HT); decimal commas are common
        - ean is a 8/13 digit barcode (EAN, GTIN, Gencod)
        - use each column at most once, null when no column fits

        RETURN ONLY THIS JSON FORMAT:
        {{
            "supplier_reference": "exact_column_name_or_null",
            "supplier_price": "exact_column_name_or_null",
            "product_name": "exact_column_name_or_null",
            "ean": "exact_column_name_or_null",
            "stock_quantity": "exact_column_name_or_null",
            "lead_time_days": "exact_column_name_or_null",
            "min_order_quantity": "exact_column_name_or_null"
        }}
        """

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You are a supplier catalog import expert. Return ONLY valid JSON without explanations.",
                    },
                    {"role": "user", "content": prompt},
                ],
                temperature=0.1,
                max_tokens=300,
            )

            content = response.choices[0].message.content.strip()
            logger.info(f"🤖 Groq AI response: {content}")
            mapping_dict = json.loads(self._clean_json_response(content))

        except (GroqError, json.JSONDecodeError, IndexError, AttributeError) as e:
            logger.error(f"🚨 Groq AI detection failed: {e}")
            logger.info("🔧 Falling back to synonym detection...")
            return ColumnMapper.suggest_column_mapping(headers)

        return self._validate_and_complete(mapping_dict, headers)

    def _validate_and_complete(
        self, mapping_dict: Dict, headers: List[str]
    ) -> ColumnMapping:
        """Keep AI answers naming real, unclaimed headers; fill gaps from synonyms"""
        validated: Dict[str, str] = {}
        used_columns = set()

        if not isinstance(mapping_dict, dict):
            mapping_dict = {}

        for logical_field in FIELD_PRIORITY:
            column = mapping_dict.get(logical_field.value)
            if column and column in headers and column not in used_columns:
                validated[logical_field.value] = column
                used_columns.add(column)
            elif column:
                logger.warning(
                    f"Ignoring AI mapping {logical_field.value} → '{column}' (unknown or reused column)"
                )

        fallback = ColumnMapper.suggest_column_mapping(headers, exclude=used_columns)
        for logical_field, column in fallback.to_dict().items():
            if logical_field not in validated:
                validated[logical_field] = column
                logger.info(f"🔧 Enhanced: {logical_field} → '{column}' from synonyms")

        mapping = ColumnMapping.from_dict(validated)
        logger.info(f"✅ Final AI mapping: {mapping.to_dict()}")
        return mapping

    def _clean_json_response(self, content: str) -> str:
        """Clean AI response to extract valid JSON"""

        # Remove markdown code blocks
        if "```json" in content:
            content = content.split("```json")[1].split("```")[0]
        elif "```" in content:
            content = content.split("```")[1].split("```")[0]

        content = content.strip()

        # Find JSON object boundaries
        start = content.find("{")
        end = content.rfind("}") + 1

        if start >= 0 and end > start:
            content = content[start:end]

        return content

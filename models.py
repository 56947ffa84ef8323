"""
Data models for the papeterie back-office: supplier pricing import and
school-list copilot
"""

import math
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class FileFormat(str, Enum):
    """Supplier pricing file formats"""

    CSV = "csv"
    XML = "xml"
    JSON = "json"


class LogicalField(str, Enum):
    """Fields a supplier pricing column can be mapped to"""

    SUPPLIER_REFERENCE = "supplier_reference"
    SUPPLIER_PRICE = "supplier_price"
    PRODUCT_NAME = "product_name"
    EAN = "ean"
    STOCK_QUANTITY = "stock_quantity"
    LEAD_TIME_DAYS = "lead_time_days"
    MIN_ORDER_QUANTITY = "min_order_quantity"


REQUIRED_FIELDS = (LogicalField.SUPPLIER_REFERENCE, LogicalField.SUPPLIER_PRICE)

INTEGER_FIELDS = (
    LogicalField.STOCK_QUANTITY,
    LogicalField.LEAD_TIME_DAYS,
    LogicalField.MIN_ORDER_QUANTITY,
)

FIELD_LABELS: Dict[LogicalField, str] = {
    LogicalField.SUPPLIER_REFERENCE: "Référence fournisseur",
    LogicalField.SUPPLIER_PRICE: "Prix HT",
    LogicalField.PRODUCT_NAME: "Nom du produit",
    LogicalField.EAN: "Code EAN",
    LogicalField.STOCK_QUANTITY: "Stock",
    LogicalField.LEAD_TIME_DAYS: "Délai (jours)",
    LogicalField.MIN_ORDER_QUANTITY: "Qté minimum",
}


@dataclass
class ParsedFile:
    """A supplier file parsed into headers and raw string rows"""

    format: FileFormat
    headers: List[str] = field(default_factory=list)
    rows: List[Dict[str, Optional[str]]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def sample_row(self) -> Dict[str, Optional[str]]:
        """First row, used as a sample for column detection"""
        return self.rows[0] if self.rows else {}


@dataclass(frozen=True)
class ColumnMapping:
    """Association between logical fields and source file headers"""

    supplier_reference: Optional[str] = None
    supplier_price: Optional[str] = None
    product_name: Optional[str] = None
    ean: Optional[str] = None
    stock_quantity: Optional[str] = None
    lead_time_days: Optional[str] = None
    min_order_quantity: Optional[str] = None

    def get(self, logical_field: LogicalField) -> Optional[str]:
        return getattr(self, logical_field.value)

    def with_field(
        self, logical_field: LogicalField, header: Optional[str]
    ) -> "ColumnMapping":
        """Copy of this mapping with one field re-assigned (operator override)"""
        return replace(self, **{logical_field.value: header or None})

    def missing_required(self) -> List[LogicalField]:
        return [f for f in REQUIRED_FIELDS if not (self.get(f) or "").strip()]

    @property
    def is_valid(self) -> bool:
        return not self.missing_required()

    def to_dict(self) -> Dict[str, str]:
        """Mapped fields only, keyed by logical field name"""
        return {k: v for k, v in asdict(self).items() if v}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnMapping":
        known = {f.value for f in LogicalField}
        return cls(**{k: v for k, v in data.items() if k in known and v})


@dataclass(frozen=True)
class NormalizedRow:
    """One supplier row re-keyed by logical field, ready for import"""

    supplier_reference: str
    supplier_price: float
    product_name: Optional[str] = None
    ean: Optional[str] = None
    stock_quantity: Optional[int] = None
    lead_time_days: Optional[int] = None
    min_order_quantity: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the import payload, omitting unmapped fields"""
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ImportResult:
    """Aggregate outcome reported by the remote importer"""

    success: int = 0
    errors: int = 0
    unmatched: int = 0
    total: int = 0
    skipped: int = 0  # rows excluded before handoff

    @property
    def failed(self) -> int:
        return self.errors + self.skipped

    def to_dict(self) -> Dict:
        return asdict(self)


class UploadStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class MatchStatus(str, Enum):
    PENDING = "pending"
    MATCHED = "matched"
    PARTIAL = "partial"
    UNMATCHED = "unmatched"


class CartTier(str, Enum):
    ESSENTIEL = "essentiel"
    EQUILIBRE = "equilibre"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)


TIER_ORDER = [CartTier.ESSENTIEL, CartTier.EQUILIBRE, CartTier.PREMIUM]


class RelationType(str, Enum):
    COMPLEMENT = "complement"
    COMPATIBILITY = "compatibility"
    ALTERNATIVE_DURABLE = "alternative_durable"
    SUBSTITUTION = "substitution"


class RecoEventType(str, Enum):
    SHOWN = "shown"
    CLICKED = "clicked"
    ADDED_TO_CART = "added_to_cart"


class RecoPlacement(str, Enum):
    PRODUCT_PAGE = "product_page"
    CART = "cart"


def to_float(value: Any) -> Optional[float]:
    """Lenient numeric conversion for backend payloads"""
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class SchoolListUpload:
    """One uploaded school supply list"""

    id: str
    file_name: str
    file_type: Optional[str] = None
    school_name: Optional[str] = None
    class_level: Optional[str] = None
    status: UploadStatus = UploadStatus.PENDING
    items_count: int = 0
    error_message: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchoolListUpload":
        try:
            status = UploadStatus(data.get("status") or "pending")
        except ValueError:
            status = UploadStatus.PENDING
        return cls(
            id=str(data["id"]),
            file_name=data.get("file_name") or "",
            file_type=data.get("file_type"),
            school_name=data.get("school_name"),
            class_level=data.get("class_level"),
            status=status,
            items_count=int(data.get("items_count") or 0),
            error_message=data.get("error_message"),
            created_at=data.get("created_at"),
        )


@dataclass
class ProductCandidate:
    """A catalog product proposed for a school-list line"""

    product_id: str
    name: str
    price: Optional[float] = None
    price_ttc: Optional[float] = None
    eco: bool = False
    brand: Optional[str] = None
    image_url: Optional[str] = None
    score: float = 0.0
    reason: Optional[str] = None
    tier: Optional[CartTier] = None

    @property
    def display_price(self) -> Optional[float]:
        return self.price_ttc if self.price_ttc is not None else self.price

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductCandidate":
        tier = data.get("tier")
        return cls(
            product_id=str(data.get("product_id") or data.get("id") or ""),
            name=data.get("name") or "",
            price=to_float(data.get("price")),
            price_ttc=to_float(data.get("price_ttc")),
            eco=bool(data.get("eco")),
            brand=data.get("brand"),
            image_url=data.get("image_url"),
            score=to_float(data.get("score")) or 0.0,
            reason=data.get("reason"),
            tier=CartTier(tier) if tier in {t.value for t in CartTier} else None,
        )


@dataclass
class SchoolListMatch:
    """One parsed school-list line and its catalog candidates (best first)"""

    id: str
    upload_id: str
    item_label: str
    item_quantity: int = 1
    is_mandatory: bool = False
    constraints: Optional[str] = None
    candidates: List[ProductCandidate] = field(default_factory=list)
    match_status: MatchStatus = MatchStatus.PENDING
    confidence: float = 0.0
    selected_product_id: Optional[str] = None

    @property
    def best_candidate(self) -> Optional[ProductCandidate]:
        return self.candidates[0] if self.candidates else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchoolListMatch":
        try:
            status = MatchStatus(data.get("match_status") or "pending")
        except ValueError:
            status = MatchStatus.PENDING
        return cls(
            id=str(data.get("id") or ""),
            upload_id=str(data.get("upload_id") or ""),
            item_label=data.get("item_label") or "",
            item_quantity=int(data.get("item_quantity") or 1),
            is_mandatory=bool(data.get("is_mandatory")),
            constraints=data.get("constraints"),
            candidates=[
                ProductCandidate.from_dict(c) for c in (data.get("candidates") or [])
            ],
            match_status=status,
            confidence=to_float(data.get("confidence")) or 0.0,
            selected_product_id=data.get("selected_product_id"),
        )


@dataclass
class CartItem:
    """A product line inside a tier cart"""

    product_id: str
    product_name: str
    quantity: int = 1
    price: float = 0.0
    price_ttc: Optional[float] = None
    eco: bool = False
    image_url: Optional[str] = None

    @property
    def unit_price_ttc(self) -> float:
        return self.price_ttc if self.price_ttc is not None else self.price

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartItem":
        return cls(
            product_id=str(data.get("product_id") or ""),
            product_name=data.get("product_name") or "",
            quantity=int(data.get("quantity") or 1),
            price=to_float(data.get("price")) or 0.0,
            price_ttc=to_float(data.get("price_ttc")),
            eco=bool(data.get("eco")),
            image_url=data.get("image_url"),
        )


@dataclass
class SchoolListCart:
    """One of the three pre-built carts for an upload"""

    upload_id: str
    tier: CartTier
    items: List[CartItem] = field(default_factory=list)
    items_count: int = 0
    total_ttc: float = 0.0
    total_ht: float = 0.0

    @property
    def eco_count(self) -> int:
        return sum(1 for item in self.items if item.eco)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchoolListCart":
        items = [CartItem.from_dict(i) for i in (data.get("items") or [])]
        return cls(
            upload_id=str(data.get("upload_id") or ""),
            tier=CartTier(data["tier"]),
            items=items,
            items_count=int(data.get("items_count") or len(items)),
            total_ttc=to_float(data.get("total_ttc")) or 0.0,
            total_ht=to_float(data.get("total_ht")) or 0.0,
        )


@dataclass
class RecoProduct:
    """A recommended product with its locally computed relevance score"""

    id: str
    name: str
    relation_type: RelationType
    reason: str
    score: float
    category: Optional[str] = None
    price_ttc: Optional[float] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    eco: bool = False
    stock_quantity: Optional[float] = None
    margin_percent: Optional[float] = None


@dataclass
class RecoEvent:
    """A recommendation impression/click/add event"""

    product_id: str
    event_type: RecoEventType
    placement: RecoPlacement
    source_product_id: Optional[str] = None
    relation_type: Optional[RelationType] = None
    position: Optional[int] = None

    def to_record(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        return {
            "user_id": user_id or None,
            "source_product_id": self.source_product_id,
            "product_id": self.product_id,
            "relation_type": self.relation_type.value if self.relation_type else None,
            "event_type": self.event_type.value,
            "placement": self.placement.value,
            "position": self.position,
        }

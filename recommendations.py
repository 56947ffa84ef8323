"""
Product and cart recommendations: relevance scoring, assembly from
relation tables, non-blocking event logging and CTR statistics
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from backend_client import BackendClient, BackendError
from config import BACKEND_USER_ID, CART_RECO_LIMIT, PRODUCT_RECO_LIMIT, RECO_STATS_DAYS
from models import RecoEvent, RecoProduct, RelationType, to_float

logger = logging.getLogger(__name__)

RELATION_LABELS: Dict[RelationType, str] = {
    RelationType.COMPLEMENT: "Complément",
    RelationType.COMPATIBILITY: "Compatible avec",
    RelationType.ALTERNATIVE_DURABLE: "Alternative éco-responsable",
    RelationType.SUBSTITUTION: "Substitut disponible",
}

RELATION_REASONS: Dict[RelationType, str] = {
    RelationType.COMPLEMENT: "Souvent acheté avec ce produit",
    RelationType.COMPATIBILITY: "Compatible avec ce produit",
    RelationType.ALTERNATIVE_DURABLE: "Version éco-responsable disponible",
    RelationType.SUBSTITUTION: "Disponible à la place de ce produit",
}

DEFAULT_PRODUCT_TYPES = [
    RelationType.COMPLEMENT,
    RelationType.ALTERNATIVE_DURABLE,
    RelationType.COMPATIBILITY,
]

DEFAULT_MARGIN_PERCENT = 20
PRODUCT_COLUMNS = "id, name, price_ttc, price, image_url, category, eco, stock_quantity, margin_percent"


def score_product(
    margin_percent: Optional[float], stock_quantity: Optional[float]
) -> float:
    """Relevance in [0, 1]: half margin, half availability"""
    margin = DEFAULT_MARGIN_PERCENT if margin_percent is None else margin_percent
    margin_score = min(max(margin / 100, 0.0), 1.0)
    stock_score = 1.0 if stock_quantity is not None and stock_quantity > 0 else 0.2
    return margin_score * 0.5 + stock_score * 0.5


def _relation_type(value: Any) -> RelationType:
    try:
        return RelationType(value)
    except ValueError:
        return RelationType.COMPLEMENT


class RecommendationService:
    """Builds recommendation lists from product_relations and compatibility_matrix"""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    def product_recommendations(
        self,
        product_id: str,
        types: Optional[Iterable[RelationType]] = None,
        limit: int = PRODUCT_RECO_LIMIT,
    ) -> List[RecoProduct]:
        if not product_id:
            return []
        types = list(types or DEFAULT_PRODUCT_TYPES)

        relations = self.backend.select(
            "product_relations",
            columns="related_product_id, relation_type",
            eq={"product_id": product_id},
            in_={"relation_type": [t.value for t in types]},
        )
        compat_rows = self.backend.select(
            "compatibility_matrix",
            columns="product_id, compatible_product_id, compatibility_note",
            or_=f"product_id.eq.{product_id},compatible_product_id.eq.{product_id}",
        )

        pairs = [
            (r["related_product_id"], _relation_type(r.get("relation_type")))
            for r in relations
        ]
        for row in compat_rows:
            other = (
                row["compatible_product_id"]
                if row["product_id"] == product_id
                else row["product_id"]
            )
            pairs.append((other, RelationType.COMPATIBILITY))

        # First source wins for a product reached twice
        relation_by_id: Dict[str, RelationType] = {}
        for target_id, relation_type in pairs:
            if target_id != product_id and target_id not in relation_by_id:
                relation_by_id[target_id] = relation_type

        recos = self._build(relation_by_id, limit)
        logger.info(f"💡 {len(recos)} recommendations for product {product_id}")
        return recos

    def cart_recommendations(
        self, cart_product_ids: List[str], limit: int = CART_RECO_LIMIT
    ) -> List[RecoProduct]:
        if not cart_product_ids:
            return []

        relations = self.backend.select(
            "product_relations",
            columns="related_product_id, relation_type",
            in_={"product_id": cart_product_ids},
            eq={"relation_type": RelationType.COMPLEMENT.value},
        )

        relation_by_id: Dict[str, RelationType] = {}
        for relation in relations:
            target_id = relation["related_product_id"]
            if target_id not in cart_product_ids:
                relation_by_id.setdefault(target_id, RelationType.COMPLEMENT)

        return self._build(relation_by_id, limit)

    def _build(
        self, relation_by_id: Dict[str, RelationType], limit: int
    ) -> List[RecoProduct]:
        if not relation_by_id:
            return []

        products = self.backend.select(
            "products",
            columns=PRODUCT_COLUMNS,
            in_={"id": list(relation_by_id)},
            eq={"is_active": True},
        )

        recos = []
        for product in products:
            relation_type = relation_by_id.get(product["id"], RelationType.COMPLEMENT)
            margin = to_float(product.get("margin_percent"))
            stock = to_float(product.get("stock_quantity"))
            recos.append(
                RecoProduct(
                    id=product["id"],
                    name=product.get("name") or "",
                    relation_type=relation_type,
                    reason=RELATION_REASONS[relation_type],
                    score=score_product(margin, stock),
                    category=product.get("category"),
                    price_ttc=to_float(product.get("price_ttc")),
                    price=to_float(product.get("price")),
                    image_url=product.get("image_url"),
                    eco=bool(product.get("eco")),
                    stock_quantity=stock,
                    margin_percent=margin,
                )
            )

        recos.sort(key=lambda r: r.score, reverse=True)
        return recos[:limit]

    def recommendation_stats(self, days: int = RECO_STATS_DAYS) -> List["RecoStatRow"]:
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        rows = self.backend.select(
            "recommendation_logs",
            columns="relation_type, placement, event_type",
            gte={"created_at": since},
        )
        return compute_recommendation_stats(rows)


class RecommendationEventLogger:
    """
    Records recommendation events without ever blocking or failing the caller.

    Writes run on a background worker; a failed write is only logged.
    """

    def __init__(
        self,
        backend: BackendClient,
        user_id: Optional[str] = BACKEND_USER_ID,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.backend = backend
        self.user_id = user_id or None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="reco-events"
        )

    def log(self, event: RecoEvent) -> Optional[Future]:
        try:
            return self.executor.submit(self._write, event)
        except RuntimeError as e:
            logger.warning(f"Recommendation event dropped: {e}")
            return None

    def _write(self, event: RecoEvent) -> bool:
        try:
            self.backend.insert("recommendation_logs", event.to_record(self.user_id))
            logger.debug(f"Logged {event.event_type.value} for {event.product_id}")
            return True
        except BackendError as e:
            logger.warning(f"Failed to log recommendation event: {e}")
        except Exception as e:
            logger.warning(f"Error logging recommendation event: {str(e)}")
        return False

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)


@dataclass
class RecoStatRow:
    relation_type: str
    placement: str
    shown: int = 0
    clicked: int = 0
    added: int = 0
    ctr: float = 0.0
    conversion: float = 0.0

    def to_dict(self) -> Dict:
        return asdict(self)


def compute_recommendation_stats(rows: List[Dict[str, Any]]) -> List[RecoStatRow]:
    """Aggregate events per (relation_type, placement); rates in percent"""
    stats: Dict[tuple, RecoStatRow] = {}

    for row in rows:
        key = (row.get("relation_type") or "unknown", row.get("placement") or "unknown")
        stat = stats.setdefault(key, RecoStatRow(relation_type=key[0], placement=key[1]))
        event_type = row.get("event_type")
        if event_type == "shown":
            stat.shown += 1
        elif event_type == "clicked":
            stat.clicked += 1
        elif event_type == "added_to_cart":
            stat.added += 1

    for stat in stats.values():
        if stat.shown > 0:
            stat.ctr = round(stat.clicked / stat.shown * 100, 1)
            stat.conversion = round(stat.added / stat.shown * 100, 1)

    return list(stats.values())

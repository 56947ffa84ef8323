"""
Tests for recommendation scoring, assembly, event logging and stats
"""

import pytest

from backend_client import BackendError
from models import RecoEvent, RecoEventType, RecoPlacement, RelationType
from recommendations import (
    RELATION_LABELS,
    RELATION_REASONS,
    RecommendationEventLogger,
    RecommendationService,
    compute_recommendation_stats,
    score_product,
)
from tests.conftest import FakeBackend


def product(product_id, margin=None, stock=None, active=True, **extra):
    row = {
        "id": product_id,
        "name": f"Produit {product_id}",
        "price": 1.0,
        "price_ttc": 1.2,
        "category": "ecriture",
        "eco": False,
        "margin_percent": margin,
        "stock_quantity": stock,
        "is_active": active,
    }
    row.update(extra)
    return row


@pytest.fixture
def backend():
    return FakeBackend(
        tables={
            "product_relations": [
                {"product_id": "p1", "related_product_id": "p2", "relation_type": "complement"},
                {"product_id": "p1", "related_product_id": "p3", "relation_type": "substitution"},
                {"product_id": "p1", "related_product_id": "p1", "relation_type": "complement"},
                {"product_id": "p1", "related_product_id": "p5", "relation_type": "complement"},
                {"product_id": "p2", "related_product_id": "p3", "relation_type": "complement"},
                {"product_id": "p2", "related_product_id": "p4", "relation_type": "substitution"},
            ],
            "compatibility_matrix": [
                {"product_id": "p4", "compatible_product_id": "p1"},
                {"product_id": "p1", "compatible_product_id": "p2"},
            ],
            "products": [
                product("p1", margin=30, stock=5),
                product("p2", margin=50, stock=10),
                product("p3", margin=40, stock=1),
                product("p4", margin=10, stock=0),
                product("p5", margin=90, stock=9, active=False),
            ],
        }
    )


class TestScoreProduct:
    def test_defaults(self):
        assert score_product(None, None) == pytest.approx(0.2)

    def test_formula(self):
        assert score_product(50, 10) == pytest.approx(0.75)
        assert score_product(10, 0) == pytest.approx(0.15)

    @pytest.mark.parametrize(
        "margin,stock",
        [(-50, None), (0, 0), (150, 3), (1000, -1), (20, 1e9), (None, 0)],
    )
    def test_bounds(self, margin, stock):
        assert 0.0 <= score_product(margin, stock) <= 1.0


class TestProductRecommendations:
    def test_merges_relations_and_compatibility(self, backend):
        recos = RecommendationService(backend).product_recommendations("p1")

        assert [r.id for r in recos] == ["p2", "p4"]
        assert recos[0].relation_type == RelationType.COMPLEMENT
        assert recos[1].relation_type == RelationType.COMPATIBILITY
        assert recos[1].reason == RELATION_REASONS[RelationType.COMPATIBILITY]
        assert recos[0].score == pytest.approx(0.75)

    def test_type_filter(self, backend):
        recos = RecommendationService(backend).product_recommendations(
            "p1", [RelationType.SUBSTITUTION]
        )
        assert {r.id for r in recos} == {"p3", "p4", "p2"}
        assert next(r for r in recos if r.id == "p3").relation_type == RelationType.SUBSTITUTION

    def test_limit(self, backend):
        recos = RecommendationService(backend).product_recommendations("p1", limit=1)
        assert [r.id for r in recos] == ["p2"]

    def test_no_product(self, backend):
        assert RecommendationService(backend).product_recommendations("") == []
        assert backend.calls == []

    def test_backend_failure_propagates(self, backend):
        backend.failing_tables.add("products")
        with pytest.raises(BackendError):
            RecommendationService(backend).product_recommendations("p1")


class TestCartRecommendations:
    def test_complements_outside_cart(self, backend):
        recos = RecommendationService(backend).cart_recommendations(["p1", "p2"])

        assert [r.id for r in recos] == ["p3"]
        assert recos[0].reason == RELATION_REASONS[RelationType.COMPLEMENT]

    def test_empty_cart(self, backend):
        assert RecommendationService(backend).cart_recommendations([]) == []


class TestEventLogger:
    EVENT = RecoEvent(
        product_id="p2",
        event_type=RecoEventType.CLICKED,
        placement=RecoPlacement.CART,
        relation_type=RelationType.COMPLEMENT,
        position=0,
    )

    def test_writes_record(self, backend):
        event_logger = RecommendationEventLogger(backend, user_id="user-1")

        assert event_logger.log(self.EVENT).result(timeout=5) is True
        event_logger.shutdown()

        (record,) = backend.tables["recommendation_logs"]
        assert record["event_type"] == "clicked"
        assert record["placement"] == "cart"
        assert record["relation_type"] == "complement"
        assert record["user_id"] == "user-1"

    def test_backend_failure_never_raises(self, backend):
        backend.failing_tables.add("recommendation_logs")
        event_logger = RecommendationEventLogger(backend)

        assert event_logger.log(self.EVENT).result(timeout=5) is False
        event_logger.shutdown()

    def test_unexpected_failure_never_raises(self):
        class BrokenBackend:
            def insert(self, table, rows):
                raise RuntimeError("socket closed")

        event_logger = RecommendationEventLogger(BrokenBackend())
        assert event_logger.log(self.EVENT).result(timeout=5) is False
        event_logger.shutdown()

    def test_after_shutdown(self, backend):
        event_logger = RecommendationEventLogger(backend)
        event_logger.shutdown()
        assert event_logger.log(self.EVENT) is None


class TestStats:
    def test_rates_in_percent(self):
        rows = (
            [{"relation_type": "complement", "placement": "cart", "event_type": "shown"}] * 3
            + [{"relation_type": "complement", "placement": "cart", "event_type": "clicked"}]
            + [{"relation_type": "complement", "placement": "cart", "event_type": "added_to_cart"}]
            + [{"relation_type": None, "placement": "product_page", "event_type": "clicked"}]
        )

        stats = {(s.relation_type, s.placement): s for s in compute_recommendation_stats(rows)}

        cart = stats[("complement", "cart")]
        assert (cart.shown, cart.clicked, cart.added) == (3, 1, 1)
        assert cart.ctr == 33.3
        assert cart.conversion == 33.3
        assert stats[("unknown", "product_page")].ctr == 0

    def test_recent_events_only(self, backend):
        backend.tables["recommendation_logs"] = [
            {"relation_type": "complement", "placement": "cart", "event_type": "shown", "created_at": "2000-01-01T00:00:00+00:00"},
            {"relation_type": "complement", "placement": "cart", "event_type": "shown", "created_at": "2999-01-01T00:00:00+00:00"},
        ]

        (stat,) = RecommendationService(backend).recommendation_stats(30)

        assert stat.shown == 1

    def test_labels_cover_every_relation(self):
        assert set(RELATION_LABELS) == set(RelationType) == set(RELATION_REASONS)

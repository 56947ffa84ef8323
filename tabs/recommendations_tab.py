"""
Recommendations tab: preview product and cart recommendations, CTR stats
"""

import pandas as pd
import streamlit as st

from backend_client import BackendClient, BackendError
from config import RECO_STATS_DAYS
from models import RecoEvent, RecoEventType, RecoPlacement, RelationType
from recommendations import (
    DEFAULT_PRODUCT_TYPES,
    RELATION_LABELS,
    RecommendationEventLogger,
    RecommendationService,
)
from utils import format_eur


def _get_event_logger(backend: BackendClient) -> RecommendationEventLogger:
    if "reco_event_logger" not in st.session_state:
        st.session_state.reco_event_logger = RecommendationEventLogger(backend)
    return st.session_state.reco_event_logger


def recommendations_tab(backend: BackendClient):
    st.header("💡 Recommandations")

    service = RecommendationService(backend)
    event_logger = _get_event_logger(backend)

    product_tab, cart_tab, stats_tab = st.tabs(
        ["Fiche produit", "Panier", f"Statistiques ({RECO_STATS_DAYS} j)"]
    )

    with product_tab:
        product_id = st.text_input("Identifiant produit", key="reco_product_id")
        types = st.multiselect(
            "Types de relation",
            options=list(RelationType),
            default=DEFAULT_PRODUCT_TYPES,
            format_func=lambda t: RELATION_LABELS[t],
            key="reco_types",
        )
        if product_id:
            try:
                recos = service.product_recommendations(product_id, types)
            except BackendError as e:
                st.error(f"❌ {e}")
                recos = []
            _show_recos(recos, event_logger, RecoPlacement.PRODUCT_PAGE, product_id)

    with cart_tab:
        basket_ids = sorted(
            {item["product_id"] for item in st.session_state.get("basket", [])}
        )
        raw_ids = st.text_area(
            "Produits du panier (un identifiant par ligne)",
            value="\n".join(basket_ids),
            key="reco_cart_ids",
        )
        cart_ids = [line.strip() for line in raw_ids.splitlines() if line.strip()]
        if cart_ids:
            try:
                recos = service.cart_recommendations(cart_ids)
            except BackendError as e:
                st.error(f"❌ {e}")
                recos = []
            _show_recos(recos, event_logger, RecoPlacement.CART)

    with stats_tab:
        if st.button("📊 Calculer", key="reco_stats"):
            try:
                stats = service.recommendation_stats(RECO_STATS_DAYS)
            except BackendError as e:
                st.error(f"❌ {e}")
                return
            if not stats:
                st.info("Aucun événement sur la période")
            else:
                st.dataframe(
                    pd.DataFrame([s.to_dict() for s in stats]),
                    width="stretch",
                    hide_index=True,
                )


def _show_recos(recos, event_logger, placement, source_product_id=None):
    if not recos:
        st.info("Aucune recommandation")
        return

    for position, reco in enumerate(recos):
        event_logger.log(
            RecoEvent(
                product_id=reco.id,
                event_type=RecoEventType.SHOWN,
                placement=placement,
                source_product_id=source_product_id,
                relation_type=reco.relation_type,
                position=position,
            )
        )

    st.dataframe(
        pd.DataFrame(
            [
                {
                    "Produit": r.name,
                    "Relation": RELATION_LABELS[r.relation_type],
                    "Raison": r.reason,
                    "Prix TTC": format_eur(r.price_ttc if r.price_ttc is not None else r.price),
                    "Éco": "🌱" if r.eco else "",
                    "Score": round(r.score, 2),
                }
                for r in recos
            ]
        ),
        width="stretch",
        hide_index=True,
    )

"""
School-list copilot tab: upload, extraction and matching progress, match
table and tier carts
"""

import logging

import streamlit as st

from backend_client import BackendClient, BackendError
from cart_presenter import (
    RECOMMENDED_LABEL,
    TIER_DISPLAY,
    cart_line_items,
    sort_carts,
    summarize_carts,
)
from config import MAX_SCHOOL_LIST_SIZE_MB, SCHOOL_LIST_EXTENSIONS
from copilot import (
    STEP_LABELS,
    STEP_ORDER,
    CopilotState,
    SchoolCopilot,
    UploadRejectedError,
)
from match_presenter import STATUS_DISPLAY, match_stats, match_table_dataframe
from models import MatchStatus
from utils import format_eur

logger = logging.getLogger(__name__)


def streamlit_notifier(level: str, message: str) -> None:
    icon = "❌" if level == "error" else "✅"
    st.toast(message, icon=icon)


def _get_copilot(backend: BackendClient) -> SchoolCopilot:
    if "school_copilot" not in st.session_state:
        st.session_state.school_copilot = SchoolCopilot(
            backend, notify=streamlit_notifier
        )
    return st.session_state.school_copilot


def _show_steps(state: CopilotState):
    current = STEP_ORDER.index(state)
    cols = st.columns(len(STEP_ORDER))
    for i, (col, step) in enumerate(zip(cols, STEP_ORDER)):
        if i < current:
            col.markdown(f"✅ {STEP_LABELS[step]}")
        elif i == current:
            col.markdown(f"**▶️ {STEP_LABELS[step]}**")
        else:
            col.markdown(f"⏳ {STEP_LABELS[step]}")


def school_copilot_tab(backend: BackendClient):
    """Copilot for school supply lists"""

    st.header("🎒 Copilote listes scolaires")
    copilot = _get_copilot(backend)

    if copilot.state != CopilotState.UPLOAD:
        _show_steps(copilot.state)
        if st.button("🔄 Nouvelle liste", key="copilot_reset"):
            copilot.reset()
            st.rerun()

    if copilot.state == CopilotState.UPLOAD:
        _show_upload_form(copilot)
    elif copilot.state == CopilotState.RESULTS:
        _show_results(copilot)
    else:
        st.info(
            "Extraction des articles..."
            if copilot.state == CopilotState.PROCESSING
            else "Recherche des meilleurs produits..."
        )


def _show_upload_form(copilot: SchoolCopilot):
    with st.form("copilot_upload_form"):
        uploaded_file = st.file_uploader(
            "Liste scolaire",
            type=[ext.lstrip(".") for ext in SCHOOL_LIST_EXTENSIONS],
            help=f"PDF, image ou tableur, {MAX_SCHOOL_LIST_SIZE_MB} Mo maximum",
        )
        col1, col2 = st.columns(2)
        school_name = col1.text_input("École (optionnel)")
        class_level = col2.text_input("Classe (optionnel)")
        submitted = st.form_submit_button("🚀 Analyser la liste", type="primary")

    if not submitted:
        return
    if uploaded_file is None:
        st.warning("⚠️ Sélectionnez un fichier")
        return

    with st.spinner("Analyse de la liste en cours..."):
        try:
            copilot.run(
                uploaded_file.name,
                uploaded_file.getvalue(),
                uploaded_file.type,
                school_name,
                class_level,
            )
        except UploadRejectedError as e:
            st.error(f"❌ {e}")
            return

    st.rerun()


def _show_results(copilot: SchoolCopilot):
    matches = copilot.matches
    stats = match_stats(matches)

    st.subheader(f"Correspondances ({stats['total']} articles)")
    cols = st.columns(3)
    for col, status in zip(
        cols, [MatchStatus.MATCHED, MatchStatus.PARTIAL, MatchStatus.UNMATCHED]
    ):
        display = STATUS_DISPLAY[status]
        col.metric(f"{display.icon} {display.short_label}", stats[status.value])

    if matches:
        st.dataframe(match_table_dataframe(matches), width="stretch", hide_index=True)

    if copilot.upload is not None and st.button("🔃 Actualiser", key="copilot_refresh"):
        try:
            copilot.fetch_upload_data(copilot.upload.id)
        except BackendError as e:
            st.error(f"❌ {e}")
        st.rerun()

    _show_carts(copilot)


def _show_carts(copilot: SchoolCopilot):
    carts = sort_carts(copilot.carts)
    summary = summarize_carts(carts, copilot.matches)
    if summary is None:
        st.info("Aucun panier généré pour cette liste")
        return

    st.subheader("🛒 Paniers proposés")
    cols = st.columns(len(carts))
    for col, cart in zip(cols, carts):
        display = TIER_DISPLAY[cart.tier]
        with col:
            with st.container(border=True):
                if display.recommended:
                    st.caption(f"⭐ {RECOMMENDED_LABEL}")
                st.markdown(f"### {display.icon} {display.label}")
                st.caption(display.description)
                st.metric("Total TTC", format_eur(cart.total_ttc))
                st.write(f"{cart.items_count} articles")
                if cart.eco_count:
                    st.write(f"🌱 {cart.eco_count} éco")
                if st.button(
                    "Ajouter au panier",
                    key=f"copilot_add_{cart.tier.value}",
                    type="primary" if display.recommended else "secondary",
                ):
                    _add_to_basket(cart, display.label)

    st.write(
        f"De **{format_eur(summary.cheapest.total_ttc)}** à "
        f"**{format_eur(summary.priciest.total_ttc)}** - "
        f"écart de {format_eur(summary.savings)}"
    )
    if summary.to_review:
        st.warning(f"⚠️ {summary.to_review} articles à vérifier")


def _add_to_basket(cart, label: str):
    basket = st.session_state.setdefault("basket", [])
    lines = cart_line_items(cart)
    basket.extend(item.to_dict() for item in lines)
    logger.info(f"🛒 Cart variant selected: {cart.tier.value} ({len(lines)} items)")
    st.toast(f"✅ {len(lines)} articles ajoutés au panier ({label})")

"""
Streamlit back-office for the papeterie: supplier pricing import, school-list
copilot and recommendations
"""

import streamlit as st

from backend_client import BackendClient
from config import BACKEND_URL, GROQ_API_KEY, LOG_LEVEL
from tabs.recommendations_tab import recommendations_tab
from tabs.school_copilot_tab import school_copilot_tab
from tabs.supplier_pricing_tab import supplier_pricing_tab
from utils import setup_logging, validate_groq_api_key

# Configure page
st.set_page_config(
    page_title="Papeterie Back-office",
    page_icon="📚",
    layout="wide",
    initial_sidebar_state="collapsed",
)

# Setup logging
setup_logging(LOG_LEVEL)

# Initialize session state
if "backend" not in st.session_state:
    st.session_state.backend = BackendClient()
if "basket" not in st.session_state:
    st.session_state.basket = []


def get_groq_api_key():
    """Groq key from the environment or the sidebar, None when invalid"""
    api_key = GROQ_API_KEY
    if not api_key:
        api_key = st.text_input(
            "Groq API key (optionnel)",
            type="password",
            help="Active la détection IA des colonnes",
            key="groq_api_key_input",
        )

    if api_key and not validate_groq_api_key(api_key):
        st.warning("⚠️ Clé Groq invalide - détection par synonymes")
        return None
    return api_key or None


def main():
    """Main application function"""

    backend = st.session_state.backend

    with st.sidebar:
        st.subheader("⚙️ Configuration")
        if backend.configured:
            st.success(f"🔗 Backend : {BACKEND_URL}")
        else:
            st.error("❌ BACKEND_URL / BACKEND_ANON_KEY non configurés")

        groq_api_key = get_groq_api_key()
        if groq_api_key:
            st.success("🤖 Détection IA activée")

        st.caption(f"🛒 Panier : {len(st.session_state.basket)} articles")

    st.title("📚 Papeterie Back-office")

    tab1, tab2, tab3 = st.tabs(
        ["📥 Tarifs fournisseurs", "🎒 Listes scolaires", "💡 Recommandations"]
    )

    with tab1:
        supplier_pricing_tab(backend, groq_api_key)
    with tab2:
        school_copilot_tab(backend)
    with tab3:
        recommendations_tab(backend)


if __name__ == "__main__":
    main()

"""
Supplier pricing import tab: upload or paste, column mapping, normalized
preview and import
"""

import logging
from typing import MutableMapping, Optional

import pandas as pd
import streamlit as st

from backend_client import BackendClient, BackendError
from config import PRICING_PREVIEW_ROWS
from data_normalizer import get_normalization_summary
from field_detector import AIColumnDetector
from file_processor import FileProcessor
from models import FIELD_LABELS, REQUIRED_FIELDS, FileFormat
from pricing_importer import (
    InvalidMappingError,
    NoExploitableDataError,
    PreparedImport,
    SupplierPricingImporter,
)
from utils import create_import_report, format_eur, format_file_size

logger = logging.getLogger(__name__)

NOT_MAPPED = "— Non mappé —"

FORMAT_LABELS = {
    FileFormat.CSV: "CSV / TXT",
    FileFormat.XML: "XML",
    FileFormat.JSON: "JSON",
}

PLACEHOLDER = (
    "Référence;Désignation;Prix HT;EAN\n"
    "STY001;Stylo bille bleu;0,85;3270220078456\n"
    "CAH001;Cahier 96p A4;1,25;3210330012345\n..."
)


IMPORT_STATE_KEYS = ["pricing_prepared", "pricing_mapping", "pricing_result", "pricing_report"]
MAPPING_WIDGET_PREFIX = "pricing_map_"


def _reset_import(state: MutableMapping) -> None:
    """Forget the current import, including the manual mapping choices"""
    for key in IMPORT_STATE_KEYS:
        state.pop(key, None)
    for key in [k for k in list(state.keys()) if str(k).startswith(MAPPING_WIDGET_PREFIX)]:
        state.pop(key, None)


def _get_importer(backend: BackendClient, groq_api_key: Optional[str]) -> SupplierPricingImporter:
    detector = AIColumnDetector(api_key=groq_api_key) if groq_api_key else None
    return SupplierPricingImporter(backend, detector)


def supplier_pricing_tab(backend: BackendClient, groq_api_key: Optional[str] = None):
    """Supplier pricing import workflow"""

    st.header("📥 Import tarifs fournisseur")

    importer = _get_importer(backend, groq_api_key)

    supplier_id = st.text_input(
        "Identifiant fournisseur",
        key="pricing_supplier_id",
        help="Fournisseur dont le catalogue tarifaire est importé",
    )

    if supplier_id and st.button("🔄 Charger le fournisseur", key="pricing_load_supplier"):
        try:
            context = importer.load_supplier_context(supplier_id)
            st.session_state.pricing_supplier = context
        except BackendError as e:
            st.error(f"❌ Impossible de charger le fournisseur : {e}")

    context = st.session_state.get("pricing_supplier")
    if context is not None:
        st.caption(
            f"Fournisseur **{context.name or supplier_id}** - "
            f"{len(context.products)} produits déjà liés"
        )
        _show_import_history(importer, supplier_id)

    if st.session_state.get("pricing_result") is not None:
        _show_result()
        return

    prepared: Optional[PreparedImport] = st.session_state.get("pricing_prepared")
    if prepared is None:
        _show_upload_step(importer)
    else:
        _show_mapping_step(importer, prepared, supplier_id)


def _show_import_history(importer: SupplierPricingImporter, supplier_id: str):
    with st.expander("🕓 Derniers imports"):
        try:
            history = importer.import_history(supplier_id)
        except BackendError as e:
            logger.error(f"❌ Could not load import history for {supplier_id}: {e}")
            st.error(f"❌ Historique indisponible : {e}")
            return

        if not history:
            st.info("Aucun import pour ce fournisseur")
            return

        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "Date": log.get("imported_at"),
                        "Fichier": log.get("filename"),
                        "Format": log.get("format"),
                        "Lignes": log.get("total_rows"),
                        "Importés": log.get("success_count"),
                        "Non matchés": log.get("unmatched_count"),
                        "Erreurs": log.get("error_count"),
                    }
                    for log in history
                ]
            ),
            width="stretch",
        )


def _show_upload_step(importer: SupplierPricingImporter):
    st.subheader("1. Upload")

    selected_format = st.radio(
        "Format du fichier",
        options=list(FORMAT_LABELS),
        format_func=lambda f: FORMAT_LABELS[f],
        horizontal=True,
        key="pricing_format",
    )

    extensions = [
        ext.lstrip(".") for fmt in FileFormat for ext in FileProcessor.get_supported_formats(fmt)
    ]
    uploaded_file = st.file_uploader(
        "Fichier fournisseur",
        type=extensions,
        key="pricing_upload",
        help="Le format est vérifié à partir du contenu du fichier",
    )
    pasted = st.text_area(
        "Ou collez le contenu du catalogue fournisseur",
        placeholder=PLACEHOLDER,
        height=160,
        key="pricing_paste",
    )

    if st.button("🤖 Analyser", type="primary", key="pricing_analyze"):
        if uploaded_file is not None:
            content, filename = FileProcessor.read_uploaded_file(uploaded_file)
            st.caption(f"{filename} ({format_file_size(uploaded_file.size)})")
        elif pasted.strip():
            content, filename = pasted, None
        else:
            st.warning("⚠️ Sélectionnez un fichier ou collez des données")
            return

        with st.spinner("Analyse du fichier..."):
            prepared = importer.prepare(content, filename, selected_format)

        if not prepared.has_data:
            st.error("❌ Aucune donnée exploitable dans le fichier")
            return

        if prepared.format != selected_format:
            st.info(f"🔧 Format détecté : {FORMAT_LABELS[prepared.format]}")

        _reset_import(st.session_state)
        st.session_state.pricing_prepared = prepared
        st.session_state.pricing_mapping = prepared.mapping
        st.rerun()


def _show_mapping_step(
    importer: SupplierPricingImporter, prepared: PreparedImport, supplier_id: str
):
    st.subheader("2. Mapping")
    st.write(
        f"**{prepared.parsed.row_count}** lignes, "
        f"**{len(prepared.parsed.headers)}** colonnes ({FORMAT_LABELS[prepared.format]})"
    )

    with st.expander("👀 Aperçu du fichier"):
        st.dataframe(
            FileProcessor.get_column_preview(prepared.parsed, PRICING_PREVIEW_ROWS),
            width="stretch",
        )
        structure = FileProcessor.analyze_file_structure(prepared.parsed)
        incomplete = {
            column: count for column, count in structure["missing_values"].items() if count
        }
        if incomplete:
            st.caption(
                "Cellules vides : "
                + ", ".join(f"{column} ({count})" for column, count in incomplete.items())
            )

    mapping = st.session_state.get("pricing_mapping", prepared.mapping)
    options = [NOT_MAPPED] + prepared.parsed.headers

    cols = st.columns(2)
    for i, (logical_field, label) in enumerate(FIELD_LABELS.items()):
        current = mapping.get(logical_field)
        suggested = prepared.suggestions.get(logical_field, [])
        with cols[i % 2]:
            choice = st.selectbox(
                f"{label}{' *' if logical_field in REQUIRED_FIELDS else ''}",
                options=options,
                index=options.index(current) if current in options else 0,
                key=f"{MAPPING_WIDGET_PREFIX}{logical_field.value}",
                help=f"Suggestions : {', '.join(suggested)}" if suggested else None,
            )
        mapping = mapping.with_field(
            logical_field, None if choice == NOT_MAPPED else choice
        )

    st.session_state.pricing_mapping = mapping

    missing = mapping.missing_required()
    if missing:
        st.warning(
            "⚠️ Champs obligatoires non mappés : "
            + ", ".join(FIELD_LABELS[f] for f in missing)
        )
    else:
        report = importer.normalize(prepared, mapping)
        st.write("**Aperçu des données normalisées**")
        st.dataframe(
            pd.DataFrame(report.to_records()[:PRICING_PREVIEW_ROWS]), width="stretch"
        )
        if report.excluded_rows:
            st.caption(
                f"{len(report.excluded_rows)} lignes seront ignorées (référence ou prix invalide)"
            )
        summary = get_normalization_summary(report)
        if summary:
            col1, col2, col3 = st.columns(3)
            col1.metric("Lignes valides", f"{summary['valid_rows']}/{summary['total_rows']}")
            col2.metric("Avec EAN", summary["with_ean"])
            col3.metric("Prix moyen", format_eur(summary["price_range"]["avg"]))

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Annuler", key="pricing_cancel"):
            _reset_import(st.session_state)
            st.rerun()
    with col2:
        if st.button(
            "🚀 Importer",
            type="primary",
            disabled=not mapping.is_valid or not supplier_id,
            key="pricing_import",
        ):
            _run_import(importer, prepared, mapping, supplier_id)


def _run_import(importer, prepared, mapping, supplier_id):
    with st.spinner("Import en cours..."):
        try:
            result = importer.run_import(supplier_id, prepared, mapping)
        except (NoExploitableDataError, InvalidMappingError) as e:
            st.error(f"❌ {e}")
            return
        except BackendError as e:
            logger.error(f"❌ Import failed for supplier {supplier_id}: {e}")
            st.error(f"❌ Erreur lors de l'import : {e}")
            return

    context = st.session_state.get("pricing_supplier")
    st.session_state.pricing_result = result
    st.session_state.pricing_report = create_import_report(
        result,
        importer.normalize(prepared, mapping),
        mapping,
        supplier_name=context.name if context else supplier_id,
        filename=prepared.filename,
    )
    st.toast(f"✅ {result.success} tarifs importés")
    st.rerun()


def _show_result():
    result = st.session_state.pricing_result
    st.subheader("3. Import terminé")

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total lignes", result.total)
    col2.metric("Importés", result.success)
    col3.metric("Non matchés", result.unmatched)
    col4.metric("Erreurs", result.failed)

    st.download_button(
        "📄 Télécharger le rapport",
        data=st.session_state.get("pricing_report", ""),
        file_name="import_report.txt",
        mime="text/plain",
        key="pricing_report_download",
    )

    if st.button("Nouvel import", key="pricing_restart"):
        _reset_import(st.session_state)
        st.rerun()

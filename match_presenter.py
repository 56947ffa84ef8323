"""
Presentation logic for school-list matches: confidence buckets, status
display and the rows of the match table
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import pandas as pd

from models import MatchStatus, SchoolListMatch


class ConfidenceLevel(str, Enum):
    SUR = "Sûr"
    MOYEN = "Moyen"
    INCERTAIN = "Incertain"


HIGH_CONFIDENCE = 0.7
MEDIUM_CONFIDENCE = 0.4


@dataclass(frozen=True)
class StatusDisplay:
    icon: str
    label: str
    short_label: str


STATUS_DISPLAY: Dict[MatchStatus, StatusDisplay] = {
    MatchStatus.MATCHED: StatusDisplay("✅", "Correspondance trouvée", "trouvés"),
    MatchStatus.PARTIAL: StatusDisplay("⚠️", "Correspondance partielle", "partiels"),
    MatchStatus.UNMATCHED: StatusDisplay("❌", "Aucune correspondance", "manquants"),
    MatchStatus.PENDING: StatusDisplay("❔", "En attente", "en attente"),
}


def classify_confidence(confidence: float) -> ConfidenceLevel:
    """Bucket a [0, 1] confidence for display; NaN is Incertain"""
    if confidence is None or (isinstance(confidence, float) and math.isnan(confidence)):
        return ConfidenceLevel.INCERTAIN
    if confidence >= HIGH_CONFIDENCE:
        return ConfidenceLevel.SUR
    if confidence >= MEDIUM_CONFIDENCE:
        return ConfidenceLevel.MOYEN
    return ConfidenceLevel.INCERTAIN


def confidence_badge(match: SchoolListMatch) -> Optional[ConfidenceLevel]:
    """Badge for a line, or None when it is pending or has no candidate"""
    if match.match_status == MatchStatus.PENDING or not match.candidates:
        return None
    return classify_confidence(match.confidence)


def match_stats(matches: List[SchoolListMatch]) -> Dict[str, int]:
    stats = {status.value: 0 for status in MatchStatus}
    for match in matches:
        stats[match.match_status.value] += 1

    stats["total"] = len(matches)
    stats["to_review"] = stats[MatchStatus.PARTIAL.value] + stats[MatchStatus.UNMATCHED.value]
    return stats


def match_table_rows(matches: List[SchoolListMatch]) -> List[Dict]:
    """One display row per requested line"""
    rows = []
    for match in matches:
        display = STATUS_DISPLAY[match.match_status]
        best = match.best_candidate
        badge = confidence_badge(match)
        price = best.display_price if best else None

        rows.append(
            {
                "Statut": display.icon,
                "Détail": display.label,
                "Article demandé": match.item_label,
                "Contraintes": match.constraints or "",
                "Obligatoire": "Oui" if match.is_mandatory else "",
                "Qté": match.item_quantity,
                "Produit suggéré": best.name if best else "—",
                "Marque": (best.brand or "") if best else "",
                "Confiance": badge.value if badge else "",
                "Prix unit.": f"{price:.2f}€" if price is not None else "—",
            }
        )
    return rows


def match_table_dataframe(matches: List[SchoolListMatch]) -> pd.DataFrame:
    return pd.DataFrame(match_table_rows(matches))

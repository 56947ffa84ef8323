"""
Presentation logic for the three tier carts and their comparative summary
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from match_presenter import match_stats
from models import CartItem, CartTier, SchoolListCart, SchoolListMatch


@dataclass(frozen=True)
class TierDisplay:
    label: str
    description: str
    icon: str
    recommended: bool = False


TIER_DISPLAY: Dict[CartTier, TierDisplay] = {
    CartTier.ESSENTIEL: TierDisplay("Essentiel", "Prix mini, l'indispensable", "💶"),
    CartTier.EQUILIBRE: TierDisplay(
        "Équilibré", "Meilleur rapport qualité/prix", "⚖️", recommended=True
    ),
    CartTier.PREMIUM: TierDisplay("Premium Durable", "Éco-responsable & qualité", "👑"),
}

RECOMMENDED_LABEL = "Recommandé"


@dataclass(frozen=True)
class CartSummary:
    cheapest: SchoolListCart
    priciest: SchoolListCart
    savings: float
    to_review: int


def sort_carts(carts: List[SchoolListCart]) -> List[SchoolListCart]:
    """Fixed tier order, whatever the prices"""
    return sorted(carts, key=lambda cart: cart.tier.rank)


def summarize_carts(
    carts: List[SchoolListCart], matches: List[SchoolListMatch]
) -> Optional[CartSummary]:
    """Cheapest/priciest comparison, or None when there is no cart"""
    if not carts:
        return None

    by_price = sorted(carts, key=lambda cart: cart.total_ttc)
    cheapest, priciest = by_price[0], by_price[-1]

    return CartSummary(
        cheapest=cheapest,
        priciest=priciest,
        savings=round(priciest.total_ttc - cheapest.total_ttc, 2),
        to_review=match_stats(matches)["to_review"],
    )


def cart_line_items(cart: SchoolListCart) -> List[CartItem]:
    """One entry per unit, for adding the cart to the shop basket"""
    lines = []
    for item in cart.items:
        lines.extend([item] * max(int(item.quantity or 1), 1))
    return lines

"""
Local assembly of the three tier carts from matched candidates
"""

import logging
from dataclasses import replace
from typing import Dict, List

from models import (
    CartItem,
    CartTier,
    ProductCandidate,
    SchoolListCart,
    SchoolListMatch,
    TIER_ORDER,
)

logger = logging.getLogger(__name__)


def assign_tiers(candidates: List[ProductCandidate]) -> List[ProductCandidate]:
    """
    Tag candidates (best score first) with a tier.

    Essentiel is the cheapest, premium the best-scored eco product (else the
    most expensive) and equilibre the best-scored remaining candidate.
    Later tags win when one product qualifies twice.
    """
    if not candidates:
        return []

    ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
    tiers: Dict[str, CartTier] = {}

    by_price = sorted(ranked, key=lambda c: c.price or 0.0)
    essentiel = by_price[0]
    tiers[essentiel.product_id] = CartTier.ESSENTIEL

    eco = [c for c in ranked if c.eco]
    premium = eco[0] if eco else by_price[-1]
    tiers[premium.product_id] = CartTier.PREMIUM

    equilibre = next(
        (
            c
            for c in ranked
            if c.product_id not in (essentiel.product_id, premium.product_id)
        ),
        ranked[min(1, len(ranked) - 1)],
    )
    tiers[equilibre.product_id] = CartTier.EQUILIBRE

    return [replace(c, tier=tiers.get(c.product_id)) for c in ranked]


def _pick(candidates: List[ProductCandidate], tier: CartTier) -> ProductCandidate:
    return next((c for c in candidates if c.tier == tier), candidates[0])


def build_tier_carts(
    upload_id: str, matches: List[SchoolListMatch]
) -> List[SchoolListCart]:
    """Three carts, one item per matched line, totals rounded to cents"""
    items: Dict[CartTier, List[CartItem]] = {tier: [] for tier in TIER_ORDER}

    for match in matches:
        if not match.candidates:
            continue
        candidates = match.candidates
        if all(c.tier is None for c in candidates):
            candidates = assign_tiers(candidates)
        for tier in TIER_ORDER:
            product = _pick(candidates, tier)
            items[tier].append(
                CartItem(
                    product_id=product.product_id,
                    product_name=product.name,
                    quantity=max(match.item_quantity, 1),
                    price=product.price or 0.0,
                    price_ttc=product.price_ttc,
                    eco=product.eco,
                    image_url=product.image_url,
                )
            )

    carts = []
    for tier in TIER_ORDER:
        tier_items = items[tier]
        total_ht = sum(i.price * i.quantity for i in tier_items)
        total_ttc = sum(i.unit_price_ttc * i.quantity for i in tier_items)
        carts.append(
            SchoolListCart(
                upload_id=upload_id,
                tier=tier,
                items=tier_items,
                items_count=len(tier_items),
                total_ttc=round(total_ttc, 2),
                total_ht=round(total_ht, 2),
            )
        )

    logger.info(
        f"🛒 Built carts for {upload_id}: "
        + ", ".join(f"{c.tier.value}={c.total_ttc:.2f}€" for c in carts)
    )
    return carts

"""Price calculation for grooming services."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from .duration import combo_key


def compute_price(services: Iterable[str] | None, price_list: Mapping[str, float] | None) -> float:
    """Sum the listed price of each service, 0 for anything not listed."""

    selected = list(services or [])
    prices = price_list or {}
    if len(selected) > 1:
        override = prices.get(combo_key(selected))
        if override is not None:
            return float(override)
    return float(sum(prices.get(service) or 0 for service in selected))


def _tier_max(tier: Mapping[str, Any]) -> float:
    limit = tier.get("max")
    return math.inf if limit is None else float(limit)


def select_weight_tier(weight_kg: float, tiers: Iterable[Mapping[str, Any]]) -> Mapping[str, Any] | None:
    """Return the first tier whose ``max`` covers ``weight_kg``.

    Heavier pets than every tier resolve to the last (catch-all) tier.
    """

    ordered = sorted(tiers, key=_tier_max)
    if not ordered:
        return None
    for tier in ordered:
        if weight_kg <= _tier_max(tier):
            return tier
    return ordered[-1]


def compute_cat_price(
    services: Iterable[str] | None,
    weight_kg: float | None,
    is_long_hair: bool,
    cat_pricing: Mapping[str, Any] | None,
    price_list: Mapping[str, float] | None = None,
) -> float:
    cat_pricing = cat_pricing or {}
    prices = price_list or {}
    addons = cat_pricing.get("addons") or {}
    bathing = cat_pricing.get("bathing_service", "bath")

    total = 0.0
    for service in services or []:
        tier = None
        if service == bathing:
            tier = select_weight_tier(float(weight_kg or 0), cat_pricing.get("weight_tiers") or [])
        if tier is not None:
            total += float(tier.get("long" if is_long_hair else "short") or 0)
        elif service in addons:
            total += float(addons[service] or 0)
        else:
            total += float(prices.get(service) or 0)
    return total

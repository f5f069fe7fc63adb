"""Default shop settings used when the store has no settings document yet."""

from __future__ import annotations

import copy
from typing import Any

COMBO_SEPARATOR = ","

DEFAULT_SETTINGS: dict[str, Any] = {
    "shop_name": "Grooming Desk",
    "queue_number_prefix": "Q",
    "service_types": ["bath", "haircut", "nail trim", "spa", "special care"],
    "price_list": {
        "bath": 200,
        "haircut": 300,
        "nail trim": 100,
        "spa": 500,
        "special care": 400,
    },
    "service_durations": {
        "bath": 60,
        "haircut": 90,
        "nail trim": 30,
        "spa": 45,
        "special care": 60,
        # combo overrides, keyed by sorted service names
        "bath,haircut": 120,
        "bath,haircut,nail trim": 150,
        "bath,spa": 120,
        "bath,haircut,spa": 180,
    },
    "default_working_hours": {"start": "09:00", "end": "18:00"},
    "cat_pricing": {
        "bathing_service": "bath",
        "weight_tiers": [
            {"max": 3.5, "short": 350, "long": 450},
            {"max": 5, "short": 400, "long": 500},
            {"max": 7, "short": 450, "long": 600},
            {"max": None, "short": 550, "long": 700},
        ],
        "addons": {"nail trim": 80, "spa": 300},
    },
}


def default_settings() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_SETTINGS)


def merge_settings(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``patch``; nested dicts merge one level deep.

    Inside a nested dict a ``None`` value removes the key, which is how a combo
    override is dropped from ``service_durations`` or ``price_list``.
    """

    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            table = {**merged[key], **copy.deepcopy(value)}
            merged[key] = {name: item for name, item in table.items() if item is not None}
        else:
            merged[key] = copy.deepcopy(value)
    return merged

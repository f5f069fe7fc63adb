"""Service duration lookup."""

from __future__ import annotations

from typing import Iterable, Mapping

from .settings import COMBO_SEPARATOR

DEFAULT_DURATION = 60


def combo_key(services: Iterable[str]) -> str:
    """Lookup key for a set of services: sorted names joined with a comma."""

    return COMBO_SEPARATOR.join(sorted(services))


def compute_duration(
    services: Iterable[str] | None, durations: Mapping[str, int] | None
) -> int:
    """Return the total minutes needed for ``services``.

    A combo entry for the exact sorted set wins outright. Otherwise individual
    durations are summed, unknown services adding nothing. When the duration
    table is missing every service counts as ``DEFAULT_DURATION``.
    """

    selected = list(services or [])
    if not selected:
        return DEFAULT_DURATION
    if not durations:
        return DEFAULT_DURATION * len(selected)

    override = durations.get(combo_key(selected))
    if override is not None:
        return int(override)
    return sum(int(durations.get(service) or 0) for service in selected)

"""Service history records derived from completed bookings."""

from __future__ import annotations

import datetime as dt
from typing import Any, Mapping

from .models import ServiceRecordPatch
from .pricing import compute_cat_price, compute_price
from .timeutils import isoformat, minutes_between, parse_timestamp


def record_duration(check_in_at: str | None, completed_at: str | None, now: dt.datetime) -> int:
    """Minutes spent grooming; a missing timestamp is replaced by ``now``."""

    start = parse_timestamp(check_in_at) or now
    end = parse_timestamp(completed_at) or now
    return minutes_between(start, end)


def price_for_services(
    services: list[str],
    settings: Mapping[str, Any],
    *,
    pet: Mapping[str, Any] | None = None,
    weight: float | None = None,
) -> float:
    """Cats with a known weight use the cat price table, everything else the price list."""

    cat_pricing = settings.get("cat_pricing")
    if pet and pet.get("species") == "cat" and cat_pricing:
        weight = weight if weight is not None else pet.get("weight")
        if weight is not None:
            return compute_cat_price(
                services,
                weight,
                bool(pet.get("long_hair")),
                cat_pricing,
                settings.get("price_list"),
            )
    return compute_price(services, settings.get("price_list"))


def derive_record(entry: Mapping[str, Any], *, price: float, now: dt.datetime) -> dict:
    """Build the service record for a queue entry that has just completed."""

    return {
        "queue_id": entry["id"],
        "customer_id": entry.get("customer_id"),
        "pet_id": entry.get("pet_id"),
        "groomer_id": entry.get("groomer_id"),
        "date": entry.get("date"),
        "services_performed": list(entry.get("services") or []),
        "booking_at": entry.get("booking_at"),
        "deposit_at": entry.get("deposit_at"),
        "check_in_at": entry.get("check_in_at"),
        "completed_at": entry.get("completed_at"),
        "duration": record_duration(entry.get("check_in_at"), entry.get("completed_at"), now),
        "check_in_weight": entry.get("check_in_weight"),
        "check_in_notes": entry.get("check_in_notes") or "",
        "completion_images": list(entry.get("completion_images") or []),
        "price": price,
        "notes": entry.get("notes") or "",
        "created_at": isoformat(now),
    }


def apply_record_patch(
    record: Mapping[str, Any],
    patch: ServiceRecordPatch,
    settings: Mapping[str, Any],
    *,
    pet: Mapping[str, Any] | None = None,
    now: dt.datetime,
) -> dict:
    """Return the field updates for a manual correction of ``record``."""

    patch.validate()
    updates = patch.changes()
    if "check_in_at" in updates or "completed_at" in updates:
        updates["duration"] = record_duration(
            updates.get("check_in_at", record.get("check_in_at")),
            updates.get("completed_at", record.get("completed_at")),
            now,
        )
    if "services" in updates:
        updates["services_performed"] = updates.pop("services")
        if patch.price is None:
            updates["price"] = price_for_services(
                updates["services_performed"],
                settings,
                pet=pet,
                weight=record.get("check_in_weight"),
            )
    updates["updated_at"] = isoformat(now)
    return updates

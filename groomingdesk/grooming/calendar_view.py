"""Month calendar data and calendar event payloads for appointments."""

from __future__ import annotations

import calendar
import datetime as dt
from collections import defaultdict
from typing import Any, Iterable, Mapping

from .timeutils import describe_duration, format_hhmm, parse_hhmm

MAX_DOTS_PER_DAY = 5
EVENT_FALLBACK_DURATION = 90
EVENT_LOCATION = "Grooming Desk"

BATH_SERVICE = "bath"
CUT_SERVICES = ("haircut", "shave")

# calendar colour ids keyed by (species, bath only)
EVENT_COLOURS = {
    ("dog", False): "3",
    ("cat", False): "1",
    ("dog", True): "6",
    ("cat", True): "5",
}
DEFAULT_COLOUR = "4"


def month_view(
    entries: Iterable[Mapping[str, Any]],
    *,
    year: int,
    month: int,
    today: dt.date | None = None,
    selected: str | None = None,
) -> dict:
    """Return a Sunday-first grid of weeks with the queue count for each day."""

    by_date: dict[str, list[Mapping[str, Any]]] = defaultdict(list)
    for entry in entries:
        if entry.get("date"):
            by_date[entry["date"]].append(entry)

    weeks = []
    for week in calendar.Calendar(firstweekday=calendar.SUNDAY).monthdatescalendar(year, month):
        cells = []
        for day in week:
            date = day.isoformat()
            in_month = day.month == month
            day_entries = sorted(by_date.get(date, []), key=lambda e: e.get("queue_number") or 0)
            cells.append(
                {
                    "date": date,
                    "day": day.day,
                    "in_month": in_month,
                    "is_today": in_month and day == today,
                    "is_selected": in_month and date == selected,
                    "queue_count": len(day_entries) if in_month else 0,
                    "statuses": [e.get("status") for e in day_entries[:MAX_DOTS_PER_DAY]]
                    if in_month
                    else [],
                }
            )
        weeks.append(cells)
    return {"year": year, "month": month, "weeks": weeks}


def is_bath_only(services: Iterable[str]) -> bool:
    services = list(services)
    has_cut = any(cut in service for service in services for cut in CUT_SERVICES)
    return BATH_SERVICE in services and not has_cut


def event_payload(
    entry: Mapping[str, Any],
    *,
    customer: Mapping[str, Any] | None = None,
    pet: Mapping[str, Any] | None = None,
    groomer: Mapping[str, Any] | None = None,
) -> dict:
    """Calendar event body for a booking with an appointment time."""

    customer = customer or {}
    pet = pet or {}
    services = list(entry.get("services") or [])
    service_text = ", ".join(services) or "-"
    species = pet.get("species") or "dog"
    start = parse_hhmm(entry["appointment_time"])
    end = start + int(entry.get("duration") or EVENT_FALLBACK_DURATION)
    day = dt.date.fromisoformat(entry["date"])
    start_dt = dt.datetime.combine(day, dt.time()) + dt.timedelta(minutes=start)
    end_dt = dt.datetime.combine(day, dt.time()) + dt.timedelta(minutes=end)

    transport = ""
    if entry.get("transport"):
        transport = f"Pick-up & drop-off {entry.get('transport_details') or ''}".strip()

    lines = [
        "Grooming appointment",
        f"Date {day.strftime('%d-%m-%Y')} at {format_hhmm(start)}",
        f"Duration {describe_duration(end - start)}",
    ]
    if transport:
        lines.append(transport)
    lines += [
        "_________________________",
        f"Pet: {species}",
        f"Breed: {pet.get('breed') or '-'}",
        f"Weight: {entry.get('check_in_weight') or pet.get('weight') or '-'}",
        f"Services: {service_text}",
        f"Pet name: {pet.get('name') or '-'}",
        f"Health notes: {entry.get('check_in_notes') or '-'}",
        f"Owner: {customer.get('name') or '-'}",
        f"Phone: {customer.get('phone') or '-'}",
        "_________________________",
        f"Notes: {entry.get('notes') or '-'}",
        f"Deposit: {entry.get('deposit_amount') if entry.get('deposit_amount') is not None else '-'}",
        f"Source: {entry.get('marketing_source') or '-'}",
        f"Taken by: {entry.get('booker_name') or (groomer or {}).get('name') or 'Admin'}",
    ]

    summary = " ".join(part for part in (species, pet.get("name") or "", service_text, transport) if part)
    return {
        "summary": summary,
        "description": "\n".join(lines),
        "location": EVENT_LOCATION,
        "start": {"dateTime": start_dt.isoformat()},
        "end": {"dateTime": end_dt.isoformat()},
        "colorId": EVENT_COLOURS.get((species, is_bath_only(services)), DEFAULT_COLOUR),
    }

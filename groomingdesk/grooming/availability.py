"""Groomer availability and free-slot search.

Intervals are half-open minute ranges ``[start, end)`` measured from midnight,
so back-to-back appointments (09:00-10:00 then 10:00-11:00) never clash.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from .duration import DEFAULT_DURATION, compute_duration
from .models import QueueStatus
from .timeutils import format_hhmm, parse_hhmm

logger = logging.getLogger(__name__)

SLOT_STEP_MINUTES = 30


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and start_b < end_a


def working_window(hours: Mapping[str, str] | None, default_hours: Mapping[str, str]) -> tuple[int, int]:
    hours = hours or default_hours
    return (
        parse_hhmm(hours.get("start") or default_hours["start"]),
        parse_hhmm(hours.get("end") or default_hours["end"]),
    )


def booking_interval(entry: Mapping[str, Any]) -> tuple[int, int] | None:
    """Return the minute range an entry occupies, or None without a start time."""

    if not entry.get("appointment_time"):
        return None
    start = parse_hhmm(entry["appointment_time"])
    return start, start + int(entry.get("duration") or DEFAULT_DURATION)


def available_groomers(
    *,
    start_time: str,
    duration: int,
    schedule: Mapping[str, Any] | None,
    groomers: Sequence[Mapping[str, Any]],
    bookings: Iterable[Mapping[str, Any]],
    default_hours: Mapping[str, str],
    exclude_queue_id: str | None = None,
) -> list[dict]:
    """Return groomers free for ``duration`` minutes from ``start_time``.

    ``bookings`` are the queue entries of the same date. Without a schedule
    every active groomer is returned and no conflict check is made. With one,
    groomers come back in schedule order.
    """

    active = [dict(groomer) for groomer in groomers if groomer.get("is_active")]
    if not schedule:
        return active

    start = parse_hhmm(start_time)
    end = start + int(duration)
    by_id = {groomer["id"]: groomer for groomer in active}
    busy: dict[str, list[tuple[int, int]]] = {}
    for entry in bookings:
        if entry.get("status") == QueueStatus.CANCELLED or entry.get("id") == exclude_queue_id:
            continue
        groomer_id = entry.get("assigned_groomer_id")
        interval = booking_interval(entry)
        if groomer_id and interval:
            busy.setdefault(groomer_id, []).append(interval)

    free = []
    for slot in schedule.get("groomers", []):
        groomer = by_id.get(slot.get("groomer_id"))
        if groomer is None:
            continue
        work_start, work_end = working_window(slot.get("working_hours"), default_hours)
        if start < work_start or end > work_end:
            continue
        if any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in busy.get(groomer["id"], [])):
            continue
        free.append(groomer)
    return free


def find_slots(
    *,
    services: Sequence[str],
    durations: Mapping[str, int] | None,
    schedule: Mapping[str, Any] | None,
    groomers: Sequence[Mapping[str, Any]],
    bookings: Sequence[Mapping[str, Any]],
    default_hours: Mapping[str, str],
    max_slots: int = 10,
    step: int = SLOT_STEP_MINUTES,
) -> list[dict]:
    """Scan the working day in ``step`` increments for start times with a free groomer."""

    duration = compute_duration(services, durations)
    first_hours = None
    if schedule and schedule.get("groomers"):
        first_hours = schedule["groomers"][0].get("working_hours")
    window_start, window_end = working_window(first_hours, default_hours)

    slots: list[dict] = []
    cursor = window_start
    while cursor + duration <= window_end and len(slots) < max_slots:
        time = format_hhmm(cursor)
        free = available_groomers(
            start_time=time,
            duration=duration,
            schedule=schedule,
            groomers=groomers,
            bookings=bookings,
            default_hours=default_hours,
        )
        if free:
            slots.append(
                {
                    "time": time,
                    "end_time": format_hhmm(cursor + duration),
                    "available_groomer_count": len(free),
                    "groomers": free,
                }
            )
        cursor += step
    logger.debug("Found %d slots for %s (%d min)", len(slots), ",".join(services), duration)
    return slots

"""Booking lifecycle: booking -> deposit -> check-in -> completed, or cancelled."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Mapping

from .availability import available_groomers
from .database import DataStore
from .duration import compute_duration
from .errors import NotFoundError, PersistenceError, TransitionError, ValidationError
from .models import (
    STAGE_TIMESTAMPS,
    TRANSITIONS,
    BookingRequest,
    CheckInPayload,
    CompletionPayload,
    DepositPayload,
    QueuePatch,
    QueueStatus,
    ServiceRecordPatch,
    parse_status,
    payload_from_mapping,
)
from .records import apply_record_patch, derive_record, price_for_services
from .timeutils import calculate_end_time, isoformat

logger = logging.getLogger(__name__)

# fields whose change can move an appointment onto another groomer's time
SCHEDULING_FIELDS = ("services", "date", "appointment_time", "assigned_groomer_id")

PAYLOAD_TYPES: dict[QueueStatus, type] = {
    QueueStatus.DEPOSIT: DepositPayload,
    QueueStatus.CHECK_IN: CheckInPayload,
    QueueStatus.COMPLETED: CompletionPayload,
}


class QueueWorkflow:
    """Applies status transitions and edits to queue entries in the store."""

    def __init__(
        self,
        store: DataStore,
        *,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.store = store
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _now(self) -> str:
        return isoformat(self.clock())

    def _require(self, collection: str, entity_id: str | None, label: str) -> dict:
        entity = self.store.get_entity(collection, entity_id) if entity_id else None
        if entity is None:
            raise NotFoundError(f"{label} not found")
        return entity

    def get_entry(self, queue_id: str) -> dict:
        return self._require("queue", queue_id, "Booking")

    def _timing(self, services: list[str], appointment_time: str | None) -> dict:
        settings = self.store.get_settings()
        duration = compute_duration(services, settings.get("service_durations"))
        return {
            "duration": duration,
            "estimated_end_time": (
                calculate_end_time(appointment_time, duration) if appointment_time else None
            ),
        }

    def _schedule(self, date: str) -> dict | None:
        schedules = self.store.query("daily_schedules", date=date)
        return schedules[0] if schedules else None

    def _check_groomer_free(
        self,
        *,
        groomer_id: str,
        date: str,
        appointment_time: str,
        duration: int,
        exclude_queue_id: str | None = None,
    ) -> None:
        groomer = self._require("groomers", groomer_id, "Groomer")
        settings = self.store.get_settings()
        free = available_groomers(
            start_time=appointment_time,
            duration=duration,
            schedule=self._schedule(date),
            groomers=self.store.get_collection("groomers"),
            bookings=self.store.query("queue", date=date),
            default_hours=settings["default_working_hours"],
            exclude_queue_id=exclude_queue_id,
        )
        if groomer_id not in {g["id"] for g in free}:
            raise ValidationError(
                f"{groomer['name']} is not available at {appointment_time} on {date}",
                field="assigned_groomer_id",
            )

    def _stamp(self, entry: Mapping[str, Any], status: QueueStatus, updates: dict, now: str) -> None:
        field = STAGE_TIMESTAMPS[status]
        if not entry.get(field):
            updates[field] = now
        updates["status"] = status.value
        updates["updated_at"] = now

    def _save(self, entry: Mapping[str, Any], updates: dict) -> dict:
        updated = self.store.update_entity("queue", entry["id"], updates)
        if updated is None:
            raise NotFoundError("Booking not found")
        return updated

    def _next_queue_number(self, date: str) -> int:
        existing = self.store.query("queue", date=date)
        floor = max([len(existing)] + [int(e.get("queue_number") or 0) for e in existing])
        return self.store.next_sequence(f"queue_{date}", floor=floor)

    def _check_transition(self, entry: Mapping[str, Any], target: QueueStatus) -> None:
        current = QueueStatus(entry["status"])
        if target not in TRANSITIONS[current]:
            raise TransitionError(
                f"Booking #{entry.get('queue_number')} cannot move from "
                f"{current.value} to {target.value}",
                field="status",
            )

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------
    def create_booking(self, request: BookingRequest) -> dict:
        request.validate()
        self._require("customers", request.customer_id, "Customer")
        pet = self._require("pets", request.pet_id, "Pet")
        if pet.get("customer_id") != request.customer_id:
            raise ValidationError("Pet does not belong to the selected customer", field="pet_id")

        timing = self._timing(request.services, request.appointment_time)
        if request.assigned_groomer_id and request.appointment_time:
            self._check_groomer_free(
                groomer_id=request.assigned_groomer_id,
                date=request.date,
                appointment_time=request.appointment_time,
                duration=timing["duration"],
            )
        elif request.assigned_groomer_id:
            self._require("groomers", request.assigned_groomer_id, "Groomer")

        queue_number = self._next_queue_number(request.date)

        now = self._now()
        entry = {
            "queue_number": queue_number,
            "date": request.date,
            "appointment_time": request.appointment_time,
            **timing,
            "customer_id": request.customer_id,
            "pet_id": request.pet_id,
            "assigned_groomer_id": request.assigned_groomer_id,
            "groomer_id": None,
            "services": list(request.services),
            "status": QueueStatus.BOOKING.value,
            "booking_at": now,
            "deposit_at": None,
            "check_in_at": None,
            "completed_at": None,
            "cancelled_at": None,
            "deposit_amount": None,
            "deposit_method": None,
            "check_in_weight": None,
            "check_in_notes": "",
            "completion_images": [],
            "priority": bool(request.priority),
            "transport": bool(request.transport),
            "transport_details": request.transport_details or "",
            "notes": request.notes or "",
            "marketing_source": request.marketing_source,
            "booker_name": request.booker_name,
            "service_record_id": None,
            "created_at": now,
            "updated_at": now,
        }
        created = self.store.add_entity("queue", entry)
        logger.info(
            "Booked queue #%s on %s at %s (%s min)",
            queue_number,
            request.date,
            request.appointment_time or "-",
            timing["duration"],
        )
        return created

    def edit_booking(self, queue_id: str, patch: QueuePatch) -> dict:
        """Change details of an open booking; status and booking_at are kept."""

        entry = self.get_entry(queue_id)
        if QueueStatus(entry["status"]).is_terminal:
            raise TransitionError("Completed or cancelled bookings cannot be edited", field="status")
        patch.validate()
        changes = patch.changes()
        merged = {**entry, **changes}
        updates = {**changes, **self._timing(merged["services"], merged.get("appointment_time"))}

        rescheduled = any(name in changes for name in SCHEDULING_FIELDS)
        if rescheduled and merged.get("assigned_groomer_id") and merged.get("appointment_time"):
            self._check_groomer_free(
                groomer_id=merged["assigned_groomer_id"],
                date=merged["date"],
                appointment_time=merged["appointment_time"],
                duration=updates["duration"],
                exclude_queue_id=queue_id,
            )
        elif changes.get("assigned_groomer_id"):
            self._require("groomers", changes["assigned_groomer_id"], "Groomer")

        # queue numbers are unique per date
        if changes.get("date") and changes["date"] != entry["date"]:
            updates["queue_number"] = self._next_queue_number(changes["date"])

        updates["updated_at"] = self._now()
        updated = self._save(entry, updates)
        logger.info("Edited queue #%s (%s)", entry["queue_number"], ", ".join(sorted(changes)))
        return updated

    def delete_booking(self, queue_id: str) -> None:
        entry = self.get_entry(queue_id)
        self.store.delete_entity("queue", queue_id)
        logger.info("Deleted queue #%s on %s", entry["queue_number"], entry["date"])

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def advance_status(
        self,
        queue_id: str,
        target: str | QueueStatus,
        payload: Any = None,
    ) -> dict:
        status = parse_status(target)
        if status is QueueStatus.CANCELLED:
            reason = payload.get("reason") if isinstance(payload, Mapping) else None
            return self.cancel_booking(queue_id, reason=reason)
        if status is QueueStatus.BOOKING:
            raise TransitionError("Bookings cannot return to the booking stage", field="status")

        entry = self.get_entry(queue_id)
        self._check_transition(entry, status)
        payload_type = PAYLOAD_TYPES[status]
        if not isinstance(payload, payload_type):
            payload = payload_from_mapping(payload_type, payload)
        payload.validate()

        if status is QueueStatus.DEPOSIT:
            updated = self._enter_deposit(entry, payload)
        elif status is QueueStatus.CHECK_IN:
            updated = self._enter_check_in(entry, payload)
        else:
            updated = self._enter_completed(entry, payload)
        logger.info(
            "Queue #%s: %s -> %s", entry["queue_number"], entry["status"], status.value
        )
        return updated

    def _enter_deposit(self, entry: dict, payload: DepositPayload) -> dict:
        updates = {"deposit_amount": payload.amount, "deposit_method": payload.method}
        self._stamp(entry, QueueStatus.DEPOSIT, updates, self._now())
        return self._save(entry, updates)

    def _enter_check_in(self, entry: dict, payload: CheckInPayload) -> dict:
        pet = self._require("pets", entry.get("pet_id"), "Pet")
        updates: dict[str, Any] = {
            "check_in_weight": payload.weight,
            "check_in_notes": payload.notes or "",
        }
        if payload.services:
            updates["services"] = payload.services
            updates.update(self._timing(payload.services, entry.get("appointment_time")))
        self._stamp(entry, QueueStatus.CHECK_IN, updates, self._now())

        self.store.update_entity("pets", pet["id"], {"weight": payload.weight})
        try:
            return self._save(entry, updates)
        except PersistenceError:
            self.store.update_entity("pets", pet["id"], {"weight": pet.get("weight")})
            raise

    def _completion_images(self, images: list[Any], now: str) -> list[dict]:
        attached = []
        for image in images or []:
            data = image.get("image_data") if isinstance(image, Mapping) else image
            if data:
                attached.append({"id": self.store.generate_id(), "image_data": data, "timestamp": now})
        return attached

    def _enter_completed(self, entry: dict, payload: CompletionPayload) -> dict:
        self._require("groomers", payload.groomer_id, "Groomer")
        now_dt = self.clock()
        now = isoformat(now_dt)
        updates: dict[str, Any] = {
            "groomer_id": payload.groomer_id,
            "completion_images": list(entry.get("completion_images") or [])
            + self._completion_images(payload.images, now),
        }
        if payload.notes is not None:
            updates["notes"] = payload.notes
        self._stamp(entry, QueueStatus.COMPLETED, updates, now)

        merged = {**entry, **updates}
        settings = self.store.get_settings()
        pet = self.store.get_entity("pets", entry.get("pet_id"))
        price = price_for_services(
            merged["services"], settings, pet=pet, weight=merged.get("check_in_weight")
        )
        record = self.store.add_entity(
            "service_records", derive_record(merged, price=price, now=now_dt)
        )
        updates["service_record_id"] = record["id"]
        try:
            updated = self._save(entry, updates)
        except PersistenceError:
            self.store.delete_entity("service_records", record["id"])
            raise
        logger.info(
            "Service record %s created for queue #%s (%s min, %.2f)",
            record["id"],
            entry["queue_number"],
            record["duration"],
            price,
        )

        if entry.get("customer_id"):
            self.store.update_entity(
                "customers", entry["customer_id"], {"last_visit": merged["completed_at"]}
            )
        return updated

    def cancel_booking(self, queue_id: str, *, reason: str | None = None) -> dict:
        entry = self.get_entry(queue_id)
        self._check_transition(entry, QueueStatus.CANCELLED)
        updates: dict[str, Any] = {}
        if reason:
            updates["cancel_reason"] = reason
        self._stamp(entry, QueueStatus.CANCELLED, updates, self._now())
        updated = self._save(entry, updates)
        logger.info("Queue #%s cancelled", entry["queue_number"])
        return updated

    # ------------------------------------------------------------------
    # Service history corrections
    # ------------------------------------------------------------------
    def edit_service_record(self, record_id: str, patch: ServiceRecordPatch) -> dict:
        record = self._require("service_records", record_id, "Service record")
        if patch.groomer_id:
            self._require("groomers", patch.groomer_id, "Groomer")
        pet = self.store.get_entity("pets", record.get("pet_id")) if record.get("pet_id") else None
        updates = apply_record_patch(
            record, patch, self.store.get_settings(), pet=pet, now=self.clock()
        )
        updated = self.store.update_entity("service_records", record_id, updates)
        if updated is None:
            raise NotFoundError("Service record not found")
        logger.info("Service record %s corrected (%s)", record_id, ", ".join(sorted(updates)))
        return updated

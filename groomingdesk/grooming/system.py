"""Core orchestration logic for the grooming front desk."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Mapping, Sequence

from . import calendar_view as calendar_module
from .availability import SLOT_STEP_MINUTES, available_groomers, find_slots
from .config import Config
from .database import DataStore, get_connection, initialize_database
from .duration import compute_duration
from .errors import NotFoundError, ValidationError
from .logbook import LogListener, RingBufferHandler, configure_logging, detach
from .models import (
    WAITING_STATUSES,
    BookingRequest,
    QueuePatch,
    QueueStatus,
    ServiceRecordPatch,
    payload_from_mapping,
)
from .pricing import compute_cat_price, compute_price
from .timeutils import isoformat, parse_date, parse_hhmm, today_string
from .workflow import QueueWorkflow

logger = logging.getLogger(__name__)

SPECIES = ("dog", "cat", "other")
SPECIALTIES = ("dog", "cat", "both")

CUSTOMER_FIELDS = ("name", "alias", "phone", "email", "address")
PET_FIELDS = (
    "customer_id",
    "name",
    "species",
    "breed",
    "weight",
    "color",
    "birth_date",
    "long_hair",
    "notes",
)
GROOMER_FIELDS = (
    "name",
    "nickname",
    "phone",
    "email",
    "specialties",
    "experience_level",
    "is_active",
    "hire_date",
    "notes",
)


def pick_fields(changes: Mapping[str, Any], allowed: Sequence[str]) -> dict:
    """Copy of ``changes`` that rejects any key outside ``allowed``."""

    unknown = set(changes) - set(allowed)
    if unknown:
        names = sorted(unknown)
        raise ValidationError(f"Unknown field(s): {', '.join(names)}", field=names[0])
    return dict(changes)


class GroomingDesk:
    """High level façade that exposes front desk behaviours.

    One instance is created per session and handed to the UI layer; it owns
    the store, the booking workflow and the in-memory log buffer.
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        clock: Callable[[], dt.datetime] | None = None,
        log_handler: RingBufferHandler | None = None,
        slot_step: int = SLOT_STEP_MINUTES,
        max_slots: int = 10,
    ) -> None:
        self.conn = get_connection(db_path)
        initialize_database(self.conn)
        self.store = DataStore(self.conn)
        self.clock = clock or dt.datetime.now
        self.workflow = QueueWorkflow(self.store, clock=self.clock)
        self.log_handler = log_handler
        self.slot_step = slot_step
        self.max_slots = max_slots

    @classmethod
    def from_config(cls, config: Config) -> "GroomingDesk":
        handler = configure_logging(config.log_level, config.log_buffer_size)
        return cls(
            config.db_path,
            log_handler=handler,
            slot_step=config.slot_step_minutes,
            max_slots=config.max_slots,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _now(self) -> str:
        return isoformat(self.clock())

    def _today(self) -> str:
        return today_string(self.clock())

    def _require(self, collection: str, entity_id: str, label: str) -> dict:
        entity = self.store.get_entity(collection, entity_id) if entity_id else None
        if entity is None:
            raise NotFoundError(f"{label} not found")
        return entity

    def _update(self, collection: str, entity_id: str, label: str, changes: dict) -> dict:
        self._require(collection, entity_id, label)
        updated = self.store.update_entity(collection, entity_id, changes)
        if updated is None:
            raise NotFoundError(f"{label} not found")
        return updated

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def get_settings(self) -> dict:
        return self.store.get_settings()

    def update_settings(self, patch: Mapping[str, Any]) -> dict:
        settings = self.store.save_settings(dict(patch))
        logger.info("Settings updated (%s)", ", ".join(sorted(patch)))
        return settings

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------
    def add_customer(
        self,
        *,
        name: str = "",
        phone: str | None = None,
        email: str | None = None,
        address: str | None = None,
        alias: str | None = None,
    ) -> dict:
        if not (name or "").strip():
            raise ValidationError("Please enter the customer's name", field="name")
        now = self._now()
        return self.store.add_entity(
            "customers",
            {
                "name": name.strip(),
                "alias": alias,
                "phone": phone,
                "email": email.lower() if email else None,
                "address": address,
                "created_at": now,
                "last_visit": now,
            },
        )

    def get_customer(self, customer_id: str) -> dict:
        return self._require("customers", customer_id, "Customer")

    def list_customers(self) -> list[dict]:
        return sorted(self.store.get_collection("customers"), key=lambda c: c["name"].lower())

    def update_customer(self, customer_id: str, **changes: Any) -> dict:
        changes = pick_fields(changes, CUSTOMER_FIELDS)
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("Please enter the customer's name", field="name")
        return self._update("customers", customer_id, "Customer", changes)

    def delete_customer(self, customer_id: str) -> None:
        self.get_customer(customer_id)
        self.store.delete_entity("customers", customer_id)

    # ------------------------------------------------------------------
    # Pets
    # ------------------------------------------------------------------
    def _check_pet_fields(self, fields: dict[str, Any]) -> None:
        if "species" in fields and fields["species"] not in SPECIES:
            raise ValidationError("Species must be dog, cat or other", field="species")
        if fields.get("weight") not in (None, ""):
            try:
                fields["weight"] = float(fields["weight"])
            except (TypeError, ValueError):
                raise ValidationError("Weight must be a number", field="weight") from None
            if fields["weight"] < 0:
                raise ValidationError("Weight cannot be negative", field="weight")
        elif "weight" in fields:
            fields["weight"] = None
        if "customer_id" in fields:
            if not fields["customer_id"]:
                raise ValidationError("Please select a customer", field="customer_id")
            self.get_customer(fields["customer_id"])

    def add_pet(
        self,
        *,
        customer_id: str = "",
        name: str = "",
        species: str = "dog",
        breed: str | None = None,
        weight: float | None = None,
        color: str | None = None,
        birth_date: str | None = None,
        long_hair: bool = False,
        notes: str | None = None,
    ) -> dict:
        if not (name or "").strip():
            raise ValidationError("Please enter the pet's name", field="name")
        pet = {
            "customer_id": customer_id,
            "name": name.strip(),
            "species": species,
            "breed": breed,
            "weight": weight,
            "color": color,
            "birth_date": birth_date,
            "long_hair": bool(long_hair),
            "notes": notes,
        }
        self._check_pet_fields(pet)
        pet["created_at"] = self._now()
        return self.store.add_entity("pets", pet)

    def get_pet(self, pet_id: str) -> dict:
        return self._require("pets", pet_id, "Pet")

    def list_pets(self, *, customer_id: str | None = None) -> list[dict]:
        if customer_id is not None:
            return self.store.query("pets", customer_id=customer_id)
        return self.store.get_collection("pets")

    def update_pet(self, pet_id: str, **changes: Any) -> dict:
        changes = pick_fields(changes, PET_FIELDS)
        self._check_pet_fields(changes)
        return self._update("pets", pet_id, "Pet", changes)

    def delete_pet(self, pet_id: str) -> None:
        self.get_pet(pet_id)
        self.store.delete_entity("pets", pet_id)

    # ------------------------------------------------------------------
    # Groomers & daily schedules
    # ------------------------------------------------------------------
    def _check_specialties(self, specialties: Sequence[str]) -> list[str]:
        specialties = list(specialties)
        if any(item not in SPECIALTIES for item in specialties):
            raise ValidationError("Specialties must be dog, cat or both", field="specialties")
        return specialties

    def add_groomer(
        self,
        *,
        name: str = "",
        nickname: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        specialties: Sequence[str] = ("dog",),
        experience_level: str | None = None,
        is_active: bool = True,
        hire_date: str | None = None,
        notes: str | None = None,
    ) -> dict:
        if not (name or "").strip():
            raise ValidationError("Please enter the groomer's name", field="name")
        return self.store.add_entity(
            "groomers",
            {
                "name": name.strip(),
                "nickname": nickname,
                "phone": phone,
                "email": email,
                "specialties": self._check_specialties(specialties),
                "experience_level": experience_level,
                "is_active": bool(is_active),
                "hire_date": hire_date,
                "notes": notes,
                "created_at": self._now(),
            },
        )

    def get_groomer(self, groomer_id: str) -> dict:
        return self._require("groomers", groomer_id, "Groomer")

    def list_groomers(self, *, active_only: bool = False) -> list[dict]:
        groomers = self.store.get_collection("groomers")
        if active_only:
            return [groomer for groomer in groomers if groomer.get("is_active")]
        return groomers

    def update_groomer(self, groomer_id: str, **changes: Any) -> dict:
        changes = pick_fields(changes, GROOMER_FIELDS)
        if "specialties" in changes:
            changes["specialties"] = self._check_specialties(changes["specialties"])
        return self._update("groomers", groomer_id, "Groomer", changes)

    def delete_groomer(self, groomer_id: str) -> None:
        self.get_groomer(groomer_id)
        self.store.delete_entity("groomers", groomer_id)

    def get_daily_schedule(self, date: str) -> dict | None:
        schedules = self.store.query("daily_schedules", date=date)
        return schedules[0] if schedules else None

    def set_daily_schedule(self, date: str, groomers: Sequence[Mapping[str, Any]]) -> dict:
        """Create or replace the staff list working on ``date``."""

        parse_date(date)
        default_hours = self.get_settings()["default_working_hours"]
        rows = []
        for item in groomers:
            groomer = self.get_groomer(item.get("groomer_id"))
            hours = dict(item.get("working_hours") or default_hours)
            start = parse_hhmm(hours.get("start", ""), field="working_hours")
            end = parse_hhmm(hours.get("end", ""), field="working_hours")
            if end <= start:
                raise ValidationError(
                    f"Working hours for {groomer['name']} must end after they start",
                    field="working_hours",
                )
            rows.append(
                {
                    "groomer_id": groomer["id"],
                    "name": item.get("name") or groomer["name"],
                    "working_hours": {"start": hours["start"], "end": hours["end"]},
                    "status": "available",
                }
            )
        schedule = {"date": date, "groomers": rows, "total_capacity": len(rows)}

        existing = self.get_daily_schedule(date)
        if existing:
            saved = self.store.update_entity("daily_schedules", existing["id"], schedule)
        else:
            saved = self.store.add_entity("daily_schedules", schedule)
        logger.info("Schedule for %s set with %d groomers", date, len(rows))
        return saved

    # ------------------------------------------------------------------
    # Scheduling queries
    # ------------------------------------------------------------------
    def compute_duration(self, services: Sequence[str] | None) -> int:
        return compute_duration(services, self.get_settings().get("service_durations"))

    def compute_price(self, services: Sequence[str] | None) -> float:
        return compute_price(services, self.get_settings().get("price_list"))

    def compute_cat_price(
        self, services: Sequence[str] | None, weight_kg: float | None, is_long_hair: bool
    ) -> float:
        settings = self.get_settings()
        return compute_cat_price(
            services, weight_kg, is_long_hair, settings.get("cat_pricing"), settings.get("price_list")
        )

    def available_groomers(
        self,
        date: str,
        start_time: str,
        duration: int,
        *,
        exclude_queue_id: str | None = None,
    ) -> list[dict]:
        return available_groomers(
            start_time=start_time,
            duration=duration,
            schedule=self.get_daily_schedule(date),
            groomers=self.store.get_collection("groomers"),
            bookings=self.store.query("queue", date=date),
            default_hours=self.get_settings()["default_working_hours"],
            exclude_queue_id=exclude_queue_id,
        )

    def find_slots(
        self, date: str, services: Sequence[str], max_slots: int | None = None
    ) -> list[dict]:
        settings = self.get_settings()
        return find_slots(
            services=list(services),
            durations=settings.get("service_durations"),
            schedule=self.get_daily_schedule(date),
            groomers=self.store.get_collection("groomers"),
            bookings=self.store.query("queue", date=date),
            default_hours=settings["default_working_hours"],
            max_slots=max_slots or self.max_slots,
            step=self.slot_step,
        )

    # ------------------------------------------------------------------
    # Booking lifecycle
    # ------------------------------------------------------------------
    def create_booking(self, request: BookingRequest | Mapping[str, Any]) -> dict:
        if not isinstance(request, BookingRequest):
            request = payload_from_mapping(
                BookingRequest,
                {"customer_id": None, "pet_id": None, "services": [], "date": None, **request},
            )
        return self.workflow.create_booking(request)

    def advance_status(self, queue_id: str, target: str | QueueStatus, payload: Any = None) -> dict:
        return self.workflow.advance_status(queue_id, target, payload)

    def cancel_booking(self, queue_id: str, *, reason: str | None = None) -> dict:
        return self.workflow.cancel_booking(queue_id, reason=reason)

    def edit_booking(self, queue_id: str, patch: QueuePatch | Mapping[str, Any]) -> dict:
        if not isinstance(patch, QueuePatch):
            patch = payload_from_mapping(QueuePatch, patch)
        return self.workflow.edit_booking(queue_id, patch)

    def delete_booking(self, queue_id: str) -> None:
        self.workflow.delete_booking(queue_id)

    def edit_service_record(
        self, record_id: str, patch: ServiceRecordPatch | Mapping[str, Any]
    ) -> dict:
        if not isinstance(patch, ServiceRecordPatch):
            patch = payload_from_mapping(ServiceRecordPatch, patch)
        return self.workflow.edit_service_record(record_id, patch)

    # ------------------------------------------------------------------
    # Queue & history queries
    # ------------------------------------------------------------------
    def get_queue_entry(self, queue_id: str) -> dict:
        return self.workflow.get_entry(queue_id)

    def list_queue(self, *, date: str | None = None) -> list[dict]:
        entries = (
            self.store.query("queue", date=date) if date else self.store.get_collection("queue")
        )
        return sorted(entries, key=lambda e: (e["date"], e["queue_number"]))

    def list_queue_between(self, start_date: str, end_date: str) -> list[dict]:
        entries = self.store.query_range("queue", "date", start_date, end_date)
        return sorted(entries, key=lambda e: (e["date"], e["queue_number"]))

    def today_queue(self) -> list[dict]:
        return self.list_queue(date=self._today())

    def search_queue(self, term: str, *, date: str | None = None) -> list[dict]:
        """Match customer name, pet name or queue number against ``term``."""

        entries = self.list_queue(date=date or self._today())
        term = (term or "").strip().lower()
        if not term:
            return entries
        customers = {c["id"]: c for c in self.store.get_collection("customers")}
        pets = {p["id"]: p for p in self.store.get_collection("pets")}
        matches = []
        for entry in entries:
            customer = customers.get(entry.get("customer_id")) or {}
            pet = pets.get(entry.get("pet_id")) or {}
            haystack = (
                (customer.get("name") or "").lower(),
                (pet.get("name") or "").lower(),
                str(entry.get("queue_number")),
            )
            if any(term in value for value in haystack):
                matches.append(entry)
        return matches

    def get_service_record(self, record_id: str) -> dict:
        return self._require("service_records", record_id, "Service record")

    def list_service_records(
        self,
        *,
        customer_id: str | None = None,
        groomer_id: str | None = None,
        pet_id: str | None = None,
    ) -> list[dict]:
        filters = {
            key: value
            for key, value in (
                ("customer_id", customer_id),
                ("groomer_id", groomer_id),
                ("pet_id", pet_id),
            )
            if value is not None
        }
        records = self.store.query("service_records", **filters)
        return sorted(records, key=lambda r: r.get("completed_at") or "", reverse=True)

    # ------------------------------------------------------------------
    # Dashboard & calendar
    # ------------------------------------------------------------------
    def dashboard(self, *, date: str | None = None) -> dict:
        """Return a snapshot summary for the dashboard view."""

        date = date or self._today()
        entries = self.list_queue(date=date)
        waiting = [e for e in entries if e["status"] in {s.value for s in WAITING_STATUSES}]
        return {
            "date": date,
            "queue_total": len(entries),
            "waiting": len(waiting),
            "completed": sum(1 for e in entries if e["status"] == QueueStatus.COMPLETED.value),
            "cancelled": sum(1 for e in entries if e["status"] == QueueStatus.CANCELLED.value),
            "total_customers": len(self.store.get_collection("customers")),
            "queue": entries,
        }

    def calendar_view(self, *, year: int, month: int, selected: str | None = None) -> dict:
        start = dt.date(year, month, 1)
        end = dt.date(year + month // 12, month % 12 + 1, 1) - dt.timedelta(days=1)
        entries = self.list_queue_between(start.isoformat(), end.isoformat())
        return calendar_module.month_view(
            entries,
            year=year,
            month=month,
            today=self.clock().date(),
            selected=selected,
        )

    def calendar_event(self, queue_id: str) -> dict:
        entry = self.get_queue_entry(queue_id)
        if not entry.get("appointment_time"):
            raise ValidationError("Booking has no appointment time", field="appointment_time")
        groomer_id = entry.get("groomer_id") or entry.get("assigned_groomer_id")
        return calendar_module.event_payload(
            entry,
            customer=self.store.get_entity("customers", entry["customer_id"]),
            pet=self.store.get_entity("pets", entry["pet_id"]),
            groomer=self.store.get_entity("groomers", groomer_id) if groomer_id else None,
        )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    def recent_events(self, limit: int | None = None) -> list[dict]:
        if self.log_handler is None:
            return []
        return self.log_handler.recent(limit)

    def clear_events(self) -> None:
        if self.log_handler is not None:
            self.log_handler.clear()

    def add_log_listener(self, listener: LogListener) -> None:
        if self.log_handler is None:
            raise RuntimeError("Logging is not configured for this desk")
        self.log_handler.add_listener(listener)

    # ------------------------------------------------------------------
    # Demo data
    # ------------------------------------------------------------------
    def load_sample_data(self) -> bool:
        """Seed a couple of customers, pets and groomers into an empty desk."""

        if self.store.get_collection("customers"):
            return False
        first = self.add_customer(
            name="Somchai Jaidee",
            phone="081-234-5678",
            email="somchai@example.com",
            address="123 Sukhumvit Road, Bangkok",
        )
        second = self.add_customer(
            name="Somying Rakstat",
            phone="089-876-5432",
            email="somying@example.com",
            address="456 Rama 9 Road, Bangkok",
        )
        self.add_pet(
            customer_id=first["id"],
            name="Mali",
            species="dog",
            breed="Chihuahua",
            birth_date="2020-05-15",
            weight=3.5,
            color="brown",
            notes="Afraid of water, needs time to settle",
        )
        self.add_pet(
            customer_id=second["id"],
            name="Jomkwan",
            species="cat",
            breed="Persian",
            birth_date="2021-03-20",
            weight=4.2,
            color="white",
            long_hair=True,
            notes="Allergic to some medication",
        )
        self.add_groomer(
            name="Wichai",
            phone="091-111-2222",
            specialties=["dog", "cat"],
            experience_level="expert",
            hire_date="2020-01-15",
            notes="Large breed specialist",
        )
        self.add_groomer(
            name="Suda",
            phone="092-333-4444",
            specialties=["cat"],
            experience_level="senior",
            hire_date="2021-06-01",
            notes="Cat specialist",
        )
        logger.info("Sample data loaded")
        return True

    def close(self) -> None:
        if self.log_handler is not None:
            detach(self.log_handler)
        self.conn.close()

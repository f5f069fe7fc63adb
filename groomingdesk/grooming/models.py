"""Queue statuses, transition table and typed payloads for the workflow."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, TypeVar

from .errors import ValidationError
from .timeutils import parse_date, parse_hhmm, parse_timestamp


class QueueStatus(str, Enum):
    BOOKING = "booking"
    DEPOSIT = "deposit"
    CHECK_IN = "check-in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self]


TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.BOOKING: frozenset({QueueStatus.DEPOSIT, QueueStatus.CANCELLED}),
    QueueStatus.DEPOSIT: frozenset(
        {QueueStatus.DEPOSIT, QueueStatus.CHECK_IN, QueueStatus.CANCELLED}
    ),
    QueueStatus.CHECK_IN: frozenset(
        {QueueStatus.CHECK_IN, QueueStatus.COMPLETED, QueueStatus.CANCELLED}
    ),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.CANCELLED: frozenset(),
}

# stage -> timestamp field recorded the first time the stage is entered
STAGE_TIMESTAMPS: dict[QueueStatus, str] = {
    QueueStatus.BOOKING: "booking_at",
    QueueStatus.DEPOSIT: "deposit_at",
    QueueStatus.CHECK_IN: "check_in_at",
    QueueStatus.COMPLETED: "completed_at",
    QueueStatus.CANCELLED: "cancelled_at",
}

WAITING_STATUSES = (QueueStatus.BOOKING, QueueStatus.DEPOSIT, QueueStatus.CHECK_IN)


def parse_status(value: str | QueueStatus) -> QueueStatus:
    try:
        return QueueStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown status '{value}'", field="status") from None


P = TypeVar("P")


def payload_from_mapping(cls: type[P], data: Mapping[str, Any] | None) -> P:
    """Build a payload dataclass from request data, ignoring unknown keys."""

    names = {f.name for f in dataclasses.fields(cls)}
    return cls(**{key: value for key, value in (data or {}).items() if key in names})


def _clean_services(services: Any) -> list[str]:
    if isinstance(services, str):
        services = [services]
    return [str(s).strip() for s in services or [] if str(s).strip()]


@dataclass
class BookingRequest:
    customer_id: str | None
    pet_id: str | None
    services: list[str]
    date: str | None
    appointment_time: str | None = None
    assigned_groomer_id: str | None = None
    priority: bool = False
    transport: bool = False
    transport_details: str = ""
    notes: str = ""
    marketing_source: str | None = None
    booker_name: str | None = None

    def __post_init__(self) -> None:
        self.services = _clean_services(self.services)
        self.appointment_time = self.appointment_time or None
        self.assigned_groomer_id = self.assigned_groomer_id or None

    def validation_errors(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not self.customer_id:
            errors["customer_id"] = "Please select a customer"
        if not self.pet_id:
            errors["pet_id"] = "Please select a pet"
        if not self.services:
            errors["services"] = "Please select at least one service"
        if not self.date:
            errors["date"] = "Please select an appointment date"
        return errors

    def validate(self) -> None:
        errors = self.validation_errors()
        if errors:
            field_name, message = next(iter(errors.items()))
            raise ValidationError(message, field=field_name)
        parse_date(self.date)
        if self.appointment_time:
            parse_hhmm(self.appointment_time, field="appointment_time")


@dataclass
class DepositPayload:
    amount: float = 0
    method: str | None = None

    def validate(self) -> None:
        try:
            self.amount = float(self.amount or 0)
        except (TypeError, ValueError):
            raise ValidationError("Deposit amount must be a number", field="amount") from None
        if self.amount < 0:
            raise ValidationError("Deposit amount cannot be negative", field="amount")


@dataclass
class CheckInPayload:
    weight: float | None = None
    notes: str = ""
    services: list[str] | None = None

    def validate(self) -> None:
        try:
            self.weight = float(self.weight) if self.weight not in (None, "") else None
        except (TypeError, ValueError):
            self.weight = None
        if not self.weight or self.weight <= 0:
            raise ValidationError("Please enter the pet's weight", field="weight")
        if self.services is not None:
            self.services = _clean_services(self.services)
            if not self.services:
                raise ValidationError("Please select at least one service", field="services")


@dataclass
class CompletionPayload:
    groomer_id: str | None = None
    images: list[str] = field(default_factory=list)
    notes: str | None = None

    def validate(self) -> None:
        if not self.groomer_id:
            raise ValidationError(
                "Please choose the groomer who performed the service", field="groomer_id"
            )


@dataclass
class QueuePatch:
    """Partial update of a booking. ``None`` leaves a field unchanged; an empty
    string clears ``appointment_time`` or ``assigned_groomer_id``."""

    services: list[str] | None = None
    date: str | None = None
    appointment_time: str | None = None
    assigned_groomer_id: str | None = None
    notes: str | None = None
    priority: bool | None = None
    transport: bool | None = None
    transport_details: str | None = None
    marketing_source: str | None = None
    booker_name: str | None = None

    def validate(self) -> None:
        if self.services is not None:
            self.services = _clean_services(self.services)
            if not self.services:
                raise ValidationError("Please select at least one service", field="services")
        if self.date is not None:
            parse_date(self.date)
        if self.appointment_time:
            parse_hhmm(self.appointment_time, field="appointment_time")

    def changes(self) -> dict[str, Any]:
        changes = {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not None
        }
        for name in ("appointment_time", "assigned_groomer_id"):
            if changes.get(name) == "":
                changes[name] = None
        return changes


@dataclass
class ServiceRecordPatch:
    date: str | None = None
    check_in_at: str | None = None
    completed_at: str | None = None
    groomer_id: str | None = None
    services: list[str] | None = None
    price: float | None = None
    notes: str | None = None

    def validate(self) -> None:
        if self.date is not None:
            parse_date(self.date)
        for name in ("check_in_at", "completed_at"):
            value = getattr(self, name)
            if value is None:
                continue
            try:
                parse_timestamp(value)
            except ValueError:
                raise ValidationError(f"Invalid timestamp '{value}'", field=name) from None
        if self.services is not None:
            self.services = _clean_services(self.services)
            if not self.services:
                raise ValidationError("Please select at least one service", field="services")
        if self.price is not None:
            try:
                self.price = float(self.price)
            except (TypeError, ValueError):
                raise ValidationError("Price must be a number", field="price") from None
            if self.price < 0:
                raise ValidationError("Price cannot be negative", field="price")

    def changes(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not None
        }

"""Flask application exposing the front desk core as a JSON API."""

from __future__ import annotations

import dataclasses
from typing import Any

from flask import Flask, jsonify, request

from groomingdesk.grooming.config import Config, load_config
from groomingdesk.grooming.errors import NotFoundError, PersistenceError, ValidationError
from groomingdesk.grooming.system import (
    CUSTOMER_FIELDS,
    GROOMER_FIELDS,
    PET_FIELDS,
    GroomingDesk,
    pick_fields,
)


def _json_body() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


def _services_arg() -> list[str]:
    services = request.args.getlist("services")
    if len(services) == 1 and "," in services[0]:
        services = services[0].split(",")
    return [service.strip() for service in services if service.strip()]


def create_app(
    database_path: str | None = None,
    *,
    config: Config | None = None,
    desk: GroomingDesk | None = None,
) -> Flask:
    """Create and configure the Flask application."""

    config = config or load_config()
    if database_path is not None:
        config = dataclasses.replace(config, db_path=database_path)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key

    system = desk or GroomingDesk.from_config(config)
    app.extensions["grooming_desk"] = system

    @app.errorhandler(ValidationError)
    def handle_validation(exc: ValidationError) -> Any:
        status = 404 if isinstance(exc, NotFoundError) else 400
        return jsonify({"error": str(exc), "field": exc.field}), status

    @app.errorhandler(PersistenceError)
    def handle_persistence(exc: PersistenceError) -> Any:
        return jsonify({"error": str(exc), "field": None}), 503

    @app.get("/api/health")
    def health() -> Any:
        return jsonify({"ok": True})

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    @app.route("/api/settings", methods=["GET", "PATCH"])
    def settings() -> Any:
        if request.method == "PATCH":
            return jsonify(system.update_settings(_json_body()))
        return jsonify(system.get_settings())

    # ------------------------------------------------------------------
    # Customers, pets, groomers
    # ------------------------------------------------------------------
    @app.route("/api/customers", methods=["GET", "POST"])
    def customers() -> Any:
        if request.method == "POST":
            return jsonify(system.add_customer(**pick_fields(_json_body(), CUSTOMER_FIELDS))), 201
        return jsonify(system.list_customers())

    @app.route("/api/customers/<customer_id>", methods=["GET", "PATCH", "DELETE"])
    def customer_detail(customer_id: str) -> Any:
        if request.method == "PATCH":
            return jsonify(system.update_customer(customer_id, **_json_body()))
        if request.method == "DELETE":
            system.delete_customer(customer_id)
            return "", 204
        customer = system.get_customer(customer_id)
        customer["pets"] = system.list_pets(customer_id=customer_id)
        customer["history"] = system.list_service_records(customer_id=customer_id)
        return jsonify(customer)

    @app.route("/api/pets", methods=["GET", "POST"])
    def pets() -> Any:
        if request.method == "POST":
            return jsonify(system.add_pet(**pick_fields(_json_body(), PET_FIELDS))), 201
        return jsonify(system.list_pets(customer_id=request.args.get("customer_id")))

    @app.route("/api/pets/<pet_id>", methods=["GET", "PATCH", "DELETE"])
    def pet_detail(pet_id: str) -> Any:
        if request.method == "PATCH":
            return jsonify(system.update_pet(pet_id, **_json_body()))
        if request.method == "DELETE":
            system.delete_pet(pet_id)
            return "", 204
        return jsonify(system.get_pet(pet_id))

    @app.route("/api/groomers", methods=["GET", "POST"])
    def groomers() -> Any:
        if request.method == "POST":
            return jsonify(system.add_groomer(**pick_fields(_json_body(), GROOMER_FIELDS))), 201
        active_only = request.args.get("active") in ("1", "true")
        return jsonify(system.list_groomers(active_only=active_only))

    @app.route("/api/groomers/<groomer_id>", methods=["GET", "PATCH", "DELETE"])
    def groomer_detail(groomer_id: str) -> Any:
        if request.method == "PATCH":
            return jsonify(system.update_groomer(groomer_id, **_json_body()))
        if request.method == "DELETE":
            system.delete_groomer(groomer_id)
            return "", 204
        groomer = system.get_groomer(groomer_id)
        groomer["history"] = system.list_service_records(groomer_id=groomer_id)
        return jsonify(groomer)

    @app.route("/api/schedules/<date>", methods=["GET", "PUT"])
    def schedule(date: str) -> Any:
        if request.method == "PUT":
            return jsonify(system.set_daily_schedule(date, _json_body().get("groomers", [])))
        return jsonify(system.get_daily_schedule(date))

    # ------------------------------------------------------------------
    # Scheduling queries
    # ------------------------------------------------------------------
    @app.get("/api/duration")
    def duration() -> Any:
        services = _services_arg()
        return jsonify({"services": services, "duration": system.compute_duration(services)})

    @app.get("/api/price")
    def price() -> Any:
        services = _services_arg()
        weight = request.args.get("weight", type=float)
        if request.args.get("species") == "cat" and weight is not None:
            amount = system.compute_cat_price(
                services, weight, request.args.get("long_hair") in ("1", "true")
            )
        else:
            amount = system.compute_price(services)
        return jsonify({"services": services, "price": amount})

    @app.get("/api/availability")
    def availability() -> Any:
        date = request.args.get("date", "")
        time = request.args.get("time", "")
        minutes = request.args.get("duration", type=int) or system.compute_duration(_services_arg())
        return jsonify(system.available_groomers(date, time, minutes))

    @app.get("/api/slots")
    def slots() -> Any:
        return jsonify(
            system.find_slots(
                request.args.get("date", ""),
                _services_arg(),
                request.args.get("max", type=int),
            )
        )

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------
    @app.route("/api/queue", methods=["GET", "POST"])
    def queue() -> Any:
        if request.method == "POST":
            return jsonify(system.create_booking(_json_body())), 201
        term = request.args.get("q")
        date = request.args.get("date")
        if term:
            return jsonify(system.search_queue(term, date=date))
        return jsonify(system.list_queue(date=date))

    @app.route("/api/queue/<queue_id>", methods=["GET", "PATCH", "DELETE"])
    def queue_detail(queue_id: str) -> Any:
        if request.method == "PATCH":
            return jsonify(system.edit_booking(queue_id, _json_body()))
        if request.method == "DELETE":
            system.delete_booking(queue_id)
            return "", 204
        return jsonify(system.get_queue_entry(queue_id))

    @app.post("/api/queue/<queue_id>/status")
    def queue_status(queue_id: str) -> Any:
        body = _json_body()
        target = body.pop("status", "")
        return jsonify(system.advance_status(queue_id, target, body))

    @app.post("/api/queue/<queue_id>/cancel")
    def queue_cancel(queue_id: str) -> Any:
        return jsonify(system.cancel_booking(queue_id, reason=_json_body().get("reason")))

    @app.get("/api/queue/<queue_id>/event")
    def queue_event(queue_id: str) -> Any:
        return jsonify(system.calendar_event(queue_id))

    # ------------------------------------------------------------------
    # History, dashboard, calendar, logs
    # ------------------------------------------------------------------
    @app.get("/api/service-records")
    def service_records() -> Any:
        return jsonify(
            system.list_service_records(
                customer_id=request.args.get("customer_id"),
                groomer_id=request.args.get("groomer_id"),
                pet_id=request.args.get("pet_id"),
            )
        )

    @app.route("/api/service-records/<record_id>", methods=["GET", "PATCH"])
    def service_record_detail(record_id: str) -> Any:
        if request.method == "PATCH":
            return jsonify(system.edit_service_record(record_id, _json_body()))
        return jsonify(system.get_service_record(record_id))

    @app.get("/api/dashboard")
    def dashboard() -> Any:
        return jsonify(system.dashboard(date=request.args.get("date")))

    @app.get("/api/calendar/<int:year>/<int:month>")
    def calendar(year: int, month: int) -> Any:
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12", field="month")
        return jsonify(
            system.calendar_view(year=year, month=month, selected=request.args.get("selected"))
        )

    @app.route("/api/logs", methods=["GET", "DELETE"])
    def logs() -> Any:
        if request.method == "DELETE":
            system.clear_events()
            return "", 204
        return jsonify(system.recent_events(request.args.get("limit", type=int)))

    return app

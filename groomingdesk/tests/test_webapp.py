import datetime as dt
import unittest

from groomingdesk.grooming.config import Config
from groomingdesk.grooming.logbook import configure_logging
from groomingdesk.grooming.system import GroomingDesk
from groomingdesk.webapp import create_app


class WebAppTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.desk = GroomingDesk(clock=lambda: dt.datetime(2026, 10, 20, 9, 0))
        self.addCleanup(self.desk.close)
        app = create_app(config=Config(db_path=":memory:"), desk=self.desk)
        app.testing = True
        self.client = app.test_client()

        self.customer = self.client.post("/api/customers", json={"name": "Alex Doe"}).get_json()
        self.pet = self.client.post(
            "/api/pets", json={"customer_id": self.customer["id"], "name": "Biscuit"}
        ).get_json()
        self.groomer = self.client.post("/api/groomers", json={"name": "Wichai"}).get_json()

    def book(self, **overrides) -> dict:
        response = self.client.post(
            "/api/queue",
            json={
                "customer_id": self.customer["id"],
                "pet_id": self.pet["id"],
                "services": ["bath"],
                "date": "2026-10-20",
                "appointment_time": "14:00",
                **overrides,
            },
        )
        self.assertEqual(response.status_code, 201)
        return response.get_json()

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/api/health").get_json(), {"ok": True})

    def test_booking_through_every_stage(self) -> None:
        entry = self.book()
        self.assertEqual(entry["estimated_end_time"], "15:00")

        url = f"/api/queue/{entry['id']}/status"
        self.assertEqual(
            self.client.post(url, json={"status": "deposit", "amount": 100}).get_json()["status"], "deposit"
        )
        self.assertEqual(
            self.client.post(url, json={"status": "check-in", "weight": 7.5}).get_json()["status"], "check-in"
        )
        done = self.client.post(url, json={"status": "completed", "groomer_id": self.groomer["id"]})
        self.assertEqual(done.status_code, 200)
        record_id = done.get_json()["service_record_id"]

        record = self.client.get(f"/api/service-records/{record_id}").get_json()
        self.assertEqual(record["price"], 200)
        detail = self.client.get(f"/api/customers/{self.customer['id']}").get_json()
        self.assertEqual([r["id"] for r in detail["history"]], [record_id])
        self.assertEqual(len(detail["pets"]), 1)

        dashboard = self.client.get("/api/dashboard").get_json()
        self.assertEqual(dashboard["completed"], 1)

    def test_validation_errors_are_reported(self) -> None:
        response = self.client.post("/api/queue", json={"pet_id": self.pet["id"]})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["field"], "customer_id")
        self.assertEqual(self.client.get("/api/queue?date=2026-10-20").get_json(), [])

    def test_illegal_transition_is_rejected(self) -> None:
        entry = self.book()
        response = self.client.post(
            f"/api/queue/{entry['id']}/status", json={"status": "completed", "groomer_id": self.groomer["id"]}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["field"], "status")

    def test_directory_input_is_validated(self) -> None:
        unknown = self.client.post("/api/customers", json={"name": "A", "nickname": "x"})
        self.assertEqual(unknown.status_code, 400)
        self.assertEqual(unknown.get_json()["field"], "nickname")

        heavy = self.client.post(
            "/api/pets", json={"customer_id": self.customer["id"], "name": "Rex", "weight": "heavy"}
        )
        self.assertEqual(heavy.status_code, 400)
        self.assertEqual(heavy.get_json()["field"], "weight")

        unnamed = self.client.post("/api/groomers", json={})
        self.assertEqual(unnamed.status_code, 400)
        self.assertEqual(unnamed.get_json()["field"], "name")

        ownerless = self.client.post("/api/pets", json={"name": "Rex"})
        self.assertEqual(ownerless.status_code, 400)
        self.assertEqual(ownerless.get_json()["field"], "customer_id")

        pet = self.client.post(
            "/api/pets", json={"customer_id": self.customer["id"], "name": "Rex", "weight": "4.5"}
        ).get_json()
        self.assertEqual(pet["weight"], 4.5)

    def test_missing_entities_return_404(self) -> None:
        self.assertEqual(self.client.get("/api/queue/nope").status_code, 404)
        self.assertEqual(self.client.get("/api/customers/nope").status_code, 404)
        self.assertEqual(self.client.patch("/api/service-records/nope", json={}).status_code, 404)

    def test_cancel_and_search(self) -> None:
        entry = self.book()
        cancelled = self.client.post(f"/api/queue/{entry['id']}/cancel", json={"reason": "sick"})
        self.assertEqual(cancelled.get_json()["status"], "cancelled")
        found = self.client.get("/api/queue?q=biscuit&date=2026-10-20").get_json()
        self.assertEqual([e["id"] for e in found], [entry["id"]])

    def test_scheduling_queries(self) -> None:
        duration = self.client.get("/api/duration?services=bath,haircut").get_json()
        self.assertEqual(duration["duration"], 120)
        price = self.client.get("/api/price?services=bath&species=cat&weight=4&long_hair=1").get_json()
        self.assertEqual(price["price"], 500)

        self.client.put(
            "/api/schedules/2026-10-20",
            json={"groomers": [{"groomer_id": self.groomer["id"], "working_hours": {"start": "09:00", "end": "11:00"}}]},
        )
        slots = self.client.get("/api/slots?date=2026-10-20&services=bath").get_json()
        self.assertEqual([s["time"] for s in slots], ["09:00", "09:30", "10:00"])
        free = self.client.get("/api/availability?date=2026-10-20&time=10:00&duration=60").get_json()
        self.assertEqual([g["id"] for g in free], [self.groomer["id"]])

    def test_edit_booking_and_event(self) -> None:
        entry = self.book()
        edited = self.client.patch(f"/api/queue/{entry['id']}", json={"services": ["bath", "haircut"]})
        self.assertEqual(edited.get_json()["estimated_end_time"], "16:00")
        event = self.client.get(f"/api/queue/{entry['id']}/event").get_json()
        self.assertEqual(event["end"]["dateTime"], "2026-10-20T16:00:00")

    def test_log_buffer_can_be_cleared(self) -> None:
        handler = configure_logging("INFO", capacity=20)
        desk = GroomingDesk(log_handler=handler)
        self.addCleanup(desk.close)
        client = create_app(config=Config(db_path=":memory:"), desk=desk).test_client()

        client.patch("/api/settings", json={"shop_name": "Paws"})
        self.assertEqual(len(client.get("/api/logs").get_json()), 1)
        self.assertEqual(client.delete("/api/logs").status_code, 204)
        self.assertEqual(client.get("/api/logs").get_json(), [])

    def test_calendar_rejects_bad_month(self) -> None:
        self.assertEqual(self.client.get("/api/calendar/2026/13").status_code, 400)
        view = self.client.get("/api/calendar/2026/10").get_json()
        self.assertEqual(view["month"], 10)


if __name__ == "__main__":
    unittest.main()

import unittest

from groomingdesk.grooming.availability import available_groomers, find_slots, intervals_overlap

HOURS = {"start": "09:00", "end": "18:00"}
DURATIONS = {"bath": 60, "haircut": 90, "bath,haircut": 120}

GROOMERS = [
    {"id": "g1", "name": "Wichai", "is_active": True},
    {"id": "g2", "name": "Suda", "is_active": True},
    {"id": "g3", "name": "Retired", "is_active": False},
]


def booking(groomer_id: str, time: str | None, duration: int = 60, status: str = "booking", **extra) -> dict:
    return {
        "id": extra.get("id", f"{groomer_id}-{time}"),
        "assigned_groomer_id": groomer_id,
        "appointment_time": time,
        "duration": duration,
        "status": status,
    }


def schedule(*rows: tuple[str, str, str]) -> dict:
    return {
        "date": "2026-10-20",
        "groomers": [
            {"groomer_id": gid, "name": gid, "working_hours": {"start": start, "end": end}}
            for gid, start, end in rows
        ],
    }


class AvailabilityTestCase(unittest.TestCase):
    def check(self, start: str, duration: int, sched: dict | None, bookings: list[dict]) -> list[str]:
        free = available_groomers(
            start_time=start,
            duration=duration,
            schedule=sched,
            groomers=GROOMERS,
            bookings=bookings,
            default_hours=HOURS,
        )
        return [groomer["id"] for groomer in free]

    def test_without_schedule_returns_active_groomers(self) -> None:
        busy = [booking("g1", "10:00")]
        self.assertEqual(self.check("10:00", 60, None, busy), ["g1", "g2"])

    def test_back_to_back_bookings_do_not_conflict(self) -> None:
        sched = schedule(("g1", "09:00", "18:00"))
        self.assertEqual(self.check("10:00", 60, sched, [booking("g1", "09:00")]), ["g1"])

    def test_overlapping_booking_conflicts(self) -> None:
        sched = schedule(("g1", "09:00", "18:00"))
        self.assertEqual(self.check("09:30", 60, sched, [booking("g1", "09:00")]), [])

    def test_overlap_is_half_open(self) -> None:
        self.assertFalse(intervals_overlap(540, 600, 600, 660))
        self.assertTrue(intervals_overlap(540, 600, 570, 630))
        self.assertTrue(intervals_overlap(570, 630, 540, 600))

    def test_working_hours_bound_the_appointment(self) -> None:
        sched = schedule(("g1", "09:00", "12:00"), ("g2", "12:00", "18:00"))
        self.assertEqual(self.check("11:00", 60, sched, []), ["g1"])
        self.assertEqual(self.check("11:30", 60, sched, []), [])
        self.assertEqual(self.check("08:30", 60, sched, []), [])
        self.assertEqual(self.check("17:00", 60, sched, []), ["g2"])

    def test_cancelled_and_untimed_bookings_are_ignored(self) -> None:
        sched = schedule(("g1", "09:00", "18:00"))
        bookings = [booking("g1", "10:00", status="cancelled"), booking("g1", None)]
        self.assertEqual(self.check("10:00", 60, sched, bookings), ["g1"])

    def test_other_groomers_bookings_do_not_block(self) -> None:
        sched = schedule(("g1", "09:00", "18:00"), ("g2", "09:00", "18:00"))
        self.assertEqual(self.check("10:00", 60, sched, [booking("g2", "10:00")]), ["g1"])

    def test_inactive_groomers_are_never_available(self) -> None:
        sched = schedule(("g3", "09:00", "18:00"), ("g2", "09:00", "18:00"))
        self.assertEqual(self.check("10:00", 60, sched, []), ["g2"])

    def test_result_follows_schedule_order(self) -> None:
        sched = schedule(("g2", "09:00", "18:00"), ("g1", "09:00", "18:00"))
        self.assertEqual(self.check("10:00", 60, sched, []), ["g2", "g1"])

    def test_excluded_booking_does_not_conflict(self) -> None:
        sched = schedule(("g1", "09:00", "18:00"))
        own = booking("g1", "10:00", id="q1")
        free = available_groomers(
            start_time="10:30",
            duration=60,
            schedule=sched,
            groomers=GROOMERS,
            bookings=[own],
            default_hours=HOURS,
            exclude_queue_id="q1",
        )
        self.assertEqual([g["id"] for g in free], ["g1"])


class SlotFinderTestCase(unittest.TestCase):
    def slots(self, services: list[str], sched: dict | None, bookings: list[dict], max_slots: int = 50) -> list[dict]:
        return find_slots(
            services=services,
            durations=DURATIONS,
            schedule=sched,
            groomers=GROOMERS,
            bookings=bookings,
            default_hours=HOURS,
            max_slots=max_slots,
        )

    def test_slots_stay_inside_window(self) -> None:
        slots = self.slots(["bath", "haircut"], None, [])
        self.assertEqual(slots[0]["time"], "09:00")
        self.assertEqual(slots[-1]["time"], "16:00")
        self.assertEqual(slots[-1]["end_time"], "18:00")
        for slot in slots:
            self.assertLessEqual(slot["end_time"], "18:00")

    def test_thirty_minute_steps(self) -> None:
        times = [slot["time"] for slot in self.slots(["bath"], None, [], max_slots=3)]
        self.assertEqual(times, ["09:00", "09:30", "10:00"])

    def test_uses_first_scheduled_groomer_window(self) -> None:
        sched = schedule(("g1", "10:00", "12:00"))
        slots = self.slots(["bath"], sched, [])
        self.assertEqual([s["time"] for s in slots], ["10:00", "10:30", "11:00"])

    def test_busy_times_are_skipped(self) -> None:
        sched = schedule(("g1", "09:00", "12:00"))
        slots = self.slots(["bath"], sched, [booking("g1", "10:00")])
        self.assertEqual([s["time"] for s in slots], ["09:00", "11:00"])
        self.assertEqual(slots[0]["available_groomer_count"], 1)

    def test_max_slots_limits_results(self) -> None:
        self.assertEqual(len(self.slots(["bath"], None, [], max_slots=4)), 4)

    def test_no_slots_when_service_longer_than_day(self) -> None:
        sched = schedule(("g1", "09:00", "10:00"))
        self.assertEqual(self.slots(["bath", "haircut"], sched, []), [])


if __name__ == "__main__":
    unittest.main()

import datetime as dt
import unittest

from groomingdesk.grooming.records import derive_record, record_duration

NOW = dt.datetime(2026, 10, 20, 11, 0)


class RecordDurationTestCase(unittest.TestCase):
    def test_missing_check_in_counts_from_now(self) -> None:
        self.assertEqual(record_duration(None, "2026-10-20T11:45:00", NOW), 45)

    def test_missing_completion_counts_to_now(self) -> None:
        self.assertEqual(record_duration("2026-10-20T09:30:00", None, NOW), 90)

    def test_both_missing_is_zero(self) -> None:
        self.assertEqual(record_duration(None, None, NOW), 0)

    def test_half_minute_rounds_up(self) -> None:
        self.assertEqual(record_duration("2026-10-20T09:00:00", "2026-10-20T09:10:30", NOW), 11)
        self.assertEqual(record_duration("2026-10-20T09:00:00", "2026-10-20T09:10:29", NOW), 10)


class DeriveRecordTestCase(unittest.TestCase):
    def test_entry_without_check_in_uses_now(self) -> None:
        entry = {
            "id": "q1",
            "customer_id": "c1",
            "pet_id": "p1",
            "groomer_id": "g1",
            "date": "2026-10-20",
            "services": ["bath"],
            "check_in_at": None,
            "completed_at": "2026-10-20T11:30:00",
            "check_in_weight": 5.2,
            "completion_images": [{"id": "i1", "image_data": "abc", "timestamp": "2026-10-20T11:30:00"}],
        }
        record = derive_record(entry, price=200, now=NOW)
        self.assertEqual(record["duration"], 30)
        self.assertEqual(record["queue_id"], "q1")
        self.assertEqual(record["services_performed"], ["bath"])
        self.assertEqual(record["check_in_weight"], 5.2)
        self.assertEqual(record["completion_images"], entry["completion_images"])
        self.assertEqual(record["created_at"], "2026-10-20T11:00:00")


if __name__ == "__main__":
    unittest.main()

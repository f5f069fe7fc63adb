import logging
import unittest

from groomingdesk.grooming.config import Config
from groomingdesk.grooming.logbook import LOGGER_NAME, RingBufferHandler, configure_logging, detach
from groomingdesk.grooming.system import GroomingDesk


class RingBufferHandlerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.handler = configure_logging("INFO", capacity=3)
        self.addCleanup(detach, self.handler)
        self.logger = logging.getLogger(f"{LOGGER_NAME}.tests")

    def test_keeps_only_latest_records(self) -> None:
        for number in range(5):
            self.logger.info("event %d", number)
        self.assertEqual([e["message"] for e in self.handler.recent()], ["event 2", "event 3", "event 4"])
        self.assertEqual([e["message"] for e in self.handler.recent(1)], ["event 4"])

    def test_level_is_respected(self) -> None:
        self.logger.debug("noise")
        self.logger.warning("careful")
        events = self.handler.recent()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["level"], "WARNING")
        self.assertEqual(events[0]["logger"], f"{LOGGER_NAME}.tests")

    def test_listeners_receive_events(self) -> None:
        seen = []
        self.handler.add_listener(seen.append)
        self.logger.info("first")
        self.handler.remove_listener(seen.append)
        self.logger.info("second")
        self.assertEqual([e["message"] for e in seen], ["first"])

    def test_exception_details_are_kept(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            self.logger.exception("failed")
        self.assertIn("boom", self.handler.recent()[-1]["error"])
        self.handler.clear()
        self.assertEqual(self.handler.recent(), [])


class DeskLoggingTestCase(unittest.TestCase):
    def test_workflow_events_reach_the_desk_buffer(self) -> None:
        handler = configure_logging("INFO", capacity=50)
        self.addCleanup(detach, handler)
        desk = GroomingDesk(log_handler=handler)
        self.addCleanup(desk.close)

        received = []
        desk.add_log_listener(received.append)
        desk.add_customer(name="Alex")
        desk.update_settings({"shop_name": "Paws"})
        messages = [e["message"] for e in desk.recent_events()]
        self.assertIn("Settings updated (shop_name)", messages)
        self.assertEqual([e["message"] for e in received], messages)

    def test_desk_without_handler(self) -> None:
        desk = GroomingDesk()
        self.addCleanup(desk.close)
        self.assertEqual(desk.recent_events(), [])
        with self.assertRaises(RuntimeError):
            desk.add_log_listener(lambda event: None)

    def test_buffers_do_not_pile_up(self) -> None:
        package_logger = logging.getLogger(LOGGER_NAME)

        def buffers() -> list[logging.Handler]:
            return [h for h in package_logger.handlers if isinstance(h, RingBufferHandler)]

        for _ in range(3):
            GroomingDesk.from_config(Config(db_path=":memory:")).close()
        self.assertEqual(buffers(), [])

        first = configure_logging("INFO")
        second = configure_logging("INFO")
        self.addCleanup(detach, second)
        self.assertEqual(buffers(), [second])
        self.assertIsNot(first, second)

    def test_clear_events(self) -> None:
        handler = configure_logging("INFO", capacity=10)
        desk = GroomingDesk(log_handler=handler)
        self.addCleanup(desk.close)
        desk.update_settings({"shop_name": "Paws"})
        desk.clear_events()
        self.assertEqual(desk.recent_events(), [])

    def test_handler_is_a_logging_handler(self) -> None:
        self.assertIsInstance(RingBufferHandler(), logging.Handler)


if __name__ == "__main__":
    unittest.main()

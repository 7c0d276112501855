import unittest
from unittest.mock import patch

from scripts import roster_analytics_worker
from touchline.config import Settings


class RosterAnalyticsWorkerScriptTests(unittest.TestCase):
    def test_once_drains_queue_at_configured_log_level(self):
        settings = Settings(log_level="debug")
        with patch.object(
            roster_analytics_worker, "get_settings", return_value=settings
        ), patch.object(
            roster_analytics_worker, "process_next", side_effect=[True, True, False]
        ) as process_next, patch("logging.basicConfig") as basic_config, patch(
            "sys.argv", ["roster_analytics_worker.py", "--once"]
        ):
            self.assertEqual(roster_analytics_worker.main(), 0)

        self.assertEqual(process_next.call_count, 3)
        self.assertEqual(basic_config.call_args.kwargs["level"], "DEBUG")


if __name__ == "__main__":
    unittest.main()

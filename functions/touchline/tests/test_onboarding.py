import unittest
from unittest.mock import patch

from touchline.db import InMemoryDbClient
from touchline.errors import StorageUnavailableError
from touchline.onboarding import default_state, onboarding_state
from touchline.records import PlayerRecord


class OnboardingStateTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()

    def test_new_user_is_first_time(self):
        self.assertEqual(onboarding_state(self.db, "coach"), default_state())

    def test_user_with_players_is_not_first_time(self):
        self.db.create_player(PlayerRecord(user_id="coach", name="Alex"))
        state = onboarding_state(self.db, "coach")
        self.assertTrue(state["has_players"])
        self.assertFalse(state["is_first_time_user"])

    def test_storage_failure_falls_back_to_defaults(self):
        self.db.create_player(PlayerRecord(user_id="coach", name="Alex"))
        with patch.object(
            self.db,
            "list_players",
            side_effect=StorageUnavailableError("Database is unavailable"),
        ), self.assertLogs("touchline.onboarding", level="WARNING") as logs:
            state = onboarding_state(self.db, "coach")
        self.assertEqual(state, default_state())
        self.assertIn("Database is unavailable", logs.output[0])


if __name__ == "__main__":
    unittest.main()

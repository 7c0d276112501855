import unittest

from touchline.json_utils import snake_to_camel, to_wire
from touchline.records import PlayerActivityRecord, RosterAnalyticsRecord
from touchline.types import ActivityType


class JsonUtilsTests(unittest.TestCase):
    def test_snake_to_camel(self):
        self.assertEqual(snake_to_camel("jersey_number"), "jerseyNumber")
        self.assertEqual(snake_to_camel("is_goalie"), "isGoalie")
        self.assertEqual(snake_to_camel("_private_key"), "_privateKey")
        self.assertEqual(snake_to_camel("name"), "name")

    def test_to_wire_converts_field_names_only(self):
        snapshot = RosterAnalyticsRecord(
            user_id="coach",
            snapshot_date="2026-10-18",
            tag_distribution={"first_team": 3, "bench_warmers": 1},
            activity_breakdown={"tag_added": 2},
        )
        wire = to_wire(snapshot)
        self.assertEqual(wire["userId"], "coach")
        self.assertEqual(wire["snapshotDate"], "2026-10-18")
        self.assertEqual(wire["tagDistribution"], {"first_team": 3, "bench_warmers": 1})
        self.assertEqual(wire["activityBreakdown"], {"tag_added": 2})
        self.assertNotIn("tag_distribution", wire)

    def test_to_wire_keeps_metadata_keys(self):
        activity = PlayerActivityRecord(
            user_id="coach",
            player_id="p1",
            activity_type=ActivityType.GOAL,
            metadata={"assist_by": "p2", "nested": {"shot_type": "header"}},
        )
        wire = to_wire(activity)
        self.assertEqual(wire["activityType"], "goal")
        self.assertEqual(
            wire["metadata"], {"assist_by": "p2", "nested": {"shot_type": "header"}}
        )


if __name__ == "__main__":
    unittest.main()

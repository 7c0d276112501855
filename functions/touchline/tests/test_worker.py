import time
import unittest

from touchline.analytics import compute_roster_analytics, snapshot_date
from touchline.db import InMemoryDbClient
from touchline.queue import InMemoryJobQueue
from touchline.records import (
    PlayerActivityRecord,
    PlayerRecord,
    PlayerTagRecord,
    TagAssignmentRecord,
)
from touchline.types import ActivityType
from touchline.worker import process_next


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.queue = InMemoryJobQueue()
        self.keeper = self.db.create_player(
            PlayerRecord(user_id="coach", name="Ann", is_goalie=True)
        )
        self.striker = self.db.create_player(PlayerRecord(user_id="coach", name="Bob"))
        tag = self.db.create_tag(PlayerTagRecord(user_id="coach", name="Captains"))
        self.db.create_tag(PlayerTagRecord(user_id="coach", name="Bench"))
        self.db.create_tag_assignment(
            TagAssignmentRecord(user_id="coach", player_id=self.keeper.id, tag_id=tag.id)
        )

    def test_process_next_saves_snapshot(self):
        self.queue.enqueue("coach")
        processed = process_next(db=self.db, queue=self.queue, block=False)
        self.assertTrue(processed)

        history = self.db.list_roster_analytics("coach")
        self.assertEqual(len(history), 1)
        snapshot = history[0]
        self.assertEqual(snapshot.snapshot_date, snapshot_date(time.time()))
        self.assertEqual(snapshot.total_players, 2)
        self.assertEqual(snapshot.goalie_count, 1)
        self.assertEqual(snapshot.tagged_players, 1)
        self.assertEqual(snapshot.untagged_players, 1)
        self.assertEqual(snapshot.tag_distribution, {"Bench": 0, "Captains": 1})

    def test_process_next_no_jobs(self):
        processed = process_next(db=self.db, queue=self.queue, block=False)
        self.assertFalse(processed)

    def test_repeat_refresh_overwrites_same_day(self):
        self.queue.enqueue("coach")
        process_next(db=self.db, queue=self.queue, block=False)
        self.db.delete_player("coach", self.striker.id)
        self.queue.enqueue("coach")
        process_next(db=self.db, queue=self.queue, block=False)

        history = self.db.list_roster_analytics("coach")
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].total_players, 1)

    def test_activity_window(self):
        now = 1_700_000_000.0
        for occurred_at, kind in [
            (now - 3600, ActivityType.GOAL),
            (now - 7200, ActivityType.GOAL),
            (now - 40 * 86400, ActivityType.INJURY),
        ]:
            self.db.create_activity(
                PlayerActivityRecord(
                    user_id="coach",
                    player_id=self.striker.id,
                    activity_type=kind,
                    occurred_at=occurred_at,
                )
            )
        record = compute_roster_analytics(self.db, "coach", now=now, window_days=30)
        self.assertEqual(record.activity_count, 2)
        self.assertEqual(record.activity_breakdown, {"goal": 2})
        self.assertEqual(record.snapshot_date, "2023-11-14")


if __name__ == "__main__":
    unittest.main()

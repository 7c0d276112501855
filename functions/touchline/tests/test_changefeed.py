import json
import unittest

from touchline.changefeed import PUBLIC_CHANNEL, InMemoryChangeFeed, serialize_event
from touchline.records import ChangeEvent
from touchline.types import ChangeType


def _event(index, user_id="coach"):
    return ChangeEvent(
        table="players",
        event_type=ChangeType.INSERT,
        record={"id": f"p{index}"},
        user_id=user_id,
    )


class InMemoryChangeFeedTests(unittest.TestCase):
    def test_history_is_capped(self):
        feed = InMemoryChangeFeed(history_size=3)
        for index in range(5):
            feed.publish(_event(index))
        self.assertEqual(len(feed.history), 3)
        self.assertEqual(
            [e.record["id"] for e in feed.events_for("coach")], ["p2", "p3", "p4"]
        )

    def test_failing_subscriber_is_logged_and_others_still_run(self):
        feed = InMemoryChangeFeed()
        received = []

        def broken(event):
            raise RuntimeError("socket closed")

        feed.subscribe("coach", broken)
        feed.subscribe("coach", received.append)
        with self.assertLogs("touchline.changefeed", level="ERROR") as logs:
            feed.publish(_event(1))
            feed.publish(_event(2))

        self.assertEqual([e.record["id"] for e in received], ["p1", "p2"])
        self.assertEqual(len(logs.records), 2)
        self.assertIn("players insert", logs.output[0])
        self.assertEqual(len(feed.history), 2)

    def test_events_are_routed_by_owner(self):
        feed = InMemoryChangeFeed()
        public = []
        feed.subscribe(PUBLIC_CHANNEL, public.append)
        feed.publish(_event(1))
        feed.publish(_event(2, user_id=None))
        self.assertEqual([e.record["id"] for e in public], ["p2"])
        self.assertEqual(len(feed.events_for("coach")), 1)

    def test_serialized_event_uses_camel_case(self):
        payload = json.loads(serialize_event(_event(1)))
        self.assertEqual(payload["eventType"], "insert")
        self.assertEqual(payload["userId"], "coach")
        self.assertEqual(payload["record"], {"id": "p1"})


if __name__ == "__main__":
    unittest.main()

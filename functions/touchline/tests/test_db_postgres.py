import unittest

from touchline.db_postgres import PostgresDbClient
from touchline.errors import ConstraintViolationError
from touchline.records import (
    HelpCategoryRecord,
    HelpContentRecord,
    HelpEventRecord,
    HelpProgressRecord,
    PlayerActivityRecord,
    PlayerRecord,
    PlayerTagRecord,
    RosterAnalyticsRecord,
    TagAssignmentRecord,
)
from touchline.types import (
    ActivityType,
    ContentType,
    Difficulty,
    HelpEventType,
    ProgressStatus,
)


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def _content(self, slug="adding-players", **kwargs):
        return self.db.create_help_content(
            HelpContentRecord(slug=slug, title="Adding players", body="Tap add.", **kwargs)
        )

    def _player(self, user_id="coach", **kwargs):
        return self.db.create_player(PlayerRecord(user_id=user_id, name="Alex", **kwargs))

    def test_help_content_roundtrip(self):
        category = self.db.create_category(HelpCategoryRecord(slug="basics", name="Basics"))
        content = self._content(
            category_id=category.id,
            content_type=ContentType.TUTORIAL,
            difficulty=Difficulty.ADVANCED,
            tags=["roster", "setup"],
        )
        loaded = self.db.get_help_content_by_slug("adding-players")
        self.assertEqual(loaded.id, content.id)
        self.assertEqual(loaded.content_type, ContentType.TUTORIAL)
        self.assertEqual(loaded.difficulty, Difficulty.ADVANCED)
        self.assertEqual(loaded.tags, ["roster", "setup"])
        self.assertEqual(
            [c.id for c in self.db.list_help_content(content_type=ContentType.TUTORIAL)],
            [content.id],
        )

    def test_duplicate_slug_is_a_constraint_violation(self):
        self._content()
        with self.assertRaises(ConstraintViolationError):
            self._content()

    def test_increment_counter_and_update(self):
        content = self._content()
        self.db.increment_help_counter(content.id, "view_count")
        updated = self.db.increment_help_counter(content.id, "view_count")
        self.assertEqual(updated.view_count, 2)
        renamed = self.db.update_help_content(content.id, title="Adding squad members")
        self.assertEqual(renamed.title, "Adding squad members")
        self.assertEqual(renamed.view_count, 2)

    def test_category_delete_keeps_content(self):
        category = self.db.create_category(HelpCategoryRecord(slug="basics", name="Basics"))
        content = self._content(category_id=category.id)
        self.assertTrue(self.db.delete_category(category.id))
        self.assertIsNone(self.db.get_help_content(content.id).category_id)

    def test_progress_upsert_is_unique_per_user_and_content(self):
        content = self._content()
        first = self.db.upsert_help_progress(
            HelpProgressRecord(user_id="coach", content_id=content.id, progress_percent=10)
        )
        second = self.db.upsert_help_progress(
            HelpProgressRecord(
                user_id="coach",
                content_id=content.id,
                progress_percent=100,
                status=ProgressStatus.COMPLETED,
            )
        )
        self.assertEqual(first.id, second.id)
        rows = self.db.list_help_progress("coach")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].status, ProgressStatus.COMPLETED)

    def test_progress_rejects_out_of_range_values(self):
        content = self._content()
        with self.assertRaises(ConstraintViolationError):
            self.db.upsert_help_progress(
                HelpProgressRecord(
                    user_id="coach", content_id=content.id, progress_percent=150
                )
            )

    def test_content_delete_cascades_progress_and_events(self):
        content = self._content()
        self.db.upsert_help_progress(
            HelpProgressRecord(user_id="coach", content_id=content.id)
        )
        self.db.record_help_event(
            HelpEventRecord(
                event_type=HelpEventType.VIEW,
                content_id=content.id,
                metadata={"source": "tooltip"},
            )
        )
        self.assertEqual(
            self.db.list_help_events(event_type=HelpEventType.VIEW)[0].metadata,
            {"source": "tooltip"},
        )
        self.assertTrue(self.db.delete_help_content(content.id))
        self.assertEqual(self.db.list_help_progress("coach"), [])
        self.assertEqual(self.db.list_help_events(), [])

    def test_jersey_numbers_unique_per_user(self):
        self._player(jersey_number=7)
        with self.assertRaises(ConstraintViolationError):
            self._player(jersey_number=7)
        self._player(user_id="other-coach", jersey_number=7)

    def test_players_are_scoped_to_owner(self):
        player = self._player()
        self.assertIsNone(self.db.get_player("intruder", player.id))
        self.assertIsNone(self.db.update_player("intruder", player.id, name="X"))
        self.assertFalse(self.db.delete_player("intruder", player.id))
        updated = self.db.update_player("coach", player.id, is_goalie=True)
        self.assertTrue(updated.is_goalie)

    def test_player_delete_cascades(self):
        player = self._player()
        tag = self.db.create_tag(PlayerTagRecord(user_id="coach", name="Defense"))
        self.db.create_tag_assignment(
            TagAssignmentRecord(user_id="coach", player_id=player.id, tag_id=tag.id)
        )
        self.db.create_activity(
            PlayerActivityRecord(
                user_id="coach",
                player_id=player.id,
                activity_type=ActivityType.GOAL,
                metadata={"minute": 12},
            )
        )
        activities = self.db.list_activities("coach", player_id=player.id)
        self.assertEqual(activities[0].metadata, {"minute": 12})

        self.assertTrue(self.db.delete_player("coach", player.id))
        self.assertEqual(self.db.list_activities("coach"), [])
        self.assertEqual(self.db.list_tag_assignments("coach"), [])
        self.assertIsNotNone(self.db.get_tag("coach", tag.id))

    def test_duplicate_tag_assignment_rejected(self):
        player = self._player()
        tag = self.db.create_tag(PlayerTagRecord(user_id="coach", name="Defense"))
        record = TagAssignmentRecord(user_id="coach", player_id=player.id, tag_id=tag.id)
        self.db.create_tag_assignment(record)
        with self.assertRaises(ConstraintViolationError):
            self.db.create_tag_assignment(
                TagAssignmentRecord(user_id="coach", player_id=player.id, tag_id=tag.id)
            )
        self.assertTrue(self.db.delete_tag_assignment("coach", player.id, tag.id))
        self.assertIsNone(self.db.get_tag_assignment("coach", player.id, tag.id))

    def test_roster_analytics_upsert_per_day(self):
        first = self.db.upsert_roster_analytics(
            RosterAnalyticsRecord(user_id="coach", snapshot_date="2026-01-01", total_players=3)
        )
        second = self.db.upsert_roster_analytics(
            RosterAnalyticsRecord(
                user_id="coach",
                snapshot_date="2026-01-01",
                total_players=4,
                tag_distribution={"Defense": 2},
            )
        )
        self.assertEqual(first.id, second.id)
        self.db.upsert_roster_analytics(
            RosterAnalyticsRecord(user_id="coach", snapshot_date="2026-01-02")
        )
        history = self.db.list_roster_analytics("coach")
        self.assertEqual([h.snapshot_date for h in history], ["2026-01-02", "2026-01-01"])
        self.assertEqual(history[1].total_players, 4)
        self.assertEqual(history[1].tag_distribution, {"Defense": 2})


if __name__ == "__main__":
    unittest.main()

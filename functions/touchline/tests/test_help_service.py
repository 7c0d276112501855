import unittest

from touchline.changefeed import PUBLIC_CHANNEL, InMemoryChangeFeed
from touchline.config import Settings
from touchline.db import InMemoryDbClient
from touchline.errors import (
    AuthenticationError,
    ConstraintViolationError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from touchline.help_service import HelpService, slugify
from touchline.types import (
    ContentType,
    ContributionStatus,
    ContributionType,
    Difficulty,
    HelpEventType,
    ProgressStatus,
)

EDITOR = "editor-1"


class HelpServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.feed = InMemoryChangeFeed()
        self.help = HelpService(self.db, self.feed, Settings(admin_user_ids=EDITOR))
        self.category = self.help.create_category(EDITOR, name="Getting Started")
        self.intro = self.help.create_content(
            EDITOR,
            title="Adding your first player",
            body="Open the roster and tap add player.",
            category=self.category.slug,
            content_type=ContentType.TUTORIAL,
            tags=["roster"],
        )
        self.tags = self.help.create_content(
            EDITOR,
            title="Organising with tags",
            body="Tags group players.",
            difficulty=Difficulty.INTERMEDIATE,
        )

    def test_slugify(self):
        self.assertEqual(slugify("  Hello, World! "), "hello-world")
        with self.assertRaises(ValidationError):
            slugify("!!!")

    def test_authoring_requires_editor(self):
        with self.assertRaises(AuthenticationError):
            self.help.create_content(None, title="T", body="B")
        with self.assertRaises(PermissionDeniedError):
            self.help.create_content("coach", title="T", body="B")
        with self.assertRaises(ConstraintViolationError):
            self.help.create_content(EDITOR, title="Adding your first player", body="B")

    def test_list_content_filters_and_hides_drafts(self):
        self.help.update_content(EDITOR, self.tags.id, is_published=False)
        listed = self.help.list_content()
        self.assertEqual([c.id for c in listed], [self.intro.id])
        self.assertEqual(
            [c.id for c in self.help.list_content(category=self.category.id)],
            [self.intro.id],
        )
        with self.assertRaises(PermissionDeniedError):
            self.help.list_content(include_unpublished=True, user_id="coach")
        self.assertEqual(
            len(self.help.list_content(include_unpublished=True, user_id=EDITOR)), 2
        )
        with self.assertRaises(NotFoundError):
            self.help.get_content(self.tags.id, "coach")

    def test_get_content_counts_views_and_starts_progress(self):
        viewed = self.help.get_content(self.intro.id, "coach")
        self.assertEqual(viewed.view_count, 1)
        progress = self.db.get_help_progress("coach", self.intro.id)
        self.assertEqual(progress.status, ProgressStatus.IN_PROGRESS)
        self.assertIsNotNone(progress.last_viewed_at)
        by_slug = self.help.get_content_by_slug(self.intro.slug)
        self.assertEqual(by_slug.view_count, 2)

    def test_search_records_event(self):
        results = self.help.search("player", user_id="coach")
        self.assertEqual(results[0][0].id, self.intro.id)
        self.help.search("nothing here")
        events = self.db.list_help_events(event_type=HelpEventType.SEARCH)
        self.assertEqual(
            [e.metadata["resultCount"] for e in events], [len(results), 0]
        )

    def test_progress_completion(self):
        partial = self.help.update_progress("coach", self.intro.id, progress_percent=40)
        self.assertEqual(partial.status, ProgressStatus.IN_PROGRESS)
        self.assertIsNone(partial.completed_at)

        done = self.help.update_progress("coach", self.intro.id, progress_percent=100)
        self.assertEqual(done.status, ProgressStatus.COMPLETED)
        self.assertIsNotNone(done.completed_at)

        again = self.help.update_progress("coach", self.intro.id, progress_percent=50)
        self.assertEqual(again.status, ProgressStatus.COMPLETED)
        self.assertEqual(again.completed_at, done.completed_at)

        completions = self.db.list_help_events(event_type=HelpEventType.COMPLETE)
        self.assertEqual(len(completions), 1)

        with self.assertRaises(ValidationError):
            self.help.update_progress("coach", self.intro.id, progress_percent=101)

    def test_explicit_status_overrides_completion(self):
        self.help.mark_complete("coach", self.intro.id)
        reopened = self.help.update_progress(
            "coach", self.intro.id, status=ProgressStatus.IN_PROGRESS, progress_percent=60
        )
        self.assertEqual(reopened.status, ProgressStatus.IN_PROGRESS)
        self.assertIsNone(reopened.completed_at)

    def test_reopening_completed_item_drops_below_full(self):
        self.help.mark_complete("coach", self.intro.id)
        reopened = self.help.update_progress(
            "coach", self.intro.id, status=ProgressStatus.IN_PROGRESS
        )
        self.assertEqual(reopened.status, ProgressStatus.IN_PROGRESS)
        self.assertEqual(reopened.progress_percent, 99)
        self.assertIsNone(reopened.completed_at)

        with self.assertRaises(ValidationError):
            self.help.update_progress(
                "coach",
                self.intro.id,
                status=ProgressStatus.IN_PROGRESS,
                progress_percent=100,
            )
        stored = self.db.get_help_progress("coach", self.intro.id)
        self.assertEqual(stored.progress_percent, 99)

    def test_progress_summary_and_bookmarks(self):
        self.help.mark_complete("coach", self.intro.id)
        self.help.update_progress("coach", self.tags.id, bookmarked=True)
        summary = self.help.get_progress_summary("coach")
        self.assertEqual(summary.total_content, 2)
        self.assertEqual(summary.completed, 1)
        self.assertEqual(summary.bookmarked, 1)
        self.assertEqual(summary.completion_percent, 50.0)

    def test_feedback_updates_counters_and_rating(self):
        content = self.help.submit_feedback("coach", self.intro.id, helpful=True, rating=5)
        self.assertEqual(content.helpful_count, 1)
        self.assertEqual(self.db.get_help_progress("coach", self.intro.id).rating, 5)
        content = self.help.submit_feedback("coach", self.intro.id, helpful=False)
        self.assertEqual(content.not_helpful_count, 1)
        with self.assertRaises(ValidationError):
            self.help.submit_feedback("coach", self.intro.id, helpful=True, rating=0)

    def test_recommendations_step_up_difficulty(self):
        recommended = self.help.recommend("coach")
        self.assertEqual(recommended[0].id, self.intro.id)

        self.help.mark_complete("coach", self.intro.id)
        recommended = self.help.recommend("coach")
        self.assertEqual([c.id for c in recommended], [self.tags.id])

    def test_contribution_review_flow(self):
        proposal = self.help.submit_contribution(
            "coach",
            contribution_type=ContributionType.NEW_CONTENT,
            title="Goalkeeper rotation",
            body="Rotate every half.",
        )
        self.assertEqual(proposal.status, ContributionStatus.PENDING)
        self.assertEqual(
            [c.id for c in self.help.list_contributions("someone-else")], []
        )
        self.assertEqual(
            [c.id for c in self.help.list_contributions(EDITOR)], [proposal.id]
        )

        with self.assertRaises(PermissionDeniedError):
            self.help.review_contribution("coach", proposal.id, approve=True)

        outcome = self.help.review_contribution(EDITOR, proposal.id, approve=True)
        self.assertEqual(outcome.contribution.status, ContributionStatus.APPROVED)
        self.assertEqual(outcome.content.slug, "goalkeeper-rotation")

        with self.assertRaises(InvalidStateError):
            self.help.review_contribution(EDITOR, proposal.id, approve=False)

    def test_translation_creates_localized_copy(self):
        proposal = self.help.submit_contribution(
            "coach",
            contribution_type=ContributionType.TRANSLATION,
            title="Ajouter un joueur",
            body="Ouvrez l'effectif.",
            content_id=self.intro.id,
            locale="fr",
        )
        outcome = self.help.review_contribution(EDITOR, proposal.id, approve=True)
        self.assertEqual(outcome.content.slug, f"{self.intro.slug}-fr")
        self.assertEqual(outcome.content.locale, "fr")
        self.assertEqual(outcome.content.category_id, self.category.id)

    def test_edit_contribution_requires_target(self):
        with self.assertRaises(ValidationError):
            self.help.submit_contribution(
                "coach", contribution_type=ContributionType.EDIT, title="T", body="B"
            )

    def test_delete_category_keeps_content(self):
        self.help.delete_category(EDITOR, self.category.id)
        self.assertIsNone(self.db.get_help_content(self.intro.id).category_id)

    def test_content_changes_go_to_public_channel(self):
        events = self.feed.events_for(PUBLIC_CHANNEL, table="help_content")
        self.assertEqual(len(events), 2)
        self.assertEqual(events[0].record["title"], "Adding your first player")

    def test_analytics_summary(self):
        self.help.get_content(self.intro.id, "coach")
        self.help.submit_feedback("coach", self.intro.id, helpful=True)
        self.help.search("Zebra")
        self.help.search("zebra")
        summary = self.help.analytics_summary(EDITOR)
        stats = {s.content_id: s for s in summary.content}
        self.assertEqual(stats[self.intro.id].views, 1)
        self.assertEqual(stats[self.intro.id].helpful_ratio, 1.0)
        self.assertIsNone(stats[self.tags.id].helpful_ratio)
        self.assertEqual(summary.zero_result_queries, [("zebra", 2)])
        with self.assertRaises(PermissionDeniedError):
            self.help.analytics_summary("coach")


if __name__ == "__main__":
    unittest.main()

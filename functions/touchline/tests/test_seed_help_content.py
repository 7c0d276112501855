import unittest

from scripts.seed_help_content import SEED_EDITOR_ID, seed
from touchline.changefeed import InMemoryChangeFeed
from touchline.config import Settings
from touchline.db import InMemoryDbClient
from touchline.help_service import HelpService

PAYLOAD = {
    "categories": [{"name": "Getting Started", "sortOrder": 1}],
    "content": [
        {
            "title": "Adding players",
            "body": "Tap add player.",
            "category": "getting-started",
            "contentType": "tutorial",
            "isPublished": False,
        },
        {"title": "Missing body"},
    ],
}


class SeedHelpContentTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.service = HelpService(
            self.db, InMemoryChangeFeed(), Settings(admin_user_ids=SEED_EDITOR_ID)
        )

    def test_seed_creates_and_skips_existing(self):
        self.assertEqual(seed(self.service, PAYLOAD), (2, 1))
        content = self.db.get_help_content_by_slug("adding-players")
        self.assertFalse(content.is_published)
        self.assertEqual(content.category_id, self.db.list_categories()[0].id)

        self.assertEqual(seed(self.service, PAYLOAD), (0, 3))

    def test_publish_flag(self):
        seed(self.service, PAYLOAD, publish=True)
        self.assertTrue(self.db.get_help_content_by_slug("adding-players").is_published)


if __name__ == "__main__":
    unittest.main()

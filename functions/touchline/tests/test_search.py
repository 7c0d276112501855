import unittest

from touchline.records import HelpContentRecord
from touchline.search import rank_help_content, score_help_content, tokenize


def _content(title, body="", **kwargs):
    return HelpContentRecord(slug=title.lower().replace(" ", "-"), title=title, body=body, **kwargs)


class SearchScoringTests(unittest.TestCase):
    def test_field_weights(self):
        content = _content(
            "Adding players",
            body="players players players players",
            tags=["roster"],
            summary="How to grow your squad",
        )
        self.assertEqual(score_help_content(["players"], content), 23.0)
        self.assertEqual(score_help_content(["roster"], content), 10.0)
        self.assertEqual(score_help_content(["squad"], content), 5.0)

    def test_title_phrase_bonus(self):
        content = _content("Adding players", body="players players players players")
        self.assertEqual(score_help_content(tokenize("Adding Players"), content), 58.0)

    def test_empty_query_returns_nothing(self):
        self.assertEqual(rank_help_content("   ", [_content("Tags")], limit=5), [])

    def test_ranking_order_and_filters(self):
        tags = _content("Using tags", body="tags", helpful_count=1)
        tags_popular = _content("Tags overview", body="tags", helpful_count=5)
        hidden = _content("Tags draft", is_published=False)
        other = _content("Exporting", category_id="cat-1", body="tags")

        ranked = rank_help_content("tags", [tags, tags_popular, hidden, other], limit=10)
        self.assertEqual(
            [c.title for c, _ in ranked], ["Tags overview", "Using tags", "Exporting"]
        )

        in_category = rank_help_content(
            "tags", [tags, tags_popular, other], limit=10, category_id="cat-1"
        )
        self.assertEqual([c.title for c, _ in in_category], ["Exporting"])
        self.assertEqual(len(rank_help_content("tags", [tags, tags_popular], limit=1)), 1)


if __name__ == "__main__":
    unittest.main()

import unittest
from radio_core.config import settings
from radio_core.engine import RankingEngine
from radio_core.models import Bookmark, ListeningSession, TrackedItem

NOW = 1_700_000_000_000
HOUR = 3600000

def make_item(source_id, added_at=NOW, stars=0, skips=0.0, completions=0, sessions=0):
    return TrackedItem(
        source_id=source_id,
        title=f"Title {source_id}",
        added_at=added_at,
        bookmarks=[Bookmark(timestamp=10.0 * i, created_at=NOW) for i in range(stars)],
        sessions=[ListeningSession(started_at=NOW - 100000, duration_seconds=100) for _ in range(sessions)],
        skip_count=skips,
        completion_count=completions,
    )

class TestEngagementScore(unittest.TestCase):
    def setUp(self):
        settings.RECENCY_WEIGHT = 0.3
        settings.ENGAGEMENT_WEIGHT = 0.7
        settings.RECENCY_HALF_LIFE_HOURS = 168
        settings.CONFIDENCE_ALPHA = 40
        settings.STAR_WEIGHT = 1.0
        settings.SKIP_WEIGHT = 0.3
        settings.COMPLETION_WEIGHT = 0.5
        self.engine = RankingEngine(clock=lambda: NOW)

    def test_confidence_formula(self):
        item = make_item("a", stars=2, skips=1.0, completions=1, sessions=2)
        # raw = 2 - 0.3 + 0.5 * 0.5 * 2 = 2.2
        self.assertAlmostEqual(self.engine.calculate_confidence(item), 1 + 40 * 2.2)

    def test_confidence_floor(self):
        item = make_item("a", skips=10.0)
        self.assertEqual(self.engine.calculate_confidence(item), 1)

    def test_recency_decay(self):
        self.assertEqual(self.engine.calculate_recency(NOW), 1.0)
        self.assertAlmostEqual(self.engine.calculate_recency(NOW - 168 * HOUR), 0.5)

    def test_engaged_item_beats_skipped_item(self):
        liked = make_item("liked", stars=1, completions=1, sessions=1)
        skipped = make_item("skipped", stars=1, skips=5.0, sessions=1)
        max_conf = self.engine.max_confidence([liked, skipped])

        liked_score = self.engine.calculate_engagement_score(liked, max_conf)
        skipped_score = self.engine.calculate_engagement_score(skipped, max_conf)
        self.assertGreater(liked_score, skipped_score)
        self.assertAlmostEqual(liked_score, 1.0)

    def test_all_zero_collection(self):
        items = [make_item("a"), make_item("b")]
        self.assertEqual(self.engine.max_confidence(items), 1)
        self.assertEqual(self.engine.max_confidence([]), 1)
        self.assertAlmostEqual(self.engine.calculate_engagement_score(items[0], 1), 1.0)

    def test_rank_orders_by_score(self):
        old_plain = make_item("old", added_at=NOW - 1000 * HOUR)
        new_plain = make_item("new")
        starred = make_item("starred", added_at=NOW - 500 * HOUR, stars=3)
        ranked = self.engine.rank([old_plain, new_plain, starred])
        self.assertEqual([i.source_id for i in ranked], ["starred", "new", "old"])

    def test_rank_ties_keep_input_order(self):
        items = [make_item(name) for name in ["c", "a", "b"]]
        self.assertEqual([i.source_id for i in self.engine.rank(items)], ["c", "a", "b"])
        self.assertEqual(self.engine.rank([]), [])

    def test_rank_does_not_mutate(self):
        items = [make_item("a", stars=1), make_item("b")]
        before = [i.model_dump() for i in items]
        self.engine.rank(items)
        self.assertEqual([i.model_dump() for i in items], before)

    def test_engagement_stats(self):
        item = make_item("a", stars=1, skips=2.0, completions=1, sessions=2)
        stats = self.engine.engagement_stats(item, [item])
        self.assertEqual(stats.stars, 1)
        self.assertEqual(stats.skips, 2.0)
        self.assertEqual(stats.plays, 2)
        self.assertEqual(stats.completions, 1)
        self.assertAlmostEqual(stats.score, 1.0)

if __name__ == '__main__':
    unittest.main()

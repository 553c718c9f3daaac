import unittest
from datetime import datetime, timezone

from yuka.discord.render import (
    chunk_text,
    format_priority_announcement,
    format_reply,
    history_embed,
    make_bar,
    stats_embed,
    strip_attribution,
)
from yuka.storage.models import ConversationTurn, ModelStats


class TestChunking(unittest.TestCase):
    def test_chunks_preserve_order_and_limit(self):
        text = "".join(str(i % 10) for i in range(4500))
        chunks = chunk_text(text, 1800)

        self.assertEqual([len(c) for c in chunks], [1800, 1800, 900])
        self.assertEqual("".join(chunks), text)

    def test_short_text_is_one_chunk(self):
        self.assertEqual(chunk_text("hi", 1800), ["hi"])

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            chunk_text("hi", 0)


class TestAttribution(unittest.TestCase):
    def test_strip_recovers_content(self):
        content = "first paragraph\n\nsecond paragraph"
        self.assertEqual(strip_attribution(format_reply("m/a:free", content)), content)

    def test_plain_text_untouched(self):
        self.assertEqual(strip_attribution("just text"), "just text")


class TestFormatting(unittest.TestCase):
    def test_make_bar(self):
        self.assertEqual(make_bar(100), "█" * 20)
        self.assertEqual(make_bar(0), "░" * 20)
        self.assertEqual(make_bar(50), "█" * 10 + "░" * 10)

    def test_priority_announcement_lists_models_in_order(self):
        text = format_priority_announcement(["c", "b", "a"])
        lines = text.splitlines()
        self.assertIn("priority", lines[0])
        self.assertEqual(lines[1:], ["1. c", "2. b", "3. a"])

    def test_history_embed(self):
        turn = ConversationTurn("u1", "q", "a", "m", datetime(2025, 1, 1, tzinfo=timezone.utc))
        embed = history_embed([turn])
        self.assertIn("**Q:** q", embed.description)
        self.assertIn("**A:** a", embed.description)

    def test_stats_embed(self):
        embed = stats_embed([ModelStats("m/a", 3, 4, 75.0)])
        self.assertIn("m/a", embed.description)
        self.assertIn("75.0% (3/4)", embed.description)


if __name__ == "__main__":
    unittest.main()

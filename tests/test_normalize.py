# tests/test_normalize.py
from __future__ import annotations

import unittest

from ig_world.errors import MalformedDumpError
from ig_world.normalize import record_from_dump, record_to_dump
from ig_world.records import (
    MessageEntry,
    MutualEntry,
    NotificationEntry,
    PageScrapeRecord,
    PostEntry,
    StoryEntry,
    SuggestionEntry,
)


def _sample_record() -> PageScrapeRecord:
    return PageScrapeRecord(
        page_url="https://www.instagram.com/maya.lifts/",
        page_type="profile",
        logged_in=True,
        current_user="offline_me",
        stories=(StoryEntry("maya.lifts", has_unwatched=True, img_src="https://cdn/x.jpg"),),
        posts=(PostEntry("maya.lifts", caption="front lever progress", likes=12, is_video=True),),
        messages=(MessageEntry("sam.k", preview="see you", unread=True),),
        notifications=(NotificationEntry("jon_runs", "like", text="jon_runs liked your post", content_type="post"),),
        mutuals=(MutualEntry(type="followers", count="1.2K"), MutualEntry(type="follows_you")),
        suggestions=(SuggestionEntry("coach.ana", reason="mutual"),),
        raw_usernames=("maya.lifts", "jon_runs"),
        raw_texts=("Follows you",),
        element_counts={"articles": 0, "images": 3},
        captured_at="2025-01-02T03:04:05.678000+00:00",
    )


class TestDumpCodec(unittest.TestCase):
    def test_document_uses_camel_case_keys(self) -> None:
        doc = record_to_dump(_sample_record())

        for key in (
            "pageType",
            "loggedIn",
            "currentUser",
            "stories",
            "posts",
            "messages",
            "notifications",
            "mutuals",
            "suggestions",
            "rawUsernames",
            "rawTexts",
            "elementCounts",
            "url",
            "capturedAt",
        ):
            self.assertIn(key, doc)

        self.assertEqual(doc["stories"][0], {"username": "maya.lifts", "hasUnwatched": True, "imgSrc": "https://cdn/x.jpg"})
        self.assertEqual(doc["mutuals"][1], {"type": "follows_you"})
        self.assertEqual(doc["summary"]["posts"], 1)

    def test_round_trip(self) -> None:
        record = _sample_record()
        self.assertEqual(record_from_dump(record_to_dump(record)), record)

    def test_tolerates_wrong_types(self) -> None:
        record = record_from_dump(
            {
                "pageType": "nonsense",
                "loggedIn": "yes",
                "stories": [{"username": "a", "hasUnwatched": 1}, "junk", {"hasUnwatched": True}],
                "posts": {"not": "a list"},
                "notifications": [{"username": "b", "type": "poke"}],
                "mutuals": [{"type": "followers", "count": 340}],
                "rawUsernames": ["a", "a", 3, " b "],
                "elementCounts": {"images": "7", "links": -2},
            }
        )

        self.assertEqual(record.page_type, "unknown")
        self.assertFalse(record.logged_in)
        self.assertEqual(record.stories, (StoryEntry("a"),))
        self.assertEqual(record.posts, ())
        self.assertEqual(record.notifications, ())
        self.assertEqual(record.mutuals[0].count, "340")
        self.assertEqual(record.raw_usernames, ("a", "b"))
        self.assertEqual(dict(record.element_counts), {"images": 7, "links": 0})
        self.assertEqual(record.page_url, "")

    def test_rejects_non_object_document(self) -> None:
        with self.assertRaises(MalformedDumpError):
            record_from_dump(["not", "an", "object"])


if __name__ == "__main__":
    unittest.main()

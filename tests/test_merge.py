from __future__ import annotations

import unittest

from ig_world.merge import SessionDataset, merge_record, merge_records
from ig_world.records import (
    MessageEntry,
    MutualEntry,
    NotificationEntry,
    PageScrapeRecord,
    PostEntry,
    StoryEntry,
    SuggestionEntry,
)


def _record(**kwargs) -> PageScrapeRecord:
    return PageScrapeRecord(page_url="https://www.instagram.com/", page_type="home", **kwargs)


def _full_record() -> PageScrapeRecord:
    return _record(
        stories=(StoryEntry("alex", has_unwatched=True), StoryEntry("bo")),
        posts=(PostEntry("alex", caption="first climb", likes=5),),
        messages=(MessageEntry("sam", preview="hey"),),
        notifications=(NotificationEntry("jon", "follow"),),
        mutuals=(MutualEntry(type="follows_you"), MutualEntry(type="followed_by", username="kim")),
        suggestions=(SuggestionEntry("coach"),),
        raw_usernames=("alex", "bo", "sam"),
    )


def _key_sets(dataset: SessionDataset) -> dict[str, set[str]]:
    return {
        "stories": set(dataset.stories),
        "posts": set(dataset.posts),
        "messages": set(dataset.messages),
        "notifications": set(dataset.notifications),
        "mutuals": set(dataset.mutuals),
        "suggestions": set(dataset.suggestions),
        "usernames": set(dataset.usernames),
    }


class TestMerge(unittest.TestCase):
    def test_merge_into_empty(self) -> None:
        dataset = merge_record(SessionDataset(), _full_record())

        self.assertEqual(
            dataset.stats(),
            {
                "stories": 2,
                "posts": 1,
                "messages": 1,
                "notifications": 1,
                "mutuals": 2,
                "suggestions": 1,
                "usernames": 3,
            },
        )
        self.assertEqual(dataset.usernames, ("alex", "bo", "sam"))

    def test_merge_is_idempotent(self) -> None:
        record = _full_record()
        once = merge_record(SessionDataset(), record)
        twice = merge_record(once, record)
        self.assertEqual(once, twice)

        seeded = merge_record(SessionDataset(), _record(stories=(StoryEntry("zed"),)))
        self.assertEqual(merge_record(merge_record(seeded, record), record), merge_record(seeded, record))

    def test_merge_does_not_mutate_input(self) -> None:
        empty = SessionDataset()
        merge_record(empty, _full_record())
        self.assertTrue(empty.is_empty())

    def test_key_sets_are_order_invariant(self) -> None:
        r1 = _full_record()
        r2 = _record(
            stories=(StoryEntry("bo", has_unwatched=True), StoryEntry("cy")),
            posts=(PostEntry("alex", caption="first climb", likes=50), PostEntry("cy", caption="pullups")),
            messages=(MessageEntry("sam", preview="newer"), MessageEntry("lu")),
            raw_usernames=("cy", "alex"),
        )

        forward = merge_records([r1, r2])
        backward = merge_records([r2, r1])
        self.assertEqual(_key_sets(forward), _key_sets(backward))

    def test_duplicate_posts_collapse(self) -> None:
        r1 = _record(posts=(PostEntry("maya", caption="handstand practice", likes=10),))
        r2 = _record(posts=(PostEntry("maya", caption="handstand practice", likes=400),))

        dataset = merge_records([r1, r2])
        posts = dataset.post_list()
        self.assertEqual(len(posts), 1)
        self.assertEqual(posts[0].likes, 10)

    def test_first_seen_story_wins(self) -> None:
        records = [
            _record(stories=(StoryEntry("alex", has_unwatched=True),)),
            _record(stories=(StoryEntry("alex", has_unwatched=False),)),
            _record(stories=(StoryEntry("alex", has_unwatched=False),)),
        ]
        dataset = merge_records(records)

        stories = dataset.story_list()
        self.assertEqual(len(stories), 1)
        self.assertEqual(stories[0].username, "alex")
        self.assertTrue(stories[0].has_unwatched)

    def test_newer_message_preview_is_dropped(self) -> None:
        dataset = merge_records(
            [
                _record(messages=(MessageEntry("sam", preview="old"),)),
                _record(messages=(MessageEntry("sam", preview="new"),)),
            ]
        )
        self.assertEqual([m.preview for m in dataset.message_list()], ["old"])

    def test_usernames_union_keeps_first_seen_order(self) -> None:
        dataset = merge_records(
            [
                _record(raw_usernames=("a", "b")),
                _record(raw_usernames=("c", "a", " ", "d")),
            ]
        )
        self.assertEqual(dataset.usernames, ("a", "b", "c", "d"))


if __name__ == "__main__":
    unittest.main()

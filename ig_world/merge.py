from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, TypeVar

from .dedupe import (
    KeyFn,
    message_key,
    mutual_key,
    notification_key,
    post_key,
    story_key,
    suggestion_key,
)
from .records import (
    MessageEntry,
    MutualEntry,
    NotificationEntry,
    PageScrapeRecord,
    PostEntry,
    StoryEntry,
    SuggestionEntry,
)

T = TypeVar("T")


@dataclass(frozen=True)
class SessionDataset:
    """
    Deduplicated accumulation of scrape records.

    Each kind maps identity key -> first-seen entry, in first-seen order.
    Instances are treated as values: `merge_record` returns a new dataset and
    never mutates its input.
    """

    stories: Mapping[str, StoryEntry] = field(default_factory=dict)
    posts: Mapping[str, PostEntry] = field(default_factory=dict)
    messages: Mapping[str, MessageEntry] = field(default_factory=dict)
    notifications: Mapping[str, NotificationEntry] = field(default_factory=dict)
    mutuals: Mapping[str, MutualEntry] = field(default_factory=dict)
    suggestions: Mapping[str, SuggestionEntry] = field(default_factory=dict)
    usernames: tuple[str, ...] = ()

    def story_list(self) -> list[StoryEntry]:
        return list(self.stories.values())

    def post_list(self) -> list[PostEntry]:
        return list(self.posts.values())

    def message_list(self) -> list[MessageEntry]:
        return list(self.messages.values())

    def notification_list(self) -> list[NotificationEntry]:
        return list(self.notifications.values())

    def mutual_list(self) -> list[MutualEntry]:
        return list(self.mutuals.values())

    def suggestion_list(self) -> list[SuggestionEntry]:
        return list(self.suggestions.values())

    def is_empty(self) -> bool:
        return not any(
            (
                self.stories,
                self.posts,
                self.messages,
                self.notifications,
                self.mutuals,
                self.suggestions,
                self.usernames,
            )
        )

    def stats(self) -> dict[str, int]:
        return {
            "stories": len(self.stories),
            "posts": len(self.posts),
            "messages": len(self.messages),
            "notifications": len(self.notifications),
            "mutuals": len(self.mutuals),
            "suggestions": len(self.suggestions),
            "usernames": len(self.usernames),
        }


def _append_absent(
    existing: Mapping[str, T], entries: Iterable[T], key_fn: KeyFn[T]
) -> dict[str, T]:
    out = dict(existing)
    for entry in entries:
        key = key_fn(entry)
        if key in out:
            continue
        out[key] = entry
    return out


def _union_ordered(existing: tuple[str, ...], values: Iterable[str]) -> tuple[str, ...]:
    present = set(existing)
    added: list[str] = []
    for value in values:
        name = (value or "").strip()
        if not name or name in present:
            continue
        present.add(name)
        added.append(name)
    if not added:
        return existing
    return existing + tuple(added)


def merge_record(dataset: SessionDataset, record: PageScrapeRecord) -> SessionDataset:
    """
    Fold one record into a dataset.

    Append-if-absent per kind; the first entry seen for an identity key wins.
    Re-merging an identical record is a no-op.
    """
    return SessionDataset(
        stories=_append_absent(dataset.stories, record.stories, story_key),
        posts=_append_absent(dataset.posts, record.posts, post_key),
        messages=_append_absent(dataset.messages, record.messages, message_key),
        notifications=_append_absent(
            dataset.notifications, record.notifications, notification_key
        ),
        mutuals=_append_absent(dataset.mutuals, record.mutuals, mutual_key),
        suggestions=_append_absent(dataset.suggestions, record.suggestions, suggestion_key),
        usernames=_union_ordered(dataset.usernames, record.raw_usernames),
    )


def merge_records(
    records: Iterable[PageScrapeRecord], *, dataset: SessionDataset | None = None
) -> SessionDataset:
    out = dataset if dataset is not None else SessionDataset()
    for record in records:
        out = merge_record(out, record)
    return out

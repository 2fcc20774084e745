from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, TypeVar

from .records import (
    MessageEntry,
    MutualEntry,
    NotificationEntry,
    PostEntry,
    StoryEntry,
    SuggestionEntry,
)

T = TypeVar("T")

KeyFn = Callable[[T], str]


def story_key(entry: StoryEntry) -> str:
    return f"user:{entry.username}"


def post_key(entry: PostEntry) -> str:
    return f"post:{entry.username}\x1f{entry.caption or ''}"


def message_key(entry: MessageEntry) -> str:
    # Preview text is ignored: a newer snippet from the same user is dropped.
    return f"user:{entry.username}"


def notification_key(entry: NotificationEntry) -> str:
    return f"notif:{entry.username}\x1f{entry.type}"


def mutual_key(entry: MutualEntry) -> str:
    if entry.username:
        return f"user:{entry.username}"
    return f"type:{entry.type}\x1f{entry.count or ''}\x1f{entry.preview or ''}"


def suggestion_key(entry: SuggestionEntry) -> str:
    return f"user:{entry.username}"


@dataclass
class SeenKeys:
    keys: set[str] = field(default_factory=set)

    def has(self, key: str) -> bool:
        return key in self.keys

    def add(self, key: str) -> None:
        self.keys.add(key)


def unique_by_key(entries: Iterable[T], key_fn: KeyFn[T]) -> list[T]:
    """Drop later entries whose identity key was already seen (first wins)."""
    seen = SeenKeys()
    out: list[T] = []
    for entry in entries:
        key = key_fn(entry)
        if seen.has(key):
            continue
        seen.add(key)
        out.append(entry)
    return out

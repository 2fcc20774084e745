from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Mapping

PageType = Literal[
    "home",
    "messages",
    "explore",
    "reels",
    "stories",
    "profile",
    "post",
    "unknown",
]

NotificationType = Literal["follow", "like", "story_like", "comment", "mention"]

MutualType = Literal[
    "followed_by",
    "follows_you",
    "mutual_friends",
    "followers",
    "following",
]

ErrorKind = Literal["extraction", "persistence", "malformed_dump", "browser_unavailable"]


@dataclass(frozen=True)
class StoryEntry:
    username: str
    has_unwatched: bool = False
    img_src: str | None = None


@dataclass(frozen=True)
class PostEntry:
    username: str
    caption: str | None = None
    likes: int = 0
    is_video: bool = False
    img_src: str | None = None
    timestamp: str | None = None


@dataclass(frozen=True)
class MessageEntry:
    username: str
    preview: str = ""
    unread: bool = False
    is_group: bool = False
    img_src: str | None = None


@dataclass(frozen=True)
class NotificationEntry:
    username: str
    type: NotificationType
    text: str = ""
    content_type: str | None = None


@dataclass(frozen=True)
class MutualEntry:
    """
    A social-proof hint about the viewed account.

    Entries with a username name a specific person; aggregate entries
    (follower counts, "Follows you", "Followed by X and ...") carry only a type
    and a count or preview.
    """

    type: MutualType
    username: str | None = None
    count: str | None = None
    preview: str | None = None
    text: str | None = None


@dataclass(frozen=True)
class SuggestionEntry:
    username: str
    reason: str = "suggested"


@dataclass(frozen=True)
class PageScrapeRecord:
    """One extraction pass over a single page view."""

    page_url: str
    page_type: PageType = "unknown"
    logged_in: bool = False
    current_user: str | None = None

    stories: tuple[StoryEntry, ...] = ()
    posts: tuple[PostEntry, ...] = ()
    messages: tuple[MessageEntry, ...] = ()
    notifications: tuple[NotificationEntry, ...] = ()
    mutuals: tuple[MutualEntry, ...] = ()
    suggestions: tuple[SuggestionEntry, ...] = ()

    raw_usernames: tuple[str, ...] = ()
    raw_texts: tuple[str, ...] = ()
    element_counts: Mapping[str, int] = field(default_factory=dict)
    captured_at: str | None = None

    def summary(self) -> dict[str, int]:
        return {
            "stories": len(self.stories),
            "posts": len(self.posts),
            "messages": len(self.messages),
            "notifications": len(self.notifications),
            "mutuals": len(self.mutuals),
            "suggestions": len(self.suggestions),
            "usernames": len(self.raw_usernames),
        }


@dataclass(frozen=True)
class ErrorResult:
    """Structured "no data this pass" result returned instead of raising."""

    error: str
    kind: ErrorKind = "extraction"

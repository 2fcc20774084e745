from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from .config_schema import ProjectionConfig
from .merge import SessionDataset

AVATAR_PALETTE: tuple[str, ...] = (
    "👤", "👩", "👨", "🧑", "👧", "👦", "🧔", "👩‍🦰", "👨‍🦱", "👩‍🦳",
    "🧑‍🎤", "👩‍💻", "👨‍🎨", "🧑‍🚀", "👩‍🔬", "🎭", "🎨", "📸", "🎵", "✨",
)

GRADIENT_PALETTE: tuple[str, ...] = (
    "linear-gradient(135deg, #ff6b9d, #c678dd)",
    "linear-gradient(135deg, #61dafb, #c678dd)",
    "linear-gradient(135deg, #ffd93d, #ff6b9d)",
    "linear-gradient(135deg, #98c379, #61dafb)",
    "linear-gradient(135deg, #e06c75, #ffd93d)",
    "linear-gradient(135deg, #c678dd, #61dafb)",
)

PROFILE_AVATAR = "🎮"

# Stories beyond this index are shown as already viewed when padded in.
_PADDED_UNVIEWED = 4


def username_hash(username: str) -> int:
    """
    31-multiplier polynomial hash over UTF-16 code units, wrapped to a signed
    32-bit integer. Stable across processes, unlike the builtin hash().
    """
    data = (username or "").encode("utf-16-le", errors="surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def avatar_for(username: str) -> str:
    return AVATAR_PALETTE[abs(username_hash(username)) % len(AVATAR_PALETTE)]


def gradient_for(index: int) -> str:
    return GRADIENT_PALETTE[index % len(GRADIENT_PALETTE)]


@dataclass(frozen=True)
class DisplayStory:
    id: int
    username: str
    avatar: str
    viewed: bool
    seconds_ago: int
    timestamp_ms: int
    has_unwatched: bool = False
    img_src: str | None = None


@dataclass(frozen=True)
class DisplayPost:
    id: int
    username: str
    avatar: str
    caption: str
    likes: int
    comments: int
    image: str
    is_video: bool
    seconds_ago: int
    timestamp_ms: int


@dataclass(frozen=True)
class DisplayMessage:
    id: int
    username: str
    avatar: str
    text: str
    unread: bool
    is_group: bool
    seconds_ago: int
    timestamp_ms: int


@dataclass(frozen=True)
class ProfileSummary:
    username: str = "you"
    display_name: str = "Your Profile"
    avatar: str = PROFILE_AVATAR
    posts: int = 0
    followers: int = 0
    following: int = 0
    bio: str = "Exploring CreativeInstagram!"


@dataclass(frozen=True)
class WorldDisplayDataset:
    stories: tuple[DisplayStory, ...] = ()
    posts: tuple[DisplayPost, ...] = ()
    messages: tuple[DisplayMessage, ...] = ()
    profile: ProfileSummary = field(default_factory=ProfileSummary)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _comments_estimate(likes: int) -> int:
    return int((likes or 100) * 0.05)


def project_dataset(
    dataset: SessionDataset,
    *,
    config: ProjectionConfig | None = None,
    now: datetime | None = None,
) -> WorldDisplayDataset:
    """
    Turn a session dataset into display records.

    Timestamps are synthetic: entry i of a kind is i * stride seconds old.
    """
    cfg = config or ProjectionConfig()
    now_ms = _ms(now or _utc_now())

    def _ago(index: int, stride: int) -> tuple[int, int]:
        seconds = index * int(stride)
        return seconds, now_ms - seconds * 1000

    stories: list[DisplayStory] = []
    for i, s in enumerate(dataset.story_list()):
        seconds, ts = _ago(i, cfg.story_stride_seconds)
        stories.append(
            DisplayStory(
                id=i + 1,
                username=s.username,
                avatar=avatar_for(s.username),
                viewed=not s.has_unwatched,
                seconds_ago=seconds,
                timestamp_ms=ts,
                has_unwatched=s.has_unwatched,
                img_src=s.img_src,
            )
        )

    present = {s.username for s in stories}
    extras = [u for u in dataset.usernames if u not in present][: int(cfg.extra_story_usernames)]
    for i, username in enumerate(extras):
        if len(stories) >= int(cfg.max_stories):
            break
        seconds, ts = _ago(len(stories), cfg.story_stride_seconds)
        stories.append(
            DisplayStory(
                id=len(stories) + 1,
                username=username,
                avatar=avatar_for(username),
                viewed=i >= _PADDED_UNVIEWED,
                seconds_ago=seconds,
                timestamp_ms=ts,
            )
        )

    posts: list[DisplayPost] = []
    for i, p in enumerate(dataset.post_list()):
        seconds, ts = _ago(i, cfg.post_stride_seconds)
        posts.append(
            DisplayPost(
                id=i + 1,
                username=p.username,
                avatar=avatar_for(p.username),
                caption=p.caption or "",
                likes=int(p.likes),
                comments=_comments_estimate(int(p.likes)),
                image=gradient_for(i),
                is_video=p.is_video,
                seconds_ago=seconds,
                timestamp_ms=ts,
            )
        )

    messages: list[DisplayMessage] = []
    for i, m in enumerate(dataset.message_list()):
        seconds, ts = _ago(i, cfg.message_stride_seconds)
        messages.append(
            DisplayMessage(
                id=i + 1,
                username=m.username,
                avatar=avatar_for(m.username),
                text=m.preview,
                unread=m.unread,
                is_group=m.is_group,
                seconds_ago=seconds,
                timestamp_ms=ts,
            )
        )

    profile = ProfileSummary(
        posts=len(posts),
        followers=len(dataset.usernames),
        following=len(dataset.stories),
    )

    return WorldDisplayDataset(
        stories=tuple(stories),
        posts=tuple(posts),
        messages=tuple(messages),
        profile=profile,
    )


class WorldDataProjector:
    def __init__(
        self,
        config: ProjectionConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or ProjectionConfig()
        self._clock = clock or _utc_now

    def project(self, dataset: SessionDataset) -> WorldDisplayDataset:
        return project_dataset(dataset, config=self._config, now=self._clock())

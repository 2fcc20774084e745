from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DEFAULT_RESERVED_PATHS = [
    "explore",
    "direct",
    "accounts",
    "p",
    "reels",
    "stories",
    "reel",
    "tv",
    "about",
    "legal",
    "api",
    "developer",
    "privacy",
    "terms",
    "session",
    "login",
    "challenge",
]


def _normalize_term_list(values: list[str], *, allow_empty: bool) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()

    for item in values:
        term = (item or "").strip()
        if not term:
            continue
        key = term.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(key)

    if not allow_empty and not out:
        raise ValueError("must contain at least one non-empty term")
    return out


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    dump_dir: str = "~/.creative-instagram/scrape-dumps"
    # Earlier archive locations, scanned after dump_dir in this order.
    legacy_dump_dirs: list[str] = Field(
        default_factory=lambda: ["~/.instagram-3d-visualizer/scrape-dumps"]
    )
    html_dump_dir: str = "~/.creative-instagram/html-dumps"

    @field_validator("dump_dir", "html_dump_dir")
    @classmethod
    def _dir_must_be_set(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("must be a non-empty path")
        return value

    @field_validator("legacy_dump_dirs")
    @classmethod
    def _strip_legacy_dirs(cls, v: list[str]) -> list[str]:
        return [d.strip() for d in v if (d or "").strip()]


class BrowserConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = "https://www.instagram.com"
    headless: bool = False
    user_data_dir: str = "~/.creative-instagram/browser-profile"
    navigation_timeout_ms: PositiveInt = 30000

    @field_validator("base_url")
    @classmethod
    def _base_url_must_be_http(cls, v: str) -> str:
        url = (v or "").strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ValueError("must start with http:// or https://")
        return url


class ExtractionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    login_icon_threshold: NonNegativeInt = 3
    max_raw_usernames: PositiveInt = 50
    max_raw_texts: PositiveInt = 30
    reserved_paths: list[str] = Field(default_factory=lambda: list(_DEFAULT_RESERVED_PATHS))

    @field_validator("reserved_paths")
    @classmethod
    def _normalize_reserved(cls, v: list[str]) -> list[str]:
        return _normalize_term_list(v, allow_empty=True)


class CrawlStepConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str
    label: str = ""

    @field_validator("path")
    @classmethod
    def _path_must_be_absolute(cls, v: str) -> str:
        path = (v or "").strip()
        if not path.startswith("/"):
            raise ValueError("must start with '/'")
        return path


def _default_steps() -> list[CrawlStepConfig]:
    return [
        CrawlStepConfig(path="/", label="Home Feed"),
        CrawlStepConfig(path="/direct/inbox/", label="Messages"),
        CrawlStepConfig(path="/accounts/activity/", label="Notifications"),
        CrawlStepConfig(path="/explore/", label="Explore"),
        CrawlStepConfig(path="/accounts/edit/", label="Profile"),
    ]


class CrawlConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    steps: list[CrawlStepConfig] = Field(default_factory=_default_steps)
    settle_seconds: NonNegativeFloat = 2.0
    pre_extract_seconds: NonNegativeFloat = 0.5
    post_step_seconds: NonNegativeFloat = 1.5


class ChatConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    settle_seconds: NonNegativeFloat = 3.5
    max_messages: PositiveInt = 5


class ProjectionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    story_stride_seconds: NonNegativeInt = 3600
    post_stride_seconds: NonNegativeInt = 86400
    message_stride_seconds: NonNegativeInt = 1800
    max_stories: NonNegativeInt = 12
    extra_story_usernames: NonNegativeInt = 10


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    storage: StorageConfig = Field(default_factory=StorageConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    projection: ProjectionConfig = Field(default_factory=ProjectionConfig)

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Iterable
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from .config_schema import ExtractionConfig
from .dedupe import mutual_key, unique_by_key
from .errors import ExtractionError
from .records import (
    ErrorResult,
    MessageEntry,
    MutualEntry,
    NotificationEntry,
    PageScrapeRecord,
    PageType,
    PostEntry,
    StoryEntry,
    SuggestionEntry,
)
from .run_log import EventLogger, NullLogger

_BS_PARSER = "html.parser"

_USERNAME_PATH_RE = re.compile(r"^/([A-Za-z0-9._]{1,30})/?$")
_PROFILE_PATH_RE = re.compile(r"^/[A-Za-z0-9._]+/?$")

# Ordered prefix rules; the profile rule is a full-path match and sits
# between the tab prefixes and the post prefix.
_PAGE_TYPE_RULES: tuple[tuple[str, PageType], ...] = (
    ("/direct", "messages"),
    ("/explore", "explore"),
    ("/reels", "reels"),
    ("/stories", "stories"),
)

_STORY_ALT_RE = re.compile(r"^(.+?)(?:['’]s profile|['’]s story| profile)", re.IGNORECASE)
_MESSAGE_ALT_RE = re.compile(r"^(.+?)(?:['’]s profile|['’]s photo)", re.IGNORECASE)
_LIKES_RE = re.compile(r"(\d[\d,.]*)\s*([KkMm])?\s*(?:likes?|views?)\b", re.IGNORECASE)
_FOLLOWERS_RE = re.compile(r"(\d[\d,.]*[KMkm]?)\s*followers?", re.IGNORECASE)
_FOLLOWING_RE = re.compile(r"(\d[\d,.]*[KMkm]?)\s*following", re.IGNORECASE)
_MUTUAL_FRIENDS_RE = re.compile(r"Followed by (.+?) and", re.IGNORECASE)
_FOLLOWED_BY_RE = re.compile(r"Followed by ([a-zA-Z0-9._]+)", re.IGNORECASE)
_DOTTED_THOUSANDS_RE = re.compile(r"\d{1,3}(?:\.\d{3})+")

_NOTIFICATION_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("follow", re.compile(r"^([a-zA-Z0-9._]+) started following you", re.IGNORECASE)),
    ("like", re.compile(r"^([a-zA-Z0-9._]+).* liked your (post|reel|photo|video)", re.IGNORECASE)),
    ("story_like", re.compile(r"^([a-zA-Z0-9._]+).* liked your story", re.IGNORECASE)),
    ("comment", re.compile(r"^([a-zA-Z0-9._]+).* commented:", re.IGNORECASE)),
    ("mention", re.compile(r"^([a-zA-Z0-9._]+).* mentioned you", re.IGNORECASE)),
)

_UNREAD_STYLE = "rgb(0, 149, 246)"
_CAPTION_MAX = 200
_PREVIEW_MAX = 80


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def detect_page_type(url: str) -> PageType:
    """Classify a page by URL path; first matching rule wins."""
    try:
        path = urlsplit(url or "").path or ""
    except ValueError:
        return "unknown"

    if path in ("", "/"):
        return "home"
    for prefix, page_type in _PAGE_TYPE_RULES:
        if path.startswith(prefix):
            return page_type
    if _PROFILE_PATH_RE.fullmatch(path):
        return "profile"
    if path.startswith("/p/"):
        return "post"
    return "unknown"


def username_from_href(href: str | None, reserved: Iterable[str]) -> str | None:
    """Return the username for a single-segment internal link, else None."""
    m = _USERNAME_PATH_RE.match((href or "").strip())
    if not m:
        return None
    name = m.group(1)
    if name.casefold() in {r.casefold() for r in reserved}:
        return None
    return name


def parse_count(number: str, suffix: str | None = None) -> int:
    """Parse "1,234", "1.234", "12.5" + "K" style counts into a non-negative int."""
    digits = (number or "").replace(",", "").strip()
    if not digits:
        return 0

    multiplier = 1
    if suffix:
        multiplier = 1_000_000 if suffix.casefold() == "m" else 1_000
    elif _DOTTED_THOUSANDS_RE.fullmatch(digits):
        digits = digits.replace(".", "")

    try:
        return max(0, int(float(digits) * multiplier))
    except ValueError:
        return 0


def _text_content(el: Tag) -> str:
    return el.get_text()


def _lines(el: Tag) -> list[str]:
    return [ln.strip() for ln in el.get_text("\n").split("\n") if ln.strip()]


def _attr(el: Tag | None, name: str) -> str | None:
    if el is None:
        return None
    value = el.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class _PageParser:
    def __init__(self, soup: BeautifulSoup, url: str, config: ExtractionConfig) -> None:
        self._soup = soup
        self._url = url
        self._config = config
        self._reserved = frozenset(config.reserved_paths)

    def element_counts(self) -> dict[str, int]:
        soup = self._soup
        return {
            "articles": len(soup.find_all("article")),
            "images": len(soup.find_all("img")),
            "links": len(soup.find_all("a")),
            "buttons": len(soup.find_all("button")),
            "divRoles": len(soup.select("div[role]")),
            "spans": len(soup.find_all("span")),
        }

    def logged_in(self) -> bool:
        icons = self._soup.select("svg[aria-label]")
        return len(icons) > int(self._config.login_icon_threshold)

    def current_user(self) -> str | None:
        for link in self._soup.select('a[href^="/"]'):
            label = _attr(link, "aria-label") or link.get_text(" ", strip=True)
            if label.casefold() != "profile":
                continue
            name = username_from_href(_attr(link, "href"), self._reserved)
            if name:
                return name
        return None

    def stories(self) -> list[StoryEntry]:
        out: list[StoryEntry] = []
        seen: set[str] = set()

        for container in self._soup.select('div[role="button"], button'):
            img = container.find("img")
            if not isinstance(img, Tag):
                continue
            m = _STORY_ALT_RE.match(_attr(img, "alt") or "")
            if not m:
                continue
            name = m.group(1).strip()
            if not name or name in seen:
                continue
            seen.add(name)

            has_ring = container.select_one('[style*="linear-gradient"], [style*="border"]')
            out.append(
                StoryEntry(
                    username=name,
                    has_unwatched=has_ring is not None,
                    img_src=_attr(img, "src"),
                )
            )
        return out

    def _post_likes(self, article: Tag) -> int:
        sections = article.find_all("section")
        for scope in [*sections, article]:
            m = _LIKES_RE.search(_text_content(scope))
            if m:
                return parse_count(m.group(1), m.group(2))
        return 0

    def posts(self) -> list[PostEntry]:
        out: list[PostEntry] = []

        for article in self._soup.find_all("article"):
            username = None
            header = article.find("header")
            if isinstance(header, Tag):
                link = header.select_one('a[href^="/"]')
                if link is not None:
                    username = link.get_text(strip=True) or (_attr(link, "href") or "").replace("/", "")
            if not username:
                continue

            caption = None
            for span in article.find_all("span"):
                text = _text_content(span).strip()
                if 20 < len(text) < 500:
                    caption = text[:_CAPTION_MAX]
                    break

            img = article.select_one('img[src*="instagram"]') or article.select_one("img[src]")
            time_el = article.find("time")
            timestamp = None
            if isinstance(time_el, Tag):
                timestamp = _attr(time_el, "datetime") or (time_el.get_text(strip=True) or None)

            out.append(
                PostEntry(
                    username=username,
                    caption=caption,
                    likes=self._post_likes(article),
                    is_video=article.find("video") is not None,
                    img_src=_attr(img, "src"),
                    timestamp=timestamp,
                )
            )
        return out

    def messages(self, stories: list[StoryEntry]) -> list[MessageEntry]:
        out: list[MessageEntry] = []
        seen: set[str] = set()

        for row in self._soup.select('div[role="button"], div[tabindex="0"]'):
            img = row.find("img", alt=True)
            if not isinstance(img, Tag):
                continue
            text = _text_content(row)
            if not (5 < len(text) < 300):
                continue
            m = _MESSAGE_ALT_RE.match(_attr(img, "alt") or "")
            if not m:
                continue
            username = m.group(1).strip()
            if not username or username in seen:
                continue
            seen.add(username)

            candidates = [ln for ln in _lines(row) if ln != username and 5 <= len(ln) <= 99]
            preview = max(candidates, key=len, default="")

            unread = row.select_one(f'[style*="{_UNREAD_STYLE}"]') is not None or "Active" in text
            out.append(
                MessageEntry(
                    username=username,
                    preview=preview[:_PREVIEW_MAX],
                    unread=unread,
                    is_group=len(row.find_all("img")) > 1,
                    img_src=_attr(img, "src"),
                )
            )

        # DM contacts also render as story-style bubbles on the inbox page.
        if len(out) < len(stories):
            for idx, story in enumerate(stories):
                if story.username in seen:
                    continue
                seen.add(story.username)
                out.append(
                    MessageEntry(
                        username=story.username,
                        preview="",
                        unread=idx < 3,
                        is_group=False,
                        img_src=story.img_src,
                    )
                )
        return out

    def profile_mutuals(self) -> list[MutualEntry]:
        header = self._soup.find("header")
        if not isinstance(header, Tag):
            return []

        out: list[MutualEntry] = []
        for stat in header.select("li, span[title]"):
            text = _text_content(stat)
            followers = _FOLLOWERS_RE.search(text)
            if followers:
                out.append(MutualEntry(type="followers", count=followers.group(1)))
            following = _FOLLOWING_RE.search(text)
            if following:
                out.append(MutualEntry(type="following", count=following.group(1)))

        header_text = _text_content(header)
        if "Follows you" in header_text:
            out.append(MutualEntry(type="follows_you"))

        mutual = _MUTUAL_FRIENDS_RE.search(header_text)
        if mutual:
            out.append(MutualEntry(type="mutual_friends", preview=mutual.group(1).strip()))
        return out

    def suggestions(self) -> list[SuggestionEntry]:
        out: list[SuggestionEntry] = []
        seen: set[str] = set()

        for container in self._soup.select('div[role="presentation"]'):
            link = container.select_one('a[href^="/"]')
            if link is None:
                continue
            has_follow = any(
                "follow" in btn.get_text(" ", strip=True).casefold()
                for btn in container.find_all("button")
            )
            if not has_follow:
                continue

            username = username_from_href(_attr(link, "href"), self._reserved)
            if not username or username in seen:
                continue
            seen.add(username)

            reason = "mutual" if "Followed by" in _text_content(container) else "suggested"
            out.append(SuggestionEntry(username=username, reason=reason))
        return out

    def text_lines(self) -> list[str]:
        out: list[str] = []
        seen: set[str] = set()
        for el in self._soup.select("span, h1, h2, p"):
            text = _text_content(el).strip()
            if not (5 < len(text) < 100) or text in seen:
                continue
            seen.add(text)
            out.append(text)
        return out

    def raw_usernames(self) -> list[str]:
        out: list[str] = []
        seen: set[str] = set()
        limit = int(self._config.max_raw_usernames)

        for link in self._soup.select('a[href^="/"]'):
            name = username_from_href(_attr(link, "href"), self._reserved)
            if not name or name in seen:
                continue
            seen.add(name)
            out.append(name)
            if len(out) >= limit:
                break
        return out


def infer_notifications(lines: Iterable[str]) -> list[NotificationEntry]:
    """Match each text line against the activity patterns; first match per line wins."""
    out: list[NotificationEntry] = []
    for line in lines:
        for kind, pattern in _NOTIFICATION_RULES:
            m = pattern.match(line)
            if not m:
                continue
            content_type = m.group(2).lower() if kind == "like" else None
            out.append(
                NotificationEntry(
                    username=m.group(1),
                    type=kind,  # type: ignore[arg-type]
                    text=line,
                    content_type=content_type,
                )
            )
            break
    return out


def infer_followed_by(lines: Iterable[str]) -> list[MutualEntry]:
    out: list[MutualEntry] = []
    for line in lines:
        m = _FOLLOWED_BY_RE.search(line)
        if m:
            out.append(MutualEntry(type="followed_by", username=m.group(1), text=line))
    return out


def parse_page(
    html: str,
    url: str,
    *,
    config: ExtractionConfig | None = None,
    captured_at: str | None = None,
) -> PageScrapeRecord:
    """
    Build a scrape record from serialized page HTML.

    Every lookup degrades to an empty value when nothing matches; markup that
    cannot be parsed at all raises ExtractionError.
    """
    if not isinstance(html, str):
        raise ExtractionError(f"Page HTML must be a string, got {type(html).__name__}")

    cfg = config or ExtractionConfig()
    try:
        soup = BeautifulSoup(html, _BS_PARSER)
    except Exception as e:
        raise ExtractionError(f"Failed to parse page HTML: {e}") from e

    parser = _PageParser(soup, url, cfg)
    page_type = detect_page_type(url)

    stories = parser.stories()
    messages = parser.messages(stories) if page_type == "messages" else []

    lines = parser.text_lines()
    mutuals: list[MutualEntry] = []
    if page_type == "profile":
        mutuals.extend(parser.profile_mutuals())
    mutuals.extend(infer_followed_by(lines))

    return PageScrapeRecord(
        page_url=url or "",
        page_type=page_type,
        logged_in=parser.logged_in(),
        current_user=parser.current_user(),
        stories=tuple(stories),
        posts=tuple(parser.posts()),
        messages=tuple(messages),
        notifications=tuple(infer_notifications(lines)),
        mutuals=tuple(unique_by_key(mutuals, mutual_key)),
        suggestions=tuple(parser.suggestions()),
        raw_usernames=tuple(parser.raw_usernames()),
        raw_texts=tuple(lines[: int(cfg.max_raw_texts)]),
        element_counts=parser.element_counts(),
        captured_at=captured_at or _utc_now_iso(),
    )


class PageRecordExtractor:
    """
    Turns the current page's DOM into one PageScrapeRecord.

    Failures never propagate: they are logged and returned as an ErrorResult.
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        *,
        logger: EventLogger | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self._config = config or ExtractionConfig()
        self._logger = logger or NullLogger()
        self._clock = clock or _utc_now_iso

    def extract(self, html: str, url: str) -> PageScrapeRecord | ErrorResult:
        try:
            record = parse_page(html, url, config=self._config, captured_at=self._clock())
        except Exception as e:
            self._logger.exception("page_extraction_failed", exc=e, url=url)
            return ErrorResult(error=str(e) or type(e).__name__, kind="extraction")

        self._logger.info(
            "page_extracted",
            url=url,
            page_type=record.page_type,
            logged_in=record.logged_in,
            **record.summary(),
        )
        return record

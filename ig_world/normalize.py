from __future__ import annotations

from typing import Any, Mapping, get_args

from .errors import MalformedDumpError
from .records import (
    MessageEntry,
    MutualEntry,
    MutualType,
    NotificationEntry,
    NotificationType,
    PageScrapeRecord,
    PageType,
    PostEntry,
    StoryEntry,
    SuggestionEntry,
)

_PAGE_TYPES = frozenset(get_args(PageType))
_NOTIFICATION_TYPES = frozenset(get_args(NotificationType))
_MUTUAL_TYPES = frozenset(get_args(MutualType))


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return ""


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return False


def _coerce_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        return max(0, int(value))
    if isinstance(value, str):
        digits = value.replace(",", "").strip()
        if digits.isdigit():
            return int(digits)
    return 0


def _coerce_count_label(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    return _coerce_str(value)


def _mappings(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _strings(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    out: list[str] = []
    seen: set[str] = set()
    for item in value:
        s = _coerce_str(item)
        if s is None or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return tuple(out)


def _story(item: Mapping[str, Any]) -> StoryEntry | None:
    username = _coerce_str(item.get("username"))
    if not username:
        return None
    return StoryEntry(
        username=username,
        has_unwatched=_coerce_bool(item.get("hasUnwatched")),
        img_src=_coerce_str(item.get("imgSrc")),
    )


def _post(item: Mapping[str, Any]) -> PostEntry | None:
    username = _coerce_str(item.get("username"))
    if not username:
        return None
    return PostEntry(
        username=username,
        caption=_coerce_str(item.get("caption")),
        likes=_coerce_count(item.get("likes")),
        is_video=_coerce_bool(item.get("isVideo")),
        img_src=_coerce_str(item.get("imgSrc")),
        timestamp=_coerce_str(item.get("timestamp")),
    )


def _message(item: Mapping[str, Any]) -> MessageEntry | None:
    username = _coerce_str(item.get("username"))
    if not username:
        return None
    return MessageEntry(
        username=username,
        preview=_coerce_text(item.get("preview"))[:80],
        unread=_coerce_bool(item.get("unread")),
        is_group=_coerce_bool(item.get("isGroup")),
        img_src=_coerce_str(item.get("imgSrc")),
    )


def _notification(item: Mapping[str, Any]) -> NotificationEntry | None:
    username = _coerce_str(item.get("username"))
    kind = _coerce_str(item.get("type"))
    if not username or kind not in _NOTIFICATION_TYPES:
        return None
    return NotificationEntry(
        username=username,
        type=kind,  # type: ignore[arg-type]
        text=_coerce_text(item.get("text")),
        content_type=_coerce_str(item.get("contentType")),
    )


def _mutual(item: Mapping[str, Any]) -> MutualEntry | None:
    kind = _coerce_str(item.get("type"))
    if kind not in _MUTUAL_TYPES:
        return None
    return MutualEntry(
        type=kind,  # type: ignore[arg-type]
        username=_coerce_str(item.get("username")),
        count=_coerce_count_label(item.get("count")),
        preview=_coerce_str(item.get("preview")),
        text=_coerce_str(item.get("text")),
    )


def _suggestion(item: Mapping[str, Any]) -> SuggestionEntry | None:
    username = _coerce_str(item.get("username"))
    if not username:
        return None
    return SuggestionEntry(
        username=username,
        reason=_coerce_str(item.get("reason")) or "suggested",
    )


def _collect(items: list[Mapping[str, Any]], build: Any) -> tuple[Any, ...]:
    out = []
    for item in items:
        entry = build(item)
        if entry is not None:
            out.append(entry)
    return tuple(out)


def _element_counts(value: Any) -> dict[str, int]:
    if not isinstance(value, Mapping):
        return {}
    out: dict[str, int] = {}
    for k, v in value.items():
        if isinstance(k, str):
            out[k] = _coerce_count(v)
    return out


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


def record_from_dump(document: Any) -> PageScrapeRecord:
    """
    Best-effort decoding of a persisted dump document.

    Tolerates missing or wrong-typed fields; only a non-object document is
    rejected with MalformedDumpError.
    """
    if not isinstance(document, Mapping):
        raise MalformedDumpError("Dump document must be a JSON object")

    page_type = _coerce_str(document.get("pageType")) or "unknown"
    if page_type not in _PAGE_TYPES:
        page_type = "unknown"

    return PageScrapeRecord(
        page_url=_coerce_str(document.get("url")) or "",
        page_type=page_type,  # type: ignore[arg-type]
        logged_in=_coerce_bool(document.get("loggedIn")),
        current_user=_coerce_str(document.get("currentUser")),
        stories=_collect(_mappings(document.get("stories")), _story),
        posts=_collect(_mappings(document.get("posts")), _post),
        messages=_collect(_mappings(document.get("messages")), _message),
        notifications=_collect(_mappings(document.get("notifications")), _notification),
        mutuals=_collect(_mappings(document.get("mutuals")), _mutual),
        suggestions=_collect(_mappings(document.get("suggestions")), _suggestion),
        raw_usernames=_strings(document.get("rawUsernames")),
        raw_texts=_strings(document.get("rawTexts")),
        element_counts=_element_counts(document.get("elementCounts")),
        captured_at=_coerce_str(document.get("capturedAt")),
    )


def record_to_dump(record: PageScrapeRecord) -> dict[str, Any]:
    return {
        "pageType": record.page_type,
        "loggedIn": record.logged_in,
        "currentUser": record.current_user,
        "stories": [
            _drop_none(
                {
                    "username": s.username,
                    "hasUnwatched": s.has_unwatched,
                    "imgSrc": s.img_src,
                }
            )
            for s in record.stories
        ],
        "posts": [
            _drop_none(
                {
                    "username": p.username,
                    "caption": p.caption,
                    "likes": p.likes,
                    "isVideo": p.is_video,
                    "imgSrc": p.img_src,
                    "timestamp": p.timestamp,
                }
            )
            for p in record.posts
        ],
        "messages": [
            _drop_none(
                {
                    "username": m.username,
                    "preview": m.preview,
                    "unread": m.unread,
                    "isGroup": m.is_group,
                    "imgSrc": m.img_src,
                }
            )
            for m in record.messages
        ],
        "notifications": [
            _drop_none(
                {
                    "type": n.type,
                    "username": n.username,
                    "text": n.text,
                    "contentType": n.content_type,
                }
            )
            for n in record.notifications
        ],
        "mutuals": [
            _drop_none(
                {
                    "type": m.type,
                    "username": m.username,
                    "count": m.count,
                    "preview": m.preview,
                    "text": m.text,
                }
            )
            for m in record.mutuals
        ],
        "suggestions": [
            {"username": s.username, "reason": s.reason} for s in record.suggestions
        ],
        "rawUsernames": list(record.raw_usernames),
        "rawTexts": list(record.raw_texts),
        "elementCounts": dict(record.element_counts or {}),
        "url": record.page_url,
        "capturedAt": record.captured_at,
        "summary": record.summary(),
    }

from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup

from .errors import ExtractionError

_CHROME_RE = re.compile(
    r"^(You sent|You reacted|Seen|Active|Online|Message|Enter|Today|Yesterday|Verified|Double tap)$",
    re.IGNORECASE,
)
_CLOCK_RE = re.compile(r"^\d{1,2}:\d{2}\s*(AM|PM)?$", re.IGNORECASE)
_DATE_HEADER_RE = re.compile(
    r"^(Mon|Tue|Wed|Thu|Fri|Sat|Sun|January|February|March|April|May|June|July|"
    r"August|September|October|November|December)",
    re.IGNORECASE,
)
_SEEN_RE = re.compile(r"^Seen\s+\d+", re.IGNORECASE)
_RELATIVE_TIME_RE = re.compile(r"^\d+[hmdw]\s*(ago)?$", re.IGNORECASE)
_BARE_USERNAME_RE = re.compile(r"^@?[a-zA-Z0-9_.]+$")

_MIN_ROW_CHARS = 15
_MAX_LINE_CHARS = 200


@dataclass(frozen=True)
class ChatLine:
    text: str
    is_me: bool = False


@dataclass(frozen=True)
class ChatTranscript:
    username: str
    url: str
    messages: tuple[ChatLine, ...] = ()


def _is_chrome(text: str) -> bool:
    if _CHROME_RE.match(text) or _CLOCK_RE.match(text):
        return True
    if _DATE_HEADER_RE.match(text) or _SEEN_RE.match(text) or _RELATIVE_TIME_RE.match(text):
        return True
    return bool(_BARE_USERNAME_RE.match(text)) and len(text) < 25


def _best_text(row) -> str:
    best = ""
    for span in row.find_all("span"):
        text = span.get_text().strip()
        if not text or _is_chrome(text):
            continue
        if len(text) > len(best) and len(text) > 8:
            if len(text.split()) >= 2 or len(text) > 20:
                best = text
    return best


def extract_chat_messages(html: str, username: str, *, url: str = "", max_messages: int = 5) -> ChatTranscript:
    """
    Pull the most recent message lines out of an open DM thread.

    Rows are read in document order; only the last `max_messages` distinct
    lines are kept.
    """
    if not isinstance(html, str):
        raise ExtractionError("Chat HTML must be a string")

    soup = BeautifulSoup(html, "html.parser")
    lines: list[ChatLine] = []
    seen: set[str] = set()

    for row in soup.select('[role="row"]'):
        row_text = row.get_text()
        if len(row_text) < _MIN_ROW_CHARS:
            continue

        best = _best_text(row)
        if not best or best in seen:
            continue
        seen.add(best)

        is_me = "You sent" in row_text or "You reacted" in row_text
        lines.append(ChatLine(text=best[:_MAX_LINE_CHARS], is_me=is_me))

    keep = lines[-max_messages:] if max_messages > 0 else []
    return ChatTranscript(username=username, url=url, messages=tuple(keep))

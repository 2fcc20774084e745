from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from .errors import MalformedDumpError, PersistenceError
from .merge import SessionDataset, merge_record
from .normalize import record_from_dump, record_to_dump
from .records import ErrorResult, PageScrapeRecord
from .run_log import EventLogger, NullLogger

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")
_MAX_NAME_ATTEMPTS = 1000


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def filename_timestamp(moment: datetime) -> str:
    """
    ISO-8601 UTC timestamp with ':' and '.' replaced by '-'.

    Zero-padded fields keep lexical order equal to chronological order.
    """
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H-%M-%S-") + f"{utc.microsecond // 1000:03d}Z"


def _safe_part(value: str, *, fallback: str) -> str:
    part = _UNSAFE_NAME_RE.sub("-", (value or "").strip()).strip("-")
    return part or fallback


def _json_dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


def _parse_iso(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class DumpFile:
    filename: str
    filepath: Path
    captured_at: str
    size: int


@dataclass(frozen=True)
class DumpSummary:
    """Listing row for one dump: counts only, never full entries."""

    filename: str
    filepath: Path
    date: datetime
    size: int
    page_type: str
    stories: int
    posts: int
    messages: int
    notifications: int
    usernames: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "filepath": str(self.filepath),
            "date": self.date.isoformat(),
            "size": self.size,
            "pageType": self.page_type,
            "stories": self.stories,
            "posts": self.posts,
            "messages": self.messages,
            "notifications": self.notifications,
            "usernames": self.usernames,
        }


def _list_len(document: dict[str, Any], key: str) -> int:
    value = document.get(key)
    return len(value) if isinstance(value, list) else 0


class DumpStore:
    """
    Append-only archive of scrape records, one JSON file per extraction.

    `roots[0]` receives new dumps; every root (active first, then prior
    locations) is scanned when listing.
    """

    def __init__(
        self,
        roots: Sequence[str | Path],
        *,
        html_dir: str | Path | None = None,
        logger: EventLogger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not roots:
            raise ValueError("at least one archive root is required")
        self._roots = [Path(r).expanduser() for r in roots]
        self._html_dir = Path(html_dir).expanduser() if html_dir is not None else None
        self._logger = logger or NullLogger()
        self._clock = clock or _utc_now

    @property
    def active_root(self) -> Path:
        return self._roots[0]

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    def _write_new(self, directory: Path, stem: str, suffix: str, payload: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        for attempt in range(_MAX_NAME_ATTEMPTS):
            name = f"{stem}{suffix}" if attempt == 0 else f"{stem}-{attempt}{suffix}"
            path = directory / name
            try:
                with path.open("x", encoding="utf-8") as fp:
                    fp.write(payload)
            except FileExistsError:
                continue
            return path
        raise PersistenceError(f"No free dump filename for {stem} in {directory}")

    def save(self, record: PageScrapeRecord) -> DumpFile | ErrorResult:
        """Write a record to a new timestamped file; existing files are never touched."""
        moment = self._clock()
        document = record_to_dump(record)
        if not document.get("capturedAt"):
            document["capturedAt"] = moment.astimezone(timezone.utc).isoformat()

        page = _safe_part(record.page_type, fallback="unknown")
        stem = f"scrape-{page}-{filename_timestamp(moment)}"

        try:
            path = self._write_new(self.active_root, stem, ".json", _json_dumps(document))
            size = path.stat().st_size
        except (OSError, PersistenceError, TypeError, ValueError) as e:
            self._logger.exception("dump_save_failed", exc=e, url=record.page_url)
            return ErrorResult(error=str(e) or type(e).__name__, kind="persistence")

        self._logger.info("dump_saved", url=record.page_url, path=str(path), size=size)
        return DumpFile(
            filename=path.name,
            filepath=path,
            captured_at=str(document["capturedAt"]),
            size=size,
        )

    def save_html(self, page_name: str, html: str, *, url: str | None = None) -> DumpFile | ErrorResult:
        """Snapshot raw page HTML for offline re-extraction."""
        directory = self._html_dir or self.active_root.parent / "html-dumps"
        moment = self._clock()
        stem = f"{_safe_part(page_name, fallback='page')}-{filename_timestamp(moment)}"

        try:
            path = self._write_new(directory, stem, ".html", html)
            size = path.stat().st_size
        except (OSError, PersistenceError) as e:
            self._logger.exception("html_dump_failed", exc=e, url=url)
            return ErrorResult(error=str(e) or type(e).__name__, kind="persistence")

        self._logger.info("html_dumped", url=url, path=str(path), size=size)
        return DumpFile(
            filename=path.name,
            filepath=path,
            captured_at=moment.astimezone(timezone.utc).isoformat(),
            size=size,
        )

    def _summarize(self, path: Path) -> DumpSummary:
        stat = path.stat()
        document = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(document, dict):
            raise MalformedDumpError("Dump document must be a JSON object")

        date = _parse_iso(document.get("capturedAt"))
        if date is None:
            date = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

        page_type = document.get("pageType")
        return DumpSummary(
            filename=path.name,
            filepath=path,
            date=date,
            size=int(stat.st_size),
            page_type=page_type if isinstance(page_type, str) and page_type else "unknown",
            stories=_list_len(document, "stories"),
            posts=_list_len(document, "posts"),
            messages=_list_len(document, "messages"),
            notifications=_list_len(document, "notifications"),
            usernames=_list_len(document, "rawUsernames"),
        )

    def _collect(self, root: Path) -> list[DumpSummary]:
        if not root.is_dir():
            return []

        out: list[DumpSummary] = []
        for path in sorted(root.glob("*.json")):
            try:
                out.append(self._summarize(path))
            except (OSError, ValueError, RecursionError, MalformedDumpError) as e:
                self._logger.warning(
                    "dump_unreadable",
                    path=str(path),
                    error_type=type(e).__name__,
                    error=str(e),
                )
        return out

    def list(self) -> list[DumpSummary]:
        """Summaries from every archive root, newest first; unreadable files are skipped."""
        try:
            self.active_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._logger.exception("dump_dir_unavailable", exc=e, path=str(self.active_root))

        summaries: list[DumpSummary] = []
        for root in self._roots:
            summaries.extend(self._collect(root))

        summaries.sort(key=lambda s: (s.date, s.filename), reverse=True)
        return summaries

    def load(self, path: str | Path) -> PageScrapeRecord | ErrorResult:
        p = Path(path)
        try:
            raw = p.read_text(encoding="utf-8")
        except OSError as e:
            self._logger.warning("dump_load_failed", path=str(p), error=str(e))
            return ErrorResult(error=str(e) or type(e).__name__, kind="persistence")

        try:
            return record_from_dump(json.loads(raw))
        except (ValueError, RecursionError, MalformedDumpError) as e:
            self._logger.warning("dump_unreadable", path=str(p), error=str(e))
            return ErrorResult(error=str(e) or type(e).__name__, kind="malformed_dump")

    def load_many(
        self, paths: Iterable[str | Path], *, dataset: SessionDataset | None = None
    ) -> tuple[SessionDataset, int]:
        """Fold dumps into a dataset in the given order; returns (dataset, loaded_count)."""
        out = dataset if dataset is not None else SessionDataset()
        loaded = 0
        for path in paths:
            record = self.load(path)
            if isinstance(record, ErrorResult):
                continue
            out = merge_record(out, record)
            loaded += 1
        return out, loaded

    def load_all(self) -> SessionDataset:
        dataset, loaded = self.load_many(s.filepath for s in self.list())
        self._logger.info("dumps_loaded", loaded=loaded, **dataset.stats())
        return dataset

from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Protocol, TextIO


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class EventLogger(Protocol):
    def info(self, event: str, *, url: str | None = None, **data: Any) -> None: ...

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None: ...

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None: ...

    def exception(
        self, event: str, *, exc: BaseException, url: str | None = None, **data: Any
    ) -> None: ...


class NullLogger:
    """Accepts every event and writes nothing."""

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        return None

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        return None

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None:
        return None

    def exception(
        self, event: str, *, exc: BaseException, url: str | None = None, **data: Any
    ) -> None:
        return None


def exception_payload(exc: BaseException) -> dict[str, str]:
    return {
        "type": type(exc).__name__,
        "message": _truncate(str(exc), limit=2000),
        "traceback": _truncate(
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            limit=12000,
        ),
    }


class RunLogger:
    """
    JSONL event log for scrape sessions and crawls.

    Each line is a single JSON object: ts, level, event, session_id, the
    optional crawl_id and page url, and any event data.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        overwrite: bool = True,
        crawl_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self._path = Path(path)
        self._overwrite = bool(overwrite)
        self._crawl_id = (crawl_id or "").strip() or None
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._fp: TextIO | None = None
        self._lock = Lock()
        self._opened = False

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        overwrite: bool = True,
        crawl_id: str | None = None,
        session_id: str | None = None,
    ) -> "RunLogger":
        logger = cls(path, overwrite=overwrite, crawl_id=crawl_id, session_id=session_id)
        logger._ensure_open()
        return logger

    @property
    def path(self) -> Path:
        return self._path

    @property
    def session_id(self) -> str:
        return self._session_id

    def close(self) -> None:
        with self._lock:
            if self._fp is not None:
                try:
                    self._fp.flush()
                finally:
                    self._fp.close()
                self._fp = None

    def __enter__(self) -> "RunLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def set_crawl_id(self, crawl_id: str | None) -> None:
        self._crawl_id = (crawl_id or "").strip() or None

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("INFO", event, url=url, **data)

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("WARN", event, url=url, **data)

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, url=url, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        url: str | None = None,
        **data: Any,
    ) -> None:
        self.log("ERROR", event, url=url, error=exception_payload(exc), **data)

    def log(self, level: str, event: str, *, url: str | None = None, **data: Any) -> None:
        lvl = (level or "").strip().upper() or "INFO"
        ev = (event or "").strip() or "event"

        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": lvl,
            "event": ev,
            "session_id": self._session_id,
        }

        if self._crawl_id:
            record["crawl_id"] = self._crawl_id

        u = (url or "").strip()
        if u:
            record["url"] = u

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> None:
        if self._fp is not None:
            return

        with self._lock:
            if self._fp is not None:
                return

            self._path.parent.mkdir(parents=True, exist_ok=True)
            mode = "w" if self._overwrite and not self._opened else "a"

            self._fp = self._path.open(mode, encoding="utf-8", newline="\n")
            self._opened = True

    def _write(self, record: dict[str, Any]) -> None:
        self._ensure_open()

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            if self._fp is None:
                return
            self._fp.write(payload + "\n")
            self._fp.flush()


def read_events(path: str | Path) -> list[dict[str, Any]]:
    """Parse a JSONL log back into event dicts, skipping unparseable lines."""
    p = Path(path)
    if not p.exists():
        return []

    out: list[dict[str, Any]] = []
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except ValueError:
            continue
        if isinstance(obj, dict):
            out.append(obj)
    return out

from __future__ import annotations

import argparse
import contextlib
import json
import sys
import time
from pathlib import Path
from typing import Any, Callable, ContextManager, Iterator, Sequence

from .config import archive_roots, config_sha256, load_config
from .config_schema import AppConfig
from .dumps import DumpStore
from .errors import (
    BrowserUnavailableError,
    ConfigError,
    ExtractionError,
    MalformedDumpError,
    PersistenceError,
)
from .extractor import PageRecordExtractor
from .normalize import record_to_dump
from .records import ErrorResult
from .run_log import EventLogger, NullLogger, RunLogger
from .session import ScrapeSession


def _add_config_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        required=True,
        help="Path to YAML config file.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ig_world")

    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser(
        "crawl",
        help="Visit the configured pages in order and merge what each one yields.",
    )
    _add_config_arg(crawl)
    crawl.add_argument("--out", required=True, help="Output directory for logs and projections.")
    crawl.add_argument(
        "--offline",
        action="store_true",
        help="Crawl canned pages instead of a live browser.",
    )
    crawl.add_argument(
        "--project",
        action="store_true",
        help="Also write the display projection to world.json.",
    )
    crawl.set_defaults(_handler=_cmd_crawl)

    scrape = subparsers.add_parser(
        "scrape",
        help="Open one page, extract it, and archive the dump.",
    )
    _add_config_arg(scrape)
    scrape.add_argument("--out", required=True, help="Output directory for logs.")
    scrape.add_argument("--path", default="/", help="Page path to open (default: /).")
    scrape.add_argument(
        "--offline",
        action="store_true",
        help="Read a canned page instead of a live browser.",
    )
    scrape.set_defaults(_handler=_cmd_scrape)

    dumps = subparsers.add_parser(
        "dumps",
        help="List archived dumps, newest first.",
    )
    _add_config_arg(dumps)
    dumps.add_argument("--out", default=None, help="Optional directory for run.log.")
    dumps.add_argument("--json", action="store_true", help="Print summaries as JSON.")
    dumps.set_defaults(_handler=_cmd_dumps)

    load_all = subparsers.add_parser(
        "load-all",
        help="Rebuild the session dataset from every archived dump.",
    )
    _add_config_arg(load_all)
    load_all.add_argument("--out", required=True, help="Output directory for logs and projections.")
    load_all.add_argument(
        "--project",
        action="store_true",
        help="Also write the display projection to world.json.",
    )
    load_all.set_defaults(_handler=_cmd_load_all)

    extract_html = subparsers.add_parser(
        "extract-html",
        help="Run the page extractor over a saved HTML snapshot.",
    )
    _add_config_arg(extract_html)
    extract_html.add_argument("--file", required=True, help="Saved HTML file.")
    extract_html.add_argument("--url", required=True, help="URL the snapshot was taken from.")
    extract_html.add_argument("--out", default=None, help="Optional directory for run.log.")
    extract_html.set_defaults(_handler=_cmd_extract_html)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _no_sleep(_seconds: float) -> None:
    return None


@contextlib.contextmanager
def _command_log(args: argparse.Namespace) -> Iterator[EventLogger]:
    """
    Yield the command's event logger; run.log is written only when --out is set.

    Failures are logged as `command_failed` and re-raised.
    """
    out = getattr(args, "out", None)
    if out is None:
        yield NullLogger()
        return

    out_dir = Path(out)
    out_dir.mkdir(parents=True, exist_ok=True)
    with RunLogger.open(out_dir / "run.log", overwrite=True) as run_log:
        run_log.info(
            "command_started",
            command=args.command,
            config_path=str(args.config),
            out_dir=str(out_dir),
        )
        try:
            yield run_log
        except Exception as e:
            run_log.exception("command_failed", exc=e, command=args.command)
            raise


def _load(args: argparse.Namespace, log: EventLogger) -> AppConfig:
    cfg = load_config(args.config)
    log.info("config_loaded", config_path=str(args.config), config_sha256=config_sha256(cfg))
    return cfg


def _store(cfg: AppConfig, log: EventLogger) -> DumpStore:
    return DumpStore(
        archive_roots(cfg.storage),
        html_dir=cfg.storage.html_dump_dir,
        logger=log,
    )


def _open_browser(cfg: AppConfig, *, offline: bool) -> ContextManager[Any]:
    if offline:
        from .offline import OfflineBrowser

        return contextlib.closing(OfflineBrowser(base_url=cfg.browser.base_url))

    from .browser import PlaywrightBrowser

    return contextlib.closing(PlaywrightBrowser.open(cfg.browser))


def _sleep_fn(offline: bool) -> Callable[[float], None]:
    return _no_sleep if offline else time.sleep


def _write_json(path: Path, payload: Any) -> None:
    try:
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    except OSError as e:
        raise PersistenceError(f"Failed to write {path}: {e}") from e


def _print_stats(stats: dict[str, int]) -> None:
    for key, value in stats.items():
        print(f"{key}={value}")


def _cmd_crawl(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    offline = bool(args.offline)

    with _command_log(args) as log:
        cfg = _load(args, log)
        store = _store(cfg, log)

        with _open_browser(cfg, offline=offline) as browser:
            session = ScrapeSession(browser, store, cfg, log, sleep_fn=_sleep_fn(offline))

            merged = 0
            for status in session.run_auto_crawl():
                line = (
                    f"step={status.index + 1}/{status.total} "
                    f"path={status.step.path} status={status.status}"
                )
                if status.ok:
                    merged += 1
                    line += f" page_type={status.page_type}"
                else:
                    line += f" error={status.error}"
                print(line)

        _print_stats(session.get_session_stats())

        if args.project:
            world_path = out_dir / "world.json"
            _write_json(world_path, session.project_for_display().to_dict())
            print(f"world_json={world_path}")

        print(f"run_log={out_dir / 'run.log'}")
        return 0 if merged else 4


def _cmd_scrape(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    offline = bool(args.offline)

    with _command_log(args) as log:
        cfg = _load(args, log)
        store = _store(cfg, log)

        with _open_browser(cfg, offline=offline) as browser:
            session = ScrapeSession(browser, store, cfg, log, sleep_fn=_sleep_fn(offline))
            browser.navigate_to(args.path)
            _sleep_fn(offline)(float(cfg.crawl.settle_seconds))
            record = session.extract_current_page()

        if isinstance(record, ErrorResult):
            _eprint(f"{record.kind}: {record.error}")
            return 3

        print(f"page_type={record.page_type}")
        print(f"logged_in={str(record.logged_in).lower()}")
        _print_stats(record.summary())

        dump = session.last_dump
        if isinstance(dump, ErrorResult):
            _eprint(f"{dump.kind}: {dump.error}")
            return 3
        if dump is not None:
            print(f"dump={dump.filepath}")

        print(f"run_log={out_dir / 'run.log'}")
        return 0


def _cmd_dumps(args: argparse.Namespace) -> int:
    with _command_log(args) as log:
        cfg = _load(args, log)
        summaries = _store(cfg, log).list()

        if args.json:
            print(json.dumps([s.to_dict() for s in summaries], ensure_ascii=False, indent=2))
            return 0

        for s in summaries:
            print(
                f"{s.date.isoformat()} {s.page_type} "
                f"stories={s.stories} posts={s.posts} messages={s.messages} "
                f"notifications={s.notifications} usernames={s.usernames} {s.filepath}"
            )
        print(f"dumps={len(summaries)}")
        return 0


def _cmd_load_all(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)

    with _command_log(args) as log:
        cfg = _load(args, log)
        session = ScrapeSession(None, _store(cfg, log), cfg, log)
        session.load_all_dumps()

        _print_stats(session.get_session_stats())

        if args.project:
            world_path = out_dir / "world.json"
            _write_json(world_path, session.project_for_display().to_dict())
            print(f"world_json={world_path}")

        print(f"run_log={out_dir / 'run.log'}")
        return 0


def _cmd_extract_html(args: argparse.Namespace) -> int:
    with _command_log(args) as log:
        cfg = _load(args, log)

        html_path = Path(args.file)
        try:
            html = html_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Failed to read HTML file: {html_path}") from e

        record = PageRecordExtractor(cfg.extraction, logger=log).extract(html, args.url)
        if isinstance(record, ErrorResult):
            _eprint(f"{record.kind}: {record.error}")
            return 3

        print(json.dumps(record_to_dump(record), ensure_ascii=False, indent=2))
        return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (ExtractionError, PersistenceError, MalformedDumpError, BrowserUnavailableError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1

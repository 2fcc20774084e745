from __future__ import annotations

import time
import uuid
from pathlib import Path
from typing import Callable, Iterable, Iterator

from .browser import BrowserSurface
from .chat import ChatTranscript, extract_chat_messages
from .config_schema import AppConfig, CrawlStepConfig
from .crawl import AutoCrawlDriver, CrawlStep, StepStatus, as_step
from .dumps import DumpFile, DumpStore, DumpSummary
from .errors import BrowserUnavailableError
from .extractor import PageRecordExtractor, detect_page_type
from .merge import SessionDataset, merge_record
from .projection import WorldDataProjector, WorldDisplayDataset
from .records import ErrorResult, PageScrapeRecord
from .run_log import EventLogger, NullLogger, RunLogger

_BROWSER_NOT_OPEN = "Browser not open"


def _browser_error(e: BrowserUnavailableError | None = None) -> ErrorResult:
    message = str(e) if e is not None and str(e) else _BROWSER_NOT_OPEN
    return ErrorResult(error=message, kind="browser_unavailable")


class ScrapeSession:
    """
    Long-lived controller for one scraping session.

    Holds the current SessionDataset as a value and replaces it on every merge;
    the browser surface is used by one extraction at a time.
    """

    def __init__(
        self,
        browser: BrowserSurface | None,
        store: DumpStore,
        config: AppConfig | None = None,
        logger: EventLogger | None = None,
        *,
        sleep_fn: Callable[[float], None] | None = None,
    ) -> None:
        self._browser = browser
        self._store = store
        self._config = config or AppConfig()
        self._logger = logger or NullLogger()
        self._sleep = sleep_fn or time.sleep

        self._extractor = PageRecordExtractor(self._config.extraction, logger=self._logger)
        self._projector = WorldDataProjector(self._config.projection)

        self.dataset = SessionDataset()
        self.last_dump: DumpFile | ErrorResult | None = None

    @property
    def store(self) -> DumpStore:
        return self._store

    def _require_browser(self) -> BrowserSurface:
        if self._browser is None:
            raise BrowserUnavailableError(_BROWSER_NOT_OPEN)
        return self._browser

    def extract_current_page(self) -> PageScrapeRecord | ErrorResult:
        """Extract the open page and write its dump before returning the record."""
        try:
            browser = self._require_browser()
            url = browser.current_url()
            html = browser.read_dom()
        except BrowserUnavailableError as e:
            self._logger.warning("page_extraction_failed", error=str(e), kind="browser_unavailable")
            return _browser_error(e)
        except Exception as e:
            self._logger.exception("page_extraction_failed", exc=e)
            return ErrorResult(error=str(e) or type(e).__name__, kind="extraction")

        record = self._extractor.extract(html, url)
        if isinstance(record, ErrorResult):
            return record

        self.last_dump = self._store.save(record)
        return record

    def merge_into_session(self, record: PageScrapeRecord) -> SessionDataset:
        self.dataset = merge_record(self.dataset, record)
        return self.dataset

    def get_session_stats(self) -> dict[str, int]:
        return self.dataset.stats()

    def project_for_display(self) -> WorldDisplayDataset:
        return self._projector.project(self.dataset)

    def list_dumps(self) -> list[DumpSummary]:
        return self._store.list()

    def load_dump(self, path: str | Path) -> PageScrapeRecord | ErrorResult:
        """Load one dump and fold it into the session dataset."""
        record = self._store.load(path)
        if not isinstance(record, ErrorResult):
            self.merge_into_session(record)
        return record

    def load_all_dumps(self) -> SessionDataset:
        """Replace the session dataset with one rebuilt from every archived dump."""
        self.dataset = self._store.load_all()
        return self.dataset

    def reset(self) -> None:
        self.dataset = SessionDataset()
        self.last_dump = None

    def run_auto_crawl(
        self,
        steps: Iterable[CrawlStep | CrawlStepConfig | tuple[str, str]] | None = None,
        *,
        should_abort: Callable[[], bool] | None = None,
    ) -> Iterator[StepStatus]:
        """
        Visit each step's page and merge what it yields into the session.

        Yields one status per step; the session dataset is updated as each
        step merges.
        """
        if self._browser is None:
            plan = [as_step(s) for s in (steps if steps is not None else self._config.crawl.steps)]
            self._logger.warning("crawl_aborted", error=_BROWSER_NOT_OPEN, total=len(plan))
            for index, step in enumerate(plan):
                yield StepStatus(
                    index=index,
                    total=len(plan),
                    step=step,
                    status="failed",
                    error=_BROWSER_NOT_OPEN,
                    stats=self.dataset.stats(),
                )
            return

        crawl_id = uuid.uuid4().hex
        if isinstance(self._logger, RunLogger):
            self._logger.set_crawl_id(crawl_id)

        driver = AutoCrawlDriver(
            self._browser,
            self.extract_current_page,
            config=self._config.crawl,
            logger=self._logger,
            sleep_fn=self._sleep,
            should_abort=should_abort,
        )
        try:
            for status in driver.run(steps, dataset=self.dataset):
                self.dataset = driver.dataset
                yield status
            self.dataset = driver.dataset
        finally:
            if isinstance(self._logger, RunLogger):
                self._logger.set_crawl_id(None)

    def dump_html(self, page_name: str) -> DumpFile | ErrorResult:
        """Snapshot the open page's raw HTML into the html dump directory."""
        try:
            browser = self._require_browser()
            url = browser.current_url()
            html = browser.read_dom()
        except BrowserUnavailableError as e:
            return _browser_error(e)
        except Exception as e:
            self._logger.exception("html_dump_failed", exc=e)
            return ErrorResult(error=str(e) or type(e).__name__, kind="extraction")

        name = page_name or detect_page_type(url)
        return self._store.save_html(name, html, url=url)

    def scrape_user_chat(self, username: str) -> ChatTranscript | ErrorResult:
        """
        Open the DM thread with `username`, read its latest lines, then go back
        to the page that was open before.
        """
        handle = (username or "").strip().lstrip("@")
        if not handle:
            return ErrorResult(error="Username is required", kind="extraction")

        try:
            browser = self._require_browser()
            previous = browser.current_url()
        except BrowserUnavailableError as e:
            return _browser_error(e)
        except Exception as e:
            self._logger.exception("chat_extraction_failed", exc=e, username=handle)
            return ErrorResult(error=str(e) or type(e).__name__, kind="extraction")

        result = self._read_chat(browser, handle)

        try:
            browser.navigate_to(previous)
        except Exception as e:
            self._logger.exception("chat_return_failed", exc=e, url=previous, username=handle)

        if isinstance(result, ErrorResult):
            return result

        self._logger.info("chat_extracted", url=result.url, username=handle, messages=len(result.messages))
        return result

    def _read_chat(self, browser: BrowserSurface, handle: str) -> ChatTranscript | ErrorResult:
        try:
            browser.navigate_to(f"/direct/t/{handle}/")
            self._sleep(float(self._config.chat.settle_seconds))
            url = browser.current_url()
            return extract_chat_messages(
                browser.read_dom(),
                handle,
                url=url,
                max_messages=int(self._config.chat.max_messages),
            )
        except BrowserUnavailableError as e:
            return _browser_error(e)
        except Exception as e:
            self._logger.exception("chat_extraction_failed", exc=e, username=handle)
            return ErrorResult(error=str(e) or type(e).__name__, kind="extraction")

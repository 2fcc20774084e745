from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Iterator, Sequence

from .browser import BrowserSurface
from .config_schema import CrawlConfig, CrawlStepConfig
from .merge import SessionDataset, merge_record
from .records import ErrorResult, PageScrapeRecord
from .run_log import EventLogger, NullLogger

SleepFn = Callable[[float], None]
ExtractFn = Callable[[], "PageScrapeRecord | ErrorResult"]
AbortFn = Callable[[], bool]


class CrawlState(str, Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    SETTLING = "settling"
    EXTRACTING = "extracting"
    MERGED = "merged"
    DONE = "done"


@dataclass(frozen=True)
class CrawlStep:
    path: str
    label: str = ""


@dataclass(frozen=True)
class StepStatus:
    index: int
    total: int
    step: CrawlStep
    status: str  # "merged" | "failed"
    page_type: str | None = None
    error: str | None = None
    stats: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "merged"


@dataclass(frozen=True)
class CrawlResult:
    crawl_id: str
    steps: tuple[StepStatus, ...]
    dataset: SessionDataset
    aborted: bool = False

    @property
    def merged_steps(self) -> int:
        return sum(1 for s in self.steps if s.ok)

    @property
    def failed_steps(self) -> int:
        return sum(1 for s in self.steps if not s.ok)


def steps_from_config(config: CrawlConfig) -> list[CrawlStep]:
    return [CrawlStep(path=s.path, label=s.label) for s in config.steps]


def as_step(value: CrawlStep | CrawlStepConfig | tuple[str, str]) -> CrawlStep:
    if isinstance(value, CrawlStep):
        return value
    if isinstance(value, tuple):
        path, label = value
        return CrawlStep(path=path, label=label)
    return CrawlStep(path=value.path, label=value.label)


class AutoCrawlDriver:
    """
    Visits a fixed list of pages one at a time and folds each extraction into
    the session dataset.

    Per step: Navigating -> Settling (fixed delay) -> Extracting -> Merged.
    A failed step is logged and skipped, never retried; the run always ends in
    Done. Abort requests are checked only between steps.
    """

    def __init__(
        self,
        browser: BrowserSurface,
        extract: ExtractFn,
        *,
        config: CrawlConfig | None = None,
        logger: EventLogger | None = None,
        sleep_fn: SleepFn | None = None,
        should_abort: AbortFn | None = None,
    ) -> None:
        self._browser = browser
        self._extract = extract
        self._config = config or CrawlConfig()
        self._logger = logger or NullLogger()
        self._sleep = sleep_fn or time.sleep
        self._should_abort = should_abort or (lambda: False)

        self.state = CrawlState.IDLE
        self.current_index: int | None = None
        self.dataset = SessionDataset()
        self.aborted = False

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(float(seconds))

    def _run_step(self, index: int, total: int, step: CrawlStep) -> StepStatus:
        self.current_index = index
        self._logger.info("crawl_step_started", index=index, total=total, path=step.path, label=step.label)

        try:
            self.state = CrawlState.NAVIGATING
            self._browser.navigate_to(step.path)

            self.state = CrawlState.SETTLING
            self._pause(self._config.settle_seconds)
            self._pause(self._config.pre_extract_seconds)

            self.state = CrawlState.EXTRACTING
            result = self._extract()
        except Exception as e:
            self._logger.exception("crawl_step_failed", exc=e, index=index, path=step.path)
            return StepStatus(
                index=index,
                total=total,
                step=step,
                status="failed",
                error=str(e) or type(e).__name__,
                stats=self.dataset.stats(),
            )

        if isinstance(result, ErrorResult):
            self._logger.warning(
                "crawl_step_failed",
                index=index,
                path=step.path,
                error=result.error,
                kind=result.kind,
            )
            return StepStatus(
                index=index,
                total=total,
                step=step,
                status="failed",
                error=result.error,
                stats=self.dataset.stats(),
            )

        self.dataset = merge_record(self.dataset, result)
        self.state = CrawlState.MERGED
        stats = self.dataset.stats()
        self._logger.info(
            "crawl_step_merged",
            url=result.page_url,
            index=index,
            path=step.path,
            page_type=result.page_type,
            **stats,
        )
        return StepStatus(
            index=index,
            total=total,
            step=step,
            status="merged",
            page_type=result.page_type,
            stats=stats,
        )

    def run(
        self,
        steps: Iterable[CrawlStep | CrawlStepConfig | tuple[str, str]] | None = None,
        *,
        dataset: SessionDataset | None = None,
    ) -> Iterator[StepStatus]:
        """Yield one StepStatus per visited step; `self.dataset` holds the running result."""
        plan: Sequence[CrawlStep] = [
            as_step(s) for s in (steps if steps is not None else self._config.steps)
        ]
        total = len(plan)
        self.dataset = dataset if dataset is not None else SessionDataset()
        self.aborted = False

        for index, step in enumerate(plan):
            if self._should_abort():
                self.aborted = True
                self._logger.warning("crawl_aborted", index=index, total=total)
                break

            yield self._run_step(index, total, step)

            if index < total - 1:
                self._pause(self._config.post_step_seconds)

        self.state = CrawlState.DONE
        self.current_index = None
        self._logger.info("crawl_completed", aborted=self.aborted, **self.dataset.stats())

    def run_to_completion(
        self,
        steps: Iterable[CrawlStep | CrawlStepConfig | tuple[str, str]] | None = None,
        *,
        dataset: SessionDataset | None = None,
        crawl_id: str | None = None,
    ) -> CrawlResult:
        statuses = tuple(self.run(steps, dataset=dataset))
        return CrawlResult(
            crawl_id=crawl_id or uuid.uuid4().hex,
            steps=statuses,
            dataset=self.dataset,
            aborted=self.aborted,
        )

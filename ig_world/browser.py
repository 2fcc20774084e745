from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .config_schema import BrowserConfig
from .errors import BrowserUnavailableError


class BrowserSurface(Protocol):
    """The single navigable page the scraper reads from."""

    def navigate_to(self, path: str) -> None: ...

    def current_url(self) -> str: ...

    def read_dom(self) -> str: ...


def join_url(base_url: str, path: str) -> str:
    p = (path or "").strip()
    if p.startswith(("http://", "https://")):
        return p
    if not p.startswith("/"):
        p = "/" + p
    return base_url.rstrip("/") + p


class PlaywrightBrowser:
    """
    BrowserSurface over a Playwright persistent Chromium profile.

    The profile directory keeps the logged-in session between runs. Navigation
    returns once the document has loaded; callers add their own settle delay
    for script-rendered content.
    """

    def __init__(self, config: BrowserConfig, *, playwright: Any, context: Any, page: Any) -> None:
        self._config = config
        self._playwright = playwright
        self._context = context
        self._page = page

    @classmethod
    def open(cls, config: BrowserConfig | None = None) -> "PlaywrightBrowser":
        cfg = config or BrowserConfig()
        profile_dir = Path(cfg.user_data_dir).expanduser()
        profile_dir.mkdir(parents=True, exist_ok=True)

        playwright = sync_playwright().start()
        try:
            context = playwright.chromium.launch_persistent_context(
                user_data_dir=str(profile_dir),
                headless=cfg.headless,
                viewport={"width": 1280, "height": 900},
            )
            page = context.pages[0] if context.pages else context.new_page()
            page.set_default_navigation_timeout(cfg.navigation_timeout_ms)
        except PlaywrightError as e:
            playwright.stop()
            raise BrowserUnavailableError(f"Failed to launch browser: {e}") from e

        return cls(cfg, playwright=playwright, context=context, page=page)

    @property
    def is_open(self) -> bool:
        return self._page is not None

    def _require_page(self) -> Any:
        if self._page is None or self._page.is_closed():
            raise BrowserUnavailableError()
        return self._page

    def navigate_to(self, path: str) -> None:
        page = self._require_page()
        url = join_url(self._config.base_url, path)
        try:
            page.goto(url, wait_until="domcontentloaded")
        except PlaywrightTimeoutError:
            # A slow load still leaves a readable document; the settle delay covers the rest.
            return

    def current_url(self) -> str:
        return str(self._require_page().url)

    def read_dom(self) -> str:
        return str(self._require_page().content())

    def close(self) -> None:
        if self._context is not None:
            try:
                self._context.close()
            finally:
                self._context = None
                self._page = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def __enter__(self) -> "PlaywrightBrowser":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

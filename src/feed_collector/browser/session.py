"""Playwright browser session owned by one collection run."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Protocol

from feed_collector.config import BrowserConfig
from feed_collector.errors import BrowserError
from feed_collector.logging import get_logger

PlaywrightFactory = Callable[[], AbstractContextManager[Any]]

logger = get_logger(__name__)


class BrowserPage(Protocol):
    def goto(self, url: str, **kwargs: Any) -> Any:
        """Navigate to a URL."""

    def content(self) -> str:
        """Return page HTML content."""


@dataclass(frozen=True)
class BrowserSessionOptions:
    engine: str
    headless: bool
    navigation_timeout_ms: int
    action_timeout_ms: int
    locale: str
    viewport_width: int
    viewport_height: int

    @classmethod
    def from_config(cls, browser: BrowserConfig, *, headless: bool | None = None) -> BrowserSessionOptions:
        return cls(
            engine=browser.engine,
            headless=browser.headless if headless is None else headless,
            navigation_timeout_ms=browser.navigation_timeout_ms,
            action_timeout_ms=browser.action_timeout_ms,
            locale=browser.locale,
            viewport_width=browser.viewport_width,
            viewport_height=browser.viewport_height,
        )


class PlaywrightBrowserSession:
    """Launch one browser plus context and close them in reverse order.

    Every resource registers its closer as soon as it exists, so a failure
    halfway through ``open`` still releases what was already started.
    Parallel runs each own a session; Playwright's sync API is not shared
    across threads.
    """

    def __init__(
        self,
        browser: BrowserConfig,
        *,
        headless: bool | None = None,
        playwright_factory: PlaywrightFactory | None = None,
    ) -> None:
        self.options = BrowserSessionOptions.from_config(browser, headless=headless)
        self._playwright_factory = playwright_factory or _default_playwright_factory
        self._closers: list[tuple[str, Callable[[], Any]]] = []
        self._context: Any | None = None

    @property
    def is_open(self) -> bool:
        return self._context is not None

    def open(self) -> None:
        if self.is_open:
            return
        try:
            self._launch()
        except Exception as exc:
            self._close_all(raise_on_error=False)
            if isinstance(exc, BrowserError):
                raise
            raise BrowserError(f"Failed to open browser session: {exc}") from exc
        logger.debug(
            "opened %s browser (headless=%s)",
            self.options.engine,
            self.options.headless,
        )

    def new_page(self) -> BrowserPage:
        if not self.is_open:
            self.open()
        try:
            page = self._context.new_page()
        except Exception as exc:
            raise BrowserError(f"Failed to create browser page: {exc}") from exc
        set_navigation_timeout = getattr(page, "set_default_navigation_timeout", None)
        if callable(set_navigation_timeout):
            set_navigation_timeout(self.options.navigation_timeout_ms)
        return page

    def close(self) -> None:
        self._close_all(raise_on_error=True)

    def __enter__(self) -> PlaywrightBrowserSession:
        self.open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        try:
            self.close()
        except BrowserError:
            if exc_type is None:
                raise
            logger.warning("browser teardown failed while handling %s", getattr(exc_type, "__name__", exc_type))
        return False

    def _launch(self) -> None:
        manager = self._playwright_factory()
        playwright = manager.__enter__()
        self._closers.append(("playwright", lambda: manager.__exit__(None, None, None)))

        launcher = getattr(playwright, self.options.engine, None)
        if launcher is None:
            raise BrowserError(f"Unsupported browser engine '{self.options.engine}' for Playwright session.")
        browser = launcher.launch(headless=self.options.headless)
        self._closers.append(("browser", browser.close))

        context = browser.new_context(
            locale=self.options.locale,
            viewport={"width": self.options.viewport_width, "height": self.options.viewport_height},
        )
        self._closers.append(("context", context.close))
        context.set_default_timeout(self.options.action_timeout_ms)
        self._context = context

    def _close_all(self, *, raise_on_error: bool) -> None:
        self._context = None
        closers, self._closers = self._closers, []
        errors: list[str] = []
        for label, closer in reversed(closers):
            try:
                closer()
            except Exception as exc:
                errors.append(f"{label} close failed: {exc}")
        if raise_on_error and errors:
            raise BrowserError("Errors occurred during browser session teardown: " + "; ".join(errors))


def _default_playwright_factory() -> AbstractContextManager[Any]:
    try:
        from playwright.sync_api import sync_playwright
    except ModuleNotFoundError as exc:
        raise BrowserError(
            "Playwright is not available. Install dependencies and run "
            "`python -m playwright install chromium`."
        ) from exc
    return sync_playwright()

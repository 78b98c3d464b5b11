"""Playwright-backed page source for "More"-link paginated listings."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol

from feed_collector.errors import BrowserError
from feed_collector.logging import get_logger
from feed_collector.models import PageSnapshot

logger = get_logger(__name__)


class FeedPage(Protocol):
    @property
    def url(self) -> str:
        """Current page URL."""

    def goto(self, url: str, **kwargs: Any) -> Any:
        """Navigate to a URL."""

    def reload(self, **kwargs: Any) -> Any:
        """Reload the current URL."""

    def content(self) -> str:
        """Return page HTML content."""

    def query_selector(self, selector: str) -> Any:
        """Return first matching element for selector."""

    def wait_for_load_state(self, state: str = "load", **kwargs: Any) -> Any:
        """Wait until the page reaches a load state."""


class PlaywrightPageSource:
    """Expose one browser page as a PageSource.

    ``advance`` clicks the "More" link and waits for the navigation it starts
    to reach ``domcontentloaded``. The link href is a plain navigation, so the
    next page replaces the old DOM and ``page_number`` counts clicks. Once the
    URL has changed the advance counts even if the load wait then fails.
    """

    def __init__(
        self,
        page: FeedPage,
        url: str,
        *,
        more_selector: str = "a.morelink",
        navigation_timeout_ms: int = 30_000,
        action_timeout_ms: int = 10_000,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._page = page
        self._url = url
        self._more_selector = more_selector
        self._navigation_timeout_ms = navigation_timeout_ms
        self._action_timeout_ms = action_timeout_ms
        self._now = now_fn or (lambda: datetime.now(timezone.utc))
        self._opened = False
        self._page_number = 1

    @property
    def current_url(self) -> str:
        return str(self._page.url)

    def open(self) -> None:
        try:
            self._page.goto(self._url, wait_until="domcontentloaded", timeout=self._navigation_timeout_ms)
        except Exception as exc:
            raise BrowserError(f"Could not navigate to '{self._url}': {exc}") from exc
        self._opened = True
        self._page_number = 1

    def get_snapshot(self) -> PageSnapshot:
        if not self._opened:
            self.open()
        try:
            html = str(self._page.content())
        except Exception as exc:
            raise BrowserError(f"Could not read page content: {exc}") from exc
        return PageSnapshot(html=html, captured_at=self._now(), page_number=self._page_number)

    def reload(self) -> None:
        if not self._opened:
            self.open()
            return
        try:
            self._page.reload(wait_until="domcontentloaded", timeout=self._navigation_timeout_ms)
        except Exception as exc:
            raise BrowserError(f"Could not reload '{self.current_url}': {exc}") from exc

    def has_more(self) -> bool:
        element = self._more_link()
        if element is None:
            return False
        try:
            return bool(element.is_visible())
        except Exception as exc:
            raise BrowserError(f"Could not check visibility of '{self._more_selector}': {exc}") from exc

    def advance(self) -> bool:
        element = self._more_link()
        if element is None:
            return False
        before = self.current_url
        try:
            element.click(timeout=self._action_timeout_ms)
            self._page.wait_for_load_state("domcontentloaded", timeout=self._navigation_timeout_ms)
        except Exception as exc:
            if self.current_url == before:
                raise
            # The click already navigated; only the load wait failed.
            logger.warning("load wait after advancing to %s failed: %s", self.current_url, exc)
        self._page_number += 1
        return True

    def _more_link(self) -> Any:
        try:
            return self._page.query_selector(self._more_selector)
        except Exception as exc:
            raise BrowserError(f"Could not query '{self._more_selector}': {exc}") from exc

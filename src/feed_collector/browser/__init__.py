"""Playwright session and page source for listing feeds."""

from .page_source import FeedPage, PlaywrightPageSource
from .session import BrowserPage, BrowserSessionOptions, PlaywrightBrowserSession

__all__ = [
    "BrowserPage",
    "BrowserSessionOptions",
    "FeedPage",
    "PlaywrightBrowserSession",
    "PlaywrightPageSource",
]

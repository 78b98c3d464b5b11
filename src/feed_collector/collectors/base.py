"""Collection interfaces and loop bounds for paginated feeds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from feed_collector.errors import CollectError
from feed_collector.models import CollectionResult, PageSnapshot


class PageSource(Protocol):
    def get_snapshot(self) -> PageSnapshot:
        """Return the feed content visible right now."""

    def has_more(self) -> bool:
        """Report whether another page of content can be revealed."""

    def advance(self) -> bool:
        """Reveal the next page; return False or raise when the action fails."""


class ReloadablePageSource(PageSource, Protocol):
    def reload(self) -> None:
        """Re-fetch the current page before the next snapshot."""


class Collector(Protocol):
    def collect(self, source: PageSource, target_count: int | None = None) -> CollectionResult:
        """Collect exactly ``target_count`` items or raise a CollectError."""


@dataclass(frozen=True)
class CollectionBounds:
    target_count: int = 100
    max_empty_retries: int = 3
    max_advance_retries: int = 3
    retry_delay_seconds: float = 3.0
    retry_backoff: float = 1.0
    settle_seconds: float = 2.0
    max_pages: int = 50
    run_timeout_seconds: float = 120.0


def validate_bounds(bounds: CollectionBounds) -> CollectionBounds:
    if bounds.target_count <= 0:
        raise CollectError("target_count must be > 0.")
    if bounds.max_empty_retries < 0:
        raise CollectError("max_empty_retries must be >= 0.")
    if bounds.max_advance_retries < 0:
        raise CollectError("max_advance_retries must be >= 0.")
    if bounds.retry_delay_seconds < 0:
        raise CollectError("retry_delay_seconds must be >= 0.")
    if bounds.retry_backoff < 1:
        raise CollectError("retry_backoff must be >= 1.")
    if bounds.settle_seconds < 0:
        raise CollectError("settle_seconds must be >= 0.")
    if bounds.max_pages < 0:
        raise CollectError("max_pages must be >= 0.")
    if bounds.run_timeout_seconds <= 0:
        raise CollectError("run_timeout_seconds must be > 0.")
    return bounds

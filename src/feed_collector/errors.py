"""Error taxonomy for stable module boundaries."""

from __future__ import annotations


class FeedCollectorError(Exception):
    """Base exception for feed-collector.

    ``stats`` holds the run counters observed up to the failure when a
    collection run attached them.
    """

    stats = None


class ConfigError(FeedCollectorError):
    """Raised when configuration is invalid or missing."""


class BrowserError(FeedCollectorError):
    """Raised for browser/session management failures."""


class ExtractError(FeedCollectorError):
    """Raised when a snapshot payload has an unsupported shape."""


class SinkError(FeedCollectorError):
    """Raised when a collection result cannot be persisted."""


class RenderError(FeedCollectorError):
    """Raised when rendering output fails."""


class DiagnosticsError(FeedCollectorError):
    """Raised for run event/artifact failures."""


class CollectError(FeedCollectorError):
    """Base for expected collection run failures.

    The run that raised it never produced a result.
    """

    reason = "collection failed"


class NoContentError(CollectError):
    """Raised when every snapshot reload still yields zero usable items."""

    reason = "no content available"


class PaginationError(CollectError):
    """Raised when advancing the feed keeps failing after bounded retries."""

    reason = "pagination failed"


class ExhaustedError(CollectError):
    """Raised when the feed runs out before the target count is met."""

    reason = "feed exhausted"


class CancelledError(CollectError):
    """Raised when a run is cancelled or exceeds its timeout budget."""

    reason = "cancelled"


class TimestampResolutionDefect(AssertionError):
    """Raised when a normalized result is not ordered newest first.

    Always a bug in timestamp resolution. Deliberately outside the
    FeedCollectorError tree so handlers for expected failures never catch it.
    """

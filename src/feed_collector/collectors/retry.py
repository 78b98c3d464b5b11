"""Bounded retry delay schedule shared by the empty-page and advance policies."""

from __future__ import annotations

from dataclasses import dataclass

from feed_collector.errors import CollectError


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int
    delay_seconds: float
    backoff: float = 1.0

    def delays(self) -> tuple[float, ...]:
        """Delay before each retry attempt; its length is the retry count."""
        if self.max_retries < 0:
            raise CollectError("max_retries must be >= 0.")
        if self.delay_seconds < 0:
            raise CollectError("delay_seconds must be >= 0.")
        if self.backoff < 1:
            raise CollectError("backoff must be >= 1.")
        return tuple(self.delay_seconds * (self.backoff**attempt) for attempt in range(self.max_retries))

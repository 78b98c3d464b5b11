"""Extractor interfaces."""

from __future__ import annotations

from typing import Protocol

from feed_collector.models import FeedItem, PageSnapshot


class Extractor(Protocol):
    def extract(self, snapshot: PageSnapshot) -> tuple[FeedItem, ...]:
        """Return resolvable items visible on the snapshot, in visual order."""

"""Rendering interfaces."""

from __future__ import annotations

from typing import Protocol

from feed_collector.models import FeedItem


class Renderer(Protocol):
    def render(self, items: tuple[FeedItem, ...]) -> str:
        """Render collected items as text."""

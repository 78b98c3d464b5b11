"""Sink interfaces for finished collection results."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from feed_collector.models import CollectionResult


class Sink(Protocol):
    def write(self, result: CollectionResult) -> Path | None:
        """Persist one finished result; return its location when it has one."""

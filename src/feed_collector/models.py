"""Data model contracts for cross-module use."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class IdentityMode(str, Enum):
    AUTO = "auto"
    ID = "id"
    TITLE = "title"


class CollectionState(str, Enum):
    COLLECTING = "collecting"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


@dataclass(frozen=True)
class RawRecord:
    """One row as it appears on a snapshot, before timestamp resolution."""

    rank: str | None
    title: str | None
    timestamp_text: str | None
    item_id: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class FeedItem:
    identity: str
    rank: str | None
    title: str
    timestamp: datetime
    raw_timestamp: str
    item_id: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class PageSnapshot:
    """One fetched view of the feed.

    Carries either page ``html`` or pre-extracted ``records``; ``captured_at``
    is the reference instant for relative timestamps.
    """

    html: str | None = None
    records: tuple[RawRecord, ...] | None = None
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    page_number: int = 1


@dataclass(frozen=True)
class CollectionStats:
    state: CollectionState
    stop_reason: str
    target_count: int
    collected: int
    snapshots: int = 0
    pages_advanced: int = 0
    empty_retries: int = 0
    advance_retries: int = 0
    superseded: int = 0
    dropped_records: int = 0
    elapsed_seconds: float = 0.0


@dataclass(frozen=True)
class CollectionResult:
    items: tuple[FeedItem, ...]
    target_count: int
    run_id: str
    stats: CollectionStats | None = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

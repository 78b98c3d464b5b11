"""Deterministic accumulator merge and result normalization."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from feed_collector.errors import TimestampResolutionDefect
from feed_collector.models import FeedItem

Accumulator = dict[str, FeedItem]


def merge_items(accumulator: Mapping[str, FeedItem], new_items: Iterable[FeedItem]) -> Accumulator:
    """Return a new accumulator with ``new_items`` keyed by identity.

    Last-seen wins on duplicate identity; a superseding item keeps the slot
    of the first-seen one, so first-seen order stays stable for tie-breaks.
    The input mapping is not mutated.
    """
    merged: Accumulator = dict(accumulator)
    for item in new_items:
        merged[item.identity] = item
    return merged


def count_superseded(accumulator: Mapping[str, FeedItem], new_items: Iterable[FeedItem]) -> int:
    seen = set(accumulator)
    superseded = 0
    for item in new_items:
        if item.identity in seen:
            superseded += 1
        seen.add(item.identity)
    return superseded


def normalize_items(accumulator: Mapping[str, FeedItem], target_count: int) -> tuple[FeedItem, ...]:
    """Order newest first (stable on first-seen order) and truncate to ``target_count``."""
    if target_count <= 0:
        raise ValueError("target_count must be > 0.")

    ordered = sorted(accumulator.values(), key=lambda item: _order_key(item.timestamp), reverse=True)
    truncated = tuple(ordered[:target_count])

    for index in range(len(truncated) - 1):
        current, following = truncated[index], truncated[index + 1]
        if _order_key(current.timestamp) < _order_key(following.timestamp):
            raise TimestampResolutionDefect(
                f"Normalized result is not newest-first at position {index}: "
                f"{current.identity} ({current.timestamp.isoformat()}) precedes "
                f"{following.identity} ({following.timestamp.isoformat()})."
            )
    return truncated


def _order_key(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

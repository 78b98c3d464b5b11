"""Snapshot extraction into resolvable feed items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from feed_collector.errors import ExtractError
from feed_collector.extract.listing import DEFAULT_LISTING_MARKUP, ListingMarkup, parse_listing_html
from feed_collector.models import FeedItem, IdentityMode, PageSnapshot, RawRecord
from feed_collector.timestamps import resolve_timestamp


@dataclass(frozen=True)
class ExtractionResult:
    items: tuple[FeedItem, ...]
    dropped: int = 0
    warnings: tuple[str, ...] = ()


class FeedItemExtractor:
    """Turn one snapshot into items with resolved timestamps and identity keys.

    Pure with respect to the snapshot: timestamps resolve against
    ``snapshot.captured_at``, so extracting the same snapshot twice yields the
    same items.
    """

    def __init__(
        self,
        *,
        identity: IdentityMode | str = IdentityMode.AUTO,
        markup: ListingMarkup = DEFAULT_LISTING_MARKUP,
    ) -> None:
        try:
            self._identity = IdentityMode(identity)
        except ValueError as exc:
            raise ExtractError(
                f"Unsupported identity mode '{identity}'. Use one of: auto, id, title."
            ) from exc
        self._markup = markup

    @property
    def identity(self) -> IdentityMode:
        return self._identity

    def extract(self, snapshot: PageSnapshot) -> tuple[FeedItem, ...]:
        return self.extract_with_report(snapshot).items

    def extract_with_report(self, snapshot: PageSnapshot) -> ExtractionResult:
        records = self._records(snapshot)
        items: list[FeedItem] = []
        warnings: list[str] = []
        for position, record in enumerate(records, start=1):
            item, warning = self._to_item(record, snapshot.captured_at)
            if item is None:
                warnings.append(f"Dropped row {position} on page {snapshot.page_number}: {warning}")
                continue
            items.append(item)
        return ExtractionResult(
            items=tuple(items),
            dropped=len(records) - len(items),
            warnings=tuple(warnings),
        )

    def _records(self, snapshot: PageSnapshot) -> tuple[RawRecord, ...]:
        if snapshot.records is not None:
            return tuple(snapshot.records)
        if snapshot.html is not None:
            return parse_listing_html(snapshot.html, self._markup)
        raise ExtractError("Snapshot must carry either `html` or `records`.")

    def _to_item(self, record: RawRecord, reference: datetime) -> tuple[FeedItem | None, str]:
        if not record.timestamp_text:
            return None, "missing timestamp"
        timestamp = resolve_timestamp(record.timestamp_text, reference)
        if timestamp is None:
            return None, f"unresolvable timestamp '{record.timestamp_text}'"
        if not record.title:
            return None, "missing title"

        identity = identity_key(record, self._identity)
        if identity is None:
            return None, "missing source item id"

        return (
            FeedItem(
                identity=identity,
                rank=record.rank,
                title=record.title,
                timestamp=timestamp,
                raw_timestamp=record.timestamp_text,
                item_id=record.item_id,
                url=record.url,
            ),
            "",
        )


def identity_key(record: RawRecord, mode: IdentityMode) -> str | None:
    """Pick the dedup key: source id when available, title as the documented fallback."""
    if mode is IdentityMode.TITLE:
        return f"title:{record.title}" if record.title else None
    if record.item_id:
        return f"id:{record.item_id}"
    if mode is IdentityMode.ID:
        return None
    return f"title:{record.title}" if record.title else None

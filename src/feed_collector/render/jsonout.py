"""JSON and JSONL item rendering."""

from __future__ import annotations

import json

from feed_collector.models import FeedItem


def render_json(items: tuple[FeedItem, ...]) -> str:
    return json.dumps([feed_item_to_dict(item) for item in items], indent=2, sort_keys=True)


def render_jsonl(items: tuple[FeedItem, ...]) -> str:
    return "\n".join(json.dumps(feed_item_to_dict(item), sort_keys=True) for item in items)


def feed_item_to_dict(item: FeedItem) -> dict[str, object]:
    return {
        "identity": item.identity,
        "id": item.item_id,
        "rank": item.rank,
        "title": item.title,
        "url": item.url,
        "timestamp": item.timestamp.isoformat(),
        "raw_timestamp": item.raw_timestamp,
    }

"""Human-friendly item rendering."""

from __future__ import annotations

from feed_collector.models import FeedItem


def render_pretty(items: tuple[FeedItem, ...]) -> str:
    if not items:
        return "(no items)"

    lines: list[str] = []
    for position, item in enumerate(items, start=1):
        stamp = item.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        rank = item.rank or "-"
        lines.append(f"{position:>3}. {stamp}Z  [{rank}] {item.title}")
        if item.url:
            lines.append(f"     {item.url}")
    return "\n".join(lines)

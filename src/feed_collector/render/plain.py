"""Tab-separated item rendering for shell pipelines."""

from __future__ import annotations

from feed_collector.models import FeedItem


def render_plain(items: tuple[FeedItem, ...]) -> str:
    lines: list[str] = []
    for item in items:
        title = item.title.replace("\n", " ").replace("\t", " ")
        lines.append(
            "\t".join(
                (
                    item.timestamp.isoformat(),
                    item.identity,
                    item.rank or "",
                    title,
                    item.url or "",
                )
            )
        )
    return "\n".join(lines)

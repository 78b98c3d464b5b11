"""Render contracts and concrete output formatters."""

from __future__ import annotations

from feed_collector.errors import RenderError
from feed_collector.models import FeedItem
from feed_collector.render.base import Renderer
from feed_collector.render.jsonout import feed_item_to_dict, render_json, render_jsonl
from feed_collector.render.plain import render_plain
from feed_collector.render.pretty import render_pretty

OUTPUT_FORMATS = ("pretty", "plain", "json", "jsonl")


def render_items(items: tuple[FeedItem, ...], output_format: str) -> str:
    if output_format == "pretty":
        return render_pretty(items)
    if output_format == "plain":
        return render_plain(items)
    if output_format == "json":
        return render_json(items)
    if output_format == "jsonl":
        return render_jsonl(items)
    raise RenderError(
        f"Unsupported output format '{output_format}'. Use one of: {', '.join(OUTPUT_FORMATS)}."
    )


__all__ = [
    "OUTPUT_FORMATS",
    "Renderer",
    "feed_item_to_dict",
    "render_items",
    "render_json",
    "render_jsonl",
    "render_plain",
    "render_pretty",
]

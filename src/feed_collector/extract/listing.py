"""Row parsing for "load more" listing markup (Hacker News style tables)."""

from __future__ import annotations

from dataclasses import dataclass
from html import unescape
import re

from feed_collector.errors import ExtractError
from feed_collector.models import RawRecord

_TAG_STRIP_RE = re.compile(r"<[^>]+>")
_ID_ATTR_RE = re.compile(r"""\bid\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
_HREF_ATTR_RE = re.compile(r"""\bhref\s*=\s*["']([^"']*)["']""", re.IGNORECASE)
_TITLE_ATTR_RE = re.compile(r"""\btitle\s*=\s*["']([^"']*)["']""", re.IGNORECASE)
_CLASS_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


@dataclass(frozen=True)
class ListingMarkup:
    """CSS class names that identify the parts of one listing row."""

    row_class: str = "athing"
    rank_class: str = "rank"
    title_class: str = "titleline"
    age_class: str = "age"


DEFAULT_LISTING_MARKUP = ListingMarkup()


def parse_listing_html(html: str, markup: ListingMarkup = DEFAULT_LISTING_MARKUP) -> tuple[RawRecord, ...]:
    """Split a listing document into raw row records, preserving page order.

    A row block starts at a ``<tr>`` carrying ``row_class`` and runs until the
    next such row, so the following subtext row (where the age lives) belongs
    to the block. Missing parts become ``None``; nothing is substituted.
    """
    patterns = _compile_markup(markup)
    starts = list(patterns.row_open.finditer(html))
    records: list[RawRecord] = []
    for index, match in enumerate(starts):
        end = starts[index + 1].start() if index + 1 < len(starts) else len(html)
        block = html[match.start() : end]
        records.append(_parse_row(match.group(0), block, patterns))
    return tuple(records)


@dataclass(frozen=True)
class _MarkupPatterns:
    row_open: re.Pattern[str]
    rank: re.Pattern[str]
    title_link: re.Pattern[str]
    age: re.Pattern[str]


def _compile_markup(markup: ListingMarkup) -> _MarkupPatterns:
    for name, value in (
        ("row_class", markup.row_class),
        ("rank_class", markup.rank_class),
        ("title_class", markup.title_class),
        ("age_class", markup.age_class),
    ):
        if not _CLASS_NAME_RE.fullmatch(value):
            raise ExtractError(f"Invalid listing markup {name} '{value}': expected a bare CSS class name.")

    return _MarkupPatterns(
        row_open=re.compile(_open_tag_with_class("tr", markup.row_class), re.IGNORECASE),
        rank=re.compile(
            _open_tag_with_class(r"[a-z]+", markup.rank_class) + r"(?P<body>.*?)</[a-z]+>",
            re.IGNORECASE | re.DOTALL,
        ),
        title_link=re.compile(
            _open_tag_with_class(r"[a-z]+", markup.title_class)
            + r"\s*(?P<anchor><a\b[^>]*>)(?P<body>.*?)</a>",
            re.IGNORECASE | re.DOTALL,
        ),
        age=re.compile(
            r"(?P<open>" + _open_tag_with_class(r"[a-z]+", markup.age_class) + r")(?P<body>.*?)</span>",
            re.IGNORECASE | re.DOTALL,
        ),
    )


def _open_tag_with_class(tag: str, class_name: str) -> str:
    return (
        rf"<{tag}\b[^>]*\bclass\s*=\s*[\"'](?:[^\"']*\s)?{re.escape(class_name)}(?:\s[^\"']*)?[\"'][^>]*>"
    )


def _parse_row(open_tag: str, block: str, patterns: _MarkupPatterns) -> RawRecord:
    id_match = _ID_ATTR_RE.search(open_tag)
    item_id = _clean(id_match.group(1)) if id_match else None

    rank_match = patterns.rank.search(block)
    rank = _clean_text(rank_match.group("body")) if rank_match else None

    title: str | None = None
    url: str | None = None
    title_match = patterns.title_link.search(block)
    if title_match is not None:
        title = _clean_text(title_match.group("body"))
        href_match = _HREF_ATTR_RE.search(title_match.group("anchor"))
        url = _clean(href_match.group(1)) if href_match else None

    return RawRecord(
        rank=rank,
        title=title,
        timestamp_text=_timestamp_text(block, patterns),
        item_id=item_id,
        url=url,
    )


def _timestamp_text(block: str, patterns: _MarkupPatterns) -> str | None:
    match = patterns.age.search(block)
    if match is None:
        return None
    title_match = _TITLE_ATTR_RE.search(match.group("open"))
    if title_match is not None:
        absolute = _clean(title_match.group(1))
        if absolute:
            return absolute
    return _clean_text(match.group("body"))


def _clean_text(fragment: str) -> str | None:
    return _clean(_TAG_STRIP_RE.sub(" ", fragment))


def _clean(value: str) -> str | None:
    collapsed = " ".join(unescape(value).split())
    return collapsed or None

"""Resolve absolute and relative feed timestamps into comparable instants."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import re

_RELATIVE_RE = re.compile(
    r"^(?P<quantity>\d+|an?|one)\s+(?P<unit>minute|minutes|min|mins|hour|hours|day|days)(?:\s+ago)?$"
)
_EPOCH_RE = re.compile(r"^\d{9,11}$")
_WHITESPACE_RE = re.compile(r"\s+")
_UNIT_SECONDS = {
    "minute": 60,
    "minutes": 60,
    "min": 60,
    "mins": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}


def resolve_timestamp(raw: str | None, reference: datetime) -> datetime | None:
    """Return the UTC instant ``raw`` denotes relative to ``reference``.

    Accepts ISO-8601 values (naive ones are taken as UTC), the Hacker News
    ``title`` attribute form (``"2024-10-18T12:34:56 1729254896"``), bare epoch
    seconds, ``"{n} minute(s)|hour(s)|day(s) [ago]"`` and ``"yesterday"``.
    Anything else resolves to ``None`` and the caller must drop the record.
    """
    if raw is None:
        return None
    text = _WHITESPACE_RE.sub(" ", raw.strip())
    if not text:
        return None

    absolute = _parse_absolute(text)
    if absolute is not None:
        return absolute

    offset = _relative_offset(text.lower())
    if offset is None:
        return None
    try:
        return _as_utc(reference) - offset
    except (OverflowError, ValueError):
        return None


def _relative_offset(lowered: str) -> timedelta | None:
    if lowered == "yesterday":
        return timedelta(hours=24)
    match = _RELATIVE_RE.fullmatch(lowered)
    if match is None:
        return None
    try:
        return timedelta(seconds=_parse_quantity(match.group("quantity")) * _UNIT_SECONDS[match.group("unit")])
    except (OverflowError, ValueError):
        # Well-formed phrase whose offset falls outside the datetime range.
        return None


def _parse_absolute(text: str) -> datetime | None:
    head, _, tail = text.partition(" ")
    for candidate in (text, head):
        parsed = _parse_iso(candidate)
        if parsed is not None:
            return parsed
    for candidate in (text, tail):
        if _EPOCH_RE.fullmatch(candidate):
            try:
                return datetime.fromtimestamp(int(candidate), tz=timezone.utc)
            except (OverflowError, ValueError, OSError):
                return None
    return None


def _parse_iso(candidate: str) -> datetime | None:
    if len(candidate) < 10 or not candidate[:4].isdigit():
        return None
    value = candidate[:-1] + "+00:00" if candidate.endswith("Z") else candidate
    try:
        return _as_utc(datetime.fromisoformat(value))
    except (OverflowError, ValueError):
        return None


def _parse_quantity(raw: str) -> int:
    if raw in {"a", "an", "one"}:
        return 1
    return int(raw)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

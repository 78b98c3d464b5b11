"""Structured run event records written as JSON lines."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
from pathlib import Path
import re
from typing import Any

from feed_collector.diagnostics.artifacts import redact_value
from feed_collector.errors import CollectError, DiagnosticsError
from feed_collector.models import CollectionResult, CollectionStats

EVENT_SCHEMA_VERSION = "v1"
COLLECTION_RUN_EVENT = "collection_run"

_REQUIRED_TOP_LEVEL_FIELDS = (
    "schema_version",
    "event_type",
    "occurred_at",
    "run_id",
    "feed_url",
    "payload",
)


@dataclass(frozen=True)
class RunEvent:
    schema_version: str
    event_type: str
    occurred_at: str
    run_id: str
    feed_url: str | None
    payload: dict[str, Any]


class JsonlEventLogger:
    """Append validated JSONL run events to one file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DiagnosticsError(f"Could not create event log directory for '{self._path}': {exc}") from exc

    @property
    def path(self) -> Path:
        return self._path

    def append(
        self,
        event_type: str,
        *,
        run_id: str,
        feed_url: str | None = None,
        payload: dict[str, Any] | None = None,
        occurred_at: datetime | None = None,
    ) -> dict[str, Any]:
        event = build_event(
            event_type,
            run_id=run_id,
            feed_url=feed_url,
            payload=payload,
            occurred_at=occurred_at,
        )
        line = json.dumps(event, sort_keys=True)
        try:
            with self._path.open("a", encoding="utf-8") as stream:
                stream.write(line)
                stream.write("\n")
        except OSError as exc:
            raise DiagnosticsError(f"Could not append event to '{self._path}': {exc}") from exc
        return event


def build_event(
    event_type: str,
    *,
    run_id: str,
    feed_url: str | None = None,
    payload: dict[str, Any] | None = None,
    occurred_at: datetime | None = None,
    schema_version: str = EVENT_SCHEMA_VERSION,
) -> dict[str, Any]:
    """Build and validate a redacted event using the active schema."""
    resolved_payload = payload if payload is not None else {}
    if not isinstance(resolved_payload, dict):
        raise DiagnosticsError("payload must be a dictionary.")
    if not event_type.strip():
        raise DiagnosticsError("event_type must be non-empty.")
    if not run_id.strip():
        raise DiagnosticsError("run_id must be non-empty.")

    resolved_time = occurred_at or datetime.now(timezone.utc)
    if resolved_time.tzinfo is None:
        resolved_time = resolved_time.replace(tzinfo=timezone.utc)
    event = RunEvent(
        schema_version=schema_version,
        event_type=event_type.strip(),
        occurred_at=resolved_time.isoformat(),
        run_id=run_id.strip(),
        feed_url=redact_value(feed_url.strip()) if isinstance(feed_url, str) and feed_url.strip() else None,
        payload=redact_value(resolved_payload),
    )
    serialized = {
        "schema_version": event.schema_version,
        "event_type": event.event_type,
        "occurred_at": event.occurred_at,
        "run_id": event.run_id,
        "feed_url": event.feed_url,
        "payload": event.payload,
    }
    validate_event(serialized)
    return serialized


def collection_run_payload(
    *,
    result: CollectionResult | None = None,
    error: BaseException | None = None,
    artifact_path: str | Path | None = None,
) -> dict[str, Any]:
    """Summarize one finished run, successful or not, for a ``collection_run`` event."""
    stats: CollectionStats | None = None
    payload: dict[str, Any] = {"ok": error is None}
    if result is not None:
        stats = result.stats
        payload["collected"] = len(result.items)
        payload["target_count"] = result.target_count
    if error is not None:
        payload["error_type"] = type(error).__name__
        payload["error"] = str(error)
        if isinstance(error, CollectError):
            payload["reason"] = error.reason
        stats = getattr(error, "stats", None) or stats
    if stats is not None:
        payload["stats"] = stats_to_dict(stats)
    if artifact_path is not None:
        payload["artifact_path"] = str(artifact_path)
    return payload


def stats_to_dict(stats: CollectionStats) -> dict[str, Any]:
    return {
        "state": stats.state.value,
        "stop_reason": stats.stop_reason,
        "target_count": stats.target_count,
        "collected": stats.collected,
        "snapshots": stats.snapshots,
        "pages_advanced": stats.pages_advanced,
        "empty_retries": stats.empty_retries,
        "advance_retries": stats.advance_retries,
        "superseded": stats.superseded,
        "dropped_records": stats.dropped_records,
        "elapsed_seconds": round(stats.elapsed_seconds, 3),
    }


def validate_event(event: dict[str, Any]) -> None:
    """Validate required fields and the schema major version."""
    for field in _REQUIRED_TOP_LEVEL_FIELDS:
        if field not in event:
            raise DiagnosticsError(f"Event missing required field '{field}'.")

    schema_version = event["schema_version"]
    if not isinstance(schema_version, str) or not schema_version.strip():
        raise DiagnosticsError("schema_version must be a non-empty string.")
    ensure_schema_compatible(schema_version)

    if not isinstance(event["event_type"], str) or not event["event_type"].strip():
        raise DiagnosticsError("event_type must be a non-empty string.")
    if not isinstance(event["occurred_at"], str) or not event["occurred_at"].strip():
        raise DiagnosticsError("occurred_at must be a non-empty ISO timestamp string.")
    if not isinstance(event["run_id"], str) or not event["run_id"].strip():
        raise DiagnosticsError("run_id must be a non-empty string.")
    if event["feed_url"] is not None and not isinstance(event["feed_url"], str):
        raise DiagnosticsError("feed_url must be a string or null.")
    if not isinstance(event["payload"], dict):
        raise DiagnosticsError("payload must be an object.")


def ensure_schema_compatible(schema_version: str) -> None:
    current_major = _schema_major(EVENT_SCHEMA_VERSION)
    incoming_major = _schema_major(schema_version)
    if incoming_major != current_major:
        raise DiagnosticsError(
            f"Incompatible event schema '{schema_version}'. Expected major '{current_major}'."
        )


def _schema_major(version: str) -> str:
    raw = version.strip().lower()
    match = re.match(r"^v?(?P<major>\d+)(?:[._-]\d+)?$", raw)
    if match is None:
        raise DiagnosticsError(f"Invalid schema version '{version}'. Use forms like 'v1' or '1.0'.")
    return match.group("major")

"""JSON file sink for finished collection results."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path

import pytest

from feed_collector.errors import SinkError
from feed_collector.models import CollectionResult, CollectionState, CollectionStats, FeedItem
from feed_collector.sink import JsonFileSink, load_result_document

NOW = datetime(2024, 10, 18, 12, 0, tzinfo=timezone.utc)


def _result() -> CollectionResult:
    items = tuple(
        FeedItem(
            identity=f"id:{n}",
            rank=f"{n}.",
            title=f"Story {n}",
            timestamp=NOW,
            raw_timestamp="just now",
            item_id=str(n),
        )
        for n in (1, 2)
    )
    stats = CollectionStats(
        state=CollectionState.SUCCESS,
        stop_reason="target_reached",
        target_count=2,
        collected=3,
        snapshots=2,
        pages_advanced=1,
        superseded=1,
    )
    return CollectionResult(items=items, target_count=2, run_id="collect-1", stats=stats, finished_at=NOW)


def test_json_file_sink_writes_items_and_run_metadata(tmp_path: Path) -> None:
    path = tmp_path / "out" / "result.json"

    written = JsonFileSink(path, feed_url="https://news.ycombinator.com/newest").write(_result())

    assert written == path
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["run"]["run_id"] == "collect-1"
    assert document["run"]["feed_url"] == "https://news.ycombinator.com/newest"
    assert document["run"]["collected"] == 2
    assert document["run"]["finished_at"] == "2024-10-18T12:00:00+00:00"
    assert document["run"]["stats"]["superseded"] == 1
    assert [item["id"] for item in document["items"]] == ["1", "2"]
    assert not (path.parent / ".result.json.tmp").exists()


def test_json_file_sink_replaces_previous_result(tmp_path: Path) -> None:
    path = tmp_path / "result.json"
    path.write_text("stale", encoding="utf-8")

    JsonFileSink(path).write(_result())

    assert load_result_document(path)["run"]["feed_url"] is None


def test_json_file_sink_wraps_os_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file", encoding="utf-8")
    with pytest.raises(SinkError, match="Could not write collection result"):
        JsonFileSink(blocker / "result.json").write(_result())


def test_json_file_sink_removes_temp_file_when_replace_fails(tmp_path: Path) -> None:
    target = tmp_path / "result.json"
    target.mkdir()

    with pytest.raises(SinkError, match="Could not write collection result"):
        JsonFileSink(target).write(_result())

    assert sorted(p.name for p in tmp_path.iterdir()) == ["result.json"]
    assert target.is_dir()


def test_load_result_document_validates_shape(tmp_path: Path) -> None:
    with pytest.raises(SinkError, match="not found"):
        load_result_document(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text('{"items": []}', encoding="utf-8")
    with pytest.raises(SinkError, match="missing 'run' or 'items'"):
        load_result_document(bad)

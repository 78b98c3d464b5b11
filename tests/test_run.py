"""Configured runs: collector wiring, fan-out, run events and failure snapshots."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
import json
from pathlib import Path
import threading

import pytest

from feed_collector.config import RuntimeConfig, default_config
from feed_collector.diagnostics import JsonlEventLogger
from feed_collector.errors import BrowserError, CancelledError, ExhaustedError
from feed_collector.models import PageSnapshot
from feed_collector.run import collect_feed, collect_feed_parallel
from feed_collector.testing import FakeClock

START = datetime(2024, 10, 18, 12, 0, tzinfo=timezone.utc)


def _row(item_id: int, minutes_ago: int, *, title: str | None = None) -> str:
    stamp = (START - timedelta(minutes=minutes_ago)).strftime("%Y-%m-%dT%H:%M:%S")
    return (
        f'<tr class="athing submission" id="{item_id}"><td><span class="rank">{item_id}.</span></td>'
        f'<td><span class="titleline"><a href="item?id={item_id}">{title or f"Story {item_id}"}</a></span></td></tr>'
        f'<tr><td class="subtext"><span class="age" title="{stamp}"><a href="item?id={item_id}">x</a></span>'
        f'<a href="vote?id={item_id}&amp;how=up&amp;auth=0123456789abcdef">vote</a></td></tr>'
    )


def _html(ids: Sequence[int]) -> str:
    return "<table>" + "".join(_row(n, n) for n in ids) + "</table>"


class HtmlFeed:
    def __init__(self, pages: Sequence[str]) -> None:
        self.pages = list(pages)
        self.index = 0

    def get_snapshot(self) -> PageSnapshot:
        return PageSnapshot(html=self.pages[self.index], captured_at=START, page_number=self.index + 1)

    def has_more(self) -> bool:
        return self.index + 1 < len(self.pages)

    def advance(self) -> bool:
        self.index += 1
        return True

    def reload(self) -> None:
        return None


def _factory(*pages: str, opened: list[str] | None = None):  # type: ignore[no-untyped-def]
    @contextmanager
    def open_source(config: RuntimeConfig) -> Iterator[HtmlFeed]:
        if opened is not None:
            opened.append(config.feed.url)
        yield HtmlFeed(pages)

    return open_source


def _config(**collection: object) -> RuntimeConfig:
    base = default_config()
    return replace(base, collection=replace(base.collection, **collection))  # type: ignore[arg-type]


def test_collect_feed_returns_newest_first_result_and_logs_event(tmp_path: Path) -> None:
    clock = FakeClock(START)
    events_path = tmp_path / "events.jsonl"
    opened: list[str] = []

    result = collect_feed(
        _config(),
        target_count=5,
        run_id="collect-1",
        page_source_factory=_factory(_html([3, 1, 2]), _html([2, 5, 4, 6]), opened=opened),
        now_fn=clock.now,
        sleep_fn=clock.sleep,
        event_logger=JsonlEventLogger(events_path),
    )

    assert [item.item_id for item in result.items] == ["1", "2", "3", "4", "5"]
    assert opened == ["https://news.ycombinator.com/newest"]
    event = json.loads(events_path.read_text(encoding="utf-8"))
    assert event["event_type"] == "collection_run"
    assert event["run_id"] == "collect-1"
    assert event["payload"]["ok"] is True
    assert event["payload"]["stats"]["pages_advanced"] == 1


def test_collect_feed_honors_configured_identity_mode() -> None:
    clock = FakeClock(START)
    page = "<table>" + _row(1, 1, title="Same") + _row(2, 2, title="Same") + _row(3, 3) + "</table>"

    with pytest.raises(ExhaustedError):
        collect_feed(
            _config(identity="title"),
            target_count=3,
            page_source_factory=_factory(page),
            now_fn=clock.now,
            sleep_fn=clock.sleep,
        )

    result = collect_feed(
        _config(identity="auto"),
        target_count=3,
        page_source_factory=_factory(page),
        now_fn=clock.now,
        sleep_fn=clock.sleep,
    )
    assert [item.identity for item in result.items] == ["id:1", "id:2", "id:3"]


def test_failed_run_writes_redacted_snapshot_and_failure_event(tmp_path: Path) -> None:
    clock = FakeClock(START)
    events_path = tmp_path / "events.jsonl"

    with pytest.raises(ExhaustedError) as excinfo:
        collect_feed(
            _config(),
            target_count=10,
            run_id="collect-2",
            page_source_factory=_factory(_html([1, 2]), _html([3])),
            now_fn=clock.now,
            sleep_fn=clock.sleep,
            event_logger=JsonlEventLogger(events_path),
            artifacts_dir=tmp_path / "artifacts",
            raw_html_opt_in=True,
        )

    assert excinfo.value.stats is not None
    artifact = tmp_path / "artifacts" / "collect-2_page-2_raw.html"
    assert artifact.exists()
    content = artifact.read_text(encoding="utf-8")
    assert 'id="3"' in content
    assert "0123456789abcdef" not in content

    event = json.loads(events_path.read_text(encoding="utf-8"))
    assert event["payload"]["ok"] is False
    assert event["payload"]["reason"] == "feed exhausted"
    assert event["payload"]["stats"]["stop_reason"] == "no_more_pages"
    assert event["payload"]["artifact_path"] == str(artifact)


def test_failure_without_artifacts_dir_writes_no_snapshot(tmp_path: Path) -> None:
    clock = FakeClock(START)
    with pytest.raises(ExhaustedError):
        collect_feed(
            _config(),
            target_count=10,
            page_source_factory=_factory(_html([1])),
            now_fn=clock.now,
            sleep_fn=clock.sleep,
        )
    assert list(tmp_path.iterdir()) == []


def test_page_source_open_failure_is_logged_and_reraised(tmp_path: Path) -> None:
    events_path = tmp_path / "events.jsonl"

    @contextmanager
    def broken(config: RuntimeConfig) -> Iterator[HtmlFeed]:
        raise BrowserError("Failed to open browser session: no display")
        yield HtmlFeed([])

    with pytest.raises(BrowserError, match="no display"):
        collect_feed(
            _config(),
            run_id="collect-3",
            page_source_factory=broken,
            event_logger=JsonlEventLogger(events_path),
            artifacts_dir=tmp_path / "artifacts",
        )

    event = json.loads(events_path.read_text(encoding="utf-8"))
    assert event["payload"]["error_type"] == "BrowserError"
    assert not (tmp_path / "artifacts").exists()


def test_cancel_event_stops_configured_run() -> None:
    event = threading.Event()
    event.set()
    with pytest.raises(CancelledError):
        collect_feed(_config(), target_count=2, page_source_factory=_factory(_html([1, 2])), cancel_event=event)


def test_collect_feed_parallel_combines_independent_runs(tmp_path: Path) -> None:
    clock = FakeClock(START)
    events_path = tmp_path / "events.jsonl"
    opened: list[str] = []

    fanout = collect_feed_parallel(
        _config(settle_seconds=0.0),
        runs=3,
        target_count=4,
        run_id="fanout-1",
        page_source_factory=_factory(_html([4, 2, 1, 3, 5]), opened=opened),
        now_fn=clock.now,
        sleep_fn=clock.sleep,
        event_logger=JsonlEventLogger(events_path),
    )

    assert len(opened) == 3
    assert [item.item_id for item in fanout.result.items] == ["1", "2", "3", "4"]
    assert fanout.result.run_id == "fanout-1"
    assert sorted(outcome.run_id for outcome in fanout.outcomes) == ["fanout-1.1", "fanout-1.2", "fanout-1.3"]
    lines = events_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["payload"]["runs"] == 3
    assert len(event["payload"]["outcomes"]) == 3


def test_collect_feed_parallel_uses_configured_run_count() -> None:
    clock = FakeClock(START)
    opened: list[str] = []

    fanout = collect_feed_parallel(
        _config(parallel_runs=2),
        target_count=1,
        page_source_factory=_factory(_html([1]), opened=opened),
        now_fn=clock.now,
        sleep_fn=clock.sleep,
    )

    assert len(opened) == 2
    assert fanout.succeeded == 2

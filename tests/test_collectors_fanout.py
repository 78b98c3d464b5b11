"""Parallel independent runs combined through merge and normalization."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from feed_collector.collectors import collect_parallel, combine_results
from feed_collector.errors import BrowserError, CollectError, ExhaustedError, NoContentError
from feed_collector.models import CollectionResult, CollectionState, CollectionStats, FeedItem

BASE = datetime(2024, 10, 18, 12, 0, tzinfo=timezone.utc)


def _item(key: str, minutes_ago: int, *, title: str | None = None) -> FeedItem:
    return FeedItem(
        identity=f"id:{key}",
        rank=None,
        title=title or key,
        timestamp=BASE - timedelta(minutes=minutes_ago),
        raw_timestamp=f"{minutes_ago} minutes ago",
        item_id=key,
    )


def _result(run_id: str, *items: FeedItem, pages: int = 1) -> CollectionResult:
    stats = CollectionStats(
        state=CollectionState.SUCCESS,
        stop_reason="target_reached",
        target_count=len(items),
        collected=len(items),
        snapshots=pages,
        pages_advanced=pages - 1,
        elapsed_seconds=float(pages),
    )
    return CollectionResult(items=items, target_count=len(items), run_id=run_id, stats=stats)


def test_combine_results_dedups_and_reorders_across_runs() -> None:
    first = _result("r.1", _item("a", 1), _item("c", 20))
    second = _result("r.2", _item("b", 10), _item("a", 1, title="updated"), pages=3)

    combined = combine_results([first, second], 3, run_id="r")

    assert [item.item_id for item in combined.items] == ["a", "b", "c"]
    assert combined.items[0].title == "updated"
    assert combined.run_id == "r"
    assert combined.stats is not None
    assert combined.stats.collected == 3
    assert combined.stats.snapshots == 4
    assert combined.stats.pages_advanced == 2
    assert combined.stats.elapsed_seconds == 3.0


def test_combine_results_requires_enough_unique_items() -> None:
    with pytest.raises(CollectError, match="1/2"):
        combine_results([_result("r.1", _item("a", 1)), _result("r.2", _item("a", 1))], 2, run_id="r")


def test_collect_parallel_assigns_child_run_ids_in_order() -> None:
    seen: list[str] = []

    def run(child_id: str) -> CollectionResult:
        seen.append(child_id)
        return _result(child_id, _item(child_id, len(seen)))

    fanout = collect_parallel([run, run, run], 2, run_id="parent", max_workers=1)

    assert seen == ["parent.1", "parent.2", "parent.3"]
    assert [outcome.run_id for outcome in fanout.outcomes] == ["parent.1", "parent.2", "parent.3"]
    assert fanout.succeeded == 3
    assert len(fanout.result.items) == 2
    assert fanout.result.run_id == "parent"


def test_collect_parallel_reports_failed_runs_and_keeps_successes() -> None:
    def good(child_id: str) -> CollectionResult:
        return _result(child_id, _item("a", 1), _item("b", 2))

    def bad(child_id: str) -> CollectionResult:
        raise NoContentError("page 1 stayed empty")

    fanout = collect_parallel([bad, good], 2, run_id="p")

    assert fanout.succeeded == 1
    assert fanout.failed == 1
    failed = fanout.outcomes[0]
    assert failed.ok is False
    assert failed.error == "page 1 stayed empty"
    assert [item.item_id for item in fanout.result.items] == ["a", "b"]


def test_collect_parallel_reraises_first_failure_when_all_runs_fail() -> None:
    def exhausted(child_id: str) -> CollectionResult:
        raise ExhaustedError("only 3/10")

    def empty(child_id: str) -> CollectionResult:
        raise NoContentError("empty")

    with pytest.raises(ExhaustedError, match="only 3/10"):
        collect_parallel([exhausted, empty], 10, run_id="p")


def test_collect_parallel_validates_inputs() -> None:
    with pytest.raises(CollectError, match="at least one run"):
        collect_parallel([], 5)
    with pytest.raises(CollectError, match="target_count"):
        collect_parallel([lambda child_id: _result(child_id, _item("a", 1))], 0)


def test_collect_parallel_keeps_successes_when_a_browser_fails_to_start() -> None:
    def crashed(child_id: str) -> CollectionResult:
        raise BrowserError("browser crashed")

    def good(child_id: str) -> CollectionResult:
        return _result(child_id, _item("a", 1))

    fanout = collect_parallel([crashed, good], 1, run_id="p")

    assert fanout.succeeded == 1
    assert fanout.outcomes[0].ok is False
    assert fanout.outcomes[0].error == "browser crashed"
    assert fanout.outcomes[0].stats is None
    assert [item.item_id for item in fanout.result.items] == ["a"]


def test_collect_parallel_reraises_browser_failure_when_no_run_succeeds() -> None:
    def crashed(child_id: str) -> CollectionResult:
        raise BrowserError("browser crashed")

    with pytest.raises(BrowserError, match="browser crashed"):
        collect_parallel([crashed, crashed], 1, run_id="p")

"""Parallel independent collection runs combined through the same merge/normalize steps."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent import futures
from dataclasses import dataclass

from feed_collector.collectors.feed import new_run_id
from feed_collector.collectors.merge import Accumulator, merge_items, normalize_items
from feed_collector.errors import CollectError, FeedCollectorError
from feed_collector.logging import get_logger
from feed_collector.models import CollectionResult, CollectionState, CollectionStats

RunFn = Callable[[str], CollectionResult]

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    run_id: str
    ok: bool
    item_count: int
    stats: CollectionStats | None = None
    error: str | None = None


@dataclass(frozen=True)
class FanOutResult:
    result: CollectionResult
    outcomes: tuple[RunOutcome, ...]

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)


def combine_results(results: Sequence[CollectionResult], target_count: int, *, run_id: str) -> CollectionResult:
    """Union independent results by re-merging and re-normalizing in run order."""
    if not results:
        raise CollectError("No collection results to combine.")
    accumulator: Accumulator = {}
    for result in results:
        accumulator = merge_items(accumulator, result.items)
    if len(accumulator) < target_count:
        raise CollectError(
            f"Combined runs produced {len(accumulator)}/{target_count} unique items."
        )
    items = normalize_items(accumulator, target_count)
    stats = CollectionStats(
        state=CollectionState.SUCCESS,
        stop_reason="target_reached",
        target_count=target_count,
        collected=len(accumulator),
        snapshots=sum(r.stats.snapshots for r in results if r.stats),
        pages_advanced=sum(r.stats.pages_advanced for r in results if r.stats),
        empty_retries=sum(r.stats.empty_retries for r in results if r.stats),
        advance_retries=sum(r.stats.advance_retries for r in results if r.stats),
        superseded=sum(r.stats.superseded for r in results if r.stats),
        dropped_records=sum(r.stats.dropped_records for r in results if r.stats),
        elapsed_seconds=max((r.stats.elapsed_seconds for r in results if r.stats), default=0.0),
    )
    return CollectionResult(items=items, target_count=target_count, run_id=run_id, stats=stats)


def collect_parallel(
    run_fns: Sequence[RunFn],
    target_count: int,
    *,
    run_id: str | None = None,
    max_workers: int | None = None,
) -> FanOutResult:
    """Execute independent runs on a thread pool and combine the successful ones.

    Each run owns its page source and accumulator. Failed runs are reported in
    ``outcomes``; when every run fails the first failure (in run order) is
    re-raised so partial data is never returned as a result.
    """
    if not run_fns:
        raise CollectError("collect_parallel requires at least one run.")
    if target_count <= 0:
        raise CollectError("target_count must be > 0.")

    parent_id = run_id or new_run_id("fanout")
    child_ids = [f"{parent_id}.{index}" for index in range(1, len(run_fns) + 1)]
    workers = max_workers or len(run_fns)

    with futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="feedc") as pool:
        pending = [pool.submit(run_fn, child_id) for run_fn, child_id in zip(run_fns, child_ids)]
        settled: list[tuple[str, CollectionResult | FeedCollectorError]] = []
        for child_id, future in zip(child_ids, pending):
            try:
                settled.append((child_id, future.result()))
            except FeedCollectorError as exc:
                logger.warning("run=%s failed: %s", child_id, exc)
                settled.append((child_id, exc))

    outcomes: list[RunOutcome] = []
    successes: list[CollectionResult] = []
    failures: list[FeedCollectorError] = []
    for child_id, result in settled:
        if isinstance(result, CollectionResult):
            successes.append(result)
            outcomes.append(
                RunOutcome(run_id=child_id, ok=True, item_count=len(result.items), stats=result.stats)
            )
            continue
        failures.append(result)
        outcomes.append(
            RunOutcome(
                run_id=child_id,
                ok=False,
                item_count=0,
                stats=getattr(result, "stats", None),
                error=str(result),
            )
        )

    if not successes:
        raise failures[0]

    combined = combine_results(successes, target_count, run_id=parent_id)
    return FanOutResult(result=combined, outcomes=tuple(outcomes))

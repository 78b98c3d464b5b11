"""Bounded "load more" feed collector: extract, merge, terminate, advance."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
import threading
import time as time_module

from feed_collector.collectors.base import (
    CollectionBounds,
    PageSource,
    validate_bounds,
)
from feed_collector.collectors.merge import Accumulator, count_superseded, merge_items, normalize_items
from feed_collector.collectors.retry import RetryPolicy
from feed_collector.errors import (
    CancelledError,
    CollectError,
    ExhaustedError,
    FeedCollectorError,
    NoContentError,
    PaginationError,
)
from feed_collector.extract.base import Extractor
from feed_collector.extract.items import FeedItemExtractor
from feed_collector.logging import get_logger
from feed_collector.models import (
    CollectionResult,
    CollectionState,
    CollectionStats,
    FeedItem,
    PageSnapshot,
)

NowFn = Callable[[], datetime]
SleepFn = Callable[[float], None]

logger = get_logger(__name__)


@dataclass
class _RunCounters:
    snapshots: int = 0
    pages_advanced: int = 0
    empty_retries: int = 0
    advance_retries: int = 0
    superseded: int = 0
    dropped_records: int = 0


class BoundedFeedCollector:
    """Collect a fixed-size, newest-first batch from a paginated feed.

    One ``collect`` call is one run: the accumulator lives only inside that
    call and is discarded whenever the run fails.
    """

    def __init__(
        self,
        *,
        bounds: CollectionBounds = CollectionBounds(),
        extractor: Extractor | None = None,
        now_fn: NowFn | None = None,
        sleep_fn: SleepFn | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._bounds = validate_bounds(bounds)
        self._extractor = extractor or FeedItemExtractor()
        self._now = now_fn or (lambda: datetime.now(timezone.utc))
        self._cancel_event = cancel_event
        if sleep_fn is not None:
            self._sleep = sleep_fn
        elif cancel_event is not None:
            self._sleep = cancel_event.wait
        else:
            self._sleep = time_module.sleep
        self._empty_policy = RetryPolicy(
            max_retries=self._bounds.max_empty_retries,
            delay_seconds=self._bounds.retry_delay_seconds,
            backoff=self._bounds.retry_backoff,
        )
        self._advance_policy = RetryPolicy(
            max_retries=self._bounds.max_advance_retries,
            delay_seconds=self._bounds.retry_delay_seconds,
            backoff=self._bounds.retry_backoff,
        )

    @property
    def bounds(self) -> CollectionBounds:
        return self._bounds

    def collect(
        self,
        source: PageSource,
        target_count: int | None = None,
        *,
        run_id: str | None = None,
    ) -> CollectionResult:
        target = self._bounds.target_count if target_count is None else target_count
        if target <= 0:
            raise CollectError("target_count must be > 0.")

        run = _Run(
            collector=self,
            source=source,
            target_count=target,
            run_id=run_id or new_run_id("collect"),
            started_at=self._now(),
        )
        return run.execute()


class _Run:
    def __init__(
        self,
        *,
        collector: BoundedFeedCollector,
        source: PageSource,
        target_count: int,
        run_id: str,
        started_at: datetime,
    ) -> None:
        self.collector = collector
        self.source = source
        self.target_count = target_count
        self.run_id = run_id
        self.started_at = started_at
        self.counters = _RunCounters()
        self.page_number = 1

    def execute(self) -> CollectionResult:
        accumulator: Accumulator = {}
        bounds = self.collector.bounds
        try:
            snapshot = self._snapshot()
            while True:
                items = self._extract_with_empty_retries(snapshot)
                self.counters.superseded += count_superseded(accumulator, items)
                accumulator = merge_items(accumulator, items)
                logger.debug(
                    "run=%s page=%s extracted=%s accumulated=%s",
                    self.run_id,
                    self.page_number,
                    len(items),
                    len(accumulator),
                )

                if len(accumulator) >= self.target_count:
                    normalized = normalize_items(accumulator, self.target_count)
                    stats = self._stats(CollectionState.SUCCESS, "target_reached", collected=len(accumulator))
                    logger.info(
                        "run=%s collected %s items across %s page(s)",
                        self.run_id,
                        len(normalized),
                        self.page_number,
                    )
                    return CollectionResult(
                        items=normalized,
                        target_count=self.target_count,
                        run_id=self.run_id,
                        stats=stats,
                        finished_at=self.collector._now(),
                    )

                if self.counters.pages_advanced >= bounds.max_pages:
                    raise ExhaustedError(
                        f"Page budget of {bounds.max_pages} advance(s) used with "
                        f"{len(accumulator)}/{self.target_count} unique items collected."
                    )

                if not self._has_more():
                    raise ExhaustedError(
                        f"Feed has no more pages; only {len(accumulator)}/{self.target_count} "
                        "unique items were available."
                    )

                self._advance_with_retries()
                self._pause(bounds.settle_seconds)
                snapshot = self._snapshot()
        except FeedCollectorError as exc:
            self._attach_failure_stats(exc, collected=len(accumulator))
            raise

    def _snapshot(self) -> PageSnapshot:
        self._check_cancelled()
        snapshot = self.source.get_snapshot()
        self.counters.snapshots += 1
        if snapshot.page_number != self.page_number:
            snapshot = PageSnapshot(
                html=snapshot.html,
                records=snapshot.records,
                captured_at=snapshot.captured_at,
                page_number=self.page_number,
            )
        return snapshot

    def _extract(self, snapshot: PageSnapshot) -> tuple[FeedItem, ...]:
        extractor = self.collector._extractor
        with_report = getattr(extractor, "extract_with_report", None)
        if not callable(with_report):
            return tuple(extractor.extract(snapshot))
        report = with_report(snapshot)
        self.counters.dropped_records += report.dropped
        for warning in report.warnings:
            logger.debug("run=%s %s", self.run_id, warning)
        return tuple(report.items)

    def _extract_with_empty_retries(self, snapshot: PageSnapshot) -> tuple[FeedItem, ...]:
        items = self._extract(snapshot)
        if items:
            return items

        delays = self.collector._empty_policy.delays()
        last_error: Exception | None = None
        for attempt, delay in enumerate(delays, start=1):
            logger.warning(
                "run=%s page=%s yielded no items; reloading (attempt %s/%s)",
                self.run_id,
                self.page_number,
                attempt,
                len(delays),
            )
            self.counters.empty_retries += 1
            self._pause(delay)
            try:
                self._reload()
                snapshot = self._snapshot()
            except CollectError:
                raise
            except Exception as exc:
                logger.warning("run=%s reload of page %s failed: %s", self.run_id, self.page_number, exc)
                last_error = exc
                continue
            last_error = None
            items = self._extract(snapshot)
            if items:
                return items

        detail = f"; last reload failed: {last_error}" if last_error is not None else "."
        error = NoContentError(
            f"Page {self.page_number} yielded no usable items after {len(delays)} reload(s){detail}"
        )
        if last_error is not None:
            raise error from last_error
        raise error

    def _has_more(self) -> bool:
        delays = self.collector._advance_policy.delays()
        for attempt in range(len(delays) + 1):
            self._check_cancelled()
            try:
                return bool(self.source.has_more())
            except CollectError:
                raise
            except Exception as exc:
                if attempt == len(delays):
                    raise PaginationError(
                        f"Checking for more pages after page {self.page_number} failed after "
                        f"{len(delays)} retry(ies): {exc}"
                    ) from exc
                self.counters.advance_retries += 1
                logger.warning(
                    "run=%s checking for more pages failed; retrying (attempt %s/%s): %s",
                    self.run_id,
                    attempt + 1,
                    len(delays),
                    exc,
                )
                self._pause(delays[attempt])
        raise PaginationError(f"Checking for more pages after page {self.page_number} failed.")

    def _advance_with_retries(self) -> None:
        delays = self.collector._advance_policy.delays()
        last_error: Exception | None = None
        for attempt in range(len(delays) + 1):
            if attempt > 0:
                self.counters.advance_retries += 1
                logger.warning(
                    "run=%s advance from page %s failed; retrying (attempt %s/%s): %s",
                    self.run_id,
                    self.page_number,
                    attempt,
                    len(delays),
                    last_error,
                )
                self._pause(delays[attempt - 1])
            self._check_cancelled()
            try:
                advanced = self.source.advance()
            except CollectError:
                raise
            except Exception as exc:
                last_error = exc
                continue
            if advanced:
                self.counters.pages_advanced += 1
                self.page_number += 1
                return
            last_error = None

        detail = f": {last_error}" if last_error is not None else "."
        error = PaginationError(
            f"Advancing past page {self.page_number} failed after {len(delays)} retry(ies){detail}"
        )
        if last_error is not None:
            raise error from last_error
        raise error

    def _reload(self) -> None:
        reload = getattr(self.source, "reload", None)
        if callable(reload):
            reload()

    def _pause(self, seconds: float) -> None:
        self._check_cancelled()
        if seconds <= 0:
            return
        remaining = self._remaining_seconds()
        self.collector._sleep(max(0.0, min(seconds, remaining)))
        self._check_cancelled()

    def _remaining_seconds(self) -> float:
        elapsed = (self.collector._now() - self.started_at).total_seconds()
        return self.collector.bounds.run_timeout_seconds - elapsed

    def _check_cancelled(self) -> None:
        event = self.collector._cancel_event
        if event is not None and event.is_set():
            raise CancelledError(f"Run {self.run_id} was cancelled.")
        if self._remaining_seconds() <= 0:
            raise CancelledError(
                f"Run {self.run_id} exceeded its {self.collector.bounds.run_timeout_seconds:g}s timeout."
            )

    def _stats(self, state: CollectionState, stop_reason: str, *, collected: int) -> CollectionStats:
        return CollectionStats(
            state=state,
            stop_reason=stop_reason,
            target_count=self.target_count,
            collected=collected,
            snapshots=self.counters.snapshots,
            pages_advanced=self.counters.pages_advanced,
            empty_retries=self.counters.empty_retries,
            advance_retries=self.counters.advance_retries,
            superseded=self.counters.superseded,
            dropped_records=self.counters.dropped_records,
            elapsed_seconds=max(0.0, (self.collector._now() - self.started_at).total_seconds()),
        )

    def _attach_failure_stats(self, exc: FeedCollectorError, *, collected: int) -> None:
        if isinstance(exc, ExhaustedError):
            state = CollectionState.EXHAUSTED
        else:
            state = CollectionState.FAILED
        stop_reason = _stop_reason(exc, max_pages=self.collector.bounds.max_pages, pages=self.counters.pages_advanced)
        exc.stats = self._stats(state, stop_reason, collected=collected)
        logger.warning("run=%s ended %s (%s): %s", self.run_id, state.value, stop_reason, exc)


def _stop_reason(exc: FeedCollectorError, *, max_pages: int, pages: int) -> str:
    if isinstance(exc, ExhaustedError):
        return "page_budget" if pages >= max_pages else "no_more_pages"
    if isinstance(exc, NoContentError):
        return "no_content"
    if isinstance(exc, PaginationError):
        return "pagination_failed"
    if isinstance(exc, CancelledError):
        return "cancelled"
    return "failed"


def new_run_id(prefix: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{prefix}-{stamp}"

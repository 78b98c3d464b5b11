"""Configured collection runs: browser wiring, fan-out, run events and failure artifacts."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import datetime
from pathlib import Path
import threading
from typing import Any

from feed_collector.browser.page_source import PlaywrightPageSource
from feed_collector.browser.session import PlaywrightBrowserSession
from feed_collector.collectors.base import PageSource
from feed_collector.collectors.fanout import FanOutResult, collect_parallel
from feed_collector.collectors.feed import BoundedFeedCollector, new_run_id
from feed_collector.config import RuntimeConfig
from feed_collector.diagnostics.artifacts import write_html_artifact
from feed_collector.diagnostics.events import (
    COLLECTION_RUN_EVENT,
    JsonlEventLogger,
    collection_run_payload,
)
from feed_collector.errors import CollectError, DiagnosticsError, FeedCollectorError
from feed_collector.extract.items import FeedItemExtractor
from feed_collector.logging import get_logger
from feed_collector.models import CollectionResult, IdentityMode, PageSnapshot

PageSourceFactory = Callable[[RuntimeConfig], AbstractContextManager[PageSource]]

logger = get_logger(__name__)


@contextmanager
def open_page_source(
    config: RuntimeConfig,
    *,
    headless: bool | None = None,
    playwright_factory: Callable[[], AbstractContextManager[Any]] | None = None,
) -> Iterator[PlaywrightPageSource]:
    """Yield a page source on a fresh browser session that is closed on exit."""
    with PlaywrightBrowserSession(config.browser, headless=headless, playwright_factory=playwright_factory) as session:
        page = session.new_page()
        yield PlaywrightPageSource(
            page,
            config.feed.url,
            more_selector=config.feed.more_selector,
            navigation_timeout_ms=config.browser.navigation_timeout_ms,
            action_timeout_ms=config.browser.action_timeout_ms,
        )


class _RecordingPageSource:
    """Pass-through page source that remembers the last snapshot taken."""

    def __init__(self, source: PageSource) -> None:
        self._source = source
        self.last_snapshot: PageSnapshot | None = None

    def get_snapshot(self) -> PageSnapshot:
        snapshot = self._source.get_snapshot()
        self.last_snapshot = snapshot
        return snapshot

    def has_more(self) -> bool:
        return self._source.has_more()

    def advance(self) -> bool:
        return self._source.advance()

    def reload(self) -> None:
        reload = getattr(self._source, "reload", None)
        if callable(reload):
            reload()


def build_collector(
    config: RuntimeConfig,
    *,
    target_count: int | None = None,
    cancel_event: threading.Event | None = None,
    now_fn: Callable[[], datetime] | None = None,
    sleep_fn: Callable[[float], None] | None = None,
) -> BoundedFeedCollector:
    extractor = FeedItemExtractor(
        identity=IdentityMode(config.collection.identity),
        markup=config.feed.markup,
    )
    return BoundedFeedCollector(
        bounds=config.collection.bounds(target_count),
        extractor=extractor,
        now_fn=now_fn,
        sleep_fn=sleep_fn,
        cancel_event=cancel_event,
    )


def collect_feed(
    config: RuntimeConfig,
    *,
    target_count: int | None = None,
    run_id: str | None = None,
    page_source_factory: PageSourceFactory | None = None,
    headless: bool | None = None,
    cancel_event: threading.Event | None = None,
    now_fn: Callable[[], datetime] | None = None,
    sleep_fn: Callable[[float], None] | None = None,
    event_logger: JsonlEventLogger | None = None,
    artifacts_dir: str | Path | None = None,
    raw_html_opt_in: bool | None = None,
) -> CollectionResult:
    """Run one bounded collection against the configured feed.

    Failures are re-raised unchanged after the run event is written. When
    ``artifacts_dir`` is set, the last page snapshot of a failed run is
    saved there in redacted form.
    """
    resolved_run_id = run_id or new_run_id("collect")
    collector = build_collector(
        config,
        target_count=target_count,
        cancel_event=cancel_event,
        now_fn=now_fn,
        sleep_fn=sleep_fn,
    )
    factory = page_source_factory or (lambda cfg: open_page_source(cfg, headless=headless))
    recorder: _RecordingPageSource | None = None

    try:
        with factory(config) as source:
            recorder = _RecordingPageSource(source)
            result = collector.collect(recorder, target_count, run_id=resolved_run_id)
    except FeedCollectorError as exc:
        artifact_path = None
        if artifacts_dir is not None and recorder is not None:
            artifact_path = _write_failure_artifact(
                artifacts_dir,
                run_id=resolved_run_id,
                snapshot=recorder.last_snapshot,
                raw_html_opt_in=raw_html_opt_in,
            )
        _emit(
            event_logger,
            run_id=resolved_run_id,
            feed_url=config.feed.url,
            payload=collection_run_payload(error=exc, artifact_path=artifact_path),
        )
        raise

    _emit(
        event_logger,
        run_id=resolved_run_id,
        feed_url=config.feed.url,
        payload=collection_run_payload(result=result),
    )
    return result


def collect_feed_parallel(
    config: RuntimeConfig,
    *,
    runs: int | None = None,
    target_count: int | None = None,
    run_id: str | None = None,
    page_source_factory: PageSourceFactory | None = None,
    headless: bool | None = None,
    cancel_event: threading.Event | None = None,
    now_fn: Callable[[], datetime] | None = None,
    sleep_fn: Callable[[float], None] | None = None,
    event_logger: JsonlEventLogger | None = None,
    artifacts_dir: str | Path | None = None,
    raw_html_opt_in: bool | None = None,
) -> FanOutResult:
    """Run several independent collections, each with its own browser, and combine them."""
    run_count = runs if runs is not None else config.collection.parallel_runs
    if run_count <= 0:
        raise CollectError("runs must be > 0.")
    target = target_count if target_count is not None else config.collection.target_count
    parent_id = run_id or new_run_id("fanout")

    def run_one(child_id: str) -> CollectionResult:
        return collect_feed(
            config,
            target_count=target,
            run_id=child_id,
            page_source_factory=page_source_factory,
            headless=headless,
            cancel_event=cancel_event,
            now_fn=now_fn,
            sleep_fn=sleep_fn,
            artifacts_dir=artifacts_dir,
            raw_html_opt_in=raw_html_opt_in,
        )

    try:
        fanout = collect_parallel([run_one] * run_count, target, run_id=parent_id)
    except FeedCollectorError as exc:
        _emit(
            event_logger,
            run_id=parent_id,
            feed_url=config.feed.url,
            payload={**collection_run_payload(error=exc), "runs": run_count},
        )
        raise

    payload = collection_run_payload(result=fanout.result)
    payload["runs"] = run_count
    payload["outcomes"] = [
        {
            "run_id": outcome.run_id,
            "ok": outcome.ok,
            "item_count": outcome.item_count,
            "error": outcome.error,
        }
        for outcome in fanout.outcomes
    ]
    _emit(event_logger, run_id=parent_id, feed_url=config.feed.url, payload=payload)
    return fanout


def _emit(
    event_logger: JsonlEventLogger | None,
    *,
    run_id: str,
    feed_url: str,
    payload: dict[str, Any],
) -> None:
    if event_logger is None:
        return
    event_logger.append(COLLECTION_RUN_EVENT, run_id=run_id, feed_url=feed_url, payload=payload)


def _write_failure_artifact(
    artifacts_dir: str | Path,
    *,
    run_id: str,
    snapshot: PageSnapshot | None,
    raw_html_opt_in: bool | None,
) -> str | None:
    if snapshot is None or not snapshot.html:
        return None
    try:
        path = write_html_artifact(
            artifacts_dir,
            run_id=run_id,
            page_number=snapshot.page_number,
            raw_html=snapshot.html,
            raw_html_opt_in=raw_html_opt_in,
        )
    except DiagnosticsError as exc:
        logger.warning("run=%s could not save failure snapshot: %s", run_id, exc)
        return None
    logger.info("run=%s saved failure snapshot to %s", run_id, path)
    return str(path)

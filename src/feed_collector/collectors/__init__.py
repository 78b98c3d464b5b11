"""Collector contracts."""

from .base import CollectionBounds, Collector, PageSource, ReloadablePageSource, validate_bounds
from .fanout import FanOutResult, RunOutcome, collect_parallel, combine_results
from .feed import BoundedFeedCollector, new_run_id
from .merge import count_superseded, merge_items, normalize_items
from .retry import RetryPolicy

__all__ = [
    "BoundedFeedCollector",
    "CollectionBounds",
    "Collector",
    "FanOutResult",
    "PageSource",
    "ReloadablePageSource",
    "RetryPolicy",
    "RunOutcome",
    "collect_parallel",
    "combine_results",
    "count_superseded",
    "merge_items",
    "new_run_id",
    "normalize_items",
    "validate_bounds",
]

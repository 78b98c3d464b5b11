"""feed_collector package: bounded newest-first collection from paginated listings."""

__version__ = "0.1.0"

from .collectors import BoundedFeedCollector, CollectionBounds, collect_parallel, merge_items, normalize_items
from .config import (
    AppConfig,
    BrowserConfig,
    CollectionConfig,
    FeedConfig,
    RuntimeConfig,
    config_to_dict,
    default_config,
    init_default_config,
    load_runtime_config,
    resolve_config_path,
)
from .extract import FeedItemExtractor
from .models import CollectionResult, CollectionState, CollectionStats, FeedItem, IdentityMode, PageSnapshot
from .timestamps import resolve_timestamp

__all__ = [
    "AppConfig",
    "BoundedFeedCollector",
    "BrowserConfig",
    "CollectionBounds",
    "CollectionConfig",
    "CollectionResult",
    "CollectionState",
    "CollectionStats",
    "FeedConfig",
    "FeedItem",
    "FeedItemExtractor",
    "IdentityMode",
    "PageSnapshot",
    "RuntimeConfig",
    "collect_parallel",
    "config_to_dict",
    "default_config",
    "init_default_config",
    "load_runtime_config",
    "merge_items",
    "normalize_items",
    "resolve_config_path",
    "__version__",
]

"""Shared configuration contracts and validation helpers for feed-collector."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import os
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from .collectors.base import CollectionBounds
from .errors import ConfigError
from .extract.listing import ListingMarkup
from .models import IdentityMode

VALID_OUTPUT_FORMATS = {"pretty", "plain", "json", "jsonl"}
VALID_BROWSER_ENGINES = {"chromium", "firefox", "webkit"}
VALID_IDENTITY_MODES = {mode.value for mode in IdentityMode}
DEFAULT_CONFIG_FILENAME = "config.toml"
CONFIG_ENV_VAR = "FEEDC_CONFIG"
DEFAULT_FEED_URL = "https://news.ycombinator.com/newest"

DEFAULT_CONFIG_TEMPLATE = """[app]
default_format = "pretty"
debug = false

[browser]
engine = "chromium"
headless = true
navigation_timeout_ms = 30000
action_timeout_ms = 10000
viewport_width = 1280
viewport_height = 720
locale = "en-US"

[feed]
url = "https://news.ycombinator.com/newest"
more_selector = "a.morelink"
row_class = "athing"
rank_class = "rank"
title_class = "titleline"
age_class = "age"

[collection]
target_count = 100
identity = "auto"
max_empty_retries = 3
max_advance_retries = 3
retry_delay_seconds = 3.0
retry_backoff = 1.0
settle_seconds = 2.0
max_pages = 50
run_timeout_seconds = 120.0
parallel_runs = 1
"""


@dataclass(frozen=True)
class AppConfig:
    default_format: str = "pretty"
    debug: bool = False


@dataclass(frozen=True)
class BrowserConfig:
    engine: str = "chromium"
    headless: bool = True
    navigation_timeout_ms: int = 30_000
    action_timeout_ms: int = 10_000
    viewport_width: int = 1280
    viewport_height: int = 720
    locale: str = "en-US"


@dataclass(frozen=True)
class FeedConfig:
    url: str = DEFAULT_FEED_URL
    more_selector: str = "a.morelink"
    markup: ListingMarkup = field(default_factory=ListingMarkup)


@dataclass(frozen=True)
class CollectionConfig:
    target_count: int = 100
    identity: str = IdentityMode.AUTO.value
    max_empty_retries: int = 3
    max_advance_retries: int = 3
    retry_delay_seconds: float = 3.0
    retry_backoff: float = 1.0
    settle_seconds: float = 2.0
    max_pages: int = 50
    run_timeout_seconds: float = 120.0
    parallel_runs: int = 1

    def bounds(self, target_count: int | None = None) -> CollectionBounds:
        return CollectionBounds(
            target_count=target_count if target_count is not None else self.target_count,
            max_empty_retries=self.max_empty_retries,
            max_advance_retries=self.max_advance_retries,
            retry_delay_seconds=self.retry_delay_seconds,
            retry_backoff=self.retry_backoff,
            settle_seconds=self.settle_seconds,
            max_pages=self.max_pages,
            run_timeout_seconds=self.run_timeout_seconds,
        )


@dataclass(frozen=True)
class RuntimeConfig:
    app: AppConfig = field(default_factory=AppConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    collection: CollectionConfig = field(default_factory=CollectionConfig)


def default_config() -> RuntimeConfig:
    return RuntimeConfig()


def default_config_toml() -> str:
    return DEFAULT_CONFIG_TEMPLATE


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    if config_path:
        return Path(config_path).expanduser()

    env_value = os.getenv(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()

    config_dir = Path(user_config_dir("feed-collector", appauthor=False))
    return config_dir / DEFAULT_CONFIG_FILENAME


def init_default_config(config_path: str | Path | None = None, force: bool = False) -> Path:
    path = resolve_config_path(config_path)
    if path.exists() and path.is_dir():
        raise ConfigError(
            f"Config path '{path}' is a directory; expected a TOML file path (for example '{path / DEFAULT_CONFIG_FILENAME}')."
        )
    if path.exists() and not force:
        raise ConfigError(
            f"Config file already exists at '{path}'. Re-run with --force to overwrite."
        )

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(default_config_toml(), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(
            f"Could not write config file at '{path}': {exc}. "
            "Check path permissions or choose a writable location with `--path`."
        ) from exc
    return path


def load_runtime_config(config_path: str | Path | None = None, *, missing_ok: bool = False) -> RuntimeConfig:
    """Load and validate the TOML config; ``missing_ok`` falls back to defaults when absent."""
    path = resolve_config_path(config_path)
    if not path.exists():
        if missing_ok:
            return default_config()
        raise ConfigError(
            f"Config file not found at '{path}'. Run `feedc config init --path \"{path}\"` to generate defaults."
        )
    if path.is_dir():
        raise ConfigError(
            f"Config path '{path}' is a directory; pass a file path ending in '{DEFAULT_CONFIG_FILENAME}'."
        )

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(
            f"Could not read config file '{path}': {exc}. "
            "Check file permissions and that the path points to a readable TOML file."
        ) from exc
    raw = _load_toml(text, path)
    return parse_runtime_config(raw)


def config_to_dict(config: RuntimeConfig) -> dict[str, Any]:
    return asdict(config)


def _load_toml(text: str, path: Path) -> dict[str, Any]:
    try:
        import tomllib  # Python 3.11+
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Config file '{path}' contains invalid TOML: {exc}. "
            "Fix the syntax or regenerate defaults with `feedc config init --force`."
        ) from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must parse to a TOML table.")
    return data


def parse_runtime_config(data: dict[str, Any]) -> RuntimeConfig:
    app_raw = _expect_table(data, "app", default={})
    browser_raw = _expect_table(data, "browser", default={})
    feed_raw = _expect_table(data, "feed", default={})
    collection_raw = _expect_table(data, "collection", default={})

    app_config = AppConfig(
        default_format=_expect_choice(
            app_raw,
            "app.default_format",
            default="pretty",
            valid_values=VALID_OUTPUT_FORMATS,
        ),
        debug=_expect_bool(app_raw, "app.debug", default=False),
    )

    browser_config = BrowserConfig(
        engine=_expect_choice(
            browser_raw,
            "browser.engine",
            default="chromium",
            valid_values=VALID_BROWSER_ENGINES,
        ),
        headless=_expect_bool(browser_raw, "browser.headless", default=True),
        navigation_timeout_ms=_expect_positive_int(
            browser_raw, "browser.navigation_timeout_ms", default=30_000
        ),
        action_timeout_ms=_expect_positive_int(browser_raw, "browser.action_timeout_ms", default=10_000),
        viewport_width=_expect_positive_int(browser_raw, "browser.viewport_width", default=1280),
        viewport_height=_expect_positive_int(browser_raw, "browser.viewport_height", default=720),
        locale=_expect_non_empty_string(browser_raw, "browser.locale", "en-US"),
    )

    feed_url = _expect_non_empty_string(feed_raw, "feed.url", DEFAULT_FEED_URL)
    if not feed_url.startswith(("http://", "https://", "file://")):
        raise ConfigError("Invalid value for 'feed.url': expected an http(s) or file URL.")
    feed_config = FeedConfig(
        url=feed_url,
        more_selector=_expect_non_empty_string(feed_raw, "feed.more_selector", "a.morelink"),
        markup=ListingMarkup(
            row_class=_expect_non_empty_string(feed_raw, "feed.row_class", "athing"),
            rank_class=_expect_non_empty_string(feed_raw, "feed.rank_class", "rank"),
            title_class=_expect_non_empty_string(feed_raw, "feed.title_class", "titleline"),
            age_class=_expect_non_empty_string(feed_raw, "feed.age_class", "age"),
        ),
    )

    collection_config = CollectionConfig(
        target_count=_expect_positive_int(collection_raw, "collection.target_count", default=100),
        identity=_expect_choice(
            collection_raw,
            "collection.identity",
            default=IdentityMode.AUTO.value,
            valid_values=VALID_IDENTITY_MODES,
        ),
        max_empty_retries=_expect_non_negative_int(collection_raw, "collection.max_empty_retries", default=3),
        max_advance_retries=_expect_non_negative_int(
            collection_raw, "collection.max_advance_retries", default=3
        ),
        retry_delay_seconds=_expect_non_negative_number(
            collection_raw, "collection.retry_delay_seconds", default=3.0
        ),
        retry_backoff=_expect_number_at_least(collection_raw, "collection.retry_backoff", default=1.0, minimum=1.0),
        settle_seconds=_expect_non_negative_number(collection_raw, "collection.settle_seconds", default=2.0),
        max_pages=_expect_non_negative_int(collection_raw, "collection.max_pages", default=50),
        run_timeout_seconds=_expect_number_at_least(
            collection_raw, "collection.run_timeout_seconds", default=120.0, minimum=1.0
        ),
        parallel_runs=_expect_positive_int(collection_raw, "collection.parallel_runs", default=1),
    )

    return RuntimeConfig(
        app=app_config,
        browser=browser_config,
        feed=feed_config,
        collection=collection_config,
    )


def _expect_table(data: dict[str, Any], key: str, default: dict[str, Any]) -> dict[str, Any]:
    value = data.get(key, default)
    if not isinstance(value, dict):
        raise ConfigError(f"Invalid [{key}] table: expected table, got {type(value).__name__}.")
    return value


def _expect_non_empty_string(
    data: dict[str, Any], key: str, default: str | None
) -> str:
    field_name = key.split(".")[-1]
    if field_name in data:
        value = data[field_name]
    else:
        if default is None:
            raise ConfigError(f"Missing required value '{key}'.")
        value = default

    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Invalid value for '{key}': expected non-empty string.")
    return value


def _expect_positive_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key.split(".")[-1], default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"Invalid value for '{key}': expected positive integer.")
    return value


def _expect_non_negative_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key.split(".")[-1], default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"Invalid value for '{key}': expected integer >= 0.")
    return value


def _expect_non_negative_number(data: dict[str, Any], key: str, default: float) -> float:
    return _expect_number_at_least(data, key, default=default, minimum=0.0)


def _expect_number_at_least(data: dict[str, Any], key: str, *, default: float, minimum: float) -> float:
    value = data.get(key.split(".")[-1], default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < minimum:
        raise ConfigError(f"Invalid value for '{key}': expected number >= {minimum:g}.")
    return float(value)


def _expect_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key.split(".")[-1], default)
    if not isinstance(value, bool):
        raise ConfigError(f"Invalid value for '{key}': expected boolean true/false.")
    return value


def _expect_choice(
    data: dict[str, Any],
    key: str,
    default: str | None,
    valid_values: set[str],
) -> str:
    field_name = key.split(".")[-1]
    if field_name in data:
        value = data[field_name]
    else:
        if default is None:
            raise ConfigError(f"Missing required value '{key}'.")
        value = default

    if not isinstance(value, str) or value not in valid_values:
        choices = ", ".join(sorted(valid_values))
        raise ConfigError(f"Invalid value for '{key}': expected one of [{choices}].")
    return value

"""Config init/show defaults and validation behavior."""

from __future__ import annotations

from pathlib import Path

import pytest

from feed_collector.collectors import CollectionBounds
from feed_collector.config import (
    DEFAULT_FEED_URL,
    config_to_dict,
    default_config,
    default_config_toml,
    init_default_config,
    load_runtime_config,
    resolve_config_path,
)
from feed_collector.errors import ConfigError
from feed_collector.extract import ListingMarkup


def test_resolve_config_path_uses_explicit_path() -> None:
    path = resolve_config_path("~/tmp/feedc-test.toml")
    assert str(path).endswith("feedc-test.toml")
    assert "~" not in str(path)


def test_resolve_config_path_uses_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env_path = tmp_path / "env-config.toml"
    monkeypatch.setenv("FEEDC_CONFIG", str(env_path))
    assert resolve_config_path() == env_path


def test_resolve_config_path_defaults_to_platform_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FEEDC_CONFIG", raising=False)
    path = resolve_config_path()
    assert path.name == "config.toml"
    assert "feed-collector" in str(path)


def test_init_default_config_writes_template(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "config.toml"
    written = init_default_config(config_path)
    assert written == config_path
    assert config_path.read_text(encoding="utf-8") == default_config_toml()


def test_init_default_config_requires_force_for_overwrite(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("existing", encoding="utf-8")
    with pytest.raises(ConfigError, match="--force"):
        init_default_config(config_path)

    init_default_config(config_path, force=True)
    assert config_path.read_text(encoding="utf-8") == default_config_toml()


def test_init_default_config_rejects_directory(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="is a directory"):
        init_default_config(tmp_path)


def test_load_runtime_config_reports_missing_file(tmp_path: Path) -> None:
    missing = tmp_path / "missing.toml"
    with pytest.raises(ConfigError, match="Run `feedc config init"):
        load_runtime_config(missing)


def test_load_runtime_config_missing_ok_returns_defaults(tmp_path: Path) -> None:
    assert load_runtime_config(tmp_path / "missing.toml", missing_ok=True) == default_config()


def test_template_round_trips_to_dataclass_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    init_default_config(config_path)
    loaded = load_runtime_config(config_path)

    assert loaded == default_config()
    assert loaded.feed.url == DEFAULT_FEED_URL
    assert loaded.feed.markup == ListingMarkup()
    assert loaded.collection.target_count == 100
    assert loaded.collection.identity == "auto"
    assert loaded.browser.headless is True


def test_collection_config_builds_bounds() -> None:
    collection = default_config().collection

    assert collection.bounds() == CollectionBounds()
    assert collection.bounds(target_count=7).target_count == 7


def test_load_runtime_config_parses_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """[feed]
url = "https://news.ycombinator.com/shownew"
age_class = "when"

[collection]
target_count = 30
identity = "title"
retry_backoff = 2
max_pages = 0
""",
        encoding="utf-8",
    )

    loaded = load_runtime_config(config_path)

    assert loaded.feed.url == "https://news.ycombinator.com/shownew"
    assert loaded.feed.markup.age_class == "when"
    assert loaded.feed.markup.row_class == "athing"
    assert loaded.collection.target_count == 30
    assert loaded.collection.identity == "title"
    assert loaded.collection.retry_backoff == 2.0
    assert loaded.collection.max_pages == 0
    assert loaded.collection.settle_seconds == 2.0


@pytest.mark.parametrize(
    ("body", "key"),
    [
        ('[app]\ndefault_format = "xml"\n', "app.default_format"),
        ('[app]\ndebug = "yes"\n', "app.debug"),
        ('[browser]\nengine = "opera"\n', "browser.engine"),
        ("[browser]\nnavigation_timeout_ms = 0\n", "browser.navigation_timeout_ms"),
        ('[feed]\nurl = "ftp://example.com"\n', "feed.url"),
        ('[feed]\nmore_selector = ""\n', "feed.more_selector"),
        ("[collection]\ntarget_count = 0\n", "collection.target_count"),
        ("[collection]\ntarget_count = true\n", "collection.target_count"),
        ('[collection]\nidentity = "url"\n', "collection.identity"),
        ("[collection]\nmax_empty_retries = -1\n", "collection.max_empty_retries"),
        ("[collection]\nretry_delay_seconds = -0.5\n", "collection.retry_delay_seconds"),
        ("[collection]\nretry_backoff = 0.5\n", "collection.retry_backoff"),
        ("[collection]\nrun_timeout_seconds = 0\n", "collection.run_timeout_seconds"),
        ("[collection]\nparallel_runs = 0\n", "collection.parallel_runs"),
    ],
)
def test_load_runtime_config_reports_invalid_value(tmp_path: Path, body: str, key: str) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError, match=key.replace(".", r"\.")):
        load_runtime_config(config_path)


def test_load_runtime_config_rejects_non_table_section(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('collection = "fast"\n', encoding="utf-8")
    with pytest.raises(ConfigError, match=r"\[collection\] table"):
        load_runtime_config(config_path)


def test_load_runtime_config_reports_invalid_toml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("[collection\ntarget_count = ", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid TOML"):
        load_runtime_config(config_path)


def test_config_to_dict_nests_markup() -> None:
    payload = config_to_dict(default_config())
    assert payload["feed"]["markup"]["row_class"] == "athing"
    assert payload["collection"]["parallel_runs"] == 1


def test_init_default_config_wraps_os_errors(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_path = tmp_path / "config.toml"

    def raise_permission_error(*_args: object, **_kwargs: object) -> str:
        raise PermissionError("denied")

    monkeypatch.setattr(Path, "write_text", raise_permission_error)

    with pytest.raises(ConfigError, match="Could not write config file"):
        init_default_config(config_path)


def test_load_runtime_config_wraps_os_errors(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("[app]\ndebug = false\n", encoding="utf-8")

    def raise_permission_error(*_args: object, **_kwargs: object) -> str:
        raise PermissionError("denied")

    monkeypatch.setattr(Path, "read_text", raise_permission_error)

    with pytest.raises(ConfigError, match="Could not read config file"):
        load_runtime_config(config_path)

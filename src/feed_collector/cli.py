"""Typer CLI for feed-collector workflows."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import json
from pathlib import Path

import typer

from . import __version__
from .collectors.fanout import FanOutResult
from .config import (
    VALID_OUTPUT_FORMATS,
    RuntimeConfig,
    config_to_dict,
    init_default_config,
    load_runtime_config,
    resolve_config_path,
)
from .diagnostics.events import JsonlEventLogger
from .errors import (
    BrowserError,
    CancelledError,
    CollectError,
    ConfigError,
    DiagnosticsError,
    ExhaustedError,
    RenderError,
    SinkError,
)
from .logging import configure_logging
from .models import CollectionResult
from .render import render_items
from .run import collect_feed, collect_feed_parallel
from .sink import JsonFileSink
from .timestamps import resolve_timestamp

EXIT_FAILED = 2
EXIT_EXHAUSTED = 3
EXIT_CANCELLED = 130

app = typer.Typer(help="Collect a fixed number of the newest items from a paginated listing.")

config_app = typer.Typer(help="Config commands.")

app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init(
    path: str | None = typer.Option(
        None, "--path", help="Optional config TOML path (defaults to platform config dir)."
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    try:
        written_path = init_default_config(path, force=force)
    except ConfigError as exc:
        typer.secho(f"Config init failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(EXIT_FAILED) from exc

    typer.echo(f"Wrote default config to {written_path}")


@config_app.command("show")
def config_show(
    path: str | None = typer.Option(
        None, "--path", help="Optional config TOML path (defaults to platform config dir)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Render resolved config as JSON."),
) -> None:
    resolved_path = resolve_config_path(path)
    try:
        config = load_runtime_config(path)
    except ConfigError as exc:
        typer.secho(f"Config show failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(EXIT_FAILED) from exc

    payload = {
        "path": str(resolved_path),
        "config": config_to_dict(config),
    }
    if as_json:
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    typer.echo(f"Resolved config path: {payload['path']}")
    typer.echo(f"Feed URL: {config.feed.url}")
    typer.echo(f"Target count: {config.collection.target_count}")
    typer.echo(f"Identity: {config.collection.identity}")
    typer.echo(f"Default format: {config.app.default_format}")


@app.command("collect")
def collect(
    ctx: typer.Context,
    path: str | None = typer.Option(
        None, "--path", help="Optional config TOML path (defaults to platform config dir)."
    ),
    url: str | None = typer.Option(None, "--url", help="Override the configured feed URL."),
    target: int | None = typer.Option(None, "--target", min=1, help="Number of items to collect."),
    parallel: int | None = typer.Option(
        None, "--parallel", min=1, help="Independent runs to execute and combine."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", min=1.0, help="Per-run timeout in seconds."
    ),
    out: Path | None = typer.Option(None, "--out", help="Write items plus run metadata to a JSON file."),
    events: Path | None = typer.Option(None, "--events", help="Append run events to a JSONL file."),
) -> None:
    debug_enabled = _resolve_debug(ctx)
    configure_logging(debug=debug_enabled)
    try:
        config = _config_with_overrides(
            load_runtime_config(path, missing_ok=True),
            url=url,
            timeout=timeout,
        )
        output_format = _resolve_output_format(ctx, config_default=config.app.default_format)
        debug_enabled = debug_enabled or config.app.debug
        event_logger = _event_logger(events, config_path=path, debug_enabled=debug_enabled)
        artifacts_dir = _artifacts_dir(path) if debug_enabled else None
        runs = parallel if parallel is not None else config.collection.parallel_runs
        headless = _resolve_headless(ctx)

        fanout: FanOutResult | None = None
        if runs > 1:
            fanout = collect_feed_parallel(
                config,
                runs=runs,
                target_count=target,
                headless=headless,
                event_logger=event_logger,
                artifacts_dir=artifacts_dir,
            )
            result = fanout.result
        else:
            result = collect_feed(
                config,
                target_count=target,
                headless=headless,
                event_logger=event_logger,
                artifacts_dir=artifacts_dir,
            )
        written = JsonFileSink(out, feed_url=config.feed.url).write(result) if out is not None else None
        rendered = render_items(result.items, output_format)
    except KeyboardInterrupt as exc:
        typer.secho("Collection cancelled.", err=True, fg=typer.colors.YELLOW)
        raise typer.Exit(EXIT_CANCELLED) from exc
    except CancelledError as exc:
        typer.secho(f"Collection cancelled: {exc}", err=True, fg=typer.colors.YELLOW)
        raise typer.Exit(EXIT_CANCELLED) from exc
    except ExhaustedError as exc:
        typer.secho(f"Collection incomplete ({exc.reason}): {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(EXIT_EXHAUSTED) from exc
    except CollectError as exc:
        typer.secho(f"Collection failed ({exc.reason}): {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(EXIT_FAILED) from exc
    except (ConfigError, BrowserError, SinkError, RenderError, DiagnosticsError) as exc:
        typer.secho(f"Collection failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(EXIT_FAILED) from exc

    if output_format == "pretty":
        typer.echo(_summary_line(result, fanout))
        if fanout is not None:
            for outcome in fanout.outcomes:
                status = "ok" if outcome.ok else "failed"
                suffix = f" ({outcome.error})" if outcome.error else ""
                typer.echo(f"- {outcome.run_id} [{status}] items={outcome.item_count}{suffix}")
    if rendered:
        typer.echo(rendered)
    if written is not None:
        typer.echo(f"Wrote {len(result.items)} items to {written}", err=True)


@app.command("resolve-time")
def resolve_time(
    phrase: str = typer.Argument(..., help='Timestamp text, e.g. "3 hours ago" or an ISO string.'),
    reference: str | None = typer.Option(
        None, "--reference", help="ISO reference instant for relative phrases (defaults to now, UTC)."
    ),
) -> None:
    try:
        reference_time = _parse_reference(reference)
    except ValueError as exc:
        typer.secho(f"Resolve failed: invalid --reference '{reference}': {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(EXIT_FAILED) from exc

    resolved = resolve_timestamp(phrase, reference_time)
    if resolved is None:
        typer.secho(f"Resolve failed: unrecognized timestamp '{phrase}'.", err=True, fg=typer.colors.RED)
        raise typer.Exit(EXIT_FAILED)
    typer.echo(resolved.isoformat())


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show feed-collector version and exit."),
    output_format: str | None = typer.Option(
        None,
        "--format",
        help="Output format: pretty|plain|json|jsonl.",
    ),
    headful: bool | None = typer.Option(
        None,
        "--headful/--headless",
        help="Override the configured browser mode.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging, run events and failure snapshots."),
) -> None:
    ctx.obj = {
        "output_format": output_format,
        "headful": headful,
        "debug": debug,
    }
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def _config_with_overrides(config: RuntimeConfig, *, url: str | None, timeout: float | None) -> RuntimeConfig:
    if url is not None:
        if not url.startswith(("http://", "https://", "file://")):
            raise ConfigError(f"Invalid --url '{url}': expected an http(s) or file URL.")
        config = replace(config, feed=replace(config.feed, url=url))
    if timeout is not None:
        config = replace(config, collection=replace(config.collection, run_timeout_seconds=timeout))
    return config


def _summary_line(result: CollectionResult, fanout: FanOutResult | None) -> str:
    line = f"Collected {len(result.items)}/{result.target_count} items (run {result.run_id})"
    stats = result.stats
    if stats is not None:
        line += (
            f": {stats.snapshots} snapshot(s), {stats.pages_advanced} page advance(s), "
            f"{stats.dropped_records} dropped row(s)"
        )
    if fanout is not None:
        line += f"; runs {fanout.succeeded} ok, {fanout.failed} failed"
    return line + "."


def _parse_reference(raw: str | None) -> datetime:
    if raw is None:
        return datetime.now(timezone.utc)
    value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _resolve_output_format(ctx: typer.Context | None, *, config_default: str) -> str:
    configured: str | None = None
    if ctx is not None and isinstance(ctx.obj, dict):
        value = ctx.obj.get("output_format")
        if isinstance(value, str) and value:
            configured = value
    resolved = configured or config_default
    if resolved not in VALID_OUTPUT_FORMATS:
        supported = ", ".join(sorted(VALID_OUTPUT_FORMATS))
        raise RenderError(
            f"Invalid output format '{resolved}'. Supported formats: {supported}."
        )
    return resolved


def _resolve_debug(ctx: typer.Context | None) -> bool:
    if ctx is None or not isinstance(ctx.obj, dict):
        return False
    return bool(ctx.obj.get("debug", False))


def _resolve_headless(ctx: typer.Context | None) -> bool | None:
    if ctx is None or not isinstance(ctx.obj, dict):
        return None
    headful = ctx.obj.get("headful")
    if headful is None:
        return None
    return not headful


def _event_logger(
    events_path: Path | None,
    *,
    config_path: str | None,
    debug_enabled: bool,
) -> JsonlEventLogger | None:
    if events_path is not None:
        return JsonlEventLogger(events_path)
    if not debug_enabled:
        return None
    return JsonlEventLogger(_state_dir(config_path) / "logs" / "run-events.jsonl")


def _artifacts_dir(config_path: str | None) -> Path:
    return _state_dir(config_path) / "artifacts"


def _state_dir(config_path: str | None) -> Path:
    return resolve_config_path(config_path).parent

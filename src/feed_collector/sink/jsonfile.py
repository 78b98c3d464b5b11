"""JSON file sink holding ordered items plus run metadata."""

from __future__ import annotations

from datetime import timezone
import json
import os
from pathlib import Path
from typing import Any

from feed_collector.diagnostics.events import stats_to_dict
from feed_collector.errors import SinkError
from feed_collector.models import CollectionResult
from feed_collector.render.jsonout import feed_item_to_dict

RESULT_FORMAT_VERSION = 1


class JsonFileSink:
    """Write each result to one JSON document, replacing the file atomically."""

    def __init__(self, path: str | Path, *, feed_url: str | None = None) -> None:
        self._path = Path(path)
        self._feed_url = feed_url

    @property
    def path(self) -> Path:
        return self._path

    def write(self, result: CollectionResult) -> Path:
        document = result_to_dict(result, feed_url=self._feed_url)
        tmp_path = self._path.with_name(f".{self._path.name}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, indent=2, sort_keys=True) + "\n", encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise SinkError(f"Could not write collection result to '{self._path}': {exc}") from exc
        finally:
            try:
                if tmp_path.exists():
                    tmp_path.unlink()
            except OSError:
                pass
        return self._path


def result_to_dict(result: CollectionResult, *, feed_url: str | None = None) -> dict[str, Any]:
    finished_at = result.finished_at
    if finished_at.tzinfo is None:
        finished_at = finished_at.replace(tzinfo=timezone.utc)
    run: dict[str, Any] = {
        "format_version": RESULT_FORMAT_VERSION,
        "run_id": result.run_id,
        "feed_url": feed_url,
        "target_count": result.target_count,
        "collected": len(result.items),
        "finished_at": finished_at.isoformat(),
        "stats": stats_to_dict(result.stats) if result.stats is not None else None,
    }
    return {"run": run, "items": [feed_item_to_dict(item) for item in result.items]}


def load_result_document(path: str | Path) -> dict[str, Any]:
    """Read back a document written by ``JsonFileSink``."""
    target = Path(path)
    try:
        payload = json.loads(target.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SinkError(f"Result file not found: {target}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise SinkError(f"Could not read result file '{target}': {exc}") from exc
    if not isinstance(payload, dict) or "run" not in payload or "items" not in payload:
        raise SinkError(f"Result file '{target}' is missing 'run' or 'items'.")
    return payload

"""Failure snapshot artifacts with default redaction and a raw-html opt-in gate."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import os
from pathlib import Path
import re
from typing import Any

from feed_collector.errors import DiagnosticsError

RAW_HTML_OPT_IN_ENV = "FEEDC_DEBUG_RAW_HTML"
DEFAULT_HTML_SNIPPET_CHARS = 4000
REDACTED = "<redacted>"

_SENSITIVE_KEY_MARKERS = (
    "cookie",
    "token",
    "authorization",
    "password",
    "secret",
    "session",
)
# Listing pages rendered for a logged-in user embed per-user vote/hide tokens in links.
_SENSITIVE_VALUE_PATTERNS = (
    re.compile(r"(?i)([?&;]auth=)([A-Za-z0-9]+)"),
    re.compile(r"(?i)(authorization\s*[:=]\s*)(bearer\s+[a-z0-9._~+/-]+)"),
    re.compile(r"(?i)(set-cookie\s*[:=]\s*)([^;\n]+)"),
    re.compile(r"(?i)\b(user|session|sessionid)=([A-Za-z0-9%&_-]{8,})"),
)


@dataclass(frozen=True)
class HtmlArtifact:
    """Redacted page HTML ready to be written next to a failed run."""

    content: str
    truncated: bool
    raw_html_opt_in: bool

    def filename(self, run_id: str, page_number: int) -> str:
        kind = "raw" if self.raw_html_opt_in else "snippet"
        return f"{_slug(run_id)}_page-{page_number}_{kind}.html"

    def body(self) -> str:
        if not self.truncated:
            return self.content
        return self.content + f"\n<!-- truncated: set {RAW_HTML_OPT_IN_ENV}=1 to keep the full redacted page -->\n"


def resolve_raw_html_opt_in(raw_html_opt_in: bool | None = None) -> bool:
    if raw_html_opt_in is not None:
        return bool(raw_html_opt_in)
    raw_env = os.getenv(RAW_HTML_OPT_IN_ENV, "").strip().lower()
    return raw_env in {"1", "true", "yes", "on"}


def redact_text(value: str) -> str:
    """Replace credential-bearing values in free-form text."""
    redacted = value
    for pattern in _SENSITIVE_VALUE_PATTERNS:
        redacted = pattern.sub(lambda match: f"{match.group(1)}{REDACTED}", redacted)
    return redacted


def redact_value(value: Any) -> Any:
    """Recursively redact mapping/list/scalar values for event payloads."""
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, Mapping):
        return {
            str(key): REDACTED if _is_sensitive_key(str(key)) else redact_value(child)
            for key, child in value.items()
        }
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_value(child) for child in value]
    return value


def build_html_artifact(
    raw_html: str,
    *,
    raw_html_opt_in: bool | None = None,
    snippet_chars: int = DEFAULT_HTML_SNIPPET_CHARS,
) -> HtmlArtifact:
    if snippet_chars <= 0:
        raise DiagnosticsError("snippet_chars must be > 0.")

    allow_raw = resolve_raw_html_opt_in(raw_html_opt_in)
    original = str(raw_html)
    chosen = original if allow_raw else original[:snippet_chars]
    return HtmlArtifact(
        content=redact_text(chosen),
        truncated=not allow_raw and len(original) > len(chosen),
        raw_html_opt_in=allow_raw,
    )


def write_html_artifact(
    artifacts_dir: str | Path,
    *,
    run_id: str,
    page_number: int,
    raw_html: str,
    raw_html_opt_in: bool | None = None,
    snippet_chars: int = DEFAULT_HTML_SNIPPET_CHARS,
) -> Path:
    """Write the redacted last snapshot of a failed run and return its path."""
    artifact = build_html_artifact(
        raw_html,
        raw_html_opt_in=raw_html_opt_in,
        snippet_chars=snippet_chars,
    )
    root = Path(artifacts_dir)
    path = root / artifact.filename(run_id, page_number)
    try:
        root.mkdir(parents=True, exist_ok=True)
        path.write_text(artifact.body(), encoding="utf-8")
    except OSError as exc:
        raise DiagnosticsError(f"Could not write snapshot artifact under '{root}': {exc}") from exc
    return path


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_KEY_MARKERS)


def _slug(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "-", value.strip())
    return cleaned.strip("-") or "unknown"

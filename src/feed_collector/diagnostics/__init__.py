"""Run events and failure artifacts."""

from .artifacts import (
    DEFAULT_HTML_SNIPPET_CHARS,
    RAW_HTML_OPT_IN_ENV,
    HtmlArtifact,
    build_html_artifact,
    redact_text,
    redact_value,
    resolve_raw_html_opt_in,
    write_html_artifact,
)
from .events import (
    COLLECTION_RUN_EVENT,
    EVENT_SCHEMA_VERSION,
    JsonlEventLogger,
    build_event,
    collection_run_payload,
    ensure_schema_compatible,
    stats_to_dict,
    validate_event,
)

__all__ = [
    "COLLECTION_RUN_EVENT",
    "DEFAULT_HTML_SNIPPET_CHARS",
    "EVENT_SCHEMA_VERSION",
    "HtmlArtifact",
    "JsonlEventLogger",
    "RAW_HTML_OPT_IN_ENV",
    "build_event",
    "build_html_artifact",
    "collection_run_payload",
    "ensure_schema_compatible",
    "redact_text",
    "redact_value",
    "resolve_raw_html_opt_in",
    "stats_to_dict",
    "validate_event",
    "write_html_artifact",
]

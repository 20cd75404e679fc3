"""
Structured logging configuration for coderegistry.

Provides JSON-formatted structured logging with:
- Security filtering (no key material, signatures or credentials)
- Redaction of free-form caller text (observation notes, changelogs)
- Bounded line size (long lists summarized, nesting capped)

Usage:
    from coderegistry.logging_config import setup_logging, get_logger

    setup_logging()  # Call once at startup
    logger = get_logger(__name__)
    logger.info("Repo registered", extra={"op": "register_repo", "repo_key": "r1"})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

# Matches URLs embedded in free text
_URL_PATTERN = re.compile(r"(https?://[^\s\"'<>]+)")

# Sensitive patterns that might appear in messages or exception text
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b(secret|private[_-]?key)[=:]\s*['\"]?[\w\-]+['\"]?", re.I), "[SECRET]"),
    (re.compile(r"\b(bearer|token)[=:\s]+['\"]?[\w\-\.]+['\"]?", re.I), "[TOKEN]"),
    (re.compile(r"\b[\w\.-]+@[\w\.-]+\.\w+\b"), "[EMAIL]"),
]

# Fields that must never appear in logs (exact or partial, case-insensitive)
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "secret",
        "password",
        "token",
        "private_key",
        "keypair",
        "mnemonic",
        "seed_phrase",
        "signature",
        "credential",
        "authorization",
        "email",
    }
)

# Free-form or unbounded fields replaced by a placeholder
REDACTED_FIELDS: dict[str, str] = {
    "note": "[NOTE]",
    "payload": "[PAYLOAD]",
    "changelog": "[CHANGELOG]",
    "body": "[BODY]",
}

# Lists longer than this are summarized
MAX_LIST_ITEMS = 10

# Attributes every LogRecord carries; anything else came in via `extra`
_RESERVED_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def _normalize_url(url: str) -> str:
    """Reduce a URL to scheme + host + path (query and fragment dropped)."""
    parts = urlsplit(url)
    if not parts.scheme:
        return url
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


def _sanitize_text(text: str) -> str:
    """Remove query strings and sensitive tokens from free text."""
    if not text:
        return text
    result = _URL_PATTERN.sub(lambda m: _normalize_url(m.group(1)), text)
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _filter_log_record(record: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """Drop blocked fields, redact free text and cap structure size.

    Recursively filters nested dicts up to depth 3.
    """
    if _depth > 3:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}
    for key, value in record.items():
        key_lower = key.lower()

        if any(blocked in key_lower for blocked in BLOCKED_FIELDS):
            continue

        if key_lower in REDACTED_FIELDS:
            filtered[key] = REDACTED_FIELDS[key_lower]
            continue

        if isinstance(value, (int, float, bool, type(None))):
            filtered[key] = value
        elif isinstance(value, str):
            filtered[key] = _sanitize_text(value)
        elif isinstance(value, (list, tuple, set, frozenset)):
            if len(value) <= MAX_LIST_ITEMS:
                filtered[key] = [v if isinstance(v, (int, float, bool)) else str(v) for v in value]
            else:
                filtered[key] = f"[list:{len(value)} items]"
        elif isinstance(value, dict):
            filtered[key] = _filter_log_record(value, _depth=_depth + 1)
        else:
            filtered[key] = _sanitize_text(str(value))

    return filtered


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class JsonFormatter(logging.Formatter):
    """JSON log formatter: one object per line.

    Output format:
    {"ts":"2026-01-01T00:00:00.000+00:00","level":"INFO","logger":"module","msg":"...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = _sanitize_text(self.formatException(record.exc_info))

        extra = _extra_fields(record)
        if extra:
            log_dict.update(_filter_log_record(extra))

        return json.dumps(log_dict, default=str, ensure_ascii=False)


class SimpleFormatter(logging.Formatter):
    """Human-readable formatter for development and tests."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname:8s} {record.name}: {_sanitize_text(record.getMessage())}"
        extra = _extra_fields(record)
        if extra:
            filtered = _filter_log_record(extra)
            if filtered:
                base = f"{base} | " + " ".join(f"{k}={v}" for k, v in filtered.items())
        return base


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = True,
    stream: Any = None,
) -> None:
    """Configure structured logging for the application.

    Call once at application startup.

    Args:
        level: Log level (default INFO).
        json_format: Use JSON formatter (default True for production).
        stream: Output stream (default stderr).
    """
    if stream is None:
        stream = sys.stderr

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically get_logger(__name__))."""
    return logging.getLogger(name)

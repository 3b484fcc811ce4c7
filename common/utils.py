"""Common utility functions."""

from __future__ import annotations

import json
import re
import uuid
from datetime import datetime
from pathlib import Path


def generate_id(prefix: str = "") -> str:
    """Generate a unique identifier."""
    timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    short_uuid = uuid.uuid4().hex[:8]
    if prefix:
        return f"{prefix}_{timestamp}_{short_uuid}"
    return f"{timestamp}_{short_uuid}"


def generate_run_id() -> str:
    """Generate a run ID."""
    return generate_id("run")


def generate_history_id() -> str:
    """Generate a history entry ID."""
    return generate_id("hist")


def format_duration(seconds: float) -> str:
    """Format seconds to human-readable duration."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    seconds = int(seconds)
    if seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}m {secs}s"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    return f"{hours}h {minutes}m {secs}s"


def ensure_dir(path: str | Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def parse_headers(headers_text: str) -> list[tuple[str, str]]:
    """Parse ``Header-Name: value`` lines into (name, value) pairs.

    Blank lines, ``#`` comments, lines without a colon and lines with an
    empty name are skipped. Values may contain colons.
    """
    if not headers_text or not headers_text.strip():
        return []

    headers = []
    for line in headers_text.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue

        key, sep, value = trimmed.partition(":")
        if not sep:
            continue

        key = key.strip()
        if not key:
            continue

        headers.append((key, value.strip()))

    return headers


_FORM_PATTERN = re.compile(r"^[^=]+=[^&]*(&[^=]+=[^&]*)*$")
_XML_TAG = re.compile(r"</?[a-zA-Z][^>]*>")


def detect_content_type(payload: str) -> str:
    """Guess the Content-Type of a request body."""
    trimmed = payload.strip()
    if not trimmed:
        return "text/plain"

    if trimmed[0] in "{[":
        try:
            json.loads(trimmed)
            return "application/json"
        except ValueError:
            pass

    if trimmed.startswith("<"):
        if "<?xml" in trimmed or _XML_TAG.search(trimmed):
            return "application/xml"
        return "text/plain"

    if trimmed[0] not in "{[" and "=" in trimmed and ("&" in trimmed or "\n" not in trimmed):
        if _FORM_PATTERN.match(trimmed.split("\n")[0]):
            return "application/x-www-form-urlencoded"

    return "text/plain"

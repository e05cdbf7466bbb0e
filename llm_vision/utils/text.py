"""String helpers for messages, headers and JSON parameters."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from ..errors import ConfigurationError


def format_megabytes(size_bytes: int, *, precision: int = 2) -> str:
    """Render a byte count as megabytes (MiB) for user-facing messages."""
    return f"{size_bytes / 1024 / 1024:.{precision}f}"


def parse_header_pairs(pairs: Iterable[str]) -> dict[str, str]:
    """Parse ``"Name: value"`` strings into a header mapping."""
    headers: dict[str, str] = {}
    for raw in pairs:
        name, sep, value = raw.partition(":")
        name = name.strip()
        if not sep or not name:
            raise ConfigurationError(
                f"Invalid header {raw!r}; expected the form 'Name: value'."
            )
        headers[name] = value.strip()
    return headers


def parse_json_object(raw: Mapping[str, Any] | str | None, *, field: str) -> dict[str, Any]:
    """Accept a mapping or JSON text and return a plain dictionary."""
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    text = raw.strip()
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as err:
        raise ConfigurationError(f"{field} must be valid JSON: {err}") from err
    if not isinstance(parsed, dict):
        raise ConfigurationError(
            f"{field} must be a JSON object, got {type(parsed).__name__}."
        )
    return parsed

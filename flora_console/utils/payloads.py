"""Coercion helpers for WordPress JSON, where numbers often arrive as strings."""

from __future__ import annotations

import json
from typing import Any, List, Optional

__all__ = ["to_int", "to_float", "to_bool", "to_int_list", "unwrap_list"]

_TRUE_VALUES = {"1", "true", "yes", "on"}


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def to_int_list(value: Any) -> List[int]:
    """Accept a list or a JSON-encoded list; drop entries that are not ids."""
    if isinstance(value, str):
        try:
            value = json.loads(value) if value else []
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return [item for item in (to_int(v) for v in value) if item is not None]


def unwrap_list(data: Any, key: str) -> List[Any]:
    """Return ``data[key]`` for an envelope, ``data`` for a bare list, else []."""
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]

"""Ordered lookups over loosely structured JSON payloads.

Provider payloads vary between versions and configurations, so callers name
every location a value may live at as a dotted path and take the first one
that is populated.
"""

from collections.abc import Mapping
from typing import Any


def extract_path(payload: Any, path: str) -> Any:
    value: Any = payload
    for segment in path.split("."):
        if not isinstance(value, Mapping):
            return None
        if segment not in value:
            return None
        value = value[segment]
    return value


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, Mapping | list | tuple):
        return bool(value)
    return True


def extract_first_text(payload: Any, paths: tuple[str, ...]) -> str | None:
    for path in paths:
        text = to_text(extract_path(payload, path))
        if text:
            return text
    return None


def to_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    if isinstance(value, int | float):
        return str(value)
    return None

"""JSON-compatible typing aliases shared across the project."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Union

type JSONPrimitive = Union[str, int, float, bool, None]
type JSONValue = JSONPrimitive | list[JSONValue] | Mapping[str, JSONValue]
type JSONObject = Mapping[str, JSONValue]


def as_object(value: JSONValue) -> JSONObject:
    """Return ``value`` when it is a JSON object, else an empty mapping."""
    if isinstance(value, Mapping):
        return value
    return {}


def as_list(value: JSONValue) -> list[JSONValue]:
    """Return ``value`` when it is a JSON array, else an empty list."""
    if isinstance(value, list):
        return value
    return []


def string_or_none(value: JSONValue) -> str | None:
    """Return a stripped non-empty string or ``None``."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return None

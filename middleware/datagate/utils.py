"""
Small helpers shared across Datagate.

This module provides:
- MISSING: sentinel for "no value", distinct from an explicit None
- Array coercion and data-shape predicates
- Dotted path get/set used by casting, filters and mappings

Path syntax:
    a.b.c      nested keys
    items[]    the value at 'items', coerced to a list
    items[0]   the first element of 'items'
    .          the value itself

Invariants:
    - get_path() never raises; unreachable paths give MISSING
    - Getting a key through a list maps the rest of the path over the items
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Any


class _Missing:
    """Marker for an absent value."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def is_missing(value: Any) -> bool:
    return value is MISSING


def is_object(value: Any) -> bool:
    return isinstance(value, dict)


def is_typed_data(value: Any) -> bool:
    """Check whether value is a cast item, i.e. carries a string $type."""
    return isinstance(value, dict) and isinstance(value.get("$type"), str)


def is_reference(value: Any) -> bool:
    """Check whether value is a relationship reference, i.e. carries a string $ref."""
    return isinstance(value, dict) and isinstance(value.get("$ref"), str)


def ensure_array(value: Any) -> list[Any]:
    """Coerce value to a list. None and MISSING give an empty list."""
    if value is None or value is MISSING:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def random_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class PathSegment:
    """One dotted path segment.

    Attributes:
        key: Dict key, empty for a bare index segment
        index: List index, if the segment has [N]
        is_array: True if the segment has []
    """

    key: str
    index: int | None = None
    is_array: bool = False


_SEGMENT_PATTERN = re.compile(r"^([^\[\]]*)(?:\[(\d*)\])?$")


@lru_cache(maxsize=1024)
def parse_path(path: str) -> tuple[PathSegment, ...]:
    """Parse a dotted path into segments.

    Args:
        path: Dotted path, e.g. "data.items[]" or "^params.id" without the caret

    Returns:
        Tuple of segments, empty for the identity path

    Raises:
        ValueError: If a segment is malformed
    """
    if path in ("", "."):
        return ()
    segments = []
    for part in path.split("."):
        match = _SEGMENT_PATTERN.match(part)
        if not match:
            raise ValueError(f"Invalid path segment '{part}' in '{path}'")
        key, bracket = match.group(1), match.group(2)
        if bracket is None:
            segments.append(PathSegment(key=key))
        elif bracket == "":
            segments.append(PathSegment(key=key, is_array=True))
        else:
            segments.append(PathSegment(key=key, index=int(bracket)))
    return tuple(segments)


def get_path(value: Any, path: str | tuple[PathSegment, ...]) -> Any:
    """Get the value at a dotted path.

    Args:
        value: Source data
        path: Dotted path or pre-parsed segments

    Returns:
        The value found, or MISSING when the path does not resolve

    Example:
        >>> get_path({"data": {"items": [{"id": "a"}]}}, "data.items.id")
        ['a']
    """
    segments = parse_path(path) if isinstance(path, str) else path
    return _get(value, segments)


def _get(value: Any, segments: tuple[PathSegment, ...]) -> Any:
    if not segments:
        return value
    segment, rest = segments[0], segments[1:]

    if segment.key and isinstance(value, list):
        results = [_get(item, segments) for item in value]
        return [result for result in results if result is not MISSING]

    if segment.key:
        if not isinstance(value, dict) or segment.key not in value:
            current = MISSING
        else:
            current = value[segment.key]
    else:
        current = value

    if segment.index is not None and current is not MISSING:
        if isinstance(current, list):
            current = current[segment.index] if segment.index < len(current) else MISSING
        elif segment.index != 0:
            current = MISSING

    if segment.is_array:
        current = ensure_array(current)

    if current is MISSING:
        return MISSING
    return _get(current, rest)


def set_path(target: Any, path: str | tuple[PathSegment, ...], value: Any) -> Any:
    """Set value at a dotted path, creating intermediate dicts.

    Args:
        target: Dict to write into (mutated in place)
        path: Dotted path or pre-parsed segments
        value: Value to set

    Returns:
        The target, or value itself for the identity path
    """
    segments = parse_path(path) if isinstance(path, str) else path
    if not segments:
        return value
    if not isinstance(target, dict):
        target = {}

    node = target
    for segment in segments[:-1]:
        child = node.get(segment.key)
        if not isinstance(child, dict):
            child = {}
            node[segment.key] = child
        node = child

    last = segments[-1]
    node[last.key] = ensure_array(value) if last.is_array else value
    return target


def merge_deep(base: Any, update: Any) -> Any:
    """Merge update into base, recursing into dicts present on both sides.

    Returns a new dict when both are dicts. A MISSING update keeps base.
    """
    if update is MISSING:
        return base
    if isinstance(base, dict) and isinstance(update, dict):
        merged = dict(base)
        for key, value in update.items():
            merged[key] = merge_deep(base.get(key, MISSING), value) if key in base else value
        return merged
    return update

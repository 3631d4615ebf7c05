"""
Dot-path helpers for nested records.

Paths use dot notation with optional list indexes:
- "mutationVariables.data.effectiveDate"
- "items[0].name"

Patterns may use "*" for any single path segment:
- "metadata.*" matches "metadata.created" but not "metadata.a.b"
- "*.timestamp" matches "created.timestamp"
"""

import copy
import re
from typing import Any, Optional

_INDEX_SEGMENT = re.compile(r"^(.+)\[(\d+)\]$")

_MISSING = object()


def _split_segment(segment: str) -> tuple[str, Optional[int]]:
    """Split "items[2]" into ("items", 2); plain segments get index None."""
    match = _INDEX_SEGMENT.match(segment)
    if match:
        return match.group(1), int(match.group(2))
    return segment, None


def _step(current: Any, segment: str) -> Any:
    """Move one segment down, returning _MISSING when the path breaks."""
    name, index = _split_segment(segment)

    if not isinstance(current, dict) or name not in current:
        return _MISSING
    current = current[name]

    if index is not None:
        if not isinstance(current, list) or index >= len(current):
            return _MISSING
        current = current[index]

    return current


def get_value_at_path(obj: Any, path: str) -> Any:
    """
    Get a value using dot notation.

    Args:
        obj: Record to read from
        path: Dot path, e.g. "mutationVariables.data.effectiveDate"

    Returns:
        The value at path, or None if any segment is missing
    """
    if not obj or not path:
        return None

    current = obj
    for segment in path.split("."):
        current = _step(current, segment)
        if current is _MISSING:
            return None

    return current


def has_value_at_path(obj: Any, path: str) -> bool:
    """Check whether path exists in obj (a stored None still counts as present)."""
    if not obj or not path:
        return False

    current = obj
    for segment in path.split("."):
        current = _step(current, segment)
        if current is _MISSING:
            return False

    return True


def set_value_at_path(obj: dict, path: str, value: Any) -> dict:
    """
    Set a value using dot notation, creating intermediate dicts as needed.

    Mutates and returns obj.
    """
    if obj is None or not path:
        return obj

    parts = path.split(".")
    current = obj

    for segment in parts[:-1]:
        name, index = _split_segment(segment)
        if index is None:
            if not isinstance(current.get(name), dict):
                current[name] = {}
            current = current[name]
            continue

        items = current.setdefault(name, [])
        while len(items) <= index:
            items.append({})
        if not isinstance(items[index], dict):
            items[index] = {}
        current = items[index]

    name, index = _split_segment(parts[-1])
    if index is None:
        current[name] = value
    else:
        items = current.setdefault(name, [])
        while len(items) <= index:
            items.append(None)
        items[index] = value

    return obj


def path_matches_pattern(path: str, pattern: str) -> bool:
    """
    Check if a path matches a pattern.

    A "*" pattern segment matches exactly one path segment at that position.
    """
    if path == pattern:
        return True
    if "*" not in pattern:
        return False

    path_parts = path.split(".")
    pattern_parts = pattern.split(".")
    if len(path_parts) != len(pattern_parts):
        return False

    return all(
        expected == "*" or expected == actual
        for actual, expected in zip(path_parts, pattern_parts)
    )


def matches_any_pattern(path: str, patterns: list[str]) -> Optional[str]:
    """Return the first pattern that matches path, or None."""
    for pattern in patterns:
        if path_matches_pattern(path, pattern):
            return pattern
    return None


def strip_ignored_paths(record: Any, patterns: list[str], prefix: str = "") -> Any:
    """
    Return a copy of record with every key whose path matches a pattern removed.

    List elements are addressed as "name[i]" so patterns can target them.
    """
    if not patterns:
        return copy.deepcopy(record)

    if isinstance(record, dict):
        result = {}
        for key, value in record.items():
            path = f"{prefix}.{key}" if prefix else key
            if matches_any_pattern(path, patterns):
                continue
            result[key] = strip_ignored_paths(value, patterns, path)
        return result

    if isinstance(record, list):
        result = []
        for i, item in enumerate(record):
            path = f"{prefix}[{i}]"
            if matches_any_pattern(path, patterns):
                continue
            result.append(strip_ignored_paths(item, patterns, path))
        return result

    return record


def iter_paths(record: Any, prefix: str = "") -> list[str]:
    """All paths in record, parents before children ("a", "a.b", "items[0]", ...)."""
    paths: list[str] = []

    if isinstance(record, dict):
        for key, value in record.items():
            path = f"{prefix}.{key}" if prefix else key
            paths.append(path)
            paths.extend(iter_paths(value, path))
    elif isinstance(record, list) and prefix:
        for i, item in enumerate(record):
            path = f"{prefix}[{i}]"
            paths.append(path)
            paths.extend(iter_paths(item, path))

    return paths

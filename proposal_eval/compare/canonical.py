"""
Canonical JSON and fingerprints for structured records.

Objects with the same data but different key order produce the same
canonical text and the same fingerprint. List order is preserved.
"""

import hashlib
import json
from typing import Any, Optional


def canonicalize(value: Any) -> Any:
    """
    Recursively sort mapping keys so equal records have one representation.

    Args:
        value: Any JSON-like value (mapping, list, primitive or None)

    Returns:
        The canonical form: dict keys sorted at every level, lists kept in order
    """
    if value is None:
        return None

    if isinstance(value, dict):
        return {key: canonicalize(value[key]) for key in sorted(value)}

    # Lists are NOT sorted - order can be meaningful
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]

    return value


def to_canonical_text(value: Any, indent: Optional[int] = None) -> str:
    """Serialize the canonical form of value to deterministic JSON text."""
    separators = (",", ":") if indent is None else (",", ": ")
    return json.dumps(
        canonicalize(value),
        indent=indent,
        separators=separators,
        ensure_ascii=False,
    )


def fingerprint(value: Any) -> str:
    """MD5 of the canonical text. Used as an equality proxy, not for security."""
    return hashlib.md5(to_canonical_text(value).encode("utf-8")).hexdigest()


def canonical_equal(a: Any, b: Any) -> bool:
    """Key-order-insensitive, list-order-sensitive deep equality."""
    return to_canonical_text(a) == to_canonical_text(b)

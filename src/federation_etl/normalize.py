"""federation_etl.normalize

Pure value helpers for mapping remote API records onto table rows.
No database or network access.

Conventions:
  - A source value of None is treated exactly like a missing key: the column
    is left out of the row so the store's default applies.
  - Nested structures the schema does not decompose (facility, round, ...)
    are wrapped in OpaquePayload and stored as JSON text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence, TypeVar

T = TypeVar("T")

# Sentinel for "no usable value"; distinct from None so callers can tell a
# lookup miss from a legitimate falsy value such as 0 or False.
ABSENT = object()


def lookup(record: Any, path: str) -> Any:
    """Resolve a dotted path ("eventType.id") inside nested mappings.

    Returns ABSENT when any step is missing, None, or not a mapping.
    """
    current = record
    for part in path.split("."):
        if not isinstance(current, dict):
            return ABSENT
        current = current.get(part)
        if current is None:
            return ABSENT
    return current


def first_present(record: Any, paths: Sequence[str]) -> Any:
    """Return the value of the first path that resolves, else ABSENT."""
    for path in paths:
        value = lookup(record, path)
        if value is not ABSENT:
            return value
    return ABSENT


@dataclass(frozen=True)
class OpaquePayload:
    """A nested API structure persisted as serialized text, never decomposed."""

    value: Any

    def is_empty(self) -> bool:
        """Falsy scalars count as empty; empty containers are still payloads."""
        if self.value is None or self.value == "":
            return True
        return isinstance(self.value, (bool, int, float)) and not self.value

    def serialize(self) -> str:
        return json.dumps(self.value, ensure_ascii=False, sort_keys=True, default=str)


def opaque_text(value: Any) -> Any:
    """Serialize a nested value, or ABSENT when there is nothing to store."""
    if value is ABSENT:
        return ABSENT
    payload = OpaquePayload(value)
    if payload.is_empty():
        return ABSENT
    return payload.serialize()


def iter_chunks(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most *size* items, in input order."""
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def chunk_count(n: int, size: int) -> int:
    """ceil(n / size) without floats."""
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    return -(-n // size)


def letter_range(start: str, end: str) -> list[str]:
    """Inclusive single-character range: letter_range("a", "c") -> ["a", "b", "c"]."""
    if len(start) != 1 or len(end) != 1:
        raise ValueError(f"prefix bounds must be single characters: {start!r}, {end!r}")
    if ord(start) > ord(end):
        raise ValueError(f"prefix range is empty: {start!r} > {end!r}")
    return [chr(code) for code in range(ord(start), ord(end) + 1)]


def unique_by(items: Iterable[dict[str, Any]], key: str) -> list[dict[str, Any]]:
    """Drop rows whose *key* value was already seen; first occurrence wins."""
    seen: set[Any] = set()
    out: list[dict[str, Any]] = []
    for item in items:
        k = item.get(key)
        if k in seen:
            continue
        seen.add(k)
        out.append(item)
    return out

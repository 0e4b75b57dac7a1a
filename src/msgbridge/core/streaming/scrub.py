"""Recursive removal of a transient key from arbitrary nested values."""

from __future__ import annotations

from typing import Any

CONTENT_BLOCK_INDEX_KEY = "contentBlockIndex"
"""Stream bookkeeping marker that must never reach the caller's metadata."""


def scrub(value: Any, key: str = CONTENT_BLOCK_INDEX_KEY) -> Any:
    """Return a copy of *value* with every *key* entry removed at any depth.

    Mappings and sequences (lists and tuples) are rebuilt; everything else,
    including ``None``, is returned unchanged. The input is never mutated.
    """
    if isinstance(value, dict):
        return {k: scrub(v, key) for k, v in value.items() if k != key}
    if isinstance(value, list):
        return [scrub(item, key) for item in value]
    if isinstance(value, tuple):
        return tuple(scrub(item, key) for item in value)
    return value

"""Sequence partitioning helpers."""

from __future__ import annotations

from typing import Sequence, TypeVar

T = TypeVar("T")


def chunk_array(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into contiguous groups of ``size``; the last may be shorter."""
    if size <= 0:
        raise ValueError("size must be positive")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]

"""Bounded-size record processing."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from catalog_sync.sync.memory import MemoryGuard
from catalog_sync.utils.chunking import chunk_array

logger = logging.getLogger(__name__)

In = TypeVar("In")
Out = TypeVar("Out")


class ChunkProcessor:
    def __init__(self, memory_guard: MemoryGuard | None = None) -> None:
        self.memory_guard = memory_guard

    def process_in_chunks(
        self,
        records: Sequence[In],
        chunk_size: int,
        transform: Callable[[list[In]], list[Out]],
    ) -> list[Out]:
        """Apply ``transform`` group by group, in order, checking memory between groups."""
        processed: list[Out] = []
        for chunk in chunk_array(records, chunk_size):
            processed.extend(transform(chunk))
            if self.memory_guard is not None:
                self.memory_guard.check()
        return processed

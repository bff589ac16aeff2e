"""In-memory store for tests and single-process use."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Callable, DefaultDict, Dict, Iterable, List, Sequence

from ..buckets import Bucket
from .base import BatchUnionStore

MemoryTransaction = List[Callable[[], None]]


class MemoryStore(BatchUnionStore[MemoryTransaction]):
    """Keep buckets in local dictionaries.

    Data is not persisted across process restarts. Queued writes are plain
    closures replayed under a lock when the transaction ends.
    """

    def __init__(self) -> None:
        self._buckets: DefaultDict[Bucket, Dict[str, set[str]]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    def begin(self) -> MemoryTransaction:
        return []

    async def end(self, transaction: MemoryTransaction) -> None:
        async with self._lock:
            for write in transaction:
                write()

    async def clean(self) -> None:
        async with self._lock:
            self._buckets.clear()

    # ------------------------------------------------------------------
    async def get(self, bucket: Bucket, key: str) -> set[str]:
        values = self._buckets.get(bucket, {}).get(key)
        return set(values) if values else set()

    async def union(self, bucket: Bucket, keys: Sequence[str]) -> set[str]:
        stored = self._buckets.get(bucket, {})
        result: set[str] = set()
        for key in keys:
            result |= stored.get(key, set())
        return result

    async def unions(
        self, buckets: Sequence[Bucket], keys: Sequence[str]
    ) -> Dict[Bucket, set[str]]:
        return {bucket: await self.union(bucket, keys) for bucket in buckets}

    # ------------------------------------------------------------------
    def add(
        self, transaction: MemoryTransaction, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        values = set(values)

        def write() -> None:
            self._buckets[bucket].setdefault(key, set()).update(values)

        transaction.append(write)

    def remove(
        self, transaction: MemoryTransaction, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        values = set(values)

        def write() -> None:
            stored = self._buckets.get(bucket, {}).get(key)
            if stored is not None:
                stored.difference_update(values)

        transaction.append(write)

    def delete(
        self, transaction: MemoryTransaction, bucket: Bucket, keys: Iterable[str]
    ) -> None:
        keys = list(keys)

        def write() -> None:
            stored = self._buckets.get(bucket)
            if stored is None:
                return
            for key in keys:
                stored.pop(key, None)

        transaction.append(write)

"""Store contract consumed by the access-control engine."""

from __future__ import annotations

import abc
from typing import Dict, Generic, Iterable, Sequence, TypeVar

from ..buckets import Bucket

TransactionT = TypeVar("TransactionT")


class BaseStore(Generic[TransactionT], metaclass=abc.ABCMeta):
    """Abstract bucketed key -> set-of-strings store.

    Writes are queued on a transaction handle returned by :meth:`begin` and
    submitted together by :meth:`end`. The engine never inspects the handle.
    """

    async def connect(self) -> None:
        """Open connection to the backend (no-op by default)."""
        pass

    async def close(self) -> None:
        """Close connection to the backend (no-op by default)."""
        pass

    @abc.abstractmethod
    def begin(self) -> TransactionT:
        """Start a batch of pending writes."""
        raise NotImplementedError

    @abc.abstractmethod
    async def end(self, transaction: TransactionT) -> None:
        """Submit every write queued on ``transaction`` as one unit."""
        raise NotImplementedError

    @abc.abstractmethod
    async def clean(self) -> None:
        """Remove everything this store holds."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, bucket: Bucket, key: str) -> set[str]:
        """Return the values stored at ``key``, empty when absent."""
        raise NotImplementedError

    @abc.abstractmethod
    async def union(self, bucket: Bucket, keys: Sequence[str]) -> set[str]:
        """Return the union of the values stored at each of ``keys``."""
        raise NotImplementedError

    @abc.abstractmethod
    def add(
        self, transaction: TransactionT, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        """Queue adding ``values`` to the set at ``key``."""
        raise NotImplementedError

    @abc.abstractmethod
    def remove(
        self, transaction: TransactionT, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        """Queue removing ``values`` from the set at ``key``."""
        raise NotImplementedError

    @abc.abstractmethod
    def delete(
        self, transaction: TransactionT, bucket: Bucket, keys: Iterable[str]
    ) -> None:
        """Queue deletion of the whole sets at ``keys``."""
        raise NotImplementedError


class BatchUnionStore(BaseStore[TransactionT]):
    """Store that can union the same keys across many buckets in one call."""

    @abc.abstractmethod
    async def unions(
        self, buckets: Sequence[Bucket], keys: Sequence[str]
    ) -> Dict[Bucket, set[str]]:
        """Return ``{bucket: union of keys in bucket}`` for every bucket."""
        raise NotImplementedError

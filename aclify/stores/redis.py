"""Redis store backed by one Redis set per bucket key."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Sequence
from urllib.parse import quote

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from ..buckets import Bucket, split_bucket
from .base import BatchUnionStore


class RedisStore(BatchUnionStore[Any]):
    """Redis-based store; transactions are MULTI/EXEC pipelines.

    Keys look like ``<prefix>:<kind>:<bucket>:<key>`` with every component
    percent-encoded, so resource or role names containing ``:`` can't
    collide.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        prefix: str = "acl",
        url: Optional[str] = None,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisStore")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self.url = url
        self._redis: Optional[Any] = None

    def _client(self) -> Any:
        if self._redis is None:
            if self.url:
                self._redis = redis.from_url(self.url, decode_responses=True)
            else:
                self._redis = redis.Redis(
                    host=self.host,
                    port=self.port,
                    db=self.db,
                    password=self.password,
                    decode_responses=True,
                )
        return self._redis

    async def connect(self) -> None:
        """Connect to Redis."""
        # Test connection
        await self._client().ping()

    async def close(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _key(self, bucket: Bucket, key: str) -> str:
        kind, name = split_bucket(bucket)
        return f"{self.prefix}:{kind}:{quote(name, safe='')}:{quote(key, safe='')}"

    # ------------------------------------------------------------------
    def begin(self) -> Any:
        return self._client().pipeline(transaction=True)

    async def end(self, transaction: Any) -> None:
        await transaction.execute()

    async def clean(self) -> None:
        client = self._client()
        keys = [key async for key in client.scan_iter(match=f"{self.prefix}:*")]
        if keys:
            await client.delete(*keys)

    # ------------------------------------------------------------------
    async def get(self, bucket: Bucket, key: str) -> set[str]:
        return set(await self._client().smembers(self._key(bucket, key)))

    async def union(self, bucket: Bucket, keys: Sequence[str]) -> set[str]:
        if not keys:
            return set()
        return set(await self._client().sunion(*[self._key(bucket, k) for k in keys]))

    async def unions(
        self, buckets: Sequence[Bucket], keys: Sequence[str]
    ) -> Dict[Bucket, set[str]]:
        if not keys:
            return {bucket: set() for bucket in buckets}
        pipe = self._client().pipeline(transaction=False)
        for bucket in buckets:
            pipe.sunion(*[self._key(bucket, k) for k in keys])
        results = await pipe.execute()
        return {bucket: set(values) for bucket, values in zip(buckets, results)}

    # ------------------------------------------------------------------
    def add(self, transaction: Any, bucket: Bucket, key: str, values: Iterable[str]) -> None:
        values = list(values)
        if values:
            transaction.sadd(self._key(bucket, key), *values)

    def remove(
        self, transaction: Any, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        values = list(values)
        if values:
            transaction.srem(self._key(bucket, key), *values)

    def delete(self, transaction: Any, bucket: Bucket, keys: Iterable[str]) -> None:
        redis_keys = [self._key(bucket, k) for k in keys]
        if redis_keys:
            transaction.delete(*redis_keys)

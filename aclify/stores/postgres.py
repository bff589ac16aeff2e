"""PostgreSQL implementation of the store contract."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import asyncpg

from ..buckets import Bucket, split_bucket
from .base import BatchUnionStore

Statement = Tuple[str, Tuple[Any, ...]]
PostgresTransaction = List[Statement]

_PREFIX_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PostgresStore(BatchUnionStore[PostgresTransaction]):
    """Persist buckets using PostgreSQL.

    Same row layout as the SQLite store. Queued statements run inside one
    database transaction when :meth:`end` is awaited.
    """

    def __init__(self, dsn: str, prefix: str = "acl"):
        if not _PREFIX_RE.match(prefix):
            raise ValueError(f"Invalid table prefix: {prefix!r}")
        self._dsn = dsn
        self.table = f"{prefix}_entries"
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                kind TEXT NOT NULL,
                bucket TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (kind, bucket, key, value)
            )
            """
        )

    async def _fetch_values(self, query: str, *args: Any) -> set[str]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(query, *args)
        finally:
            await conn.close()
        return {r["value"] for r in rows}

    # ------------------------------------------------------------------
    def begin(self) -> PostgresTransaction:
        return []

    async def end(self, transaction: PostgresTransaction) -> None:
        if not transaction:
            return
        conn = await self._connect()
        try:
            async with conn.transaction():
                for query, args in transaction:
                    await conn.execute(query, *args)
        finally:
            await conn.close()

    async def clean(self) -> None:
        conn = await self._connect()
        try:
            await conn.execute(f"DELETE FROM {self.table}")
        finally:
            await conn.close()

    async def get(self, bucket: Bucket, key: str) -> set[str]:
        kind, name = split_bucket(bucket)
        return await self._fetch_values(
            f"SELECT value FROM {self.table} WHERE kind = $1 AND bucket = $2 AND key = $3",
            kind,
            name,
            key,
        )

    async def union(self, bucket: Bucket, keys: Sequence[str]) -> set[str]:
        if not keys:
            return set()
        kind, name = split_bucket(bucket)
        return await self._fetch_values(
            f"SELECT DISTINCT value FROM {self.table} "
            "WHERE kind = $1 AND bucket = $2 AND key = ANY($3::text[])",
            kind,
            name,
            list(keys),
        )

    async def unions(
        self, buckets: Sequence[Bucket], keys: Sequence[str]
    ) -> Dict[Bucket, set[str]]:
        result: Dict[Bucket, set[str]] = {bucket: set() for bucket in buckets}
        if not buckets or not keys:
            return result
        by_name = {split_bucket(bucket): bucket for bucket in buckets}
        kinds = [kind for kind, _ in by_name]
        names = [name for _, name in by_name]
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                f"SELECT DISTINCT kind, bucket, value FROM {self.table} "
                "WHERE (kind, bucket) IN (SELECT * FROM unnest($1::text[], $2::text[])) "
                "AND key = ANY($3::text[])",
                kinds,
                names,
                list(keys),
            )
        finally:
            await conn.close()
        for r in rows:
            result[by_name[(r["kind"], r["bucket"])]].add(r["value"])
        return result

    # ------------------------------------------------------------------
    def add(
        self, transaction: PostgresTransaction, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        values = list(values)
        if not values:
            return
        kind, name = split_bucket(bucket)
        transaction.append(
            (
                f"INSERT INTO {self.table} (kind, bucket, key, value) "
                "SELECT $1::text, $2::text, $3::text, unnest($4::text[]) ON CONFLICT DO NOTHING",
                (kind, name, key, values),
            )
        )

    def remove(
        self, transaction: PostgresTransaction, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        values = list(values)
        if not values:
            return
        kind, name = split_bucket(bucket)
        transaction.append(
            (
                f"DELETE FROM {self.table} "
                "WHERE kind = $1 AND bucket = $2 AND key = $3 AND value = ANY($4::text[])",
                (kind, name, key, values),
            )
        )

    def delete(
        self, transaction: PostgresTransaction, bucket: Bucket, keys: Iterable[str]
    ) -> None:
        keys = list(keys)
        if not keys:
            return
        kind, name = split_bucket(bucket)
        transaction.append(
            (
                f"DELETE FROM {self.table} WHERE kind = $1 AND bucket = $2 AND key = ANY($3::text[])",
                (kind, name, keys),
            )
        )

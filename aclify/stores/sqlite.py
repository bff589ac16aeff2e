"""SQLite implementation of the store contract."""

from __future__ import annotations

import asyncio
import re
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, List, Sequence, Tuple

from ..buckets import Bucket, split_bucket
from .base import BaseStore

Statement = Tuple[str, Tuple[Any, ...]]
SQLiteTransaction = List[Statement]

_PREFIX_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SQLiteStore(BaseStore[SQLiteTransaction]):
    """Persist buckets in a single SQLite table.

    Each row is one ``(kind, bucket, key, value)`` member; permission buckets
    use kind ``allows`` with the resource as bucket. Has no batched union.
    """

    def __init__(self, db_path: str | Path, prefix: str = "acl"):
        if not _PREFIX_RE.match(prefix):
            raise ValueError(f"Invalid table prefix: {prefix!r}")
        self.db_path = str(db_path)
        self.table = f"{prefix}_entries"
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
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
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute_all(self, statements: Sequence[Statement]) -> None:
        with self._lock:
            cur = self._conn.cursor()
            try:
                for query, params in statements:
                    cur.execute(query, params)
            except sqlite3.Error:
                self._conn.rollback()
                raise
            self._conn.commit()

    def _fetch_values(self, query: str, *params: Any) -> set[str]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return {row[0] for row in cur.fetchall()}

    async def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Store API
    def begin(self) -> SQLiteTransaction:
        return []

    async def end(self, transaction: SQLiteTransaction) -> None:
        if transaction:
            await asyncio.to_thread(self._execute_all, list(transaction))

    async def clean(self) -> None:
        await asyncio.to_thread(self._execute_all, [(f"DELETE FROM {self.table}", ())])

    async def get(self, bucket: Bucket, key: str) -> set[str]:
        kind, name = split_bucket(bucket)
        return await asyncio.to_thread(
            self._fetch_values,
            f"SELECT value FROM {self.table} WHERE kind = ? AND bucket = ? AND key = ?",
            kind,
            name,
            key,
        )

    async def union(self, bucket: Bucket, keys: Sequence[str]) -> set[str]:
        if not keys:
            return set()
        kind, name = split_bucket(bucket)
        return await asyncio.to_thread(
            self._fetch_values,
            f"SELECT DISTINCT value FROM {self.table} "
            f"WHERE kind = ? AND bucket = ? AND key IN ({_placeholders(len(keys))})",
            kind,
            name,
            *keys,
        )

    def add(
        self, transaction: SQLiteTransaction, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        kind, name = split_bucket(bucket)
        for value in values:
            transaction.append(
                (
                    f"INSERT OR IGNORE INTO {self.table} (kind, bucket, key, value) "
                    "VALUES (?, ?, ?, ?)",
                    (kind, name, key, value),
                )
            )

    def remove(
        self, transaction: SQLiteTransaction, bucket: Bucket, key: str, values: Iterable[str]
    ) -> None:
        values = list(values)
        if not values:
            return
        kind, name = split_bucket(bucket)
        transaction.append(
            (
                f"DELETE FROM {self.table} WHERE kind = ? AND bucket = ? AND key = ? "
                f"AND value IN ({_placeholders(len(values))})",
                (kind, name, key, *values),
            )
        )

    def delete(
        self, transaction: SQLiteTransaction, bucket: Bucket, keys: Iterable[str]
    ) -> None:
        keys = list(keys)
        if not keys:
            return
        kind, name = split_bucket(bucket)
        transaction.append(
            (
                f"DELETE FROM {self.table} WHERE kind = ? AND bucket = ? "
                f"AND key IN ({_placeholders(len(keys))})",
                (kind, name, *keys),
            )
        )
